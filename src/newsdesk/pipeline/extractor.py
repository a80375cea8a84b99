"""Structured fact extraction from raw analyst notes and press releases.

Three independent scans over the same text, each driven by an ordered table
of patterns where the first valid match wins:
  1. Ticker        : five patterns, most to least specific
  2. Publication   : five date literals, reduced to a weekday name
  3. Price target  : seven dollar-anchored templates

Nothing here raises on odd input: an absent fact is an absent value.
"""

import re
from datetime import date
from typing import Callable, List, Optional, Tuple

from newsdesk.core.logger import logger
from newsdesk.models.datatypes import UNKNOWN_DAY, ExtractedFacts

WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

MONTHS = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)

RATING_WORDS = [
    "Buy", "Sell", "Hold", "Outperform", "Underperform", "Neutral",
    "Overweight", "Underweight", "Equal Weight", "Equal-Weight",
    "Market Perform", "Sector Perform", "Peer Perform", "Strong Buy",
    "Strong Sell", "Positive", "Negative", "Accumulate", "Reduce",
]

EXCHANGES = ["NYSE American", "NYSEARCA", "NASDAQ", "NYSE", "AMEX", "OTCQX", "OTCQB", "OTC", "CBOE"]

# Uppercase words that collide with the ticker shape but are never tickers.
TICKER_EXCLUSIONS = frozenset({
    "THE", "AND", "FOR", "ARE", "WAS", "HAS", "HAD", "WILL", "THIS", "THAT",
    "INC", "CORP", "LLC", "LTD", "PLC", "CO", "US", "USA", "NYSE", "AMEX",
    "OTC", "CEO", "CFO", "COO", "CTO", "EPS", "ETF", "IPO", "SEC", "FDA",
    "GAAP", "EBIT", "YOY", "QOQ", "ADR", "ADS", "AI", "PT", "NEW", "ALL",
    "NOT", "BUT", "ITS", "OUR", "YOU",
})


def _alternation(words: List[str]) -> str:
    return "|".join(re.escape(w) for w in sorted(words, key=len, reverse=True))


# ── ticker patterns ───────────────────────────────────────────────────────────
# Symbols are case-sensitive; surrounding keywords are not.

TICKER_PATTERNS: List[Tuple[int, re.Pattern[str]]] = [
    (1, re.compile(r"\(([A-Z]{1,5}),\s*(?i:" + _alternation(RATING_WORDS) + r")\b[^)]*\)")),
    (2, re.compile(r"\((?i:" + _alternation(EXCHANGES) + r")\s*:\s*([A-Z]{1,5})\)")),
    (3, re.compile(r"\(([A-Z]{1,5})\)")),
    (4, re.compile(r"^([A-Z]{1,5})\s+US\b", re.MULTILINE)),
    (5, re.compile(r"\b([A-Z]{2,5})\s+(?i:US|NASDAQ|NYSE|shares|stock|ticker)\b")),
]

# ── date patterns ─────────────────────────────────────────────────────────────

_MONTH = r"(" + "|".join(MONTHS) + r")"


def _month_number(name: str) -> int:
    return [m.lower() for m in MONTHS].index(name.lower()) + 1


DateBuilder = Callable[[re.Match[str], date], date]

DATE_PATTERNS: List[Tuple[re.Pattern[str], DateBuilder]] = [
    (re.compile(_MONTH + r"\s+(\d{1,2}),\s+(\d{4})", re.IGNORECASE),
     lambda m, today: date(int(m.group(3)), _month_number(m.group(1)), int(m.group(2)))),
    (re.compile(_MONTH + r"\s+(\d{1,2})(?:,|\.|\s|$)", re.IGNORECASE),
     lambda m, today: date(today.year, _month_number(m.group(1)), int(m.group(2)))),
    (re.compile(r"(?<!\d)(\d{4})-(\d{1,2})-(\d{1,2})(?!\d)"),
     lambda m, today: date(int(m.group(1)), int(m.group(2)), int(m.group(3)))),
    (re.compile(r"(?<!\d)(\d{1,2})/(\d{1,2})/(\d{4})(?!\d)"),
     lambda m, today: date(int(m.group(3)), int(m.group(1)), int(m.group(2)))),
    (re.compile(r"(?<!\d)(\d{1,2})/(\d{1,2})/(\d{2})(?!\d)"),
     lambda m, today: date(2000 + int(m.group(3)), int(m.group(1)), int(m.group(2)))),
]

# ── price-target templates ────────────────────────────────────────────────────

_AMOUNT = r"(\d[\d,]*(?:\.\d+)?)"

PRICE_TARGET_PATTERNS: List[re.Pattern[str]] = [
    re.compile(p, re.IGNORECASE) for p in (
        r"\$" + _AMOUNT + r"\s+(?:price\s+)?target",
        r"price\s+target.*?\$" + _AMOUNT,
        r"target.*?\$" + _AMOUNT,
        r"\$" + _AMOUNT + r"\s*PT\b",
        r"\bPT\b.*?\$" + _AMOUNT,
        r"raised.*?\$" + _AMOUNT,
        r"\bto\s+\$" + _AMOUNT,
    )
]


def _valid_ticker(candidate: str) -> bool:
    return (
        2 <= len(candidate) <= 5
        and candidate.isalpha()
        and candidate.isupper()
        and candidate not in TICKER_EXCLUSIONS
    )


class FactExtractor:
    """Pull ticker, publication weekday and price target out of unstructured text."""

    def extract(self, text: str, today: Optional[date] = None) -> ExtractedFacts:
        """
        Extract every fact from ``text``.

        Args:
            text (str): Raw source material, possibly several documents concatenated.
            today (Optional[date]): Reference date supplying the year for
                "Month Day" literals. Defaults to the current date.

        Returns:
            ExtractedFacts: Frozen record; missing facts are None / ``"today"``.
        """
        text = text or ""
        today = today or date.today()

        ticker, confidence = self.extract_ticker(text)
        facts = ExtractedFacts(
            ticker=ticker,
            ticker_confidence=confidence,
            publication_day_of_week=self.extract_day_of_week(text, today),
            price_target=self.extract_price_target(text),
        )
        logger.info(
            f"Extracted facts: ticker={facts.ticker} (pattern {facts.ticker_confidence}) | "
            f"day={facts.publication_day_of_week} | target={facts.price_target}"
        )
        return facts

    def extract_ticker(self, text: str) -> Tuple[Optional[str], Optional[int]]:
        """
        Return ``(ticker, pattern ordinal)`` for the first valid match, or ``(None, None)``.
        """
        for ordinal, pattern in TICKER_PATTERNS:
            for match in pattern.finditer(text):
                candidate = match.group(1).upper()
                if _valid_ticker(candidate):
                    logger.debug(f"Ticker {candidate} matched pattern {ordinal}")
                    return candidate, ordinal
        return None, None

    def extract_day_of_week(self, text: str, today: date) -> str:
        """
        Return the weekday name of the first parseable date literal, else ``"today"``.
        """
        for pattern, build in DATE_PATTERNS:
            match = pattern.search(text)
            if not match:
                continue
            try:
                parsed = build(match, today)
            except ValueError:
                logger.debug(f"Ignoring invalid date literal {match.group(0)!r}")
                continue
            return WEEKDAYS[parsed.weekday()]
        return UNKNOWN_DAY

    def extract_price_target(self, text: str) -> Optional[float]:
        """
        Return the amount captured by the first matching template.

        When several templates could match, the earliest one in
        ``PRICE_TARGET_PATTERNS`` decides.
        """
        for pattern in PRICE_TARGET_PATTERNS:
            match = pattern.search(text)
            if not match:
                continue
            try:
                amount = float(match.group(1).replace(",", ""))
            except ValueError:
                continue
            if amount > 0:
                return amount
        return None
