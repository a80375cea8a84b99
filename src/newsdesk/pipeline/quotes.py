"""Quote-accuracy checks for generated articles.

Every quotation in the headline and body is compared with the source text:
a case-insensitive substring hit is exact; otherwise the quote's significant
words are walked through the source left to right and the share found in
order decides whether the quote reads as a plausible paraphrase. Results are
logged and returned, never applied to the article.

Figures get the same advisory treatment: every amount, percentage and
multiple in the article should be stated in the source with the same unit.
"""

import re
import string
from dataclasses import replace
from typing import Iterable, List, Tuple

from newsdesk.core.logger import logger
from newsdesk.core.news_utils import strip_tags
from newsdesk.models.datatypes import (
    MatchKind, NumberMention, NumberReport, NumberStatus, QuoteLocation, QuoteSpan, VerificationReport,
)

HEADLINE_MIN_CHARS = 3
BODY_MIN_CHARS = 4
BODY_COVERAGE_THRESHOLD = 0.70
MIN_WORD_CHARS = 3

# Openers may not follow a letter, closers may not precede one: keeps apostrophes out.
_SINGLE_QUOTED = re.compile(r"(?<!\w)'([^'\n]+?)'(?!\w)")
_DOUBLE_QUOTED = re.compile(r'"([^"\n]+)"')
_CURLY_DOUBLE = re.compile(r"“([^”\n]+)”")

_WORD_STRIP = string.punctuation + "‘’“”"


def _plain(html: str) -> str:
    return re.sub(r"\s+", " ", strip_tags(html, " "))


def extract_headline_quotes(headline: str) -> List[QuoteSpan]:
    """Collect single- and double-quoted spans from a headline."""
    text = _plain(headline)
    found = [m.group(1) for m in _SINGLE_QUOTED.finditer(text)]
    found += [m.group(1) for m in _DOUBLE_QUOTED.finditer(text)]
    return [QuoteSpan(text=q.strip(), location=QuoteLocation.HEADLINE) for q in found]


def extract_body_quotes(body: str) -> List[QuoteSpan]:
    """Collect double-quoted spans from a body, falling back to single quotes when there are none."""
    text = _plain(body)
    found = [m.group(1) for m in _DOUBLE_QUOTED.finditer(text)]
    found += [m.group(1) for m in _CURLY_DOUBLE.finditer(text)]
    if not found:
        found = [m.group(1) for m in _SINGLE_QUOTED.finditer(text)]
    return [QuoteSpan(text=q.strip(), location=QuoteLocation.BODY) for q in found]


def in_order_coverage(quote: str, source: str) -> Tuple[float, int, int]:
    """
    Walk the quote's significant words through ``source`` with a moving cursor.

    A word found after the cursor counts as in order. A word that only turns
    up by restarting from the beginning still counts as found and moves the
    cursor, but not as in order.

    Args:
        quote (str): Quoted text.
        source (str): Source text to search.

    Returns:
        Tuple[float, int, int]: ``(in_order / total, in_order, found)``;
        ``(0.0, 0, 0)`` when the quote has no significant words.
    """
    quote_lower = quote.lower()
    source_lower = source.lower()
    words = [w.strip(_WORD_STRIP) for w in quote_lower.split()]
    words = [w for w in words if len(w) >= MIN_WORD_CHARS]
    if not words:
        return 0.0, 0, 0

    cursor = 0
    in_order = 0
    found = 0
    for word in words:
        idx = source_lower.find(word, cursor)
        if idx != -1:
            in_order += 1
            found += 1
            cursor = idx + len(word)
            continue
        idx = source_lower.find(word)
        if idx != -1:
            found += 1
            cursor = idx + len(word)

    return in_order / len(words), in_order, found


class QuoteVerifier:
    """Classify generated quotations as exact, fuzzy or unverified."""

    def __init__(
        self,
        body_threshold: float = BODY_COVERAGE_THRESHOLD,
        headline_min_chars: int = HEADLINE_MIN_CHARS,
        body_min_chars: int = BODY_MIN_CHARS,
    ) -> None:
        self.body_threshold = body_threshold
        self.headline_min_chars = headline_min_chars
        self.body_min_chars = body_min_chars

    def verify(self, spans: Iterable[QuoteSpan], source_text: str) -> VerificationReport:
        """
        Check each span against ``source_text``.

        Headline quotes must appear verbatim. Body quotes pass as exact, or as
        fuzzy when their in-order coverage reaches ``body_threshold``.

        Args:
            spans (Iterable[QuoteSpan]): Quotes pulled from the generated article.
            source_text (str): The material the article was written from.

        Returns:
            VerificationReport: Classified spans plus the ones too short to check.
        """
        report = VerificationReport()
        source = _plain(source_text or "")
        source_lower = source.lower()

        for span in spans:
            text = span.text.strip()
            min_chars = (
                self.headline_min_chars if span.location is QuoteLocation.HEADLINE else self.body_min_chars
            )
            if len(text) < min_chars:
                report.skipped.append(span)
                continue

            if text.lower() in source_lower:
                report.spans.append(QuoteSpan(text, span.location, MatchKind.EXACT, 1.0))
                continue

            ratio, _, _ = in_order_coverage(text, source)
            if span.location is QuoteLocation.HEADLINE:
                kind = MatchKind.UNVERIFIED
            elif ratio >= self.body_threshold:
                kind = MatchKind.FUZZY
            else:
                kind = MatchKind.UNVERIFIED

            checked = QuoteSpan(text, span.location, kind, ratio)
            report.spans.append(checked)
            if kind is MatchKind.UNVERIFIED:
                logger.warning(
                    f"Inaccurate {span.location.value} quote: {text!r} "
                    f"(in-order coverage {ratio:.0%})"
                )

        return report

    def check(self, headline: str, body: str, source_text: str) -> VerificationReport:
        """Extract the article's quotes and verify them in one call."""
        spans = extract_headline_quotes(headline) + extract_body_quotes(body)
        report = self.verify(spans, source_text)
        logger.info(
            f"Quote check: {len(report.spans)} checked | {len(report.inaccurate)} inaccurate | "
            f"{len(report.skipped)} skipped"
        )
        return report


# ── numbers ───────────────────────────────────────────────────────────────────

_NUM = r"\d+(?:,\d{3})*(?:\.\d+)?"
_LEFT = r"(?<![\w$.,])"
NUMBER_PATTERNS = (
    ("currency", re.compile(r"\$(" + _NUM + r")(?:\s*(billion|million|trillion|[BMT])\b)?", re.IGNORECASE)),
    ("percent", re.compile(_LEFT + r"(" + _NUM + r")(?:\s*%|\s+percent\b)", re.IGNORECASE)),
    ("scaled", re.compile(_LEFT + r"(" + _NUM + r")\s+(billion|million|trillion)\b", re.IGNORECASE)),
    ("multiple", re.compile(_LEFT + r"(" + _NUM + r")x\b", re.IGNORECASE)),
)
_UNITS = {"b": "billion", "m": "million", "t": "trillion"}
# Amount kinds that may stand in for each other: "$5 billion" vs "5 billion dollars"
_COMPATIBLE = {"currency": "money", "scaled": "money", "percent": "percent", "multiple": "multiple"}
CONTEXT_CHARS = 40


def extract_numbers(text: str) -> List[NumberMention]:
    """
    Collect dollar amounts, percentages, scaled numbers and ``Nx`` multiples.

    Tags are stripped first. A figure repeated later in the text is kept once.

    Args:
        text (str): Article or source HTML.

    Returns:
        List[NumberMention]: Figures in order of appearance, all ``MISSING``.
    """
    plain = _plain(text or "")
    hits = []
    for kind, pattern in NUMBER_PATTERNS:
        for match in pattern.finditer(plain):
            unit = match.group(2).lower() if kind in ("currency", "scaled") and match.group(2) else None
            unit = _UNITS.get(unit, unit)
            start = max(0, match.start() - CONTEXT_CHARS)
            context = plain[start:match.end() + CONTEXT_CHARS].strip()
            hits.append((match.start(), NumberMention(
                value=match.group(0).strip(),
                kind=kind,
                amount=float(match.group(1).replace(",", "")),
                unit=unit,
                context=context,
            )))

    mentions: List[NumberMention] = []
    seen = set()
    for _, mention in sorted(hits, key=lambda hit: hit[0]):
        key = (_COMPATIBLE[mention.kind], mention.amount, mention.unit)
        if key in seen:
            continue
        seen.add(key)
        mentions.append(mention)
    return mentions


def verify_numbers(text: str, source_text: str) -> NumberReport:
    """
    Mark each figure in ``text`` as a match when the source states the same
    amount with the same unit, else as missing.

    Args:
        text (str): Generated headline and body.
        source_text (str): The material the article was written from.

    Returns:
        NumberReport: One entry per distinct figure.
    """
    available = {
        (_COMPATIBLE[m.kind], m.amount, m.unit) for m in extract_numbers(source_text)
    }
    report = NumberReport()
    for mention in extract_numbers(text):
        key = (_COMPATIBLE[mention.kind], mention.amount, mention.unit)
        status = NumberStatus.MATCH if key in available else NumberStatus.MISSING
        report.mentions.append(replace(mention, status=status))
        if status is NumberStatus.MISSING:
            logger.warning(f"Number not in source: {mention.value} ({mention.context!r})")

    logger.info(f"Number check: {len(report.mentions)} checked | {len(report.missing)} missing")
    return report
