"""Data structures for the article pipeline."""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

UNKNOWN_DAY = "today"


@dataclass(frozen=True)
class ExtractedFacts:
    """
    Structured facts pulled from one raw source text before prompting.
    """
    ticker: Optional[str] = None
    ticker_confidence: Optional[int] = None  # ordinal of the ticker pattern that matched
    publication_day_of_week: str = UNKNOWN_DAY
    price_target: Optional[float] = None

    @property
    def is_generic(self) -> bool:
        """True when no ticker was found and the article must use generic phrasing."""
        return self.ticker is None

    def implied_upside(self, current_price: Optional[float]) -> Optional[float]:
        """Percentage distance from ``current_price`` to the price target, if both are known."""
        if self.price_target is None or not current_price or current_price <= 0:
            return None
        return (self.price_target - current_price) / current_price * 100.0


class QuoteLocation(str, Enum):
    HEADLINE = "headline"
    BODY = "body"


class MatchKind(str, Enum):
    EXACT = "exact"
    FUZZY = "fuzzy"
    UNVERIFIED = "unverified"


@dataclass(frozen=True)
class QuoteSpan:
    """
    One quotation found in generated text and how well the source supports it.
    """
    text: str
    location: QuoteLocation = QuoteLocation.BODY
    match_kind: MatchKind = MatchKind.UNVERIFIED
    coverage_ratio: float = 0.0


@dataclass
class VerificationReport:
    """
    Outcome of checking generated quotes against the source. Advisory only.
    """
    spans: List[QuoteSpan] = field(default_factory=list)
    skipped: List[QuoteSpan] = field(default_factory=list)

    @property
    def inaccurate(self) -> List[QuoteSpan]:
        return [s for s in self.spans if s.match_kind is MatchKind.UNVERIFIED]

    @property
    def is_clean(self) -> bool:
        return not self.inaccurate

    @property
    def warnings(self) -> List[str]:
        messages = []
        for span in self.inaccurate:
            messages.append(
                f"Inaccurate {span.location.value} quote: \"{span.text}\" "
                f"(in-order coverage {span.coverage_ratio:.0%})"
            )
        return messages


class NumberStatus(str, Enum):
    MATCH = "match"
    MISSING = "missing"


@dataclass(frozen=True)
class NumberMention:
    """
    One figure found in generated text: an amount, a percentage or a multiple.

    ``amount`` and ``unit`` are the comparable form, so "$5B" and
    "$5 billion" both read as ``(5.0, "billion")``.
    """
    value: str
    kind: str  # "currency" / "percent" / "scaled" / "multiple"
    amount: float
    unit: Optional[str] = None
    context: str = ""
    status: NumberStatus = NumberStatus.MISSING


@dataclass
class NumberReport:
    """
    Outcome of checking generated figures against the source. Advisory only.
    """
    mentions: List[NumberMention] = field(default_factory=list)

    @property
    def missing(self) -> List[NumberMention]:
        return [m for m in self.mentions if m.status is NumberStatus.MISSING]

    @property
    def is_clean(self) -> bool:
        return not self.missing

    @property
    def warnings(self) -> List[str]:
        return [f"Number not in source: {m.value} (\"{m.context}\")" for m in self.missing]


@dataclass
class HyperlinkRecord:
    """
    One anchor captured from the pre-rewrite text.

    ``restored_by`` holds the ordinal (1-5) of the strategy that put the link
    back, ``FALLBACK_STRATEGY`` for the last-resort reinsertion, or None when
    the link survived the rewrite untouched.
    """
    url: str
    anchor_text: str
    position: int
    label: Optional[str] = None  # "Also Read" / "Read Next"
    label_outside: bool = False  # label precedes the tag instead of sitting inside it
    restored_by: Optional[int] = None
    unrecoverable: bool = False

    @property
    def tag(self) -> str:
        return f'<a href="{self.url}">{self.anchor_text}</a>'

    @property
    def line(self) -> str:
        """The standalone line used when the link is reinserted structurally."""
        if self.label and self.label_outside:
            return f"{self.label}: {self.tag}"
        return self.tag


FALLBACK_STRATEGY = 6


@dataclass
class RestoreResult:
    """
    Rewritten text with lost anchors put back.
    """
    text: str
    unrecovered_count: int = 0
    records: List[HyperlinkRecord] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.records)

    def exceeds(self, tolerance: int) -> bool:
        """True when more links were lost than the caller is willing to accept."""
        return self.unrecovered_count > tolerance


class MarketSession(str, Enum):
    PREMARKET = "premarket"
    REGULAR = "regular"
    AFTERHOURS = "afterhours"
    CLOSED = "closed"


@dataclass(frozen=True)
class PriceQuote:
    """
    Normalized delayed quote supplied by a market data provider.
    """
    last_price: Optional[float] = None
    change: Optional[float] = None
    change_percent: Optional[float] = None
    close: Optional[float] = None
    previous_close: Optional[float] = None
    company_name: Optional[str] = None
    extended_hours_price: Optional[float] = None
    extended_hours_change_percent: Optional[float] = None


@dataclass
class NewsArticle:
    """
    A related article used for Also Read / Read Next citations.
    """
    headline: str
    source: str
    url: str
    published_at: str  # ISO 8601 timestamp or YYYY-MM-DD
    summary: Optional[str] = None


@dataclass(frozen=True)
class ChatMessage:
    role: str
    content: str


@dataclass
class GeneratedArticle:
    """
    Final article plus everything the pipeline learned while producing it.
    """
    headline: str
    body: str
    facts: ExtractedFacts
    ticker: Optional[str] = None  # resolved ticker; an explicit override wins over facts.ticker
    price_action: str = ""
    quote_report: VerificationReport = field(default_factory=VerificationReport)
    number_report: NumberReport = field(default_factory=NumberReport)
    restore_result: Optional[RestoreResult] = None
    quote: Optional[PriceQuote] = None
    related: List[NewsArticle] = field(default_factory=list)
    reverted: bool = False

    @property
    def html(self) -> str:
        return f"<h1>{self.headline}</h1>\n\n{self.body}\n"

    def report(self) -> Dict[str, Any]:
        """JSON-friendly summary written next to the article."""
        return {
            "headline": self.headline,
            "ticker": self.ticker,
            "facts": asdict(self.facts),
            "quote": asdict(self.quote) if self.quote else None,
            "price_action": self.price_action,
            "quote_warnings": self.quote_report.warnings,
            "number_warnings": self.number_report.warnings,
            "unrecovered_links": self.restore_result.unrecovered_count if self.restore_result else 0,
            "reverted_rewrite": self.reverted,
            "related": [asdict(a) for a in self.related],
        }
