"""Canonical "Price Action" closing line.

Session and weekday are derived from an explicit timestamp by the caller
(``market_session`` / ``trading_day_name``); ``PriceActionComposer.compose``
itself is a pure function of its arguments.
"""

from datetime import datetime
from typing import Optional

import pandas as pd

from newsdesk.models.datatypes import MarketSession, PriceQuote

EXCHANGE_TIMEZONE = "America/New_York"
DEFAULT_SOURCE_NAME = "Benzinga Pro"
DEFAULT_SOURCE_URL = "https://pro.benzinga.com"
GENERIC_UNAVAILABLE = "Price Action: Stock price data unavailable at the time of publication."

# Session boundaries in exchange-local HHMM
PREMARKET_OPEN = 400
REGULAR_OPEN = 930
REGULAR_CLOSE = 1600
AFTERHOURS_CLOSE = 2000


def _local(now: datetime, timezone: str) -> pd.Timestamp:
    """Exchange-local timestamp; naive inputs are taken as already exchange-local."""
    ts = pd.Timestamp(now)
    if ts.tzinfo is None:
        return ts.tz_localize(timezone)
    return ts.tz_convert(timezone)


def market_session(now: datetime, timezone: str = EXCHANGE_TIMEZONE) -> MarketSession:
    """
    Classify ``now`` into a trading session.

    Args:
        now (datetime): The moment to classify.
        timezone (str): Exchange timezone.

    Returns:
        MarketSession: premarket 04:00-09:30, regular 09:30-16:00,
        afterhours 16:00-20:00, closed otherwise and all weekend.
    """
    local = _local(now, timezone)
    if local.dayofweek >= 5:
        return MarketSession.CLOSED

    hhmm = local.hour * 100 + local.minute
    if PREMARKET_OPEN <= hhmm < REGULAR_OPEN:
        return MarketSession.PREMARKET
    if REGULAR_OPEN <= hhmm < REGULAR_CLOSE:
        return MarketSession.REGULAR
    if REGULAR_CLOSE <= hhmm < AFTERHOURS_CLOSE:
        return MarketSession.AFTERHOURS
    return MarketSession.CLOSED


def trading_day_name(now: datetime, timezone: str = EXCHANGE_TIMEZONE) -> str:
    """Weekday name of the latest trading day; Saturday and Sunday report Friday."""
    local = _local(now, timezone)
    if local.dayofweek >= 5:
        return "Friday"
    return local.day_name()


def _positive(value: Optional[float]) -> Optional[float]:
    return value if value is not None and value > 0 else None


def regular_change_percent(quote: PriceQuote) -> Optional[float]:
    """
    Regular-session move in percent.

    Recomputed from close and previous close when possible, since the upstream
    ``change_percent`` may already include extended-hours trading.
    """
    close = _positive(quote.close) or _positive(quote.last_price)
    previous = _positive(quote.previous_close)
    if close and previous:
        return (close - previous) / previous * 100.0
    if quote.change is not None and previous:
        return quote.change / previous * 100.0
    return quote.change_percent


def extended_change_percent(quote: PriceQuote) -> Optional[float]:
    """Extended-hours move in percent, derived from the regular close when not supplied."""
    if quote.extended_hours_change_percent:
        return quote.extended_hours_change_percent
    extended = _positive(quote.extended_hours_price)
    close = _positive(quote.close) or _positive(quote.last_price)
    if extended and close:
        return (extended - close) / close * 100.0
    return None


def _move(pct: float, up: str, down: str) -> str:
    rounded = round(pct, 2)
    word = down if rounded < 0 else up
    return f"{word} {abs(rounded):.2f}%"


def _on(day: str) -> str:
    return "today" if not day or day.lower() == "today" else f"on {day}"


class PriceActionComposer:
    """Render the one-sentence price-action footer."""

    def __init__(self, source_name: str = DEFAULT_SOURCE_NAME, source_url: str = DEFAULT_SOURCE_URL) -> None:
        """
        Args:
            source_name (str): Data vendor credited at the end of the line.
            source_url (str): Link target for the credit.
        """
        self.source_name = source_name
        self.source_url = source_url

    @property
    def attribution(self) -> str:
        return f', according to <a href="{self.source_url}">{self.source_name}</a>.'

    def compose(
        self,
        ticker: Optional[str],
        quote: Optional[PriceQuote],
        session: MarketSession,
        day_of_week: str,
    ) -> str:
        """
        Build the price-action line.

        Args:
            ticker (Optional[str]): Symbol; None produces the generic line.
            quote (Optional[PriceQuote]): Latest quote, if one was fetched.
            session (MarketSession): Session at publication time.
            day_of_week (str): Weekday used in the sentence (``"today"`` allowed).

        Returns:
            str: One HTML sentence.
        """
        if not ticker:
            return GENERIC_UNAVAILABLE

        prefix = f"<strong>{ticker} Price Action:</strong>"
        if quote is None:
            return f"{prefix} Price data unavailable."

        name = quote.company_name or ticker
        close = _positive(quote.close) or _positive(quote.last_price)
        when = _on(day_of_week)

        if session is MarketSession.PREMARKET:
            sentence = self._premarket(name, quote, when)
        else:
            if close is None:
                return f"{prefix} Price data unavailable."
            pct = regular_change_percent(quote)
            if session is MarketSession.REGULAR:
                sentence = self._regular(name, close, pct, when)
            elif session is MarketSession.AFTERHOURS:
                sentence = self._afterhours(name, quote, close, pct, when)
            else:
                sentence = f"{name} shares {self._regular_past(close, pct)} during regular trading hours {when}"

        if sentence is None:
            return f"{prefix} Price data unavailable."
        return f"{prefix} {sentence}{self.attribution}"

    # ── templates ─────────────────────────────────────────────────────────────

    @staticmethod
    def _regular_past(close: float, pct: Optional[float]) -> str:
        if pct is None:
            return f"closed at ${close:.2f}"
        return f"{_move(pct, 'rose', 'fell')} to ${close:.2f}"

    @staticmethod
    def _regular(name: str, close: float, pct: Optional[float], when: str) -> str:
        if pct is None:
            return f"{name} shares were trading at ${close:.2f} during regular trading hours {when}"
        return f"{name} shares were {_move(pct, 'up', 'down')} at ${close:.2f} during regular trading hours {when}"

    @staticmethod
    def _premarket(name: str, quote: PriceQuote, when: str) -> Optional[str]:
        price = _positive(quote.extended_hours_price) or _positive(quote.last_price) or _positive(quote.close)
        if price is None:
            return None
        # Zero or missing pre-market change is stale data, not "unchanged"
        pct = quote.change_percent
        if pct is None or round(pct, 2) == 0:
            return f"{name} shares were trading at ${price:.2f} during pre-market trading {when}"
        return f"{name} shares were {_move(pct, 'up', 'down')} at ${price:.2f} during pre-market trading {when}"

    def _afterhours(
        self, name: str, quote: PriceQuote, close: float, pct: Optional[float], when: str
    ) -> str:
        regular = self._regular_past(close, pct)
        extended = _positive(quote.extended_hours_price)
        ext_pct = extended_change_percent(quote)
        if extended is not None and ext_pct is not None:
            return (
                f"{name} shares {regular} during regular trading hours, and were "
                f"{_move(ext_pct, 'up', 'down')} at ${extended:.2f} during after-hours trading {when}"
            )
        return (
            f"{name} shares {regular} during regular trading hours {when}. "
            f"The stock is currently trading in the after-hours session"
        )
