"""Delayed quotes via yfinance, mapped onto PriceQuote."""

from typing import Optional

import pandas as pd
import yfinance as yf

from newsdesk.core.logger import logger
from newsdesk.core.news_utils import get_long_name
from newsdesk.core.retry import with_retries
from newsdesk.models.datatypes import PriceQuote
from newsdesk.pipeline.price_action import EXCHANGE_TIMEZONE, REGULAR_CLOSE, REGULAR_OPEN
from newsdesk.providers.base import MarketDataProvider


class YFinanceProvider(MarketDataProvider):
    """Yahoo Finance implementation for US-listed tickers."""

    def __init__(self, cache_dir: str = "output", timezone: str = EXCHANGE_TIMEZONE) -> None:
        """
        Args:
            cache_dir (str): Where the company-name cache lives.
            timezone (str): Exchange timezone used to spot extended-hours bars.
        """
        self.cache_dir = cache_dir
        self.timezone = timezone

    @with_retries(max_retries=3, initial_delay=2)
    def fetch_quote(self, ticker: str) -> Optional[PriceQuote]:
        """
        Build a PriceQuote from recent daily closes and today's pre/post-market bars.

        The latest daily close and the one before it give the regular-session
        move. When the newest 1-minute bar falls outside regular hours its
        close becomes the extended-hours price.

        Args:
            ticker (str): The ticker symbol.

        Returns:
            Optional[PriceQuote]: The quote, or None when yfinance has no history.
        """
        logger.info(f"Fetching quote for {ticker}")
        handle = yf.Ticker(ticker)

        daily = handle.history(period="5d", interval="1d")
        if daily.empty:
            logger.warning(f"No daily history returned for {ticker}")
            return None

        closes = pd.to_numeric(daily["Close"], errors="coerce").dropna()
        if closes.empty:
            logger.warning(f"Daily history for {ticker} has no usable closes")
            return None

        close = float(closes.iloc[-1])
        previous = float(closes.iloc[-2]) if len(closes) >= 2 else None
        extended = self._extended_price(handle, ticker)

        if extended is not None:
            change_percent = (extended - close) / close * 100.0
        elif previous:
            change_percent = float(closes.pct_change().iloc[-1] * 100.0)
        else:
            change_percent = None

        quote = PriceQuote(
            last_price=extended if extended is not None else close,
            change=close - previous if previous else None,
            change_percent=change_percent,
            close=close,
            previous_close=previous,
            company_name=get_long_name(ticker, self.cache_dir),
            extended_hours_price=extended,
        )
        logger.info(
            f"Quote {ticker}: close={close:.2f} | prev={previous} | extended={extended}"
        )
        return quote

    def _extended_price(self, handle: yf.Ticker, ticker: str) -> Optional[float]:
        """Close of the newest 1-minute bar if it printed outside regular hours."""
        bars = handle.history(period="1d", interval="1m", prepost=True)
        if bars.empty:
            return None

        last_ts = pd.Timestamp(bars.index[-1])
        local = last_ts.tz_convert(self.timezone) if last_ts.tzinfo else last_ts.tz_localize(self.timezone)
        hhmm = local.hour * 100 + local.minute
        if REGULAR_OPEN <= hhmm < REGULAR_CLOSE:
            return None

        price = pd.to_numeric(bars["Close"], errors="coerce").dropna()
        if price.empty:
            return None
        logger.debug(f"Extended-hours bar for {ticker} at {local:%H:%M}")
        return float(price.iloc[-1])
