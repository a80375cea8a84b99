"""Related-article lookup for Also Read / Read Next citations.

GoogleNewsProvider queries the Google News RSS search endpoint:
  1. Query A: ``"<company>" (stock OR shares) when:<N>d``, title filter ON
  2. Query B: ``"<ticker>" stock when:<N>d``, title filter OFF (the symbol is the signal)
The feed is downloaded with requests (so the call has a timeout and can be
retried) and parsed with feedparser. Parsed entries are cached per ticker
and day.
"""

import urllib.parse
from datetime import datetime
from typing import List, Optional

import feedparser
import requests

from newsdesk.core.cache import SQLiteCache
from newsdesk.core.logger import logger
from newsdesk.core.news_utils import is_relevant_title, strip_suffix
from newsdesk.core.retry import with_retries
from newsdesk.models.datatypes import NewsArticle
from newsdesk.providers.base import NewsProvider

_GOOGLE_RSS_BASE = "https://news.google.com/rss/search"
_PUBDATE_FMT = "%Y-%m-%d %H:%M:%S"
_TIMEOUT_SECONDS = 15


class GoogleNewsProvider(NewsProvider):
    """Google News RSS provider for US company coverage."""

    def __init__(
        self,
        cache_instance: Optional[SQLiteCache] = None,
        lookback_days: int = 7,
        excluded_sources: Optional[List[str]] = None,
    ) -> None:
        """
        Args:
            cache_instance: Shared SQLite cache (created if not provided).
            lookback_days: Server-side ``when:`` window.
            excluded_sources: Outlets never cited (wire press-release services by default).
        """
        self.cache = cache_instance or SQLiteCache(max_age_hours=6)
        self.lookback_days = lookback_days
        self.excluded_sources = [s.lower() for s in (excluded_sources or ["PR Newswire", "Business Wire", "GlobeNewswire"])]

    def fetch_related(self, ticker: str, company_name: str, limit: int = 2) -> List[NewsArticle]:
        """
        Return up to ``limit`` relevant articles, newest first.

        Args:
            ticker: Ticker symbol.
            company_name: Company display name.
            limit: Maximum number of articles.

        Returns:
            List of articles; empty when nothing relevant was found.
        """
        search_name = strip_suffix(company_name) or ticker
        window = f"when:{self.lookback_days}d"

        queries = [
            (f'"{search_name}" (stock OR shares) {window}', "name", True),
            (f'"{ticker}" stock {window}', "ticker", False),
        ]
        for query, cache_sfx, title_filter in queries:
            articles = self._try_query(ticker, company_name, query, cache_sfx, title_filter)
            if articles:
                return articles[:limit]

        logger.warning(f"RELATED [{ticker}] no article survived filters")
        return []

    def _try_query(
        self,
        ticker: str,
        company_name: str,
        query: str,
        cache_sfx: str,
        title_filter: bool,
    ) -> List[NewsArticle]:
        """Run one RSS query (cache-aware) and return the filtered, sorted articles."""
        cache_key = f"gnews_{ticker}_{datetime.now():%Y-%m-%d}_{cache_sfx}"
        entries = self.cache.get(cache_key)

        if entries is None:
            try:
                entries = self._fetch_rss(ticker, query)
            except requests.RequestException as exc:
                logger.error(f"GoogleNewsProvider: INFRA_FAILURE for {ticker}: {exc}")
                return []
            self.cache.set(cache_key, entries)

        return self._select(entries, ticker, company_name, title_filter)

    @with_retries(max_retries=2, initial_delay=1, exceptions=(requests.RequestException,))
    def _fetch_rss(self, ticker: str, query: str) -> List[dict]:
        """Download and parse the RSS feed into plain entry dicts."""
        url = f"{_GOOGLE_RSS_BASE}?q={urllib.parse.quote(query)}&hl=en-US&gl=US&ceid=US:en"
        logger.info(f"GoogleNewsProvider: fetching [{ticker}] q={query!r}")

        resp = requests.get(url, timeout=_TIMEOUT_SECONDS)
        resp.raise_for_status()
        feed = feedparser.parse(resp.content)

        if feed.bozo and hasattr(feed, "bozo_exception"):
            logger.warning(f"GoogleNewsProvider: RSS parse warning for {ticker}: {feed.bozo_exception}")

        entries = []
        for entry in feed.entries:
            title = (entry.get("title") or "").strip()
            link = entry.get("link") or ""
            if not title or not link:
                continue
            pub_parsed = entry.get("published_parsed")
            source_raw = entry.get("source") or {}
            source = source_raw.get("title", "Google News") if isinstance(source_raw, dict) else str(source_raw)
            # Google appends " - Outlet" to every title
            if title.endswith(f" - {source}"):
                title = title[: -len(f" - {source}")].strip()
            entries.append({
                "title": title,
                "source": source,
                "url": link,
                "published_at": datetime(*pub_parsed[:6]).strftime(_PUBDATE_FMT) if pub_parsed else "",
                "summary": entry.get("summary", ""),
            })

        logger.info(f"GoogleNewsProvider: {len(entries)} entries for {ticker}")
        return entries

    def _select(
        self,
        entries: List[dict],
        ticker: str,
        company_name: str,
        use_title_filter: bool,
    ) -> List[NewsArticle]:
        """Drop irrelevant, excluded and duplicate entries; newest first."""
        seen = set()
        candidates = []
        for entry in entries:
            title = entry.get("title", "")
            if use_title_filter and not is_relevant_title(title, company_name, ticker):
                logger.debug(f"GoogleNewsProvider: skipped (title): {title!r}")
                continue
            if entry.get("source", "").lower() in self.excluded_sources:
                continue
            key = title.lower()
            if key in seen:
                continue
            seen.add(key)
            candidates.append(entry)

        candidates.sort(key=lambda e: e.get("published_at", ""), reverse=True)
        return [
            NewsArticle(
                headline=e["title"],
                source=e.get("source", "Google News"),
                url=e["url"],
                published_at=e.get("published_at", ""),
                summary=e.get("summary", ""),
            )
            for e in candidates
        ]
