"""Text helpers shared by the providers and the text pipeline.

Company-name handling (suffix stripping, title relevance, cached longName
lookup) plus the small HTML/regex utilities every pipeline stage needs.
"""

import json
import os
import re
from typing import Dict, Optional

import yfinance as yf

from newsdesk.core.logger import logger

_CACHE_FILENAME = "company_names.json"

# Legal suffixes only; descriptors like 'Holdings' or 'Technologies' are part of the name.
CORPORATE_SUFFIXES = [
    "inc", "incorporated", "corp", "corporation", "co", "company",
    "llc", "ltd", "limited", "plc", "ag", "sa", "nv",
]

_TAG_RE = re.compile(r"<[^>]+>")


def strip_suffix(long_name: str) -> str:
    """Remove a trailing corporate suffix from a company name.

    Examples:
        ``"Example Corp"`` → ``"Example"``
        ``"Apple Inc."`` → ``"Apple"``

    Args:
        long_name (str): Full company name.

    Returns:
        str: Name without its legal suffix, stripped of whitespace.
    """
    pattern = r"[\s,]+(" + "|".join(re.escape(s) for s in CORPORATE_SUFFIXES) + r")[\s.]*$"
    return re.sub(pattern, "", long_name, flags=re.IGNORECASE).strip()


def strip_tags(html: str, replacement: str = "") -> str:
    """Drop every HTML tag from ``html``."""
    return _TAG_RE.sub(replacement, html)


def whole_word_pattern(phrase: str, flags: int = re.IGNORECASE) -> re.Pattern[str]:
    """Compile ``phrase`` as a literal that may not touch word characters on either side.

    Unlike ``\\b``, the lookarounds still match when the phrase itself starts
    or ends with punctuation (``"Read Next: Apple?"``).
    """
    return re.compile(r"(?<!\w)" + re.escape(phrase.strip()) + r"(?!\w)", flags)


def is_relevant_title(title: str, long_name: str, ticker: str = "") -> bool:
    """Return True if the title mentions the company or ticker as a standalone phrase.

    The company name matches case-insensitively, with or without its legal
    suffix; the ticker must appear in capitals so ``"ON"`` does not match
    every "on" in a headline.

    Args:
        title (str): Article headline.
        long_name (str): Company name (e.g. ``"Apple Inc."``).
        ticker (str): Ticker symbol, optional extra term.

    Returns:
        bool: ``True`` if the title is about the company.
    """
    for phrase in (long_name, strip_suffix(long_name)):
        if phrase and whole_word_pattern(phrase).search(title):
            return True

    if ticker and whole_word_pattern(ticker, flags=0).search(title):
        return True

    return False


# ── company-name cache ────────────────────────────────────────────────────────

def _cache_path(cache_dir: str) -> str:
    os.makedirs(cache_dir, exist_ok=True)
    return os.path.join(cache_dir, _CACHE_FILENAME)


def _load_cache(cache_dir: str) -> Dict[str, str]:
    path = _cache_path(cache_dir)
    if not os.path.exists(path):
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning(f"Ignoring unreadable name cache {path}: {exc}")
        return {}


def _save_cache(cache_dir: str, data: Dict[str, str]) -> None:
    with open(_cache_path(cache_dir), "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def get_long_name(ticker: str, cache_dir: str = "output") -> str:
    """Return the company display name for a US ticker.

    Resolution order:
      1. ``<cache_dir>/company_names.json``.
      2. ``yf.Ticker(ticker).info["longName"]`` (cached on success).
      3. The ticker itself.

    Args:
        ticker (str): Ticker symbol (e.g. ``"AAPL"``).
        cache_dir (str): Directory holding the JSON cache.

    Returns:
        str: Company name, or the ticker as fallback.
    """
    cache = _load_cache(cache_dir)
    if ticker in cache:
        logger.debug(f"get_long_name cache hit: {ticker} → {cache[ticker]}")
        return cache[ticker]

    long_name = _fetch_long_name(ticker)
    if long_name:
        cache[ticker] = long_name
        _save_cache(cache_dir, cache)
        logger.info(f"get_long_name cached: {ticker} → {long_name}")
        return long_name
    return ticker


def _fetch_long_name(ticker: str) -> Optional[str]:
    """Ask yfinance for ``longName`` (then ``shortName``); None when unavailable."""
    try:
        info: dict = yf.Ticker(ticker).info or {}
    except Exception as exc:
        logger.warning(f"get_long_name: yfinance raised for {ticker}: {exc}. Falling back to ticker.")
        return None

    name = (info.get("longName") or info.get("shortName") or "").strip()
    if not name:
        logger.warning(f"get_long_name: no name returned for {ticker}. Falling back to ticker.")
        return None
    return name
