"""Article pipeline: wires extraction, generation and the house-style stages.

Flow per source document:
  1. Facts      : FactExtractor (ticker, weekday, price target)
  2. Data       : quote + related articles (failures degrade to generic copy)
  3. Generate   : one LLM call, first line is the headline
  4. Normalize  : StyleNormalizer on headline and body
  5. Verify     : QuoteVerifier and number check, warnings only
  6. Cite       : Also Read inside the body
  7. Polish     : optional rewrite round guarded by HyperlinkGuardian
  8. Footer     : PriceActionComposer, then Read Next at the end

Provider failures are logged and treated as missing data. A failed
generation call propagates: without text there is no article.
"""

import json
import os
import re
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd

from newsdesk.core.config import section
from newsdesk.core.logger import logger
from newsdesk.models.datatypes import (
    ChatMessage, ExtractedFacts, GeneratedArticle, NewsArticle, PriceQuote, RestoreResult,
)
from newsdesk.pipeline.extractor import FactExtractor
from newsdesk.pipeline.hyperlinks import SECTION_MARKERS, HyperlinkGuardian, append_read_next, place_also_read
from newsdesk.pipeline.price_action import (
    DEFAULT_SOURCE_NAME, DEFAULT_SOURCE_URL, EXCHANGE_TIMEZONE,
    PriceActionComposer, market_session, trading_day_name,
)
from newsdesk.pipeline.quotes import BODY_COVERAGE_THRESHOLD, QuoteVerifier, verify_numbers
from newsdesk.pipeline.style import PROTECTED_TITLES, StyleNormalizer, strip_generated_price_action
from newsdesk.providers.base import LLMProvider, MarketDataProvider, NewsProvider

DEFAULT_MAX_UNRECOVERED = 2

SYSTEM_PROMPT = (
    "You are a financial news writer. Write a concise news article from the source material. "
    "Put the headline on the first line, then the body as short paragraphs separated by blank lines. "
    "Bold the company name with <strong> on first mention followed by its (EXCHANGE:TICKER). "
    "Never bold numbers. Quote the source only verbatim. Do not write a price action line."
)
POLISH_INSTRUCTION = (
    "Tighten the article below without changing facts, quotes or numbers. "
    "Keep every <a href> link exactly as written."
)


def split_article(raw: str) -> Tuple[str, str]:
    """Split generated text into ``(headline, body)``; the first non-empty line is the headline."""
    lines = (raw or "").strip().split("\n")
    if not lines or not lines[0].strip():
        return "", ""
    headline = re.sub(r"^(?:#+\s*|headline:\s*)", "", lines[0].strip(), flags=re.IGNORECASE)
    return headline, "\n".join(lines[1:]).strip()


def build_messages(
    source_text: str,
    facts: ExtractedFacts,
    ticker: Optional[str],
    company: Optional[str],
    quote: Optional[PriceQuote],
) -> List[ChatMessage]:
    """Prompt for the generation call, seeded with the extracted facts."""
    notes = []
    if ticker:
        notes.append(f"Company: {company or ticker} (ticker {ticker})")
    else:
        notes.append("No ticker identified: keep the copy generic.")
    notes.append(f"Publication day: {facts.publication_day_of_week}")
    if facts.price_target is not None:
        notes.append(f"Price target: ${facts.price_target:.2f}")
        upside = facts.implied_upside(quote.last_price if quote else None)
        if upside is not None:
            notes.append(f"Implied upside from ${quote.last_price:.2f}: {upside:.1f}%")

    user = "\n".join(notes) + "\n\nSOURCE MATERIAL:\n" + source_text
    return [ChatMessage("system", SYSTEM_PROMPT), ChatMessage("user", user)]


class ArticlePipeline:
    """Turns one source document into a finished, house-styled article.

    Args:
        config: Parsed config.yaml dict (passed in; not re-loaded internally).
        llm: Chat-completion backend.
        market: Quote provider, optional.
        news: Related-article provider, optional.
        output_dir: Where ``write`` saves articles (defaults to ``config["output_dir"]``).
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]],
        llm: LLMProvider,
        market: Optional[MarketDataProvider] = None,
        news: Optional[NewsProvider] = None,
        output_dir: Optional[str] = None,
    ) -> None:
        self.config = config or {}
        self.llm = llm
        self.market = market
        self.news = news
        self.output_dir = output_dir or self.config.get("output_dir", "output")

        style_cfg = section(self.config, "style")
        links_cfg = section(self.config, "hyperlinks")
        price_cfg = section(self.config, "price_action")

        self.extractor = FactExtractor()
        self.normalizer = StyleNormalizer(
            protected_titles=style_cfg.get("protected_titles", PROTECTED_TITLES),
            analyst_names=style_cfg.get("analyst_names", []),
        )
        self.verifier = QuoteVerifier(
            body_threshold=section(self.config, "quotes").get("body_threshold", BODY_COVERAGE_THRESHOLD),
        )
        self.guardian = HyperlinkGuardian(section_markers=links_cfg.get("section_markers", SECTION_MARKERS))
        self.max_unrecovered = links_cfg.get("max_unrecovered", DEFAULT_MAX_UNRECOVERED)
        self.composer = PriceActionComposer(
            source_name=price_cfg.get("source_name", DEFAULT_SOURCE_NAME),
            source_url=price_cfg.get("source_url", DEFAULT_SOURCE_URL),
        )
        self.timezone = section(self.config, "market").get("timezone", EXCHANGE_TIMEZONE)
        self.related_limit = section(self.config, "news").get("limit", 2)
        self.polish_pass = section(self.config, "pipeline").get("polish_pass", False)

    # ── public ────────────────────────────────────────────────────────────────

    def run(self, source_text: str, ticker: Optional[str] = None, now: Optional[datetime] = None) -> GeneratedArticle:
        """Generate an article for ``source_text``.

        Args:
            source_text: Raw analyst note / press release.
            ticker: Overrides the extracted ticker when given.
            now: Publication time; drives the market session and weekday.

        Returns:
            The finished :class:`GeneratedArticle`.
        """
        now = now or pd.Timestamp.now(tz=self.timezone).to_pydatetime()
        log_parts: List[str] = []

        facts = self.extractor.extract(source_text, today=now.date())
        ticker = (ticker or facts.ticker or "").upper() or None
        log_parts.append(f"ticker={ticker or 'generic'}")

        quote = self._fetch_quote(ticker, log_parts)
        company = quote.company_name if quote and quote.company_name else ticker
        related = self._fetch_related(ticker, company, log_parts)

        raw = self.llm.complete(build_messages(source_text, facts, ticker, company, quote))
        headline, body = split_article(raw)
        headline = self.normalizer.normalize_headline(headline)
        body = strip_generated_price_action(self.normalizer.normalize(body))

        report = self.verifier.check(headline, body, source_text)
        log_parts.append(f"quotes={len(report.spans)}/{len(report.inaccurate)} inaccurate")
        numbers = verify_numbers(f"{headline}\n{body}", source_text)
        log_parts.append(f"numbers={len(numbers.mentions)}/{len(numbers.missing)} missing")

        if related:
            body = place_also_read(body, related[0])

        restore: Optional[RestoreResult] = None
        reverted = False
        if self.polish_pass:
            body, restore, reverted = self.rewrite(body, POLISH_INSTRUCTION)
            log_parts.append("polish=reverted" if reverted else "polish=kept")

        price_action = self.composer.compose(
            ticker, quote, market_session(now, self.timezone), trading_day_name(now, self.timezone)
        )
        body = f"{body}\n\n{price_action}"
        if len(related) > 1:
            body = append_read_next(body, related[1])

        logger.info(f"ArticlePipeline: {' | '.join(log_parts)}")
        return GeneratedArticle(
            headline=headline,
            body=body,
            facts=facts,
            ticker=ticker,
            price_action=price_action,
            quote_report=report,
            number_report=numbers,
            restore_result=restore,
            quote=quote,
            related=related,
            reverted=reverted,
        )

    def rewrite(self, body: str, instruction: str) -> Tuple[str, RestoreResult, bool]:
        """One LLM rewrite round with link restoration.

        The rewrite is discarded in favour of ``body`` when more than
        ``max_unrecovered`` links could not be restored, or when the call fails.

        Args:
            body: Current article body.
            instruction: What the rewrite should do.

        Returns:
            Tuple of ``(text, restore_result, reverted)``.
        """
        messages = [
            ChatMessage("system", SYSTEM_PROMPT),
            ChatMessage("user", f"{instruction}\n\n{body}"),
        ]
        try:
            rewritten = self.llm.complete(messages)
        except Exception as exc:
            logger.error(f"ArticlePipeline: rewrite call failed, keeping previous text: {exc}")
            return body, RestoreResult(text=body), True

        result = self.guardian.restore(body, self.normalizer.normalize(rewritten))
        if result.exceeds(self.max_unrecovered):
            logger.warning(
                f"ArticlePipeline: {result.unrecovered_count}/{result.total} links lost in rewrite "
                f"(tolerance {self.max_unrecovered}); reverting"
            )
            return body, result, True
        return result.text, result, False

    def write(self, article: GeneratedArticle) -> Tuple[str, str]:
        """Save ``article.html`` and ``report.json`` under ``output_dir/<ticker>``.

        Returns:
            Tuple of ``(html_path, report_path)``.
        """
        target = os.path.join(self.output_dir, (article.ticker or "generic").lower())
        os.makedirs(target, exist_ok=True)
        html_path = os.path.join(target, "article.html")
        report_path = os.path.join(target, "report.json")

        with open(html_path, "w", encoding="utf-8") as f:
            f.write(article.html)
        with open(report_path, "w", encoding="utf-8") as f:
            json.dump(article.report(), f, indent=2)

        logger.info(f"ArticlePipeline: wrote {html_path} and {report_path}")
        return html_path, report_path

    # ── internal ──────────────────────────────────────────────────────────────

    def _fetch_quote(self, ticker: Optional[str], log_parts: List[str]) -> Optional[PriceQuote]:
        if not ticker or self.market is None:
            log_parts.append("quote=skipped")
            return None
        try:
            quote = self.market.fetch_quote(ticker)
        except Exception as exc:
            logger.error(f"ArticlePipeline: fetch_quote failed for {ticker}: {exc}")
            log_parts.append("quote=error")
            return None
        log_parts.append("quote=ok" if quote else "quote=missing")
        return quote

    def _fetch_related(self, ticker: Optional[str], company: Optional[str], log_parts: List[str]) -> List[NewsArticle]:
        if not ticker or self.news is None:
            log_parts.append("related=skipped")
            return []
        try:
            related = self.news.fetch_related(ticker, company or ticker, limit=self.related_limit)
        except Exception as exc:
            logger.error(f"ArticlePipeline: fetch_related failed for {ticker}: {exc}")
            log_parts.append("related=error")
            return []
        log_parts.append(f"related={len(related)}")
        return related
