import json
import os
from datetime import datetime

import pytest

from newsdesk.models.datatypes import NewsArticle, PriceQuote
from newsdesk.pipeline.engine import ArticlePipeline, split_article
from newsdesk.pipeline.price_action import GENERIC_UNAVAILABLE
from newsdesk.pipeline.validator import validate
from newsdesk.providers.base import LLMProvider, MarketDataProvider, NewsProvider

MONDAY_MORNING = datetime(2026, 1, 5, 10, 0)

SOURCE = (
    "Apple Inc. (NASDAQ:AAPL) said on January 5, 2026 that demand for our chips remains strong. "
    "Morgan Stanley raised its price target to $250."
)

GENERATED = """Apple Stock Climbs On Chip Demand
**Apple Inc.** (NASDAQ:AAPL) shares traded higher on Monday. The company said "demand for our chips remains strong".

Morgan Stanley raised its target to **$250**.

Apple Price Action: shares moved."""


class FakeLLM(LLMProvider):
    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def complete(self, messages):
        self.calls.append(list(messages))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class FakeMarket(MarketDataProvider):
    def __init__(self, quote=None, error=None):
        self.quote = quote
        self.error = error
        self.calls = []

    def fetch_quote(self, ticker):
        self.calls.append(ticker)
        if self.error:
            raise self.error
        return self.quote


class FakeNews(NewsProvider):
    def __init__(self, articles=(), error=None):
        self.articles = list(articles)
        self.error = error

    def fetch_related(self, ticker, company_name, limit=2):
        if self.error:
            raise self.error
        return self.articles[:limit]


def _related():
    return [
        NewsArticle("Apple Supplier Raises Outlook", "Reuters", "https://example.com/one", "2026-01-05 09:00:00"),
        NewsArticle("iPhone Demand Holds Up In China", "CNBC", "https://example.com/two", "2026-01-04 18:00:00"),
    ]


@pytest.fixture
def quote():
    return PriceQuote(last_price=95.0, close=95.0, previous_close=100.0, company_name="Apple Inc.")


def test_split_article():
    assert split_article("# Headline\nBody line one.\n\nTwo.") == ("Headline", "Body line one.\n\nTwo.")
    assert split_article("Headline: Apple Gains") == ("Apple Gains", "")
    assert split_article("") == ("", "")


def test_run_produces_finished_article(quote):
    llm = FakeLLM(GENERATED)
    pipeline = ArticlePipeline(None, llm, market=FakeMarket(quote), news=FakeNews(_related()))

    article = pipeline.run(SOURCE, now=MONDAY_MORNING)

    assert article.headline == "Apple Stock Climbs On Chip Demand"
    assert article.facts.ticker == "AAPL"
    assert article.facts.publication_day_of_week == "Monday"
    assert article.facts.price_target == 250.0
    assert article.quote_report.is_clean

    body = article.body
    assert body.startswith("<strong>Apple Inc.</strong> (NASDAQ:AAPL) shares traded higher")
    assert "<strong>$250</strong>" not in body
    assert "Apple Price Action: shares moved." not in body
    assert body.count("Price Action:") == 1
    assert (
        "<strong>AAPL Price Action:</strong> Apple Inc. shares were down 5.00% at $95.00 "
        "during regular trading hours on Monday"
    ) in body
    assert 'Also Read: <a href="https://example.com/one">Apple Supplier Raises Outlook</a>' in body
    assert body.endswith('Read Next: <a href="https://example.com/two">iPhone Demand Holds Up In China</a>')
    assert body.index("Also Read:") < body.index("Price Action:") < body.index("Read Next:")


def test_prompt_carries_extracted_facts(quote):
    llm = FakeLLM(GENERATED)
    ArticlePipeline(None, llm, market=FakeMarket(quote)).run(SOURCE, now=MONDAY_MORNING)

    system, user = llm.calls[0]
    assert system.role == "system"
    assert "Company: Apple Inc. (ticker AAPL)" in user.content
    assert "Price target: $250.00" in user.content
    assert "Implied upside from $95.00" in user.content
    assert user.content.endswith(SOURCE)


def test_explicit_ticker_overrides_extraction(quote):
    market = FakeMarket(quote)
    ArticlePipeline(None, FakeLLM(GENERATED), market=market).run(SOURCE, ticker="msft", now=MONDAY_MORNING)

    assert market.calls == ["MSFT"]


def test_provider_failures_degrade():
    pipeline = ArticlePipeline(
        None,
        FakeLLM(GENERATED),
        market=FakeMarket(error=RuntimeError("quote feed down")),
        news=FakeNews(error=RuntimeError("rss down")),
    )

    article = pipeline.run(SOURCE, now=MONDAY_MORNING)

    assert article.quote is None
    assert article.related == []
    assert "Also Read" not in article.body
    assert article.body.endswith("<strong>AAPL Price Action:</strong> Price data unavailable.")


def test_generic_article_without_ticker():
    market = FakeMarket(PriceQuote(close=1.0))
    source = "Reported January 5, 2026: chip demand remains strong across the industry."

    article = ArticlePipeline(None, FakeLLM(GENERATED), market=market).run(source, now=MONDAY_MORNING)

    assert article.facts.ticker is None
    assert market.calls == []
    assert article.price_action == GENERIC_UNAVAILABLE
    assert article.body.endswith(GENERIC_UNAVAILABLE)


def test_llm_failure_propagates():
    pipeline = ArticlePipeline(None, FakeLLM(RuntimeError("no backend")))
    with pytest.raises(RuntimeError):
        pipeline.run(SOURCE, now=MONDAY_MORNING)


def test_polish_pass_restores_dropped_link():
    first = (
        "Apple Climbs\n"
        'Apple said <a href="https://example.com/q3">record iPhone sales</a> lifted revenue.\n\n'
        "More detail follows here."
    )
    rewrite = "Apple said record iPhone sales lifted revenue sharply.\n\nMore detail follows here."
    llm = FakeLLM(first, rewrite)
    pipeline = ArticlePipeline({"pipeline": {"polish_pass": True}}, llm)

    article = pipeline.run("Apple (AAPL) update.", now=MONDAY_MORNING)

    assert len(llm.calls) == 2
    assert not article.reverted
    assert article.restore_result.unrecovered_count == 0
    assert article.body.startswith(
        'Apple said <a href="https://example.com/q3">record iPhone sales</a> lifted revenue sharply.'
    )


def test_rewrite_reverts_when_too_many_links_lost():
    body = (
        '<a href="https://x.test/1">alpha bravo charlie</a> and '
        '<a href="https://x.test/2">delta echo foxtrot</a> and '
        '<a href="https://x.test/3">golf hotel india</a>.'
    )
    pipeline = ArticlePipeline(None, FakeLLM("Nothing relevant remains."))

    text, result, reverted = pipeline.rewrite(body, "Shorten this.")

    assert reverted
    assert text == body
    assert result.unrecovered_count == 3


def test_rewrite_tolerance_is_configurable():
    body = '<a href="https://x.test/1">alpha bravo charlie</a> closed higher.'
    pipeline = ArticlePipeline({"hyperlinks": {"max_unrecovered": 0}}, FakeLLM("Shares closed higher."))

    text, result, reverted = pipeline.rewrite(body, "Shorten this.")

    assert reverted
    assert text == body


def test_rewrite_keeps_text_when_call_fails():
    pipeline = ArticlePipeline(None, FakeLLM(RuntimeError("timeout")))
    text, result, reverted = pipeline.rewrite("Original body.", "Shorten this.")

    assert (text, reverted) == ("Original body.", True)
    assert result.unrecovered_count == 0


def test_write_outputs_valid_article(tmp_path, quote):
    pipeline = ArticlePipeline(
        {"output_dir": str(tmp_path)}, FakeLLM(GENERATED), market=FakeMarket(quote), news=FakeNews(_related())
    )
    article = pipeline.run(SOURCE, now=MONDAY_MORNING)

    html_path, report_path = pipeline.write(article)

    assert html_path == str(tmp_path / "aapl" / "article.html")
    with open(report_path, encoding="utf-8") as f:
        report = json.load(f)
    assert report["headline"] == "Apple Stock Climbs On Chip Demand"
    assert report["facts"]["ticker"] == "AAPL"
    assert report["quote_warnings"] == []
    assert report["number_warnings"] == []
    assert report["ticker"] == "AAPL"
    assert len(report["related"]) == 2

    passed, messages = validate(html_path)
    assert passed, messages


def test_explicit_ticker_names_output_and_report(tmp_path, quote):
    pipeline = ArticlePipeline({"output_dir": str(tmp_path)}, FakeLLM(GENERATED), market=FakeMarket(quote))
    article = pipeline.run("Analyst note with no symbol at all.", ticker="aapl", now=MONDAY_MORNING)

    html_path, report_path = pipeline.write(article)

    assert article.facts.ticker is None
    assert article.ticker == "AAPL"
    assert os.path.basename(os.path.dirname(html_path)) == "aapl"
    with open(report_path, encoding="utf-8") as f:
        assert json.load(f)["ticker"] == "AAPL"


def test_polish_pass_guards_also_read_line():
    first = (
        "Apple Climbs\n"
        "Apple shares rose on Monday.\n\n"
        "Demand held firm.\n\n"
        "More detail follows."
    )
    rewrite = "Apple shares rose on Monday.\n\nDemand held firm.\n\nMore detail follows."
    llm = FakeLLM(first, rewrite)
    pipeline = ArticlePipeline({"pipeline": {"polish_pass": True}}, llm, news=FakeNews(_related()[:1]))

    article = pipeline.run("Apple (AAPL) update.", now=MONDAY_MORNING)

    assert "Also Read:" in llm.calls[1][1].content
    assert not article.reverted
    assert article.restore_result.total == 1
    assert article.body.count('Also Read: <a href="https://example.com/one">') == 1


def test_number_check_flags_figures_missing_from_source(quote):
    generated = GENERATED.replace("raised its target to **$250**.", "raised its target to **$275**, a 12% jump.")
    article = ArticlePipeline(None, FakeLLM(generated), market=FakeMarket(quote)).run(SOURCE, now=MONDAY_MORNING)

    assert [m.value for m in article.number_report.missing] == ["$275", "12%"]
    assert len(article.report()["number_warnings"]) == 2
