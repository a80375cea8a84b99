import pytest

from newsdesk.pipeline.style import (
    StyleNormalizer,
    StylePass,
    _check_order,
    body_quote_dialect,
    drop_leading_header,
    fix_possessives,
    markdown_bold,
    promote_headers,
    remove_stray_number_quotes,
    scope_first_mention_bold,
    strip_generated_price_action,
    unbold_numbers,
)

RAW_BODY = """**Apple Rallies After Upgrade**

**Apple Inc.** (NASDAQ:AAPL) shares rose **5%** on Monday after analyst **Jane Doe** raised her target to "$250.

The Analyst Call

Doe said 'demand remains strong' in the note. **Apple**"s services unit grew.

**Tim Cook** said the quarter was strong. **Cook** added more."""


@pytest.fixture
def normalizer():
    return StyleNormalizer()


def test_markdown_bold_keeps_numbers_plain():
    text = "Revenue hit **$5.2 billion** for **Apple**"
    assert markdown_bold(text) == "Revenue hit $5.2 billion for <strong>Apple</strong>"


def test_unbold_numbers():
    assert unbold_numbers("<strong>12%</strong> growth at <strong>Apple</strong>") == (
        "12% growth at <strong>Apple</strong>"
    )


def test_possessives_and_contractions():
    assert fix_possessives('Apple"s results and it isn"t over') == "Apple's results and it isn't over"
    assert fix_possessives('<strong>Apple</strong>"s chips') == "<strong>Apple</strong>'s chips"


def test_stray_quotes_before_amounts():
    assert remove_stray_number_quotes('revenue of "$5 billion') == "revenue of $5 billion"
    assert remove_stray_number_quotes('worth"$5 billion') == "worth $5 billion"


def test_body_quote_dialect():
    assert body_quote_dialect("He said 'demand is strong' today") == 'He said "demand is strong" today'
    assert body_quote_dialect("Apple's and Google's results") == "Apple's and Google's results"


def test_drop_leading_header():
    text = "Apple Surges On Strong Demand\n\nApple shares rose 5% on Monday."
    assert drop_leading_header(text) == "Apple shares rose 5% on Monday."


def test_drop_leading_header_keeps_lone_line():
    assert drop_leading_header("Apple Surges On Strong Demand") == "Apple Surges On Strong Demand"


def test_promote_headers():
    text = "Lede paragraph here.\n\nWhat Analysts Think\n\nThe Analyst Call\n\nMore text."
    assert promote_headers(text) == (
        "Lede paragraph here.\n\n"
        "<h2>What Analysts Think</h2>\n\n"
        "<strong>The Analyst Call</strong>\n\n"
        "More text."
    )


def test_first_mention_bold_scoping():
    text = (
        "<strong>Apple Inc.</strong> (NASDAQ:AAPL) rose. <strong>Apple</strong> said "
        "<strong>Tim Cook</strong> will speak; <strong>Cook</strong> declined comment. "
        "<strong>Tim Cook</strong> later spoke."
    )
    scoped = scope_first_mention_bold(text)

    assert scoped == (
        "<strong>Apple Inc.</strong> (NASDAQ:AAPL) rose. Apple said "
        "<strong>Tim Cook</strong> will speak; Cook declined comment. "
        "Tim Cook later spoke."
    )


def test_analyst_names_are_never_bold():
    text = "Per <strong>Jane Doe</strong>, shares look cheap."
    assert scope_first_mention_bold(text, analyst_names=["Jane Doe"]) == "Per Jane Doe, shares look cheap."
    assert scope_first_mention_bold("analyst <strong>Jane Doe</strong> wrote") == "analyst Jane Doe wrote"


def test_normalize_full_body(normalizer):
    body = normalizer.normalize(RAW_BODY)

    assert body.startswith("<strong>Apple Inc.</strong> (NASDAQ:AAPL) shares rose 5% on Monday")
    assert "Apple Rallies After Upgrade" not in body
    assert "analyst Jane Doe raised her target to $250." in body
    assert "<strong>The Analyst Call</strong>" in body
    assert "<h2>" not in body
    assert 'Doe said "demand remains strong" in the note. Apple\'s services unit grew.' in body
    assert "<strong>Tim Cook</strong> said the quarter was strong. Cook added more." in body
    assert body.count("<strong>Apple") == 1
    assert '"s' not in body


def test_normalize_is_idempotent(normalizer):
    once = normalizer.normalize(RAW_BODY)
    assert normalizer.normalize(once) == once


def test_normalize_handles_empty(normalizer):
    assert normalizer.normalize(None) == ""
    assert normalizer.normalize("   ") == ""


def test_normalize_headline(normalizer):
    assert normalizer.normalize_headline('**Apple (NASDAQ:AAPL) Rallies As "Demand Surges"**') == (
        "Apple Rallies As 'Demand Surges'"
    )
    assert normalizer.normalize_headline('Nvidia"s Rally Continues') == "Nvidia's Rally Continues"
    assert normalizer.normalize_headline('"Apple Beats Estimates"') == "Apple Beats Estimates"
    assert normalizer.normalize_headline("AT&amp;T  Gains") == "AT&T Gains"
    assert normalizer.normalize_headline(None) == ""


def test_pass_order_is_checked():
    with pytest.raises(ValueError):
        _check_order([StylePass("second", str.strip, ("first",)), StylePass("first", str.strip)])


def test_strip_generated_price_action():
    body = "Body text.\n\nAAPL Price Action: shares moved.\n"
    assert strip_generated_price_action(body) == "Body text."


IDEMPOTENCE_BODIES = [
    'Apple shares rose.\n\nRevenue came in at "" $5 billion for the quarter.',
    "Apple shares rose.\n\nAnalysts called it ''remarkable'' growth.",
    "Big Rally\n\nApple shares rose 5% on Monday.",
    "<h2>Big Rally</h2>\n\nApple shares rose 5% on Monday.",
    'Sales hit"$5 billion and \'strong\' demand held.',
    'He said "the CEO called it \'a turning point\' for the firm" on Monday.',
    '**Apple**"s chips beat. It isn"t over, with "$5 billion" and \'$3 million\' at stake.',
    "**Tim Cook** said **Cook**\"s plan works.",
    "Apple shares rose 5% on Monday.\n\nGuidance\n\nThe company raised its outlook.\n\nWhat Comes Next\n\nInvestors wait.",
    "**The Analyst Call**\n\nApple shares rose **12%** after the call.",
]


@pytest.mark.parametrize("body", IDEMPOTENCE_BODIES)
def test_normalize_is_idempotent_on_awkward_input(normalizer, body):
    once = normalizer.normalize(body)
    assert normalizer.normalize(once) == once


def test_doubled_stray_quote_removed_in_one_pass():
    assert remove_stray_number_quotes('at "" $5 billion') == "at $5 billion"
    assert remove_stray_number_quotes('hit""$5 billion') == "hit $5 billion"


def test_quote_dialect_leaves_spans_touching_other_quotes():
    assert body_quote_dialect("called it ''remarkable'' growth") == "called it ''remarkable'' growth"


def test_short_title_never_precedes_lede(normalizer):
    body = normalizer.normalize("Big Rally\n\nApple shares rose 5% on Monday.")
    assert not body.startswith("<h2>")
    assert normalizer.normalize("<h2>Big Rally</h2>\n\nApple shares rose.").startswith("Big Rally\n\n")


def test_promote_headers_skips_first_line():
    assert promote_headers("Big Rally\n\nLede text here.\n\nWhat Comes Next\n\nMore.") == (
        "Big Rally\n\nLede text here.\n\n<h2>What Comes Next</h2>\n\nMore."
    )
