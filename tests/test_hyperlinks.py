import pytest

from newsdesk.models.datatypes import FALLBACK_STRATEGY, NewsArticle
from newsdesk.pipeline.hyperlinks import (
    HyperlinkGuardian,
    append_read_next,
    count_links,
    extract_anchors,
    place_also_read,
)


@pytest.fixture
def guardian():
    return HyperlinkGuardian()


def _article(n=1):
    return NewsArticle(
        headline=f"Nvidia Beats Estimates {n}",
        source="Reuters",
        url=f"https://example.com/story-{n}",
        published_at="2026-01-05 14:00:00",
    )


def test_extract_anchors_reads_labels():
    text = (
        'Lede with <a href="https://a.test">inline link</a>.\n\n'
        'Also Read: <a href="https://b.test">Chip Stocks Rally</a>\n\n'
        '<a href="https://c.test">Read Next: Apple Earnings Preview</a>'
    )
    records = extract_anchors(text)

    assert [r.url for r in records] == ["https://a.test", "https://b.test", "https://c.test"]
    assert records[0].label is None
    assert (records[1].label, records[1].label_outside) == ("Also Read", True)
    assert (records[2].label, records[2].label_outside) == ("Read Next", False)
    assert records[1].line == 'Also Read: <a href="https://b.test">Chip Stocks Rally</a>'


def test_surviving_links_are_left_alone(guardian):
    text = 'Apple rose after <a href="https://x.test">strong iPhone sales</a>.'
    result = guardian.restore(text, text)

    assert result.text == text
    assert result.unrecovered_count == 0
    assert result.records[0].restored_by is None


def test_exact_anchor_text_is_relinked(guardian):
    original = 'Shares rose after <a href="https://x.test/a">strong iPhone sales</a> were reported.'
    rewritten = "Apple shares rose on strong iPhone sales this quarter."

    result = guardian.restore(original, rewritten)

    assert result.text == 'Apple shares rose on <a href="https://x.test/a">strong iPhone sales</a> this quarter.'
    assert result.records[0].restored_by == 1
    assert count_links(result.text) == count_links(original)


def test_label_is_dropped_before_matching(guardian):
    original = '<a href="https://x.test/n">Read Next: Apple Earnings Preview</a>'
    rewritten = "See the Apple Earnings Preview before the call."

    result = guardian.restore(original, rewritten)

    assert 'the <a href="https://x.test/n">Apple Earnings Preview</a> before' in result.text
    assert result.records[0].restored_by == 2


def test_three_word_window(guardian):
    original = 'Apple posted <a href="https://x.test/c">record iPhone sales in China</a>.'
    rewritten = "Apple reported record iPhone sales last quarter."

    result = guardian.restore(original, rewritten)

    assert '<a href="https://x.test/c">record iPhone sales</a>' in result.text
    assert result.records[0].restored_by == 3


def test_also_read_reinserted_after_section_marker(guardian):
    original = (
        "Para one.\n\n"
        'Also Read: <a href="https://x.test/r">Nvidia Beats Estimates</a>\n\n'
        "What To Know: stuff"
    )
    rewritten = "Para one rewritten.\n\nWhat To Know: demand is strong.\n\nMore text."

    result = guardian.restore(original, rewritten)

    assert result.text == (
        "Para one rewritten.\n\n"
        "What To Know: demand is strong.\n\n"
        'Also Read: <a href="https://x.test/r">Nvidia Beats Estimates</a>\n\n'
        "More text."
    )
    assert result.records[0].restored_by == 4
    assert result.unrecovered_count == 0


def test_long_anchor_keyword_match(guardian):
    anchor = "Semiconductor shipments surged across every major market during the quarter"
    original = f'Read how <a href="https://x.test/k">{anchor}</a>.'
    rewritten = "Analysts noted that semiconductor demand stayed firm."

    result = guardian.restore(original, rewritten)

    assert '<a href="https://x.test/k">semiconductor</a>' in result.text
    assert result.records[0].restored_by == 5


def test_unplaceable_links_are_counted(guardian):
    original = (
        '<a href="https://x.test/1">alpha bravo charlie</a> '
        '<a href="https://x.test/2">delta echo foxtrot</a> '
        '<a href="https://x.test/3">golf hotel india</a>'
    )
    rewritten = "Nothing relevant remains here."

    result = guardian.restore(original, rewritten)

    assert result.text == rewritten
    assert result.unrecovered_count == 3
    assert result.exceeds(2)
    assert not result.exceeds(3)
    assert all(r.unrecoverable for r in result.records)


def test_also_read_forced_in_after_first_paragraph(guardian):
    original = 'Lede.\n\nAlso Read: <a href="https://x.test/f">Zebra Quokka Update</a>\n\nTail.'
    rewritten = "First paragraph.\n\nSecond paragraph."

    result = guardian.restore(original, rewritten)

    assert result.text == (
        "First paragraph.\n\n"
        'Also Read: <a href="https://x.test/f">Zebra Quokka Update</a>\n\n'
        "Second paragraph."
    )
    assert result.unrecovered_count == 1
    assert result.records[0].restored_by == FALLBACK_STRATEGY


def test_relinking_never_nests_inside_existing_anchor(guardian):
    original = 'Read <a href="https://x.test/a">Apple news</a>.'
    rewritten = 'Read <a href="https://other.test">Apple news today</a> and more Apple news.'

    result = guardian.restore(original, rewritten)

    assert result.text.endswith('and more <a href="https://x.test/a">Apple news</a>.')


def test_place_also_read_before_first_section_header():
    body = "Lede paragraph.\n\n<h2>What Analysts Say</h2>\n\nDetail paragraph."
    placed = place_also_read(body, _article())

    blocks = placed.split("\n\n")
    assert blocks[1] == 'Also Read: <a href="https://example.com/story-1">Nvidia Beats Estimates 1</a>'
    assert blocks[2] == "<h2>What Analysts Say</h2>"


def test_place_also_read_after_second_paragraph_and_replaces_existing():
    body = "One.\n\nAlso Read: <a href=\"https://old.test\">Old</a>\n\nTwo.\n\nThree."
    placed = place_also_read(body, _article())

    assert placed.split("\n\n") == [
        "One.",
        "Two.",
        'Also Read: <a href="https://example.com/story-1">Nvidia Beats Estimates 1</a>',
        "Three.",
    ]


def test_append_read_next_replaces_existing_line():
    body = place_also_read("One.\n\nTwo.", _article(1))
    body = append_read_next(body, _article(2))
    body = append_read_next(body, _article(3))

    assert body.count("Read Next:") == 1
    assert body.endswith('Read Next: <a href="https://example.com/story-3">Nvidia Beats Estimates 3</a>')


def test_citation_text_is_escaped():
    article = NewsArticle(headline="AT&T <Update>", source="X", url="https://x.test/?a=1&b=2", published_at="")
    line = append_read_next("Body.", article).split("\n\n")[-1]

    assert line == 'Read Next: <a href="https://x.test/?a=1&amp;b=2">AT&amp;T &lt;Update&gt;</a>'
