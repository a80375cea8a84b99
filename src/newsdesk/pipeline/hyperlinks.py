"""Hyperlink preservation across LLM rewrite rounds.

Anchors are captured from the text as it stood before a rewrite. Any anchor
missing afterwards is put back by the first strategy in ``HyperlinkGuardian``'s
list that can place it:

  1. exact anchor text              → original tag
  2. anchor text minus its label    → link around the remainder
  3. any three consecutive words    → link around the window
  4. "What To Know:" style marker   → labeled line spliced after it
  5. long-text keywords             → link around the first keyword hit

Labeled Also Read links that still cannot be placed are forced in after the
first paragraph. Callers compare ``RestoreResult.unrecovered_count`` with
their tolerance and revert the rewrite when it is exceeded.
"""

import html
import re
import string
from functools import partial
from typing import Callable, List, Optional, Sequence, Tuple

from newsdesk.core.logger import logger
from newsdesk.core.news_utils import whole_word_pattern
from newsdesk.models.datatypes import FALLBACK_STRATEGY, HyperlinkRecord, NewsArticle, RestoreResult

ALSO_READ = "Also Read"
READ_NEXT = "Read Next"
SECTION_MARKERS = ("What To Know:", "What Happened:")
LONG_ANCHOR_CHARS = 50
KEYWORD_MIN_CHARS = 5
MAX_KEYWORDS = 3

ANCHOR_RE = re.compile(r'<a href="([^"]+)">([^<]+)</a>')
_LABEL_PREFIX_RE = re.compile(r"^\s*(Also Read|Read Next)\s*:\s*", re.IGNORECASE)
_LABEL_BEFORE_RE = re.compile(r"(Also Read|Read Next)\s*:\s*$", re.IGNORECASE)
# Existing links and raw tag markup are never matched into.
_PROTECTED_RE = re.compile(r"<a\b[^>]*>.*?</a>|<[^>]+>", re.IGNORECASE | re.DOTALL)

Strategy = Callable[[HyperlinkRecord, str], Optional[str]]


# ── anchor capture ────────────────────────────────────────────────────────────

def _canonical_label(raw: str) -> str:
    return ALSO_READ if raw.lower().startswith("also") else READ_NEXT


def extract_anchors(text: str) -> List[HyperlinkRecord]:
    """Return every ``<a href="...">...</a>`` in ``text`` in document order."""
    records = []
    for position, match in enumerate(ANCHOR_RE.finditer(text)):
        url, anchor_text = match.group(1), match.group(2)
        label, outside = None, False
        inner = _LABEL_PREFIX_RE.match(anchor_text)
        if inner:
            label = _canonical_label(inner.group(1))
        else:
            line_start = text.rfind("\n", 0, match.start()) + 1
            before = _LABEL_BEFORE_RE.search(text[line_start:match.start()])
            if before:
                label, outside = _canonical_label(before.group(1)), True
        records.append(HyperlinkRecord(url, anchor_text, position, label=label, label_outside=outside))
    return records


def count_links(text: str) -> int:
    return len(ANCHOR_RE.findall(text))


def _is_present(record: HyperlinkRecord, text: str) -> bool:
    return record.tag in text or f'href="{record.url}"' in text


# ── text surgery ──────────────────────────────────────────────────────────────

def _link(url: str, visible: str) -> str:
    return f'<a href="{url}">{visible}</a>'


def _find_unprotected(pattern: re.Pattern, text: str) -> Optional[re.Match]:
    protected = [m.span() for m in _PROTECTED_RE.finditer(text)]
    for match in pattern.finditer(text):
        start, end = match.span()
        if any(start < p_end and p_start < end for p_start, p_end in protected):
            continue
        return match
    return None


def _wrap_phrase(phrase: str, text: str, url: str, replacement: Optional[str] = None) -> Optional[str]:
    """Link the first free whole-word occurrence of ``phrase``; None when there is none."""
    if not phrase.strip():
        return None
    match = _find_unprotected(whole_word_pattern(phrase), text)
    if match is None:
        return None
    new = replacement if replacement is not None else _link(url, match.group(0))
    return text[:match.start()] + new + text[match.end():]


def _insert_line_after(text: str, index: int, line: str) -> str:
    """Splice ``line`` in after ``lines[index]``, keeping blank-line paragraph breaks."""
    lines = text.split("\n")
    block = [line]
    if "\n\n" in text:
        if lines[index].strip():
            block.insert(0, "")
        if index + 1 < len(lines) and lines[index + 1].strip():
            block.append("")
    lines[index + 1:index + 1] = block
    return "\n".join(lines)


def _marker_line(text: str, markers: Sequence[str]) -> Optional[int]:
    for i, line in enumerate(text.split("\n")):
        if any(marker in line for marker in markers):
            return i
    return None


def _first_paragraph_end(text: str) -> Optional[int]:
    lines = text.split("\n")
    start = next((i for i, line in enumerate(lines) if line.strip()), None)
    if start is None:
        return None
    end = start
    if "\n\n" in text:
        while end + 1 < len(lines) and lines[end + 1].strip():
            end += 1
    return end


# ── strategies ────────────────────────────────────────────────────────────────

def exact_text(record: HyperlinkRecord, text: str) -> Optional[str]:
    return _wrap_phrase(record.anchor_text, text, record.url, replacement=record.tag)


def label_stripped(record: HyperlinkRecord, text: str) -> Optional[str]:
    if not _LABEL_PREFIX_RE.match(record.anchor_text):
        return None
    remainder = _LABEL_PREFIX_RE.sub("", record.anchor_text)
    return _wrap_phrase(remainder, text, record.url)


def three_word_window(record: HyperlinkRecord, text: str) -> Optional[str]:
    words = record.anchor_text.split()
    for i in range(len(words) - 2):
        updated = _wrap_phrase(" ".join(words[i:i + 3]), text, record.url)
        if updated is not None:
            return updated
    return None


def structural_reinsertion(
    record: HyperlinkRecord, text: str, markers: Sequence[str] = SECTION_MARKERS
) -> Optional[str]:
    if record.label != ALSO_READ:
        return None
    index = _marker_line(text, markers)
    if index is None:
        return None
    return _insert_line_after(text, index, record.line)


def keyword_match(record: HyperlinkRecord, text: str) -> Optional[str]:
    if len(record.anchor_text) <= LONG_ANCHOR_CHARS:
        return None
    words = [w.strip(string.punctuation) for w in record.anchor_text.split()]
    keywords = [w for w in words if len(w) >= KEYWORD_MIN_CHARS][:MAX_KEYWORDS]
    for keyword in keywords:
        updated = _wrap_phrase(keyword, text, record.url)
        if updated is not None:
            return updated
    return None


class HyperlinkGuardian:
    """Restore anchors an LLM rewrite dropped."""

    def __init__(self, section_markers: Sequence[str] = SECTION_MARKERS) -> None:
        """
        Args:
            section_markers (Sequence[str]): Line markers after which labeled
                links may be reinserted.
        """
        self.section_markers = tuple(section_markers)
        self.strategies: List[Tuple[int, Strategy]] = [
            (1, exact_text),
            (2, label_stripped),
            (3, three_word_window),
            (4, partial(structural_reinsertion, markers=self.section_markers)),
            (5, keyword_match),
        ]

    def restore(self, original: str, rewritten: str) -> RestoreResult:
        """
        Put every anchor of ``original`` back into ``rewritten``.

        Args:
            original (str): Text before the rewrite.
            rewritten (str): Text produced by the rewrite.

        Returns:
            RestoreResult: The repaired text, the per-anchor records and the
            number of anchors no strategy could place.
        """
        records = extract_anchors(original)
        text = rewritten
        unrecovered = 0

        for record in records:
            if _is_present(record, text):
                continue
            for ordinal, strategy in self.strategies:
                updated = strategy(record, text)
                if updated is not None:
                    text = updated
                    record.restored_by = ordinal
                    logger.info(f"Restored link {record.url} via strategy {ordinal}")
                    break
            else:
                record.unrecoverable = True
                unrecovered += 1
                logger.warning(f"Could not restore link {record.url} ({record.anchor_text!r})")

        for record in records:
            if record.unrecoverable and record.label == ALSO_READ and not _is_present(record, text):
                text = self._force_insert(record, text)
                record.restored_by = FALLBACK_STRATEGY
                logger.warning(f"Force-inserted {record.label} link {record.url}")

        if records:
            logger.info(f"Link restore: {len(records)} tracked | {unrecovered} unrecovered")
        return RestoreResult(text=text, unrecovered_count=unrecovered, records=records)

    def _force_insert(self, record: HyperlinkRecord, text: str) -> str:
        index = _marker_line(text, self.section_markers)
        if index is None:
            index = _first_paragraph_end(text)
        if index is None:
            return record.line
        return _insert_line_after(text, index, record.line)


# ── citation placement ────────────────────────────────────────────────────────

def _citation_line(label: str, article: NewsArticle) -> str:
    return f"{label}: {_link(html.escape(article.url), html.escape(article.headline, quote=False))}"


def _drop_labeled_lines(body: str, label: str) -> str:
    return re.sub(rf"^[ \t]*{label}\s*:.*(?:\n|$)", "", body, flags=re.MULTILINE | re.IGNORECASE)


def place_also_read(body: str, article: NewsArticle) -> str:
    """
    Insert an Also Read line before the first section header, else after the second paragraph.

    Any Also Read line already present is replaced.
    """
    blocks = [b for b in re.split(r"\n\s*\n", _drop_labeled_lines(body, ALSO_READ).strip()) if b.strip()]
    index = next((i for i, b in enumerate(blocks) if b.lstrip().startswith("<h2")), None)
    if index is None:
        index = min(2, len(blocks))
    index = max(index, 1) if blocks else 0
    blocks.insert(index, _citation_line(ALSO_READ, article))
    return "\n\n".join(blocks)


def append_read_next(body: str, article: NewsArticle) -> str:
    """Append a Read Next line, replacing any existing one."""
    cleaned = _drop_labeled_lines(body, READ_NEXT).rstrip()
    return f"{cleaned}\n\n{_citation_line(READ_NEXT, article)}"
