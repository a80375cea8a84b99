"""House-style normalization for generated article HTML.

The normalizer is an ordered list of named, pure ``str -> str`` passes. Each
pass declares the passes that must run before it, and the list is checked
against those requirements when a ``StyleNormalizer`` is built. Running the
whole list twice gives the same result as running it once, so the pipeline
can re-normalize after every rewrite round.

The markup vocabulary is deliberately small: ``<strong>`` and ``<a>`` inline,
``<h2>`` for section headers.
"""

import html
import re
from functools import partial
from typing import Callable, Iterable, List, NamedTuple, Optional, Sequence, Tuple

from newsdesk.core.logger import logger
from newsdesk.core.news_utils import CORPORATE_SUFFIXES, strip_suffix, strip_tags

PROTECTED_TITLES = ("The Analyst Call", "The Math:")
LEDE_OPENERS = ("in a", "analysts")

_SCALE = r"(?:trillion|billion|million|thousand|[TBMK]\b)"
_DOLLAR = r"[+-]?\$\d[\d.,]*(?:\s*" + _SCALE + r")?"
_NUMBER = r"[+-]?\d[\d.,]*(?:\s*(?:trillion|billion|million|thousand|percent|[TBMK]\b|%))?"
# Amounts a stray quote may sit in front of
_AMOUNT = r"\$\d[\d.,]*|\d[\d.,]*\s*" + _SCALE

NUMERIC_RE = re.compile(r"^\s*(?:" + _DOLLAR + r"|" + _NUMBER + r")\s*$", re.IGNORECASE)

_MD_BOLD_RE = re.compile(r"\*\*([^*\n]+?)\*\*")
_STRONG_RE = re.compile(r"<strong>([^<]*)</strong>")
_GLUED_QUOTE_RE = re.compile(r'([A-Za-z])"+\s*(' + _AMOUNT + r")", re.IGNORECASE)
_STRAY_QUOTE_RE = re.compile(r'"+\s*(' + _AMOUNT + r")", re.IGNORECASE)
_POSSESSIVE_RE = re.compile(r'([A-Za-z](?:</strong>)?)"([sS])\b')
_CONTRACTION_RE = re.compile(r'([A-Za-z]{2,})"(t|d|ll|re|ve)\b')
_SINGLE_SPAN_RE = re.compile(r"(?<![\w'\"])'([^'\n<>]{2,}?)'(?![\w'\"])(?!\s*(?:" + _AMOUNT + r"))", re.IGNORECASE)
_WRAPPED_LINE_RE = re.compile(r"<(strong|h2)>([^<]*)</\1>")
_EXCHANGE_TAG_RE = re.compile(r"\s*\([A-Za-z ]+:\s*[A-Z][A-Z.]*\)")
_COMPANY_FIRST_RE = re.compile(r"<strong>([^<]+)</strong>\s*\([A-Za-z ]+:\s*[A-Z][A-Z.]*\)")
_PERSON_RE = re.compile(r"<strong>([A-Z][a-z]+(?:\s+[A-Z]\.)*(?:\s+[A-Z][a-zA-Z'\-]+){1,2})</strong>")
_ANALYST_CONTEXT_RES = (
    re.compile(r"\banalysts?,?\s+(?:led by\s+)?<strong>([^<]+)</strong>", re.IGNORECASE),
    re.compile(r"<strong>([^<]+)</strong>,\s+(?:an?\s+)?(?:[\w-]+\s+)?analyst\b", re.IGNORECASE),
)
_GENERATED_PRICE_ACTION_RE = re.compile(r"^.*\bPrice Action:.*(?:\n|$)", re.MULTILINE)


# ── passes ────────────────────────────────────────────────────────────────────

def markdown_bold(text: str) -> str:
    """``**text**`` → ``<strong>text</strong>``; numeric contents lose the markers and stay plain."""
    def _replace(match: re.Match) -> str:
        inner = match.group(1)
        return inner if NUMERIC_RE.match(inner) else f"<strong>{inner}</strong>"
    return _MD_BOLD_RE.sub(_replace, text)


def remove_stray_number_quotes(text: str) -> str:
    """Delete a double quote sitting directly in front of a dollar amount or scaled number."""
    text = _GLUED_QUOTE_RE.sub(r"\1 \2", text)
    return _STRAY_QUOTE_RE.sub(r"\1", text)


def unbold_numbers(text: str) -> str:
    """Strip ``<strong>`` from dollar amounts, numbers and percentages."""
    return _STRONG_RE.sub(lambda m: m.group(1) if NUMERIC_RE.match(m.group(1)) else m.group(0), text)


def fix_possessives(text: str) -> str:
    """``Apple"s`` → ``Apple's``, ``isn"t`` → ``isn't``."""
    text = _POSSESSIVE_RE.sub(r"\1'\2", text)
    return _CONTRACTION_RE.sub(r"\1'\2", text)


def body_quote_dialect(text: str) -> str:
    """Turn bare single-quoted spans into double-quoted ones.

    Spans opening on a number are left alone, as are spans followed by an
    amount: either would read as a stray quote to ``remove_stray_number_quotes``.
    """
    def _replace(match: re.Match) -> str:
        inner = match.group(1)
        if inner != inner.strip() or inner[0] in "$+-0123456789":
            return match.group(0)
        return f'"{inner}"'
    return _SINGLE_SPAN_RE.sub(_replace, text)


def _unwrap(line: str) -> str:
    stripped = line.strip()
    match = _WRAPPED_LINE_RE.fullmatch(stripped)
    return match.group(2).strip() if match else stripped


def _looks_like_header(text: str, min_len: int, max_len: int) -> bool:
    return (
        min_len < len(text) < max_len
        and text[0].isupper()
        and "." not in text
        and "<" not in text
        and ">" not in text
        and not text.lower().startswith(LEDE_OPENERS)
    )


def drop_leading_header(text: str, protected: Sequence[str] = PROTECTED_TITLES) -> str:
    """Delete header-like lines sitting above the lede paragraph."""
    lines = text.split("\n")
    while True:
        first = next((i for i, line in enumerate(lines) if line.strip()), None)
        if first is None:
            break
        inner = _unwrap(lines[first])
        if inner in protected or not _looks_like_header(inner, 10, 100):
            break
        if not any(line.strip() for line in lines[first + 1:]):
            break
        logger.debug(f"Dropping leading header {inner!r}")
        del lines[first]
    return "\n".join(lines).lstrip()


def promote_headers(text: str, protected: Sequence[str] = PROTECTED_TITLES) -> str:
    """Wrap title-like lines in ``<h2>``; protected titles use ``<strong>`` instead.

    The first non-empty line is the lede and is never promoted. An ``<h2>``
    already sitting there is unwrapped.
    """
    lines = text.split("\n")
    lede = next((i for i, line in enumerate(lines) if line.strip()), None)
    out = []
    for i, line in enumerate(lines):
        stripped = line.strip()
        has_following = any(rest.strip() for rest in lines[i + 1:])
        wrapped = _WRAPPED_LINE_RE.fullmatch(stripped)

        if i == lede and _unwrap(stripped) not in protected:
            if wrapped and wrapped.group(1) == "h2":
                out.append(wrapped.group(2).strip())
            else:
                out.append(line)
        elif wrapped:
            tag, inner = wrapped.group(1), wrapped.group(2).strip()
            if inner in protected:
                out.append(f"<strong>{inner}</strong>")
            elif tag == "strong" and has_following and _looks_like_header(inner, 0, 100):
                out.append(f"<h2>{inner}</h2>")
            else:
                out.append(line)
        elif stripped in protected:
            out.append(f"<strong>{stripped}</strong>")
        elif has_following and stripped and _looks_like_header(stripped, 5, 80):
            out.append(f"<h2>{stripped}</h2>")
        else:
            out.append(line)
    return "\n".join(out)


def _unbold_matches(pattern: re.Pattern, text: str) -> str:
    return pattern.sub(lambda m: m.group(1), text)


def scope_first_mention_bold(text: str, analyst_names: Iterable[str] = ()) -> str:
    """Keep bold only on first mentions of the company and of each executive.

    Analyst names are never bold: they are taken from ``analyst_names`` and
    from phrasing such as "analyst <strong>Jane Doe</strong>".
    """
    analysts = {name.strip() for name in analyst_names if name.strip()}
    for pattern in _ANALYST_CONTEXT_RES:
        analysts.update(m.group(1).strip() for m in pattern.finditer(text))
    for name in analysts:
        text = _unbold_matches(re.compile(r"<strong>\s*(" + re.escape(name) + r")\s*</strong>"), text)

    company = _COMPANY_FIRST_RE.search(text)
    if company:
        base = strip_suffix(company.group(1).strip())
        if base:
            suffixes = "|".join(re.escape(s) for s in CORPORATE_SUFFIXES)
            later = re.compile(
                r"<strong>\s*(" + re.escape(base) + r"(?:[\s,]+(?:" + suffixes + r")\.?)?)\s*</strong>",
                re.IGNORECASE,
            )
            head, tail = text[:company.end()], text[company.end():]
            text = head + _unbold_matches(later, tail)

    seen: List[str] = []

    def _first_only(match: re.Match) -> str:
        last = match.group(1).split()[-1]
        if last in seen:
            return match.group(1)
        seen.append(last)
        return match.group(0)

    text = _PERSON_RE.sub(_first_only, text)
    for last in seen:
        first = re.search(r"<strong>[^<]*\b" + re.escape(last) + r"</strong>", text)
        if first is None:
            continue
        bare = re.compile(r"<strong>\s*(" + re.escape(last) + r")\s*</strong>")
        text = text[:first.end()] + _unbold_matches(bare, text[first.end():])
    return text


# ── pipeline ──────────────────────────────────────────────────────────────────

class StylePass(NamedTuple):
    name: str
    func: Callable[[str], str]
    requires: Tuple[str, ...] = ()


class StyleNormalizer:
    """Apply the house-style passes in their declared order."""

    def __init__(
        self,
        protected_titles: Sequence[str] = PROTECTED_TITLES,
        analyst_names: Iterable[str] = (),
    ) -> None:
        """
        Args:
            protected_titles (Sequence[str]): Titles kept as ``<strong>`` rather than ``<h2>``.
            analyst_names (Iterable[str]): Names that must never be bold.
        """
        protected = tuple(protected_titles)
        self.passes: List[StylePass] = [
            StylePass("markdown_bold", markdown_bold),
            StylePass("stray_number_quotes", remove_stray_number_quotes),
            StylePass("unbold_numbers", unbold_numbers, ("markdown_bold",)),
            StylePass("possessives", fix_possessives, ("stray_number_quotes",)),
            StylePass("quote_dialect", body_quote_dialect, ("possessives",)),
            StylePass("leading_header", partial(drop_leading_header, protected=protected)),
            StylePass("promote_headers", partial(promote_headers, protected=protected), ("leading_header",)),
            StylePass(
                "first_mention_bold",
                partial(scope_first_mention_bold, analyst_names=tuple(analyst_names)),
                ("markdown_bold", "promote_headers"),
            ),
            StylePass("final_possessives", fix_possessives, ("first_mention_bold",)),
        ]
        _check_order(self.passes)

    def normalize(self, text: Optional[str]) -> str:
        """
        Run every pass over the article body.

        Args:
            text (Optional[str]): Generated article HTML.

        Returns:
            str: Normalized HTML.
        """
        text = text or ""
        for style_pass in self.passes:
            text = style_pass.func(text)
        return text.strip()

    def normalize_headline(self, headline: Optional[str]) -> str:
        """
        Clean a headline: plain text, single quotes only, no exchange tag.

        Args:
            headline (Optional[str]): Raw generated headline.

        Returns:
            str: The cleaned headline.
        """
        text = html.unescape(headline or "")
        text = strip_tags(text).replace("**", "")
        text = _EXCHANGE_TAG_RE.sub("", text)
        text = re.sub(r"\s+", " ", text).strip()

        wrapped = re.fullmatch(r"([\"'“”‘’])(.+)([\"'“”‘’])", text)
        if wrapped and not re.search(r"[\"'“”‘’]", wrapped.group(2)):
            text = wrapped.group(2).strip()

        text = fix_possessives(text)
        text = re.sub(r'"([^"]+)"', r"'\1'", text)
        text = re.sub(r"“([^”]+)”", r"'\1'", text)
        return re.sub(r"\s+", " ", text).strip()


def _check_order(passes: Sequence[StylePass]) -> None:
    done = set()
    for style_pass in passes:
        missing = [name for name in style_pass.requires if name not in done]
        if missing:
            raise ValueError(f"Style pass {style_pass.name!r} must run after {', '.join(missing)}")
        done.add(style_pass.name)


def strip_generated_price_action(body: str) -> str:
    """Remove "Price Action:" lines the model wrote itself."""
    return _GENERATED_PRICE_ACTION_RE.sub("", body).strip()
