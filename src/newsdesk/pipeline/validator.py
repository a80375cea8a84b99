"""Output validator: house-style checks on a written article.html.

Checks:
  1. Headline present as the leading <h1>
  2. No <strong> around a number, dollar amount or percentage
  3. No possessive written with a double quote (Apple"s)
  4. Body does not open on an <h2> section header
  5. Exactly one Price Action line
  6. Every <a> tag is a complete <a href="...">text</a>

Usage:
    python -m newsdesk.pipeline.validator output/aapl/article.html
"""

import re
import sys
from typing import List, Tuple

from newsdesk.pipeline.hyperlinks import count_links
from newsdesk.pipeline.style import NUMERIC_RE

_H1_RE = re.compile(r"^\s*<h1>(.+?)</h1>\s*", re.DOTALL)
_STRONG_RE = re.compile(r"<strong>([^<]*)</strong>")
_BAD_POSSESSIVE_RE = re.compile(r'[A-Za-z](?:</strong>)?"[sS]\b')
_OPEN_A_RE = re.compile(r"<a\b", re.IGNORECASE)


def validate(html_path: str) -> Tuple[bool, List[str]]:
    """Run all validation checks against html_path.

    Args:
        html_path: Path to an article written by ``ArticlePipeline.write``.

    Returns:
        Tuple of ``(passed: bool, messages: list[str])``.
        ``messages`` contains PASS/FAIL lines for each check.
    """
    messages: List[str] = []
    passed = True

    # ── load ──────────────────────────────────────────────────────────────────
    try:
        with open(html_path, encoding="utf-8") as f:
            content = f.read()
    except FileNotFoundError:
        return False, [f"FAIL  file not found: {html_path}"]
    except OSError as exc:
        return False, [f"FAIL  could not read article: {exc}"]

    if not content.strip():
        return False, ["FAIL  article is empty"]

    # ── check 1: headline ─────────────────────────────────────────────────────
    h1 = _H1_RE.match(content)
    if h1 and h1.group(1).strip():
        messages.append(f"PASS  headline: {h1.group(1).strip()[:60]!r}")
        body = content[h1.end():]
    else:
        messages.append("FAIL  missing <h1> headline")
        passed = False
        body = content

    # ── check 2: bold numerics ────────────────────────────────────────────────
    bold_numbers = [m.group(1) for m in _STRONG_RE.finditer(body) if NUMERIC_RE.match(m.group(1))]
    if not bold_numbers:
        messages.append("PASS  no bold numbers")
    else:
        messages.append(f"FAIL  {len(bold_numbers)} bold number(s): {bold_numbers[:3]}")
        passed = False

    # ── check 3: possessives ──────────────────────────────────────────────────
    bad = _BAD_POSSESSIVE_RE.findall(body)
    if not bad:
        messages.append("PASS  possessives use apostrophes")
    else:
        messages.append(f"FAIL  {len(bad)} double-quote possessive(s): {bad[:3]}")
        passed = False

    # ── check 4: no leading section header ────────────────────────────────────
    if body.lstrip().lower().startswith("<h2"):
        messages.append("FAIL  body opens with an <h2> header")
        passed = False
    else:
        messages.append("PASS  body opens with prose")

    # ── check 5: price action ─────────────────────────────────────────────────
    price_lines = [line for line in body.split("\n") if "Price Action:" in line]
    if len(price_lines) == 1:
        messages.append("PASS  one Price Action line")
    else:
        messages.append(f"FAIL  {len(price_lines)} Price Action lines (expected 1)")
        passed = False

    # ── check 6: well-formed links ────────────────────────────────────────────
    opened = len(_OPEN_A_RE.findall(body))
    complete = count_links(body)
    if opened == complete:
        messages.append(f"PASS  {complete} link(s), all well-formed")
    else:
        messages.append(f"FAIL  {opened - complete} malformed link(s) of {opened}")
        passed = False

    return passed, messages


def main() -> int:
    if len(sys.argv) < 2:
        print("Usage: python -m newsdesk.pipeline.validator <path_to_article_html>")
        return 1
    passed, messages = validate(sys.argv[1])
    for msg in messages:
        print(msg)
    if passed:
        print("\nVALIDATION PASSED ✓")
        return 0
    else:
        print("\nVALIDATION FAILED ✗")
        return 1


if __name__ == "__main__":
    sys.exit(main())
