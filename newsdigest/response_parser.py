"""Parse the model's free-text summary reply into structured fields.

The reply is expected to look like::

    Category: News

    Essential Takeaways:
    - First takeaway
    - Second takeaway

    News Context (if News):
    - Two or three sentences about the top story.

    Bottom Line:
    - The core message.

Every field is extracted on its own, so a missing or mangled section only
costs that field its default.
"""

import re
from dataclasses import dataclass, field

from newsdigest.models import Category

CATEGORY_LABEL = "category"
TAKEAWAYS_LABEL = "essential takeaways"
NEWS_CONTEXT_LABEL = "news context"
BOTTOM_LINE_LABEL = "bottom line"

LABELS = (CATEGORY_LABEL, TAKEAWAYS_LABEL, NEWS_CONTEXT_LABEL, BOTTOM_LINE_LABEL)

# "**News Context (if News):** text" -> ("news context", "text")
_LABEL_LINE = re.compile(
    r"^[\s#*_>]*(" + "|".join(LABELS) + r")[\s*_]*(?:\([^)\n]*\))?[\s*_]*(?::[\s*_]*(.*))?$",
    re.IGNORECASE,
)
_BULLET = re.compile(r"^\s*(?:[-*•‣–]|\d+[.)])\s+")
_CATEGORY_VALUE = re.compile(r"\b(news|analysis|opinion)\b", re.IGNORECASE)
_EMPTY_VALUES = {"n/a", "na", "none", "not applicable", "-"}


@dataclass
class ParsedReply:
    """Fields recovered from a model reply."""

    category: Category = Category.ANALYSIS
    insights: list[str] = field(default_factory=list)
    news_context: str | None = None
    bottom_line: str = ""


def _label_of(line: str) -> tuple[str, str] | None:
    match = _LABEL_LINE.match(line)
    if not match:
        return None
    return match.group(1).lower(), (match.group(2) or "").strip().strip("*_").strip()


def _strip_bullet(line: str) -> str:
    return _BULLET.sub("", line, count=1).strip()


def _find_section(lines: list[str], label: str) -> tuple[int, str] | None:
    """Index of the first line carrying `label`, plus any text after its colon."""
    for i, line in enumerate(lines):
        found = _label_of(line)
        if found and found[0] == label:
            return i, found[1]
    return None


def _section_lines(lines: list[str], start: int) -> list[str]:
    """Non-blank lines after `start`, up to the next label or a blank gap."""
    body: list[str] = []
    for line in lines[start + 1:]:
        if _label_of(line):
            break
        if not line.strip():
            if body:
                break
            continue
        body.append(line)
    return body


def _parse_category(lines: list[str]) -> Category:
    for i, line in enumerate(lines):
        found = _label_of(line)
        if not found or found[0] != CATEGORY_LABEL:
            continue
        # "Category:" alone on its line takes its value from the next one
        value = found[1] or " ".join(_section_lines(lines, i)[:1])
        match = _CATEGORY_VALUE.search(value)
        if match:
            return Category(match.group(1).capitalize())
    return Category.ANALYSIS


def _parse_insights(lines: list[str]) -> list[str]:
    section = _find_section(lines, TAKEAWAYS_LABEL)
    if section is None:
        return []
    start, inline = section
    candidates = ([inline] if inline else []) + _section_lines(lines, start)
    insights = []
    for line in candidates:
        if not _BULLET.match(line) and insights:
            # Continuation of a wrapped bullet
            insights[-1] = f"{insights[-1]} {line.strip()}"
            continue
        text = _strip_bullet(line)
        if text:
            insights.append(text)
    return insights


def _parse_paragraph(lines: list[str], label: str) -> str | None:
    """Free text after `label`, joined into one line; None if the label is absent."""
    section = _find_section(lines, label)
    if section is None:
        return None
    start, inline = section
    parts = ([inline] if inline else []) + _section_lines(lines, start)
    return " ".join(p for p in (_strip_bullet(part) for part in parts) if p)


def parse(reply: str) -> ParsedReply:
    """Extract category, takeaways, news context and bottom line from a reply.

    Never raises. Missing sections fall back independently: category to
    Analysis, takeaways to an empty list, news context to None and the
    bottom line to an empty string.
    """
    if not isinstance(reply, str) or not reply.strip():
        return ParsedReply()

    lines = reply.replace("\r\n", "\n").split("\n")

    news_context = _parse_paragraph(lines, NEWS_CONTEXT_LABEL)
    if news_context is not None and (not news_context or news_context.lower().rstrip(".") in _EMPTY_VALUES):
        news_context = None

    return ParsedReply(
        category=_parse_category(lines),
        insights=_parse_insights(lines),
        news_context=news_context,
        bottom_line=_parse_paragraph(lines, BOTTOM_LINE_LABEL) or "",
    )
