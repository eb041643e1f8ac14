"""Assemble summarized newsletters into a single HTML digest email."""

import html
import logging
from datetime import datetime, tzinfo

from newsdigest.exceptions import DigestAssembleError
from newsdigest.models import DigestDocument, DigestEntry
from newsdigest.text_normalizer import clean_text

logger = logging.getLogger(__name__)

ANCHOR_TEMPLATE = "newsletter-{position}"

PLAIN_TEXT_RULE = "-" * 60

# Inline styles only: many mail clients strip <style> blocks
BODY_STYLE = (
    "font-family: Arial, sans-serif; max-width: 800px; margin: 0 auto; "
    "color: #333; line-height: 1.6;"
)
H1_STYLE = "color: #2c3e50; font-size: 28px; margin-bottom: 10px;"
BOX_H2_STYLE = "font-size: 20px; color: #2c3e50; margin-top: 0;"
TOC_STYLE = "background-color: #f8f9fa; padding: 20px; border-radius: 8px; margin: 20px 0;"
HIGHLIGHTS_STYLE = "background-color: #f1f8ff; padding: 15px; border-radius: 8px; margin: 20px 0;"
LIST_STYLE = "padding-left: 20px; margin-left: 0;"
LI_STYLE = "margin-bottom: 10px;"
LINK_STYLE = "color: #3498db; text-decoration: none;"
ITEM_STYLE = "padding: 20px; border-bottom: 1px solid #ddd; margin-bottom: 20px;"
ITEM_H2_STYLE = "font-size: 22px; color: #3498db; margin-bottom: 10px;"
META_STYLE = "color: #888; font-size: 13px; margin: 0;"
BOTTOM_LINE_STYLE = "font-weight: bold; color: #2c3e50; margin: 15px 0; font-size: 16px;"
H3_STYLE = "font-size: 16px; color: #555; margin: 15px 0 5px;"
INSIGHTS_STYLE = "margin: 0 0 15px 20px; padding-left: 0; font-size: 14px; line-height: 1.6;"
NEWS_CONTEXT_STYLE = (
    "background-color: #fff3e6; padding: 10px; border-left: 4px solid #ff9800; "
    "margin-bottom: 15px;"
)
READ_MORE_STYLE = "color: #3498db; font-size: 13px;"
FOOTER_STYLE = "font-size: 12px; color: #999; text-align: center; margin-top: 30px;"


def pluralize(count: int, noun: str) -> str:
    """Render a count with its noun: '1 newsletter', '3 newsletters'."""
    return f"{count} {noun}{'' if count == 1 else 's'}"


def digest_subject(count: int, window_hours: int = 24) -> str:
    """Subject line of the digest email."""
    return f"Newsletter Digest: {pluralize(count, 'newsletter')} from the last {pluralize(window_hours, 'hour')}"


def format_timestamp(date: datetime, tz: tzinfo | None = None) -> str:
    """Human-readable timestamp like 'Monday, Jan 5, 8:30 AM'."""
    if tz is not None and date.tzinfo is not None:
        date = date.astimezone(tz)
    hour = date.hour % 12 or 12
    return f"{date:%A, %b} {date.day}, {hour}:{date:%M %p}"


def _esc(text: str) -> str:
    return html.escape(clean_text(text))


def toc_line(entry: DigestEntry) -> str:
    return f"{clean_text(entry.subject)} — {clean_text(entry.sender)} ({entry.record.category.value})"


def highlight_line(entry: DigestEntry) -> str:
    return f"{clean_text(entry.subject)}: {clean_text(entry.record.bottom_line)}"


def _render_toc_item(entry: DigestEntry) -> str:
    return (
        f'<li style="{LI_STYLE}"><a href="#{entry.anchor_id}" style="{LINK_STYLE}">'
        f"{_esc(entry.subject)}</a> — {_esc(entry.sender)} "
        f"({entry.record.category.value})</li>"
    )


def _render_highlight_item(entry: DigestEntry) -> str:
    return (
        f'<li style="{LI_STYLE}"><a href="#{entry.anchor_id}" style="{LINK_STYLE}">'
        f"<strong>{_esc(entry.subject)}:</strong></a> {_esc(entry.record.bottom_line)}</li>"
    )


def _render_section(entry: DigestEntry, tz: tzinfo | None = None) -> str:
    """Render one newsletter's detail block."""
    record = entry.record
    insights = "".join(f"<li>{_esc(insight)}</li>" for insight in record.insights)

    news_context = ""
    if entry.show_news_context:
        news_context = (
            f'<div class="news-context" style="{NEWS_CONTEXT_STYLE}">'
            f"<strong>News Context:</strong> {_esc(record.news_context or '')}</div>"
        )

    return (
        f'<div class="newsletter-item" style="{ITEM_STYLE}">'
        f'<h2 id="{entry.anchor_id}" style="{ITEM_H2_STYLE}">'
        f'<a href="#{entry.anchor_id}" style="{LINK_STYLE}">{_esc(entry.subject)}</a></h2>'
        f'<p style="{META_STYLE}">{_esc(entry.sender)} • {format_timestamp(entry.date, tz)}'
        f" • {record.reading_time} min read</p>"
        f'<p style="{BOTTOM_LINE_STYLE}">{_esc(record.bottom_line)}</p>'
        f'<h3 style="{H3_STYLE}">Key Points:</h3>'
        f'<ul style="{INSIGHTS_STYLE}">{insights}</ul>'
        f"{news_context}"
        f'<a href="{html.escape(entry.message_url)}" style="{READ_MORE_STYLE}">Read Full →</a>'
        f"</div>"
    )


def _render_plain_text(
    entries: list[DigestEntry], intro: str, tz: tzinfo | None = None
) -> str:
    """Plain-text fallback carrying the same content as the HTML body."""
    lines = [intro, "", "IN THIS DIGEST"]
    lines += [f"{i}. {toc_line(entry)}" for i, entry in enumerate(entries, start=1)]
    lines += ["", "BOTTOM LINES"]
    lines += [f"* {highlight_line(entry)}" for entry in entries]

    for entry in entries:
        record = entry.record
        lines += ["", PLAIN_TEXT_RULE, clean_text(entry.subject)]
        lines.append(f"{clean_text(entry.sender)} • {format_timestamp(entry.date, tz)}")
        lines += ["", clean_text(record.bottom_line), "", "Key Points:"]
        lines += [f"- {clean_text(insight)}" for insight in record.insights]
        if entry.show_news_context:
            lines += ["", f"News Context: {clean_text(record.news_context or '')}"]
        lines += ["", f"Read Full: {entry.message_url}"]

    return "\n".join(lines) + "\n"


def _check_entries(entries: list[DigestEntry]) -> None:
    if not entries:
        raise DigestAssembleError("No entries to assemble.")
    for position, entry in enumerate(entries, start=1):
        expected = ANCHOR_TEMPLATE.format(position=position)
        if entry.anchor_id != expected:
            raise DigestAssembleError(
                f"Entry {position} has anchor '{entry.anchor_id}', expected '{expected}'"
            )


def assemble(
    entries: list[DigestEntry],
    recipient_name: str = "",
    label: str = "substack",
    window_hours: int = 24,
    tz: tzinfo | None = None,
) -> DigestDocument:
    """Assemble digest entries, in the given order, into one document.

    Args:
        entries: Summarized newsletters in arrival order, anchored
            newsletter-1 .. newsletter-N.
        recipient_name: Name used in the greeting; omitted when empty.
        label: Gmail label the newsletters were collected from.
        window_hours: Length of the collection window.
        tz: Timezone used to display timestamps.

    Raises:
        DigestAssembleError: If there are no entries or anchors are out of
            sequence.
    """
    _check_entries(entries)

    count = len(entries)
    window = pluralize(window_hours, "hour")
    greeting = f"Good morning, {clean_text(recipient_name)}!" if recipient_name else "Good morning!"
    intro = f"Here's your daily digest of {pluralize(count, 'newsletter')} from the last {window}."

    toc_items = "".join(_render_toc_item(entry) for entry in entries)
    highlight_items = "".join(_render_highlight_item(entry) for entry in entries)
    sections = [_render_section(entry, tz) for entry in entries]
    sections_html = "\n".join(sections)

    body = f"""\
<html>
  <body id="top" style="{BODY_STYLE}">
    <h1 style="{H1_STYLE}">{html.escape(greeting)} ☕️</h1>
    <p>{html.escape(intro)}</p>
    <div class="toc" style="{TOC_STYLE}">
      <h2 style="{BOX_H2_STYLE}">In This Digest</h2>
      <ol style="{LIST_STYLE}">{toc_items}</ol>
    </div>
    <div class="highlights" style="{HIGHLIGHTS_STYLE}">
      <h2 style="{BOX_H2_STYLE}">Highlights</h2>
      <ul style="{LIST_STYLE}">{highlight_items}</ul>
    </div>
    {sections_html}
    <p class="footer" style="{FOOTER_STYLE}">
      This digest was automatically generated from your newsletters labeled '{_esc(label)}'.
    </p>
  </body>
</html>
"""

    document = DigestDocument(
        subject=digest_subject(count, window_hours),
        highlights=[highlight_line(entry) for entry in entries],
        table_of_contents=[toc_line(entry) for entry in entries],
        sections=sections,
        html=body,
        plain_text=_render_plain_text(entries, f"{greeting}\n\n{intro}", tz),
        entry_count=count,
    )

    logger.info(
        "Assembled digest: %s, %d chars of HTML",
        pluralize(count, "newsletter"), len(document.html),
    )
    return document
