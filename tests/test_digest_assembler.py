"""Tests for digest_assembler module."""

import re
from datetime import UTC, datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from newsdigest.digest_assembler import (
    assemble,
    digest_subject,
    format_timestamp,
    pluralize,
)
from newsdigest.exceptions import DigestAssembleError
from newsdigest.models import Category, DigestEntry, SummaryRecord

BASE_DATE = datetime(2026, 1, 5, 13, 30, tzinfo=UTC)


def _make_record(
    category: Category = Category.ANALYSIS,
    news_context: str | None = None,
    bottom_line: str = "The core message.",
) -> SummaryRecord:
    return SummaryRecord(
        category=category,
        insights=["First point.", "Second point."],
        news_context=news_context,
        bottom_line=bottom_line,
        reading_time=3,
    )


def _make_entries(count: int) -> list[DigestEntry]:
    return [
        DigestEntry(
            record=_make_record(bottom_line=f"Takeaway {i}."),
            sender=f"Sender {i}",
            subject=f"Issue {i}",
            date=BASE_DATE + timedelta(minutes=i),
            message_id=f"msg{i}",
            anchor_id=f"newsletter-{i}",
        )
        for i in range(1, count + 1)
    ]


def test_pluralize():
    assert pluralize(0, "newsletter") == "0 newsletters"
    assert pluralize(1, "newsletter") == "1 newsletter"
    assert pluralize(2, "newsletter") == "2 newsletters"


def test_digest_subject_pluralization():
    assert digest_subject(1) == "Newsletter Digest: 1 newsletter from the last 24 hours"
    assert digest_subject(5) == "Newsletter Digest: 5 newsletters from the last 24 hours"
    assert digest_subject(1, window_hours=1).endswith("from the last 1 hour")


def test_format_timestamp():
    assert format_timestamp(datetime(2026, 1, 5, 8, 30, tzinfo=UTC)) == "Monday, Jan 5, 8:30 AM"
    assert format_timestamp(datetime(2026, 1, 5, 15, 5, tzinfo=UTC)) == "Monday, Jan 5, 3:05 PM"
    assert format_timestamp(datetime(2026, 1, 5, 0, 0, tzinfo=UTC)) == "Monday, Jan 5, 12:00 AM"


def test_format_timestamp_converts_timezone():
    eastern = ZoneInfo("America/New_York")
    assert format_timestamp(BASE_DATE, eastern) == "Monday, Jan 5, 8:30 AM"


@pytest.mark.parametrize("count", [1, 2, 7])
def test_assemble_entry_and_toc_counts(count):
    document = assemble(_make_entries(count))
    assert document.entry_count == count
    assert len(document.table_of_contents) == count
    assert len(document.highlights) == count
    assert len(document.sections) == count


def test_assemble_anchors_resolve_to_sections():
    document = assemble(_make_entries(4))
    ids = re.findall(r'id="(newsletter-\d+)"', document.html)
    assert ids == [f"newsletter-{i}" for i in range(1, 5)]

    hrefs = set(re.findall(r'href="#(newsletter-\d+)"', document.html))
    assert hrefs == set(ids)
    for i, section in enumerate(document.sections, start=1):
        assert f'id="newsletter-{i}"' in section


def test_assemble_preserves_order():
    document = assemble(_make_entries(3))
    positions = [document.html.index(f"Issue {i}</a></h2>") for i in range(1, 4)]
    assert positions == sorted(positions)
    assert document.table_of_contents[0].startswith("Issue 1")
    assert document.table_of_contents[2].startswith("Issue 3")


def test_assemble_toc_and_highlight_lines():
    document = assemble(_make_entries(1))
    assert document.table_of_contents == ["Issue 1 — Sender 1 (Analysis)"]
    assert document.highlights == ["Issue 1: Takeaway 1."]


def test_assemble_section_contents():
    document = assemble(_make_entries(1))
    section = document.sections[0]
    assert "Sender 1" in section
    assert "Monday, Jan 5, 1:31 PM" in section
    assert "<li>First point.</li><li>Second point.</li>" in section
    assert "Takeaway 1." in section
    assert 'href="https://mail.google.com/mail/u/0/#inbox/msg1"' in section


def test_assemble_news_context_callout_only_for_news():
    entries = _make_entries(4)
    entries[0].record = _make_record(Category.NEWS, news_context="A quake hit Tokyo.")
    entries[1].record = _make_record(Category.OPINION, news_context="Should not render.")
    entries[2].record = _make_record(Category.NEWS, news_context=None)
    entries[3].record = _make_record(Category.ANALYSIS)

    document = assemble(entries)

    assert "news-context" in document.sections[0]
    assert "A quake hit Tokyo." in document.sections[0]
    assert "news-context" not in document.sections[1]
    assert "Should not render." not in document.html
    assert "news-context" not in document.sections[2]
    assert "news-context" not in document.sections[3]


def test_assemble_singular_and_plural_intro():
    assert "1 newsletter from" in assemble(_make_entries(1)).html
    assert "3 newsletters from" in assemble(_make_entries(3)).html


def test_assemble_escapes_html_and_strips_control_characters():
    entries = _make_entries(1)
    entries[0].subject = "<script>alert(1)</script> Deals\x07"
    entries[0].record.insights = ["5 < 6 & 7 > 3"]

    document = assemble(entries)

    assert "<script>" not in document.html
    assert "&lt;script&gt;alert(1)&lt;/script&gt; Deals" in document.html
    assert "5 &lt; 6 &amp; 7 &gt; 3" in document.html
    assert "\x07" not in document.html
    assert "\x07" not in document.plain_text


def test_assemble_uses_inline_styles_only():
    document = assemble(_make_entries(2))
    assert "<style" not in document.html
    assert "<link" not in document.html
    assert 'style="' in document.html


def test_assemble_greeting():
    assert "Good morning, Henrik!" in assemble(_make_entries(1), recipient_name="Henrik").html
    assert "Good morning!" in assemble(_make_entries(1)).html


def test_assemble_plain_text_fallback():
    entries = _make_entries(2)
    entries[0].record = _make_record(Category.NEWS, news_context="Context here.")
    document = assemble(entries)

    text = document.plain_text
    assert "2 newsletters" in text
    assert "1. Issue 1 — Sender 1 (News)" in text
    assert "* Issue 1: The core message." in text
    assert "* Issue 2: Takeaway 2." in text
    assert "News Context: Context here." in text
    assert "Read Full: https://mail.google.com/mail/u/0/#inbox/msg2" in text
    assert "<" not in text


def test_assemble_subject():
    assert assemble(_make_entries(2)).subject == digest_subject(2)


def test_assemble_empty_raises():
    with pytest.raises(DigestAssembleError, match="No entries"):
        assemble([])


def test_assemble_rejects_out_of_sequence_anchor():
    entries = _make_entries(2)
    entries[1].anchor_id = "newsletter-1"
    with pytest.raises(DigestAssembleError, match="expected 'newsletter-2'"):
        assemble(entries)
