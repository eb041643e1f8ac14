"""Tests for response_parser module."""

from newsdigest.models import Category
from newsdigest.response_parser import ParsedReply, parse

NEWS_REPLY = """\
Category: News

Essential Takeaways:
- The Fed held rates at 5.25% for the third straight meeting.
- Core inflation cooled to 3.1% in September.
- The S&P 500 rallied 2% on the announcement.
- Payrolls grew by 250,000, beating expectations.

News Context (if News):
- The Federal Reserve held rates steady on Wednesday, citing cooling inflation.
Chair Powell signaled cuts could come early next year.

Bottom Line:
- Rate cuts are coming, but not yet.
"""


def test_parse_full_news_reply():
    result = parse(NEWS_REPLY)
    assert result.category == Category.NEWS
    assert result.insights == [
        "The Fed held rates at 5.25% for the third straight meeting.",
        "Core inflation cooled to 3.1% in September.",
        "The S&P 500 rallied 2% on the announcement.",
        "Payrolls grew by 250,000, beating expectations.",
    ]
    assert result.news_context == (
        "The Federal Reserve held rates steady on Wednesday, citing cooling inflation. "
        "Chair Powell signaled cuts could come early next year."
    )
    assert result.bottom_line == "Rate cuts are coming, but not yet."


def test_parse_missing_news_context():
    reply = """\
Category: Opinion

Essential Takeaways:
- Remote work is here to stay.
- Offices should become collaboration hubs.

Bottom Line:
- Managers need to adapt rather than mandate.
"""
    result = parse(reply)
    assert result.news_context is None
    assert result.category == Category.OPINION
    assert result.insights == [
        "Remote work is here to stay.",
        "Offices should become collaboration hubs.",
    ]
    assert result.bottom_line == "Managers need to adapt rather than mandate."


def test_parse_missing_category_defaults_to_analysis():
    reply = "Essential Takeaways:\n- One\n- Two\n\nBottom Line:\n- Done."
    assert parse(reply).category == Category.ANALYSIS


def test_parse_category_is_case_insensitive():
    assert parse("CATEGORY: opinion").category == Category.OPINION
    assert parse("category:   NEWS").category == Category.NEWS


def test_parse_category_value_on_next_line():
    reply = "Category:\nNews\n\nEssential Takeaways:\n- A\n\nBottom Line:\n- B"
    result = parse(reply)
    assert result.category == Category.NEWS
    assert result.insights == ["A"]
    assert result.bottom_line == "B"
    assert parse("**Category:**\n\n- *Opinion*").category == Category.OPINION


def test_parse_unknown_category_value_defaults_to_analysis():
    assert parse("Category: Satire").category == Category.ANALYSIS


def test_parse_missing_bottom_line_is_empty_string():
    reply = "Category: Analysis\n\nEssential Takeaways:\n- One point"
    result = parse(reply)
    assert result.bottom_line == ""
    assert result.insights == ["One point"]


def test_parse_missing_takeaways_is_empty_list():
    reply = "Category: News\n\nBottom Line:\n- Something happened."
    result = parse(reply)
    assert result.insights == []
    assert result.bottom_line == "Something happened."


def test_parse_markdown_decorated_labels():
    reply = """\
**Category:** Analysis

### Essential Takeaways
1. Chips are the new oil.
2) Supply chains are regionalizing.
* Capex is surging.
• Margins are compressing.

**News Context (if News):** N/A

**Bottom Line:** Bet on the picks and shovels.
"""
    result = parse(reply)
    assert result.category == Category.ANALYSIS
    assert result.insights == [
        "Chips are the new oil.",
        "Supply chains are regionalizing.",
        "Capex is surging.",
        "Margins are compressing.",
    ]
    assert result.news_context is None
    assert result.bottom_line == "Bet on the picks and shovels."


def test_parse_inline_section_text():
    reply = "Category: News\nNews Context: A quake struck Tokyo on Monday.\nBottom Line: Stay alert."
    result = parse(reply)
    assert result.news_context == "A quake struck Tokyo on Monday."
    assert result.bottom_line == "Stay alert."


def test_parse_wrapped_bullet_is_joined():
    reply = "Essential Takeaways:\n- A long takeaway that\n  wraps onto a second line\n- Short one"
    assert parse(reply).insights == [
        "A long takeaway that wraps onto a second line",
        "Short one",
    ]


def test_parse_label_words_inside_bullets_are_not_sections():
    reply = """\
Essential Takeaways:
- The bottom line: buy bonds.
- Category: not a real label here.

Bottom Line:
- The real bottom line.
"""
    result = parse(reply)
    assert len(result.insights) == 2
    assert result.bottom_line == "The real bottom line."
    assert result.category == Category.ANALYSIS


def test_parse_windows_line_endings():
    reply = NEWS_REPLY.replace("\n", "\r\n")
    result = parse(reply)
    assert result.category == Category.NEWS
    assert len(result.insights) == 4
    assert result.bottom_line == "Rate cuts are coming, but not yet."


def test_parse_garbage_returns_defaults():
    result = parse("I'm sorry, I can't help with that.")
    assert result == ParsedReply()


def test_parse_empty_and_non_string():
    assert parse("") == ParsedReply()
    assert parse(None) == ParsedReply()  # type: ignore[arg-type]
