"""Data models for the newsletter digest pipeline."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

GMAIL_MESSAGE_URL = "https://mail.google.com/mail/u/0/#inbox/{message_id}"


@dataclass
class RawMessage:
    """A fetched email from Gmail."""

    message_id: str
    subject: str
    sender: str
    date: datetime
    body_html: str
    body_text: str = ""


@dataclass
class Thread:
    """A Gmail thread and its messages in arrival order."""

    thread_id: str
    messages: list[RawMessage] = field(default_factory=list)


class Category(str, Enum):
    """Newsletter category assigned by the summarizer."""

    NEWS = "News"
    ANALYSIS = "Analysis"
    OPINION = "Opinion"
    UNKNOWN = "Unknown"


@dataclass
class SummaryRecord:
    """Structured summary of a single newsletter."""

    category: Category
    insights: list[str]
    bottom_line: str
    news_context: str | None = None
    reading_time: int = 1

    @classmethod
    def too_short(cls) -> "SummaryRecord":
        """Record for content too short to be worth an LLM call."""
        return cls(
            category=Category.UNKNOWN,
            insights=["Content too short to summarize."],
            bottom_line="No key takeaway available.",
        )

    @classmethod
    def failed(cls) -> "SummaryRecord":
        """Record for a summarization that could not complete."""
        return cls(
            category=Category.ANALYSIS,
            insights=["Error summarizing content."],
            bottom_line="Unable to generate summary.",
        )


@dataclass
class DigestEntry:
    """One newsletter's contribution to the digest."""

    record: SummaryRecord
    sender: str
    subject: str
    date: datetime
    message_id: str
    anchor_id: str

    @property
    def message_url(self) -> str:
        return GMAIL_MESSAGE_URL.format(message_id=self.message_id)

    @property
    def show_news_context(self) -> bool:
        return self.record.category == Category.NEWS and self.record.news_context is not None


@dataclass
class DigestDocument:
    """A rendered digest ready for delivery."""

    subject: str
    highlights: list[str]
    table_of_contents: list[str]
    sections: list[str]
    html: str
    plain_text: str
    entry_count: int
