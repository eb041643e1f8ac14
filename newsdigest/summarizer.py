"""Summarize normalized newsletter text into a SummaryRecord via the chat API."""

import logging

from newsdigest import llm_client, response_parser
from newsdigest.exceptions import ConfigurationError
from newsdigest.models import SummaryRecord
from newsdigest.text_normalizer import clean_text

logger = logging.getLogger(__name__)

MIN_CONTENT_CHARS = 50
WORDS_PER_MINUTE = 200

PROMPT_TEMPLATE = """\
You are an expert newsletter analyst tasked with creating a comprehensive yet \
concise summary of the following plain-text newsletter content \
(subject: "{subject}"):

\"\"\"
{text}
\"\"\"

Your task:
1) Categorize the newsletter as one of:
   - "News": Timely updates on recent events or developments.
   - "Analysis": In-depth insights or interpretations of topics.
   - "Opinion": Subjective perspectives or arguments.
2) Extract 4-6 essential takeaways or key news stories (if "News") as bullet \
points. Include specific details (e.g., names, numbers, examples) to make them \
standalone and informative.
3) If "News," provide a 2-3 sentence "News Context" summarizing the top story \
with key details (who, what, when, where, why).
4) Provide a "Bottom Line" of 1-2 sentences capturing the core message or \
actionable takeaway.

Return your response in this format:

Category: [News/Analysis/Opinion]

Essential Takeaways:
- Takeaway 1 with details
- Takeaway 2 with details
- Takeaway 3 with details
- Takeaway 4 with details

News Context (if News):
- 2-3 sentences about the top story.

Bottom Line:
- 1-2 sentences with the core message or takeaway.
"""


def build_prompt(subject: str, text: str, max_chars: int | None = None) -> str:
    """Build the summarization prompt for one newsletter."""
    if max_chars is not None and len(text) > max_chars:
        text = text[:max_chars]
    return PROMPT_TEMPLATE.format(subject=clean_text(subject), text=text)


def estimate_reading_time(text: str) -> int:
    """Minutes to read `text` at 200 words per minute, rounded half up, at least 1."""
    words = len(text.split())
    return max(1, int(words / WORDS_PER_MINUTE + 0.5))


class Summarizer:
    """Turns normalized newsletter text into a SummaryRecord.

    `summarize` never raises: short content short-circuits without a network
    call, and any API failure yields the fixed degraded record.
    """

    def __init__(
        self,
        api_key: str,
        model: str = llm_client.DEFAULT_MODEL,
        max_tokens: int = 1500,
        temperature: float = 0.3,
        top_p: float = 1.0,
        timeout: float = 45,
        api_url: str = llm_client.API_URL,
        max_input_chars: int | None = None,
        min_chars: int = MIN_CONTENT_CHARS,
    ) -> None:
        if not api_key:
            raise ConfigurationError("No OPENAI_API_KEY configured")
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.top_p = top_p
        self.timeout = timeout
        self.api_url = api_url
        self.max_input_chars = max_input_chars
        self.min_chars = min_chars

    def summarize(self, text: str, subject: str) -> SummaryRecord:
        """Summarize one newsletter's normalized text.

        Args:
            text: Normalized plain text of the newsletter body.
            subject: The newsletter's subject line.

        Returns:
            A SummaryRecord, degraded if the content was too short or the
            API call failed.
        """
        if not text or len(text) < self.min_chars:
            logger.info("Content too short to summarize: '%s'", subject)
            return SummaryRecord.too_short()

        prompt = build_prompt(subject, text, self.max_input_chars)
        try:
            reply = llm_client.call_chat(
                self.api_key,
                prompt,
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                top_p=self.top_p,
                timeout=self.timeout,
                api_url=self.api_url,
            )
        except Exception as e:
            logger.error("Summarization failed for '%s': %s", subject, e)
            return SummaryRecord.failed()

        parsed = response_parser.parse(reply)
        return SummaryRecord(
            category=parsed.category,
            insights=parsed.insights,
            news_context=parsed.news_context,
            bottom_line=parsed.bottom_line,
            reading_time=estimate_reading_time(text),
        )
