"""Orchestrator: daily newsletter digest pipeline."""

import argparse
import logging
import sys
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime, timedelta, tzinfo
from pathlib import Path

from config import LOCAL_TZ, Settings, settings
from newsdigest import digest_assembler, text_normalizer
from newsdigest.email_fetcher import GmailMailbox, build_query
from newsdigest.email_sender import GmailSender
from newsdigest.exceptions import (
    ConfigurationError,
    DeliveryError,
    EmailFetchError,
    NewsDigestError,
)
from newsdigest.models import DigestDocument, DigestEntry, RawMessage, SummaryRecord
from newsdigest.summarizer import Summarizer

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(name)s] %(levelname)s: %(message)s")
logger = logging.getLogger(__name__)

MAX_CONCURRENCY = 5


class DigestPipeline:
    """One digest run: query → summarize each message → assemble → deliver.

    Collaborators are passed in explicitly:
        mailbox: has ``search(query, offset, max_results) -> list[Thread]``
        summarizer: has ``summarize(text, subject) -> SummaryRecord``
        sender: has ``send(to, subject, plain_text, html_body)``
    """

    def __init__(
        self,
        mailbox,
        summarizer,
        sender,
        recipient: str,
        label: str = "substack",
        window_hours: int = 24,
        max_threads: int = 50,
        max_concurrency: int = 1,
        recipient_name: str = "",
        tz: tzinfo | None = None,
        clock=None,
    ) -> None:
        self.mailbox = mailbox
        self.summarizer = summarizer
        self.sender = sender
        self.recipient = recipient
        self.label = label
        self.window_hours = window_hours
        self.max_threads = max_threads
        self.max_concurrency = max(1, min(max_concurrency, MAX_CONCURRENCY))
        self.recipient_name = recipient_name
        self.tz = tz or UTC
        self._clock = clock or (lambda: datetime.now(UTC))

    def cutoff(self) -> datetime:
        return self._clock() - timedelta(hours=self.window_hours)

    def collect_messages(self, cutoff: datetime) -> list[RawMessage]:
        """Messages in matching threads received at or after `cutoff`, in arrival order.

        Raises:
            EmailFetchError: If the mailbox query fails.
        """
        query = build_query(cutoff.astimezone(self.tz), self.label)
        threads = self.mailbox.search(query, 0, self.max_threads)
        if not threads:
            return []

        # Thread search matches on any message, so older neighbours come along
        return [m for thread in threads for m in thread.messages if m.date >= cutoff]

    def summarize_message(self, message: RawMessage) -> SummaryRecord:
        """Summarize one message. Failures degrade the record instead of raising."""
        try:
            text = text_normalizer.body_for(message)
            return self.summarizer.summarize(text, text_normalizer.clean_text(message.subject))
        except Exception as e:
            logger.error("Failed to summarize message %s: %s", message.message_id, e)
            return SummaryRecord.failed()

    def summarize_all(self, messages: list[RawMessage]) -> list[SummaryRecord]:
        """Summarize messages, returning records in the same order."""
        if self.max_concurrency == 1 or len(messages) <= 1:
            return [self.summarize_message(m) for m in messages]
        with ThreadPoolExecutor(max_workers=self.max_concurrency) as executor:
            return list(executor.map(self.summarize_message, messages))

    def build_entries(
        self, messages: list[RawMessage], records: list[SummaryRecord]
    ) -> list[DigestEntry]:
        return [
            DigestEntry(
                record=record,
                sender=text_normalizer.extract_sender_name(message.sender),
                subject=text_normalizer.clean_text(message.subject),
                date=message.date,
                message_id=message.message_id,
                anchor_id=digest_assembler.ANCHOR_TEMPLATE.format(position=position),
            )
            for position, (message, record) in enumerate(zip(messages, records), start=1)
        ]

    def run(self, dry_run: bool = False) -> DigestDocument | None:
        """Run the full digest pipeline.

        Steps:
            1. Query Gmail for labeled threads since the cutoff
            2. Keep messages received at or after the cutoff
            3. Normalize and summarize each message
            4. Assemble the digest
            5. Send it to the recipient (skipped when dry_run is set)

        Returns:
            The assembled document, or None when there was nothing to send.

        Raises:
            EmailFetchError: If the mailbox query fails.
            DeliveryError: If sending the digest fails.
        """
        cutoff = self.cutoff()

        # 1-2. Query and filter
        logger.info("Step 1/4: Fetching newsletters since %s...", cutoff.isoformat())
        try:
            messages = self.collect_messages(cutoff)
        except EmailFetchError as e:
            logger.error("Email fetch failed: %s", e)
            raise
        if not messages:
            logger.info("No newsletters in the last %d hours. Skipping digest.", self.window_hours)
            return None
        logger.info("Found %s", digest_assembler.pluralize(len(messages), "newsletter"))

        # 3. Summarize
        logger.info("Step 2/4: Summarizing %d messages...", len(messages))
        records = self.summarize_all(messages)
        entries = self.build_entries(messages, records)

        # 4. Assemble
        logger.info("Step 3/4: Assembling digest...")
        document = digest_assembler.assemble(
            entries,
            recipient_name=self.recipient_name,
            label=self.label,
            window_hours=self.window_hours,
            tz=self.tz,
        )

        # 5. Deliver
        if dry_run:
            logger.info("Step 4/4: Dry run, not sending '%s'.", document.subject)
            return document

        logger.info("Step 4/4: Sending digest to %s...", self.recipient)
        try:
            self.sender.send(self.recipient, document.subject, document.plain_text, document.html)
        except DeliveryError as e:
            logger.error("Digest delivery failed: %s", e)
            raise

        logger.info("Pipeline complete. %s delivered.", document.subject)
        return document


def build_pipeline(config: Settings = settings, require_recipient: bool = True) -> DigestPipeline:
    """Wire the pipeline to Gmail and the chat API from settings.

    Raises:
        ConfigurationError: If the API key or the recipient is missing.
    """
    summarizer = Summarizer(
        config.openai_api_key,
        model=config.openai_model,
        max_tokens=config.llm_max_tokens,
        temperature=config.llm_temperature,
        top_p=config.llm_top_p,
        timeout=config.llm_timeout,
        api_url=config.openai_api_url,
        max_input_chars=config.llm_max_input_chars,
    )
    if require_recipient and not config.digest_recipient:
        raise ConfigurationError("No DIGEST_RECIPIENT configured")

    return DigestPipeline(
        mailbox=GmailMailbox(token_json=config.gmail_token_json),
        summarizer=summarizer,
        sender=GmailSender(token_json=config.gmail_token_json),
        recipient=config.digest_recipient,
        label=config.gmail_label,
        window_hours=config.window_hours,
        max_threads=config.max_threads,
        max_concurrency=config.max_concurrency,
        recipient_name=config.recipient_name,
        tz=LOCAL_TZ,
    )


def run_digest(dry_run: bool = False) -> DigestDocument | None:
    """Build a pipeline from settings and run it once."""
    return build_pipeline(require_recipient=not dry_run).run(dry_run=dry_run)


def main(argv: list[str] | None = None) -> None:
    """Entry point for the digest pipeline."""
    parser = argparse.ArgumentParser(description="Build and send the newsletter digest.")
    parser.add_argument("--dry-run", action="store_true", help="Assemble the digest but do not send it")
    parser.add_argument("--output", type=Path, help="Write the digest HTML to this file")
    parser.add_argument("--window-hours", type=int, help="Override the collection window")
    parser.add_argument("--label", help="Override the Gmail label")
    args = parser.parse_args(argv)

    overrides = {}
    if args.window_hours:
        overrides["window_hours"] = args.window_hours
    if args.label:
        overrides["gmail_label"] = args.label
    config = settings.model_copy(update=overrides)

    try:
        pipeline = build_pipeline(config, require_recipient=not args.dry_run)
        document = pipeline.run(dry_run=args.dry_run)
    except NewsDigestError as e:
        logger.error("Pipeline failed: %s", e)
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Digest run interrupted.")
        sys.exit(0)

    if document is not None and args.output:
        args.output.write_text(document.html, encoding="utf-8")
        logger.info("Wrote digest preview to %s", args.output)


if __name__ == "__main__":
    main()
