"""Gmail API integration: query newsletter threads for the digest."""

import base64
import json
import logging
from collections.abc import Iterator
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build

from newsdigest.exceptions import EmailFetchError
from newsdigest.models import RawMessage, Thread

logger = logging.getLogger(__name__)

MAX_THREADS = 50
GMAIL_PAGE_LIMIT = 500


def get_gmail_service(token_json: str):
    """Authorized Gmail v1 client for the account in `token_json`.

    Refreshes the access token when it has expired.

    Raises:
        EmailFetchError: If no token is configured or it cannot be used.
    """
    if not token_json:
        raise EmailFetchError("Gmail token not configured.")

    try:
        creds = Credentials.from_authorized_user_info(json.loads(token_json))
        if creds.expired and creds.refresh_token:
            creds.refresh(Request())
        return build("gmail", "v1", credentials=creds, cache_discovery=False)
    except Exception as e:
        raise EmailFetchError(f"Could not authenticate Gmail token: {e}") from e


def build_query(cutoff: datetime, label: str) -> str:
    """Gmail search expression for messages after `cutoff`'s date with `label`."""
    query = f"after:{cutoff:%Y/%m/%d}"
    if label:
        query = f"{query} label:{label}"
    return query


def _decode(data: str) -> str:
    return base64.urlsafe_b64decode(data).decode("utf-8", errors="replace")


def _leaf_parts(part: dict) -> Iterator[dict]:
    """Depth-first walk over the MIME tree, yielding parts that carry data."""
    if part.get("body", {}).get("data"):
        yield part
    for child in part.get("parts", []):
        yield from _leaf_parts(child)


def _extract_body(payload: dict) -> tuple[str, str]:
    """First text/html and first text/plain bodies of a message payload.

    Returns:
        (body_html, body_text), either empty when the part is absent.
    """
    bodies = {"text/html": "", "text/plain": ""}
    single = not payload.get("mimeType", "").startswith("multipart/")
    for part in _leaf_parts(payload):
        mime_type = part.get("mimeType", "")
        if single and mime_type != "text/html":
            # A lone non-HTML body is treated as plain text
            mime_type = "text/plain"
        if mime_type in bodies and not bodies[mime_type]:
            bodies[mime_type] = _decode(part["body"]["data"])
    return bodies["text/html"], bodies["text/plain"]


def _get_header(headers: list[dict], name: str) -> str:
    """Case-insensitive header lookup; empty string when absent."""
    wanted = name.lower()
    return next((h.get("value", "") for h in headers if h.get("name", "").lower() == wanted), "")


def _message_date(msg: dict, headers: list[dict]) -> datetime:
    """Receipt time from Gmail's internalDate (epoch ms), else the Date header.

    A message with neither is stamped with the current time so it is not
    silently dropped, and the fallback is logged with its id.
    """
    internal = msg.get("internalDate")
    if internal:
        return datetime.fromtimestamp(int(internal) / 1000, tz=UTC)

    date_str = _get_header(headers, "Date")
    try:
        date = parsedate_to_datetime(date_str)
    except (TypeError, ValueError, IndexError):
        logger.warning("Message %s has no usable date, treating it as just received", msg.get("id", "?"))
        return datetime.now(UTC)
    return date if date.tzinfo else date.replace(tzinfo=UTC)


def _to_raw_message(msg: dict) -> RawMessage:
    payload = msg.get("payload", {})
    headers = payload.get("headers", [])
    body_html, body_text = _extract_body(payload)
    return RawMessage(
        message_id=msg.get("id", ""),
        subject=_get_header(headers, "Subject"),
        sender=_get_header(headers, "From"),
        date=_message_date(msg, headers),
        body_html=body_html,
        body_text=body_text,
    )


class GmailMailbox:
    """Read-only view of a Gmail mailbox, searched thread by thread."""

    def __init__(self, service=None, token_json: str = "") -> None:
        self._service = service
        self._token_json = token_json

    @property
    def service(self):
        if self._service is None:
            self._service = get_gmail_service(self._token_json)
        return self._service

    def _thread_ids(self, query: str, limit: int) -> Iterator[str]:
        """Matching thread ids in Gmail's order, following pages up to `limit`."""
        seen = 0
        page_token = None
        while seen < limit:
            response = (
                self.service.users()
                .threads()
                .list(userId="me", q=query, maxResults=min(limit - seen, GMAIL_PAGE_LIMIT), pageToken=page_token)
                .execute()
            )
            for ref in response.get("threads", [])[: limit - seen]:
                seen += 1
                yield ref["id"]
            page_token = response.get("nextPageToken")
            if not page_token:
                return

    def _thread(self, thread_id: str) -> Thread:
        data = self.service.users().threads().get(userId="me", id=thread_id, format="full").execute()
        return Thread(thread_id=thread_id, messages=[_to_raw_message(m) for m in data.get("messages", [])])

    def search(self, query: str, offset: int = 0, max_results: int = MAX_THREADS) -> list[Thread]:
        """Return threads matching a Gmail search expression.

        Args:
            query: Gmail search expression, e.g. 'after:2026/10/18 label:substack'.
            offset: Number of leading matches to skip.
            max_results: Maximum number of threads to return.

        Returns:
            Threads in Gmail's result order, each with its messages oldest first.

        Raises:
            EmailFetchError: If Gmail cannot be reached or queried.
        """
        logger.info("Searching Gmail: %s (offset %d, limit %d)", query, offset, max_results)
        try:
            ids = list(self._thread_ids(query, offset + max_results))[offset:]
            threads = [self._thread(thread_id) for thread_id in ids]
        except EmailFetchError:
            raise
        except Exception as e:
            raise EmailFetchError(f"Gmail search failed for '{query}': {e}") from e

        logger.info(
            "Fetched %d threads holding %d messages",
            len(threads), sum(len(t.messages) for t in threads),
        )
        return threads
