"""Gmail API integration: send the finished digest."""

import base64
import logging
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from newsdigest.email_fetcher import get_gmail_service
from newsdigest.exceptions import DeliveryError

logger = logging.getLogger(__name__)


def build_message(to: str, subject: str, plain_text: str, html_body: str) -> dict:
    """Build a Gmail API message body with plain-text and HTML alternatives."""
    message = MIMEMultipart("alternative")
    message["to"] = to
    message["subject"] = subject
    message.attach(MIMEText(plain_text, "plain", "utf-8"))
    message.attach(MIMEText(html_body, "html", "utf-8"))
    raw = base64.urlsafe_b64encode(message.as_bytes()).decode("utf-8")
    return {"raw": raw}


class GmailSender:
    """Sends mail as the authenticated Gmail user."""

    def __init__(self, service=None, token_json: str = "") -> None:
        self._service = service
        self._token_json = token_json

    @property
    def service(self):
        if self._service is None:
            self._service = get_gmail_service(self._token_json)
        return self._service

    def send(self, to: str, subject: str, plain_text: str, html_body: str) -> None:
        """Send one email. The Gmail response is not inspected beyond the id.

        Raises:
            DeliveryError: If the message could not be sent.
        """
        try:
            result = (
                self.service.users()
                .messages()
                .send(userId="me", body=build_message(to, subject, plain_text, html_body))
                .execute()
            )
        except Exception as e:
            raise DeliveryError(f"Failed to send digest to {to}: {e}") from e

        logger.info("Sent '%s' to %s (message id %s)", subject, to, result.get("id", "?"))
