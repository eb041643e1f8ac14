"""One-time Gmail OAuth2 setup for the digest.

Usage:
    python scripts/gmail_auth.py

Needs GMAIL_CREDENTIALS_JSON (the OAuth client JSON from Google Cloud) in the
environment or .env. Prints a consent URL asking for permission to read
labeled newsletters and to send the digest. After consenting, the browser
lands on an unreachable http://localhost address; copy that address back
into the prompt and GMAIL_TOKEN_JSON is stored in .env.
"""

import json
import re
import sys
from pathlib import Path
from urllib.parse import parse_qs, urlparse

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow

SCOPES = [
    "https://www.googleapis.com/auth/gmail.readonly",
    "https://www.googleapis.com/auth/gmail.send",
]

TOKEN_ENV_KEY = "GMAIL_TOKEN_JSON"
ENV_PATH = Path(__file__).resolve().parent.parent / ".env"


def _code_from_redirect(redirect_url: str) -> str | None:
    """Authorization code carried by the localhost redirect, if any."""
    codes = parse_qs(urlparse(redirect_url.strip()).query).get("code")
    return codes[0] if codes else None


def _write_env_token(env_path: Path, token_json: str) -> None:
    """Replace the token line in .env, or append one."""
    content = env_path.read_text() if env_path.exists() else ""
    line = f"{TOKEN_ENV_KEY}={token_json}"
    pattern = re.compile(rf"^{re.escape(TOKEN_ENV_KEY)}=.*$", re.MULTILINE)
    if pattern.search(content):
        content = pattern.sub(lambda _: line, content)
    else:
        content += f"\n{line}\n"
    env_path.write_text(content)


def _check_token(token_json: str) -> None:
    creds = Credentials.from_authorized_user_info(json.loads(token_json), SCOPES)
    if creds.expired and creds.refresh_token:
        creds.refresh(Request())


def main():
    from config import settings

    if not settings.gmail_credentials_json:
        sys.exit("ERROR: GMAIL_CREDENTIALS_JSON is not set")

    flow = InstalledAppFlow.from_client_config(
        json.loads(settings.gmail_credentials_json), SCOPES, redirect_uri="http://localhost",
    )
    auth_url, _ = flow.authorization_url(access_type="offline", prompt="consent")

    print(f"\nOpen this URL, sign in and allow read + send access:\n\n{auth_url}\n")
    print("The browser ends on a localhost page that does not load.")
    code = _code_from_redirect(input("Paste that page's full address: "))
    if code is None:
        sys.exit("ERROR: the address has no ?code=... parameter")

    flow.fetch_token(code=code)
    token_json = flow.credentials.to_json()
    _write_env_token(ENV_PATH, token_json)
    print(f"\n{TOKEN_ENV_KEY} written to {ENV_PATH}")

    _check_token(token_json)
    print("Token verified. The digest can now read and send mail.")


if __name__ == "__main__":
    main()
