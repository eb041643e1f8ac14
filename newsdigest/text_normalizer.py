"""HTML email content normalization: extract clean text from newsletters."""

import html as html_lib
import logging
import re

from bs4 import BeautifulSoup

from newsdigest.models import RawMessage

logger = logging.getLogger(__name__)

# Elements removed together with their content
STRIP_TAGS = ["script", "style", "noscript"]

# Newsletter boilerplate removed wherever it appears in the text
BOILERPLATE_PATTERN = re.compile(
    r"(unsubscribe|view\s+in\s+(?:your\s+)?browser|follow\s+us|share\s+this|"
    r"click\s+here|sponsor(?:ed|ship|s)?|advertisement|\bhttps?://\S+|\bwww\.\S+)",
    re.IGNORECASE,
)

# Tracking pixel patterns
TRACKING_PIXEL_PATTERN = re.compile(
    r'<img[^>]+(width=["\']1["\']|height=["\']1["\']|'
    r"tracking|pixel|beacon|open\.gif|t\.gif)[^>]*>",
    re.IGNORECASE,
)

# Non-printable characters and the Unicode replacement character
CONTROL_CHARS_PATTERN = re.compile(r"[\ufffd\x00-\x1f\x7f-\x9f]")

_STYLE_SCRIPT_PATTERN = re.compile(r"<(style|script)\b[\s\S]*?</\1\s*>", re.IGNORECASE)
# What an HTML parser would read as markup; "5 < 6" is left alone
_TAG_PATTERN = re.compile(r"</?[A-Za-z][^<>]*>|<[!?][^<>]*>")
_WHITESPACE_PATTERN = re.compile(r"\s+")


def clean_text(text: str) -> str:
    """Remove control characters and U+FFFD so they can't corrupt rendered output."""
    if not text:
        return ""
    return CONTROL_CHARS_PATTERN.sub("", text)


def _collapse(text: str) -> str:
    # Whitespace first: \n and \t are control characters too
    return clean_text(_WHITESPACE_PATTERN.sub(" ", text)).strip()


def _strip_tags(html: str) -> str:
    """Regex-only tag stripping, used when the HTML parser gives up."""
    text = _STYLE_SCRIPT_PATTERN.sub(" ", html)
    text = _TAG_PATTERN.sub(" ", text)
    return _collapse(text)


def _parse_text(html: str) -> str:
    html = TRACKING_PIXEL_PATTERN.sub("", html)
    soup = BeautifulSoup(html, "lxml")

    for tag_name in STRIP_TAGS:
        for tag in soup.find_all(tag_name):
            tag.decompose()

    # Hidden preheader text
    for tag in soup.find_all(style=re.compile(r"display\s*:\s*none")):
        tag.decompose()

    return soup.get_text(separator=" ")


def normalize(html: str) -> str:
    """Convert a newsletter HTML body into clean plain text.

    Script and style blocks are dropped with their content, every tag
    boundary becomes whitespace, boilerplate phrases and bare URLs are
    removed, and whitespace is collapsed. Never raises: if the HTML parser
    fails, plain regex tag stripping is used without boilerplate removal.

    Args:
        html: Raw HTML body.

    Returns:
        Normalized plain text (possibly empty).
    """
    if not html:
        return ""

    try:
        text = _parse_text(html)
    except Exception as e:
        logger.warning("HTML parsing failed, falling back to tag stripping: %s", e)
        return _strip_tags(html)

    return _scrub(text)


def _scrub(text: str) -> str:
    """Clean parsed text until another pass would change nothing.

    Decoded entities can spell out new markup ("&lt;div&gt;") and removing
    one phrase can join the words of another ("view in sponsor browser"),
    so a single pass is not enough for normalize() to be idempotent.
    """
    while True:
        cleaned = html_lib.unescape(_collapse(text))
        cleaned = _TAG_PATTERN.sub(" ", cleaned)
        cleaned = _collapse(BOILERPLATE_PATTERN.sub(" ", _collapse(cleaned)))
        if cleaned == text:
            return cleaned
        text = cleaned


def body_for(message: RawMessage) -> str:
    """Normalized body text of a message, preferring HTML over the plain part."""
    text = normalize(message.body_html)
    if not text and message.body_text:
        text = normalize(message.body_text)
    return text


def extract_sender_name(sender: str) -> str:
    """Extract a clean sender name from an email From header.

    Args:
        sender: Raw From header value like '"Morning Brew" <email@example.com>'.

    Returns:
        The display name, or the header itself when it has none.
    """
    match = re.match(r'^"?([^"<]+)"?\s*(?:<.*>)?$', sender.strip())
    if match and match.group(1).strip():
        return clean_text(match.group(1).strip())
    return clean_text(sender.strip())
