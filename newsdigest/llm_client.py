"""Thin wrapper around an OpenAI-compatible chat-completions API."""

import logging
import time

import requests

from newsdigest.exceptions import LLMAPIError

logger = logging.getLogger(__name__)

API_URL = "https://api.openai.com/v1/chat/completions"

DEFAULT_MODEL = "gpt-4o-mini"

MAX_RETRIES = 3
RETRY_BACKOFF = [2, 5, 10]  # seconds, indexed by attempt


def _extract_content(data: object) -> str:
    """Pull the reply text out of a chat-completions response envelope."""
    try:
        content = data["choices"][0]["message"]["content"]  # type: ignore[index]
    except (KeyError, IndexError, TypeError) as e:
        raise LLMAPIError(f"Unexpected response envelope: {e!r}") from e
    if not isinstance(content, str):
        raise LLMAPIError("Response content is not text")
    return content


def _retryable(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


def _backoff(attempt: int, reason: object) -> None:
    """Sleep before the next attempt; no-op after the last one."""
    if attempt >= MAX_RETRIES - 1:
        return
    wait = RETRY_BACKOFF[min(attempt, len(RETRY_BACKOFF) - 1)]
    logger.warning("Chat API attempt %d/%d failed (%s), retrying in %ds", attempt + 1, MAX_RETRIES, reason, wait)
    time.sleep(wait)


def call_chat(
    api_key: str,
    prompt: str,
    model: str = DEFAULT_MODEL,
    max_tokens: int = 1500,
    temperature: float = 0.3,
    top_p: float = 1.0,
    timeout: float = 45,
    api_url: str = API_URL,
) -> str:
    """Send one user prompt and return the assistant's reply text.

    Rate limits (429), server errors (5xx) and transport failures, including
    timeouts, are retried up to MAX_RETRIES attempts. Other HTTP errors fail
    immediately.

    Raises:
        LLMAPIError: If the API key is missing, the response is malformed,
            or every attempt fails.
    """
    if not api_key:
        raise LLMAPIError("No API key configured")

    headers = {"content-type": "application/json", "authorization": f"Bearer {api_key}"}
    payload = {
        "model": model,
        "messages": [{"role": "user", "content": prompt}],
        "max_tokens": max_tokens,
        "temperature": temperature,
        "top_p": top_p,
    }

    last_error: object = None
    for attempt in range(MAX_RETRIES):
        try:
            resp = requests.post(api_url, headers=headers, json=payload, timeout=timeout)
        except requests.exceptions.RequestException as e:
            last_error = e
            _backoff(attempt, e)
            continue

        if _retryable(resp.status_code):
            last_error = f"{resp.status_code}: {resp.text[:200]}"
            _backoff(attempt, resp.status_code)
            continue

        try:
            resp.raise_for_status()
        except requests.exceptions.HTTPError as e:
            raise LLMAPIError(f"Chat API call failed: {e}") from e
        try:
            data = resp.json()
        except ValueError as e:
            raise LLMAPIError(f"Chat API returned non-JSON body: {e}") from e
        return _extract_content(data)

    raise LLMAPIError(f"Chat API failed after {MAX_RETRIES} retries: {last_error}")
