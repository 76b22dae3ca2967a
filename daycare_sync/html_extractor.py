"""Find and decode the HTML body of a Gmail message payload."""

import base64
import binascii
import logging

from daycare_sync.exceptions import DecodeError

logger = logging.getLogger(__name__)


def base64url_decode(data: str) -> str:
    """Decode Gmail's base64url body data to a UTF-8 string.

    Gmail strips padding, so it is restored here. A length of 1 mod 4 can
    never be valid base64 and is rejected outright.

    Raises:
        DecodeError: If the data is not valid base64url.
    """
    standard = data.replace("-", "+").replace("_", "/")
    remainder = len(standard) % 4
    if remainder == 1:
        raise DecodeError(f"Invalid base64url length ({len(data)} chars)")
    if remainder:
        standard += "=" * (4 - remainder)

    try:
        raw = base64.b64decode(standard, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(f"Failed to decode base64url: {e}") from e
    return raw.decode("utf-8", errors="replace")


def find_html_part(parts: list[dict] | None) -> dict | None:
    """Depth-first search for the first text/html part that carries body data."""
    for part in parts or []:
        if part.get("mimeType") == "text/html" and part.get("body", {}).get("data"):
            return part
        nested = find_html_part(part.get("parts"))
        if nested:
            return nested
    return None


def extract_html(payload: dict) -> str:
    """Return the decoded HTML body of a message payload.

    A top-level text/html payload wins without searching sub-parts.

    Args:
        payload: The ``payload`` object of a Gmail ``full`` message.

    Returns:
        The HTML as a string, or an empty string when the message has no
        HTML part (common for non-report emails).

    Raises:
        DecodeError: If the HTML part's body data is malformed.
    """
    if payload.get("mimeType") == "text/html" and payload.get("body", {}).get("data"):
        return base64url_decode(payload["body"]["data"])

    part = find_html_part(payload.get("parts"))
    if part is None:
        logger.debug("No text/html part in payload (mimeType=%s)", payload.get("mimeType"))
        return ""
    return base64url_decode(part["body"]["data"])
