"""
Input sanitization primitives for submitted field values.

Provides HTML tag stripping plus the format-specific cleanups used by the
per-kind field sanitizers (plain text, multi-line text, URL, email, hex
color, non-negative integers).
"""

from __future__ import annotations

import math
import re
from typing import Any
from urllib.parse import urlsplit

# Pattern that matches all HTML tags
_ALL_TAGS_RE = re.compile(r"<[^>]+>")

# Script and style blocks are dropped together with their content
_SCRIPT_STYLE_RE = re.compile(r"<(script|style)\b[^>]*>.*?</\1\s*>", re.IGNORECASE | re.DOTALL)

# Dangerous tags (script, iframe, object, embed, etc.)
_DANGEROUS_TAGS_RE = re.compile(
    r"<\s*/?\s*(?:script|iframe|object|embed|applet|form|input|button|select|textarea)\b[^>]*>",
    re.IGNORECASE,
)

# Event handler attributes (onclick, onerror, onload, etc.)
_EVENT_HANDLER_RE = re.compile(
    r"\s+on\w+\s*=\s*(?:\"[^\"]*\"|'[^']*'|[^\s>]+)",
    re.IGNORECASE,
)

# javascript: protocol in href/src
_JS_PROTOCOL_RE = re.compile(
    r'(?:href|src|action)\s*=\s*["\']?\s*javascript:',
    re.IGNORECASE,
)

_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_WHITESPACE_RE = re.compile(r"[\r\n\t ]+")
_HORIZONTAL_WS_RE = re.compile(r"[\t ]+")
_EMAIL_RE = re.compile(r"^[A-Za-z0-9._%+\-']+@[A-Za-z0-9](?:[A-Za-z0-9-]*[A-Za-z0-9])?(?:\.[A-Za-z0-9-]+)+$")
_HEX_COLOR_RE = re.compile(r"^#(?:[A-Fa-f0-9]{3}){1,2}$")
_LEADING_INT_RE = re.compile(r"^\s*([-+]?\d{1,18})(?!\d)")

ALLOWED_URL_SCHEMES = frozenset({"http", "https", "ftp", "ftps", "mailto", "tel"})


def strip_html_tags(text: str) -> str:
    """Strip all HTML tags from a string field value.

    Use for plain ``str`` fields where no markup is expected.
    Preserves the text content between tags.

    Args:
        text: Input text that may contain HTML tags

    Returns:
        Text with all HTML tags removed
    """
    if not text:
        return text
    return _ALL_TAGS_RE.sub("", text)


def strip_dangerous_tags(text: str) -> str:
    """Strip dangerous HTML tags and attributes from a rich text value.

    Use for ``wysiwyg`` fields where safe HTML (bold, italic, links) is
    acceptable but script injection must be prevented.

    Removes:
    - <script>, <iframe>, <object>, <embed>, <applet>, <form> and
      form-control tags
    - Event handler attributes (onclick, onerror, ...)
    - javascript: protocol URLs

    Args:
        text: Input text that may contain HTML

    Returns:
        Text with dangerous elements removed
    """
    if not text:
        return text
    result = _DANGEROUS_TAGS_RE.sub("", text)
    result = _EVENT_HANDLER_RE.sub("", result)
    result = _JS_PROTOCOL_RE.sub("", result)
    return result


def to_text(value: Any) -> str:
    """String form of a scalar submission value."""
    if value is None or value is False:
        return ""
    if value is True:
        return "1"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def clean_text(text: str) -> str:
    """Single-line text: no tags, no control characters, collapsed whitespace."""
    result = _SCRIPT_STYLE_RE.sub("", text)
    result = strip_html_tags(result)
    result = _CONTROL_CHARS_RE.sub("", result)
    result = _WHITESPACE_RE.sub(" ", result)
    return result.strip()


def clean_multiline_text(text: str) -> str:
    """Multi-line text: like clean_text but line breaks are preserved."""
    result = _SCRIPT_STYLE_RE.sub("", text)
    result = strip_html_tags(result)
    result = _CONTROL_CHARS_RE.sub("", result)
    lines = [_HORIZONTAL_WS_RE.sub(" ", line).strip() for line in result.replace("\r\n", "\n").split("\n")]
    return "\n".join(lines).strip()


def clean_url(text: str) -> str:
    """
    Clean a URL for storage.

    Absolute URLs must use an allowed scheme; relative URLs (``/path``,
    ``#anchor``, ``?query``) are kept; bare hosts get ``http://`` prepended.
    Anything else becomes the empty string.
    """
    url = _CONTROL_CHARS_RE.sub("", text).strip().replace(" ", "%20")
    if not url:
        return ""
    if url[0] in "/#?":
        return url

    try:
        parts = urlsplit(url)
    except ValueError:
        # Unbalanced IPv6 brackets and similar
        return ""
    if parts.scheme:
        if parts.scheme.lower() not in ALLOWED_URL_SCHEMES:
            # "example.com:8080/path" parses with a scheme of "example.com"
            if "." in parts.scheme and not url.lower().startswith("javascript"):
                return "http://" + url
            return ""
        return url

    if "." in url.split("/", 1)[0]:
        return "http://" + url
    return ""


def clean_email(text: str) -> str:
    """Return the address if it looks valid, else the empty string."""
    email = text.strip()
    if email and _EMAIL_RE.match(email):
        return email
    return ""


def clean_hex_color(text: str) -> str:
    """Return ``#rgb``/``#rrggbb`` colors unchanged, else the empty string."""
    color = text.strip()
    if _HEX_COLOR_RE.match(color):
        return color
    return ""


def to_absint(value: Any) -> int:
    """Absolute integer value of a submission, 0 when not numeric."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return abs(value)
    if isinstance(value, float):
        return abs(int(value)) if math.isfinite(value) else 0
    if isinstance(value, str):
        match = _LEADING_INT_RE.match(value)
        if match:
            return abs(int(match.group(1)))
    return 0
