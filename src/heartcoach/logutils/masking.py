"""Masking of credentials and journal content in log output.

Students write about their feelings; that text is treated like a password
and never written to logs in full.
"""

from __future__ import annotations

import re
from typing import Any

MASK = "***MASKED***"

SENSITIVE_PATTERNS: dict[str, re.Pattern[str]] = {
    "password_param": re.compile(
        r'(["\']?password["\']?\s*[:=]\s*)["\']?[^"\'\s,}\]]+["\']?', re.IGNORECASE
    ),
    "api_key_param": re.compile(
        r'(["\']?api[_-]?key["\']?\s*[:=]\s*)["\']?[a-zA-Z0-9_\-]+["\']?', re.IGNORECASE
    ),
    # Anthropic keys wherever they appear
    "anthropic_key": re.compile(r"sk-ant-[a-zA-Z0-9_\-]+"),
    "password_hash": re.compile(r"pbkdf2_sha256\$\d+\$[0-9a-f]+\$[0-9a-f]+"),
}

SENSITIVE_KEYWORDS: set[str] = {
    "password",
    "passwd",
    "hash",
    "secret",
    "token",
    "api_key",
    "apikey",
    "credential",
    "authorization",
}

# Free text written by or to a student
JOURNAL_TEXT_KEYS: set[str] = {"text", "message", "messages", "transcript", "user_input"}


def mask_sensitive_string(text: str) -> str:
    """Mask credentials embedded in a string.

    Args:
        text: The text to mask

    Returns:
        Text with sensitive values replaced by MASK
    """
    if not text:
        return text

    result = text
    for name, pattern in SENSITIVE_PATTERNS.items():
        if name in ("password_param", "api_key_param"):
            result = pattern.sub(r"\g<1>" + MASK, result)
        else:
            result = pattern.sub(MASK, result)
    return result


def redact_journal_text(text: str, keep: int = 12) -> str:
    """Shorten student-written text to a prefix plus its length."""
    if len(text) <= keep:
        return f"<{len(text)} chars>"
    return f"{text[:keep]}... <{len(text)} chars>"


def is_sensitive_key(key: str) -> bool:
    """Check if a key name indicates sensitive data."""
    lower_key = key.lower()
    return any(keyword in lower_key for keyword in SENSITIVE_KEYWORDS)


def mask_dict(data: dict[str, Any], depth: int = 0, max_depth: int = 8) -> dict[str, Any]:
    """Recursively mask sensitive values in a dictionary.

    Args:
        data: Dictionary to mask
        depth: Current recursion depth
        max_depth: Maximum recursion depth

    Returns:
        Dictionary with sensitive values masked and journal text redacted
    """
    if depth >= max_depth:
        return data

    result: dict[str, Any] = {}
    for key, value in data.items():
        lower_key = key.lower()
        if is_sensitive_key(key):
            result[key] = MASK
        elif lower_key in JOURNAL_TEXT_KEYS and isinstance(value, str):
            result[key] = redact_journal_text(value)
        elif lower_key in JOURNAL_TEXT_KEYS and isinstance(value, list):
            result[key] = f"<{len(value)} items>"
        elif isinstance(value, dict):
            result[key] = mask_dict(value, depth + 1, max_depth)
        elif isinstance(value, list):
            result[key] = [
                mask_dict(item, depth + 1, max_depth) if isinstance(item, dict) else item
                for item in value
            ]
        elif isinstance(value, str):
            result[key] = mask_sensitive_string(value)
        else:
            result[key] = value

    return result
