"""Error message sanitization to prevent credential leakage."""

from __future__ import annotations

import os
import re


def sanitize_error(message: str) -> str:
    """Redact tokens and home paths from text that may reach a user."""
    if not message:
        return message

    sanitized = message
    sanitized = re.sub(r"Bearer\s+\S+", "Bearer [REDACTED]", sanitized)
    sanitized = re.sub(r"Authorization:\s*\S+", "Authorization: [REDACTED]", sanitized, flags=re.IGNORECASE)
    sanitized = re.sub(r"(api[_-]?token|api[_-]?key)([\"']?\s*[:=]\s*[\"']?)[^\s\"',}]+", r"\1\2[REDACTED]", sanitized, flags=re.IGNORECASE)
    sanitized = re.sub(r"sk-[a-zA-Z0-9_-]{20,}", "[REDACTED_KEY]", sanitized)

    home = os.environ.get("USERPROFILE") or os.environ.get("HOME") or ""
    if home and home != "/":
        sanitized = sanitized.replace(home, "[USER_HOME]")

    return sanitized
