"""Structlog processors used by the logging setup."""

import re
from typing import Any

# Keys whose values are credentials or personal data
SENSITIVE_PATTERNS = frozenset(
    {
        "password",
        "secret",
        "token",
        "api_key",
        "apikey",
        "authorization",
        "credential",
        "private_key",
        "jwt",
        "bearer",
    }
)

# Keys carrying a recipient address; only the tail is kept
RECIPIENT_KEYS = frozenset({"recipient", "phone_number", "email_address", "to"})

_EMAIL_RE = re.compile(r"^[^@]+(@.+)$")


def _mask_recipient(value: Any) -> Any:
    if not isinstance(value, str) or not value:
        return value
    email = _EMAIL_RE.match(value)
    if email:
        return "***" + email.group(1)
    return "***" + value[-4:] if len(value) > 4 else "***"


def mask_sensitive_data(
    mask_value: str = "***REDACTED***",
    additional_patterns: frozenset[str] | None = None,
):
    """Create a processor that masks credentials and recipient addresses.

    Keys containing any of ``SENSITIVE_PATTERNS`` (case-insensitive) are
    replaced with ``mask_value``. Recipient keys keep only the email domain
    or the last four characters of a phone number or device token.
    """
    patterns = SENSITIVE_PATTERNS
    if additional_patterns:
        patterns = patterns | additional_patterns

    def processor(
        logger: Any, method_name: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        masked: dict[str, Any] = {}
        for key, value in event_dict.items():
            key_lower = key.lower()
            if key_lower in RECIPIENT_KEYS:
                masked[key] = _mask_recipient(value)
            elif value is not None and any(p in key_lower for p in patterns):
                masked[key] = mask_value
            else:
                masked[key] = value
        return masked

    return processor


def truncate_large_values(max_length: int = 500):
    """Create a processor that truncates overly large string values."""

    def processor(
        logger: Any, method_name: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        for key, value in event_dict.items():
            if isinstance(value, str) and len(value) > max_length:
                event_dict[key] = (
                    value[:max_length] + f"...[truncated, {len(value)} chars total]"
                )
        return event_dict

    return processor


def add_environment_info(environment: str):
    """Create a processor that adds the environment name to log entries."""

    def processor(
        logger: Any, method_name: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        event_dict["environment"] = environment
        return event_dict

    return processor
