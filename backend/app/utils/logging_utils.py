"""Logging utilities for PII redaction."""

import hashlib
from typing import Optional


def redact_email(email: Optional[str]) -> str:
    """
    Redact an email address for logging while keeping it distinguishable.

    Examples:
        >>> redact_email("tenant@example.com")
        't***@example.com'
        >>> redact_email(None)
        'N/A'
    """
    if not email:
        return "N/A"

    try:
        local, domain = email.split("@", 1)
    except ValueError:
        return f"hash:{_short_hash(email)}"

    # Local parts this short are too identifying even when masked
    if len(local) < 3:
        return f"hash:{_short_hash(email)}@{domain}"

    return f"{local[0]}***@{domain}"


def redact_ip(ip_address: Optional[str]) -> str:
    """
    Redact the host part of an IP address.

    Examples:
        >>> redact_ip("192.168.1.100")
        '192.168.1.***'
    """
    if not ip_address:
        return "N/A"

    if "." in ip_address:
        parts = ip_address.split(".")
        if len(parts) == 4:
            return f"{parts[0]}.{parts[1]}.{parts[2]}.***"

    if ":" in ip_address:
        parts = ip_address.split(":")
        if len(parts) >= 4:
            return ":".join(parts[:3]) + ":***"

    return f"hash:{_short_hash(ip_address)}"


def _short_hash(value: str) -> str:
    return hashlib.sha256(value.encode()).hexdigest()[:6]
