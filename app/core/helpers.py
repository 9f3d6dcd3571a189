"""
Small request and string helpers with no domain knowledge.

Usage:
    from core.helpers import digits_only, get_client_ip

    digits_only("123.456.789-09")  # "12345678909"
    get_client_ip(request)         # "203.0.113.7"
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from django.http import HttpRequest


_NON_DIGITS = re.compile(r"\D")


def digits_only(value: str | None) -> str:
    """Strip punctuation and whitespace, keeping only 0-9. None gives ""."""
    if not value:
        return ""
    return _NON_DIGITS.sub("", str(value))


def get_client_ip(request: HttpRequest) -> str:
    """
    Best-effort caller address for audit logs.

    Behind the load balancer the left-most X-Forwarded-For entry is the
    original client; without the header REMOTE_ADDR is used.
    """
    forwarded = request.META.get("HTTP_X_FORWARDED_FOR", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.META.get("REMOTE_ADDR", "")
