"""
Platform adapter interface.

Adapters recognize a platform's native webhook envelope and convert it into
the canonical payload the ingestion pipeline understands.
"""

from __future__ import annotations

import hmac
from abc import ABC, abstractmethod
from typing import Any, Optional

WEBHOOK_SECRET_HEADER = "X-Webhook-Secret"


class BasePlatformAdapter(ABC):
    """Contract for platform adapters. New platforms implement this interface."""

    name: str = "base"

    @abstractmethod
    def matches(self, raw_payload: Any) -> bool:
        """Return True if raw_payload is in this platform's native format."""
        ...

    @abstractmethod
    def parse_webhook(self, raw_payload: dict[str, Any]) -> dict[str, Any]:
        """Convert the native payload into the canonical shape. Raise ValueError if invalid."""
        ...

    def verify_webhook(
        self, secret: Optional[str], request_headers: Optional[dict[str, str]] = None
    ) -> bool:
        """
        Compare the shared-secret header against the configured secret.
        Return True if valid or verification not required; False to reject.
        """
        if not secret:
            return True
        request_headers = request_headers or {}
        header_lower = WEBHOOK_SECRET_HEADER.lower()
        actual = None
        for key, value in request_headers.items():
            if key.lower() == header_lower:
                actual = value
                break
        return actual is not None and hmac.compare_digest(actual, secret)
