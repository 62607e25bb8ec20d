"""
Per-request caller identity used to tag telemetry events.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass

USER_ID_HEADER = "X-User-Id"
CORRELATION_ID_HEADER = "Request-Id"
ANONYMOUS_USER = "anonymous"


@dataclass(frozen=True)
class RequestContext:
    """Who made the request and which correlation id ties its events together."""

    user_id: str
    correlation_id: str

    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> RequestContext:
        """
        Build from request headers.

        Missing X-User-Id falls back to "anonymous"; a missing Request-Id
        gets a freshly generated UUID.
        """
        user_id = headers.get(USER_ID_HEADER) or headers.get(USER_ID_HEADER.lower())
        correlation_id = headers.get(CORRELATION_ID_HEADER) or headers.get(
            CORRELATION_ID_HEADER.lower()
        )
        return cls(
            user_id=user_id or ANONYMOUS_USER,
            correlation_id=correlation_id or str(uuid.uuid4()),
        )

    def to_properties(self) -> dict[str, str]:
        return {"userId": self.user_id, "correlationId": self.correlation_id}
