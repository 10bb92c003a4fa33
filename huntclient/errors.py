"""Error taxonomy shared by every hunt client flow."""
from __future__ import annotations

from typing import Optional


class HuntClientError(Exception):
    """Base class for failures surfaced to the calling UI flow."""

    kind = "error"


class PermissionDenied(HuntClientError):
    kind = "permission_denied"


class Unauthenticated(HuntClientError):
    kind = "unauthenticated"


class NetworkFailure(HuntClientError):
    kind = "network_failure"

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ValidationRejected(HuntClientError):
    kind = "validation_rejected"


class CooldownActive(ValidationRejected):
    kind = "cooldown"

    def __init__(self, remaining_seconds: float) -> None:
        super().__init__(f"Please wait {remaining_seconds:.0f}s before requesting a new code")
        self.remaining_seconds = remaining_seconds


class MalformedPayload(HuntClientError):
    """Unparseable QR text or channel frame; absorbed where it is raised."""

    kind = "malformed_payload"


__all__ = [
    "HuntClientError",
    "PermissionDenied",
    "Unauthenticated",
    "NetworkFailure",
    "ValidationRejected",
    "CooldownActive",
    "MalformedPayload",
]
