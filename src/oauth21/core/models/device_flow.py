from __future__ import annotations

from enum import StrEnum

from typing_extensions import TypedDict


class DeviceCodeState(StrEnum):
    """Lifecycle of a device code (RFC 8628).

    Only PENDING, APPROVED and DENIED are ever stored: an exchanged code
    is deleted and expiry is derived from the expiration timestamp.
    """

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    DENIED = "DENIED"
    EXCHANGED = "EXCHANGED"
    EXPIRED = "EXPIRED"


class DeviceAuthorizationResponse(TypedDict):
    """Response of the device authorization endpoint (RFC 8628 §3.2)."""

    device_code: str
    user_code: str
    verification_uri: str
    verification_uri_complete: str
    expires_in: int
    interval: int


class PendingDeviceAuthorization(TypedDict):
    """What the verification page needs to ask the user for consent."""

    user_code: str
    client_id: str
    scope: str
    expires_in: int


class DeviceCodeStatistics(TypedDict):
    active: int
    authorized: int
    expired: int
    total: int
    retention_days: int
    cleanup_batch_size: int


class DeviceCodeCleanupReport(TypedDict):
    expired_codes_deleted: int
    resolved_codes_deleted: int
    total_deleted: int
    execution_time_ms: float
