"""Device authorization grant (RFC 8628)."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy.exc import NoResultFound

from oauth21.core.models import (
    DeviceAuthorizationResponse,
    DeviceCodeCleanupReport,
    DeviceCodeState,
    DeviceCodeStatistics,
    GrantType,
    OAuthErrorCode,
    OAuthErrorResult,
    PendingDeviceAuthorization,
    TokenResponse,
)
from oauth21.core.settings import DeviceFlowSettings, OAuthSettings
from oauth21.core.state_machine import DeviceCodeStateMachine
from oauth21.core.user_code import is_valid_user_code
from oauth21.db.sql import OAuthDB

from .clients import client_from_row
from .issuance import issue_tokens
from .utils import add_query_parameters, validate_scope

logger = logging.getLogger(__name__)

INVALID_USER_CODE = "Invalid or expired code"


def device_code_state(device_code: dict[str, Any], now: datetime) -> DeviceCodeState:
    """The state of a stored device code, expiry taking precedence."""
    if device_code["ExpiresAt"] <= now:
        return DeviceCodeState.EXPIRED
    return DeviceCodeState(device_code["Status"])


async def request_device_authorization(
    client_id: str | None,
    scope: str,
    verification_uri: str,
    oauth_db: OAuthDB,
    settings: DeviceFlowSettings,
    oauth_settings: OAuthSettings | None = None,
) -> DeviceAuthorizationResponse | OAuthErrorResult:
    """Start a device flow: hand out a device code and its user code."""
    if not client_id:
        return OAuthErrorResult(
            error=OAuthErrorCode.invalid_request,
            error_description="Missing client_id parameter",
        )

    try:
        client = client_from_row(await oauth_db.get_client(client_id))
    except NoResultFound:
        logger.warning("Device authorization requested by unknown client %s", client_id)
        return OAuthErrorResult(
            error=OAuthErrorCode.invalid_client,
            error_description="Client identifier is invalid",
        )

    if GrantType.device_code not in client.grant_types:
        logger.warning("Client %s is not allowed to use the device flow", client_id)
        return OAuthErrorResult(
            error=OAuthErrorCode.unauthorized_client,
            error_description="Client is not authorized to use the device code grant",
        )

    if oauth_settings and (error := validate_scope(scope, oauth_settings)):
        return error

    user_code, device_code = await oauth_db.insert_device_code(
        client_id,
        scope,
        lifetime_seconds=settings.device_code_lifetime,
        interval=settings.polling_interval,
        user_code_length=settings.user_code_length,
        user_code_charset=settings.user_code_charset,
    )
    logger.info("Device authorization %s started for client %s", user_code, client_id)

    return {
        "device_code": device_code,
        "user_code": user_code,
        "verification_uri": verification_uri,
        "verification_uri_complete": add_query_parameters(
            verification_uri, user_code=user_code
        ),
        "expires_in": settings.device_code_lifetime,
        "interval": settings.polling_interval,
    }


async def poll_device_token(
    device_code: str,
    client_id: str,
    oauth_db: OAuthDB,
    device_settings: DeviceFlowSettings,
    oauth_settings: OAuthSettings,
) -> TokenResponse | OAuthErrorResult:
    """Token endpoint leg of the device flow.

    Every outcome but the token itself is an expected state of the flow
    and returned as an error result. Concurrent polls are arbitrated by
    the database: the poll time is compare-and-swapped and the exchange
    is a conditional delete, so a code yields at most one token.
    """
    try:
        info = await oauth_db.get_device_code(device_code)
    except NoResultFound:
        return OAuthErrorResult(
            error=OAuthErrorCode.invalid_grant,
            error_description="Invalid device code",
        )

    if info["ClientID"] != client_id:
        logger.warning(
            "Client %s polled a device code issued to %s", client_id, info["ClientID"]
        )
        return OAuthErrorResult(
            error=OAuthErrorCode.invalid_grant,
            error_description="Invalid device code",
        )

    now = datetime.now(tz=timezone.utc)
    state = device_code_state(info, now)
    if state == DeviceCodeState.EXPIRED:
        return OAuthErrorResult(
            error=OAuthErrorCode.expired_token,
            error_description="The device code has expired",
        )

    interval = info["PollingInterval"]
    last_polled_at = info["LastPolledAt"]
    # Polls which come too early are recorded as well, the interval
    # counts from the latest of them
    recorded = await oauth_db.record_device_code_poll(
        device_code, last_polled_at, polled_at=now
    )
    too_early = last_polled_at is not None and now < last_polled_at + timedelta(
        seconds=interval
    )
    if too_early or not recorded:
        return OAuthErrorResult(
            error=OAuthErrorCode.slow_down,
            error_description=(
                f"Polling too frequently. Wait {interval} seconds before next request."
            ),
        )

    if state == DeviceCodeState.PENDING:
        return OAuthErrorResult(
            error=OAuthErrorCode.authorization_pending,
            error_description="The user has not yet completed the authorization",
        )

    if state == DeviceCodeState.DENIED:
        # The code is single use, denial included
        await oauth_db.consume_device_code(device_code, DeviceCodeState.DENIED)
        return OAuthErrorResult(
            error=OAuthErrorCode.access_denied,
            error_description="The user denied the authorization request",
        )

    DeviceCodeStateMachine.validate_transition(state, DeviceCodeState.EXCHANGED)
    if not await oauth_db.consume_device_code(device_code, DeviceCodeState.APPROVED):
        # Another poll exchanged it first
        return OAuthErrorResult(
            error=OAuthErrorCode.invalid_grant,
            error_description="Invalid device code",
        )

    return await issue_tokens(
        client_id,
        info["UserIdentifier"],
        info["Scope"],
        oauth_db,
        oauth_settings,
    )


def _is_well_formed(user_code: str, settings: DeviceFlowSettings) -> bool:
    return is_valid_user_code(
        user_code, settings.user_code_length, settings.user_code_charset
    )


async def get_pending_device_authorization(
    user_code: str, oauth_db: OAuthDB, settings: DeviceFlowSettings
) -> PendingDeviceAuthorization | OAuthErrorResult:
    """What the verification page shows before asking the user for consent."""
    if not _is_well_formed(user_code, settings):
        return OAuthErrorResult(
            error=OAuthErrorCode.invalid_grant, error_description=INVALID_USER_CODE
        )

    try:
        info = await oauth_db.get_device_code_by_user_code(user_code)
    except NoResultFound:
        return OAuthErrorResult(
            error=OAuthErrorCode.invalid_grant, error_description=INVALID_USER_CODE
        )

    now = datetime.now(tz=timezone.utc)
    if device_code_state(info, now) != DeviceCodeState.PENDING:
        return OAuthErrorResult(
            error=OAuthErrorCode.invalid_grant, error_description=INVALID_USER_CODE
        )

    return {
        "user_code": user_code,
        "client_id": info["ClientID"],
        "scope": info["Scope"],
        "expires_in": int((info["ExpiresAt"] - now).total_seconds()),
    }


async def complete_device_authorization(
    user_code: str,
    user_identifier: str | None,
    approve: bool,
    oauth_db: OAuthDB,
    settings: DeviceFlowSettings,
) -> OAuthErrorResult | None:
    """Record the decision of the user for ``user_code``.

    Returns None on success. A code can only be resolved once.
    """
    if not _is_well_formed(user_code, settings):
        logger.info("Attempt to complete malformed user code %r", user_code)
        return OAuthErrorResult(
            error=OAuthErrorCode.invalid_grant, error_description=INVALID_USER_CODE
        )

    try:
        info = await oauth_db.get_device_code_by_user_code(user_code)
    except NoResultFound:
        logger.info("Attempt to complete unknown user code %s", user_code)
        return OAuthErrorResult(
            error=OAuthErrorCode.invalid_grant, error_description=INVALID_USER_CODE
        )

    state = device_code_state(info, datetime.now(tz=timezone.utc))
    target = DeviceCodeState.APPROVED if approve else DeviceCodeState.DENIED
    if not DeviceCodeStateMachine.can_transition(
        state, target
    ) or not await oauth_db.resolve_device_code(user_code, approve, user_identifier):
        logger.info("User code %s cannot be resolved from %s", user_code, state)
        return OAuthErrorResult(
            error=OAuthErrorCode.invalid_grant, error_description=INVALID_USER_CODE
        )

    logger.info(
        "User %s %s the device authorization %s for client %s",
        user_identifier,
        "approved" if approve else "denied",
        user_code,
        info["ClientID"],
    )
    return None


async def cleanup_expired_device_codes(
    oauth_db: OAuthDB, settings: DeviceFlowSettings
) -> int:
    deleted = await oauth_db.delete_expired_device_codes(settings.cleanup_batch_size)
    if deleted:
        logger.info("Deleted %d expired device codes", deleted)
    return deleted


async def cleanup_resolved_device_codes(
    oauth_db: OAuthDB, settings: DeviceFlowSettings
) -> int:
    """Drop approved or denied codes which were never picked up."""
    deleted = await oauth_db.delete_resolved_device_codes(
        settings.cleanup_retention_days, settings.cleanup_batch_size
    )
    if deleted:
        logger.info(
            "Deleted %d resolved device codes older than %d days",
            deleted,
            settings.cleanup_retention_days,
        )
    return deleted


async def perform_device_code_cleanup(
    oauth_db: OAuthDB, settings: DeviceFlowSettings
) -> DeviceCodeCleanupReport:
    """Run both sweeps. Safe to run alongside live traffic."""
    start = time.perf_counter()
    expired = await cleanup_expired_device_codes(oauth_db, settings)
    resolved = await cleanup_resolved_device_codes(oauth_db, settings)
    return {
        "expired_codes_deleted": expired,
        "resolved_codes_deleted": resolved,
        "total_deleted": expired + resolved,
        "execution_time_ms": round((time.perf_counter() - start) * 1000, 2),
    }


async def get_device_code_statistics(
    oauth_db: OAuthDB, settings: DeviceFlowSettings
) -> DeviceCodeStatistics:
    counts = await oauth_db.get_device_code_counts()
    return {
        "active": counts["active"],
        "authorized": counts["authorized"],
        "expired": counts["expired"],
        "total": counts["total"],
        "retention_days": settings.cleanup_retention_days,
        "cleanup_batch_size": settings.cleanup_batch_size,
    }
