"""Verification URI of the device flow, where the user enters the user code.

Rendering a page is left to a frontend: these routes expose what it
needs, for a user authenticated with a bearer access token.
"""

from __future__ import annotations

from typing import Annotated, Literal

from fastapi import Form

from oauth21.core.models import (
    DeviceCodeState,
    OAuthErrorResult,
    PendingDeviceAuthorization,
)
from oauth21.logic.device_flow import (
    complete_device_authorization as complete_device_authorization_bl,
)
from oauth21.logic.device_flow import (
    get_pending_device_authorization as get_pending_device_authorization_bl,
)

from ..dependencies import DeviceFlowSettings, OAuthDB
from ..fastapi_classes import OAuth21Router
from ..utils.responses import oauth_error_response
from ..utils.users import AuthorizedUser

router = OAuth21Router()


@router.get("/device")
async def get_device_verification(
    user_code: str,
    user_info: AuthorizedUser,
    oauth_db: OAuthDB,
    settings: DeviceFlowSettings,
) -> PendingDeviceAuthorization:
    """Which client asks for which scope, for the user to decide."""
    result = await get_pending_device_authorization_bl(user_code, oauth_db, settings)
    if isinstance(result, OAuthErrorResult):
        return oauth_error_response(result)  # type: ignore[return-value]
    return result


@router.post("/device")
async def complete_device_verification(
    user_code: Annotated[str, Form(description="User code shown on the device")],
    action: Annotated[
        Literal["approve", "deny"], Form(description="Decision of the user")
    ],
    user_info: AuthorizedUser,
    oauth_db: OAuthDB,
    settings: DeviceFlowSettings,
) -> dict[str, str]:
    approve = action == "approve"
    error = await complete_device_authorization_bl(
        user_code, user_info.sub, approve, oauth_db, settings
    )
    if error:
        return oauth_error_response(error)  # type: ignore[return-value]
    return {
        "status": DeviceCodeState.APPROVED if approve else DeviceCodeState.DENIED
    }
