from __future__ import annotations

from typing import Any

from fastapi.responses import JSONResponse

from oauth21.core.models import OAuthErrorResult

# RFC 6749 §5.1
NO_CACHE_HEADERS = {"Cache-Control": "no-store", "Pragma": "no-cache"}


def oauth_error_response(
    result: OAuthErrorResult, headers: dict[str, str] | None = None
) -> JSONResponse:
    """Render a protocol error.

    Flow errors are returned rather than raised: raising would roll back
    the state changes they come with (recorded poll, consumed code...).
    """
    return JSONResponse(
        status_code=result.status_code,
        content=result.to_response(),
        headers=headers,
    )


def no_cache_response(content: Any) -> JSONResponse:
    return JSONResponse(content=content, headers=NO_CACHE_HEADERS)
