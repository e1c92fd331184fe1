from __future__ import annotations

from ..fastapi_classes import OAuth21Router
from .authorize import router as authorize_router
from .device_authorization import router as device_authorization_router
from .device_verification import router as device_verification_router
from .introspection import router as introspection_router
from .revocation import router as revocation_router
from .token import router as token_router

router = OAuth21Router()
router.include_router(device_authorization_router)
router.include_router(device_verification_router)
router.include_router(authorize_router)
router.include_router(token_router)
router.include_router(revocation_router)
router.include_router(introspection_router)

__all__ = ["router"]
