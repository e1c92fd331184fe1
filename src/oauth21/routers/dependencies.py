from __future__ import annotations

__all__ = (
    "OAuthDB",
    "DeviceFlowSettings",
    "MetadataSettings",
    "OAuthSettings",
    "PkceSettings",
    "add_settings_annotation",
)

from functools import partial
from typing import Annotated, TypeVar

from fastapi import Depends

from oauth21.core.settings import DeviceFlowSettings as _DeviceFlowSettings
from oauth21.core.settings import MetadataSettings as _MetadataSettings
from oauth21.core.settings import OAuthSettings as _OAuthSettings
from oauth21.core.settings import PkceSettings as _PkceSettings
from oauth21.db.sql import OAuthDB as _OAuthDB

T = TypeVar("T")

# Use scope="function" so the transaction is committed before the response is sent
DBDepends = partial(Depends, scope="function")


def add_settings_annotation(cls: T) -> T:
    """Add a `Depends` annotation to a class that has a `create` classmethod."""
    return Annotated[cls, Depends(cls.create)]  # type: ignore


# Databases
OAuthDB = Annotated[_OAuthDB, DBDepends(_OAuthDB.transaction)]

# Settings
OAuthSettings = add_settings_annotation(_OAuthSettings)
PkceSettings = add_settings_annotation(_PkceSettings)
DeviceFlowSettings = add_settings_annotation(_DeviceFlowSettings)
MetadataSettings = add_settings_annotation(_MetadataSettings)
