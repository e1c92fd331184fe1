from __future__ import annotations

__all__ = [
    "utcnow",
    "Column",
    "NullColumn",
    "DateNowColumn",
    "BaseSQLDB",
    "EnumBackedBool",
    "EnumColumn",
    "SmarterDateTime",
    "substract_date",
    "hash",
    "SQLDBUnavailableError",
]

from .base import BaseSQLDB, SQLDBUnavailableError
from .functions import hash, substract_date, utcnow
from .types import (
    Column,
    DateNowColumn,
    EnumBackedBool,
    EnumColumn,
    NullColumn,
    SmarterDateTime,
)
