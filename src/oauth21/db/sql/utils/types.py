from __future__ import annotations

from datetime import datetime, timezone
from functools import partial

import sqlalchemy.types as types
from sqlalchemy import Column as RawColumn
from sqlalchemy import DateTime, Enum
from sqlalchemy.dialects import mysql

from .functions import utcnow

Column: partial[RawColumn] = partial(RawColumn, nullable=False)
NullColumn: partial[RawColumn] = partial(RawColumn, nullable=True)
DateNowColumn = partial(Column, type_=DateTime(timezone=True), server_default=utcnow())

# Backends without a timezone aware DATETIME store naive UTC
NAIVE_DIALECTS = frozenset({"sqlite", "mysql"})


def EnumColumn(name, enum_type, **kwargs):  # noqa: N802
    return Column(name, Enum(enum_type, native_enum=False, length=16), **kwargs)


class EnumBackedBool(types.TypeDecorator):
    """Store booleans as the strings "True" and "False"."""

    impl = types.Enum("True", "False", name="enum_backed_bool")
    cache_ok = True

    def process_bind_param(self, value, dialect) -> str:
        if not isinstance(value, bool):
            raise NotImplementedError(value, dialect)
        return str(value)

    def process_result_value(self, value, dialect) -> bool:
        if value not in ("True", "False"):
            raise NotImplementedError(f"Unknown {value=}")
        return value == "True"


class SmarterDateTime(types.TypeDecorator):
    """A DateTime which only accepts and always returns aware UTC datetimes.

    Expiry checks compare stored values with ``datetime.now(tz=timezone.utc)``,
    either in Python or bound in a query. Naive datetimes are refused so
    that both sides of such comparisons are always UTC.
    """

    impl = DateTime()
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(DateTime(timezone=True))
        if dialect.name == "mysql":
            # DATETIME drops the microseconds by default
            return dialect.type_descriptor(mysql.DATETIME(fsp=6))
        return dialect.type_descriptor(DateTime())

    @staticmethod
    def _stored_naive(dialect) -> bool:
        if dialect.name == "postgresql":
            return False
        if dialect.name in NAIVE_DIALECTS:
            return True
        raise NotImplementedError(dialect.name)

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, str):
            try:
                value = datetime.fromisoformat(value)
            except ValueError as err:
                raise ValueError(f"Unable to parse datetime string: {value}") from err
        if not isinstance(value, datetime):
            raise ValueError(f"Expected datetime or ISO8601 string, but got {value!r}")
        if not value.tzinfo:
            raise ValueError(
                f"Provided timestamp {value=} has no tzinfo,"
                " always use e.g. datetime.now(tz=timezone.utc)"
            )

        value = value.astimezone(timezone.utc)
        if self._stored_naive(dialect):
            value = value.replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if not isinstance(value, datetime):
            raise NotImplementedError(f"{value=} not a datetime object")

        if self._stored_naive(dialect):
            if value.tzinfo is not None:
                raise ValueError(
                    f"Expected a naive datetime from {dialect.name=}, got {value=}"
                )
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
