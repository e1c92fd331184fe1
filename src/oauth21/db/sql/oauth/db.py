from __future__ import annotations

import secrets
from collections.abc import Iterable
from contextlib import AbstractAsyncContextManager, nullcontext
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.exc import IntegrityError, NoResultFound
from uuid_utils import uuid7

from oauth21.core.exceptions import UserCodeGenerationError
from oauth21.core.models import DeviceCodeState, TokenTypeHint
from oauth21.core.user_code import (
    MAX_GENERATION_ATTEMPTS,
    format_user_code,
    generate_user_code,
    normalize_user_code,
)
from oauth21.db.sql.utils import BaseSQLDB, hash, substract_date

from .schema import (
    AccessTokens,
    AuthorizationCodes,
    Clients,
    DeviceCodes,
    RefreshTokens,
)
from .schema import Base as OAuthDBBase

TOKEN_TABLES = {
    TokenTypeHint.access_token: AccessTokens,
    TokenTypeHint.refresh_token: RefreshTokens,
}


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


class OAuthDB(BaseSQLDB):
    """Client, device code and token stores.

    Lookup methods return the row as a dict keyed by column name and raise
    ``sqlalchemy.exc.NoResultFound`` when nothing matches. Methods which
    perform a guarded state change return whether the row was changed, the
    rowcount being the arbiter between concurrent requests.
    """

    metadata = OAuthDBBase.metadata

    def _savepoint(self) -> AbstractAsyncContextManager[Any]:
        """Isolate a statement which may fail, so the transaction survives it.

        PostgreSQL aborts the whole transaction on an error. pysqlite does
        not begin a transaction before a SAVEPOINT, and SQLite only rolls
        back the failed statement anyway.
        """
        if self.conn.dialect.name == "sqlite":
            return nullcontext()
        return self.conn.begin_nested()

    ##########
    # Clients
    ##########

    async def insert_client(
        self,
        client_id: str,
        *,
        secret: str | None = None,
        redirect_uris: Iterable[str] = (),
        grant_types: Iterable[str] = (),
        enhanced_pkce_disabled: bool = False,
    ) -> None:
        """Register a client. Clients with a secret are confidential."""
        stmt = insert(Clients).values(
            client_id=client_id,
            secret_hash=hash(secret) if secret else None,
            is_confidential=secret is not None,
            redirect_uris=list(redirect_uris),
            grant_types=list(grant_types),
            enhanced_pkce_disabled=enhanced_pkce_disabled,
        )
        await self.conn.execute(stmt)

    async def get_client(self, client_id: str) -> dict[str, Any]:
        """:raises: NoResultFound"""
        stmt = select(Clients).where(Clients.client_id == client_id)
        return dict((await self.conn.execute(stmt)).one()._mapping)

    ###############
    # Device codes
    ###############

    async def insert_device_code(
        self,
        client_id: str,
        scope: str,
        *,
        lifetime_seconds: int,
        interval: int,
        user_code_length: int,
        user_code_charset: str,
    ) -> tuple[str, str]:
        """Insert a new device code and return ``(user_code, device_code)``.

        The unique constraint on the user code is what guarantees
        uniqueness, the loop only retries on collisions.

        :raises: UserCodeGenerationError
        """
        # 32 random bytes, base64url encoded
        device_code = secrets.token_urlsafe(32)
        now = _now()
        for _ in range(MAX_GENERATION_ATTEMPTS):
            user_code = generate_user_code(user_code_length, user_code_charset)
            stmt = insert(DeviceCodes).values(
                device_code=hash(device_code),
                user_code=user_code,
                client_id=client_id,
                scope=scope,
                status=DeviceCodeState.PENDING,
                creation_time=now,
                expires_at=now + timedelta(seconds=lifetime_seconds),
                interval=interval,
            )
            try:
                async with self._savepoint():
                    await self.conn.execute(stmt)
            except IntegrityError:
                continue

            return format_user_code(user_code), device_code

        raise UserCodeGenerationError(
            "Unable to generate unique user code after maximum attempts"
        )

    async def get_device_code(self, device_code: str) -> dict[str, Any]:
        """:raises: NoResultFound"""
        # The with_for_update
        # prevents that the code is exchanged
        # multiple time concurrently
        stmt = select(DeviceCodes).with_for_update()
        stmt = stmt.where(DeviceCodes.device_code == hash(device_code))
        return dict((await self.conn.execute(stmt)).one()._mapping)

    async def get_device_code_by_user_code(self, user_code: str) -> dict[str, Any]:
        """:raises: NoResultFound"""
        stmt = select(DeviceCodes).where(
            DeviceCodes.user_code == normalize_user_code(user_code)
        )
        return dict((await self.conn.execute(stmt)).one()._mapping)

    async def record_device_code_poll(
        self,
        device_code: str,
        previous_poll: datetime | None,
        polled_at: datetime | None = None,
    ) -> bool:
        """Compare-and-swap the time of the last poll.

        ``previous_poll`` must be the value read from the store. Returns
        False if another poll updated it since, or if the code no longer
        exists.
        """
        if polled_at is None:
            polled_at = _now()
        stmt = update(DeviceCodes).where(
            DeviceCodes.device_code == hash(device_code)
        )
        if previous_poll is None:
            stmt = stmt.where(DeviceCodes.last_polled_at.is_(None))
        else:
            stmt = stmt.where(DeviceCodes.last_polled_at == previous_poll)
        res = await self.conn.execute(stmt.values(last_polled_at=polled_at))
        return res.rowcount == 1

    async def resolve_device_code(
        self, user_code: str, approved: bool, user_identifier: str | None
    ) -> bool:
        """Record the decision of the user on a pending, unexpired code."""
        now = _now()
        stmt = (
            update(DeviceCodes)
            .where(
                DeviceCodes.user_code == normalize_user_code(user_code),
                DeviceCodes.status == DeviceCodeState.PENDING,
                DeviceCodes.expires_at > now,
            )
            .values(
                status=(
                    DeviceCodeState.APPROVED if approved else DeviceCodeState.DENIED
                ),
                user_identifier=user_identifier if approved else None,
                resolution_time=now,
            )
        )
        res = await self.conn.execute(stmt)
        return res.rowcount == 1

    async def consume_device_code(
        self, device_code: str, status: DeviceCodeState
    ) -> bool:
        """Delete the code if it is still in ``status``.

        Only one of several concurrent callers gets True.
        """
        stmt = delete(DeviceCodes).where(
            DeviceCodes.device_code == hash(device_code),
            DeviceCodes.status == status,
        )
        res = await self.conn.execute(stmt)
        return res.rowcount == 1

    async def delete_expired_device_codes(self, batch_size: int) -> int:
        """Delete expired codes, whatever their status."""
        total = 0
        while True:
            now = _now()
            to_delete = (
                (
                    await self.conn.execute(
                        select(DeviceCodes.device_code)
                        .where(DeviceCodes.expires_at < now)
                        .limit(batch_size)
                    )
                )
                .scalars()
                .all()
            )
            if not to_delete:
                break
            # Only delete rows which are still expired
            res = await self.conn.execute(
                delete(DeviceCodes).where(
                    DeviceCodes.device_code.in_(to_delete),
                    DeviceCodes.expires_at < now,
                )
            )
            total += res.rowcount
            if len(to_delete) < batch_size:
                break
        return total

    async def delete_resolved_device_codes(
        self, retention_days: int, batch_size: int
    ) -> int:
        """Delete approved or denied codes older than the retention window."""
        resolved = (DeviceCodeState.APPROVED, DeviceCodeState.DENIED)
        total = 0
        while True:
            cutoff = substract_date(days=retention_days)
            to_delete = (
                (
                    await self.conn.execute(
                        select(DeviceCodes.device_code)
                        .where(
                            DeviceCodes.status.in_(resolved),
                            DeviceCodes.creation_time < cutoff,
                        )
                        .limit(batch_size)
                    )
                )
                .scalars()
                .all()
            )
            if not to_delete:
                break
            res = await self.conn.execute(
                delete(DeviceCodes).where(
                    DeviceCodes.device_code.in_(to_delete),
                    DeviceCodes.status.in_(resolved),
                    DeviceCodes.creation_time < cutoff,
                )
            )
            total += res.rowcount
            if len(to_delete) < batch_size:
                break
        return total

    async def get_device_code_counts(self) -> dict[str, int]:
        now = _now()
        count = select(func.count()).select_from(DeviceCodes)
        return {
            "active": await self.conn.scalar(
                count.where(
                    DeviceCodes.status == DeviceCodeState.PENDING,
                    DeviceCodes.expires_at > now,
                )
            ),
            "authorized": await self.conn.scalar(
                count.where(DeviceCodes.status == DeviceCodeState.APPROVED)
            ),
            "expired": await self.conn.scalar(
                count.where(DeviceCodes.expires_at <= now)
            ),
            "total": await self.conn.scalar(count),
        }

    ######################
    # Authorization codes
    ######################

    async def insert_authorization_code(
        self,
        client_id: str,
        user_id: str,
        redirect_uri: str,
        scope: str,
        code_challenge: str | None,
        code_challenge_method: str | None,
        lifetime_seconds: int,
    ) -> str:
        code = secrets.token_urlsafe(32)
        now = _now()
        stmt = insert(AuthorizationCodes).values(
            code=hash(code),
            client_id=client_id,
            user_id=user_id,
            redirect_uri=redirect_uri,
            scope=scope,
            code_challenge=code_challenge,
            code_challenge_method=code_challenge_method,
            creation_time=now,
            expires_at=now + timedelta(seconds=lifetime_seconds),
        )
        await self.conn.execute(stmt)
        return code

    async def consume_authorization_code(self, code: str) -> dict[str, Any]:
        """Fetch and delete an authorization code, it can only be used once.

        :raises: NoResultFound
        """
        stmt = select(AuthorizationCodes).with_for_update()
        stmt = stmt.where(AuthorizationCodes.code == hash(code))
        info = dict((await self.conn.execute(stmt)).one()._mapping)

        res = await self.conn.execute(
            delete(AuthorizationCodes).where(AuthorizationCodes.code == hash(code))
        )
        if res.rowcount != 1:
            # Someone else consumed it in the meantime
            raise NoResultFound("Authorization code already used")
        return info

    #########
    # Tokens
    #########

    async def insert_access_token(
        self,
        token: str,
        client_id: str,
        user_id: str | None,
        scope: str,
        lifetime_seconds: int,
    ) -> str:
        """Store the hash of an access token and return its jti."""
        jti = str(uuid7())
        now = _now()
        stmt = insert(AccessTokens).values(
            jti=jti,
            token_hash=hash(token),
            client_id=client_id,
            user_id=user_id,
            scope=scope,
            creation_time=now,
            expires_at=now + timedelta(seconds=lifetime_seconds),
            revoked=False,
        )
        await self.conn.execute(stmt)
        return jti

    async def insert_refresh_token(
        self,
        token: str,
        client_id: str,
        user_id: str | None,
        scope: str,
        lifetime_seconds: int,
        access_token_jti: str | None = None,
    ) -> str:
        """Store the hash of a refresh token and return its jti."""
        jti = str(uuid7())
        now = _now()
        stmt = insert(RefreshTokens).values(
            jti=jti,
            token_hash=hash(token),
            access_token_jti=access_token_jti,
            client_id=client_id,
            user_id=user_id,
            scope=scope,
            creation_time=now,
            expires_at=now + timedelta(seconds=lifetime_seconds),
            revoked=False,
        )
        await self.conn.execute(stmt)
        return jti

    async def get_token(
        self, token: str, token_type: TokenTypeHint
    ) -> dict[str, Any]:
        """Look a token up by value.

        :raises: NoResultFound
        """
        table = TOKEN_TABLES[token_type]
        stmt = select(table).where(table.token_hash == hash(token))
        return dict((await self.conn.execute(stmt)).one()._mapping)

    async def revoke_token(self, token_type: TokenTypeHint, jti: str) -> bool:
        """Mark a token as revoked. False if it already was."""
        table = TOKEN_TABLES[token_type]
        stmt = (
            update(table)
            .where(table.jti == jti, table.revoked == False)  # noqa: E712
            .values(revoked=True)
        )
        res = await self.conn.execute(stmt)
        return res.rowcount == 1
