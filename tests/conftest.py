from __future__ import annotations

from collections.abc import AsyncGenerator, Generator

import freezegun
import pytest

from oauth21.core.settings import (
    DeviceFlowSettings,
    MetadataSettings,
    OAuthSettings,
    PkceSettings,
)
from oauth21.db.sql import OAuthDB
from oauth21.testing import ADMIN_CLIENT_ID, ISSUER, insert_test_clients


@pytest.fixture
async def oauth_db() -> AsyncGenerator[OAuthDB, None]:
    oauth_db = OAuthDB("sqlite+aiosqlite:///:memory:")
    async with oauth_db.engine_context():
        async with oauth_db.engine.begin() as conn:
            await conn.run_sync(oauth_db.metadata.create_all)
        yield oauth_db


@pytest.fixture
async def file_oauth_db(tmp_path) -> AsyncGenerator[OAuthDB, None]:
    """A file backed DB, for tests which need several connections at once.

    The in-memory DB shares a single connection between all transactions.
    """
    oauth_db = OAuthDB(f"sqlite+aiosqlite:///{tmp_path / 'oauth.db'}")
    async with oauth_db.engine_context():
        async with oauth_db.engine.begin() as conn:
            await conn.run_sync(oauth_db.metadata.create_all)
        yield oauth_db


@pytest.fixture
async def with_clients(oauth_db: OAuthDB) -> OAuthDB:
    async with oauth_db as db:
        await insert_test_clients(db)
    return oauth_db


@pytest.fixture()
def frozen_time() -> Generator[freezegun.api.FrozenDateTimeFactory, None]:
    with freezegun.freeze_time("2012-01-14") as ft:
        yield ft


@pytest.fixture
def oauth_settings() -> OAuthSettings:
    return OAuthSettings(
        issuer=ISSUER,
        revocation_bypass_client_ids={ADMIN_CLIENT_ID},
    )


@pytest.fixture
def pkce_settings() -> PkceSettings:
    return PkceSettings()


@pytest.fixture
def device_settings() -> DeviceFlowSettings:
    return DeviceFlowSettings()


@pytest.fixture
def metadata_settings() -> MetadataSettings:
    return MetadataSettings()
