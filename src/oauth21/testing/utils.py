"""Build an application wired to a throwaway database, for the router tests."""

from __future__ import annotations

import contextlib
from collections.abc import Iterable

from oauth21.core.settings import ServiceSettingsBase
from oauth21.db.sql.utils import BaseSQLDB

from . import ADMIN_CLIENT_ID, NATIVE_CLIENT_ID, insert_test_clients

USER_ID = "alice"
USER_TOKEN = "alice-access-token"  # noqa: S105
USER_SCOPE = "openid profile"
# Resource server allowed to introspect any token
INTROSPECTOR_ID = "resource-server"
INTROSPECTOR_TOKEN = "resource-server-access-token"  # noqa: S105


class ClientFactory:
    """Create the application once and hand out ``TestClient`` to it.

    Every ``TestClient`` context runs the lifespan of the application, hence
    starts from an empty in-memory database with the test clients and two
    bearer tokens: one for a regular user and one for a resource server
    carrying the introspection bypass scope.
    """

    def __init__(
        self,
        all_service_settings: Iterable[ServiceSettingsBase],
        enabled_systems: set[str] | None = None,
    ):
        from oauth21.routers import create_app_inner

        self.all_service_settings = list(all_service_settings)
        self.app = create_app_inner(
            enabled_systems=enabled_systems or {"oauth", ".well-known"},
            all_service_settings=self.all_service_settings,
            database_urls={"OAuthDB": "sqlite+aiosqlite:///:memory:"},
        )
        # Add create_db_schemas to the end of the lifetime_functions so that the
        # other lifetime_functions (i.e. those which run db.engine_context) have
        # already been ran
        self.app.lifetime_functions.append(self.create_db_schemas)

    @property
    def sql_dbs(self) -> list[BaseSQLDB]:
        dbs = []
        for k, v in self.app.dependency_overrides.items():
            # Ignore dependency overrides which aren't BaseSQLDB.transaction
            if getattr(k, "__func__", None) is not BaseSQLDB.transaction.__func__:
                continue
            # Overridden with partial(db_transaction, db)
            dbs.append(v.args[0])
        return dbs

    @contextlib.asynccontextmanager
    async def create_db_schemas(self):
        """Create the DB schemas and register the test clients."""
        settings = {type(s).__name__: s for s in self.all_service_settings}
        introspection_scope = settings["OAuthSettings"].introspection_bypass_scope

        for db in self.sql_dbs:
            async with db.engine.begin() as conn:
                await conn.run_sync(db.metadata.create_all)

            async with db:
                await insert_test_clients(db)
                await db.insert_access_token(
                    USER_TOKEN, NATIVE_CLIENT_ID, USER_ID, USER_SCOPE, 3600
                )
                await db.insert_access_token(
                    INTROSPECTOR_TOKEN,
                    ADMIN_CLIENT_ID,
                    INTROSPECTOR_ID,
                    introspection_scope,
                    3600,
                )

        yield

    @contextlib.contextmanager
    def unauthenticated(self):
        from fastapi.testclient import TestClient

        with TestClient(self.app) as client:
            yield client

    @contextlib.contextmanager
    def normal_user(self):
        with self.unauthenticated() as client:
            client.headers["Authorization"] = f"Bearer {USER_TOKEN}"
            yield client

    @contextlib.contextmanager
    def introspector(self):
        with self.unauthenticated() as client:
            client.headers["Authorization"] = f"Bearer {INTROSPECTOR_TOKEN}"
            yield client
