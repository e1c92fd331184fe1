from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Callable
from typing import Any

from fastapi import APIRouter, FastAPI
from fastapi.routing import APIRoute


def _operation_id(route: APIRoute) -> str:
    return f"{route.tags[0]}_{route.name}" if route.tags else route.name


class OAuth21FastAPI(FastAPI):
    """FastAPI application whose lifespan enters ``lifetime_functions``.

    Each entry is a callable returning an async context manager: the DB
    engines, the settings' own ``lifetime_function``, and in the tests the
    schema creation. They are all entered at startup and exited in reverse
    order at shutdown.
    """

    lifetime_functions: list[Callable[[], contextlib.AbstractAsyncContextManager[Any]]]

    def __init__(self):
        @contextlib.asynccontextmanager
        async def lifespan(app: OAuth21FastAPI):
            async with contextlib.AsyncExitStack() as stack:
                await asyncio.gather(
                    *(stack.enter_async_context(f()) for f in app.lifetime_functions)
                )
                yield

        self.lifetime_functions = []
        super().__init__(
            generate_unique_id_function=_operation_id,
            title="OAuth 2.1 authorization server",
            lifespan=lifespan,
            openapi_url="/api/openapi.json",
            docs_url="/api/docs",
        )


class OAuth21Router(APIRouter):
    """Router mounted by the application factory under ``<path_root>/<system>``."""

    def __init__(
        self,
        *,
        dependencies=None,
        include_in_schema: bool = True,
        path_root: str = "",
    ):
        super().__init__(dependencies=dependencies, include_in_schema=include_in_schema)
        self.oauth21_path_root = path_root
