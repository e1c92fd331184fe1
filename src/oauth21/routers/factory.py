"""Assemble the FastAPI application from the installed routers, settings and DBs."""

from __future__ import annotations

import inspect
import logging
import os
from collections.abc import AsyncGenerator, Awaitable, Callable, Iterable
from functools import partial
from logging import Formatter, StreamHandler
from typing import TypeVar, cast

import dotenv
from cachetools import TTLCache
from fastapi import APIRouter, Request, status
from fastapi.dependencies.models import Dependant
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from fastapi.routing import APIRoute
from pydantic import TypeAdapter
from uvicorn.logging import AccessFormatter, DefaultFormatter

from oauth21.core.exceptions import OAuth21Error, OAuth21HttpResponseError
from oauth21.core.extensions import select_from_group
from oauth21.core.settings import ServiceSettingsBase
from oauth21.core.utils import dotenv_files_from_environment
from oauth21.db.exceptions import DBUnavailableError
from oauth21.db.sql.utils import BaseSQLDB

from .fastapi_classes import OAuth21FastAPI

T = TypeVar("T")
T2 = TypeVar("T2", bound=BaseSQLDB)

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
# Seconds a client is told to wait when the storage is down
RETRY_AFTER_SECONDS = 10

logger = logging.getLogger(__name__)
logger_422 = logger.getChild("debug.422.errors")

HandlerSignature = Callable[[Request, Exception], Response | Awaitable[Response]]


def _prefix_uvicorn_formatter(logger_name: str, formatter_class) -> None:
    uvicorn_logger = logging.getLogger(logger_name)
    # No handler when not started by uvicorn, e.g. in tests
    if not uvicorn_logger.handlers:
        return
    previous_fmt = uvicorn_logger.handlers[0].formatter._fmt
    uvicorn_logger.handlers[0].setFormatter(
        formatter_class(f"%(asctime)s - {previous_fmt}")
    )


def configure_logger():
    """Log the ``oauth21`` loggers to the console, and timestamp uvicorn's output.

    uvicorn installs its own handlers on the ``uvicorn`` loggers, so
    configuring the root logger would not be enough.
    """
    oauth21_logger = logging.getLogger("oauth21")
    if not oauth21_logger.handlers:
        handler = StreamHandler()
        handler.setFormatter(Formatter(LOG_FORMAT))
        oauth21_logger.addHandler(handler)
    oauth21_logger.setLevel(os.environ.get("OAUTH21_LOG_LEVEL", "INFO").upper())

    _prefix_uvicorn_formatter("uvicorn.access", AccessFormatter)
    _prefix_uvicorn_formatter("uvicorn", DefaultFormatter)


def _register_settings(
    app: OAuth21FastAPI, all_service_settings: Iterable[ServiceSettingsBase]
) -> set[type[ServiceSettingsBase]]:
    registered: set[type[ServiceSettingsBase]] = set()
    for service_settings in all_service_settings:
        cls = type(service_settings)
        assert cls not in registered, f"{cls} given twice"
        registered.add(cls)
        app.lifetime_functions.append(service_settings.lifetime_function)
        # Every request gets the very same instance
        app.dependency_overrides[cls.create] = partial(lambda x: x, service_settings)
    return registered


def _register_sql_dbs(
    app: OAuth21FastAPI, database_urls: dict[str, str]
) -> set[type[BaseSQLDB]]:
    registered: set[type[BaseSQLDB]] = set()
    for db_name, db_url in database_urls.items():
        sql_db_classes = BaseSQLDB.available_implementations(db_name)
        # A single object serves all the implementations, the first one wins
        sql_db = sql_db_classes[0](db_url=db_url)
        app.lifetime_functions.append(sql_db.engine_context)
        for sql_db_class in sql_db_classes:
            assert sql_db_class.transaction not in app.dependency_overrides
            registered.add(sql_db_class)
            app.dependency_overrides[sql_db_class.transaction] = partial(
                db_transaction, sql_db
            )
    return registered


def _load_routers(enabled_systems: set[str]) -> dict[str, APIRouter]:
    routers: dict[str, APIRouter] = {}
    # Sorted so that the openapi.json is deterministic
    for system_name in sorted(enabled_systems):
        entry_points = select_from_group(group="oauth21.services", name=system_name)
        if not entry_points:
            raise NotImplementedError(f"Could not find {system_name=}")
        routers[system_name] = entry_points[0].load()
    return routers


def create_app_inner(
    *,
    enabled_systems: set[str],
    all_service_settings: Iterable[ServiceSettingsBase],
    database_urls: dict[str, str],
) -> OAuth21FastAPI:
    """Build the application from explicit pieces.

    ``create_app`` reads them from the environment, the tests pass their
    own. Settings and DB objects reach the routes through
    ``dependency_overrides`` on ``Settings.create`` and ``DB.transaction``.

    :param enabled_systems: names of the ``oauth21.services`` routers to mount
    :param all_service_settings: one instance per settings class
    :param database_urls: ``{db_name: url}``
    """
    app = OAuth21FastAPI()

    available_settings = _register_settings(app, all_service_settings)
    available_sql_dbs = _register_sql_dbs(app, database_urls)

    for system_name, router in _load_routers(enabled_systems).items():
        for cls in find_dependents(router, ServiceSettingsBase):
            if cls not in available_settings:
                raise NotImplementedError(
                    f"Cannot enable {system_name=} as it requires {cls=}"
                )
        missing_sql_dbs = set(find_dependents(router, BaseSQLDB)) - available_sql_dbs
        if missing_sql_dbs:
            raise NotImplementedError(
                f"Cannot enable {system_name=} as it requires {missing_sql_dbs=}"
            )

        path_root = getattr(router, "oauth21_path_root", "")
        app.include_router(
            router, prefix=f"{path_root}/{system_name}", tags=[system_name]
        )

    # Handlers are registered for subclasses of Exception, which mypy
    # does not accept where a handler of Exception is expected
    for exc_class, handler in (
        (OAuth21Error, oauth21_error_handler),
        (OAuth21HttpResponseError, http_response_handler),
        (DBUnavailableError, db_unavailable_error_handler),
        (RequestValidationError, validation_error_handler),
    ):
        app.add_exception_handler(exc_class, cast(HandlerSignature, handler))

    configure_logger()

    return app


def create_app() -> OAuth21FastAPI:
    """Create the application as configured by the environment.

    ``.env`` files listed in ``OAUTH21_SERVICE_DOTENV`` (then
    ``OAUTH21_SERVICE_DOTENV_1``, ``_2``... in that order) are loaded
    first. Every installed ``oauth21.services`` router is mounted unless
    ``OAUTH21_SERVICE_<NAME>_ENABLED=false``, and only the settings
    classes the mounted routers depend on are instantiated.
    """
    for env_file in dotenv_files_from_environment("OAUTH21_SERVICE_DOTENV"):
        logger.debug("Loading dotenv file: %s", env_file)
        if not dotenv.load_dotenv(env_file):
            raise NotImplementedError(f"Could not load dotenv file {env_file}")

    enabled_systems = set()
    settings_classes: set[type[ServiceSettingsBase]] = set()
    for entry_point in select_from_group(group="oauth21.services"):
        env_var = f"OAUTH21_SERVICE_{entry_point.name.upper()}_ENABLED"
        if not TypeAdapter(bool).validate_json(os.environ.get(env_var, "true")):
            logger.info("Service %s is disabled", entry_point.name)
            continue
        enabled_systems.add(entry_point.name)
        router: APIRouter = entry_point.load()
        settings_classes |= set(find_dependents(router, ServiceSettingsBase))

    return create_app_inner(
        enabled_systems=enabled_systems,
        # Fails at startup when the environment holds invalid values
        all_service_settings=[cls() for cls in settings_classes],
        database_urls=BaseSQLDB.available_urls(),
    )


def oauth21_error_handler(request: Request, exc: OAuth21Error) -> Response:
    if exc.http_status_code >= 500:
        logger.error(
            "Internal error on %s %s", request.method, request.url, exc_info=exc
        )
    if exc.oauth_error:
        content = {"error": exc.oauth_error, "error_description": exc.detail}
    else:
        content = {"detail": exc.detail}
    return JSONResponse(
        status_code=exc.http_status_code, content=content, headers=exc.http_headers
    )


def http_response_handler(request: Request, exc: OAuth21HttpResponseError) -> Response:
    return JSONResponse(
        status_code=exc.status_code, content=exc.data, headers=exc.headers
    )


def db_unavailable_error_handler(request: Request, exc: DBUnavailableError):
    logger.error(
        "Storage unavailable on %s %s", request.method, request.url, exc_info=exc
    )
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        headers={"Retry-After": str(RETRY_AFTER_SECONDS)},
        content={"detail": "Service temporarily unavailable"},
    )


async def validation_error_handler(request: Request, exc: RequestValidationError):
    logger_422.warning(
        "Got validation error: %s in %s %s", exc.errors(), request.method, request.url
    )
    return await request_validation_exception_handler(request, exc)


def find_dependents(
    obj: APIRouter | Iterable[Dependant], cls: type[T]
) -> Iterable[type[T]]:
    """Yield the subclasses of ``cls`` whose classmethods a router depends on."""
    if isinstance(obj, APIRouter):
        for route in obj.routes:
            if isinstance(route, APIRoute):
                yield from find_dependents(route.dependant.dependencies, cls)
        return

    for dependency in obj:
        bound_class = getattr(dependency.call, "__self__", None)
        if inspect.isclass(bound_class) and issubclass(bound_class, cls):
            yield bound_class
        yield from find_dependents(dependency.dependencies, cls)


# db -> reason it is unavailable, "" when it answered
_db_ping_results: TTLCache = TTLCache(maxsize=1024, ttl=RETRY_AFTER_SECONDS)


async def is_db_unavailable(db: BaseSQLDB) -> str:
    if db not in _db_ping_results:
        try:
            await db.ping()
        except DBUnavailableError as e:
            _db_ping_results[db] = e.args[0]
        else:
            _db_ping_results[db] = ""
    return _db_ping_results[db]


async def db_transaction(db: T2) -> AsyncGenerator[T2]:
    """Run the route in a transaction, committed once the route returns."""
    async with db:
        # A pooled connection may be stale, the ping is only done every
        # RETRY_AFTER_SECONDS
        if reason := await is_db_unavailable(db):
            raise DBUnavailableError(reason)
        yield db
