from __future__ import annotations

import argparse
import asyncio
import json
import logging

logger = logging.getLogger(__name__)


def parse_args():
    parser = argparse.ArgumentParser(prog="python -m oauth21.db")
    subparsers = parser.add_subparsers(required=True)

    init_sql_parser = subparsers.add_parser(
        "init-sql", help="Initialise schema for SQL databases"
    )
    init_sql_parser.set_defaults(func=init_sql)

    cleanup_parser = subparsers.add_parser(
        "cleanup-device-codes",
        help="Delete expired device codes and resolved ones past their retention",
    )
    cleanup_parser.set_defaults(func=cleanup_device_codes)

    stats_parser = subparsers.add_parser(
        "device-code-stats", help="Print statistics about the stored device codes"
    )
    stats_parser.set_defaults(func=device_code_stats)

    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO)
    asyncio.run(args.func())


async def init_sql():
    logger.info("Initialising SQL databases")
    from oauth21.db.sql.utils import BaseSQLDB

    for db_name, db_url in BaseSQLDB.available_urls().items():
        logger.info("Initialising %s", db_name)
        db = BaseSQLDB.available_implementations(db_name)[0](db_url)
        async with db.engine_context():
            async with db.engine.begin() as conn:
                await conn.run_sync(db.metadata.create_all)


def _oauth_db():
    from oauth21.db.sql import OAuthDB
    from oauth21.db.sql.utils import BaseSQLDB

    db_urls = BaseSQLDB.available_urls()
    if "OAuthDB" not in db_urls:
        raise SystemExit("OAUTH21_DB_URL_OAUTHDB is not set")
    return OAuthDB(db_urls["OAuthDB"])


async def cleanup_device_codes():
    from oauth21.core.settings import DeviceFlowSettings
    from oauth21.logic.device_flow import perform_device_code_cleanup

    db = _oauth_db()
    async with db.engine_context():
        async with db:
            report = await perform_device_code_cleanup(db, DeviceFlowSettings())
    print(json.dumps(report, indent=2))


async def device_code_stats():
    from oauth21.core.settings import DeviceFlowSettings
    from oauth21.logic.device_flow import get_device_code_statistics

    db = _oauth_db()
    async with db.engine_context():
        async with db:
            statistics = await get_device_code_statistics(db, DeviceFlowSettings())
    print(json.dumps(statistics, indent=2))


if __name__ == "__main__":
    parse_args()
