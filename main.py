# main.py - Delivery dashboard statistics service
import argparse
import asyncio
import json
import logging
import os
import sqlite3
import uvicorn

from delivery_stats.config.settings import settings
from delivery_stats.domain.interfaces import IDashboardStatisticsService
from delivery_stats.application.services.dashboard_service import DashboardStatisticsService
from delivery_stats.application.services.warmup_service import CacheWarmupService
from delivery_stats.infrastructure.clock import SystemClock
from delivery_stats.infrastructure.database import schema
from delivery_stats.infrastructure.database.sqlite_aggregator import SQLiteMetricsAggregator
from delivery_stats.infrastructure.database.sqlite_executor import SQLiteQueryExecutor
from delivery_stats.infrastructure.http.dashboard_server import DashboardHttpServer
from delivery_stats.infrastructure.telegram.bot_handlers import TelegramBotHandlers
from delivery_stats.presentation.dashboard_client import DashboardClient
from delivery_stats.presentation.telegram_bot import TelegramBotApplication


def configure_logging():
    """Configures application-wide logging."""
    logging.basicConfig(
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        level=settings.LOG_LEVEL
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("telegram.ext").setLevel(logging.INFO)
    logging.getLogger("uvicorn").setLevel(logging.INFO)


def build_aggregator() -> SQLiteMetricsAggregator:
    executor = SQLiteQueryExecutor(db_path=settings.DATABASE_PATH, timeout_seconds=settings.QUERY_TIMEOUT_SECONDS)
    return SQLiteMetricsAggregator(executor=executor, clock=SystemClock())


def build_statistics_service() -> IDashboardStatisticsService:
    """One service, and so one cache, shared by every presentation surface."""
    return DashboardStatisticsService(
        aggregator=build_aggregator(),
        clock=SystemClock(),
        ttls=settings.ttls,
        roster_limit=settings.DRIVER_ROSTER_LIMIT,
    )


async def serve() -> None:
    logger = logging.getLogger(__name__)
    logger.info("Initializing application components...")

    schema.migrate(settings.DATABASE_PATH)

    statistics_service = build_statistics_service()
    await CacheWarmupService(statistics_service, enabled=settings.CACHE_WARMUP_ENABLED).warm()

    http_server = DashboardHttpServer(statistics_service=statistics_service)
    logger.info("HTTP statistics server initialized.")

    telegram_task = None
    if settings.DASHBOARD_BOT_TOKEN:
        telegram_bot_app = TelegramBotApplication(
            token=settings.DASHBOARD_BOT_TOKEN,
            handlers=TelegramBotHandlers(statistics_service, admin_user_ids=settings.ADMIN_USER_IDS),
        )
        telegram_task = asyncio.create_task(telegram_bot_app.run())
        logger.info("Telegram dashboard bot initialized.")
    else:
        logger.info("DASHBOARD_BOT_TOKEN not set, Telegram dashboard disabled.")

    config = uvicorn.Config(
        app=http_server.app,
        host=settings.HTTP_HOST,
        port=settings.HTTP_PORT,
        log_level="info"
    )
    server = uvicorn.Server(config)
    logger.info(f"Starting HTTP server on http://{settings.HTTP_HOST}:{settings.HTTP_PORT}")
    try:
        await server.serve()
    finally:
        if telegram_task:
            telegram_task.cancel()
            await asyncio.gather(telegram_task, return_exceptions=True)


def migrate() -> None:
    created = schema.migrate(settings.DATABASE_PATH)
    print(f"Created {len(created)} index(es): {', '.join(created) or 'none (all present)'}")


async def check() -> None:
    """Report data volume, index presence and query plans for the statistics queries."""
    if not os.path.exists(settings.DATABASE_PATH):
        raise SystemExit(f"{settings.DATABASE_PATH} does not exist. Run 'python main.py migrate' first.")
    with sqlite3.connect(settings.DATABASE_PATH) as conn:
        try:
            counts = conn.execute("""
                SELECT 'Total Orders' AS metric, COUNT(*) AS count FROM orders
                UNION ALL
                SELECT 'Total Drivers', COUNT(*) FROM users WHERE role = 'driver'
                UNION ALL
                SELECT 'Total Customers', COUNT(*) FROM users WHERE role = 'customer'
            """).fetchall()
        except sqlite3.OperationalError as e:
            raise SystemExit(f"Cannot read {settings.DATABASE_PATH} ({e}). Run 'python main.py migrate' first.")
    print("Current Database Stats:")
    for metric, count in counts:
        print(f"  {metric}: {count:,}")

    print("\nPerformance Indexes:")
    for name, present in schema.verify_indexes(settings.DATABASE_PATH).items():
        print(f"  [{'x' if present else ' '}] {name}")

    print("\nQuery Plans:")
    plans = await build_aggregator().explain_queries()
    for query_name, steps in plans.items():
        print(f"  {query_name}:")
        for step in steps:
            print(f"    {step}")


async def status() -> None:
    """Print the overview served by a running instance."""
    client = DashboardClient(settings.DASHBOARD_API_URL)
    try:
        overview = await client.get_overview()
    finally:
        await client.close()
    if overview is None:
        raise SystemExit(f"Could not fetch statistics from {settings.DASHBOARD_API_URL}")
    print(json.dumps(overview, indent=2, sort_keys=True))


def main() -> None:
    parser = argparse.ArgumentParser(description="Delivery dashboard statistics service")
    parser.add_argument(
        "command", nargs="?", default="serve", choices=("serve", "migrate", "check", "status"),
        help="serve the API (default), apply schema and indexes, inspect the store, or query a running instance"
    )
    args = parser.parse_args()

    configure_logging()
    logger = logging.getLogger(__name__)
    try:
        if args.command == "migrate":
            migrate()
        elif args.command == "check":
            asyncio.run(check())
        elif args.command == "status":
            asyncio.run(status())
        else:
            asyncio.run(serve())
    except KeyboardInterrupt:
        logger.info("Application shutting down due to KeyboardInterrupt...")
    finally:
        logger.info("Application finished.")


if __name__ == "__main__":
    main()
