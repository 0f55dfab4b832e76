"""RentFlow back office - application entry point.

The scheduled jobs (monthly billing, overdue marking) run from here:

    CONFIG=resources/config/local.yaml python -m rentflow_backend.main bill --owner 7
"""

import argparse
import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import date

from .config import settings
from .core.logging import get_logger, setup_logging, shutdown_logging
from .database import AsyncSessionLocal, engine, init_db
from .modules.payment_management.services import (
    mark_overdue_tenants,
    run_monthly_billing_sweep,
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(create_tables: bool = False) -> AsyncIterator[None]:
    """Application lifespan manager."""
    # Startup
    setup_logging()
    logger.info("Starting RentFlow back office...")
    logger.info(f"Environment: {settings.app_env}")
    if create_tables:
        await init_db()
    try:
        yield
    finally:
        # Shutdown
        logger.info("Shutting down RentFlow back office...")
        await engine.dispose()
        shutdown_logging()


async def bill(owner_id: int, billing_month: str | None = None) -> None:
    async with lifespan():
        async with AsyncSessionLocal() as db:
            result = await run_monthly_billing_sweep(db, owner_id, billing_month)
    print(result.model_dump_json(indent=2))


async def mark_overdue(owner_id: int, as_of: date | None = None) -> None:
    async with lifespan():
        async with AsyncSessionLocal() as db:
            marked = await mark_overdue_tenants(db, owner_id, as_of)
    print(f"{len(marked)} tenant(s) marked overdue: {marked}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rentflow", description=__doc__.splitlines()[0]
    )
    commands = parser.add_subparsers(dest="command", required=True)

    bill_cmd = commands.add_parser("bill", help="Run the monthly billing sweep")
    bill_cmd.add_argument("--owner", type=int, required=True, help="Landlord id")
    bill_cmd.add_argument("--month", help="Billing month as YYYY-MM, default current")

    overdue_cmd = commands.add_parser(
        "mark-overdue", help="Mark tenants in arrears overdue"
    )
    overdue_cmd.add_argument("--owner", type=int, required=True, help="Landlord id")
    overdue_cmd.add_argument(
        "--as-of", type=date.fromisoformat, help="Date to judge by, default today"
    )

    commands.add_parser("init-db", help="Create all tables (development only)")
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    if args.command == "bill":
        asyncio.run(bill(args.owner, args.month))
    elif args.command == "mark-overdue":
        asyncio.run(mark_overdue(args.owner, args.as_of))
    elif args.command == "init-db":
        asyncio.run(_init_db())


async def _init_db() -> None:
    async with lifespan(create_tables=True):
        pass


if __name__ == "__main__":
    main()
