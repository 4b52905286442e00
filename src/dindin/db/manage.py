"""``python manage.py`` commands: create the schema and seed the category catalog."""
from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Awaitable, Callable, Dict, Sequence

from sqlalchemy.exc import OperationalError
from tenacity import AsyncRetrying, RetryError, retry_if_exception_type, stop_after_attempt, wait_exponential

from dindin.db.session import get_session, init_models
from dindin.logging import configure_logging
from dindin.services.categories import seed_default_categories

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS = (ConnectionError, OperationalError, OSError)


async def create_schema(max_attempts: int = 5, backoff: float = 1.0) -> None:
    """Create missing tables, retrying while PostgreSQL is still coming up."""

    retrying = AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=backoff, min=backoff, max=30),
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        reraise=True,
    )
    async for attempt in retrying:
        with attempt:
            number = attempt.retry_state.attempt_number
            if number > 1:
                logger.warning("Database not reachable yet, attempt %s/%s", number, max_attempts)
            await init_models()
    logger.info("Database schema ready")


async def seed_categories() -> int:
    async with get_session() as session:
        created = await seed_default_categories(session)
    logger.info("Default categories inserted: %s", created)
    return created


async def _init_db(args: argparse.Namespace) -> None:
    try:
        await create_schema(args.max_attempts, args.retry_backoff)
    except (RetryError, *TRANSIENT_ERRORS) as exc:
        logger.error("Giving up on the database after %s attempts: %s", args.max_attempts, exc)
        raise SystemExit(1) from exc
    if not args.no_seed:
        await seed_categories()


async def _seed(args: argparse.Namespace) -> None:
    await seed_categories()


COMMANDS: Dict[str, Callable[[argparse.Namespace], Awaitable[None]]] = {
    "init-db": _init_db,
    "seed-categories": _seed,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="manage.py", description="DinDin database utilities")
    commands = parser.add_subparsers(dest="command", required=True)

    init_db = commands.add_parser("init-db", help="create tables and seed the default categories")
    init_db.add_argument("--max-attempts", type=int, default=5, help="connection attempts (default: %(default)s)")
    init_db.add_argument(
        "--retry-backoff",
        type=float,
        default=1.0,
        help="first wait between attempts in seconds, doubled each time (default: %(default)s)",
    )
    init_db.add_argument("--no-seed", action="store_true", help="skip the default category catalog")

    commands.add_parser("seed-categories", help="insert the default categories that are missing")
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    configure_logging()
    asyncio.run(COMMANDS[args.command](args))


if __name__ == "__main__":
    main()


__all__ = ["build_parser", "create_schema", "main", "seed_categories"]
