"""
IDN Cards — Scraper Entrypoint

Configures structlog, opens the database, discovers expansions and runs the
scrape.

Run via:
    python -m idncards.main              # every expansion, full scrape
    python -m idncards.main SV8a         # one expansion
    python -m idncards.main --test       # first discovered expansion only
    python -m idncards.main --rarity-only
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Any, Sequence

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from idncards.config import ConfigurationError, settings
from idncards.scraper import Expansion
from idncards.scraper.catalog import CatalogWalker
from idncards.scraper.fetcher import Fetcher, FetchError
from idncards.scraper.runner import ScrapeProgress, ScrapeRunner
from idncards.storage.repository import CardRepository

ERROR_LIST_LIMIT = 20
ERROR_PREVIEW_COUNT = 10


# ---------------------------------------------------------------------------
# Structlog Configuration
# ---------------------------------------------------------------------------


def _configure_logging(log_level: str = "INFO") -> None:
    """
    Set up structured logging with JSON output.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR).
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=level,
    )

    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Database Setup
# ---------------------------------------------------------------------------


def create_db_engine(database_url: str) -> tuple[Any, async_sessionmaker[AsyncSession]]:
    """
    Create SQLAlchemy async engine and session factory.

    Returns:
        (engine, session_factory) tuple.
    """
    engine = create_async_engine(
        database_url,
        echo=False,
        pool_pre_ping=True,
    )
    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    return engine, session_factory


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="idncards-scrape",
        description="Scrape the Indonesian card catalog into the database.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  idncards-scrape                 # all expansions, full scrape
  idncards-scrape SV8a            # only expansion SV8a
  idncards-scrape --test          # only the first discovered expansion
  idncards-scrape --rarity-only   # relabel stored cards, no detail fetches
""",
    )
    parser.add_argument(
        "expansion",
        nargs="?",
        default=None,
        help="Expansion code to scrape exclusively (skips expansion discovery).",
    )
    parser.add_argument(
        "--test",
        action="store_true",
        help="Process only the first expansion.",
    )
    parser.add_argument(
        "--rarity-only",
        action="store_true",
        help="Only update rarity labels of cards already in the database.",
    )
    return parser.parse_args(argv)


def format_summary(
    progress: ScrapeProgress,
    initial_count: int,
    final_count: int,
) -> str:
    """Human-readable end-of-run report."""
    lines = [
        "=" * 60,
        "SCRAPE COMPLETE",
        "=" * 60,
        f"  Expansions processed: {progress.total_expansions}",
        f"  Cards scraped/updated: {progress.cards_updated}",
        f"  Errors: {len(progress.errors)}",
        f"  Total cards in database: {final_count} ({final_count - initial_count:+d})",
    ]
    if progress.errors and len(progress.errors) <= ERROR_LIST_LIMIT:
        lines.append("")
        lines.append("Errors:")
        lines.extend(f"  - {error}" for error in progress.errors)
    elif len(progress.errors) > ERROR_LIST_LIMIT:
        lines.append("")
        lines.append(f"Too many errors ({len(progress.errors)}). First {ERROR_PREVIEW_COUNT}:")
        lines.extend(f"  - {error}" for error in progress.errors[:ERROR_PREVIEW_COUNT])
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


async def main(argv: Sequence[str] | None = None) -> int:
    """
    Scraper entrypoint.

    Execution order:
    1. Configure logging
    2. Validate configuration (missing DATABASE_URL is fatal)
    3. Resolve expansions (CLI argument or catalog discovery)
    4. Run the scrape and print the summary

    Returns:
        Process exit status.
    """
    args = parse_args(argv)
    _configure_logging(settings.LOG_LEVEL)
    logger = structlog.get_logger(__name__)

    try:
        database_url = settings.require_database_url()
    except ConfigurationError as e:
        logger.error("config_invalid", error=str(e))
        return 1

    engine, session_factory = create_db_engine(database_url)
    repository = CardRepository(session_factory)

    try:
        initial_count = await repository.count_cards()
        logger.info("scrape_startup", cards_in_database=initial_count)

        async with Fetcher() as fetcher:
            if args.expansion:
                expansions = [Expansion(code=args.expansion, name=args.expansion)]
            else:
                try:
                    expansions = await CatalogWalker(fetcher).list_expansions()
                except FetchError as e:
                    logger.error("expansion_discovery_failed", error=str(e), url=e.url)
                    return 1

            if args.test and len(expansions) > 1:
                expansions = expansions[:1]
                logger.info("scrape_test_mode", expansion=expansions[0].code)

            runner = ScrapeRunner(fetcher, repository)
            progress = await runner.run(expansions, rarity_only=args.rarity_only)

        final_count = await repository.count_cards()
        print(format_summary(progress, initial_count, final_count))
    finally:
        await engine.dispose()

    return 0


def cli() -> None:
    """Console-script entry point."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
