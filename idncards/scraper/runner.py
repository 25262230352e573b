"""
IDN Cards — Scrape Runner (orchestrator)

For each expansion, walks every rarity filter in a fixed order (ending with
the "no mark" filter) and either:
- full mode: fetches, parses and upserts every card id found, at most
  DETAIL_CONCURRENCY detail pages in flight at a time
- rarity-only mode: relabels already stored cards without fetching details

A per-card or per-listing problem is recorded in the progress error list and
the run moves on.
"""

from __future__ import annotations

import asyncio

import structlog
from pydantic import BaseModel, Field

from idncards.config import RARITY_FILTERS, UNMARKED_RARITY_VALUE, settings
from idncards.scraper import Expansion
from idncards.scraper.catalog import CatalogWalker, detail_url
from idncards.scraper.detail import parse_card_detail
from idncards.scraper.fetcher import Fetcher, FetchError
from idncards.storage.repository import CardRepository

logger = structlog.get_logger(__name__)


def rarity_batches() -> list[tuple[str | None, int]]:
    """(label, filter value) in crawl order; the unmarked filter has label None."""
    return [*RARITY_FILTERS.items(), (None, UNMARKED_RARITY_VALUE)]


class ScrapeProgress(BaseModel):
    """Counters accumulated across a whole run."""
    total_expansions: int = 0
    current_expansion: int = 0
    cards_updated: int = 0
    errors: list[str] = Field(default_factory=list)


class ScrapeRunner:
    """
    Sequences expansion x rarity batches through walker, parser and repository.

    Usage:
        async with Fetcher() as fetcher:
            runner = ScrapeRunner(fetcher, CardRepository(session_factory))
            progress = await runner.run(expansions)
    """

    def __init__(
        self,
        fetcher: Fetcher,
        repository: CardRepository,
        walker: CatalogWalker | None = None,
        concurrency: int | None = None,
        batch_delay_seconds: float | None = None,
        detail_delay_seconds: float | None = None,
    ) -> None:
        self._fetcher = fetcher
        self._repository = repository
        self._walker = walker or CatalogWalker(fetcher)
        self._concurrency = concurrency or settings.DETAIL_CONCURRENCY
        self._batch_delay = (
            batch_delay_seconds if batch_delay_seconds is not None else settings.REQUEST_DELAY_SECONDS
        )
        self._detail_delay = (
            detail_delay_seconds if detail_delay_seconds is not None else settings.DETAIL_DELAY_SECONDS
        )
        self.progress = ScrapeProgress()

    async def run(self, expansions: list[Expansion], rarity_only: bool = False) -> ScrapeProgress:
        """Process every expansion in order and return the accumulated progress."""
        self.progress.total_expansions = len(expansions)
        logger.info(
            "scrape_run_start",
            expansions=len(expansions),
            mode="rarity_only" if rarity_only else "full",
        )

        for expansion in expansions:
            self.progress.current_expansion += 1
            await self.process_expansion(expansion, rarity_only=rarity_only)

        logger.info(
            "scrape_run_complete",
            expansions=self.progress.total_expansions,
            cards_updated=self.progress.cards_updated,
            errors=len(self.progress.errors),
        )
        return self.progress

    async def process_expansion(self, expansion: Expansion, rarity_only: bool = False) -> None:
        logger.info(
            "scrape_expansion_start",
            expansion=expansion.code,
            expansion_name=expansion.name,
            position=self.progress.current_expansion,
            total=self.progress.total_expansions,
        )
        semaphore = asyncio.Semaphore(self._concurrency)

        for label, value in rarity_batches():
            try:
                listing = await self._walker.list_card_ids(expansion.code, value)
            except FetchError as e:
                self.progress.errors.append(
                    f"Listing {expansion.code} rarity {label or 'none'}: {e}"
                )
                await asyncio.sleep(self._batch_delay)
                continue

            # Later-page failures: record them, still process what was listed.
            for error in listing.errors:
                self.progress.errors.append(
                    f"Listing {expansion.code} rarity {label or 'none'} {error}"
                )

            card_ids = listing.card_ids
            if card_ids:
                if rarity_only:
                    updated = await self._relabel(card_ids, label)
                else:
                    updated = await self._scrape_batch(card_ids, label, semaphore)
                logger.info(
                    "scrape_rarity_batch",
                    expansion=expansion.code,
                    rarity=label,
                    cards_found=len(card_ids),
                    partial=listing.partial,
                    cards_updated=updated,
                )

            await asyncio.sleep(self._batch_delay)

    async def _relabel(self, card_ids: list[str], rarity: str | None) -> int:
        updated = 0
        for card_id in card_ids:
            if await self._repository.update_rarity_only(card_id, rarity):
                updated += 1
        self.progress.cards_updated += updated
        return updated

    async def _scrape_batch(
        self,
        card_ids: list[str],
        rarity: str | None,
        semaphore: asyncio.Semaphore,
    ) -> int:
        results = await asyncio.gather(
            *(self._scrape_card(card_id, rarity, semaphore) for card_id in card_ids)
        )
        return sum(1 for ok in results if ok)

    async def _scrape_card(
        self,
        card_id: str,
        rarity: str | None,
        semaphore: asyncio.Semaphore,
    ) -> bool:
        """Fetch, parse and store one card. Failures land in progress.errors."""
        async with semaphore:
            await asyncio.sleep(self._detail_delay)
            try:
                html = await self._fetcher.fetch(detail_url(card_id))
            except FetchError as e:
                self.progress.errors.append(f"Card {card_id}: {e}")
                return False

            card = parse_card_detail(html, card_id)
            if card is None:
                self.progress.errors.append(f"Card {card_id}: could not parse detail page")
                return False

            card.rarity = rarity
            if not await self._repository.upsert_card(card, rarity):
                self.progress.errors.append(f"Card {card_id}: database write failed")
                return False

        self.progress.cards_updated += 1
        return True
