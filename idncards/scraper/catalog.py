"""
IDN Cards — Catalog Walker

Enumerates what there is to fetch:
- expansions, from the expansion-filter links on the catalog root pages
- card ids, from the listing pages of one expansion + rarity filter

Listing pagination is sequential: the first page says how many pages exist,
and one page at a time is gentler on the source site.

URL shapes:
    {root}/                                   expansion list (page 1)
    {root}/?pageNo=N                          expansion list (page N)
    {root}/list/?expansionCodes=X&rarity[0]=V listing (page 1)
    {root}/list/?pageNo=N&expansionCodes=X&rarity[0]=V
    {root}/detail/<id>/                       card detail
"""

from __future__ import annotations

import asyncio
import re

import structlog
from bs4 import BeautifulSoup

from idncards.config import settings
from idncards.scraper import CardIdListing, Expansion, ListingPage
from idncards.scraper.fetcher import Fetcher, FetchError

logger = structlog.get_logger(__name__)

EXPANSION_LINK_SELECTOR = 'a[href*="card-search/list/?expansionCodes="]'
EXPANSION_CODE_RE = re.compile(r"expansionCodes=([A-Z0-9-]+)", re.IGNORECASE)
DETAIL_ID_RE = re.compile(r"/detail/(\d+)/?$")
PAGE_NO_RE = re.compile(r"pageNo=(\d+)")
TOTAL_CARDS_RE = re.compile(r"(\d+)\s*buah")

# "Halaman 1 / Total 3 halaman" on the Indonesian site; English as a fallback.
TOTAL_PAGES_PATTERNS = (
    re.compile(r"Halaman\s*\d+\s*/\s*Total\s*(\d+)\s*halaman", re.IGNORECASE),
    re.compile(r"Page\s*\d+\s*(?:of|/)\s*(\d+)", re.IGNORECASE),
)


# ---------------------------------------------------------------------------
# URL builders
# ---------------------------------------------------------------------------

def expansion_list_url(page: int = 1) -> str:
    root = settings.catalog_root
    return f"{root}/" if page == 1 else f"{root}/?pageNo={page}"


def listing_url(expansion_code: str, rarity_value: int, page: int = 1) -> str:
    query = f"expansionCodes={expansion_code}&rarity[0]={rarity_value}"
    if page > 1:
        query = f"pageNo={page}&{query}"
    return f"{settings.catalog_root}/list/?{query}"


def detail_url(card_id: str) -> str:
    return f"{settings.catalog_root}/detail/{card_id}/"


# ---------------------------------------------------------------------------
# Parsers
# ---------------------------------------------------------------------------

def parse_expansion_list(html: str) -> list[Expansion]:
    """Expansion codes and names from one catalog root page, first-seen order."""
    soup = BeautifulSoup(html, "html.parser")
    expansions: dict[str, Expansion] = {}
    for link in soup.select(EXPANSION_LINK_SELECTOR):
        match = EXPANSION_CODE_RE.search(link.get("href") or "")
        if not match:
            continue
        code = match.group(1)
        if code not in expansions:
            name = " ".join(link.get_text(" ").split()) or code
            expansions[code] = Expansion(code=code, name=name)
    return list(expansions.values())


def parse_listing_page(html: str) -> ListingPage:
    """
    Card ids and pagination from one listing page.

    Total pages come from the localized "page X of Y" phrase, else from the
    highest ``pageNo`` among the pager links, else 1.
    """
    soup = BeautifulSoup(html, "html.parser")

    card_ids: list[str] = []
    for link in soup.select('a[href*="/card-search/detail/"]'):
        match = DETAIL_ID_RE.search(link.get("href") or "")
        if match and match.group(1) not in card_ids:
            card_ids.append(match.group(1))

    body_text = soup.get_text(" ")

    total_cards = 0
    count_match = TOTAL_CARDS_RE.search(body_text)
    if count_match:
        total_cards = int(count_match.group(1))

    total_pages: int | None = None
    for pattern in TOTAL_PAGES_PATTERNS:
        pages_match = pattern.search(body_text)
        if pages_match:
            total_pages = int(pages_match.group(1))
            break
    if total_pages is None:
        page_numbers: list[int] = []
        for link in soup.select('a[href*="pageNo="]'):
            page_match = PAGE_NO_RE.search(link.get("href") or "")
            if page_match:
                page_numbers.append(int(page_match.group(1)))
        total_pages = max(page_numbers, default=1)

    return ListingPage(
        card_ids=card_ids,
        total_pages=max(total_pages, 1),
        total_cards=total_cards,
    )


# ---------------------------------------------------------------------------
# Walker
# ---------------------------------------------------------------------------

class CatalogWalker:
    """
    Crawls the catalog's list pages through a shared Fetcher.

    Usage:
        async with Fetcher() as fetcher:
            walker = CatalogWalker(fetcher)
            expansions = await walker.list_expansions()
            listing = await walker.list_card_ids("SV8a", 1)
    """

    def __init__(
        self,
        fetcher: Fetcher,
        delay_seconds: float | None = None,
        page_limit: int | None = None,
    ) -> None:
        self._fetcher = fetcher
        self._delay_seconds = (
            delay_seconds if delay_seconds is not None else settings.REQUEST_DELAY_SECONDS
        )
        self._page_limit = page_limit or settings.EXPANSION_PAGE_LIMIT

    async def list_expansions(self) -> list[Expansion]:
        """
        Walk the catalog root pages until one adds no new expansion code.

        A failure on the first page propagates (there is nothing to crawl
        without it). A failure on a later page ends discovery with what was
        found so far.

        Raises:
            FetchError: the first catalog root page could not be fetched.
        """
        found: dict[str, Expansion] = {}

        for page in range(1, self._page_limit + 1):
            url = expansion_list_url(page)
            try:
                html = await self._fetcher.fetch(url)
            except FetchError as e:
                if page == 1:
                    raise
                logger.warning(
                    "catalog_expansion_page_failed",
                    page=page,
                    url=url,
                    error=str(e),
                    expansions_so_far=len(found),
                )
                break

            new = [exp for exp in parse_expansion_list(html) if exp.code not in found]
            if not new:
                break
            for expansion in new:
                found[expansion.code] = expansion
            logger.info("catalog_expansion_page", page=page, new_expansions=len(new))

            if page < self._page_limit:
                await asyncio.sleep(self._delay_seconds)
        else:
            logger.warning("catalog_expansion_page_limit_reached", page_limit=self._page_limit)

        logger.info("catalog_expansions_found", total=len(found))
        return list(found.values())

    async def list_card_ids(self, expansion_code: str, rarity_value: int) -> CardIdListing:
        """
        All card ids for one expansion + rarity filter, across every page.

        A failure on the first page propagates. A failure on a later page
        stops paging: the ids already collected are returned and the error is
        recorded on the result.

        Returns:
            CardIdListing with deduplicated ids in first-seen order.

        Raises:
            FetchError: the first listing page could not be fetched.
        """
        first = parse_listing_page(
            await self._fetcher.fetch(listing_url(expansion_code, rarity_value))
        )
        card_ids: dict[str, None] = dict.fromkeys(first.card_ids)
        errors: list[str] = []

        for page in range(2, first.total_pages + 1):
            await asyncio.sleep(self._delay_seconds)
            url = listing_url(expansion_code, rarity_value, page)
            try:
                html = await self._fetcher.fetch(url)
            except FetchError as e:
                logger.warning(
                    "catalog_listing_page_failed",
                    expansion=expansion_code,
                    rarity_value=rarity_value,
                    page=page,
                    total_pages=first.total_pages,
                    url=url,
                    error=str(e),
                    cards_so_far=len(card_ids),
                )
                errors.append(f"page {page}/{first.total_pages}: {e}")
                break

            listing = parse_listing_page(html)
            card_ids.update(dict.fromkeys(listing.card_ids))
            logger.debug(
                "catalog_listing_page",
                expansion=expansion_code,
                rarity_value=rarity_value,
                page=page,
                total_pages=first.total_pages,
                page_cards=len(listing.card_ids),
            )

        logger.info(
            "catalog_listing_complete",
            expansion=expansion_code,
            rarity_value=rarity_value,
            total_pages=first.total_pages,
            total_cards=first.total_cards,
            card_count=len(card_ids),
            partial=bool(errors),
        )
        return CardIdListing(
            card_ids=list(card_ids),
            total_pages=first.total_pages,
            total_cards=first.total_cards,
            errors=errors,
        )
