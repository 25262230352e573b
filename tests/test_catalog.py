"""
Tests for the catalog walker (idncards/scraper/catalog.py).

Covers:
- URL builders for expansion list, listing and detail pages
- Expansion list parsing and deduplication
- Listing parsing: ids, card count, total pages from the localized phrase,
  English phrase, pager-link fallback
- list_card_ids: sequential pagination, deduplication across pages, partial
  results when a later page fails
- list_expansions: stop conditions and failure handling
"""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from idncards.scraper.catalog import (
    CatalogWalker,
    detail_url,
    expansion_list_url,
    listing_url,
    parse_expansion_list,
    parse_listing_page,
)
from idncards.scraper.fetcher import FetchError

ROOT = "https://asia.pokemon-card.com/id/card-search"


def _expansion_page(*codes: str) -> str:
    links = "".join(
        f'<a href="/id/card-search/list/?expansionCodes={code}">Set {code}</a>' for code in codes
    )
    return f"<html><body><div class='expansionList'>{links}</div></body></html>"


# ---------------------------------------------------------------------------
# URL builders
# ---------------------------------------------------------------------------


def test_url_builders() -> None:
    assert expansion_list_url() == f"{ROOT}/"
    assert expansion_list_url(3) == f"{ROOT}/?pageNo=3"
    assert listing_url("SV8a", 4) == f"{ROOT}/list/?expansionCodes=SV8a&rarity[0]=4"
    assert listing_url("SV8a", 4, page=2) == (
        f"{ROOT}/list/?pageNo=2&expansionCodes=SV8a&rarity[0]=4"
    )
    assert detail_url("16815") == f"{ROOT}/detail/16815/"


# ---------------------------------------------------------------------------
# Parsers
# ---------------------------------------------------------------------------


def test_parse_expansion_list_dedupes_in_order() -> None:
    html = _expansion_page("SV8a", "SV8", "SV8a") + (
        '<a href="/id/card-search/list/?illustratorName=Foo">Foo</a>'
    )
    expansions = parse_expansion_list(html)

    assert [e.code for e in expansions] == ["SV8a", "SV8"]
    assert expansions[0].name == "Set SV8a"


def test_parse_listing_page_localized_phrase(make_listing) -> None:
    listing = parse_listing_page(make_listing(["101", "102", "101"], page=1, total_pages=3))

    assert listing.card_ids == ["101", "102"]
    assert listing.total_pages == 3
    assert listing.total_cards == 3


def test_parse_listing_page_english_phrase() -> None:
    html = """
    <html><body>
      <a href="/id/card-search/detail/5/">x</a>
      <p>Page 1 of 4</p>
    </body></html>
    """
    listing = parse_listing_page(html)

    assert listing.card_ids == ["5"]
    assert listing.total_pages == 4
    assert listing.total_cards == 0


def test_parse_listing_page_pager_fallback() -> None:
    html = """
    <html><body>
      <a href="/id/card-search/detail/7/">x</a>
      <a href="/id/card-search/list/?pageNo=2&expansionCodes=SV8">2</a>
      <a href="/id/card-search/list/?pageNo=5&expansionCodes=SV8">5</a>
    </body></html>
    """
    assert parse_listing_page(html).total_pages == 5


def test_parse_listing_page_empty() -> None:
    listing = parse_listing_page("<html><body>0 buah</body></html>")

    assert listing.card_ids == []
    assert listing.total_pages == 1
    assert listing.total_cards == 0


# ---------------------------------------------------------------------------
# list_card_ids
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_list_card_ids_walks_every_page(fake_fetcher, make_listing) -> None:
    fetcher = fake_fetcher({
        listing_url("SV8", 1): make_listing(["1", "2"], page=1, total_pages=3),
        listing_url("SV8", 1, page=2): make_listing(["2", "3"], page=2, total_pages=3),
        listing_url("SV8", 1, page=3): make_listing(["4"], page=3, total_pages=3),
    })
    walker = CatalogWalker(fetcher, delay_seconds=0)

    with patch("asyncio.sleep", new_callable=AsyncMock):
        listing = await walker.list_card_ids("SV8", 1)

    assert listing.card_ids == ["1", "2", "3", "4"]
    assert listing.total_pages == 3
    assert listing.total_cards == 2
    assert listing.errors == []
    assert not listing.partial
    assert fetcher.calls == [
        listing_url("SV8", 1),
        listing_url("SV8", 1, page=2),
        listing_url("SV8", 1, page=3),
    ]


@pytest.mark.asyncio
async def test_list_card_ids_single_page(fake_fetcher, make_listing) -> None:
    fetcher = fake_fetcher({listing_url("SV8", 11): make_listing(["9"])})
    walker = CatalogWalker(fetcher, delay_seconds=0)

    listing = await walker.list_card_ids("SV8", 11)

    assert listing.card_ids == ["9"]
    assert len(fetcher.calls) == 1


@pytest.mark.asyncio
async def test_list_card_ids_first_page_failure_propagates(fake_fetcher, fetch_error) -> None:
    url = listing_url("SV8", 1)
    walker = CatalogWalker(fake_fetcher({url: fetch_error(url)}), delay_seconds=0)

    with pytest.raises(FetchError):
        await walker.list_card_ids("SV8", 1)


@pytest.mark.asyncio
async def test_list_card_ids_later_failure_keeps_collected_ids(
    fake_fetcher, make_listing, fetch_error
) -> None:
    failing = listing_url("SV8", 1, page=3)
    fetcher = fake_fetcher({
        listing_url("SV8", 1): make_listing(["1", "2"], page=1, total_pages=4),
        listing_url("SV8", 1, page=2): make_listing(["2", "3"], page=2, total_pages=4),
        failing: fetch_error(failing),
        listing_url("SV8", 1, page=4): make_listing(["4"], page=4, total_pages=4),
    })
    walker = CatalogWalker(fetcher, delay_seconds=0)

    with patch("asyncio.sleep", new_callable=AsyncMock):
        listing = await walker.list_card_ids("SV8", 1)

    assert listing.card_ids == ["1", "2", "3"]
    assert listing.partial
    assert listing.errors == [f"page 3/4: HTTP 500 fetching {failing} after 3 attempts"]
    # Paging stops at the failed page.
    assert listing_url("SV8", 1, page=4) not in fetcher.calls


# ---------------------------------------------------------------------------
# list_expansions
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_list_expansions_stops_when_nothing_new(fake_fetcher) -> None:
    fetcher = fake_fetcher({
        expansion_list_url(1): _expansion_page("SV8a", "SV8"),
        expansion_list_url(2): _expansion_page("SV7"),
        # Page 3 repeats page 1: the site returns the last page again.
        expansion_list_url(3): _expansion_page("SV8a", "SV8"),
    })
    walker = CatalogWalker(fetcher, delay_seconds=0)

    with patch("asyncio.sleep", new_callable=AsyncMock):
        expansions = await walker.list_expansions()

    assert [e.code for e in expansions] == ["SV8a", "SV8", "SV7"]
    assert len(fetcher.calls) == 3


@pytest.mark.asyncio
async def test_list_expansions_respects_page_limit(fake_fetcher) -> None:
    fetcher = fake_fetcher({
        expansion_list_url(page): _expansion_page(f"S{page}") for page in range(1, 10)
    })
    walker = CatalogWalker(fetcher, delay_seconds=0, page_limit=2)

    with patch("asyncio.sleep", new_callable=AsyncMock):
        expansions = await walker.list_expansions()

    assert [e.code for e in expansions] == ["S1", "S2"]
    assert len(fetcher.calls) == 2


@pytest.mark.asyncio
async def test_list_expansions_first_page_failure_propagates(fake_fetcher, fetch_error) -> None:
    url = expansion_list_url(1)
    walker = CatalogWalker(fake_fetcher({url: fetch_error(url)}), delay_seconds=0)

    with pytest.raises(FetchError):
        await walker.list_expansions()


@pytest.mark.asyncio
async def test_list_expansions_later_failure_keeps_partial(fake_fetcher, fetch_error) -> None:
    url = expansion_list_url(2)
    fetcher = fake_fetcher({
        expansion_list_url(1): _expansion_page("SV8a"),
        url: fetch_error(url),
    })
    walker = CatalogWalker(fetcher, delay_seconds=0)

    with patch("asyncio.sleep", new_callable=AsyncMock):
        expansions = await walker.list_expansions()

    assert [e.code for e in expansions] == ["SV8a"]
