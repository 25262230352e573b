"""
IDN Cards — Shared pytest Fixtures & Configuration

Provides common fixtures for all test modules:
- HTML fixture loader (tests/fixtures/*.html)
- In-memory SQLite session factory with every table created
- Fake fetcher / repository doubles for crawl orchestration tests
- Async test support via pytest-asyncio
"""

from __future__ import annotations

from pathlib import Path
from typing import AsyncGenerator, Callable

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from idncards.models import Base
from idncards.scraper import ScrapedCard
from idncards.scraper.fetcher import FetchError

FIXTURES_DIR = Path(__file__).parent / "fixtures"


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

pytest_plugins = ("pytest_asyncio",)


# ---------------------------------------------------------------------------
# Fixture Loaders
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def load_html() -> Callable[[str], str]:
    """Return a loader for tests/fixtures/<name>.html."""

    def _load(name: str) -> str:
        return (FIXTURES_DIR / f"{name}.html").read_text(encoding="utf-8")

    return _load


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """
    Session factory over a fresh in-memory SQLite database.

    StaticPool keeps every session on the same connection, so the tables
    survive between sessions.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
async def empty_session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Session factory over a database with no tables (every write fails)."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------


class FakeFetcher:
    """Serves canned HTML by exact URL and records every request."""

    def __init__(self, pages: dict[str, str | Exception]) -> None:
        self.pages = pages
        self.calls: list[str] = []

    async def fetch(self, url: str) -> str:
        self.calls.append(url)
        page = self.pages.get(url)
        if isinstance(page, Exception):
            raise page
        if page is None:
            return "<html><body></body></html>"
        return page


class FakeRepository:
    """Records upserts and relabels instead of writing to a database."""

    def __init__(self, known_ids: set[str] | None = None, fail_ids: set[str] | None = None) -> None:
        self.upserts: list[tuple[ScrapedCard, str | None]] = []
        self.relabels: list[tuple[str, str | None]] = []
        self.known_ids = known_ids or set()
        self.fail_ids = fail_ids or set()

    async def upsert_card(self, card: ScrapedCard, rarity: str | None) -> bool:
        if card.id in self.fail_ids:
            return False
        self.upserts.append((card, rarity))
        return True

    async def update_rarity_only(self, card_id: str, rarity: str | None) -> bool:
        self.relabels.append((card_id, rarity))
        return card_id in self.known_ids

    async def count_cards(self) -> int:
        return len(self.upserts)


@pytest.fixture
def fake_fetcher() -> Callable[[dict[str, str | Exception]], FakeFetcher]:
    return FakeFetcher


@pytest.fixture
def fake_repository() -> Callable[..., FakeRepository]:
    return FakeRepository


@pytest.fixture
def fetch_error() -> Callable[[str], FetchError]:
    """Build the error a Fetcher raises after three HTTP 500s."""

    def _make(url: str) -> FetchError:
        return FetchError(url, attempts=3, status_code=500)

    return _make


def listing_html(card_ids: list[str], page: int = 1, total_pages: int = 1) -> str:
    """Minimal listing page in the Indonesian site's shape."""
    links = "\n".join(
        f'<li><a href="/id/card-search/detail/{card_id}/"><img src="/id/card-img/id{card_id.zfill(8)}.png"></a></li>'
        for card_id in card_ids
    )
    return f"""
    <html><body>
      <p class="resultTotalPages">{len(card_ids)} buah</p>
      <ul class="list">{links}</ul>
      <p class="pageNumber">Halaman {page} / Total {total_pages} halaman</p>
    </body></html>
    """


@pytest.fixture
def make_listing() -> Callable[..., str]:
    return listing_html
