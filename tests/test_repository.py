"""
Tests for the card repository (idncards/storage/repository.py).

Uses an in-memory SQLite database with every table created from the ORM
models.

Covers:
- upsert_card: set row, card row, children, search text
- Idempotence: storing the same card twice leaves one row per key
- Children are replaced wholesale on re-scrape
- update_rarity_only: known vs unknown ids, NULL rarity
- count_cards
- Write failures return False and never raise
"""

from __future__ import annotations

import json

import pytest
from sqlalchemy import text

from idncards.config import CardCategory, Stage
from idncards.scraper import Ability, Attack, ScrapedCard, WeakRes
from idncards.storage.repository import CardRepository, card_row


def _pokemon(**overrides) -> ScrapedCard:
    fields = {
        "id": "16815",
        "local_id": "001",
        "name": "Oddish",
        "category": CardCategory.POKEMON,
        "stage": Stage.BASIC,
        "hp": 60,
        "types": ["Grass"],
        "regulation_mark": "H",
        "illustrator": "Sanosuke Sakuma",
        "image_url": "https://asia.pokemon-card.com/id/card-img/id00016815.png",
        "set_id": "SV6a",
        "set_name": "Topeng Perubahan",
        "attacks": [
            Attack(name="Serbuk Racun", cost=["Grass"], damage="10", effect="Racun."),
            Attack(name="Sayatan Daun", cost=["Grass", "Colorless"], damage="30"),
        ],
        "weakness": WeakRes(type="Fire", value="×2"),
        "retreat_cost": 1,
        "pokedex_number": 43,
    }
    fields.update(overrides)
    return ScrapedCard(**fields)


async def _rows(session_factory, sql: str, **params) -> list:
    async with session_factory() as session:
        result = await session.execute(text(sql), params)
        return list(result.fetchall())


# ---------------------------------------------------------------------------
# card_row
# ---------------------------------------------------------------------------


def test_card_row_serializes_json_columns() -> None:
    row = card_row(_pokemon(), rarity="C")

    assert row["rarity"] == "C"
    assert row["category"] == "Pokemon"
    assert row["stage"] == "Basic"
    assert json.loads(row["types"]) == ["Grass"]
    assert json.loads(row["weakness"]) == {"type": "Fire", "value": "×2"}
    assert row["resistance"] is None


def test_card_row_empty_types_is_null() -> None:
    card = ScrapedCard(
        id="1",
        local_id="1",
        name="Ultra Ball",
        category=CardCategory.TRAINER,
        subtype="Item",
        image_url="x",
    )
    assert card_row(card, None)["types"] is None


# ---------------------------------------------------------------------------
# upsert_card
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_upsert_card_writes_every_table(session_factory) -> None:
    repo = CardRepository(session_factory)

    assert await repo.upsert_card(_pokemon(), rarity="C") is True

    sets = await _rows(session_factory, "SELECT id, name FROM idn_sets")
    assert sets == [("SV6a", "Topeng Perubahan")]

    cards = await _rows(session_factory, "SELECT id, name, rarity, hp, set_id FROM idn_cards")
    assert cards == [("16815", "Oddish", "C", 60, "SV6a")]

    attacks = await _rows(
        session_factory,
        "SELECT position, name, damage FROM idn_card_attacks WHERE card_id = :id ORDER BY position",
        id="16815",
    )
    assert attacks == [(0, "Serbuk Racun", "10"), (1, "Sayatan Daun", "30")]

    search = await _rows(session_factory, "SELECT search_text FROM idn_card_search_text")
    assert search[0][0] == "oddish serbuk racun racun. sayatan daun"


@pytest.mark.asyncio
async def test_upsert_card_is_idempotent(session_factory) -> None:
    repo = CardRepository(session_factory)

    assert await repo.upsert_card(_pokemon(), rarity="C")
    assert await repo.upsert_card(_pokemon(), rarity="C")

    assert await repo.count_cards() == 1
    assert len(await _rows(session_factory, "SELECT * FROM idn_card_attacks")) == 2
    assert len(await _rows(session_factory, "SELECT * FROM idn_card_search_text")) == 1
    assert len(await _rows(session_factory, "SELECT * FROM idn_sets")) == 1


@pytest.mark.asyncio
async def test_upsert_card_replaces_children(session_factory) -> None:
    repo = CardRepository(session_factory)
    await repo.upsert_card(_pokemon(), rarity="C")

    rescraped = _pokemon(
        attacks=[Attack(name="Serbuk Tidur", cost=["Grass"])],
        abilities=[Ability(name="Aroma Manis", effect="Sembuhkan 10 kerusakan.")],
    )
    assert await repo.upsert_card(rescraped, rarity="U")

    attacks = await _rows(session_factory, "SELECT name FROM idn_card_attacks")
    assert attacks == [("Serbuk Tidur",)]
    abilities = await _rows(session_factory, "SELECT name, type FROM idn_card_abilities")
    assert abilities == [("Aroma Manis", "Ability")]
    cards = await _rows(session_factory, "SELECT rarity FROM idn_cards")
    assert cards == [("U",)]


@pytest.mark.asyncio
async def test_upsert_card_without_set(session_factory) -> None:
    repo = CardRepository(session_factory)

    assert await repo.upsert_card(_pokemon(set_id=None, set_name=None), rarity=None)

    assert await _rows(session_factory, "SELECT * FROM idn_sets") == []
    cards = await _rows(session_factory, "SELECT set_id, rarity FROM idn_cards")
    assert cards == [(None, None)]


@pytest.mark.asyncio
async def test_upsert_card_failure_returns_false(empty_session_factory) -> None:
    """No tables: every write fails, nothing raises."""
    repo = CardRepository(empty_session_factory)

    assert await repo.upsert_card(_pokemon(), rarity="C") is False
    assert await repo.count_cards() == 0


# ---------------------------------------------------------------------------
# update_rarity_only
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_update_rarity_only_touches_rarity(session_factory) -> None:
    repo = CardRepository(session_factory)
    await repo.upsert_card(_pokemon(), rarity="C")

    assert await repo.update_rarity_only("16815", "AR") is True

    cards = await _rows(session_factory, "SELECT rarity, name, hp FROM idn_cards")
    assert cards == [("AR", "Oddish", 60)]


@pytest.mark.asyncio
async def test_update_rarity_only_to_unmarked(session_factory) -> None:
    repo = CardRepository(session_factory)
    await repo.upsert_card(_pokemon(), rarity="C")

    assert await repo.update_rarity_only("16815", None) is True
    assert await _rows(session_factory, "SELECT rarity FROM idn_cards") == [(None,)]


@pytest.mark.asyncio
async def test_update_rarity_only_unknown_card(session_factory) -> None:
    repo = CardRepository(session_factory)

    assert await repo.update_rarity_only("99999", "C") is False
    assert await repo.count_cards() == 0


@pytest.mark.asyncio
async def test_update_rarity_only_failure_returns_false(empty_session_factory) -> None:
    repo = CardRepository(empty_session_factory)
    assert await repo.update_rarity_only("16815", "C") is False
