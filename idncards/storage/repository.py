"""
IDN Cards — Card Repository (persistence adapter)

Writes ScrapedCards into idn_sets, idn_cards, idn_card_attacks,
idn_card_abilities and idn_card_search_text.

Every write is keyed for idempotency (set by code, card by id, children
replaced wholesale, search text by card id), so re-scraping is the recovery
path. Each write is its own session and commit: a failure in one is logged
and reported as ``False`` without undoing the others, and nothing raises to
the caller.
"""

from __future__ import annotations

import json
from typing import Any

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from idncards.scraper import ScrapedCard

logger = structlog.get_logger(__name__)


UPSERT_SET_SQL = text("""
    INSERT INTO idn_sets (id, name, updated_at)
    VALUES (:id, :name, CURRENT_TIMESTAMP)
    ON CONFLICT (id) DO UPDATE SET
        name = EXCLUDED.name,
        updated_at = CURRENT_TIMESTAMP
""")

UPSERT_CARD_SQL = text("""
    INSERT INTO idn_cards (
        id, set_id, local_id, name, category, subtype, stage, hp, types,
        regulation_mark, rarity, illustrator, image_url, effect_text,
        weakness, resistance, retreat_cost, pokedex_number, flavor_text,
        updated_at
    ) VALUES (
        :id, :set_id, :local_id, :name, :category, :subtype, :stage, :hp, :types,
        :regulation_mark, :rarity, :illustrator, :image_url, :effect_text,
        :weakness, :resistance, :retreat_cost, :pokedex_number, :flavor_text,
        CURRENT_TIMESTAMP
    )
    ON CONFLICT (id) DO UPDATE SET
        set_id = EXCLUDED.set_id,
        local_id = EXCLUDED.local_id,
        name = EXCLUDED.name,
        category = EXCLUDED.category,
        subtype = EXCLUDED.subtype,
        stage = EXCLUDED.stage,
        hp = EXCLUDED.hp,
        types = EXCLUDED.types,
        regulation_mark = EXCLUDED.regulation_mark,
        rarity = EXCLUDED.rarity,
        illustrator = EXCLUDED.illustrator,
        image_url = EXCLUDED.image_url,
        effect_text = EXCLUDED.effect_text,
        weakness = EXCLUDED.weakness,
        resistance = EXCLUDED.resistance,
        retreat_cost = EXCLUDED.retreat_cost,
        pokedex_number = EXCLUDED.pokedex_number,
        flavor_text = EXCLUDED.flavor_text,
        updated_at = CURRENT_TIMESTAMP
""")

DELETE_ATTACKS_SQL = text("DELETE FROM idn_card_attacks WHERE card_id = :card_id")
INSERT_ATTACK_SQL = text("""
    INSERT INTO idn_card_attacks (card_id, position, name, cost, damage, effect)
    VALUES (:card_id, :position, :name, :cost, :damage, :effect)
""")

DELETE_ABILITIES_SQL = text("DELETE FROM idn_card_abilities WHERE card_id = :card_id")
INSERT_ABILITY_SQL = text("""
    INSERT INTO idn_card_abilities (card_id, position, name, type, effect)
    VALUES (:card_id, :position, :name, :type, :effect)
""")

UPSERT_SEARCH_TEXT_SQL = text("""
    INSERT INTO idn_card_search_text (card_id, search_text)
    VALUES (:card_id, :search_text)
    ON CONFLICT (card_id) DO UPDATE SET
        search_text = EXCLUDED.search_text
""")

UPDATE_RARITY_SQL = text("""
    UPDATE idn_cards
    SET rarity = :rarity, updated_at = CURRENT_TIMESTAMP
    WHERE id = :card_id
""")

COUNT_CARDS_SQL = text("SELECT COUNT(*) FROM idn_cards")


def _json(value: Any) -> str | None:
    """Serialize a JSON column value; empty lists and None become NULL."""
    if value is None or value == []:
        return None
    return json.dumps(value, ensure_ascii=False)


def card_row(card: ScrapedCard, rarity: str | None) -> dict[str, Any]:
    """Bind parameters for the idn_cards upsert."""
    return {
        "id": card.id,
        "set_id": card.set_id,
        "local_id": card.local_id,
        "name": card.name,
        "category": card.category.value,
        "subtype": card.subtype,
        "stage": card.stage.value if card.stage else None,
        "hp": card.hp,
        "types": _json(card.types),
        "regulation_mark": card.regulation_mark,
        "rarity": rarity,
        "illustrator": card.illustrator,
        "image_url": card.image_url,
        "effect_text": card.effect_text,
        "weakness": _json(card.weakness.model_dump() if card.weakness else None),
        "resistance": _json(card.resistance.model_dump() if card.resistance else None),
        "retreat_cost": card.retreat_cost,
        "pokedex_number": card.pokedex_number,
        "flavor_text": card.flavor_text,
    }


class CardRepository:
    """
    Persistence adapter over an injected session factory.

    Usage:
        repo = CardRepository(session_factory)
        ok = await repo.upsert_card(card, rarity="RR")
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def _write(
        self,
        step: str,
        card_id: str,
        statements: list[tuple[Any, Any]],
    ) -> bool:
        """Run statements in one session and commit; log and roll back on failure."""
        async with self._session_factory() as session:
            try:
                for stmt, params in statements:
                    await session.execute(stmt, params)
                await session.commit()
                return True
            except Exception as e:
                await session.rollback()
                logger.error(
                    f"repository_{step}_failed",
                    card_id=card_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                return False

    async def upsert_set(self, set_id: str, set_name: str, card_id: str = "") -> bool:
        return await self._write(
            "set_upsert", card_id, [(UPSERT_SET_SQL, {"id": set_id, "name": set_name})]
        )

    async def replace_attacks(self, card: ScrapedCard) -> bool:
        statements: list[tuple[Any, Any]] = [(DELETE_ATTACKS_SQL, {"card_id": card.id})]
        if card.attacks:
            statements.append((
                INSERT_ATTACK_SQL,
                [
                    {
                        "card_id": card.id,
                        "position": position,
                        "name": attack.name,
                        "cost": _json(attack.cost),
                        "damage": attack.damage,
                        "effect": attack.effect,
                    }
                    for position, attack in enumerate(card.attacks)
                ],
            ))
        return await self._write("attacks_replace", card.id, statements)

    async def replace_abilities(self, card: ScrapedCard) -> bool:
        statements: list[tuple[Any, Any]] = [(DELETE_ABILITIES_SQL, {"card_id": card.id})]
        if card.abilities:
            statements.append((
                INSERT_ABILITY_SQL,
                [
                    {
                        "card_id": card.id,
                        "position": position,
                        "name": ability.name,
                        "type": ability.type,
                        "effect": ability.effect,
                    }
                    for position, ability in enumerate(card.abilities)
                ],
            ))
        return await self._write("abilities_replace", card.id, statements)

    async def upsert_search_text(self, card: ScrapedCard) -> bool:
        return await self._write(
            "search_text_upsert",
            card.id,
            [(UPSERT_SEARCH_TEXT_SQL, {"card_id": card.id, "search_text": card.search_blob()})],
        )

    async def upsert_card(self, card: ScrapedCard, rarity: str | None) -> bool:
        """
        Store a card and everything derived from it.

        Args:
            card: Parsed card.
            rarity: Rarity label from the crawl filter, or None for unmarked.

        Returns:
            True if every write succeeded.
        """
        ok = True
        if card.set_id and card.set_name:
            ok = await self.upsert_set(card.set_id, card.set_name, card.id) and ok

        if not await self._write("card_upsert", card.id, [(UPSERT_CARD_SQL, card_row(card, rarity))]):
            # Children reference the card row; nothing else can land.
            return False

        ok = await self.replace_attacks(card) and ok
        ok = await self.replace_abilities(card) and ok
        ok = await self.upsert_search_text(card) and ok

        if ok:
            logger.debug("repository_card_stored", card_id=card.id, rarity=rarity)
        return ok

    async def update_rarity_only(self, card_id: str, rarity: str | None) -> bool:
        """
        Relabel an existing card without touching anything else.

        Returns:
            True if a row was updated; False if the card is unknown or the
            write failed.
        """
        async with self._session_factory() as session:
            try:
                result = await session.execute(
                    UPDATE_RARITY_SQL, {"card_id": card_id, "rarity": rarity}
                )
                await session.commit()
            except Exception as e:
                await session.rollback()
                logger.error(
                    "repository_rarity_update_failed",
                    card_id=card_id,
                    rarity=rarity,
                    error=str(e),
                )
                return False
        if result.rowcount == 0:
            logger.debug("repository_rarity_update_missing", card_id=card_id)
            return False
        return True

    async def count_cards(self) -> int:
        """Total rows in idn_cards (0 if the count query fails)."""
        async with self._session_factory() as session:
            try:
                result = await session.execute(COUNT_CARDS_SQL)
                return int(result.scalar_one())
            except Exception as e:
                logger.error("repository_count_failed", error=str(e))
                return 0
