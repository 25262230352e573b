"""
IDN Cards — Card Models

- idn_cards: one row per catalog card id, fully replaced on every scrape
- idn_card_attacks / idn_card_abilities: ordered children, deleted and
  reinserted on every scrape (``position`` keeps source order)
- idn_card_search_text: lowercase blob for substring search
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import INTEGER, TIMESTAMP, ForeignKey, Index, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from idncards.models.base import Base, JSONType


class IdnCard(Base):
    """
    A scraped card.

    ``rarity`` comes from the listing filter the id was found under; NULL
    means the "no mark" filter.
    """

    __tablename__ = "idn_cards"

    id: Mapped[str] = mapped_column(String, primary_key=True, comment="Numeric catalog id")
    set_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("idn_sets.id"), nullable=True
    )
    local_id: Mapped[str] = mapped_column(String, nullable=False, comment="Collector number")
    name: Mapped[str] = mapped_column(String, nullable=False)
    category: Mapped[str] = mapped_column(
        String, nullable=False, comment="Pokemon | Trainer | Energy"
    )
    subtype: Mapped[str | None] = mapped_column(
        String, nullable=True, comment="Trainer/Energy subtype"
    )
    stage: Mapped[str | None] = mapped_column(String, nullable=True, comment="Pokemon stage")
    hp: Mapped[int | None] = mapped_column(INTEGER, nullable=True)
    types: Mapped[list[str] | None] = mapped_column(JSONType, nullable=True)
    regulation_mark: Mapped[str | None] = mapped_column(String(1), nullable=True)
    rarity: Mapped[str | None] = mapped_column(String, nullable=True)
    illustrator: Mapped[str | None] = mapped_column(String, nullable=True)
    image_url: Mapped[str] = mapped_column(String, nullable=False)
    effect_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    weakness: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    resistance: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    retreat_cost: Mapped[int | None] = mapped_column(INTEGER, nullable=True)
    pokedex_number: Mapped[int | None] = mapped_column(INTEGER, nullable=True)
    flavor_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    __table_args__ = (
        Index("ix_idn_cards_set_id", "set_id"),
        Index("ix_idn_cards_category", "category"),
    )

    def __repr__(self) -> str:
        return (
            f"<IdnCard id={self.id!r} name={self.name!r} "
            f"category={self.category!r} rarity={self.rarity!r}>"
        )


class IdnCardAttack(Base):
    """An attack, in source order."""

    __tablename__ = "idn_card_attacks"

    card_id: Mapped[str] = mapped_column(
        String, ForeignKey("idn_cards.id", ondelete="CASCADE"), primary_key=True
    )
    position: Mapped[int] = mapped_column(INTEGER, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    cost: Mapped[list[str] | None] = mapped_column(JSONType, nullable=True)
    damage: Mapped[str | None] = mapped_column(String, nullable=True)
    effect: Mapped[str | None] = mapped_column(Text, nullable=True)


class IdnCardAbility(Base):
    """An ability, in source order."""

    __tablename__ = "idn_card_abilities"

    card_id: Mapped[str] = mapped_column(
        String, ForeignKey("idn_cards.id", ondelete="CASCADE"), primary_key=True
    )
    position: Mapped[int] = mapped_column(INTEGER, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    type: Mapped[str] = mapped_column(String, nullable=False, server_default="Ability")
    effect: Mapped[str | None] = mapped_column(Text, nullable=True)


class IdnCardSearchText(Base):
    """Denormalized lowercase text for substring search."""

    __tablename__ = "idn_card_search_text"

    card_id: Mapped[str] = mapped_column(
        String, ForeignKey("idn_cards.id", ondelete="CASCADE"), primary_key=True
    )
    search_text: Mapped[str] = mapped_column(Text, nullable=False)
