"""IDN Cards — Scraper Layer record types"""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator

from idncards.config import CardCategory, EnergySubtype, Stage


class Expansion(BaseModel):
    """A released card set as listed on the catalog root."""
    code: str
    name: str


class ListingPage(BaseModel):
    """Card ids and pagination info parsed from one listing document."""
    card_ids: list[str] = Field(default_factory=list)
    total_pages: int = 1
    total_cards: int = 0


class CardIdListing(BaseModel):
    """
    Card ids gathered across every listing page of one expansion + rarity.

    ``errors`` holds later-page fetch failures; when non-empty the ids are
    only those from the pages that loaded.
    """
    card_ids: list[str] = Field(default_factory=list)
    total_pages: int = 1
    total_cards: int = 0
    errors: list[str] = Field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.errors)


class WeakRes(BaseModel):
    """Weakness or resistance entry, e.g. Fire ×2 / Water -30."""
    type: str
    value: str


class Attack(BaseModel):
    name: str
    cost: list[str] = Field(default_factory=list)
    damage: str | None = None
    effect: str | None = None


class Ability(BaseModel):
    name: str
    type: str = "Ability"
    effect: str = ""


class ScrapedCard(BaseModel):
    """
    Normalized record parsed from a single detail page.

    Pokemon-only fields stay empty for Trainer and Energy cards, and
    ``effect_text`` only exists for Trainers and Special Energy. ``rarity``
    is always None here; the crawl context that found the id supplies it.
    """
    id: str
    local_id: str
    name: str
    category: CardCategory
    subtype: str | None = None
    stage: Stage | None = None
    hp: int | None = Field(default=None, ge=0)
    types: list[str] = Field(default_factory=list, max_length=2)
    regulation_mark: str | None = Field(default=None, pattern=r"^[A-Z]$")
    rarity: str | None = None
    illustrator: str | None = None
    image_url: str
    set_id: str | None = None
    set_name: str | None = None
    attacks: list[Attack] = Field(default_factory=list)
    abilities: list[Ability] = Field(default_factory=list)
    effect_text: str | None = None
    weakness: WeakRes | None = None
    resistance: WeakRes | None = None
    retreat_cost: int | None = Field(default=None, ge=0)
    pokedex_number: int | None = None
    flavor_text: str | None = None

    @model_validator(mode="after")
    def _check_category_fields(self) -> "ScrapedCard":
        if self.category is CardCategory.POKEMON:
            if self.subtype is not None:
                raise ValueError("Pokemon cards carry no subtype")
            if self.effect_text is not None:
                raise ValueError("Pokemon cards carry no effect text")
            return self

        leaked = [
            field for field in (
                "stage", "hp", "weakness", "resistance", "retreat_cost",
                "pokedex_number", "flavor_text",
            )
            if getattr(self, field) is not None
        ]
        leaked += [
            field for field in ("types", "attacks", "abilities")
            if getattr(self, field)
        ]
        if leaked:
            raise ValueError(
                f"{self.category.value} card has Pokemon-only fields: {', '.join(leaked)}"
            )
        if self.category is CardCategory.ENERGY and self.subtype == EnergySubtype.BASIC.value:
            if self.effect_text is not None:
                raise ValueError("Basic Energy carries no effect text")
        return self

    @property
    def is_pokemon(self) -> bool:
        return self.category is CardCategory.POKEMON

    def search_blob(self) -> str:
        """Lowercase text used for substring search: name, rules, attacks, abilities."""
        parts: list[str | None] = [self.name, self.effect_text]
        for attack in self.attacks:
            parts.extend([attack.name, attack.effect])
        for ability in self.abilities:
            parts.extend([ability.name, ability.effect])
        return " ".join(p for p in parts if p).lower()
