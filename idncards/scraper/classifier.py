"""
IDN Cards — Card Classifier

Maps raw heading, title and evolution-marker text from a detail page onto the
closed card taxonomy (category, subtype, stage).

Rules:
- Headings are scanned in document order; the first one found in any lookup
  table fixes the category. No match at all means Pokemon.
- Stage markers are matched exactly first, then the ordered patterns below.
  Longer tokens come before the ones they contain (VSTAR/VMAX before V).
"""

from __future__ import annotations

import re
from typing import Literal, Sequence, Union

from pydantic import BaseModel

from idncards.config import CardCategory, EnergySubtype, Stage, TrainerSubtype

# ---------------------------------------------------------------------------
# Lookup tables (keys are lowercased, trimmed heading text)
# ---------------------------------------------------------------------------

TRAINER_SUBTYPES: dict[str, TrainerSubtype] = {
    "item": TrainerSubtype.ITEM,
    "supporter": TrainerSubtype.SUPPORTER,
    "stadium": TrainerSubtype.STADIUM,
    "pokémon tool": TrainerSubtype.POKEMON_TOOL,
    "pokemon tool": TrainerSubtype.POKEMON_TOOL,
    "alat pokémon": TrainerSubtype.POKEMON_TOOL,
    "alat pokemon": TrainerSubtype.POKEMON_TOOL,
    "tool": TrainerSubtype.POKEMON_TOOL,
}

ENERGY_SUBTYPES: dict[str, EnergySubtype] = {
    "energi dasar": EnergySubtype.BASIC,
    "basic energy": EnergySubtype.BASIC,
    "energi spesial": EnergySubtype.SPECIAL,
    "special energy": EnergySubtype.SPECIAL,
    "energi khusus": EnergySubtype.SPECIAL,
}

ATTACK_HEADINGS: frozenset[str] = frozenset({"attacks", "attack", "serangan"})

MARKER_STAGES: dict[str, Stage] = {
    "basic": Stage.BASIC,
    "dasar": Stage.BASIC,
    "stage 1": Stage.STAGE_1,
    "tahap 1": Stage.STAGE_1,
    "stage 2": Stage.STAGE_2,
    "tahap 2": Stage.STAGE_2,
}

# Order matters: first match wins.
STAGE_PATTERNS: list[tuple[re.Pattern[str], Stage]] = [
    (re.compile(r"\bVSTAR\b", re.IGNORECASE), Stage.VSTAR),
    (re.compile(r"\bVMAX\b", re.IGNORECASE), Stage.VMAX),
    (re.compile(r"\bV\b(?!MAX|STAR)", re.IGNORECASE), Stage.V),
    (re.compile(r"\bGX\b", re.IGNORECASE), Stage.GX),
    (re.compile(r"\bEX\b"), Stage.EX),
    (re.compile(r"\bex\b"), Stage.EX_LOWER),
    (re.compile(r"\bBREAK\b", re.IGNORECASE), Stage.BREAK),
    (re.compile(r"prism\s*star|◇", re.IGNORECASE), Stage.PRISM_STAR),
    (re.compile(r"\bRadiant\b", re.IGNORECASE), Stage.RADIANT),
]


# ---------------------------------------------------------------------------
# Classification result (tagged union)
# ---------------------------------------------------------------------------

class PokemonKind(BaseModel):
    category: Literal[CardCategory.POKEMON] = CardCategory.POKEMON
    stage: Stage | None = None


class TrainerKind(BaseModel):
    category: Literal[CardCategory.TRAINER] = CardCategory.TRAINER
    subtype: TrainerSubtype
    effect_text: str | None = None


class EnergyKind(BaseModel):
    category: Literal[CardCategory.ENERGY] = CardCategory.ENERGY
    subtype: EnergySubtype
    effect_text: str | None = None


CardKind = Union[PokemonKind, TrainerKind, EnergyKind]


class HeadingMatch(BaseModel):
    """Which heading decided the category, and what it decided."""
    category: CardCategory
    subtype: TrainerSubtype | EnergySubtype | None = None
    index: int | None = None    # Position in the scanned heading list

    @property
    def takes_effect_text(self) -> bool:
        return self.category is CardCategory.TRAINER or (
            self.category is CardCategory.ENERGY and self.subtype is EnergySubtype.SPECIAL
        )


def _normalize(text: str) -> str:
    return " ".join(text.split()).lower()


def classify_headings(headings: Sequence[str]) -> HeadingMatch:
    """
    Resolve category/subtype from section headings in document order.

    The first heading found in the Trainer table, the Energy table or the
    attack-heading set wins. With no match the card is a Pokemon.
    """
    for index, raw in enumerate(headings):
        key = _normalize(raw)
        if key in TRAINER_SUBTYPES:
            return HeadingMatch(
                category=CardCategory.TRAINER, subtype=TRAINER_SUBTYPES[key], index=index
            )
        if key in ENERGY_SUBTYPES:
            return HeadingMatch(
                category=CardCategory.ENERGY, subtype=ENERGY_SUBTYPES[key], index=index
            )
        if key in ATTACK_HEADINGS:
            return HeadingMatch(category=CardCategory.POKEMON, index=index)
    return HeadingMatch(category=CardCategory.POKEMON)


def detect_stage(title: str, marker: str) -> Stage | None:
    """
    Detect a Pokemon's stage from the evolution marker and title text.

    Exact marker matches (including the Indonesian ``Dasar``/``Tahap N``) win.
    Otherwise the combined text is tested against STAGE_PATTERNS in order. A
    marker that is present but unrecognized yields ``Stage.OTHER``.
    """
    marker_key = _normalize(marker)
    if marker_key in MARKER_STAGES:
        return MARKER_STAGES[marker_key]

    combined = f"{title} {marker}"
    for pattern, stage in STAGE_PATTERNS:
        if pattern.search(combined):
            return stage

    if marker_key:
        return Stage.OTHER
    return None


def classify(
    headings: Sequence[str],
    title: str,
    marker: str,
    effect_text: str | None = None,
) -> CardKind:
    """
    Build the tagged classification for a card.

    ``effect_text`` is the text trailing the deciding heading; it is kept only
    for Trainers and Special Energy.
    """
    match = classify_headings(headings)
    if match.category is CardCategory.TRAINER:
        return TrainerKind(subtype=match.subtype, effect_text=effect_text or None)
    if match.category is CardCategory.ENERGY:
        if not match.takes_effect_text:
            effect_text = None
        return EnergyKind(subtype=match.subtype, effect_text=effect_text or None)
    return PokemonKind(stage=detect_stage(title, marker))
