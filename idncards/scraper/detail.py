"""
IDN Cards — Card Detail Parser

Turns one detail-page document into a validated ScrapedCard.

The page has three divergent shapes (Pokemon / Trainer / Energy) and
Indonesian labels. Classification is delegated to the classifier; this module
locates the raw text and icons and assembles the record.

A document that cannot be parsed yields None (logged with the card id) so a
single bad page never aborts a crawl.
"""

from __future__ import annotations

import re

import structlog
from bs4 import BeautifulSoup, Tag

from idncards.config import settings
from idncards.scraper import Ability, Attack, ScrapedCard, WeakRes
from idncards.scraper.classifier import (
    EnergyKind,
    PokemonKind,
    TrainerKind,
    classify,
    classify_headings,
)

logger = structlog.get_logger(__name__)

ENERGY_ICON_RE = re.compile(r"/energy/(\w+)\.png", re.IGNORECASE)
ENERGY_ICON_SELECTOR = 'img[src*="/energy/"]'
COLLECTOR_LINE_RE = re.compile(r"^[A-Z]\s+\d{3}/\d+")
VARIANT_PREFIX_RE = re.compile(r"^lainnya\s+", re.IGNORECASE)
EXPANSION_CODE_RE = re.compile(r"expansionCodes=([A-Z0-9-]+)", re.IGNORECASE)
INT_RE = re.compile(r"\d+")

WEAKNESS_LABELS = ("Kelemahan", "Weakness")
RESISTANCE_LABELS = ("Resistansi", "Resistance")
WEAKNESS_VALUE_RE = re.compile(r"[×x]\s*\d+")
RESISTANCE_VALUE_RE = re.compile(r"-\s*\d+")
DEFAULT_WEAKNESS_VALUE = "×2"

FLAVOR_TEXT_LIMIT = 500
IMAGE_ID_WIDTH = 8


class CardParseError(ValueError):
    """The document lacks a field every card must have."""


def card_image_url(card_id: str) -> str:
    """Image URL for a numeric card id (zero-padded to eight digits)."""
    padded = card_id.zfill(IMAGE_ID_WIDTH)
    return f"{settings.BASE_URL}/{settings.CATALOG_LOCALE}/card-img/{settings.CATALOG_LOCALE}{padded}.png"


# ---------------------------------------------------------------------------
# Small helpers
# ---------------------------------------------------------------------------

def _text(el: Tag | None) -> str:
    """Whitespace-collapsed text of an element ('' for None)."""
    if el is None:
        return ""
    return " ".join(el.get_text(" ").split())


def _energy_type(img: Tag) -> str | None:
    match = ENERGY_ICON_RE.search(img.get("src") or "")
    return match.group(1) if match else None


def _energy_types(container: Tag | None) -> list[str]:
    if container is None:
        return []
    found: list[str] = []
    for img in container.select(ENERGY_ICON_SELECTOR):
        energy = _energy_type(img)
        if energy:
            found.append(energy)
    return found


def _first_int(text: str) -> int | None:
    match = INT_RE.search(text)
    return int(match.group()) if match else None


# ---------------------------------------------------------------------------
# Title & classification
# ---------------------------------------------------------------------------

def _parse_title(soup: BeautifulSoup) -> tuple[str, str, str]:
    """Return (full title text, evolution marker text, clean name)."""
    h1 = soup.find("h1")
    if h1 is None:
        raise CardParseError("detail page has no h1 title")

    title_text = _text(h1)
    marker_el = h1.select_one(".evolveMarker")
    marker = _text(marker_el)
    if marker_el is not None:
        marker_el.decompose()

    name = VARIANT_PREFIX_RE.sub("", _text(h1)).strip()
    if not name:
        raise CardParseError("detail page title is empty")
    return title_text, marker, name


def _effect_text_after(heading: Tag) -> str | None:
    """
    Text of the siblings following ``heading`` up to the next h3, the
    illustrator block or a table. Collector-number lines are dropped.
    """
    parts: list[str] = []
    for sibling in heading.find_next_siblings():
        if sibling.name in ("h3", "table") or "illustrator" in (sibling.get("class") or []):
            break
        for br in sibling.find_all("br"):
            br.replace_with("\n")
        for line in sibling.get_text().splitlines():
            line = " ".join(line.split())
            if line and not COLLECTOR_LINE_RE.match(line):
                parts.append(line)
    return " ".join(parts) or None


# ---------------------------------------------------------------------------
# Pokemon-only sections
# ---------------------------------------------------------------------------

def _parse_hp(soup: BeautifulSoup) -> int | None:
    return _first_int(_text(soup.select_one(".mainInfomation .number, .hp .number")))


def _parse_types(soup: BeautifulSoup) -> list[str]:
    """Up to two distinct type icons from the header block."""
    icons = _energy_types(soup.select_one(".mainInfomation"))
    if not icons:
        info = soup.select_one(".cardInfomation")
        if info is not None:
            icons = [
                _energy_type(img) or ""
                for img in info.select(ENERGY_ICON_SELECTOR)
                if img.find_parent(class_=["skill", "skillCost"]) is None
                and img.find_parent("table") is None
            ]
    types: list[str] = []
    for icon in icons:
        if icon and icon not in types:
            types.append(icon)
    return types[:2]


def _parse_attacks(soup: BeautifulSoup) -> list[Attack]:
    attacks: list[Attack] = []
    for block in soup.select(".skill"):
        name = _text(block.select_one(".skillName"))
        if not name:
            continue
        attacks.append(
            Attack(
                name=name,
                cost=_energy_types(block.select_one(".skillCost")),
                damage=_text(block.select_one(".skillDamage")) or None,
                effect=_text(block.select_one(".skillEffect")) or None,
            )
        )
    return attacks


def _parse_abilities(soup: BeautifulSoup) -> list[Ability]:
    abilities: list[Ability] = []
    for block in soup.select(".talent, .ability"):
        name = _text(block.select_one(".talentName, .abilityName"))
        if not name:
            continue
        abilities.append(
            Ability(
                name=name,
                type=_text(block.select_one(".talentType, .abilityType")) or "Ability",
                effect=_text(block.select_one(".talentEffect, .abilityEffect, p")),
            )
        )
    return abilities


def _cell_with_label(table: Tag, labels: tuple[str, ...]) -> Tag | None:
    for cell in table.find_all(["td", "th"]):
        text = cell.get_text()
        if any(label in text for label in labels):
            return cell
    return None


def _stat_cell(table: Tag, css_class: str, labels: tuple[str, ...]) -> Tag | None:
    return (
        table.select_one(f"td.{css_class}")
        or table.select_one(f".{css_class}")
        or _cell_with_label(table, labels)
    )


def _weak_res(
    cell: Tag | None,
    labels: tuple[str, ...],
    value_re: re.Pattern[str],
    default_value: str | None,
) -> WeakRes | None:
    """
    Read an icon + modifier from a stats cell. When the cell is only the
    label, the enclosing row is scanned instead.
    """
    if cell is None:
        return None

    scopes: list[Tag] = [cell]
    if any(label in cell.get_text() for label in labels):
        row = cell.find_parent("tr") or cell.parent
        if row is not None:
            scopes.append(row)

    for scope in scopes:
        img = scope.select_one(ENERGY_ICON_SELECTOR)
        energy = _energy_type(img) if img is not None else None
        if not energy:
            continue
        value_match = value_re.search(scope.get_text(" "))
        value = "".join(value_match.group().split()) if value_match else default_value
        if value is None:
            return None
        return WeakRes(type=energy, value=value.replace("x", "×"))
    return None


def _stats_table(soup: BeautifulSoup) -> Tag | None:
    for table in soup.find_all("table"):
        text = table.get_text()
        if any(label in text for label in WEAKNESS_LABELS):
            return table
    return None


def _parse_retreat(table: Tag) -> int | None:
    cells = table.select("td.escape")
    if not cells:
        return None
    for cell in cells:
        icons = cell.select(ENERGY_ICON_SELECTOR)
        if icons:
            return len(icons)
    return 0


def _parse_pokedex_number(soup: BeautifulSoup) -> int | None:
    match = re.search(r"No\.\s*(\d+)", _text(soup.select_one(".extraInformation h3")))
    return int(match.group(1)) if match else None


def _parse_flavor_text(soup: BeautifulSoup) -> str | None:
    text = _text(soup.select_one(".discription, .description, .flavorText"))
    return text[:FLAVOR_TEXT_LIMIT] or None


# ---------------------------------------------------------------------------
# Category-independent fields
# ---------------------------------------------------------------------------

def _parse_regulation_mark(soup: BeautifulSoup) -> str | None:
    match = re.search(r"[A-Z]", _text(soup.select_one(".expansionColumn .alpha")))
    return match.group() if match else None


def _parse_local_id(soup: BeautifulSoup, card_id: str) -> str:
    match = re.match(r"\d+", _text(soup.select_one(".collectorNumber")))
    return match.group() if match else card_id


def _parse_illustrator(soup: BeautifulSoup) -> str | None:
    return _text(soup.select_one('a[href*="illustratorName"]')) or None


def _parse_set(soup: BeautifulSoup) -> tuple[str | None, str | None]:
    link = soup.select_one('a[href*="expansionCodes"]')
    if link is None:
        return None, None
    match = EXPANSION_CODE_RE.search(link.get("href") or "")
    return (match.group(1) if match else None), (_text(link) or None)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def _build_card(html: str, card_id: str) -> ScrapedCard:
    soup = BeautifulSoup(html, "html.parser")

    title_text, marker, name = _parse_title(soup)

    headings = soup.find_all("h3")
    heading_texts = [_text(h) for h in headings]
    match = classify_headings(heading_texts)
    effect_text = None
    if match.takes_effect_text and match.index is not None:
        effect_text = _effect_text_after(headings[match.index])
    kind = classify(heading_texts, title_text, marker, effect_text)

    set_id, set_name = _parse_set(soup)
    fields: dict = {
        "id": card_id,
        "local_id": _parse_local_id(soup, card_id),
        "name": name,
        "category": kind.category,
        "regulation_mark": _parse_regulation_mark(soup),
        "rarity": None,
        "illustrator": _parse_illustrator(soup),
        "image_url": card_image_url(card_id),
        "set_id": set_id,
        "set_name": set_name,
    }

    if isinstance(kind, PokemonKind):
        stats = _stats_table(soup)
        fields.update(
            stage=kind.stage,
            hp=_parse_hp(soup),
            types=_parse_types(soup),
            attacks=_parse_attacks(soup),
            abilities=_parse_abilities(soup),
            pokedex_number=_parse_pokedex_number(soup),
            flavor_text=_parse_flavor_text(soup),
        )
        if stats is not None:
            fields.update(
                weakness=_weak_res(
                    _stat_cell(stats, "weakpoint", WEAKNESS_LABELS),
                    WEAKNESS_LABELS,
                    WEAKNESS_VALUE_RE,
                    DEFAULT_WEAKNESS_VALUE,
                ),
                resistance=_weak_res(
                    _stat_cell(stats, "resist", RESISTANCE_LABELS),
                    RESISTANCE_LABELS,
                    RESISTANCE_VALUE_RE,
                    None,
                ),
                retreat_cost=_parse_retreat(stats),
            )
    elif isinstance(kind, (TrainerKind, EnergyKind)):
        fields.update(subtype=kind.subtype.value, effect_text=kind.effect_text)

    return ScrapedCard(**fields)


def parse_card_detail(html: str, card_id: str) -> ScrapedCard | None:
    """
    Parse a detail page into a ScrapedCard.

    Args:
        html: Detail page document.
        card_id: Numeric catalog id the page was fetched for.

    Returns:
        ScrapedCard with rarity unset, or None if the document could not be
        parsed (the cause is logged).
    """
    try:
        card = _build_card(html, card_id)
    except Exception as e:
        logger.error(
            "card_parse_failed",
            card_id=card_id,
            error=str(e),
            error_type=type(e).__name__,
        )
        return None

    logger.debug(
        "card_parsed",
        card_id=card_id,
        card_name=card.name,
        category=card.category.value,
        subtype=card.subtype,
        stage=card.stage.value if card.stage else None,
    )
    return card
