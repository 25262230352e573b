"""
IDN Cards — Detail Parser Smoke Check

Fetches one live card per stage / subtype, runs the detail parser and reports
any card whose classification differs from what is expected. Use after the
catalog site changes its markup.

Usage:
    python scripts/check_parser.py
    python scripts/check_parser.py --only vmax supporter
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys

# Resolve project root so this script can be run from any working directory
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from idncards.config import settings
from idncards.scraper import ScrapedCard
from idncards.scraper.catalog import detail_url
from idncards.scraper.detail import parse_card_detail
from idncards.scraper.fetcher import Fetcher, FetchError

# sample name -> (card id, expected category, expected subtype, expected stage)
SAMPLE_CARDS: dict[str, tuple[str, str, str | None, str | None]] = {
    "basic": ("16815", "Pokemon", None, "Basic"),
    "stage1": ("16816", "Pokemon", None, "Stage 1"),
    "stage2": ("16817", "Pokemon", None, "Stage 2"),
    "vstar": ("6706", "Pokemon", None, "VSTAR"),
    "vmax": ("8411", "Pokemon", None, "VMAX"),
    "item": ("16903", "Trainer", "Item", None),
    "supporter": ("16913", "Trainer", "Supporter", None),
    "stadium": ("16916", "Trainer", "Stadium", None),
    "tool": ("16910", "Trainer", "Pokemon Tool", None),
    "basic_energy": ("15357", "Energy", "Basic", None),
    "special_energy": ("16310", "Energy", "Special", None),
}


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Check the detail parser against known live cards.",
    )
    parser.add_argument(
        "--only",
        nargs="+",
        choices=sorted(SAMPLE_CARDS),
        help="Check only these samples.",
    )
    return parser.parse_args()


def mismatches(card: ScrapedCard, expected: tuple[str, str, str | None, str | None]) -> list[str]:
    _, category, subtype, stage = expected
    issues: list[str] = []
    if card.category.value != category:
        issues.append(f"category {card.category.value!r} != {category!r}")
    if card.subtype != subtype:
        issues.append(f"subtype {card.subtype!r} != {subtype!r}")
    actual_stage = card.stage.value if card.stage else None
    if actual_stage != stage:
        issues.append(f"stage {actual_stage!r} != {stage!r}")
    if subtype == "Special" and not card.effect_text:
        issues.append("special energy without effect text")
    return issues


async def run(samples: list[str]) -> int:
    failures = 0
    async with Fetcher() as fetcher:
        for sample in samples:
            card_id = SAMPLE_CARDS[sample][0]
            print(f"\n{sample.upper()} (id {card_id})")
            try:
                html = await fetcher.fetch(detail_url(card_id))
            except FetchError as e:
                print(f"  ERROR: {e}")
                failures += 1
                continue

            card = parse_card_detail(html, card_id)
            if card is None:
                print("  ERROR: parser returned nothing")
                failures += 1
                continue

            print(f"  Name: {card.name}")
            print(f"  Category: {card.category.value}  Subtype: {card.subtype or 'N/A'}")
            print(f"  Stage: {card.stage.value if card.stage else 'N/A'}  HP: {card.hp or 'N/A'}")
            if card.attacks:
                print(f"  Attacks: {', '.join(a.name for a in card.attacks)}")
            if card.abilities:
                print(f"  Abilities: {', '.join(a.name for a in card.abilities)}")
            if card.effect_text:
                print(f"  Effect: {card.effect_text[:100]}")

            issues = mismatches(card, SAMPLE_CARDS[sample])
            if issues:
                failures += 1
                print(f"  MISMATCH: {'; '.join(issues)}")
            else:
                print("  OK")

            await asyncio.sleep(settings.REQUEST_DELAY_SECONDS)

    print(f"\n{len(samples) - failures}/{len(samples)} samples OK")
    return 1 if failures else 0


if __name__ == "__main__":
    args = parse_args()
    sys.exit(asyncio.run(run(args.only or list(SAMPLE_CARDS))))
