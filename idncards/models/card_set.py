"""
IDN Cards — Set Model

One row per expansion discovered on the catalog. Upserted by code each time a
card from the set is stored.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import TIMESTAMP, String, func
from sqlalchemy.orm import Mapped, mapped_column

from idncards.models.base import Base


class IdnSet(Base):
    """An expansion, keyed by its catalog code (e.g. 'SV8a')."""

    __tablename__ = "idn_sets"

    id: Mapped[str] = mapped_column(
        String, primary_key=True, comment="Expansion code from the catalog filter"
    )
    name: Mapped[str] = mapped_column(String, nullable=False, comment="Expansion display name")
    logo_url: Mapped[str | None] = mapped_column(
        String, nullable=True, comment="Set logo, maintained outside the scraper"
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    def __repr__(self) -> str:
        return f"<IdnSet id={self.id!r} name={self.name!r}>"
