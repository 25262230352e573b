"""IDN card tables — idn_sets, idn_cards, attacks, abilities, search text

Revision ID: 001_idn_cards_schema
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

# revision identifiers
revision: str = "001_idn_cards_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- idn_sets ---
    op.create_table(
        "idn_sets",
        sa.Column("id", sa.String(), primary_key=True, comment="Expansion code"),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("logo_url", sa.String(), nullable=True),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )

    # --- idn_cards ---
    op.create_table(
        "idn_cards",
        sa.Column("id", sa.String(), primary_key=True, comment="Numeric catalog id"),
        sa.Column("set_id", sa.String(), sa.ForeignKey("idn_sets.id"), nullable=True),
        sa.Column("local_id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("category", sa.String(), nullable=False),
        sa.Column("subtype", sa.String(), nullable=True),
        sa.Column("stage", sa.String(), nullable=True),
        sa.Column("hp", sa.INTEGER(), nullable=True),
        sa.Column("types", JSONB(), nullable=True),
        sa.Column("regulation_mark", sa.String(1), nullable=True),
        sa.Column("rarity", sa.String(), nullable=True),
        sa.Column("illustrator", sa.String(), nullable=True),
        sa.Column("image_url", sa.String(), nullable=False),
        sa.Column("effect_text", sa.Text(), nullable=True),
        sa.Column("weakness", JSONB(), nullable=True),
        sa.Column("resistance", JSONB(), nullable=True),
        sa.Column("retreat_cost", sa.INTEGER(), nullable=True),
        sa.Column("pokedex_number", sa.INTEGER(), nullable=True),
        sa.Column("flavor_text", sa.Text(), nullable=True),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("ix_idn_cards_set_id", "idn_cards", ["set_id"])
    op.create_index("ix_idn_cards_category", "idn_cards", ["category"])

    # --- idn_card_attacks (replaced wholesale per card) ---
    op.create_table(
        "idn_card_attacks",
        sa.Column(
            "card_id",
            sa.String(),
            sa.ForeignKey("idn_cards.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("position", sa.INTEGER(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("cost", JSONB(), nullable=True),
        sa.Column("damage", sa.String(), nullable=True),
        sa.Column("effect", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("card_id", "position"),
    )

    # --- idn_card_abilities (replaced wholesale per card) ---
    op.create_table(
        "idn_card_abilities",
        sa.Column(
            "card_id",
            sa.String(),
            sa.ForeignKey("idn_cards.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("position", sa.INTEGER(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("type", sa.String(), nullable=False, server_default="Ability"),
        sa.Column("effect", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("card_id", "position"),
    )

    # --- idn_card_search_text ---
    op.create_table(
        "idn_card_search_text",
        sa.Column(
            "card_id",
            sa.String(),
            sa.ForeignKey("idn_cards.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("search_text", sa.Text(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("idn_card_search_text")
    op.drop_table("idn_card_abilities")
    op.drop_table("idn_card_attacks")
    op.drop_index("ix_idn_cards_category", table_name="idn_cards")
    op.drop_index("ix_idn_cards_set_id", table_name="idn_cards")
    op.drop_table("idn_cards")
    op.drop_table("idn_sets")
