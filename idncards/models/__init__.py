"""
Models package — export all SQLAlchemy models.
"""

from idncards.models.base import Base
from idncards.models.card import IdnCard, IdnCardAbility, IdnCardAttack, IdnCardSearchText
from idncards.models.card_set import IdnSet

__all__ = ["Base", "IdnCard", "IdnCardAbility", "IdnCardAttack", "IdnCardSearchText", "IdnSet"]
