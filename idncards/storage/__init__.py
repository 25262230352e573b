"""IDN Cards — Storage Layer"""

from idncards.storage.repository import CardRepository

__all__ = ["CardRepository"]
