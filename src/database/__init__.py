"""
Dicekeeper Database Layer.

Supabase integration for character attributes and initiative persistence,
plus in-memory stores with the same interface.
"""

from src.database.character_store import (
    CharacterAttributeManager,
    CharacterStore,
    InMemoryCharacterStore,
)
from src.database.client import get_supabase_client
from src.database.initiative_store import BlobStore, InitiativeStateManager, InMemoryBlobStore
from src.database.models import CharacterAttribute, InitiativeRecord

__all__ = [
    "get_supabase_client",
    "BlobStore",
    "CharacterAttribute",
    "CharacterAttributeManager",
    "CharacterStore",
    "InitiativeRecord",
    "InitiativeStateManager",
    "InMemoryBlobStore",
    "InMemoryCharacterStore",
]
