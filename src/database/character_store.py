"""
Dicekeeper - Character Store

Named numeric attributes per character card, capped at a maximum number
of attributes per card. Updating an existing attribute is always allowed;
adding a new one fails once the card is full.
"""

from __future__ import annotations

import threading
from typing import Protocol

from supabase import Client

from src.database.models import CharacterAttribute


class CharacterStore(Protocol):
    """Attribute storage consumed by the engine and services."""

    def get_attribute(self, card_id: str, name: str) -> int | None:
        ...

    def set_attribute(self, card_id: str, name: str, value: int, max_attributes: int) -> bool:
        ...

    def get_all_attributes(self, card_id: str) -> dict[str, int]:
        ...


class InMemoryCharacterStore:
    """Process-local CharacterStore, used in tests and when Supabase is not configured."""

    def __init__(self, cards: dict[str, dict[str, int]] | None = None) -> None:
        self._cards: dict[str, dict[str, int]] = {
            card: dict(attrs) for card, attrs in (cards or {}).items()
        }
        self._lock = threading.Lock()

    def get_attribute(self, card_id: str, name: str) -> int | None:
        with self._lock:
            return self._cards.get(card_id, {}).get(name)

    def set_attribute(self, card_id: str, name: str, value: int, max_attributes: int) -> bool:
        with self._lock:
            attrs = self._cards.setdefault(card_id, {})
            if name not in attrs and len(attrs) >= max_attributes:
                return False
            attrs[name] = value
            return True

    def get_all_attributes(self, card_id: str) -> dict[str, int]:
        with self._lock:
            return dict(self._cards.get(card_id, {}))


class CharacterAttributeManager:
    """CharacterStore backed by the `character_attributes` table."""

    def __init__(self, client: Client) -> None:
        self.client = client
        self.table = client.table("character_attributes")

    def get_attribute(self, card_id: str, name: str) -> int | None:
        """Get one attribute value, or None if the card lacks it."""
        data = (
            self.table
            .select("*")
            .eq("card_id", card_id)
            .eq("name", name)
            .execute()
        )
        if data.data:
            return CharacterAttribute.model_validate(data.data[0]).value
        return None

    def set_attribute(self, card_id: str, name: str, value: int, max_attributes: int) -> bool:
        """Insert or update an attribute; False when a new one would exceed the cap."""
        if self.get_attribute(card_id, name) is not None:
            (
                self.table
                .update({"value": value})
                .eq("card_id", card_id)
                .eq("name", name)
                .execute()
            )
            return True

        if self.count_attributes(card_id) >= max_attributes:
            return False

        (
            self.table
            .insert({"card_id": card_id, "name": name, "value": value})
            .execute()
        )
        return True

    def get_all_attributes(self, card_id: str) -> dict[str, int]:
        """All attributes on a card, keyed by name."""
        data = (
            self.table
            .select("*")
            .eq("card_id", card_id)
            .execute()
        )
        rows = [CharacterAttribute.model_validate(row) for row in data.data]
        return {row.name: row.value for row in rows}

    def count_attributes(self, card_id: str) -> int:
        """Count attributes currently stored on a card."""
        data = (
            self.table
            .select("name", count="exact")
            .eq("card_id", card_id)
            .execute()
        )
        return data.count or 0

    def delete_card(self, card_id: str) -> None:
        """Delete every attribute on a card."""
        self.table.delete().eq("card_id", card_id).execute()
