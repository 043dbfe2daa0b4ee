"""
Dicekeeper - Initiative Store

Stores one opaque initiative blob per channel. This layer never looks
inside the blob; the engine's InitiativeScheduler owns its format.
"""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Protocol

from supabase import Client

from src.database.models import InitiativeRecord


class BlobStore(Protocol):
    """Per-channel persistence for initiative state."""

    def get(self, channel_id: str) -> str | None:
        ...

    def put(self, channel_id: str, blob: str) -> None:
        ...

    def delete(self, channel_id: str) -> None:
        ...


class InMemoryBlobStore:
    """Process-local BlobStore, used in tests and when Supabase is not configured."""

    def __init__(self) -> None:
        self._blobs: dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, channel_id: str) -> str | None:
        with self._lock:
            return self._blobs.get(channel_id)

    def put(self, channel_id: str, blob: str) -> None:
        with self._lock:
            self._blobs[channel_id] = blob

    def delete(self, channel_id: str) -> None:
        with self._lock:
            self._blobs.pop(channel_id, None)

    def __contains__(self, channel_id: object) -> bool:
        return channel_id in self._blobs


class InitiativeStateManager:
    """BlobStore backed by the `initiative_state` table."""

    def __init__(self, client: Client) -> None:
        self.client = client
        self.table = client.table("initiative_state")

    def get_record(self, channel_id: str) -> InitiativeRecord | None:
        """Get the stored row for a channel."""
        data = (
            self.table
            .select("*")
            .eq("channel_id", channel_id)
            .execute()
        )
        if data.data:
            return InitiativeRecord.model_validate(data.data[0])
        return None

    def get(self, channel_id: str) -> str | None:
        """Get the stored blob for a channel, or None."""
        record = self.get_record(channel_id)
        return record.data if record else None

    def put(self, channel_id: str, blob: str) -> None:
        """Create or replace the blob for a channel."""
        now = datetime.now(timezone.utc).isoformat()
        if self.get_record(channel_id) is not None:
            (
                self.table
                .update({"data": blob, "updated_at": now})
                .eq("channel_id", channel_id)
                .execute()
            )
        else:
            (
                self.table
                .insert({"channel_id": channel_id, "data": blob, "updated_at": now})
                .execute()
            )

    def delete(self, channel_id: str) -> None:
        """Delete the blob for a channel."""
        self.table.delete().eq("channel_id", channel_id).execute()
