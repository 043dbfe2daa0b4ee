"""
Dicekeeper - Initiative Service

Hosts InitiativeScheduler per channel: load the stored blob, apply one
command, save it again. Commands on the same channel are serialised with
a per-channel lock so concurrent load/mutate/save cycles cannot lose
updates; different channels never block each other. A channel's lock is
dropped once no command is waiting on it.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Sequence

from src.database.initiative_store import BlobStore
from src.engine.dice import RandomSource
from src.engine.errors import EmptyListError
from src.engine.initiative import (
    InitiativeEntry,
    InitiativeRoll,
    InitiativeScheduler,
    InitiativeSlot,
)

logger = logging.getLogger(__name__)


class InitiativeService:
    """Per-channel initiative lists with persistence."""

    def __init__(self, store: BlobStore, source: RandomSource) -> None:
        self.store = store
        self.source = source
        # channel -> [lock, holders waiting on or inside it]; an entry lives
        # only while some command is using the channel.
        self._locks: dict[str, list] = {}
        self._locks_guard = threading.Lock()

    def _acquire_slot(self, channel_id: str) -> threading.Lock:
        with self._locks_guard:
            slot = self._locks.setdefault(channel_id, [threading.Lock(), 0])
            slot[1] += 1
            return slot[0]

    def _release_slot(self, channel_id: str) -> None:
        with self._locks_guard:
            slot = self._locks[channel_id]
            slot[1] -= 1
            if slot[1] == 0:
                del self._locks[channel_id]

    @contextmanager
    def _channel(self, channel_id: str) -> Iterator[InitiativeScheduler]:
        """Hold the channel lock and yield its freshly loaded state."""
        lock = self._acquire_slot(channel_id)
        try:
            with lock:
                blob = self.store.get(channel_id)
                yield InitiativeScheduler.deserialize(blob) if blob else InitiativeScheduler()
        finally:
            self._release_slot(channel_id)

    def _save(self, channel_id: str, scheduler: InitiativeScheduler) -> None:
        if len(scheduler) == 0:
            self.store.delete(channel_id)
            logger.debug("Initiative for %s is empty; deleted", channel_id)
        else:
            self.store.put(channel_id, scheduler.serialize())

    def roll(
        self,
        channel_id: str,
        args: Sequence[str],
        default_name: str,
    ) -> tuple[InitiativeRoll, tuple[InitiativeSlot, ...]]:
        """
        Roll initiative from command arguments and add the result.

        Raises:
            RandomSourceError: If the expression cannot be rolled
        """
        result = InitiativeRoll.from_args(args, default_name, self.source)
        with self._channel(channel_id) as scheduler:
            # Re-rolling a name keeps its tie-break position; only the value changes.
            scheduler.add(result.name, result.value)
            self._save(channel_id, scheduler)
            logger.info("Initiative %s=%d in %s", result.name, result.value, channel_id)
            return result, scheduler.list()

    def add(self, channel_id: str, name: str, value: int) -> tuple[InitiativeSlot, ...]:
        """Add or update an entry with a known value."""
        with self._channel(channel_id) as scheduler:
            scheduler.add(name, value)
            self._save(channel_id, scheduler)
            return scheduler.list()

    def remove(self, channel_id: str, name: str) -> bool:
        """
        Remove an entry; the stored list is deleted when it becomes empty.

        Raises:
            EmptyListError: If the channel has no list
        """
        with self._channel(channel_id) as scheduler:
            if len(scheduler) == 0:
                raise EmptyListError("Initiative list is empty.")
            if not scheduler.remove(name):
                return False
            self._save(channel_id, scheduler)
            return True

    def next_turn(self, channel_id: str) -> InitiativeEntry:
        """
        Advance to the next entry.

        Raises:
            EmptyListError: If the channel has no list
        """
        with self._channel(channel_id) as scheduler:
            entry = scheduler.advance_turn()
            self._save(channel_id, scheduler)
            return entry

    def clear(self, channel_id: str) -> bool:
        """Delete a channel's list. Returns False if there was nothing to clear."""
        with self._channel(channel_id) as scheduler:
            cleared = scheduler.clear()
            if cleared:
                self.store.delete(channel_id)
            return cleared

    def show(self, channel_id: str) -> tuple[InitiativeSlot, ...]:
        """Current list in display order; empty tuple if none."""
        with self._channel(channel_id) as scheduler:
            return scheduler.list()
