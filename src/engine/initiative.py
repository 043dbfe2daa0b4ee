"""
Dicekeeper - Initiative Scheduler

Ordered turn list for one channel.

Rules:
- Entries are shown by value, highest first; ties keep insertion order
- Names are unique: adding an existing name replaces its value only
- The current turn is an index into the display order and wraps around
- State round-trips through an opaque JSON string owned by this module
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Sequence

from pydantic import BaseModel, Field, ValidationError

from src.engine.base import RollResult
from src.engine.dice import RandomSource
from src.engine.errors import EmptyListError, FormatError
from src.engine.validators import validate_entry_name


@dataclass(frozen=True)
class InitiativeEntry:
    """
    A named slot in the turn order.

    Attributes:
        name: Unique name within the channel
        value: Initiative value, higher acts first
        insertion_seq: Order of first insertion, breaks ties
    """
    name: str
    value: int
    insertion_seq: int

    @property
    def sort_key(self) -> tuple[int, int]:
        return (-self.value, self.insertion_seq)


@dataclass(frozen=True)
class InitiativeSlot:
    """An entry in display order, flagged if it holds the current turn."""
    position: int
    entry: InitiativeEntry
    is_current: bool


class _EntrySnapshot(BaseModel):
    name: str = Field(min_length=1)
    value: int
    insertion_seq: int = Field(ge=0)


class _InitiativeSnapshot(BaseModel):
    """Serialised form of a channel's initiative state."""

    version: int = 1
    entries: list[_EntrySnapshot] = Field(default_factory=list)
    current_index: int = Field(default=0, ge=0)
    next_seq: int = Field(default=0, ge=0)


class InitiativeScheduler:
    """
    Initiative state for a single channel.

    Unlike the stateless rule engines this object is mutable; hosts load
    it, apply one command, and persist it again.
    """

    def __init__(self) -> None:
        self._entries: dict[str, InitiativeEntry] = {}
        self._current_index = 0
        self._next_seq = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    @property
    def current_index(self) -> int:
        return self._current_index

    @property
    def ordered(self) -> tuple[InitiativeEntry, ...]:
        """Entries in display order."""
        return tuple(sorted(self._entries.values(), key=lambda e: e.sort_key))

    @property
    def current(self) -> InitiativeEntry | None:
        """Entry holding the current turn, or None when empty."""
        if not self._entries:
            return None
        return self.ordered[self._current_index]

    def add(self, name: str, value: int) -> InitiativeEntry:
        """
        Add an entry or update an existing one.

        Re-adding a name replaces its value in place and keeps its
        insertion_seq, so its tie-break position is unchanged.

        Raises:
            FormatError: If the name is blank
        """
        name = validate_entry_name(name)
        existing = self._entries.get(name)
        if existing is not None:
            entry = InitiativeEntry(name=name, value=value, insertion_seq=existing.insertion_seq)
        else:
            entry = InitiativeEntry(name=name, value=value, insertion_seq=self._next_seq)
            self._next_seq += 1
        self._entries[name] = entry
        return entry

    def remove(self, name: str) -> bool:
        """
        Remove an entry by name.

        Removing an entry before the current one keeps the same entry
        current; removing the current entry passes the turn to the next
        one, wrapping to the top past the end.

        Returns:
            False if no entry has that name
        """
        name = (name or "").strip()
        if name not in self._entries:
            return False

        removed_position = next(
            i for i, entry in enumerate(self.ordered) if entry.name == name
        )
        del self._entries[name]

        if not self._entries:
            self._current_index = 0
        elif removed_position < self._current_index:
            self._current_index -= 1
        elif self._current_index >= len(self._entries):
            self._current_index = 0
        return True

    def advance_turn(self) -> InitiativeEntry:
        """
        Move to the next entry in display order.

        Raises:
            EmptyListError: If there are no entries
        """
        if not self._entries:
            raise EmptyListError("Initiative list is empty.")
        self._current_index = (self._current_index + 1) % len(self._entries)
        return self.ordered[self._current_index]

    def clear(self) -> bool:
        """
        Remove every entry.

        Returns:
            False if the list was already empty
        """
        had_entries = bool(self._entries)
        self._entries.clear()
        self._current_index = 0
        self._next_seq = 0
        return had_entries

    def list(self) -> tuple[InitiativeSlot, ...]:
        """Entries in display order, with the current turn flagged."""
        return tuple(
            InitiativeSlot(position=i, entry=entry, is_current=(i == self._current_index))
            for i, entry in enumerate(self.ordered)
        )

    # -- Persistence -----------------------------------------------------

    def serialize(self) -> str:
        """Encode the full state as an opaque string."""
        snapshot = _InitiativeSnapshot(
            entries=[
                _EntrySnapshot(name=e.name, value=e.value, insertion_seq=e.insertion_seq)
                for e in sorted(self._entries.values(), key=lambda e: e.insertion_seq)
            ],
            current_index=self._current_index,
            next_seq=self._next_seq,
        )
        return snapshot.model_dump_json()

    @classmethod
    def deserialize(cls, blob: str) -> "InitiativeScheduler":
        """
        Rebuild state produced by ``serialize``.

        Raises:
            FormatError: If the blob is malformed or has duplicate names
        """
        try:
            snapshot = _InitiativeSnapshot.model_validate_json(blob)
        except ValidationError as exc:
            raise FormatError(f"Invalid initiative state: {exc.error_count()} error(s).") from exc

        scheduler = cls()
        for item in snapshot.entries:
            if item.name in scheduler._entries:
                raise FormatError(f"Invalid initiative state: duplicate name {item.name!r}.")
            scheduler._entries[item.name] = InitiativeEntry(
                name=item.name, value=item.value, insertion_seq=item.insertion_seq
            )

        highest_seq = max((e.insertion_seq for e in scheduler._entries.values()), default=-1)
        scheduler._next_seq = max(snapshot.next_seq, highest_seq + 1)
        scheduler._current_index = (
            snapshot.current_index % len(scheduler._entries) if scheduler._entries else 0
        )
        return scheduler


# =============================================================================
# INITIATIVE ROLLS
# =============================================================================

_MODIFIER_RE = re.compile(r"^[+-]?\d{1,9}$")
_EXPRESSION_RE = re.compile(r"^[0-9dD+\-*/()\s]+$")

DEFAULT_INITIATIVE_EXPRESSION = "1d20"
INITIATIVE_FACES = 20


@dataclass(frozen=True)
class InitiativeRoll:
    """
    An initiative value resolved from command arguments.

    Attributes:
        name: Entry name
        value: Rolled or given value
        detail: Evaluator detail, or the literal value
    """
    name: str
    value: int
    detail: str

    @classmethod
    def from_args(
        cls,
        args: Sequence[str],
        default_name: str,
        source: RandomSource,
    ) -> "InitiativeRoll":
        """
        Resolve ``[modifier | value | expression] [name...]``.

        - ``+5`` / ``-1``  roll 1d20 with that modifier
        - ``80``           use the value as is
        - ``2d6+1``        roll the expression (d20 by default)
        - anything else    the whole argument list is the name

        Raises:
            RandomSourceError: If the expression cannot be rolled
        """
        name = default_name
        expression = DEFAULT_INITIATIVE_EXPRESSION

        if args:
            first = args[0]
            if _MODIFIER_RE.match(first):
                expression = f"{DEFAULT_INITIATIVE_EXPRESSION}{first}" if first[0] in "+-" else first
                if len(args) > 1:
                    name = " ".join(args[1:])
            elif _EXPRESSION_RE.match(first):
                expression = first
                if len(args) > 1:
                    name = " ".join(args[1:])
            else:
                name = " ".join(args)

        if expression.isdigit() and _MODIFIER_RE.match(expression):
            value = int(expression)
            return cls(name=name, value=value, detail=str(value))

        result: RollResult = source.roll(expression, INITIATIVE_FACES)
        return cls(name=name, value=result.total, detail=result.detail)
