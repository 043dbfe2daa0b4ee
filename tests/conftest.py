"""
Dicekeeper - Test Configuration and Fixtures

Common fixtures for all test modules: scripted dice, in-memory stores and
a chainable mock of the Supabase table API.
"""

import random
from typing import Any, Callable
from unittest.mock import MagicMock

import pytest

from src.database.character_store import InMemoryCharacterStore
from src.database.initiative_store import InMemoryBlobStore
from src.engine.base import RollResult
from src.engine.dice import DiceRoller
from src.engine.errors import RandomSourceError


# =============================================================================
# RANDOMNESS
# =============================================================================

class ScriptedRandom(random.Random):
    """random.Random whose randint returns a fixed sequence of draws."""

    def __init__(self, values: list[int]) -> None:
        super().__init__(0)
        self.values = list(values)

    def randint(self, a: int, b: int) -> int:
        if not self.values:
            raise AssertionError("Scripted draws exhausted")
        value = self.values.pop(0)
        assert a <= value <= b, f"Scripted draw {value} outside {a}-{b}"
        return value


class FailingSource:
    """RandomSource that rejects every expression."""

    def __init__(self) -> None:
        self.calls: list[str] = []

    def roll(self, expression: str, default_faces: int) -> RollResult:
        self.calls.append(expression)
        raise RandomSourceError(f"evaluator offline: {expression}")

    def max_value(self, expression: str, default_faces: int) -> int:
        return -1


@pytest.fixture
def scripted() -> Callable[..., DiceRoller]:
    """Factory: ``scripted(8, 3, 9)`` gives a DiceRoller drawing those dice in order."""
    def make(*values: int) -> DiceRoller:
        return DiceRoller(ScriptedRandom(list(values)))
    return make


@pytest.fixture
def failing_source() -> FailingSource:
    return FailingSource()


# =============================================================================
# STORES
# =============================================================================

@pytest.fixture
def character_store() -> InMemoryCharacterStore:
    """Store with one investigator card."""
    return InMemoryCharacterStore({
        "user_1": {"理智": 50, "教育": 60, "敏捷": 40, "剑": 3, "幸运": 45},
    })


@pytest.fixture
def blob_store() -> InMemoryBlobStore:
    return InMemoryBlobStore()


# =============================================================================
# SUPABASE
# =============================================================================

def _response(data: list[dict[str, Any]] | None = None, count: int | None = None) -> MagicMock:
    """A Supabase APIResponse stand-in."""
    response = MagicMock()
    response.data = data or []
    response.count = count
    return response


@pytest.fixture
def mock_table() -> MagicMock:
    """Chainable table mock: every builder call returns the table itself."""
    table = MagicMock()
    for method in ("select", "eq", "insert", "update", "delete", "order"):
        getattr(table, method).return_value = table
    table.execute.return_value = _response()
    return table


@pytest.fixture
def mock_client(mock_table: MagicMock) -> MagicMock:
    """Minimal mock Supabase client whose every table is ``mock_table``."""
    client = MagicMock()
    client.table.return_value = mock_table
    return client


@pytest.fixture
def make_response() -> Callable[..., MagicMock]:
    """Factory for Supabase responses: ``make_response(rows, count=n)``."""
    return _response
