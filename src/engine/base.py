"""
Dicekeeper - Engine Base Classes

This module defines the foundational data structures and enums used throughout
the engine. All value classes are immutable (frozen dataclasses) so results
can be shared freely and compared in tests.
"""

from dataclasses import dataclass
from enum import Enum, IntEnum, auto

from src.engine.errors import RangeError


# Pool limits
MIN_POOL_DICE = 1
MAX_POOL_DICE = 100
MIN_EXPLODE_THRESHOLD = 2
MAX_EXPLODE_THRESHOLD = 10
POOL_SUCCESS_THRESHOLD = 8
POOL_DIE_FACES = 10


class OperationKind(Enum):
    """How a directive mutates an attribute."""
    SET = "set"
    ADD = "add"
    SUBTRACT = "subtract"


class SuccessLevel(IntEnum):
    """Totally ordered outcome of a percentile roll against a reference."""
    CRITICAL_FAIL = 0
    FAIL = 1
    SUCCESS = 2
    HARD_SUCCESS = 3
    EXTREME_SUCCESS = 4
    CRITICAL_SUCCESS = 5

    @property
    def is_success(self) -> bool:
        return self >= SuccessLevel.SUCCESS


class CheckRule(IntEnum):
    """Call of Cthulhu house rules for criticals and fumbles."""
    RULE_0 = 0  # 1 crits; fumble 96-100 below 50, 100 otherwise
    RULE_1 = 1  # crit 1 below 50, 1-5 otherwise; fumbles as rule 0
    RULE_2 = 2  # crit 1-5 within skill; fumble 100, or 96-99 above skill
    RULE_3 = 3  # crit 1-5; fumble 96-100
    RULE_4 = 4  # crit 1-5 within skill/10; fumble >= 96+skill/10 below 50
    RULE_5 = 5  # crit 1-2 under skill/5; fumble 96-100 below 50, 99-100 otherwise


class DrawMark(Enum):
    """Rendering hint for a single pool draw."""
    EXPLODE = auto()
    SUCCESS = auto()
    BOTCH = auto()
    PLAIN = auto()


@dataclass(frozen=True)
class LiteralValue:
    """A directive value that was a plain integer in the source text."""
    number: int


@dataclass(frozen=True)
class DeferredExpression:
    """A directive value kept as text, usually dice notation like ``2d6``."""
    text: str


OperationValue = LiteralValue | DeferredExpression


@dataclass(frozen=True)
class Operation:
    """
    One attribute mutation recognised in directive text.

    Attributes:
        attribute: Canonical attribute name (already alias-resolved)
        kind: Set, add or subtract
        value: Literal number or an expression resolved at the point of use
    """
    attribute: str
    kind: OperationKind
    value: OperationValue


@dataclass(frozen=True)
class DirectiveParseResult:
    """
    Parsed directive text.

    Attributes:
        target_card: Card named with a ``name--`` prefix, if any
        operations: Operations in recognition order
    """
    target_card: str | None = None
    operations: tuple[Operation, ...] = ()

    def __len__(self) -> int:
        return len(self.operations)


@dataclass(frozen=True)
class RollResult:
    """
    Result of evaluating a dice expression.

    Attributes:
        total: Integer total of the expression
        detail: Human-readable expansion, e.g. ``2D6=(3+4)=7``
    """
    total: int
    detail: str


@dataclass(frozen=True)
class PoolSpec:
    """
    A validated dice pool.

    Attributes:
        dice_count: Dice rolled initially (1-100)
        explode_threshold: Draws at or above this add one die (2-10)
    """
    dice_count: int
    explode_threshold: int = POOL_SUCCESS_THRESHOLD

    def __post_init__(self) -> None:
        """Validate bounds before any die is rolled."""
        if not (MIN_POOL_DICE <= self.dice_count <= MAX_POOL_DICE):
            raise RangeError(
                f"Dice count must be between {MIN_POOL_DICE} and {MAX_POOL_DICE}, "
                f"got {self.dice_count}."
            )
        if not (MIN_EXPLODE_THRESHOLD <= self.explode_threshold <= MAX_EXPLODE_THRESHOLD):
            raise RangeError(
                f"Explode threshold must be between {MIN_EXPLODE_THRESHOLD} and "
                f"{MAX_EXPLODE_THRESHOLD}, got {self.explode_threshold}."
            )

    def __str__(self) -> str:
        return f"{self.dice_count}a{self.explode_threshold}"


@dataclass(frozen=True)
class PoolOutcome:
    """
    Rolled dice pool.

    Attributes:
        spec: The pool that was rolled
        draws: Values in draw order; exploded dice are appended at the tail
        success_count: Draws of 8 or more, exploded dice included
    """
    spec: PoolSpec
    draws: tuple[int, ...]
    success_count: int

    @property
    def exploded_count(self) -> int:
        """Number of extra dice queued by explosions."""
        return len(self.draws) - self.spec.dice_count

    def marks(self) -> tuple[DrawMark, ...]:
        """Rendering hint for each draw, in draw order."""
        return tuple(mark_draw(v, self.spec.explode_threshold) for v in self.draws)


def mark_draw(value: int, explode_threshold: int) -> DrawMark:
    """Classify a single draw for display."""
    if value >= explode_threshold:
        return DrawMark.EXPLODE
    if value >= POOL_SUCCESS_THRESHOLD:
        return DrawMark.SUCCESS
    if value == 1:
        return DrawMark.BOTCH
    return DrawMark.PLAIN


@dataclass(frozen=True)
class CheckOutcome:
    """
    Result of a checked roll.

    Attributes:
        roll_value: The 1d100 draw
        reference_value: Value the roll was compared against
        success_level: Classification of the roll
        magnitude: Sanity lost or skill points gained
        new_value: Attribute value after the check
        committed: Whether new_value was written back to the store
        roll_detail: Evaluator detail for the primary roll
        magnitude_detail: Evaluator detail for the magnitude, empty if none
    """
    roll_value: int
    reference_value: int
    success_level: SuccessLevel
    magnitude: int
    new_value: int
    committed: bool = False
    roll_detail: str = ""
    magnitude_detail: str = ""
