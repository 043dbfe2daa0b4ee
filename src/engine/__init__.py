"""
Dicekeeper Engine.

Pure Python rules with zero database dependencies.
Handles directive parsing, dice pools, checked rolls and initiative order.
"""

from src.engine.attributes import DEFAULT_ALIASES, AliasTable, AttributeDirectiveParser
from src.engine.base import (
    CheckOutcome,
    CheckRule,
    DeferredExpression,
    DirectiveParseResult,
    DrawMark,
    LiteralValue,
    Operation,
    OperationKind,
    PoolOutcome,
    PoolSpec,
    RollResult,
    SuccessLevel,
)
from src.engine.checks import (
    CheckedRollPipeline,
    GrowthCheck,
    GrowthFormula,
    GrowthRequest,
    SanityCheck,
    SanityCost,
    SanityRequest,
    classify,
)
from src.engine.dice import DiceRoller, RandomSource
from src.engine.dice_pool import DicePoolResolver
from src.engine.errors import (
    DiceEngineError,
    EmptyListError,
    FormatError,
    MissingAttributeError,
    RandomSourceError,
    RangeError,
    UnknownAttributeError,
)
from src.engine.initiative import InitiativeEntry, InitiativeRoll, InitiativeScheduler, InitiativeSlot

__all__ = [
    # Data Classes
    "CheckOutcome",
    "DeferredExpression",
    "DirectiveParseResult",
    "InitiativeEntry",
    "InitiativeSlot",
    "LiteralValue",
    "Operation",
    "PoolOutcome",
    "PoolSpec",
    "RollResult",
    # Enums
    "CheckRule",
    "DrawMark",
    "OperationKind",
    "SuccessLevel",
    # Parsing
    "AliasTable",
    "AttributeDirectiveParser",
    "DEFAULT_ALIASES",
    # Engines
    "CheckedRollPipeline",
    "DicePoolResolver",
    "DiceRoller",
    "GrowthCheck",
    "GrowthFormula",
    "GrowthRequest",
    "InitiativeRoll",
    "InitiativeScheduler",
    "RandomSource",
    "SanityCheck",
    "SanityCost",
    "SanityRequest",
    "classify",
    # Errors
    "DiceEngineError",
    "EmptyListError",
    "FormatError",
    "MissingAttributeError",
    "RandomSourceError",
    "RangeError",
    "UnknownAttributeError",
]
