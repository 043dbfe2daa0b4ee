"""
Dicekeeper - Engine Errors

Every failure raised by the engine is local to one invocation and is a
deterministic input error, so callers render a message and never retry.
"""


class DiceEngineError(Exception):
    """Base class for all engine errors."""


class FormatError(DiceEngineError, ValueError):
    """Malformed directive, dice expression or persisted blob."""


class RangeError(DiceEngineError, ValueError):
    """A dice count, threshold or reference value is out of bounds."""


class MissingAttributeError(DiceEngineError, LookupError):
    """No explicit value was given and the attribute is absent from the store."""

    def __init__(self, attribute: str) -> None:
        super().__init__(f"Attribute {attribute!r} is not set on this card.")
        self.attribute = attribute


class UnknownAttributeError(DiceEngineError, LookupError):
    """An expression still contains a symbol after attribute substitution."""

    def __init__(self, residual: str) -> None:
        super().__init__(f"Expression contains unknown attributes: {residual!r}")
        self.residual = residual


class EmptyListError(DiceEngineError, LookupError):
    """Initiative operation on a channel with no entries."""


class RandomSourceError(DiceEngineError, RuntimeError):
    """Opaque failure reported by the dice evaluator."""
