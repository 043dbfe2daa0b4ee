"""
Dicekeeper - Input Validation Utilities

Provides validation functions for engine inputs. All validators either
return validated data or raise a descriptive engine error.
"""

import re

from src.engine.base import CheckRule
from src.engine.errors import FormatError, RangeError


_LOSS_EXPRESSION_RE = re.compile(r"^[0-9dD+\-]+$")


def validate_loss_expression(expression: str) -> str:
    """
    Validate a sanity loss expression such as ``1d6`` or ``1d4+1``.

    Args:
        expression: Raw expression text

    Returns:
        The stripped expression

    Raises:
        FormatError: If it contains anything but digits, d/D, + and -
    """
    text = expression.strip()
    if not _LOSS_EXPRESSION_RE.match(text):
        raise FormatError(
            f"Loss expression {expression!r} may only contain digits, 'd', '+' and '-'."
        )
    return text


def validate_reference_value(value: int, allow_zero: bool = True) -> int:
    """
    Validate a check reference value.

    Args:
        value: Skill or sanity value to compare against
        allow_zero: Whether zero is acceptable

    Returns:
        Validated value

    Raises:
        RangeError: If value is negative (or zero when not allowed)
    """
    if not isinstance(value, int):
        raise RangeError(f"Reference value must be an integer, got {type(value).__name__}.")

    if value < 0 or (value == 0 and not allow_zero):
        raise RangeError(f"Reference value must be positive, got {value}.")

    return value


def validate_check_rule(rule: int | CheckRule) -> CheckRule:
    """
    Validate a house rule number.

    Raises:
        RangeError: If the rule is not 0-5
    """
    try:
        return CheckRule(rule)
    except ValueError:
        raise RangeError(f"Check rule must be between 0 and 5, got {rule}.") from None


def validate_entry_name(name: str) -> str:
    """
    Validate an initiative entry name.

    Returns:
        The stripped name

    Raises:
        FormatError: If the name is blank
    """
    text = (name or "").strip()
    if not text:
        raise FormatError("Initiative entry name cannot be empty.")
    return text
