"""
Dicekeeper - Checked Roll Pipeline (Call of Cthulhu)

A checked roll is a percentile roll whose outcome may change a stored
attribute. Every check runs the same five stages, in order and once each:

    1. resolve reference   explicit value, else read from the character store
    2. primary roll        1d100
    3. classify            success level of the roll against the reference
    4. resolve magnitude   variant specific (sanity lost, skill gained)
    5. commit              write the new value back, only if it came from the store

Two variants are provided:
    - SanityCheck (.sc): loses ``success`` or ``failure`` sanity; a fumble
      loses the maximum of the failure expression
    - GrowthCheck (.en): a roll above the skill grows it by 1d10, or by a
      caller-supplied formula
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar, Sequence

from src.engine.attributes import DEFAULT_ALIASES, SANITY, AliasTable
from src.engine.base import CheckOutcome, CheckRule, RollResult, SuccessLevel
from src.engine.dice import RandomSource
from src.engine.errors import FormatError, MissingAttributeError, RandomSourceError
from src.engine.validators import (
    validate_check_rule,
    validate_loss_expression,
    validate_reference_value,
)

if TYPE_CHECKING:
    from src.database.character_store import CharacterStore

logger = logging.getLogger(__name__)

_INTEGER_RE = re.compile(r"^[+-]?\d{1,9}$")
_GROWTH_FORMULA_RE = re.compile(r"^\+(\d*[dD]\d+)/(\d*[dD]\d+)$")


# =============================================================================
# CLASSIFICATION
# =============================================================================

def _is_critical_success(roll: int, reference: int, rule: CheckRule) -> bool:
    if rule == CheckRule.RULE_0:
        return roll == 1
    if rule == CheckRule.RULE_1:
        return roll == 1 if reference < 50 else roll <= 5
    if rule == CheckRule.RULE_2:
        return roll <= 5 and roll <= reference
    if rule == CheckRule.RULE_3:
        return roll <= 5
    if rule == CheckRule.RULE_4:
        return roll <= 5 and roll <= reference // 10
    return roll <= 2 and roll < reference // 5


def _is_fumble(roll: int, reference: int, rule: CheckRule) -> bool:
    if rule in (CheckRule.RULE_0, CheckRule.RULE_1):
        return roll == 100 or (reference < 50 and roll > 95)
    if rule == CheckRule.RULE_2:
        return roll == 100 or (roll >= 96 and roll > reference)
    if rule == CheckRule.RULE_3:
        return roll >= 96
    if rule == CheckRule.RULE_4:
        return roll == 100 or (reference < 50 and roll >= 96 + reference // 10)
    return roll >= 99 if reference >= 50 else roll >= 96


def classify(roll: int, reference: int, rule: CheckRule = CheckRule.RULE_0) -> SuccessLevel:
    """
    Classify a percentile roll against a reference value.

    Critical success is checked first, then fumble, then the one-fifth
    and one-half bands.

    Args:
        roll: The 1d100 result
        reference: Skill or attribute value
        rule: House rule for criticals and fumbles

    Returns:
        SuccessLevel; a pure function of its arguments
    """
    if _is_critical_success(roll, reference, rule):
        return SuccessLevel.CRITICAL_SUCCESS
    if _is_fumble(roll, reference, rule):
        return SuccessLevel.CRITICAL_FAIL
    if roll <= reference // 5:
        return SuccessLevel.EXTREME_SUCCESS
    if roll <= reference // 2:
        return SuccessLevel.HARD_SUCCESS
    if roll <= reference:
        return SuccessLevel.SUCCESS
    return SuccessLevel.FAIL


# =============================================================================
# REQUESTS
# =============================================================================

@dataclass(frozen=True)
class SanityCost:
    """
    Sanity loss pair, written ``success/failure`` as in ``0/1d6``.

    Attributes:
        success: Loss expression rolled on any success tier
        failure: Loss expression rolled on failure, maximised on a fumble
    """
    success: str
    failure: str

    @classmethod
    def parse(cls, text: str) -> "SanityCost":
        """
        Parse and validate a ``success/failure`` pair.

        Raises:
            FormatError: Missing or extra ``/``, or invalid characters
        """
        parts = (text or "").split("/")
        if len(parts) != 2:
            raise FormatError(f"Sanity cost {text!r} must look like success/failure, e.g. 0/1d6.")
        return cls(
            success=validate_loss_expression(parts[0]),
            failure=validate_loss_expression(parts[1]),
        )

    def __str__(self) -> str:
        return f"{self.success}/{self.failure}"


@dataclass(frozen=True)
class GrowthFormula:
    """
    Alternate growth dice, written ``+success/failure`` as in ``+1D3/1D10``.

    Only ``success`` is rolled; ``failure`` is kept so the formula
    round-trips but no rule consumes it.
    """
    success: str
    failure: str

    @classmethod
    def parse(cls, text: str) -> "GrowthFormula":
        """
        Raises:
            FormatError: If the text is not ``+XdY/XdY``
        """
        match = _GROWTH_FORMULA_RE.match((text or "").strip())
        if not match:
            raise FormatError(f"Growth formula {text!r} must look like +1D3/1D10.")
        return cls(success=match.group(1), failure=match.group(2))

    @classmethod
    def matches(cls, text: str) -> bool:
        return bool(_GROWTH_FORMULA_RE.match(text.strip()))

    def __str__(self) -> str:
        return f"+{self.success}/{self.failure}"


@dataclass(frozen=True)
class CheckRequest:
    """
    Base request for a checked roll.

    Attributes:
        card_id: Character card the attribute lives on
        attribute: Attribute name (normalised before store access)
        explicit_value: Reference given by the caller; disables write-back
        reason: Free text echoed back to the caller
    """
    card_id: str
    attribute: str
    explicit_value: int | None = None
    reason: str = ""


@dataclass(frozen=True)
class SanityRequest(CheckRequest):
    """Sanity check request; ``cost`` is required."""
    cost: SanityCost | None = None

    @classmethod
    def from_args(cls, card_id: str, args: Sequence[str]) -> "SanityRequest":
        """
        Build a request from command arguments: ``cost [value] [reason...]``.

        Raises:
            FormatError: No arguments or an invalid cost
        """
        if not args:
            raise FormatError("Sanity check needs a loss expression, e.g. 0/1d6.")

        cost = SanityCost.parse(args[0])
        explicit_value: int | None = None
        rest = list(args[1:])
        if rest and _INTEGER_RE.match(rest[0]):
            explicit_value = int(rest.pop(0))

        return cls(
            card_id=card_id,
            attribute=SANITY,
            explicit_value=explicit_value,
            reason=" ".join(rest),
            cost=cost,
        )


@dataclass(frozen=True)
class GrowthRequest(CheckRequest):
    """Skill growth request; ``formula`` switches to the alternate rule."""
    formula: GrowthFormula | None = None

    @classmethod
    def from_args(cls, card_id: str, args: Sequence[str]) -> "GrowthRequest":
        """
        Build a request from ``skill [value | +XdY/XdY] [reason...]``.

        Raises:
            FormatError: No skill name given
        """
        if not args:
            raise FormatError("Growth check needs a skill name.")

        skill = args[0]
        rest = list(args[1:])
        explicit_value: int | None = None
        formula: GrowthFormula | None = None

        if rest and GrowthFormula.matches(rest[0]):
            formula = GrowthFormula.parse(rest.pop(0))
        elif rest and _INTEGER_RE.match(rest[0]):
            explicit_value = int(rest.pop(0))

        return cls(
            card_id=card_id,
            attribute=skill,
            explicit_value=explicit_value,
            reason=" ".join(rest),
            formula=formula,
        )


# =============================================================================
# PIPELINE
# =============================================================================

class CheckedRollPipeline(ABC):
    """
    Roll, classify, and conditionally mutate one attribute.

    Subclasses supply the magnitude and commit rules; the stage order is
    fixed in ``run``. Nothing is written until every roll has succeeded.
    """

    PRIMARY_EXPRESSION: ClassVar[str] = "1d100"
    PRIMARY_FACES: ClassVar[int] = 100

    def __init__(
        self,
        source: RandomSource,
        store: "CharacterStore",
        rule: CheckRule | int = CheckRule.RULE_0,
        max_attributes: int = 100,
        aliases: AliasTable = DEFAULT_ALIASES,
    ) -> None:
        self.source = source
        self.store = store
        self.rule = validate_check_rule(rule)
        self.max_attributes = max_attributes
        self.aliases = aliases

    def run(self, request: CheckRequest) -> CheckOutcome:
        """
        Execute the check.

        Raises:
            MissingAttributeError: No explicit value and nothing stored
            RandomSourceError: The primary roll failed
            FormatError: A magnitude expression could not be evaluated
            RangeError: The reference value is invalid for this check
        """
        attribute = self.aliases.normalize(request.attribute)
        reference, from_store = self._resolve_reference(request, attribute)
        primary = self._primary_roll()
        level = self._classify(primary.total, reference)
        magnitude, magnitude_detail = self._resolve_magnitude(level, request)
        new_value = self._new_value(reference, magnitude)

        committed = False
        if from_store and self._should_commit(level, magnitude):
            committed = self.store.set_attribute(
                request.card_id, attribute, new_value, self.max_attributes
            )
            if not committed:
                logger.warning(
                    "Store rejected %s=%d on card %s", attribute, new_value, request.card_id
                )

        logger.debug(
            "%s on %s/%s: roll=%d ref=%d level=%s magnitude=%d new=%d committed=%s",
            type(self).__name__, request.card_id, attribute, primary.total,
            reference, level.name, magnitude, new_value, committed,
        )
        return CheckOutcome(
            roll_value=primary.total,
            reference_value=reference,
            success_level=level,
            magnitude=magnitude,
            new_value=new_value,
            committed=committed,
            roll_detail=primary.detail,
            magnitude_detail=magnitude_detail,
        )

    # -- Stages ----------------------------------------------------------

    def _resolve_reference(self, request: CheckRequest, attribute: str) -> tuple[int, bool]:
        if request.explicit_value is not None:
            return self._validate_reference(request.explicit_value), False

        value = self.store.get_attribute(request.card_id, attribute)
        if value is None:
            raise MissingAttributeError(attribute)
        return self._validate_reference(value), True

    def _validate_reference(self, value: int) -> int:
        return validate_reference_value(value)

    def _primary_roll(self) -> RollResult:
        # RandomSourceError propagates verbatim; nothing has been written yet.
        return self.source.roll(self.PRIMARY_EXPRESSION, self.PRIMARY_FACES)

    def _classify(self, roll: int, reference: int) -> SuccessLevel:
        return classify(roll, reference, self.rule)

    def _roll_magnitude(self, expression: str, default_faces: int = 100) -> RollResult:
        try:
            return self.source.roll(expression, default_faces)
        except RandomSourceError as exc:
            raise FormatError(f"Cannot evaluate {expression!r}: {exc}") from exc

    @abstractmethod
    def _resolve_magnitude(self, level: SuccessLevel, request: CheckRequest) -> tuple[int, str]:
        """Return (magnitude, detail) for the classified roll."""

    @abstractmethod
    def _new_value(self, reference: int, magnitude: int) -> int:
        """Attribute value after applying the magnitude."""

    @abstractmethod
    def _should_commit(self, level: SuccessLevel, magnitude: int) -> bool:
        """Whether a store-sourced value is written back."""


class SanityCheck(CheckedRollPipeline):
    """Sanity check: lose sanity according to a ``success/failure`` cost."""

    def run(self, request: CheckRequest) -> CheckOutcome:
        if not isinstance(request, SanityRequest) or request.cost is None:
            raise FormatError("Sanity check needs a loss expression, e.g. 0/1d6.")
        return super().run(request)

    def _validate_reference(self, value: int) -> int:
        return validate_reference_value(value, allow_zero=False)

    def _resolve_magnitude(self, level: SuccessLevel, request: CheckRequest) -> tuple[int, str]:
        cost = request.cost  # type: ignore[attr-defined]

        if level == SuccessLevel.CRITICAL_FAIL:
            worst = self.source.max_value(cost.failure, 100)
            if worst == -1:
                raise FormatError(f"Cannot evaluate {cost.failure!r}.")
            return worst, f"Max{{{cost.failure}}}={worst}"

        expression = cost.failure if level == SuccessLevel.FAIL else cost.success
        result = self._roll_magnitude(expression)
        return result.total, result.detail

    def _new_value(self, reference: int, magnitude: int) -> int:
        return max(0, reference - magnitude)

    def _should_commit(self, level: SuccessLevel, magnitude: int) -> bool:
        return magnitude != 0


class GrowthCheck(CheckedRollPipeline):
    """
    Skill growth check.

    The growth check succeeds when the percentile roll is above the
    skill, so its level is SUCCESS or FAIL rather than a skill-check tier.
    """

    GROWTH_EXPRESSION: ClassVar[str] = "1d10"

    def _classify(self, roll: int, reference: int) -> SuccessLevel:
        return SuccessLevel.SUCCESS if roll > reference else SuccessLevel.FAIL

    def _resolve_magnitude(self, level: SuccessLevel, request: CheckRequest) -> tuple[int, str]:
        if not level.is_success:
            return 0, ""

        formula = getattr(request, "formula", None)
        if formula is not None:
            result = self._roll_magnitude(formula.success, 100)
        else:
            result = self._roll_magnitude(self.GROWTH_EXPRESSION, 10)
        return result.total, result.detail

    def _new_value(self, reference: int, magnitude: int) -> int:
        return reference + magnitude

    def _should_commit(self, level: SuccessLevel, magnitude: int) -> bool:
        return level.is_success
