"""
Dicekeeper - Attribute Service

Applies parsed attribute directives to a character store.

Application is two-phase: every deferred expression is rolled first, and
only then are values written, so an invalid expression leaves the card
untouched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from src.database.character_store import CharacterStore
from src.engine.attributes import DEFAULT_ALIASES, AliasTable, AttributeDirectiveParser
from src.engine.base import (
    DeferredExpression,
    DirectiveParseResult,
    LiteralValue,
    Operation,
    OperationKind,
    OperationValue,
)
from src.engine.dice import RandomSource
from src.engine.errors import FormatError, RandomSourceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppliedChange:
    """
    Outcome of one operation.

    Attributes:
        operation: The parsed operation
        amount: Resolved value (SET) or delta (ADD/SUBTRACT)
        previous: Value before the change, None if the attribute was absent
        new_value: Value written (or that would have been written)
        stored: False when the store refused a new attribute (card full)
        detail: Evaluator detail for deferred values, else the number
    """
    operation: Operation
    amount: int
    previous: int | None
    new_value: int
    stored: bool
    detail: str


@dataclass(frozen=True)
class AppliedDirectives:
    """All changes applied to one card."""
    card_id: str
    changes: tuple[AppliedChange, ...]

    @property
    def stored_count(self) -> int:
        return sum(1 for change in self.changes if change.stored)


class AttributeService:
    """Parse directive text and apply it to character cards."""

    def __init__(
        self,
        store: CharacterStore,
        source: RandomSource,
        max_attributes: int = 100,
        aliases: AliasTable = DEFAULT_ALIASES,
    ) -> None:
        self.store = store
        self.source = source
        self.max_attributes = max_attributes
        self.aliases = aliases

    def apply_text(self, default_card: str, text: str) -> AppliedDirectives:
        """
        Parse and apply directive text.

        The ``card--`` prefix, if present, overrides ``default_card``.

        Raises:
            FormatError: Nothing recognisable, or a deferred value failed
        """
        result = AttributeDirectiveParser.parse(text, self.aliases)
        if not result.operations:
            raise FormatError(f"No attribute directives recognised in {text!r}.")
        return self.apply(result.target_card or default_card, result)

    def apply(self, card_id: str, result: DirectiveParseResult) -> AppliedDirectives:
        """
        Apply parsed operations to a card, in order.

        Raises:
            FormatError: If any deferred value cannot be evaluated
        """
        resolved = [(op, *self._resolve(op.value)) for op in result.operations]

        changes: list[AppliedChange] = []
        for operation, amount, detail in resolved:
            previous = self.store.get_attribute(card_id, operation.attribute)
            if operation.kind == OperationKind.SET:
                new_value = amount
            elif operation.kind == OperationKind.ADD:
                new_value = max(0, (previous or 0) + amount)
            else:
                new_value = max(0, (previous or 0) - amount)

            stored = self.store.set_attribute(
                card_id, operation.attribute, new_value, self.max_attributes
            )
            if not stored:
                logger.warning(
                    "Card %s is full (%d attributes); %s not stored",
                    card_id, self.max_attributes, operation.attribute,
                )
            changes.append(AppliedChange(
                operation=operation,
                amount=amount,
                previous=previous,
                new_value=new_value,
                stored=stored,
                detail=detail,
            ))

        logger.debug("Applied %d change(s) to card %s", len(changes), card_id)
        return AppliedDirectives(card_id=card_id, changes=tuple(changes))

    def show(self, card_id: str) -> dict[str, int]:
        """All attributes on a card, sorted by name."""
        return dict(sorted(self.store.get_all_attributes(card_id).items()))

    def _resolve(self, value: OperationValue) -> tuple[int, str]:
        if isinstance(value, LiteralValue):
            return value.number, str(value.number)
        if isinstance(value, DeferredExpression):
            try:
                rolled = self.source.roll(value.text, 100)
            except RandomSourceError as exc:
                raise FormatError(f"Cannot evaluate {value.text!r}: {exc}") from exc
            return rolled.total, rolled.detail
        raise TypeError(f"Unsupported operation value {value!r}")
