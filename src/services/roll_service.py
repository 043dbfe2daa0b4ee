"""
Dicekeeper - Roll Service

Runs dice pools and checked rolls against a character card.
"""

from __future__ import annotations

import logging
from typing import Sequence

from src.database.character_store import CharacterStore
from src.engine.base import CheckOutcome, CheckRule, PoolOutcome
from src.engine.checks import GrowthCheck, GrowthRequest, SanityCheck, SanityRequest
from src.engine.dice import RandomSource
from src.engine.dice_pool import DicePoolResolver

logger = logging.getLogger(__name__)


class RollService:
    """Entry point for ``.ww``, ``.sc`` and ``.en`` style rolls."""

    def __init__(
        self,
        store: CharacterStore,
        source: RandomSource,
        rule: CheckRule | int = CheckRule.RULE_0,
        max_attributes: int = 100,
    ) -> None:
        self.store = store
        self.source = source
        self.sanity = SanityCheck(source, store, rule=rule, max_attributes=max_attributes)
        self.growth = GrowthCheck(source, store, rule=rule, max_attributes=max_attributes)

    def dice_pool(self, card_id: str, text: str) -> PoolOutcome:
        """
        Roll a dice pool, substituting the card's attributes into the expression.

        Raises:
            FormatError, RangeError, UnknownAttributeError
        """
        attributes = self.store.get_all_attributes(card_id)
        return DicePoolResolver.resolve(text, attributes, self.source)

    def sanity_check(self, card_id: str, args: Sequence[str]) -> CheckOutcome:
        """Run a sanity check from ``cost [value] [reason...]`` arguments."""
        request = SanityRequest.from_args(card_id, args)
        outcome = self.sanity.run(request)
        logger.info(
            "Sanity check on %s: %s -> %d (%s)",
            card_id, request.cost, outcome.new_value, outcome.success_level.name,
        )
        return outcome

    def growth_check(self, card_id: str, args: Sequence[str]) -> CheckOutcome:
        """Run a growth check from ``skill [value | formula] [reason...]`` arguments."""
        request = GrowthRequest.from_args(card_id, args)
        outcome = self.growth.run(request)
        logger.info(
            "Growth check on %s/%s: %d -> %d",
            card_id, request.attribute, outcome.reference_value, outcome.new_value,
        )
        return outcome
