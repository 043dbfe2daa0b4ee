"""
Dicekeeper - Dice Pool Resolver (World of Darkness)

Rolls a pool of d10s and counts successes.

Rules:
    - Each die showing 8 or more is a success
    - Each die at or above the explode threshold adds one more die,
      queued at the end of the pool
    - A pool never exceeds 100 draws, however many dice explode
    - ``10a8`` fixes count and threshold; any other text is an arithmetic
      expression over character attributes (``敏捷+剑``) giving the count
"""

from __future__ import annotations

import logging
import re
from typing import ClassVar, Mapping

from src.engine.attributes import DEFAULT_ALIASES, AliasTable
from src.engine.base import (
    MAX_POOL_DICE,
    POOL_DIE_FACES,
    POOL_SUCCESS_THRESHOLD,
    PoolOutcome,
    PoolSpec,
)
from src.engine.dice import RandomSource
from src.engine.errors import FormatError, RandomSourceError, RangeError, UnknownAttributeError

logger = logging.getLogger(__name__)

_STANDARD_RE = re.compile(r"^(\d+)a(\d+)$", re.IGNORECASE)
_MAX_DIGITS = 9


def _has_residual_letters(text: str) -> bool:
    """True if any letter other than the dice marker survived substitution."""
    return any(ch.isalpha() and ch not in "dD" for ch in text)


class DicePoolResolver:
    """Stateless resolver for exploding d10 pools."""

    DIE_EXPRESSION: ClassVar[str] = f"1d{POOL_DIE_FACES}"

    @classmethod
    def parse_spec(
        cls,
        text: str,
        attributes: Mapping[str, int] | None,
        source: RandomSource,
        aliases: AliasTable = DEFAULT_ALIASES,
    ) -> PoolSpec:
        """
        Turn pool text into a validated PoolSpec.

        Args:
            text: ``<count>a<threshold>`` or an attribute expression
            attributes: Character attributes available for substitution
            source: Evaluator for the residual arithmetic
            aliases: Alias table used to match attribute spellings

        Raises:
            FormatError: Empty text or an expression the evaluator rejects
            UnknownAttributeError: Letters remain after substitution
            RangeError: Count or threshold out of bounds
        """
        compact = re.sub(r"\s+", "", text or "")
        if not compact:
            raise FormatError("Dice pool expression is empty; expected e.g. 10a8.")

        standard = _STANDARD_RE.match(compact)
        if standard:
            count_text, threshold_text = standard.groups()
            if max(len(count_text), len(threshold_text)) > _MAX_DIGITS:
                raise RangeError(f"Dice pool {compact!r} is out of range.")
            return PoolSpec(
                dice_count=int(count_text),
                explode_threshold=int(threshold_text),
            )

        residual = cls.substitute_attributes(compact, attributes or {}, aliases)
        if _has_residual_letters(residual):
            raise UnknownAttributeError(residual)

        try:
            result = source.roll(residual, POOL_DIE_FACES)
        except RandomSourceError as exc:
            raise FormatError(f"Cannot evaluate dice pool expression {text!r}: {exc}") from exc

        return PoolSpec(dice_count=result.total, explode_threshold=POOL_SUCCESS_THRESHOLD)

    @classmethod
    def substitute_attributes(
        cls,
        text: str,
        attributes: Mapping[str, int],
        aliases: AliasTable = DEFAULT_ALIASES,
    ) -> str:
        """
        Replace attribute names in ``text`` with their values.

        Canonical names and every alias of a present attribute are matched
        literally, longest spelling first, so ``生命值`` wins over ``生命``.
        """
        values: dict[str, int] = {}
        for name, value in attributes.items():
            values[name.casefold()] = value
            canonical = aliases.normalize(name)
            for spelling in aliases.spellings_for(canonical):
                values.setdefault(spelling.casefold(), value)

        if not values:
            return text

        terms = sorted(values, key=len, reverse=True)
        pattern = re.compile("|".join(re.escape(term) for term in terms), re.IGNORECASE)
        return pattern.sub(lambda m: str(values.get(m.group(0).casefold(), m.group(0))), text)

    @classmethod
    def roll(cls, spec: PoolSpec, source: RandomSource) -> PoolOutcome:
        """
        Roll a validated pool.

        Raises:
            RandomSourceError: If the evaluator fails mid-pool
        """
        draws: list[int] = []
        success_count = 0
        total_dice = spec.dice_count

        i = 0
        while i < total_dice:
            value = source.roll(cls.DIE_EXPRESSION, POOL_DIE_FACES).total
            draws.append(value)

            if value >= POOL_SUCCESS_THRESHOLD:
                success_count += 1

            # Cap checked before the increment: the 100-draw ceiling is exact.
            if value >= spec.explode_threshold and total_dice < MAX_POOL_DICE:
                total_dice += 1
            i += 1

        return PoolOutcome(spec=spec, draws=tuple(draws), success_count=success_count)

    @classmethod
    def resolve(
        cls,
        text: str,
        attributes: Mapping[str, int] | None,
        source: RandomSource,
        aliases: AliasTable = DEFAULT_ALIASES,
    ) -> PoolOutcome:
        """Parse pool text and roll it."""
        spec = cls.parse_spec(text, attributes, source, aliases)
        outcome = cls.roll(spec, source)
        logger.debug(
            "Pool %s rolled %d dice, %d successes", spec, len(outcome.draws), outcome.success_count
        )
        return outcome
