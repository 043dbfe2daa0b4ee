"""
Dicekeeper - Dice Expression Evaluator

The engine consumes randomness through the ``RandomSource`` protocol.
``DiceRoller`` is the default implementation: integer arithmetic with
``+ - * /``, parentheses and dice terms.

Supported notation:
    2d6, d20, 3D, 1d4+1, (2d6+6)*5, 3+2
    A missing die size falls back to the caller's default faces;
    division truncates toward zero.

Numbers are limited to nine digits and nesting to 32 levels; a total
beyond 10**15 is rejected.
"""

from __future__ import annotations

import random
import re
from typing import Callable, Protocol

from src.engine.base import RollResult
from src.engine.errors import RandomSourceError


_TOKEN_RE = re.compile(r"\s*(?:(?P<dice>(?P<count>\d*)[dD](?P<faces>\d*))|(?P<number>\d+)|(?P<op>[+\-*/()]))")

_MAX_DICE = 100
_MAX_FACES = 1000
_MAX_DIGITS = 9
_MAX_DEPTH = 32
_MAX_TOTAL = 10 ** 15


class RandomSource(Protocol):
    """Capability that evaluates dice notation."""

    def roll(self, expression: str, default_faces: int) -> RollResult:
        """Evaluate an expression; raises RandomSourceError when invalid."""
        ...

    def max_value(self, expression: str, default_faces: int) -> int:
        """Largest possible total, or -1 if the expression is invalid."""
        ...


def _tokenize(expression: str) -> list[tuple[str, str]]:
    """Split an expression into (kind, text) tokens."""
    tokens: list[tuple[str, str]] = []
    pos = 0
    text = expression.rstrip()
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if match is None:
            raise RandomSourceError(f"Unexpected character {text[pos:].strip()[:1]!r} in {expression!r}")
        if any(len(match.group(g) or "") > _MAX_DIGITS for g in ("count", "faces", "number")):
            raise RandomSourceError(f"Numbers in dice expressions are limited to {_MAX_DIGITS} digits.")
        if match.group("dice") is not None:
            tokens.append(("dice", match.group("dice")))
        elif match.group("number") is not None:
            tokens.append(("number", match.group("number")))
        else:
            tokens.append(("op", match.group("op")))
        pos = match.end()
    if not tokens:
        raise RandomSourceError("Empty dice expression.")
    return tokens


def _check_total(total: int) -> None:
    if abs(total) > _MAX_TOTAL:
        raise RandomSourceError("Dice expression total is too large.")


class _Evaluator:
    """Recursive-descent evaluator producing a total and its expansion."""

    def __init__(
        self,
        tokens: list[tuple[str, str]],
        rng: random.Random,
        default_faces: int,
        maximize: bool,
    ) -> None:
        self.tokens = tokens
        self.pos = 0
        self.rng = rng
        self.default_faces = default_faces
        self.maximize = maximize
        self.rolled_dice = False
        self.depth = 0
        # -1 while evaluating a subtracted or divisor operand; maximize
        # mode takes the lowest face there.
        self.polarity = 1

    def _peek(self) -> tuple[str, str] | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _take(self) -> tuple[str, str]:
        token = self._peek()
        if token is None:
            raise RandomSourceError("Unexpected end of dice expression.")
        self.pos += 1
        return token

    def _flipped(self, parse: Callable[[], tuple[int, str, str]]) -> tuple[int, str, str]:
        self.polarity = -self.polarity
        try:
            return parse()
        finally:
            self.polarity = -self.polarity

    def evaluate(self) -> tuple[int, str, str]:
        """Return (total, normalised shape, expansion)."""
        total, shape, expanded = self._expression()
        if self._peek() is not None:
            raise RandomSourceError(f"Unexpected token {self._peek()[1]!r}.")
        return total, shape, expanded

    def _expression(self) -> tuple[int, str, str]:
        total, shape, expanded = self._term()
        while (token := self._peek()) is not None and token[1] in "+-":
            self._take()
            if token[1] == "+":
                right, right_shape, right_expanded = self._term()
                total += right
            else:
                right, right_shape, right_expanded = self._flipped(self._term)
                total -= right
            _check_total(total)
            shape += token[1] + right_shape
            expanded += token[1] + right_expanded
        return total, shape, expanded

    def _term(self) -> tuple[int, str, str]:
        total, shape, expanded = self._factor()
        while (token := self._peek()) is not None and token[1] in "*/":
            self._take()
            if token[1] == "*":
                right, right_shape, right_expanded = self._factor()
                total *= right
                _check_total(total)
            else:
                right, right_shape, right_expanded = self._flipped(self._factor)
                if right == 0:
                    raise RandomSourceError("Division by zero in dice expression.")
                total = int(total / right)
            shape += token[1] + right_shape
            expanded += token[1] + right_expanded
        return total, shape, expanded

    def _factor(self) -> tuple[int, str, str]:
        kind, text = self._take()
        if kind == "number":
            return int(text), text, text
        if kind == "dice":
            return self._dice(text)
        if text not in ("+", "-", "("):
            raise RandomSourceError(f"Unexpected operator {text!r}.")

        self.depth += 1
        if self.depth > _MAX_DEPTH:
            raise RandomSourceError(f"Dice expression nests deeper than {_MAX_DEPTH} levels.")
        try:
            if text == "+":
                value, shape, expanded = self._factor()
                return value, text + shape, text + expanded
            if text == "-":
                value, shape, expanded = self._flipped(self._factor)
                return -value, text + shape, text + expanded
            value, shape, expanded = self._expression()
            closing = self._take()
            if closing != ("op", ")"):
                raise RandomSourceError("Unbalanced parentheses in dice expression.")
            return value, f"({shape})", f"({expanded})"
        finally:
            self.depth -= 1

    def _dice(self, text: str) -> tuple[int, str, str]:
        count_text, _, faces_text = text.lower().partition("d")
        count = int(count_text) if count_text else 1
        faces = int(faces_text) if faces_text else self.default_faces
        if not (1 <= count <= _MAX_DICE):
            raise RandomSourceError(f"Dice count must be 1-{_MAX_DICE}, got {count}.")
        if not (1 <= faces <= _MAX_FACES):
            raise RandomSourceError(f"Die faces must be 1-{_MAX_FACES}, got {faces}.")

        self.rolled_dice = True
        if self.maximize:
            values = [faces if self.polarity > 0 else 1] * count
        else:
            values = [self.rng.randint(1, faces) for _ in range(count)]
        shape = f"{count}D{faces}"
        if count == 1:
            return values[0], shape, str(values[0])
        return sum(values), shape, "(" + "+".join(str(v) for v in values) + ")"


class DiceRoller:
    """
    Default RandomSource backed by ``random.Random``.

    Pass a seeded ``random.Random`` (or a subclass with scripted draws)
    for deterministic results.
    """

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng if rng is not None else random.Random()

    def roll(self, expression: str, default_faces: int = 100) -> RollResult:
        """
        Evaluate a dice expression.

        Args:
            expression: Dice notation, e.g. ``1d100`` or ``2d6+3``
            default_faces: Die size used when a term omits it

        Returns:
            RollResult with the total and a readable expansion

        Raises:
            RandomSourceError: If the expression is invalid
        """
        evaluator = _Evaluator(_tokenize(expression), self._rng, default_faces, maximize=False)
        total, shape, expanded = evaluator.evaluate()

        parts = [shape]
        if expanded not in (shape, str(total)):
            parts.append(expanded)
        if str(total) != shape:
            parts.append(str(total))
        return RollResult(total=total, detail="=".join(parts))

    def max_value(self, expression: str, default_faces: int = 100) -> int:
        """Largest total the expression can produce, or -1 if invalid."""
        try:
            evaluator = _Evaluator(_tokenize(expression), self._rng, default_faces, maximize=True)
            total, _, _ = evaluator.evaluate()
        except RandomSourceError:
            return -1
        return total
