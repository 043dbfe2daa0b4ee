"""
Dicekeeper - Attribute Directive Parser

Turns freeform ``.st``-style text into structured attribute operations.

Accepted forms (mixed freely, grouped by ``|``):
    力量 60                 bare name followed by a value
    力量60敏捷40            run-together pairs
    str:60 / 力量：60       colon (half- or full-width) sets
    hp+1d6  san-5           fused add / subtract, value may be dice notation
    力量STR=3D6*5=60/30/12  pasted character-generator output
    Kokona--力量60          explicit target card prefix

Parsing is best effort: fragments that cannot be understood are dropped
rather than reported, so pasted sheets with noise still yield every
recognisable attribute.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

from src.engine.base import (
    DeferredExpression,
    DirectiveParseResult,
    LiteralValue,
    Operation,
    OperationKind,
    OperationValue,
)

logger = logging.getLogger(__name__)


# Canonical Call of Cthulhu attributes and the spellings players use for them.
_ALIAS_ENTRIES: dict[str, tuple[str, ...]] = {
    "力量": ("str", "strength"),
    "体质": ("con", "constitution"),
    "体型": ("siz", "size"),
    "敏捷": ("dex", "dexterity"),
    "外貌": ("app", "appearance"),
    "智力": ("int", "intelligence"),
    "意志": ("pow", "power"),
    "教育": ("edu", "education"),
    "幸运": ("luck", "luk"),
    "理智": ("san", "sanity"),
    "生命": ("hp", "生命值"),
    "魔法": ("mp", "魔法值"),
    "伤害加值": ("db", "伤害奖励"),
    "移动力": ("mov", "move"),
}

SANITY = "理智"


@dataclass(frozen=True)
class AliasTable:
    """
    Read-only mapping from alias spellings to canonical attribute names.

    Lookup is case-insensitive and total: unknown names come back unchanged.
    """
    aliases: Mapping[str, str]

    @classmethod
    def build(cls, entries: Mapping[str, tuple[str, ...]]) -> "AliasTable":
        """Build a table from ``{canonical: (alias, ...)}``."""
        table: dict[str, str] = {}
        for canonical, spellings in entries.items():
            table[canonical.lower()] = canonical
            for spelling in spellings:
                table[spelling.lower()] = canonical
        return cls(aliases=MappingProxyType(table))

    def normalize(self, name: str) -> str:
        """Return the canonical form of ``name``, or ``name`` itself."""
        return self.aliases.get(name.strip().lower(), name)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.strip().lower() in self.aliases

    def spellings_for(self, canonical: str) -> tuple[str, ...]:
        """All known spellings (canonical included) that resolve to ``canonical``."""
        return tuple(k for k, v in self.aliases.items() if v == canonical)


DEFAULT_ALIASES = AliasTable.build(_ALIAS_ENTRIES)


# Letters accepted in attribute names: CJK ideographs and Latin.
_NAME_CHARS = r"A-Za-z一-鿿"

# Integer literals are at most nine digits; longer runs make the token unparseable.
_NUMBER = r"\d{1,9}(?!\d)"

_CARD_PREFIX_RE = re.compile(r"^(.+?)--(.+)$", re.DOTALL)
_DERIVED_OUTPUT_RE = re.compile(rf"^([一-鿿]+)[A-Z]*=.*?=({_NUMBER})")
_PURE_NAME_RE = re.compile(rf"^[{_NAME_CHARS}]+$")
_INTEGER_RE = re.compile(rf"^[+-]?{_NUMBER}$")

_TERM = rf"(?:(?:\d{{1,9}})?[dD]{_NUMBER}|{_NUMBER})"
# One name/value pair inside a fused token. The value after an explicit
# operator may chain further terms (hp+1d6+2); a run-together value is a
# single term so "力量30-5" is not silently read as "力量 = 30-5".
_PAIR_RE = re.compile(
    rf"(?P<name>[{_NAME_CHARS}]+?)"
    rf"(?:(?P<op>[+\-:：])(?P<chain>{_TERM}(?:[+\-]{_TERM})*)|(?P<single>{_TERM}))"
)

_OP_KINDS = {
    "+": OperationKind.ADD,
    "-": OperationKind.SUBTRACT,
    ":": OperationKind.SET,
    "：": OperationKind.SET,
}


def _value_of(text: str) -> OperationValue:
    """Literal when the text is a plain integer, otherwise deferred."""
    if text.isdigit():
        return LiteralValue(int(text))
    return DeferredExpression(text)


class AttributeDirectiveParser:
    """
    Stateless parser for attribute directive text.

    All methods are class methods; the alias table is passed in and
    never mutated.
    """

    @classmethod
    def parse(
        cls,
        text: str,
        aliases: AliasTable = DEFAULT_ALIASES,
    ) -> DirectiveParseResult:
        """
        Parse directive text into operations.

        Never raises: unparseable tokens are skipped.

        Args:
            text: Raw directive text
            aliases: Alias table used to canonicalise names

        Returns:
            DirectiveParseResult with the target card and ordered operations
        """
        body = (text or "").strip()
        target_card: str | None = None

        card_match = _CARD_PREFIX_RE.match(body)
        if card_match and card_match.group(1).strip() and card_match.group(2).strip():
            target_card = card_match.group(1).strip()
            body = card_match.group(2).strip()

        operations: list[Operation] = []
        for segment in body.split("|"):
            tokens = segment.split()
            if tokens:
                operations.extend(cls._parse_segment(tokens, aliases))

        logger.debug("Parsed %d operation(s) from %r (card=%s)", len(operations), text, target_card)
        return DirectiveParseResult(target_card=target_card, operations=tuple(operations))

    @classmethod
    def _parse_segment(cls, tokens: list[str], aliases: AliasTable) -> list[Operation]:
        """Scan one ``|`` segment left to right with one token of lookahead."""
        operations: list[Operation] = []
        i = 0
        while i < len(tokens):
            token = tokens[i]

            derived = _DERIVED_OUTPUT_RE.match(token)
            if derived:
                operations.append(Operation(
                    attribute=aliases.normalize(derived.group(1)),
                    kind=OperationKind.SET,
                    value=LiteralValue(int(derived.group(2))),
                ))
                i += 1
                continue

            if "=" in token or "/" in token or "*" in token:
                i += 1
                continue

            if _PURE_NAME_RE.match(token):
                if i + 1 < len(tokens) and _INTEGER_RE.match(tokens[i + 1]):
                    operations.append(Operation(
                        attribute=aliases.normalize(token),
                        kind=OperationKind.SET,
                        value=LiteralValue(int(tokens[i + 1])),
                    ))
                    i += 2
                else:
                    i += 1
                continue

            operations.extend(cls._parse_fused(token, aliases))
            i += 1

        return operations

    @classmethod
    def _parse_fused(cls, token: str, aliases: AliasTable) -> list[Operation]:
        """
        Decompose a token into name/value pairs.

        The whole token must be consumed; a token with any leftover
        characters contributes nothing.
        """
        operations: list[Operation] = []
        pos = 0
        while pos < len(token):
            match = _PAIR_RE.match(token, pos)
            if match is None:
                return []
            name = aliases.normalize(match.group("name"))
            if match.group("op") is not None:
                kind = _OP_KINDS[match.group("op")]
                value = _value_of(match.group("chain"))
            else:
                kind = OperationKind.SET
                value = _value_of(match.group("single"))
            operations.append(Operation(attribute=name, kind=kind, value=value))
            pos = match.end()
        return operations
