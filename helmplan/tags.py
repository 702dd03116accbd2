"""Tag expressions used to select which releases apply to a release target.

Supported syntax:

- ``*`` matches every release, including releases without tags.
- ``a, b`` / ``a b`` matches releases carrying every listed tag.

Expressions combine with :meth:`TagExpression.and_` (or ``&``).
"""

import re
from dataclasses import dataclass
from typing import Iterable

from .errors import ParseError

MATCH_ALL_TOKEN = "*"
TAG_PATTERN = re.compile(r"^[A-Za-z0-9_.:/-]+$")
_SEPARATOR = re.compile(r"\s*,\s*|\s+")


class TagExpression:
    """Immutable boolean predicate over a set of string tags."""

    def matches(self, tags: Iterable[str]) -> bool:
        raise NotImplementedError

    def and_(self, other: "TagExpression") -> "TagExpression":
        """Return an expression matching only when both expressions match."""
        if isinstance(other, MatchAll):
            return self
        return AndExpression(self, other)

    def __and__(self, other: "TagExpression") -> "TagExpression":
        return self.and_(other)

    @staticmethod
    def always_match() -> "TagExpression":
        return MATCH_ALL

    @staticmethod
    def parse(text: str) -> "TagExpression":
        """Parse a textual tag expression.

        Raises:
            ParseError: if the text is empty, contains an empty token, mixes
                ``*`` with literal tags or contains an invalid tag.
        """
        if not isinstance(text, str):
            raise ParseError(f"Tag expression must be a string, not {type(text).__name__}")
        if not text.strip():
            raise ParseError("Tag expression must not be empty")

        stripped = text.strip()
        if stripped == MATCH_ALL_TOKEN:
            return MATCH_ALL

        tokens = _SEPARATOR.split(stripped)
        required: list[str] = []
        for token in tokens:
            if not token:
                raise ParseError(f"Empty tag in expression {text!r}")
            if token == MATCH_ALL_TOKEN:
                raise ParseError(f"'*' cannot be combined with other tags in {text!r}")
            if not TAG_PATTERN.match(token):
                raise ParseError(f"Invalid tag {token!r} in expression {text!r}")
            if token not in required:
                required.append(token)
        return AllOf(tuple(required))


@dataclass(frozen=True)
class MatchAll(TagExpression):
    """Matches every tag set."""

    def matches(self, tags: Iterable[str]) -> bool:
        return True

    def and_(self, other: TagExpression) -> TagExpression:
        return other

    def __str__(self) -> str:
        return MATCH_ALL_TOKEN


MATCH_ALL = MatchAll()


@dataclass(frozen=True)
class AllOf(TagExpression):
    """Matches tag sets containing every required tag."""

    required: tuple[str, ...]

    def matches(self, tags: Iterable[str]) -> bool:
        present = set(tags)
        return all(tag in present for tag in self.required)

    def __str__(self) -> str:
        return ",".join(self.required)


@dataclass(frozen=True)
class AndExpression(TagExpression):
    """Conjunction of two expressions."""

    left: TagExpression
    right: TagExpression

    def matches(self, tags: Iterable[str]) -> bool:
        tags = set(tags)
        return self.left.matches(tags) and self.right.matches(tags)

    def __str__(self) -> str:
        return f"({self.left}) & ({self.right})"
