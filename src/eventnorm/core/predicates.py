from __future__ import annotations

import re
from typing import Any, Callable, Dict, Optional, Sequence

from .network import NetworkMask
from .path import PathResolver
from .utils import current_millis, to_epoch_millis, to_number

# Relational operators in their canonical (lower-case) spelling.
RELATIONAL_OPS = (
    "=", "!=", ">=", ">", "<=", "<",
    "like", "not_like", "match", "not_match",
    "starts_with", "ends_with", "in", "not_in", "contains",
)

NEGATED_OPS = {"!=": "=", "not_like": "like", "not_match": "match", "not_in": "in"}


class DateLiteral:
    """A date literal in epoch milliseconds; relative literals are resolved at evaluation time."""
    __slots__ = ("text", "millis", "relative")

    def __init__(self, text: str, millis: int, *, relative: bool = False) -> None:
        self.text = text
        self.millis = millis
        self.relative = relative

    def value(self) -> int:
        return current_millis() + self.millis if self.relative else self.millis

    def __repr__(self) -> str:
        return f"`{self.text}`"


class Predicate:
    """Compiled boolean expression; evaluation never mutates the data."""
    __slots__ = ()

    def test(self, data: Dict[str, Any]) -> bool:
        raise NotImplementedError

    def __call__(self, data: Dict[str, Any]) -> bool:
        return self.test(data)


class Comparison(Predicate):
    __slots__ = ("field", "op", "value", "_pattern")

    def __init__(self, field: str, op: str, value: Any, pattern: Optional["re.Pattern[str]"] = None) -> None:
        self.field = field
        self.op = op
        self.value = value
        self._pattern = pattern

    def test(self, data: Dict[str, Any]) -> bool:
        actual = PathResolver.get(data, self.field)
        positive = NEGATED_OPS.get(self.op)

        if actual is None:
            # A missing field only equals null.
            return self.op == "=" and self.value is None

        if positive is not None:
            return not self._positive(positive, actual)

        return self._positive(self.op, actual)

    def _positive(self, op: str, actual: Any) -> bool:
        if op == "contains" and isinstance(actual, list):
            return any(_equals(el, self.value) for el in actual)

        if isinstance(actual, list):
            return any(el is not None and self._scalar(op, el) for el in actual)

        return self._scalar(op, actual)

    def _scalar(self, op: str, actual: Any) -> bool:
        lit = self.value
        if op == "=":
            return _equals(actual, lit)

        if op == "in":
            if isinstance(lit, tuple):
                return any(_equals(actual, v) for v in lit)
            return _equals(actual, lit)

        if op in ("like", "match"):
            if isinstance(actual, (dict, list)):
                return False
            if self._pattern is None:
                # non-string "like" literals match as a substring
                return _text(lit).lower() in _text(actual).lower()
            return self._pattern.fullmatch(_text(actual)) is not None

        if op == "contains":
            return _text(lit).lower() in _text(actual).lower()

        if op == "starts_with":
            return _text(actual).lower().startswith(_text(lit).lower())

        if op == "ends_with":
            return _text(actual).lower().endswith(_text(lit).lower())

        order = _order(actual, lit)
        if order is None:
            return False

        return _ORDERING[op](order)

    def __repr__(self) -> str:
        return f"({self.field} {self.op} {self.value!r})"


class NullCheck(Predicate):
    __slots__ = ("field", "negated")

    def __init__(self, field: str, negated: bool = False) -> None:
        self.field = field
        self.negated = negated

    def test(self, data: Dict[str, Any]) -> bool:
        missing = PathResolver.get(data, self.field) is None
        return not missing if self.negated else missing

    def __repr__(self) -> str:
        return f"({self.field} is {'not_null' if self.negated else 'null'})"


class And(Predicate):
    __slots__ = ("items",)

    def __init__(self, items: Sequence[Predicate]) -> None:
        self.items = tuple(items)

    def test(self, data: Dict[str, Any]) -> bool:
        return all(p.test(data) for p in self.items)

    def __repr__(self) -> str:
        return "(" + " and ".join(map(repr, self.items)) + ")"


class Or(Predicate):
    __slots__ = ("items",)

    def __init__(self, items: Sequence[Predicate]) -> None:
        self.items = tuple(items)

    def test(self, data: Dict[str, Any]) -> bool:
        return any(p.test(data) for p in self.items)

    def __repr__(self) -> str:
        return "(" + " or ".join(map(repr, self.items)) + ")"


class Not(Predicate):
    __slots__ = ("item",)

    def __init__(self, item: Predicate) -> None:
        self.item = item

    def test(self, data: Dict[str, Any]) -> bool:
        return not self.item.test(data)

    def __repr__(self) -> str:
        return f"not {self.item!r}"


_ORDERING: Dict[str, Callable[[int], bool]] = {
    ">": lambda c: c > 0,
    ">=": lambda c: c >= 0,
    "<": lambda c: c < 0,
    "<=": lambda c: c <= 0,
}


def _text(x: Any) -> str:
    if isinstance(x, bool):
        return "true" if x else "false"
    return str(x)


def _is_number(x: Any) -> bool:
    return isinstance(x, (int, float)) and not isinstance(x, bool)


def _equals(actual: Any, lit: Any) -> bool:
    if lit is None:
        return actual is None

    if actual is None:
        return False

    if isinstance(lit, NetworkMask):
        return lit.contains(actual)

    if isinstance(lit, bool):
        return _text(actual).lower() == _text(lit)

    if isinstance(lit, DateLiteral):
        millis = to_epoch_millis(actual)
        return millis is not None and millis == lit.value()

    if _is_number(lit):
        n = to_number(actual)
        return n is not None and n == lit

    if isinstance(actual, (dict, list)):
        return False

    return _text(actual).lower() == _text(lit).lower()


def _cmp(a: Any, b: Any) -> int:
    return (a > b) - (a < b)


def _order(actual: Any, lit: Any) -> Optional[int]:
    if isinstance(lit, DateLiteral):
        millis = to_epoch_millis(actual)
        return None if millis is None else _cmp(millis, lit.value())

    if _is_number(lit):
        n = to_number(actual)
        return None if n is None else _cmp(n, lit)

    if isinstance(lit, str) and not isinstance(actual, (dict, list)):
        return _cmp(_text(actual).lower(), lit.lower())

    return None
