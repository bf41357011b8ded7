"""
Text parsers.

A parser is any callable ``str -> Optional[dict]``: it returns the parsed
fields, or None when the text is not in its format. Format-specific parsers
(syslog, Windows XML, vendor JSON) are supplied by the caller; this module
ships two small demo parsers (``json`` and ``kv``) and the sub-parsers rule
documents can declare inline:

    {"parser": {"name": "message", "regex": "user=(?<user>\\S+) .*"}}
    {"parser": {"name": "message", "output": "msg", "pattern": "#{user} logged in from #{src.ip}"}}

and the ``FieldParser`` that applies one of them (or a named external parser,
``{"use": "<name>"}``) to a field of the event before the rules run.
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Tuple

import pandas as pd

from .exceptions import RuleError
from .path import PathResolver, merge
from .utils import to_number

logger = logging.getLogger(__name__)


class Parser(Protocol):
    def __call__(self, text: str) -> Optional[Dict[str, Any]]: ...


# PCRE-style "(?<name>...)" groups are accepted alongside "(?P<name>...)".
_PCRE_GROUP = re.compile(r"\(\?<(?![=!])")


class RegexParser:
    """Case-insensitive full match; every named group becomes a field."""
    __slots__ = ("regex",)

    def __init__(self, regex: str) -> None:
        try:
            self.regex = re.compile(_PCRE_GROUP.sub("(?P<", regex), re.IGNORECASE | re.DOTALL)
        except re.error as exc:
            raise RuleError(f"Invalid parser regex {regex!r}: {exc}") from exc

        if not self.regex.groupindex:
            raise RuleError(f"Parser regex {regex!r} has no named groups")

    def __call__(self, text: str) -> Optional[Dict[str, Any]]:
        m = self.regex.fullmatch(text)
        if m is None:
            return None

        return {name: value for name, value in m.groupdict().items() if value is not None}


_PLACEHOLDER = re.compile(r"#\{([^}]*)\}")
_MAX_FIXED_LENGTH = 1024


def _typed(kind: str, arg: Optional[str]) -> Callable[[str], Any]:
    """Typed captures that fail to convert keep their text."""
    if kind in ("integer", "long", "number"):
        def _number(s: str) -> Any:
            n = to_number(s)
            if n is None:
                return s
            return n if kind == "number" else int(n)
        return _number

    if kind == "json":
        def _json(s: str) -> Any:
            try:
                return json.loads(s)
            except ValueError:
                return s
        return _json

    if kind == "datetime":
        def _datetime(s: str) -> Any:
            ts = pd.to_datetime(s, format=arg or None, utc=True, errors="coerce")
            return s if pd.isna(ts) else int(ts.value // 1_000_000)
        return _datetime

    return lambda s: s


class PatternParser:
    """
    Literal text with ``#{field}`` placeholders.

    A placeholder captures everything up to the next literal (or the end of
    the line); names starting with '_' are matched but dropped. Optional types:
    ``#{n: integer}``, ``long``, ``number``, ``json``, ``string``,
    ``string(N)`` (fixed width) and ``datetime(<strftime format>)``.
    """
    __slots__ = ("pattern", "regex", "fields")

    def __init__(self, pattern: str) -> None:
        self.pattern = pattern
        self.fields: List[Tuple[str, str, Callable[[str], Any]]] = []

        parts: List[str] = []
        pos = 0
        placeholders = list(_PLACEHOLDER.finditer(pattern))
        for i, m in enumerate(placeholders):
            parts.append(re.escape(pattern[pos:m.start()]))
            name, kind, arg = self._field(m.group(1))
            last = i == len(placeholders) - 1 and m.end() == len(pattern)
            if kind == "string" and arg:
                body = f".{{{self._width(arg)}}}"
            else:
                body = ".*" if last else ".*?"

            if name.startswith("_"):
                parts.append(f"(?:{body})")
            else:
                group = f"g{len(self.fields)}"
                parts.append(f"(?P<{group}>{body})")
                self.fields.append((group, name, _typed(kind, arg)))
            pos = m.end()

        parts.append(re.escape(pattern[pos:]))
        self.regex = re.compile("".join(parts), re.DOTALL)

    @staticmethod
    def _field(text: str) -> Tuple[str, str, Optional[str]]:
        name, _, kind = text.partition(":")
        name, kind = name.strip(), kind.strip()
        if not name:
            raise RuleError("Empty field name in parser pattern")

        arg = None
        if "(" in kind:
            if not kind.endswith(")"):
                raise RuleError(f"Malformed field type {kind!r} in parser pattern")
            kind, arg = kind[:kind.index("(")].strip(), kind[kind.index("(") + 1:-1].strip()

        if kind and kind not in ("integer", "long", "number", "json", "string", "datetime"):
            raise RuleError(f"Invalid field type {kind!r} in parser pattern")

        return name, kind or "string", arg

    @staticmethod
    def _width(arg: str) -> int:
        try:
            width = int(arg)
        except ValueError:
            raise RuleError(f"String length is not a valid number: {arg!r}") from None

        if not 0 < width <= _MAX_FIXED_LENGTH:
            raise RuleError(f"Invalid string length {width}, valid range is 1-{_MAX_FIXED_LENGTH}")

        return width

    def __call__(self, text: str) -> Optional[Dict[str, Any]]:
        if not text:
            return None

        m = self.regex.fullmatch(text)
        if m is None:
            return None

        data: Dict[str, Any] = {}
        for group, name, typed in self.fields:
            PathResolver.put(data, name, typed(m.group(group).strip()))

        return data


class FieldParser:
    """Re-parses the text found at ``name`` and merges the result into the event (or under ``output``)."""
    __slots__ = ("name", "output", "parser")

    def __init__(self, name: str, parser: Parser, output: Optional[str] = None) -> None:
        self.name = name
        self.output = output
        self.parser = parser

    def apply(self, data: Dict[str, Any]) -> bool:
        text = PathResolver.get(data, self.name)
        if not isinstance(text, str) or not text:
            return False

        try:
            parsed = self.parser(text)
        except Exception as exc:
            logger.warning("Unable to parse %r: %r: %s", self.name, text, exc)
            return False

        if not parsed:
            return False

        if self.output is None:
            data.update(parsed)
            return True

        target = PathResolver.get(data, self.output)
        if isinstance(target, dict):
            merge(target, parsed, overwrite=True)
            return True

        return PathResolver.put(data, self.output, parsed)


def compile_field_parser(spec: Dict[str, Any], external: Optional[Mapping[str, Parser]] = None) -> FieldParser:
    if not isinstance(spec, dict):
        raise RuleError(f"Parser definition must be an object, got {type(spec).__name__}")

    name = spec.get("name")
    if not isinstance(name, str) or not name:
        raise RuleError("Parser definition requires a non-empty 'name'")

    output = spec.get("output")
    if output is not None and (not isinstance(output, str) or not output):
        raise RuleError("Parser 'output' must be a non-empty string")

    if spec.get("pattern"):
        parser: Parser = PatternParser(str(spec["pattern"]))

    elif spec.get("regex"):
        parser = RegexParser(str(spec["regex"]))

    elif spec.get("use"):
        parser = {**BUILTIN_PARSERS, **(external or {})}.get(spec["use"])
        if parser is None:
            raise RuleError(f"Unknown parser {spec['use']!r}")

    else:
        raise RuleError(f"Parser definition for {name!r} needs 'pattern', 'regex' or 'use'")

    return FieldParser(name, parser, output)


_KEY_VALUE = re.compile(r"""([\w.\-]+)=("(?:[^"\\]|\\.)*"|'[^']*'|\S*)""")


def json_parser(text: str) -> Optional[Dict[str, Any]]:
    """Raw text that is itself a JSON object."""
    data = json.loads(text)
    return data if isinstance(data, dict) else None


def kv_parser(text: str) -> Optional[Dict[str, Any]]:
    """``key=value`` pairs separated by whitespace; values may be quoted."""
    data: Dict[str, Any] = {}
    for key, value in _KEY_VALUE.findall(text):
        if value[:1] in ("'", '"') and len(value) >= 2:
            value = value[1:-1]
        data[key] = value

    return data or None


BUILTIN_PARSERS: Dict[str, Parser] = {"json": json_parser, "kv": kv_parser}
