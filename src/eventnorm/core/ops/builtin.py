from __future__ import annotations

import copy
import re
from typing import Any, Callable, Dict, Optional

from ..engine import CompileContext, Instruction
from ..exceptions import RuleError
from ..objects import OTHER_ID, to_fingerprint
from ..path import PathResolver
from ..predicates import Predicate
from ..registry import register_operation
from ..types import FINGERPRINT, convert, default_value, is_known_type
from ..utils import split_values

Data = Dict[str, Any]
Reader = Callable[[Data, str], Any]


def _read(data: Data, field: str) -> Any:
    val = PathResolver.get(data, field)
    # Copies must not share containers with the scratch data still being consumed.
    return copy.deepcopy(val) if isinstance(val, (dict, list)) else val


def _take(data: Data, field: str) -> Any:
    return PathResolver.remove(data, field)


def _fresh(value: Any) -> Any:
    return copy.deepcopy(value) if isinstance(value, (dict, list)) else value


def _options(op: str, field: str, args: Any, short: Optional[str] = None) -> Dict[str, Any]:
    """Normalize the operator arguments to a dict; ``short`` names the key a bare value stands for."""
    if isinstance(args, dict):
        return args

    if short is not None and isinstance(args, str) and args:
        return {short: args}

    raise RuleError(f"{op} for {field!r}: unexpected arguments {args!r}")


def _str_opt(op: str, opts: Dict[str, Any], key: str, default: Optional[str] = None) -> Optional[str]:
    val = opts.get(key, default)
    if val is not None and not isinstance(val, str):
        raise RuleError(f"{op}: '{key}' must be a string, got {val!r}")
    return val


def _bool_opt(op: str, opts: Dict[str, Any], key: str) -> bool:
    val = opts.get(key, False)
    if not isinstance(val, bool):
        raise RuleError(f"{op}: '{key}' must be a boolean, got {val!r}")
    return val


def _guarded(when: Optional[Predicate], body: Callable[[Data, Data], bool]) -> Callable[[Data, Data], bool]:
    if when is None:
        return body

    def apply(data: Data, translated: Data) -> bool:
        return when.test(data) and body(data, translated)

    return apply


def _op_value(field: str, args: Any, ctx: CompileContext) -> Instruction:
    if isinstance(args, dict):
        value = args.get("value")
        overwrite = _bool_opt("@value", args, "overwrite")
        when = ctx.when(args.get("when"))
    else:
        value, overwrite, when = args, False, None

    def apply(data: Data, translated: Data) -> bool:
        return PathResolver.put(translated, field, _fresh(value), overwrite=overwrite)

    return Instruction(field, "@value", _guarded(when, apply))
register_operation("@value", _op_value)


def _transfer(op: str, source: Reader, field: str, args: Any, ctx: CompileContext) -> Instruction:
    opts = _options(op, field, args, short="name")
    name = _str_opt(op, opts, "name", field)
    type_name = _str_opt(op, opts, "type")
    separator = _str_opt(op, opts, "separator")
    splitter = _str_opt(op, opts, "splitter")
    default = opts.get("default")
    overwrite = _bool_opt(op, opts, "overwrite")
    is_array = _bool_opt(op, opts, "is_array")
    when = ctx.when(opts.get("when"))

    if not name:
        raise RuleError(f"{op} for {field!r}: 'name' must not be empty")

    if type_name is not None and not is_known_type(type_name):
        raise RuleError(f"{op} for {field!r}: invalid type {type_name!r}")

    pattern = None
    if splitter:
        try:
            pattern = re.compile(splitter)
        except re.error as exc:
            raise RuleError(f"{op} for {field!r}: invalid splitter {splitter!r}: {exc}") from exc

    if "," in field:
        names = [n for n in re.split(r"\s*,\s*", field.strip()) if n]

        def read(data: Data) -> Any:
            parts = [source(data, n) for n in names]
            text = (separator or "").join(str(p) for p in parts if p is not None)
            return text or None
    else:
        def read(data: Data) -> Any:
            return source(data, field)

    def apply(data: Data, translated: Data) -> bool:
        value = read(data)
        if value is None:
            if default is None:
                return False
            return PathResolver.put(translated, name, default_value(_fresh(default), type_name), overwrite=overwrite)

        if type_name is not None and type_name.lower() == FINGERPRINT:
            fingerprint = to_fingerprint(value)
            return PathResolver.put(translated, f"{name}.fingerprints", [fingerprint])

        if is_array:
            items = split_values(value, pattern)
            if type_name is not None:
                items = [None if v is None else convert(v, type_name) for v in items]
            return PathResolver.put(translated, name, items, overwrite=overwrite)

        if type_name is not None:
            value = convert(value, type_name)
        return PathResolver.put(translated, name, value, overwrite=overwrite)

    return Instruction(field, op, _guarded(when, apply))


def _op_move(field: str, args: Any, ctx: CompileContext) -> Instruction:
    return _transfer("@move", _take, field, args, ctx)
register_operation("@move", _op_move)


def _op_copy(field: str, args: Any, ctx: CompileContext) -> Instruction:
    return _transfer("@copy", _read, field, args, ctx)
register_operation("@copy", _op_copy)


def _op_clone(field: str, args: Any, ctx: CompileContext) -> Instruction:
    opts = _options("@clone", field, args, short="name")
    dest = _str_opt("@clone", opts, "name")
    overwrite = _bool_opt("@clone", opts, "overwrite")
    when = ctx.when(opts.get("when"))
    if not dest:
        raise RuleError(f"@clone for {field!r}: missing target 'name'")

    def apply(data: Data, translated: Data) -> bool:
        return PathResolver.put(translated, dest, _read(translated, field), overwrite=overwrite)

    return Instruction(field, "@clone", _guarded(when, apply))
register_operation("@clone", _op_clone)


def _op_remove(field: str, args: Any, ctx: CompileContext) -> Instruction:
    when = ctx.when(args.get("when")) if isinstance(args, dict) else None

    def apply(data: Data, translated: Data) -> bool:
        return PathResolver.remove(data, field) is not None

    return Instruction(field, "@remove", _guarded(when, apply))
register_operation("@remove", _op_remove)


def _lookup(op: str, source: Reader, field: str, args: Any, ctx: CompileContext) -> Instruction:
    if not isinstance(args, dict):
        raise RuleError(f"{op} for {field!r}: arguments must be an object")

    name = _str_opt(op, args, "name")
    other = _str_opt(op, args, "other")
    default = args.get("default")
    overwrite = _bool_opt(op, args, "overwrite")
    when = ctx.when(args.get("when"))
    values = args.get("values")

    if not name:
        raise RuleError(f"{op} for {field!r}: missing 'name'")

    if not isinstance(values, dict):
        raise RuleError(f"{op} for {field!r}: 'values' must be an object")

    table = {str(k).lower(): v for k, v in values.items()}

    def apply(data: Data, translated: Data) -> bool:
        value = source(data, field)
        if value is None:
            return default is not None and PathResolver.put(translated, name, _fresh(default), overwrite=overwrite)

        text = str(value).lower() if not isinstance(value, bool) else ("true" if value else "false")
        mapped = table.get(text)
        if mapped is not None:
            return PathResolver.put(translated, name, _fresh(mapped), overwrite=overwrite)

        if other is not None:
            wrote_id = PathResolver.put(translated, name, OTHER_ID, overwrite=overwrite)
            wrote_other = PathResolver.put(translated, other, str(value), overwrite=overwrite)
            return wrote_id or wrote_other

        return default is not None and PathResolver.put(translated, name, _fresh(default), overwrite=overwrite)

    return Instruction(field, op, _guarded(when, apply))


def _op_enum(field: str, args: Any, ctx: CompileContext) -> Instruction:
    return _lookup("@enum", _take, field, args, ctx)
register_operation("@enum", _op_enum)


def _op_lookup(field: str, args: Any, ctx: CompileContext) -> Instruction:
    return _lookup("@lookup", _read, field, args, ctx)
register_operation("@lookup", _op_lookup)
