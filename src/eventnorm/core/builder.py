from __future__ import annotations

import copy
from typing import Any, Dict, List, Optional

from .engine import INCLUDE, Transformer, compile_rule


def _deepcopy_rule(obj: Any) -> Any:
    if isinstance(obj, (dict, list)):
        return copy.deepcopy(obj)
    return obj


def _options(**opts: Any) -> Dict[str, Any]:
    return {k: _deepcopy_rule(v) for k, v in opts.items() if v is not None and v is not False}


class _RulesBuilder:
    """Fluent construction of an ordered rule list."""
    __slots__ = ("_when", "_parsers", "_rules")

    def __init__(self, when: Optional[str] = None) -> None:
        self._when = when
        self._parsers: List[Dict[str, Any]] = []
        self._rules: List[Dict[str, Any]] = []

    def _add(self, field: str, op: str, args: Any) -> "_RulesBuilder":
        if not field or not isinstance(field, str):
            raise ValueError(f"{op} requires a non-empty field name.")
        self._rules.append({field: {op: args}})
        return self

    def parser(self, name: str, *, regex: Optional[str] = None, pattern: Optional[str] = None,
               use: Optional[str] = None, output: Optional[str] = None) -> "_RulesBuilder":
        if sum(x is not None for x in (regex, pattern, use)) != 1:
            raise ValueError("parser() needs exactly one of regex=, pattern= or use=.")
        self._parsers.append({"name": name, **_options(regex=regex, pattern=pattern, use=use, output=output)})
        return self

    def value(self, field: str, value: Any, *, overwrite: bool = False, when: Optional[str] = None) -> "_RulesBuilder":
        # a bare object would be read as the options form
        if not overwrite and when is None and not isinstance(value, dict):
            return self._add(field, "@value", _deepcopy_rule(value))
        return self._add(field, "@value", {"value": _deepcopy_rule(value), **_options(overwrite=overwrite, when=when)})

    def merge(self, value: Dict[str, Any]) -> "_RulesBuilder":
        if not isinstance(value, dict):
            raise ValueError("merge() requires an object.")
        self._rules.append({"_": {"@value": _deepcopy_rule(value)}})
        return self

    def _transfer(self, op: str, field: str, name: Optional[str], opts: Dict[str, Any]) -> "_RulesBuilder":
        args = _options(name=name, **opts)
        if set(args) <= {"name"} and name:
            return self._add(field, op, name)
        return self._add(field, op, args)

    def move(self, field: str, name: Optional[str] = None, *, type: Optional[str] = None, separator: Optional[str] = None,
             splitter: Optional[str] = None, default: Any = None, overwrite: bool = False, is_array: bool = False,
             when: Optional[str] = None) -> "_RulesBuilder":
        return self._transfer("@move", field, name, dict(type=type, separator=separator, splitter=splitter, default=default,
                                                         overwrite=overwrite, is_array=is_array, when=when))

    def copy(self, field: str, name: Optional[str] = None, *, type: Optional[str] = None, separator: Optional[str] = None,
             splitter: Optional[str] = None, default: Any = None, overwrite: bool = False, is_array: bool = False,
             when: Optional[str] = None) -> "_RulesBuilder":
        return self._transfer("@copy", field, name, dict(type=type, separator=separator, splitter=splitter, default=default,
                                                         overwrite=overwrite, is_array=is_array, when=when))

    def clone(self, field: str, name: str, *, overwrite: bool = False, when: Optional[str] = None) -> "_RulesBuilder":
        if not overwrite and when is None:
            return self._add(field, "@clone", name)
        return self._add(field, "@clone", _options(name=name, overwrite=overwrite, when=when))

    def remove(self, field: str, *, when: Optional[str] = None) -> "_RulesBuilder":
        return self._add(field, "@remove", _options(when=when))

    def enum(self, field: str, name: str, values: Dict[str, Any], *, default: Any = None, other: Optional[str] = None,
             overwrite: bool = False, when: Optional[str] = None) -> "_RulesBuilder":
        return self._add(field, "@enum", _options(name=name, values=values, default=default, other=other,
                                                  overwrite=overwrite, when=when))

    def lookup(self, field: str, name: str, values: Dict[str, Any], *, default: Any = None, other: Optional[str] = None,
               overwrite: bool = False, when: Optional[str] = None) -> "_RulesBuilder":
        return self._add(field, "@lookup", _options(name=name, values=values, default=default, other=other,
                                                    overwrite=overwrite, when=when))

    def embed(self, field: str, rules: "_RulesBuilder") -> "_RulesBuilder":
        self._rules.append({field: rules._build_rules()})
        return self

    def include(self, *filenames: str) -> "_RulesBuilder":
        if not filenames:
            raise ValueError("include() needs at least one file name.")
        self._rules.append({INCLUDE: filenames[0] if len(filenames) == 1 else list(filenames)})
        return self

    def _build_rules(self) -> List[Dict[str, Any]]:
        return _deepcopy_rule(self._rules)

    def _build_group(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        if self._when:
            out["when"] = self._when
        if len(self._parsers) == 1:
            out["parser"] = _deepcopy_rule(self._parsers[0])
        elif self._parsers:
            out["parsers"] = _deepcopy_rule(self._parsers)
        if self._rules:
            out["rules"] = self._build_rules()
        return out


class RuleGroupBuilder(_RulesBuilder):
    """One ``ruleset`` entry."""
    __slots__ = ()

    def build(self) -> Dict[str, Any]:
        return self._build_group()


class RuleBuilder(_RulesBuilder):
    """
    Builds a rule document.

    Example:
        >>> doc = (RuleBuilder(when="class_uid = 3002")
        ...        .move("user", "actor.user.name")
        ...        .enum("status", "status_id", {"success": 1, "failure": 2}, other="status")
        ...        .value("category_uid", 3)
        ...        .build())
    """
    __slots__ = ("_ruleset",)

    def __init__(self, when: Optional[str] = None) -> None:
        super().__init__(when)
        self._ruleset: List[Dict[str, Any]] = []

    def group(self, group: RuleGroupBuilder) -> "RuleBuilder":
        if not isinstance(group, RuleGroupBuilder):
            raise TypeError("group() requires a RuleGroupBuilder.")
        self._ruleset.append(group.build())
        return self

    def build(self) -> Dict[str, Any]:
        out = self._build_group()
        if self._ruleset:
            out["ruleset"] = _deepcopy_rule(self._ruleset)
        return out

    def compile(self, name: Optional[str] = None, **kwargs: Any) -> Transformer:
        return compile_rule(self.build(), name=name, **kwargs)
