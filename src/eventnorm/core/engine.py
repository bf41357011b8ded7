from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from .exceptions import RuleError
from .expression import compile_expression
from .parsers import FieldParser, Parser, compile_field_parser
from .path import PathResolver, merge
from .predicates import Predicate
from .registry import OperationRegistry, get_registry

Data = Dict[str, Any]
JsonReader = Callable[[Path], Any]

UNMAPPED = "unmapped"
MERGE_FIELD = "_"
INCLUDE = "@include"


def read_json(path: Path) -> Any:
    with open(path, "r", encoding="utf-8") as fin:
        return json.load(fin)


class Instruction:
    """One compiled field operator. ``apply`` returns True when it changed anything."""
    __slots__ = ("field", "op", "_apply")

    def __init__(self, field: str, op: str, apply: Callable[[Data, Data], bool]) -> None:
        self.field = field
        self.op = op
        self._apply = apply

    def apply(self, data: Data, translated: Data) -> bool:
        return bool(self._apply(data, translated))

    def __repr__(self) -> str:
        return f"Instruction({self.field!r}, {self.op!r})"


class RuleGroup:
    """An optionally predicated block of sub-parsers and instructions."""
    __slots__ = ("when", "parsers", "instructions")

    def __init__(self, when: Optional[Predicate], parsers: Sequence[FieldParser], instructions: Sequence[Instruction]) -> None:
        self.when = when
        self.parsers = tuple(parsers)
        self.instructions = tuple(instructions)

    def run(self, data: Data, translated: Data) -> bool:
        if self.when is not None and not self.when.test(data):
            return False

        for parser in self.parsers:
            parser.apply(data)

        run_instructions(self.instructions, data, translated)
        return True


def run_instructions(instructions: Sequence[Instruction], data: Data, translated: Data) -> Data:
    for instruction in instructions:
        instruction.apply(data, translated)

    return translated


class Transformer:
    """
    A compiled rule document.

    ``apply`` returns the translated event, or None when the document's
    ``when`` predicate does not hold for the input. The input is never
    mutated: rules run against a deep copy, and whatever the rules leave
    in that copy ends up under ``unmapped``.
    """
    __slots__ = ("name", "when", "groups")

    def __init__(self, name: str, when: Optional[Predicate], groups: Sequence[RuleGroup]) -> None:
        self.name = name
        self.when = when
        self.groups = tuple(groups)

    @property
    def is_default(self) -> bool:
        return self.when is None

    def applies(self, data: Data) -> bool:
        return self.when is None or self.when.test(data)

    def apply(self, data: Data) -> Optional[Data]:
        if not self.applies(data):
            return None

        scratch = copy.deepcopy(dict(data))
        translated: Data = {}
        for group in self.groups:
            group.run(scratch, translated)

        PathResolver.cleanup(scratch)
        if scratch:
            unmapped = translated.get(UNMAPPED)
            if isinstance(unmapped, dict):
                merge(unmapped, scratch)
            else:
                translated[UNMAPPED] = scratch

        return translated

    def __repr__(self) -> str:
        kind = "default" if self.is_default else "conditional"
        return f"Transformer({self.name!r}, {kind}, groups={len(self.groups)})"


class CompileContext:
    """Carries what operator compilers need: includes, the operator vocabulary, named parsers."""
    __slots__ = ("home", "reader", "registry", "parsers")

    def __init__(
        self,
        *,
        home: Optional[Union[str, Path]] = None,
        reader: Optional[JsonReader] = None,
        registry: Optional[OperationRegistry] = None,
        parsers: Optional[Mapping[str, Parser]] = None,
    ) -> None:
        self.home = Path(home).resolve() if home is not None else None
        self.reader = reader or read_json
        self.registry = registry or get_registry()
        self.parsers = parsers or {}

    def when(self, expr: Any) -> Optional[Predicate]:
        if expr is None or expr == "":
            return None

        if not isinstance(expr, str):
            raise RuleError(f"'when' must be a string, got {type(expr).__name__}")

        return compile_expression(expr)

    def include(self, filename: Any) -> Any:
        if not isinstance(filename, str) or not filename:
            raise RuleError(f"'{INCLUDE}' must name a file, got {filename!r}")

        if self.home is None:
            raise RuleError(f"'{INCLUDE}' of {filename!r} requires a rules home directory")

        path = (self.home / filename).resolve()
        try:
            path.relative_to(self.home)
        except ValueError:
            raise RuleError(f"Included file {filename!r} is outside of {self.home}") from None

        try:
            return self.reader(path)
        except (OSError, ValueError) as exc:
            raise RuleError(f"Unable to include {filename!r}: {exc}") from exc

    def expand_rules(self, entries: Any, *, where: str = "rules") -> List[Dict[str, Any]]:
        if not isinstance(entries, list):
            raise RuleError(f"'{where}' must be a list")

        out: List[Dict[str, Any]] = []
        for entry in entries:
            if isinstance(entry, dict) and INCLUDE in entry:
                names = entry[INCLUDE]
                for filename in names if isinstance(names, list) else [names]:
                    included = self.include(filename)
                    if isinstance(included, dict):
                        out.append(included)
                    elif isinstance(included, list):
                        out.extend(self.expand_rules(included, where=filename))
                    else:
                        raise RuleError(f"Included file {filename!r} must contain a rule or a list of rules")
            else:
                out.append(entry)

        return out

    def compile_rules(self, entries: Any, *, where: str = "rules") -> List[Instruction]:
        instructions: List[Instruction] = []
        for i, entry in enumerate(self.expand_rules(entries, where=where)):
            try:
                instructions.append(self.compile_entry(entry))
            except RuleError as exc:
                raise RuleError(f"{where}[{i}]: {exc}") from exc

        return instructions

    def compile_entry(self, entry: Any) -> Instruction:
        if not isinstance(entry, dict) or len(entry) != 1:
            raise RuleError("A rule must be an object with exactly one field")

        field, spec = next(iter(entry.items()))
        if not isinstance(field, str) or not field.strip():
            raise RuleError("Rule field name must be a non-empty string")

        if field == MERGE_FIELD:
            return self._merge(spec)

        if isinstance(spec, list):
            return self._embedded(field, spec)

        if not isinstance(spec, dict):
            raise RuleError(f"Illegal rule for {field!r}: expected an operator object")

        unknown = [k for k in spec if k.startswith("@") and k not in self.registry]
        if unknown:
            raise RuleError(f"Unknown operator {unknown[0]!r} for {field!r}")

        keys = self.registry.operators_in(spec)
        if not keys:
            raise RuleError(f"Missing operator for {field!r}")

        if len(keys) > 1:
            raise RuleError(f"Multiple operators for {field!r}: {keys}")

        return self.registry.compile(keys[0], field, spec[keys[0]], self)

    def _merge(self, spec: Any) -> Instruction:
        value = spec.get("@value") if isinstance(spec, dict) and "@value" in spec else spec
        if not isinstance(value, dict):
            raise RuleError(f"'{MERGE_FIELD}' expects an object to merge")

        def apply(data: Data, translated: Data) -> bool:
            merge(translated, copy.deepcopy(value))
            return True

        return Instruction(MERGE_FIELD, "@value", apply)

    def _embedded(self, field: str, spec: List[Any]) -> Instruction:
        nested = self.compile_rules(spec, where=field)

        def apply(data: Data, translated: Data) -> bool:
            value = PathResolver.get(data, field)
            items = [value] if isinstance(value, dict) else value if isinstance(value, list) else []
            applied = False
            for item in items:
                if isinstance(item, dict):
                    translated.update(run_instructions(nested, item, {}))
                    applied = True
            return applied

        return Instruction(field, "embedded", apply)

    def compile_parsers(self, doc: Dict[str, Any]) -> List[FieldParser]:
        if "parser" in doc:
            specs = [doc["parser"]]
        elif "parsers" in doc:
            specs = doc["parsers"]
            if not isinstance(specs, list):
                raise RuleError("'parsers' must be a list")
        else:
            return []

        out: List[FieldParser] = []
        for spec in specs:
            if isinstance(spec, dict) and INCLUDE in spec:
                included = self.include(spec[INCLUDE])
                nested = included if isinstance(included, list) else [included]
                out.extend(self.compile_parsers({"parsers": nested}))
            else:
                out.append(compile_field_parser(spec, self.parsers))

        return out

    def compile_group(self, doc: Any, *, where: str) -> RuleGroup:
        if not isinstance(doc, dict):
            raise RuleError(f"{where}: a rule group must be an object")

        return RuleGroup(
            self.when(doc.get("when")),
            self.compile_parsers(doc),
            self.compile_rules(doc.get("rules", []), where=f"{where}.rules"),
        )


def compile_rule(
    document: Dict[str, Any],
    *,
    name: Optional[str] = None,
    home: Optional[Union[str, Path]] = None,
    reader: Optional[JsonReader] = None,
    registry: Optional[OperationRegistry] = None,
    parsers: Optional[Mapping[str, Parser]] = None,
) -> Transformer:
    """
    Compile one rule document into a Transformer.

    Document keys: ``when`` (absent -> default transformer), ``parser`` /
    ``parsers``, ``rules`` and ``ruleset`` (a list of groups, each with its
    own optional ``when``, parsers and rules). Groups run in document order,
    each one seeing the data as left by the groups before it.
    """
    if not isinstance(document, dict):
        raise RuleError("Rule document must be an object (dict).")

    ctx = CompileContext(home=home, reader=reader, registry=registry, parsers=parsers)
    name = name or str(document.get("name") or "<inline>")

    when = ctx.when(document.get("when"))
    groups = [RuleGroup(None, ctx.compile_parsers(document), ctx.compile_rules(document.get("rules", [])))]

    ruleset = document.get("ruleset", [])
    if not isinstance(ruleset, list):
        raise RuleError("'ruleset' must be a list")

    for i, group in enumerate(ruleset):
        groups.append(ctx.compile_group(group, where=f"ruleset[{i}]"))

    return Transformer(name, when, groups)


def compile_rule_text(text: str, **kwargs: Any) -> Transformer:
    try:
        document = json.loads(text)
    except ValueError as exc:
        raise RuleError(f"Invalid rule JSON: {exc}") from exc

    return compile_rule(document, **kwargs)


def compile_rule_file(path: Union[str, Path], *, home: Optional[Union[str, Path]] = None, **kwargs: Any) -> Transformer:
    path = Path(path)
    reader: JsonReader = kwargs.pop("reader", None) or read_json
    try:
        document = reader(path)
    except (OSError, ValueError) as exc:
        raise RuleError(f"Unable to read {path}: {exc}") from exc

    return compile_rule(document, name=kwargs.pop("name", None) or path.stem, home=home or path.parent, reader=reader, **kwargs)
