from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Set, Union

from .engine import INCLUDE, MERGE_FIELD, compile_rule
from .exceptions import RuleError

logger = logging.getLogger(__name__)

KNOWN_OPTIONS: Dict[str, Set[str]] = {
    "@value": {"value", "overwrite", "when"},
    "@move": {"name", "type", "separator", "splitter", "default", "overwrite", "is_array", "when"},
    "@copy": {"name", "type", "separator", "splitter", "default", "overwrite", "is_array", "when"},
    "@clone": {"name", "overwrite", "when"},
    "@remove": {"when"},
    "@enum": {"name", "values", "default", "other", "overwrite", "when"},
    "@lookup": {"name", "values", "default", "other", "overwrite", "when"},
}

DOCUMENT_KEYS = {"name", "description", "when", "parser", "parsers", "rules", "ruleset"}


def is_rule_valid(document: Dict[str, Any], **kwargs: Any) -> bool:
    try:
        compile_rule(document, **kwargs)
        return True
    except RuleError as err:
        logger.warning("Invalid rule: %s", err)
        return False


def validate_with_warnings(document: Dict[str, Any], **kwargs: Any) -> Dict[str, Any]:
    out: Dict[str, Any] = {"ok": False, "errors": [], "warnings": []}

    try:
        compile_rule(document, **kwargs)
    except RuleError as e:
        out["errors"].append(str(e))
        return out

    warnings: List[str] = out["warnings"]
    for key in document:
        if key not in DOCUMENT_KEYS:
            warnings.append(f"Unknown key at $: {key!r}")

    if not document.get("rules") and not document.get("ruleset"):
        warnings.append("Document has no rules")

    def walk(rules: Any, path: str) -> None:
        for i, entry in enumerate(rules or []):
            if not isinstance(entry, dict) or INCLUDE in entry:
                continue

            for field, spec in entry.items():
                at = f"{path}[{i}].{field}"
                if isinstance(spec, list):
                    walk(spec, at)
                    continue

                if field == MERGE_FIELD or not isinstance(spec, dict):
                    continue

                for op, args in spec.items():
                    if not isinstance(args, dict):
                        continue

                    unknown = sorted(set(args) - KNOWN_OPTIONS.get(op, set(args)))
                    if unknown:
                        warnings.append(f"Unknown option(s) for {op} at {at}: {unknown}")

                    if op in ("@enum", "@lookup") and "default" not in args and "other" not in args:
                        warnings.append(f"{op} at {at} has neither 'default' nor 'other'; unmapped values are dropped")

    walk(document.get("rules"), "$.rules")
    for g, group in enumerate(document.get("ruleset") or []):
        walk(group.get("rules"), f"$.ruleset[{g}].rules")

    out["ok"] = True
    return out


def dry_run(document: Dict[str, Any], sample: Union[Dict[str, Any], List[Dict[str, Any]]], **kwargs: Any) -> Dict[str, Any]:
    try:
        transformer = compile_rule(document, **kwargs)
    except RuleError as e:
        return {"ok": False, "stage": "structure", "error": str(e)}

    records = sample if isinstance(sample, list) else [sample]
    results: List[Optional[Dict[str, Any]]] = []
    try:
        for record in records:
            results.append(transformer.apply(record))
    except Exception as e:
        return {"ok": False, "stage": "evaluation", "error": repr(e)}

    return {
        "ok": True,
        "default": transformer.is_default,
        "matched": sum(1 for r in results if r is not None),
        "results": results,
    }
