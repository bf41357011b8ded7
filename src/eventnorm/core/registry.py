from __future__ import annotations
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Set

if TYPE_CHECKING:
    from .engine import CompileContext, Instruction

# compiler(field, args, ctx) -> Instruction
#   field: the rule's source field, e.g. "src_ip" or "user, domain"
#   args:  the operator's JSON arguments, as written in the rule
#   ctx:   compile context, for nested rules, includes and "when" clauses
OperationCompiler = Callable[[str, Any, "CompileContext"], "Instruction"]


class OperationRegistry:
    """
    Maps '@' operator names to their compilers.

    Compilers run once per rule while a document loads; the Instruction they
    return is what runs per event.
    """
    __slots__ = ("_compilers",)

    def __init__(self) -> None:
        self._compilers: Dict[str, OperationCompiler] = {}

    def register(self, op: str, compiler: OperationCompiler) -> None:
        if not isinstance(op, str) or len(op) < 2 or not op.startswith("@"):
            raise ValueError(f"Operator names start with '@', got {op!r}")

        self._compilers[op] = compiler

    def __contains__(self, op: object) -> bool:
        return op in self._compilers

    def operators_in(self, spec: Dict[str, Any]) -> List[str]:
        """Registered operators named by a rule, in rule order."""
        return [k for k in spec if k in self._compilers]

    def compile(self, op: str, field: str, args: Any, ctx: "CompileContext") -> "Instruction":
        return self._compilers[op](field, args, ctx)

    @property
    def op_keys(self) -> Set[str]:
        return set(self._compilers)


_registry: Optional[OperationRegistry] = None


def get_registry() -> OperationRegistry:
    """The shared registry, holding the built-in operators."""
    global _registry
    if _registry is None:
        _registry = OperationRegistry()
        from .ops import builtin  # noqa: F401

    return _registry


def register_operation(op: str, compiler: OperationCompiler) -> None:
    get_registry().register(op, compiler)
