from .exceptions import (
    EventNormError,
    RuleError,
    ExpressionSyntaxError,
    PathSyntaxError,
    Interrupted,
    Reason,
    TranslatorError,
)
from .path import PathResolver
from .expression import compile_expression
from .predicates import Predicate
from .engine import Transformer, Instruction, compile_rule, compile_rule_file, compile_rule_text
from .registry import OperationRegistry, register_operation, get_registry
from .translators import Translators, SourceTypeIndex
from .parsers import Parser, RegexParser, PatternParser, BUILTIN_PARSERS
from .loader import RulesLoader, LoadReport, load_rules
from .builder import RuleBuilder, RuleGroupBuilder

__all__ = [
    "EventNormError",
    "RuleError",
    "ExpressionSyntaxError",
    "PathSyntaxError",
    "Interrupted",
    "Reason",
    "TranslatorError",
    "PathResolver",
    "compile_expression",
    "Predicate",
    "Transformer",
    "Instruction",
    "compile_rule",
    "compile_rule_file",
    "compile_rule_text",
    "OperationRegistry",
    "register_operation",
    "get_registry",
    "Translators",
    "SourceTypeIndex",
    "Parser",
    "RegexParser",
    "PatternParser",
    "BUILTIN_PARSERS",
    "RulesLoader",
    "LoadReport",
    "load_rules",
    "RuleBuilder",
    "RuleGroupBuilder",
]
