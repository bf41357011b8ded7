from .config import EngineConfig, FieldNames, PipelineConfig
from .core import (
    EventNormError,
    RuleError,
    TranslatorError,
    Reason,
    Transformer,
    Translators,
    SourceTypeIndex,
    RuleBuilder,
    RuleGroupBuilder,
    compile_rule,
    compile_rule_file,
    compile_expression,
    load_rules,
    RulesLoader,
)
from .pipeline import EventService, StreamingService, EventDemuxer, EventProcessor, EventQueue, Event, EOS

__version__ = "0.1.0"

__all__ = [
    "EngineConfig",
    "FieldNames",
    "PipelineConfig",
    "EventNormError",
    "RuleError",
    "TranslatorError",
    "Reason",
    "Transformer",
    "Translators",
    "SourceTypeIndex",
    "RuleBuilder",
    "RuleGroupBuilder",
    "compile_rule",
    "compile_rule_file",
    "compile_expression",
    "load_rules",
    "RulesLoader",
    "EventService",
    "StreamingService",
    "EventDemuxer",
    "EventProcessor",
    "EventQueue",
    "Event",
    "EOS",
]
