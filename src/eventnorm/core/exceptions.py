from enum import Enum
from typing import Optional


class EventNormError(Exception):
    """Base exception for all eventnorm errors."""


class RuleError(EventNormError, ValueError):
    """Raised when a rule document cannot be compiled or loaded."""


class ExpressionSyntaxError(RuleError):
    """Raised when a 'when' expression cannot be parsed."""

    def __init__(self, message: str, text: str = "", position: int = -1) -> None:
        if position >= 0:
            message = f"{message} at position {position}: {text!r}"
        super().__init__(message)
        self.text = text
        self.position = position


class PathSyntaxError(EventNormError, ValueError):
    """Raised for empty or malformed field paths."""


class Interrupted(EventNormError):
    """Raised inside a stage when it is cancelled while blocked on a queue."""


class Reason(str, Enum):
    MISSING_SOURCE_TYPE = "MissingSourceType"
    MISSING_RAW_DATA = "MissingRawData"
    NO_PARSER = "NoParser"
    NO_TRANSLATOR = "NoTranslator"
    PARSER_ERROR = "ParserError"
    TRANSLATOR_ERROR = "TranslatorError"
    UNSUPPORTED_EVENT = "UnsupportedEvent"


class TranslatorError(EventNormError):
    """Raised by the blocking EventService; ``reason`` classifies the failure."""
    reason: Reason

    def __init__(self, message: str, source_type: Optional[str] = None) -> None:
        super().__init__(message)
        self.source_type = source_type

    def __str__(self) -> str:
        return f"{self.reason.value}: {super().__str__()}"


class MissingSourceTypeError(TranslatorError):
    reason = Reason.MISSING_SOURCE_TYPE


class MissingRawDataError(TranslatorError):
    reason = Reason.MISSING_RAW_DATA


class NoParserError(TranslatorError):
    reason = Reason.NO_PARSER


class NoTranslatorError(TranslatorError):
    reason = Reason.NO_TRANSLATOR


class ParserFailedError(TranslatorError):
    reason = Reason.PARSER_ERROR


class TranslationFailedError(TranslatorError):
    reason = Reason.TRANSLATOR_ERROR


class UnsupportedEventError(TranslatorError):
    reason = Reason.UNSUPPORTED_EVENT
