from __future__ import annotations

import logging
import uuid
from typing import Any, Callable, Dict, Generic, Iterator, List, Optional, Tuple, TypeVar

from .engine import Transformer
from .exceptions import RuleError
from .path import PathResolver

logger = logging.getLogger(__name__)

Data = Dict[str, Any]
T = TypeVar("T")

UID_PATH = "metadata.uid"


class Translators:
    """
    Ordered collection of named transformers for one source type, plus one default.

    ``translate`` tries the named transformers in registration order and
    returns the first result; only when none applies does the default run.
    Built single-threaded at load time, read-only afterwards.
    """

    def __init__(
        self,
        source_type: str = "",
        *,
        strict_defaults: bool = False,
        uid_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ) -> None:
        self.source_type = source_type
        self.strict_defaults = strict_defaults
        self._named: Dict[str, Transformer] = {}
        self._default: Optional[Transformer] = None
        self._uid_factory = uid_factory

    def add(self, transformer: Transformer) -> "Translators":
        if transformer.is_default:
            if self._default is not None:
                if self.strict_defaults:
                    raise RuleError(
                        f"Duplicate default transformer {transformer.name!r} for {self.source_type!r}, "
                        f"{self._default.name!r} is already registered")

                logger.warning(
                    "Replacing default transformer %r with %r for %r",
                    self._default.name, transformer.name, self.source_type)

            self._default = transformer
            return self

        if transformer.name in self._named:
            logger.warning("Overwriting transformer %r for %r", transformer.name, self.source_type)

        self._named[transformer.name] = transformer
        return self

    @property
    def default(self) -> Optional[Transformer]:
        return self._default

    @property
    def names(self) -> List[str]:
        return list(self._named.keys())

    def __len__(self) -> int:
        return len(self._named) + (1 if self._default is not None else 0)

    def __iter__(self) -> Iterator[Transformer]:
        yield from self._named.values()
        if self._default is not None:
            yield self._default

    def get(self, name: str) -> Optional[Transformer]:
        if self._default is not None and self._default.name == name:
            return self._default

        return self._named.get(name)

    def translate(self, data: Data) -> Optional[Data]:
        """Translate with the first matching transformer; None means unsupported."""
        for transformer in self._named.values():
            translated = transformer.apply(data)
            if translated is not None:
                return self._stamp(translated)

        if self._default is not None:
            translated = self._default.apply(data)
            if translated is not None:
                return self._stamp(translated)

        return None

    def translate_with(self, name: str, data: Data) -> Optional[Data]:
        transformer = self.get(name)
        if transformer is None:
            raise KeyError(name)

        translated = transformer.apply(data)
        return None if translated is None else self._stamp(translated)

    def _stamp(self, translated: Data) -> Data:
        PathResolver.put(translated, UID_PATH, self._uid_factory())
        return translated

    def __repr__(self) -> str:
        return f"Translators({self.source_type!r}, named={self.names}, default={self._default is not None})"


class SourceTypeIndex(Generic[T]):
    """
    Source type -> value lookup: an exact match first, then the first
    registered trailing-wildcard key ("cisco:*") whose prefix matches.
    """

    def __init__(self, entries: Optional[Dict[str, T]] = None) -> None:
        self._exact: Dict[str, T] = {}
        self._prefixes: List[Tuple[str, T]] = []
        for key, value in (entries or {}).items():
            self.register(key, value)

    def register(self, source_type: str, value: T) -> None:
        if not source_type or not isinstance(source_type, str):
            raise ValueError("source_type must be a non-empty string.")

        if source_type.endswith("*"):
            prefix = source_type[:-1]
            self._prefixes = [(p, v) for p, v in self._prefixes if p != prefix]
            self._prefixes.append((prefix, value))
        else:
            self._exact[source_type] = value

    def get(self, source_type: Optional[str]) -> Optional[T]:
        if not source_type or not isinstance(source_type, str):
            return None

        found = self._exact.get(source_type)
        if found is not None:
            return found

        for prefix, value in self._prefixes:
            if source_type.startswith(prefix):
                return value

        return None

    def __contains__(self, source_type: object) -> bool:
        return isinstance(source_type, str) and self.get(source_type) is not None

    def keys(self) -> List[str]:
        return list(self._exact.keys()) + [p + "*" for p, _ in self._prefixes]

    def __len__(self) -> int:
        return len(self._exact) + len(self._prefixes)
