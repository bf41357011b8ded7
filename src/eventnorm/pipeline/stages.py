from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from ..config import EngineConfig, FieldNames, PipelineConfig
from ..core.exceptions import Interrupted
from ..core.parsers import Parser
from ..core.translators import Translators
from .event import Event
from .queue import EventQueue

logger = logging.getLogger(__name__)


class StageState(str, Enum):
    NEW = "new"
    RUNNING = "running"
    DRAINING = "draining"
    TERMINATED = "terminated"


@dataclass
class StageStats:
    received: int = 0
    forwarded: int = 0
    skipped: int = 0
    failed: int = 0


def raw_text(value: Any) -> Optional[str]:
    """The raw payload as text; None or '' means there is nothing to parse."""
    if value is None:
        return None
    if isinstance(value, str):
        return value or None
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def stamp_context(parsed: Dict[str, Any], raw: Mapping[str, Any], fields: FieldNames) -> Dict[str, Any]:
    """Copies the tenant and the declared source type of the raw event into the parsed map."""
    tenant = raw.get(fields.tenant)
    if tenant is not None:
        parsed[fields.customer_uid] = tenant

    source_type = raw.get(fields.source_type)
    if source_type is not None:
        parsed[fields.parsed_source_type] = source_type

    return parsed


class Stage:
    """
    One thread of control reading from ``source`` and writing to ``sink``.

    Running -> Draining (EOS seen, or interrupted) -> Terminated. Subclasses
    implement ``process``; a None result drops the event. A failure on one
    event never stops the stage: only ``interrupt`` does, and then only at the
    next blocking queue operation. The cancellation flag stays set afterwards.
    """

    def __init__(
        self,
        source: EventQueue,
        sink: Optional[EventQueue],
        *,
        name: Optional[str] = None,
        config: Optional[PipelineConfig] = None,
        engine: Optional[EngineConfig] = None,
        forward_eos: bool = True,
    ) -> None:
        self.source = source
        self.sink = sink
        self.name = name or type(self).__name__
        self.config = config or PipelineConfig()
        self.engine = engine or EngineConfig()
        self.forward_eos = forward_eos

        self.state = StageState.NEW
        self.stats = StageStats()
        self._cancel = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def log(self) -> logging.Logger:
        return self.engine.log(logger)

    def start(self) -> "Stage":
        if self._thread is not None:
            raise RuntimeError(f"{self.name} already started")

        self._thread = threading.Thread(target=self.run, name=self.name, daemon=True)
        self._thread.start()
        return self

    def interrupt(self) -> None:
        self._cancel.set()

    @property
    def interrupted(self) -> bool:
        return self._cancel.is_set()

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def join(self, timeout: Optional[float] = None) -> bool:
        """True when the stage thread has finished (or was never started)."""
        if self._thread is not None:
            self._thread.join(timeout)
        return not self.is_alive()

    def process(self, event: Event) -> Optional[Event]:
        raise NotImplementedError

    def emit(self, event: Event) -> None:
        if self.sink is not None:
            self.sink.put(event, self._cancel)

    def terminated(self) -> None:
        """Shutdown hook, runs once when the loop ends for any reason."""

    def run(self) -> None:
        self.state = StageState.RUNNING
        self.log.info("%s thread started", self.name)
        try:
            while True:
                event = self.source.take(self._cancel)
                if event.is_eos:
                    self.state = StageState.DRAINING
                    if self.forward_eos:
                        self.emit(event)
                    break

                self.stats.received += 1
                try:
                    result = self.process(event)
                except Interrupted:
                    raise
                except Exception as exc:
                    self.stats.failed += 1
                    self.log.warning("%s: dropping event after error: %s", self.name, exc, exc_info=True)
                    continue

                if result is not None:
                    self.emit(result)
                    self.stats.forwarded += 1

        except Interrupted:
            self.state = StageState.DRAINING
            self.log.info("%s thread interrupted, %d events left in the queue", self.name, self.source.qsize())

        finally:
            self.terminated()
            self.state = StageState.TERMINATED
            self.log.info("%s thread terminated", self.name)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r}, {self.state.value})"


class EventParser(Stage):
    """Parses the raw text of each event and stamps the context fields on the result."""

    def __init__(self, source: EventQueue, sink: Optional[EventQueue], parser: Parser, **kwargs: Any) -> None:
        kwargs.setdefault("name", f"parser[{getattr(parser, '__name__', type(parser).__name__)}]")
        super().__init__(source, sink, **kwargs)
        self.parser = parser

    def process(self, event: Event) -> Optional[Event]:
        fields = self.config.fields
        raw = raw_text(event.get(fields.raw_event))
        if raw is None:
            self.stats.skipped += 1
            self.engine.count("parser.skipped")
            return None

        try:
            parsed = self.parser(raw)
        except Exception as exc:
            self.stats.failed += 1
            self.engine.count("parser.failed")
            self.log.warning("%s: unable to parse event %r: %s", self.name, raw, exc)
            return None

        if parsed is None:
            self.stats.failed += 1
            self.engine.count("parser.failed")
            self.log.warning("%s: unsupported event format: %r", self.name, raw)
            return None

        return Event(stamp_context(dict(parsed), event.data, fields))


class EventNormalizer(Stage):
    """Translates parsed events; untranslatable ones are logged and dropped."""

    def __init__(self, source: EventQueue, sink: Optional[EventQueue], translators: Translators, **kwargs: Any) -> None:
        kwargs.setdefault("name", f"normalizer[{translators.source_type}]")
        super().__init__(source, sink, **kwargs)
        self.translators = translators

    def process(self, event: Event) -> Optional[Event]:
        try:
            translated = self.translators.translate(dict(event.data))
        except Exception as exc:
            self.stats.failed += 1
            self.engine.count("translator.failed")
            self.log.warning("%s: unable to translate event %r: %s", self.name, dict(event.data), exc)
            return None

        if translated is None:
            self.stats.skipped += 1
            self.engine.count("translator.unsupported")
            self.log.warning("%s: no rule matches event %r", self.name, dict(event.data))
            return None

        return Event(translated)


class EventCollector(Stage):
    """Terminal stage handing every event to a callback."""

    def __init__(self, source: EventQueue, callback, **kwargs: Any) -> None:
        super().__init__(source, None, **kwargs)
        self.callback = callback

    def process(self, event: Event) -> Optional[Event]:
        self.callback(event.to_dict())
        return None
