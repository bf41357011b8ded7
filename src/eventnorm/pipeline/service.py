from __future__ import annotations

import threading
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Iterator, Mapping, Optional, Tuple, TypeVar, Union

from ..config import EngineConfig, PipelineConfig
from ..core.exceptions import (
    MissingRawDataError,
    MissingSourceTypeError,
    NoParserError,
    NoTranslatorError,
    ParserFailedError,
    TranslationFailedError,
    TranslatorError,
    UnsupportedEventError,
)
from ..core.loader import load_rules
from ..core.parsers import Parser
from ..core.translators import SourceTypeIndex, Translators
from .demux import EventDemuxer
from .event import EOS, Event
from .queue import EventQueue
from .stages import EventCollector, raw_text, stamp_context

T = TypeVar("T")
Data = Dict[str, Any]


def as_index(entries: Union[SourceTypeIndex[T], Mapping[str, T], None]) -> SourceTypeIndex[T]:
    if isinstance(entries, SourceTypeIndex):
        return entries
    return SourceTypeIndex(dict(entries or {}))


class EventService:
    """
    Parses and translates one event per blocking call.

    Every failure is raised as a TranslatorError subclass whose ``reason``
    names the step that failed, so callers can dispatch without matching messages.
    """

    def __init__(
        self,
        parsers: Union[SourceTypeIndex[Parser], Mapping[str, Parser]],
        translators: Union[SourceTypeIndex[Translators], Mapping[str, Translators]],
        *,
        config: Optional[PipelineConfig] = None,
        engine: Optional[EngineConfig] = None,
    ) -> None:
        self.parsers = as_index(parsers)
        self.translators = as_index(translators)
        self.config = config or PipelineConfig()
        self.engine = engine or EngineConfig()

    @classmethod
    def from_rules(
        cls,
        home: Union[str, Path],
        parsers: Union[SourceTypeIndex[Parser], Mapping[str, Parser]],
        *,
        config: Optional[PipelineConfig] = None,
        engine: Optional[EngineConfig] = None,
        strict: bool = False,
    ) -> "EventService":
        translators = load_rules(home, config=engine, strict=strict)
        return cls(parsers, translators, config=config, engine=engine)

    def _fail(self, error: TranslatorError) -> TranslatorError:
        self.engine.count(f"service.{error.reason.value}")
        return error

    def process(self, data: Mapping[str, Any]) -> Data:
        fields = self.config.fields

        source_type = data.get(fields.source_type)
        if not source_type or not isinstance(source_type, str):
            raise self._fail(MissingSourceTypeError(f"missing field {fields.source_type!r}"))

        parser = self.parsers.get(source_type)
        if parser is None:
            raise self._fail(NoParserError(f"no parser for {source_type!r}", source_type))

        translators = self.translators.get(source_type)
        if translators is None:
            raise self._fail(NoTranslatorError(f"no translators for {source_type!r}", source_type))

        raw = raw_text(data.get(fields.raw_event))
        if raw is None:
            raise self._fail(MissingRawDataError(f"missing field {fields.raw_event!r}", source_type))

        try:
            parsed = parser(raw)
        except Exception as exc:
            raise self._fail(ParserFailedError(f"unable to parse: {exc}", source_type)) from exc

        if parsed is None:
            raise self._fail(UnsupportedEventError("unsupported event format", source_type))

        parsed = stamp_context(dict(parsed), data, fields)
        try:
            translated = translators.translate(parsed)
        except Exception as exc:
            raise self._fail(TranslationFailedError(f"unable to translate: {exc}", source_type)) from exc

        if translated is None:
            raise self._fail(UnsupportedEventError("no rule matches the event", source_type))

        self.engine.count("service.translated")
        return translated

    def try_process(self, data: Mapping[str, Any]) -> Tuple[Optional[Data], Optional[TranslatorError]]:
        try:
            return self.process(data), None
        except TranslatorError as exc:
            return None, exc


class StreamingService:
    """
    Runs the threaded pipeline: ``submit`` raw events, ``close`` to signal
    the end of the stream, and iterate ``results`` for translated events.

    Output order is preserved per source type only. Events that cannot be
    routed are passed to ``on_unparsed`` when given, and dropped otherwise.
    """

    def __init__(
        self,
        parsers: Union[SourceTypeIndex[Parser], Mapping[str, Parser]],
        translators: Union[SourceTypeIndex[Translators], Mapping[str, Translators]],
        *,
        config: Optional[PipelineConfig] = None,
        engine: Optional[EngineConfig] = None,
        on_unparsed: Optional[Callable[[Data], None]] = None,
    ) -> None:
        self.config = config or PipelineConfig()
        self.engine = engine or EngineConfig()

        capacity, poll = self.config.queue_capacity, self.config.poll_interval
        self.input = EventQueue(capacity, poll_interval=poll)
        self.output = EventQueue(capacity, poll_interval=poll)
        self.unparsed = EventQueue(capacity, poll_interval=poll) if on_unparsed is not None else None

        self.demuxer = EventDemuxer(
            as_index(parsers), as_index(translators), self.input, self.output, self.unparsed,
            config=self.config, engine=self.engine)
        self.collector = None
        if self.unparsed is not None:
            self.collector = EventCollector(
                self.unparsed, on_unparsed, name="unparsed", config=self.config, engine=self.engine)

        self._started = False
        self._closed = False

    def start(self) -> "StreamingService":
        if not self._started:
            self._started = True
            if self.collector is not None:
                self.collector.start()
            self.demuxer.start()
        return self

    def submit(self, data: Mapping[str, Any]) -> None:
        if self._closed:
            raise RuntimeError("stream is closed")
        self.input.put(Event(data))

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self.input.put(EOS)

    def results(self) -> Iterator[Data]:
        """Translated events until the end of the stream."""
        while True:
            event = self.output.take()
            if event.is_eos:
                return
            yield event.to_dict()

    def stream(self, events: Iterable[Mapping[str, Any]]) -> Iterator[Data]:
        """Feeds ``events`` from a helper thread and yields the translated ones."""
        errors = []

        def feed() -> None:
            try:
                for data in events:
                    self.submit(data)
            except Exception as exc:
                errors.append(exc)
            finally:
                self.close()

        self.start()
        feeder = threading.Thread(target=feed, name="feeder", daemon=True)
        feeder.start()

        yield from self.results()
        feeder.join()
        if errors:
            raise errors[0]

    def join(self, timeout: Optional[float] = None) -> bool:
        done = self.demuxer.join(timeout)
        if self.collector is not None:
            done = self.collector.join(timeout) and done
        return done

    def interrupt(self) -> None:
        self.demuxer.interrupt()
        for processor in self.demuxer.processors:
            processor.interrupt()
        if self.collector is not None:
            self.collector.interrupt()
