from __future__ import annotations

import queue
from typing import Any, Dict, List, Optional, Set

from ..core.exceptions import Interrupted
from ..core.parsers import Parser
from ..core.translators import SourceTypeIndex, Translators
from .event import EOS, Event
from .processor import EventProcessor
from .queue import EventQueue
from .stages import Stage


class EventDemuxer(Stage):
    """
    Routes raw events to one EventProcessor per source type.

    Processors are created on first sight of a source type and all write to the
    shared ``output`` queue. Events that cannot be routed (no source type, no
    parser or translators registered, worker cap reached) go to ``unparsed``,
    which also receives the EOS. On shutdown every spawned processor gets one
    EOS; once they have all drained, a single EOS is put on ``output``.
    """

    def __init__(
        self,
        parsers: SourceTypeIndex[Parser],
        translators: SourceTypeIndex[Translators],
        source: EventQueue,
        output: EventQueue,
        unparsed: Optional[EventQueue] = None,
        **kwargs: Any,
    ) -> None:
        kwargs.setdefault("name", "demux")
        super().__init__(source, unparsed, **kwargs)
        self.parsers = parsers
        self.translators = translators
        self.output = output

        # touched only by the demux thread
        self._queues: Dict[str, EventQueue] = {}
        self._processors: Dict[str, EventProcessor] = {}
        self._rejected: Set[str] = set()

    @property
    def source_types(self) -> List[str]:
        return list(self._processors.keys())

    @property
    def processors(self) -> List[EventProcessor]:
        return list(self._processors.values())

    def queue_for(self, source_type: str) -> Optional[EventQueue]:
        return self._queues.get(source_type)

    def process(self, event: Event) -> Optional[Event]:
        source_type = event.get(self.config.fields.source_type)
        if not source_type or not isinstance(source_type, str):
            self.stats.skipped += 1
            self.engine.count("demux.missing_source_type")
            self.log.warning("Missing source type in: %r", dict(event.data))
            return event

        sink = self._queues.get(source_type)
        if sink is None:
            sink = self._spawn(source_type)
            if sink is None:
                self.stats.skipped += 1
                self.engine.count("demux.unrouted")
                return event

        sink.put(event, self._cancel)
        return None

    def _spawn(self, source_type: str) -> Optional[EventQueue]:
        if source_type in self._rejected:
            self.log.debug("Unroutable source type: %s", source_type)
            return None

        parser = self.parsers.get(source_type)
        translators = self.translators.get(source_type)
        if parser is None or translators is None:
            if parser is None:
                self.log.warning("Missing event parser for source type: %s", source_type)
            if translators is None:
                self.log.warning("Missing event normalizer for source type: %s", source_type)
            self._rejected.add(source_type)
            return None

        cap = self.config.max_workers
        if cap is not None and len(self._processors) >= cap:
            self.log.warning("Worker limit (%d) reached, not routing source type: %s", cap, source_type)
            self._rejected.add(source_type)
            return None

        sink = EventQueue(self.config.queue_capacity, poll_interval=self.config.poll_interval)
        processor = EventProcessor(
            parser, translators, sink, self.output, source_type=source_type, config=self.config,
            engine=self.engine, forward_eos=False)

        processor.start()
        self._queues[source_type] = sink
        self._processors[source_type] = processor
        self.engine.count("demux.spawned")
        self.log.info("Started event processor for source type: %s", source_type)
        return sink

    def terminated(self) -> None:
        if self.interrupted:
            self._abort()
            return

        try:
            for sink in self._queues.values():
                sink.put(EOS, self._cancel)

            for processor in self._processors.values():
                while processor.is_alive():
                    if self.interrupted:
                        raise Interrupted("shutdown interrupted")
                    processor.join(self.config.poll_interval)

            self.output.put(EOS, self._cancel)

        except Interrupted:
            self.log.info("%s: the shutdown sequence has been interrupted", self.name)
            self._abort()

    def _abort(self) -> None:
        """Best-effort EOS delivery after an interrupt; full queues are skipped."""
        timeout = self.config.poll_interval
        for source_type, sink in self._queues.items():
            try:
                sink.put(EOS, timeout=timeout)
            except queue.Full:
                self.log.warning("%s: unable to stop the processor for %s, its queue is full", self.name, source_type)

        try:
            self.output.put(EOS, timeout=timeout)
        except queue.Full:
            self.log.warning("%s: unable to signal end of stream, the output queue is full", self.name)
