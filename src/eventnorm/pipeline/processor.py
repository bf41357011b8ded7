from __future__ import annotations

from typing import List, Optional

from ..config import EngineConfig, PipelineConfig
from ..core.parsers import Parser
from ..core.translators import Translators
from .queue import EventQueue
from .stages import EventNormalizer, EventParser, Stage


class EventProcessor:
    """An EventParser feeding an EventNormalizer through a small hand-off queue."""

    def __init__(
        self,
        parser: Parser,
        translators: Translators,
        source: EventQueue,
        sink: EventQueue,
        *,
        source_type: Optional[str] = None,
        config: Optional[PipelineConfig] = None,
        engine: Optional[EngineConfig] = None,
        forward_eos: bool = True,
    ) -> None:
        config = config or PipelineConfig()
        label = source_type or translators.source_type

        self.source_type = label
        self.handoff = EventQueue(config.handoff_capacity, poll_interval=config.poll_interval)
        self.parser = EventParser(
            source, self.handoff, parser, name=f"parser[{label}]", config=config, engine=engine)
        self.normalizer = EventNormalizer(
            self.handoff, sink, translators, name=f"normalizer[{label}]", config=config, engine=engine,
            forward_eos=forward_eos)

    @property
    def stages(self) -> List[Stage]:
        return [self.parser, self.normalizer]

    def start(self) -> "EventProcessor":
        self.normalizer.start()
        self.parser.start()
        return self

    def interrupt(self) -> None:
        for stage in self.stages:
            stage.interrupt()

    def is_alive(self) -> bool:
        return any(stage.is_alive() for stage in self.stages)

    def join(self, timeout: Optional[float] = None) -> bool:
        """Waits for both threads; ``timeout`` applies to each in turn."""
        return all([stage.join(timeout) for stage in self.stages])

    def __repr__(self) -> str:
        return f"EventProcessor({self.source_type!r}, {self.parser.state.value}/{self.normalizer.state.value})"
