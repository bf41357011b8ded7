from .event import EOS, Event
from .queue import EventQueue
from .stages import EventCollector, EventNormalizer, EventParser, Stage, StageState, StageStats
from .processor import EventProcessor
from .demux import EventDemuxer
from .service import EventService, StreamingService

__all__ = [
    "EOS",
    "Event",
    "EventQueue",
    "Stage",
    "StageState",
    "StageStats",
    "EventParser",
    "EventNormalizer",
    "EventCollector",
    "EventProcessor",
    "EventDemuxer",
    "EventService",
    "StreamingService",
]
