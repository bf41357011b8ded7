from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from pydantic import BaseModel, ConfigDict, Field


class FieldNames(BaseModel):
    """Names of the raw-event fields read by the pipeline and of the fields it stamps on parsed events."""
    model_config = ConfigDict(frozen=True)

    source_type: str = "sourceType"
    raw_event: str = "rawEvent"
    tenant: str = "tenant"

    customer_uid: str = "customer_uid"
    parsed_source_type: str = "source_type"


class PipelineConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    queue_capacity: int = Field(default=8, ge=1)
    handoff_capacity: int = Field(default=2, ge=1)
    max_workers: Optional[int] = Field(default=None, ge=1)
    poll_interval: float = Field(default=0.1, gt=0)
    fields: FieldNames = Field(default_factory=FieldNames)


class SourceMetadata(BaseModel):
    """Contents of a rules directory's ``.metadata`` file."""
    model_config = ConfigDict(extra="allow")

    type: str = Field(min_length=1)


@dataclass
class EngineConfig:
    strict_defaults: bool = False

    logger: Optional[logging.Logger] = None
    metrics_increment: Optional[Callable[[str, int], None]] = None

    def log(self, default: logging.Logger) -> logging.Logger:
        return self.logger or default

    def count(self, name: str, value: int = 1) -> None:
        if self.metrics_increment is not None:
            self.metrics_increment(name, value)
