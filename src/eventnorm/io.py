from __future__ import annotations

import json
import logging
from collections import Counter
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Union

import pandas as pd

from .pipeline.service import EventService

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def read_jsonl(path: PathLike) -> Iterator[Dict[str, Any]]:
    """One JSON object per line; blank lines are skipped, anything else that is not an object is an error."""
    with open(path, "r", encoding="utf-8") as fin:
        for lineno, line in enumerate(fin, 1):
            line = line.strip()
            if not line:
                continue

            data = json.loads(line)
            if not isinstance(data, dict):
                raise ValueError(f"{path}:{lineno}: expected a JSON object, got {type(data).__name__}")
            yield data


def write_jsonl(events: Iterable[Dict[str, Any]], path: PathLike) -> int:
    count = 0
    with open(path, "w", encoding="utf-8") as fout:
        for event in events:
            fout.write(json.dumps(event, ensure_ascii=False, default=str))
            fout.write("\n")
            count += 1
    return count


def stream_jsonl(
    service: EventService,
    in_path: PathLike,
    out_path: PathLike,
    *,
    unparsed_path: Optional[PathLike] = None,
) -> Dict[str, int]:
    """
    Translates raw events from ``in_path`` into ``out_path``, one blocking call per line.

    Returns counters keyed by "translated" and by failure reason. Failed events
    are written unchanged to ``unparsed_path`` when given.
    """
    counters: Counter = Counter()
    unparsed = open(unparsed_path, "w", encoding="utf-8") if unparsed_path is not None else None
    try:
        with open(out_path, "w", encoding="utf-8") as fout:
            for data in read_jsonl(in_path):
                translated, error = service.try_process(data)
                if error is None:
                    fout.write(json.dumps(translated, ensure_ascii=False, default=str))
                    fout.write("\n")
                    counters["translated"] += 1
                    continue

                counters[error.reason.value] += 1
                logger.debug("Event not translated: %s", error)
                if unparsed is not None:
                    unparsed.write(json.dumps(data, ensure_ascii=False, default=str))
                    unparsed.write("\n")
    finally:
        if unparsed is not None:
            unparsed.close()

    logger.info("Processed %s: %s", in_path, dict(counters))
    return dict(counters)


def to_dataframe(events: Iterable[Dict[str, Any]], *, sep: str = ".") -> pd.DataFrame:
    """Flattens translated events into columns named by their dotted paths."""
    rows: List[Dict[str, Any]] = list(events)
    if not rows:
        return pd.DataFrame()
    return pd.json_normalize(rows, sep=sep)


def write_csv(events: Iterable[Dict[str, Any]], path: PathLike, *, sep: str = ".") -> int:
    df = to_dataframe(events, sep=sep)
    df.to_csv(path, index=False)
    return len(df)
