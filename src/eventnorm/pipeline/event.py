from __future__ import annotations

import copy
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional


class Event:
    """
    Immutable wrapper around one event's data.

    The top-level mapping is read-only; nested values are owned by whichever
    stage currently holds the event, so stages that need to mutate take a copy
    (``to_dict``). ``EOS`` is the single end-of-stream marker, compared by identity.
    """
    __slots__ = ("_data",)

    def __init__(self, data: Optional[Mapping[str, Any]] = None) -> None:
        self._data: Mapping[str, Any] = MappingProxyType(dict(data or {}))

    @staticmethod
    def eos() -> "Event":
        return EOS

    @property
    def is_eos(self) -> bool:
        return self is EOS

    @property
    def data(self) -> Mapping[str, Any]:
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def to_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(dict(self._data))

    def __repr__(self) -> str:
        return "Event(EOS)" if self is EOS else f"Event({dict(self._data)!r})"


EOS = Event()
