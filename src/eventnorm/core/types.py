from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from .objects import to_file, to_url
from .utils import anonymize, to_bool, to_double, to_int, to_iso8601, to_timestamp

logger = logging.getLogger(__name__)

FINGERPRINT = "fingerprint"


def _string(v: Any) -> Any:
    if isinstance(v, bool):
        return "true" if v else "false"
    return str(v)


CONVERTERS: Dict[str, Callable[[Any], Any]] = {
    "string": _string,
    "downcase": lambda v: v.lower() if isinstance(v, str) else v,
    "upcase": lambda v: v.upper() if isinstance(v, str) else v,
    "integer": to_int,
    "long": to_int,
    "float": to_double,
    "double": to_double,
    "boolean": to_bool,
    "timestamp": to_timestamp,
    "time": to_iso8601,
    "path": to_file,
    "url": to_url,
    "anonymize": anonymize,
}


def file_type_id(type_name: str) -> Optional[int]:
    """'path:7' -> 7; None when the suffix is not an integer."""
    _, _, suffix = type_name.partition(":")
    try:
        return int(suffix.strip())
    except ValueError:
        return None


def is_known_type(type_name: str) -> bool:
    name = type_name.lower()
    if name in CONVERTERS or name == FINGERPRINT:
        return True

    return name.startswith("path:") and file_type_id(name) is not None


def convert(value: Any, type_name: str) -> Any:
    """Convert value to the named type; unknown types log a warning and keep the value."""
    name = type_name.lower()
    func = CONVERTERS.get(name)
    if func is not None:
        return func(value)

    if name.startswith("path:"):
        type_id = file_type_id(name)
        if type_id is not None:
            return to_file(value, type_id)

        logger.warning("Invalid file type_id: %s", type_name)

    logger.warning("Invalid type: %s", type_name)
    return value


def default_value(value: Any, type_name: Optional[str]) -> Any:
    """Defaults are used verbatim, except time types which are normalized."""
    if type_name is not None and type_name.lower() in ("timestamp", "time"):
        return convert(value, type_name)

    return value
