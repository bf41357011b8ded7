from __future__ import annotations

import base64
import logging
import re
import time
from typing import Any, List, Optional, Union

import pandas as pd

logger = logging.getLogger(__name__)

Number = Union[int, float]

_RELATIVE_TIME = re.compile(r"^([+-]\d+)\s*(ms|s|m|h|d)?$", re.IGNORECASE)
_UNIT_MILLIS = {"ms": 1, "s": 1_000, "m": 60_000, "h": 3_600_000, "d": 86_400_000}
_LINE_BREAK = re.compile(r"(?:\r\n|[\n\r\x0b\x0c\x85\u2028\u2029])+")


def current_millis() -> int:
    return int(time.time() * 1000)


def to_float(x: Any) -> Optional[float]:
    if x is None or isinstance(x, bool):
        return None

    try:
        return float(x)

    except (TypeError, ValueError):
        return None


def to_number(x: Any) -> Optional[Number]:
    """Parse ints (decimal or 0x hex) and floats; anything else is None."""
    if x is None or isinstance(x, bool):
        return None

    if isinstance(x, (int, float)):
        return x

    if not isinstance(x, str):
        return None

    s = x.strip()
    try:
        return int(s)
    except ValueError:
        pass

    if s.lstrip("+-").lower().startswith("0x"):
        try:
            return int(s, 16)
        except ValueError:
            return None

    return to_float(s)


def to_int(x: Any) -> int:
    n = to_number(x)
    if n is None:
        logger.info("Invalid integer value: %r", x)
        return 0

    return int(n)


def to_double(x: Any) -> float:
    n = to_float(x.strip() if isinstance(x, str) else x)
    if n is None:
        logger.info("Invalid floating point value: %r", x)
        return 0.0

    return n


def to_bool(x: Any) -> Optional[bool]:
    if isinstance(x, bool):
        return x

    if isinstance(x, (int, float)):
        return x != 0

    if isinstance(x, str):
        s = x.strip().lower()
        if s in ("true", "yes", "1", "on"):
            return True

        if s in ("false", "no", "0", "off"):
            return False

    return None


def parse_millis(text: str) -> Optional[int]:
    """Parse a date/time string into epoch milliseconds (UTC when no zone is given)."""
    s = text.strip()
    if not s:
        return None

    if s.lstrip("-").isdigit():
        return int(s)

    try:
        ts = pd.to_datetime(s, utc=True, errors="coerce")
    except (ValueError, TypeError, OverflowError):
        return None

    if pd.isna(ts):
        return None

    return int(ts.value // 1_000_000)


def relative_millis(text: str) -> Optional[int]:
    """Offset in milliseconds for relative times such as '+6h', '-2d' or '-40000'."""
    m = _RELATIVE_TIME.match(text.strip())
    if not m:
        return None

    unit = (m.group(2) or "ms").lower()
    return int(m.group(1)) * _UNIT_MILLIS[unit]


def to_epoch_millis(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        return int(value)

    if isinstance(value, str):
        return parse_millis(value)

    return None


def format_iso8601(millis: int) -> str:
    ts = pd.Timestamp(millis, unit="ms", tz="UTC")
    return ts.strftime("%Y-%m-%dT%H:%M:%S.") + f"{ts.microsecond // 1000:03d}Z"


def to_timestamp(value: Any) -> int:
    millis = to_epoch_millis(value)
    if millis is None:
        logger.info("Invalid date/time value: %r", value)
        return current_millis()

    return millis


def to_iso8601(value: Any) -> str:
    return format_iso8601(to_timestamp(value))


def anonymize(value: Any) -> Any:
    if isinstance(value, str):
        return base64.b64encode(value.encode("utf-8")).decode("ascii")

    return None if value is None else hash(value)


def split_values(value: Any, splitter: Optional["re.Pattern[str]"] = None) -> List[Any]:
    """Splits text on the ``splitter`` regex, or on line breaks; blank parts are dropped."""
    if isinstance(value, list):
        return value

    if not isinstance(value, str):
        return [value]

    parts = (splitter or _LINE_BREAK).split(value)
    return [p.strip() for p in parts if p and p.strip()]


def glob_to_regex(pattern: str) -> "re.Pattern[str]":
    """'*' matches any run of characters, '?' a single one; everything else is literal."""
    out: List[str] = []
    for ch in pattern:
        if ch == "*":
            out.append(".*")
        elif ch == "?":
            out.append(".")
        else:
            out.append(re.escape(ch))

    return re.compile("".join(out), re.IGNORECASE | re.DOTALL)
