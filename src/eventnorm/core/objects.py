from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

import httpx

logger = logging.getLogger(__name__)

OTHER_ID = 99

# hex digest length -> fingerprint algorithm_id
FINGERPRINT_ALGORITHMS = {
    32: 1,   # MD5
    40: 2,   # SHA-1
    64: 3,   # SHA-256
    128: 4,  # SHA-512
}

_DEFAULT_PORTS = {"http": 80, "https": 443, "ftp": 21, "ws": 80, "wss": 443, "ldap": 389, "ldaps": 636}


def split_file_path(path: str) -> Tuple[Optional[str], Optional[str]]:
    """Split into (parent_folder, name) on the last '/' or, failing that, the last '\\'."""
    if not path:
        return None, None

    pos = path.rfind("/")
    if pos < 0:
        pos = path.rfind("\\")
    if pos < 0:
        return None, path

    if pos == 0:
        # root, or a file directly under it
        return (None, path) if len(path) == 1 else (path[:1], path[1:])

    if pos + 1 == len(path):
        return split_file_path(path[:pos])

    return path[:pos], path[pos + 1:]


def to_file(value: Any, type_id: int = 1) -> Dict[str, Any]:
    path = str(value).strip()
    if not path:
        return {"name": "", "path": "", "type_id": type_id}

    parent, name = split_file_path(path)
    obj: Dict[str, Any] = {}
    if parent is not None:
        obj["parent_folder"] = parent
    obj["name"] = name
    obj["path"] = path
    obj["type_id"] = type_id
    return obj


def to_fingerprint(value: Any) -> Optional[Dict[str, Any]]:
    if value is None:
        return None

    text = str(value)
    fingerprint: Dict[str, Any] = {}
    algorithm_id = FINGERPRINT_ALGORITHMS.get(len(text))
    if algorithm_id is None:
        algorithm_id = OTHER_ID
        fingerprint["algorithm"] = text

    fingerprint["algorithm_id"] = algorithm_id
    fingerprint["value"] = text
    return fingerprint


def to_url(value: Any) -> Dict[str, Any]:
    text = str(value).strip()
    if not text:
        return {"text": "", "scheme": "", "hostname": ""}

    try:
        url = httpx.URL(text)
    except httpx.InvalidURL as exc:
        logger.warning("Invalid URL string %r: %s", text, exc)
        return {"text": text}

    if not url.scheme or not url.host:
        logger.warning("Invalid URL string %r: missing scheme or host", text)
        return {"text": text}

    obj: Dict[str, Any] = {
        "text": text,
        "scheme": url.scheme,
        "hostname": url.host,
        "port": url.port or _DEFAULT_PORTS.get(url.scheme, -1),
        "path": url.path,
    }
    query = url.query.decode("ascii", errors="replace")
    if query:
        obj["query_string"] = query

    return obj
