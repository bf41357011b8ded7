from __future__ import annotations
from typing import Any, Dict, List, Optional, Sequence, Union

from .exceptions import PathSyntaxError

Path = Union[str, Sequence[str]]


class PathResolver:
    """
    Resolve dotted paths into nested dict/list structures.

    A path is either a dotted string ("actor.user.name") or a sequence of
    segments. Lists met on the way are traversed implicitly: the rest of
    the path applies to every dict element of the list.

    A dotted string that exists as a literal key wins over nested lookup,
    so keys such as "http.status" emitted by some parsers stay reachable.

    Examples:
      get({"a": {"b": 1}}, "a.b")                 -> 1
      get({"a": [{"b": 1}, {"b": 2}]}, "a.b")     -> [1, 2]
      get({"a.b": 3}, "a.b")                      -> 3
    """

    @staticmethod
    def split(path: Path) -> List[str]:
        if isinstance(path, str):
            segments = path.split(".")
        else:
            segments = list(path)

        if not segments or any(not isinstance(s, str) or not s for s in segments):
            raise PathSyntaxError(f"Malformed path: {path!r}")

        return segments

    @classmethod
    def get(cls, obj: Any, path: Optional[Path]) -> Any:
        if path is None:
            return None

        if isinstance(path, str) and isinstance(obj, dict) and path in obj:
            return obj[path]

        cur = obj
        for seg in cls.split(path):
            if cur is None:
                return None

            if isinstance(cur, list):
                mapped: List[Any] = []
                for el in cur:
                    res = el.get(seg) if isinstance(el, dict) else None
                    if isinstance(res, list):
                        mapped.extend(res)
                    elif res is not None:
                        mapped.append(res)
                cur = mapped or None
                continue

            if not isinstance(cur, dict):
                return None

            cur = cur.get(seg)

        return cur

    @classmethod
    def put(cls, obj: Any, path: Path, value: Any, *, overwrite: bool = True) -> bool:
        """Write value at path, creating intermediate dicts. Returns True when something was written."""
        if value is None:
            return False

        return cls._put(obj, cls.split(path), value, overwrite)

    @classmethod
    def _put(cls, node: Any, segments: List[str], value: Any, overwrite: bool) -> bool:
        if isinstance(node, list):
            applied = False
            for el in node:
                if isinstance(el, dict):
                    applied = cls._put(el, segments, value, overwrite) or applied
            return applied

        if not isinstance(node, dict):
            return False

        key, rest = segments[0], segments[1:]
        if not rest:
            if not overwrite and node.get(key) is not None:
                return False

            node[key] = value
            return True

        child = node.get(key)
        if child is None:
            child = {}
            node[key] = child

        elif not isinstance(child, (dict, list)):
            if not overwrite:
                return False

            child = {}
            node[key] = child

        return cls._put(child, rest, value, overwrite)

    @classmethod
    def remove(cls, obj: Any, path: Path) -> Any:
        """Delete the value at path and return it (None if nothing was there)."""
        if isinstance(path, str) and isinstance(obj, dict) and path in obj:
            return obj.pop(path)

        return cls._remove(obj, cls.split(path))

    @classmethod
    def _remove(cls, node: Any, segments: List[str]) -> Any:
        if isinstance(node, list):
            removed = [cls._remove(el, segments) for el in node if isinstance(el, dict)]
            removed = [r for r in removed if r is not None]
            return removed or None

        if not isinstance(node, dict):
            return None

        key, rest = segments[0], segments[1:]
        if not rest:
            return node.pop(key, None)

        return cls._remove(node.get(key), rest)

    @classmethod
    def cleanup(cls, obj: Any) -> Any:
        """Recursively drop empty dicts and lists left behind by moves and removes."""
        if isinstance(obj, dict):
            for key in list(obj.keys()):
                val = cls.cleanup(obj[key])
                if isinstance(val, (dict, list)) and not val:
                    del obj[key]

        elif isinstance(obj, list):
            for el in obj:
                cls.cleanup(el)
            obj[:] = [el for el in obj if not (isinstance(el, (dict, list)) and not el)]

        return obj


def merge(target: Dict[str, Any], source: Dict[str, Any], *, overwrite: bool = False) -> Dict[str, Any]:
    """Deep-merge source into target. Existing scalars are kept unless overwrite is set."""
    for key, val in source.items():
        cur = target.get(key)
        if isinstance(cur, dict) and isinstance(val, dict):
            merge(cur, val, overwrite=overwrite)

        elif cur is None or overwrite:
            target[key] = val

    return target
