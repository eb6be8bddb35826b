from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

Leaf = Any


def split_path(path: str) -> List[str]:
    parts = [p for p in (path or "").strip("/").split("/")]
    if not parts or any(not p for p in parts):
        raise ValueError(f"Invalid store path: {path!r}")
    return parts


def join_path(*parts: str) -> str:
    return "/".join(p.strip("/") for p in parts if p)


def is_related(a: str, b: str) -> bool:
    """True when one path is the other or lies below it."""
    return a == b or a.startswith(b + "/") or b.startswith(a + "/")


def ancestors(path: str) -> List[str]:
    parts = split_path(path)
    return ["/".join(parts[:i]) for i in range(1, len(parts))]


def normalize(value: Any) -> Any:
    """Drop None children and empty mappings. Returns None when nothing is left."""
    if value is None:
        return None
    if isinstance(value, Mapping):
        out: Dict[str, Any] = {}
        for key, child in value.items():
            key = str(key)
            if not key or "/" in key:
                raise ValueError(f"Invalid key in value: {key!r}")
            child = normalize(child)
            if child is not None:
                out[key] = child
        return out or None
    if isinstance(value, (list, tuple)):
        # arrays are stored like objects keyed by index
        return normalize({str(i): v for i, v in enumerate(value)})
    if isinstance(value, (str, int, float, bool)):
        return value
    raise TypeError(f"Unsupported value type: {type(value).__name__}")


def flatten(path: str, value: Any) -> List[Tuple[str, Leaf]]:
    """(leaf_path, leaf) pairs for an already normalized value."""
    if value is None:
        return []
    if not isinstance(value, Mapping):
        return [(path, value)]
    rows: List[Tuple[str, Leaf]] = []
    for key, child in value.items():
        rows.extend(flatten(f"{path}/{key}", child))
    return rows


def inflate(path: str, rows: Iterable[Tuple[str, Leaf]]) -> Optional[Any]:
    """Rebuild the value at `path` from leaf rows at or below it."""
    root: Dict[str, Any] = {}
    prefix = path + "/"
    for leaf_path, leaf in rows:
        if leaf_path == path:
            return leaf
        if not leaf_path.startswith(prefix):
            continue
        node = root
        parts = leaf_path[len(prefix):].split("/")
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[parts[-1]] = leaf
    return root or None
