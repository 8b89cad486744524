from __future__ import annotations

from typing import Any, Iterable, List, Optional, Sequence, Union

Path = Union[str, Sequence[Union[str, int]]]

_MISSING = object()


def as_list(v: Any) -> List[Any]:
    if v is None:
        return []
    if isinstance(v, list):
        return v
    if isinstance(v, tuple):
        return list(v)
    return [v]


def _split(path: Path) -> List[Union[str, int]]:
    if isinstance(path, str):
        parts: List[Union[str, int]] = []
        for p in path.split("."):
            parts.append(int(p) if p.isdigit() else p)
        return parts
    return list(path)


def _step(cur: Any, key: Union[str, int]) -> Any:
    if isinstance(key, int):
        if isinstance(cur, (list, tuple)):
            return cur[key] if -len(cur) <= key < len(cur) else _MISSING
        # a single object where an array was expected counts as element 0
        if isinstance(cur, dict) and key == 0:
            return cur
        return _MISSING
    if isinstance(cur, (list, tuple)):
        # array-wrapped object: look inside its first element
        if not cur:
            return _MISSING
        cur = cur[0]
    if isinstance(cur, dict):
        return cur.get(key, _MISSING)
    return _MISSING


def dig(obj: Any, path: Path, default: Any = None) -> Any:
    """Follow one path through nested dicts / lists.

    Missing keys, out-of-range indexes and non-container intermediates all
    resolve to ``default``.
    """
    cur = obj
    for key in _split(path):
        cur = _step(cur, key)
        if cur is _MISSING or cur is None:
            return default
    return cur


def first_present(obj: Any, *paths: Path, default: Any = None) -> Any:
    """Return the first truthy value found under any of ``paths``, in order.

    Empty strings, 0, None and empty containers count as absent.
    """
    for path in paths:
        v = dig(obj, path)
        if v:
            return v
    return default


def first_of(values: Iterable[Any], default: Any = None) -> Any:
    for v in values:
        if v:
            return v
    return default


def to_float(x: Any) -> Optional[float]:
    if x is None or isinstance(x, bool):
        return None
    if isinstance(x, dict):
        # {"Amount": ..} / {"content": ..}
        x = first_present(x, "Amount", "amount", "content")
        if x is None:
            return None
    try:
        v = float(str(x).replace(",", "").strip())
    except (TypeError, ValueError):
        return None
    if v != v or v in (float("inf"), float("-inf")):
        return None
    return v


def to_int(x: Any) -> Optional[int]:
    v = to_float(x)
    if v is None:
        return None
    return int(v)


def to_text(x: Any) -> Optional[str]:
    if x is None:
        return None
    if isinstance(x, dict):
        x = first_present(x, "content", "Code", "code", "value")
        if x is None:
            return None
    s = str(x).strip()
    return s or None
