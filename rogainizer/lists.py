"""Normalization of course/category lists and competitor names.

Courses and categories are stored as JSON text holding an ordered set of
strings; competitors are stored as a single ``", "``-joined display string.
Both share the same trim/dedupe rules.
"""

from __future__ import annotations

import json
from typing import Any, Iterable, List, Tuple


def _dedupe(tokens: Iterable[str]) -> List[str]:
    seen: set[str] = set()
    out: List[str] = []
    for token in tokens:
        token = token.strip()
        if not token or token in seen:
            continue
        seen.add(token)
        out.append(token)
    return out


def normalize_list(values: Any) -> List[str]:
    """Return trimmed, non-empty, distinct strings in first-seen order.

    Anything other than a list or tuple normalizes to an empty list.
    """
    if not isinstance(values, (list, tuple)):
        return []
    return _dedupe(str(item) for item in values)


def try_decode_list(raw: Any) -> Tuple[bool, List[str]]:
    """Decode a stored list value, returning ``(ok, values)``.

    ``ok`` is False when ``raw`` is neither a sequence nor JSON text; the
    values are then empty.
    """
    if isinstance(raw, (list, tuple)):
        return True, normalize_list(raw)
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")
    if not isinstance(raw, str):
        return False, []
    try:
        parsed = json.loads(raw)
    except ValueError:
        return False, []
    return True, normalize_list(parsed)


def decode_stored_list(raw: Any) -> List[str]:
    """Tolerant decode: malformed stored data reads as no configured values."""
    _ok, values = try_decode_list(raw)
    return values


def encode_list(values: Any) -> str:
    return json.dumps(normalize_list(values))


def normalize_competitors(raw: Any) -> str:
    """``"Alice, bob , Alice"`` -> ``"Alice, bob"``."""
    if raw is None:
        return ""
    return ", ".join(_dedupe(str(raw).split(",")))
