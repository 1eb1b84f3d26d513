from __future__ import annotations
import json
import re
from typing import Any


def _is_empty(obj: Any) -> bool:
    """Whether a payload value carries nothing worth attaching.

    ``None``, empty strings and empty containers count as empty.

    Examples
    --------
    >>> _is_empty({})
    True
    >>> _is_empty({"url": "https://example.org"})
    False
    """
    if obj is None:
        return True
    try:
        return len(obj) == 0
    except TypeError:
        return False


def _dump_json(data: Any, indent: int = 4) -> str:
    """Pretty-print ``data`` as JSON for a request/response attachment.

    Non-serializable values are rendered with ``str``.
    """
    return json.dumps(data, indent=indent, ensure_ascii=False, default=str)


def _compact_json(data: Any) -> str:
    """Serialize ``data`` without whitespace (used for test parameters)."""
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False, default=str)


def _slugify(s: str) -> str:
    """Create a URL/filename-friendly slug.

    Converts to lowercase, collapses whitespace to ``-``,
    and removes characters outside ``[a-z0-9-]``.

    Parameters
    ----------
    s
        Input string.

    Returns
    -------
    str
        Slugified string.

    Examples
    --------
    >>> _slugify("  Login Page (v2)! ")
    'login-page-v2'
    """
    s = re.sub(r"\s+", "-", s.strip().lower())
    s = re.sub(r"[^a-z0-9\-]+", "", s)
    return s
