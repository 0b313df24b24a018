"""Content-hash memoisation for derived budget data."""

from __future__ import annotations

import hashlib
import json
from dataclasses import asdict, is_dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Callable, Dict, Hashable, Tuple


def _default(value: Any) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        return {'__type__': type(value).__name__, **asdict(value)}
    if isinstance(value, (date, Decimal)):
        return str(value)
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=repr)
    raise TypeError(f"Cannot fingerprint {type(value).__name__}")


def fingerprint(*parts: Any) -> str:
    """Stable SHA-256 of ``parts`` (records, settings, plain values)."""
    payload = json.dumps(parts, default=_default, sort_keys=True, separators=(',', ':'))
    return hashlib.sha256(payload.encode('utf-8')).hexdigest()


class DerivationCache:
    """Memoise ``func(*args)`` results keyed on a fingerprint of the inputs.

    Only the most recent ``max_entries`` results are kept.
    """

    def __init__(self, max_entries: int = 32) -> None:
        self.max_entries = max_entries
        self._entries: Dict[Tuple[Hashable, str], Any] = {}
        self.hits = 0
        self.misses = 0

    def get_or_compute(self, name: Hashable, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        key = (name, fingerprint(args, kwargs))
        if key in self._entries:
            self.hits += 1
            return self._entries[key]
        self.misses += 1
        result = func(*args, **kwargs)
        self._entries[key] = result
        while len(self._entries) > self.max_entries:
            self._entries.pop(next(iter(self._entries)))
        return result

    def clear(self) -> None:
        self._entries.clear()
