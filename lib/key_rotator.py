"""API key pool and round-robin rotation across requests."""

import os
import re
import threading
from typing import Iterable, Mapping, Optional

SINGLE_KEY_VARS = ("API_KEY", "GEMINI_API_KEY")
LIST_KEY_VARS = ("API_KEYS", "GEMINI_API_KEYS")
_INDEXED_KEY_RE = re.compile(r"^(?:GEMINI_)?API_KEY_(\d+)$")


def _dedupe(keys: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    result = []
    for key in keys:
        key = key.strip()
        if key and key not in seen:
            seen.add(key)
            result.append(key)
    return result


def collect_api_keys(environ: Optional[Mapping[str, str]] = None) -> list[str]:
    """
    Gather credentials from every supported environment source.

    Order: single-key variables, then comma-separated lists, then indexed
    variables (API_KEY_1, GEMINI_API_KEY_2, ...) sorted by index. Duplicates
    keep their first position.
    """
    environ = os.environ if environ is None else environ

    keys: list[str] = []
    for name in SINGLE_KEY_VARS:
        if environ.get(name):
            keys.append(environ[name])

    for name in LIST_KEY_VARS:
        if environ.get(name):
            keys.extend(environ[name].split(","))

    indexed = []
    for name, value in environ.items():
        match = _INDEXED_KEY_RE.match(name)
        if match and value:
            indexed.append((int(match.group(1)), name, value))
    keys.extend(value for _, _, value in sorted(indexed))

    return _dedupe(keys)


class KeyRotator:
    """
    Hands out the key pool as a full rotation, shifted by one per call.

    The cursor is process-local and guarded by a lock, so concurrent requests
    in one process each get a distinct starting key. It is not shared between
    processes; rotation only spreads load, it does not enforce quotas.
    """

    def __init__(self, keys: Iterable[str]):
        self._keys = _dedupe(keys)
        self._cursor = 0
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._keys)

    @property
    def keys(self) -> tuple[str, ...]:
        return tuple(self._keys)

    def next_key_sequence(self) -> list[str]:
        """Every key exactly once, starting one past the previous call's start."""
        if not self._keys:
            return []
        with self._lock:
            start = self._cursor
            self._cursor = (self._cursor + 1) % len(self._keys)
        return self._keys[start:] + self._keys[:start]
