"""Shared real-time store used as the single source of truth for sessions.

Architecture note:
    The core never imports a store singleton. Services receive a
    ``SessionStore`` and only rely on last-writer-wins per path, change
    notifications that carry the latest value, and ``compare_and_set`` on a
    single path. ``InMemoryStore`` implements the protocol for a single
    process; a hosted real-time database adapter would implement the same
    methods and raise ``StoreTransportError`` on transport failures.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable
from threading import RLock
from typing import Any, Protocol

from live_quiz.core.errors import QuizValidationError

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[Any], None]
Unsubscribe = Callable[[], None]

SESSION_ROOT = "session"


def session_path(pin: str, *parts: str) -> str:
    """Build a store path below ``session/{pin}``."""
    return "/".join((SESSION_ROOT, pin, *parts))


def participant_path(pin: str, participant_id: str) -> str:
    """Build the record path of one participant; ids must be a single path segment."""
    if not participant_id.strip() or "/" in participant_id:
        raise QuizValidationError("Participant id must be a non-empty path-safe string.")
    return session_path(pin, "participants", participant_id)


class SessionStore(Protocol):
    def read(self, path: str) -> Any: ...

    def exists(self, path: str) -> bool: ...

    def children(self, path: str) -> list[str]: ...

    def write(self, path: str, value: Any) -> None: ...

    def update(self, path: str, fields: dict[str, Any]) -> None: ...

    def delete(self, path: str) -> None: ...

    def compare_and_set(self, path: str, expected: Any, value: Any) -> bool: ...

    def subscribe(self, path: str, on_change: ChangeCallback) -> Unsubscribe: ...


def _split(path: str) -> list[str]:
    parts = [part for part in path.strip("/").split("/") if part]
    if not parts:
        raise ValueError("Store path must not be empty.")
    return parts


def _is_related(changed: list[str], watched: list[str]) -> bool:
    common = min(len(changed), len(watched))
    return changed[:common] == watched[:common]


class InMemoryStore:
    """Thread-safe, process-local implementation of ``SessionStore``."""

    def __init__(self) -> None:
        self._root: dict[str, Any] = {}
        self._lock = RLock()
        self._subscribers: dict[int, tuple[list[str], ChangeCallback]] = {}
        self._next_subscription = 0

    # --- Reads ---

    def read(self, path: str) -> Any:
        with self._lock:
            return copy.deepcopy(self._lookup(_split(path)))

    def exists(self, path: str) -> bool:
        with self._lock:
            return self._lookup(_split(path)) is not None

    def children(self, path: str) -> list[str]:
        with self._lock:
            node = self._lookup(_split(path))
            if isinstance(node, dict):
                return list(node.keys())
            return []

    # --- Writes ---

    def write(self, path: str, value: Any) -> None:
        parts = _split(path)
        with self._lock:
            self._assign(parts, copy.deepcopy(value))
        self._notify(parts)

    def update(self, path: str, fields: dict[str, Any]) -> None:
        parts = _split(path)
        with self._lock:
            current = self._lookup(parts)
            merged = dict(current) if isinstance(current, dict) else {}
            merged.update(copy.deepcopy(fields))
            self._assign(parts, merged)
        self._notify(parts)

    def delete(self, path: str) -> None:
        parts = _split(path)
        with self._lock:
            parent = self._lookup(parts[:-1]) if len(parts) > 1 else self._root
            if not isinstance(parent, dict) or parts[-1] not in parent:
                return
            del parent[parts[-1]]
        self._notify(parts)

    def compare_and_set(self, path: str, expected: Any, value: Any) -> bool:
        """Write ``value`` only if the current value equals ``expected``."""
        parts = _split(path)
        with self._lock:
            if self._lookup(parts) != expected:
                return False
            self._assign(parts, copy.deepcopy(value))
        self._notify(parts)
        return True

    # --- Subscriptions ---

    def subscribe(self, path: str, on_change: ChangeCallback) -> Unsubscribe:
        parts = _split(path)
        with self._lock:
            key = self._next_subscription
            self._next_subscription += 1
            self._subscribers[key] = (parts, on_change)

        def unsubscribe() -> None:
            with self._lock:
                self._subscribers.pop(key, None)

        return unsubscribe

    # --- Internals ---

    def _lookup(self, parts: list[str]) -> Any:
        node: Any = self._root
        for part in parts:
            if not isinstance(node, dict) or part not in node:
                return None
            node = node[part]
        return node

    def _assign(self, parts: list[str], value: Any) -> None:
        node = self._root
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        if value is None:
            node.pop(parts[-1], None)
        else:
            node[parts[-1]] = value

    def _notify(self, changed: list[str]) -> None:
        with self._lock:
            targets = [
                (watched, callback)
                for watched, callback in self._subscribers.values()
                if _is_related(changed, watched)
            ]
            payloads = [copy.deepcopy(self._lookup(watched)) for watched, _ in targets]
        # Callbacks run outside the lock so they may read or write the store.
        for (watched, callback), payload in zip(targets, payloads):
            try:
                callback(payload)
            except Exception:
                logger.exception("Subscriber for %s failed", "/".join(watched))
