# Overview: Optimistic mutation runner (cancel, snapshot, apply, call, commit or roll back).

"""
Optimistic Mutations

WHY: Marking a notification read should update the badge immediately, not
after a round trip. If the server then rejects the change, the UI has to
look exactly as it did before.

PROTOCOL (OptimisticMutation.run):
1. Cancel in-flight fetches for the affected keys
2. Snapshot everything cached under those keys
3. Apply the optimistic change (optional)
4. Call the server
5. Success: on_success(result) writes/invalidates, success toast
   Failure: restore the snapshot, error toast with the server message or the
   fallback, raise MutationError

Mutations sharing a lock key (usually the entity's detail key) run one at a
time; others proceed independently with their own snapshots.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager, nullcontext
from typing import Any, Callable, Iterable, Optional, Union

import httpx

from .api import ApiError
from .query_cache import Key, QueryCache
from .toast import Toaster


logger = logging.getLogger(__name__)

SuccessMessage = Union[str, Callable[[Any], Optional[str]], None]


class MutationError(Exception):
    """A mutation failed; message is what the user was shown."""

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message)
        self.message = message
        self.cause = cause


def user_message(exc: Exception, fallback: str) -> str:
    """Server message when it sent a non-empty one, else the fallback."""
    if isinstance(exc, ApiError) and exc.message and exc.message.strip():
        return exc.message
    return fallback


class KeyedLocks:
    """
    One re-entrant lock per key, created on demand.

    A key's lock is dropped once nobody holds or waits for it, so the
    registry only contains keys with a mutation in flight.
    """

    def __init__(self):
        self._guard = threading.Lock()
        # key -> [lock, holders and waiters]
        self._slots: dict[Key, list] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._slots)

    @contextmanager
    def hold(self, key: Key):
        key = tuple(key)
        with self._guard:
            slot = self._slots.get(key)
            if slot is None:
                slot = self._slots[key] = [threading.RLock(), 0]
            slot[1] += 1
        try:
            with slot[0]:
                yield
        finally:
            with self._guard:
                slot[1] -= 1
                if slot[1] == 0:
                    del self._slots[key]


class OptimisticMutation:
    def __init__(self, cache: QueryCache, toaster: Toaster, locks: KeyedLocks | None = None):
        self.cache = cache
        self.toaster = toaster
        self.locks = locks if locks is not None else KeyedLocks()

    def run(
        self,
        call: Callable[[], Any],
        *,
        fallback_message: str,
        affected: Iterable[Key] = (),
        lock_key: Key | None = None,
        apply: Callable[[QueryCache], None] | None = None,
        on_success: Callable[[Any], None] | None = None,
        success_message: SuccessMessage = None,
    ) -> Any:
        """
        Run one mutation through the optimistic protocol.

        Raises:
            MutationError: The optimistic change or the server call failed
                (cache already restored)
        """
        affected = [tuple(k) for k in affected]
        lock = self.locks.hold(lock_key) if lock_key is not None else nullcontext()

        with lock:
            for prefix in affected:
                self.cache.cancel(prefix)
            snapshot = self.cache.snapshot(affected)

            try:
                if apply is not None:
                    apply(self.cache)
                result = call()
            except Exception as exc:
                self.cache.restore(snapshot)
                message = user_message(exc, fallback_message)
                if isinstance(exc, (ApiError, httpx.HTTPError)):
                    logger.warning("Mutation failed, rolled back %d entries: %s", len(snapshot.entries), exc)
                else:
                    logger.exception("Unexpected mutation failure, rolled back %d entries", len(snapshot.entries))
                self.toaster.error(message)
                raise MutationError(message, cause=exc) from exc

            if on_success is not None:
                on_success(result)

            if callable(success_message):
                text = success_message(result)
            else:
                text = success_message
            if text:
                self.toaster.success(text)

            return result
