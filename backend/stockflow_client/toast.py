# Overview: User-facing message sink for client operations.

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass


logger = logging.getLogger(__name__)

DEFAULT_HISTORY = 100


@dataclass(frozen=True)
class Toast:
    level: str
    message: str


class Toaster:
    """
    Collects success/info/error messages for the UI and mirrors them to the log.

    Thread-safe; the newest `history` messages are kept in arrival order.
    """

    def __init__(self, history: int = DEFAULT_HISTORY):
        self._lock = threading.Lock()
        self._messages: deque[Toast] = deque(maxlen=history)

    def _push(self, level: str, message: str) -> Toast:
        toast = Toast(level, message)
        with self._lock:
            self._messages.append(toast)
        if level == "error":
            logger.warning("toast[error] %s", message)
        else:
            logger.info("toast[%s] %s", level, message)
        return toast

    def success(self, message: str) -> Toast:
        return self._push("success", message)

    def info(self, message: str) -> Toast:
        return self._push("info", message)

    def error(self, message: str) -> Toast:
        return self._push("error", message)

    @property
    def messages(self) -> list[Toast]:
        with self._lock:
            return list(self._messages)

    @property
    def last(self) -> Toast | None:
        with self._lock:
            return self._messages[-1] if self._messages else None

    def clear(self) -> None:
        with self._lock:
            self._messages.clear()
