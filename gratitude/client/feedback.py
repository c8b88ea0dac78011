"""Transient user feedback emitted by feeds (the toast equivalent).

A :class:`FeedbackBus` is created per feature tree and passed down
explicitly; there is no module-level instance.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import Callable

logger = logging.getLogger(__name__)


class FeedbackLevel(StrEnum):
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class Feedback:
    level: FeedbackLevel
    title: str
    message: str
    operation: str
    item_id: str | None = None


FeedbackHandler = Callable[[Feedback], None]


class FeedbackBus:
    def __init__(self) -> None:
        self._handlers: list[FeedbackHandler] = []

    def subscribe(self, handler: FeedbackHandler) -> Callable[[], None]:
        """Register ``handler`` and return a callable that removes it."""

        self._handlers.append(handler)

        def _unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return _unsubscribe

    def emit(self, feedback: Feedback) -> None:
        for handler in list(self._handlers):
            try:
                handler(feedback)
            except Exception:
                logger.exception("Feedback handler failed for %s", feedback.operation)

    def success(self, title: str, message: str, *, operation: str, item_id: str | None = None) -> None:
        self.emit(Feedback(FeedbackLevel.SUCCESS, title, message, operation, item_id))

    def error(self, title: str, message: str, *, operation: str, item_id: str | None = None) -> None:
        self.emit(Feedback(FeedbackLevel.ERROR, title, message, operation, item_id))


__all__ = ["Feedback", "FeedbackBus", "FeedbackHandler", "FeedbackLevel"]
