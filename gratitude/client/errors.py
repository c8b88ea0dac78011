"""Exceptions raised by backend adapters and handled inside the reconciler."""
from __future__ import annotations

from typing import Any


class BackendError(RuntimeError):
    """Base class for any failed authoritative call."""


class BackendUnavailable(BackendError):
    """The backend could not be reached (timeout, connection refused, dropped socket)."""


class WriteRejected(BackendError):
    """The backend answered and refused the request."""

    def __init__(self, status_code: int, detail: Any = None) -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"Backend rejected the request ({status_code}): {detail}")


class NotFound(WriteRejected):
    """The target row no longer exists."""


__all__ = ["BackendError", "BackendUnavailable", "NotFound", "WriteRejected"]
