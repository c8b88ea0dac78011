"""Client-side representations of optimistically mutated rows.

A row is either :class:`Pending` (synthesized locally, identified by a
correlation token) or :class:`Confirmed` (issued by the server). Consumers
branch with :func:`is_pending` instead of inspecting identifiers.
"""
from __future__ import annotations

import itertools
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, Mapping, Union

CORRELATION_PREFIX = "temp-"


class ItemStatus(StrEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"


class OperationKind(StrEnum):
    CREATE = "create"
    DELETE = "delete"


@dataclass(frozen=True, slots=True)
class Pending:
    id: str
    parent_id: str
    author_id: str
    content: str
    created_at: datetime
    extra: Mapping[str, Any] = field(default_factory=dict)

    @property
    def status(self) -> ItemStatus:
        return ItemStatus.PENDING

    @property
    def order(self) -> int | None:
        value = self.extra.get("order")
        return value if isinstance(value, int) else None


@dataclass(frozen=True, slots=True)
class Confirmed:
    id: str
    parent_id: str
    author_id: str
    content: str
    created_at: datetime
    client_token: str | None = None
    order: int | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    @property
    def status(self) -> ItemStatus:
        return ItemStatus.CONFIRMED

    def with_extra(self, **values: Any) -> "Confirmed":
        return replace(self, extra={**self.extra, **values})


Entity = Union[Pending, Confirmed]


@dataclass(frozen=True, slots=True)
class PendingOperation:
    correlation_id: str
    kind: OperationKind
    submitted_at: datetime


def is_pending(entity: Entity) -> bool:
    return isinstance(entity, Pending)


def is_correlation_id(value: str) -> bool:
    return value.startswith(CORRELATION_PREFIX)


class CorrelationIds:
    """Issue process-unique correlation tokens in the ``temp-`` namespace."""

    def __init__(self, session: str | None = None) -> None:
        self._session = session or uuid.uuid4().hex[:8]
        self._counter = itertools.count(1)

    def next(self) -> str:
        return f"{CORRELATION_PREFIX}{self._session}-{next(self._counter)}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive timestamps as UTC so local and server clocks sort together."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


__all__ = [
    "CORRELATION_PREFIX",
    "Confirmed",
    "CorrelationIds",
    "Entity",
    "ItemStatus",
    "OperationKind",
    "Pending",
    "PendingOperation",
    "as_utc",
    "is_correlation_id",
    "is_pending",
    "utcnow",
]
