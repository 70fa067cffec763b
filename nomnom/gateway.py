"""Persistence gateway contract and change notifications.

The pipeline talks to storage only through these shapes: a per-entity
gateway (get_all/create/update/delete) and a push-based change feed whose
subscriptions hand back a disposable handle.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, Protocol, TypeVar
from uuid import UUID

logger = logging.getLogger(__name__)

T = TypeVar("T")


class GatewayError(Exception):
    """Base class for errors raised by a persistence gateway."""


class EntityNotFoundError(GatewayError):
    """Update/delete targeted an id that does not exist."""


class DuplicateOrderNumberError(GatewayError):
    """Order number already taken (uniqueness constraint violation)."""

    def __init__(self, order_number: str):
        super().__init__(f"Duplicate order number: {order_number}")
        self.order_number = order_number


@dataclass(frozen=True, slots=True)
class InventoryShortfall:
    ingredient_name: str
    required: float
    available: float
    unit: str

    def describe(self) -> str:
        return (
            f"{self.ingredient_name} (need {self.required:g} {self.unit}, "
            f"have {self.available:g} {self.unit})"
        )


class InsufficientInventoryError(GatewayError):
    """Order was stored as pending because stock could not cover it."""

    def __init__(self, shortfalls: list[InventoryShortfall], order_number: str | None = None):
        detail = ", ".join(s.describe() for s in shortfalls)
        super().__init__(f"Insufficient inventory: {detail}")
        self.shortfalls = shortfalls
        self.order_number = order_number

    @property
    def detail(self) -> str:
        return ", ".join(s.describe() for s in self.shortfalls)


class EntityGateway(Protocol, Generic[T]):
    """CRUD surface every entity store exposes."""

    async def get_all(self) -> list[T]: ...

    async def create(self, entity: T) -> T: ...

    async def update(self, entity_id: UUID, patch: dict[str, Any]) -> T: ...

    async def delete(self, entity_id: UUID) -> None: ...


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    entity: str  # "menu_items", "orders", ...
    action: str  # "INSERT", "UPDATE", "DELETE"
    payload: Any


ChangeCallback = Callable[[ChangeEvent], None]


class Subscription:
    """Handle returned by ChangeFeed.subscribe; unsubscribe() is idempotent."""

    def __init__(self, feed: ChangeFeed, entity: str, callback: ChangeCallback):
        self._feed = feed
        self.entity = entity
        self._callback = callback
        self.active = True

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self._feed._remove(self.entity, self._callback)
        self.active = False


class ChangeFeed:
    """In-process fan-out of entity change events to registered callbacks."""

    def __init__(self) -> None:
        self._callbacks: dict[str, list[ChangeCallback]] = defaultdict(list)

    def subscribe(self, entity: str, callback: ChangeCallback) -> Subscription:
        self._callbacks[entity].append(callback)
        return Subscription(self, entity, callback)

    def publish(self, event: ChangeEvent) -> None:
        for callback in list(self._callbacks.get(event.entity, ())):
            try:
                callback(event)
            except Exception:
                logger.exception(f"Change listener failed for {event.entity}")

    def subscriber_count(self, entity: str) -> int:
        return len(self._callbacks.get(entity, ()))

    def _remove(self, entity: str, callback: ChangeCallback) -> None:
        callbacks = self._callbacks.get(entity)
        if callbacks and callback in callbacks:
            callbacks.remove(callback)


class MappingStore(Protocol):
    """Storage for remembered product-name decisions."""

    async def get_all(self, source_type: str | None = None) -> list[Any]: ...

    async def upsert(self, mapping: Any) -> Any: ...
