"""Submits generated orders to the order gateway, one request at a time.

Orders already accepted by the gateway are never rolled back: an abort
half-way through leaves the earlier orders committed and reports a
PARTIAL_SUCCESS result describing where it stopped.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sequence

from nomnom.config import CommitConfig, get_config
from nomnom.gateway import (
    DuplicateOrderNumberError,
    EntityGateway,
    InsufficientInventoryError,
)
from nomnom.importing.types import ImportStatus
from nomnom.models import Order, OrderItem, OrderStatus
from nomnom.synthesis.types import CommitResult, GeneratedOrder

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]
Clock = Callable[[], float]


def order_number(prefix: str, timestamp_ms: int, index: int) -> str:
    return f"{prefix}-{timestamp_ms}-{index:04d}"


def inventory_failure_message(error: InsufficientInventoryError) -> str:
    return (
        f"Import failed due to insufficient inventory: {error.detail}. "
        'Orders have been imported as "pending" status. '
        "You can complete them manually after restocking inventory."
    )


def build_order(
    generated: GeneratedOrder, number: str, config: CommitConfig
) -> Order:
    """Turn a generated order into the completed Order the gateway stores."""
    return Order(
        order_number=number,
        items=[
            OrderItem(
                menu_item_id=line.menu_item_id,
                name=line.name,
                description=line.description,
                price=line.price,
                quantity=line.quantity,
                unit_price=line.unit_price,
                total_price=line.total_price,
            )
            for line in generated.items
        ],
        total=generated.total,
        subtotal=generated.total,
        status=OrderStatus.COMPLETED,
        order_time=generated.order_time,
        completed_time=generated.order_time,
        location=config.location,
        payment_method=config.payment_method,
        payment_status="completed",
        external_source=config.external_source,
    )


async def commit_orders(
    gateway: EntityGateway[Order],
    orders: Sequence[GeneratedOrder],
    config: CommitConfig | None = None,
    sleep: Sleep = asyncio.sleep,
    clock: Clock = time.time,
) -> CommitResult:
    """Persist generated orders sequentially.

    Args:
        gateway: Order gateway
        orders: Generated orders, in the order they should be submitted
        config: Commit settings (defaults to application config)
        sleep: Awaitable delay, injectable for tests
        clock: Epoch-seconds clock used for order numbers

    Returns:
        CommitResult; committed holds whatever the gateway accepted
    """
    config = config or get_config().commit
    start_time = time.time()
    result = CommitResult(status=ImportStatus.SUCCESS, total_orders=len(orders))
    batch_timestamp = int(clock() * 1000)

    logger.info(f"Committing {len(orders)} orders")

    for index, generated in enumerate(orders):
        if index > 0:
            await sleep(config.request_delay_seconds)

        order = build_order(
            generated,
            order_number(config.order_number_prefix, batch_timestamp, index),
            config,
        )

        try:
            try:
                created = await gateway.create(order)
            except DuplicateOrderNumberError as e:
                logger.warning(f"{e}; retrying with a fresh order number")
                await sleep(config.duplicate_retry_delay_seconds)
                retry_number = order_number(
                    config.order_number_prefix, int(clock() * 1000), index
                )
                order = order.model_copy(update={"order_number": retry_number})
                created = await gateway.create(order)

        except DuplicateOrderNumberError as e:
            _abort(result, index, "duplicate", f"Failed to import orders: {e}")
            break

        except InsufficientInventoryError as e:
            _abort(result, index, "inventory", inventory_failure_message(e))
            break

        except Exception as e:
            logger.exception(f"Order {order.order_number} failed")
            _abort(result, index, "error", f"Failed to import orders: {e}")
            break

        result.committed.append(created)
        logger.debug(f"Committed order {created.order_number} ({len(created.items)} items)")

    if result.error_kind is None:
        result.message = f"Successfully imported {result.committed_count} orders"
        logger.info(result.message)
    elif result.committed:
        result.status = ImportStatus.PARTIAL_SUCCESS

    result.duration_seconds = time.time() - start_time
    return result


def _abort(result: CommitResult, index: int, kind: str, message: str) -> None:
    result.status = ImportStatus.FAILED
    result.failed_index = index
    result.error_kind = kind
    result.message = message
    logger.error(
        f"Order commit aborted at {index + 1}/{result.total_orders} ({kind}): {message}"
    )
