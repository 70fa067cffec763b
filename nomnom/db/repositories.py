"""Async SQLAlchemy implementations of the persistence gateway.

Each repository is scoped to one business, commits on every mutation and
then publishes a ChangeEvent on the optional feed.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Generic, TypeVar
from uuid import UUID

from sqlalchemy import delete as sa_delete
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from nomnom.db.models import (
    Base,
    InventoryItemModel,
    MenuItemIngredientModel,
    MenuItemModel,
    OrderItemModel,
    OrderModel,
    ProductMappingModel,
    ProductModel,
)
from nomnom.gateway import (
    ChangeEvent,
    ChangeFeed,
    DuplicateOrderNumberError,
    EntityNotFoundError,
    GatewayError,
    InsufficientInventoryError,
    InventoryShortfall,
)
from nomnom.models import (
    InventoryItem,
    MenuItem,
    MenuItemIngredient,
    Order,
    OrderItem,
    OrderStatus,
    Product,
    SavedProductMapping,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

_NUMERIC_FIELDS = {
    "price",
    "cost_per_unit",
    "current_stock",
    "reserved_quantity",
    "min_threshold",
    "total",
    "subtotal",
    "tax_amount",
    "tip_amount",
    "discount_amount",
    "confidence",
}


def _dec(value: float | int | Decimal) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def _float(value: Decimal | float | None) -> float:
    return float(value) if value is not None else 0.0


class _Repository(Generic[T]):
    """Shared get/update/delete plumbing for business-scoped tables."""

    entity: str = ""
    model_cls: type[Base]
    readonly_fields = frozenset({"id", "business_id"})

    def __init__(
        self,
        session: AsyncSession,
        business_id: str,
        feed: ChangeFeed | None = None,
    ):
        self.session = session
        self.business_id = business_id
        self.feed = feed

    async def _to_entity(self, model: Any) -> T:
        raise NotImplementedError

    async def _get_model(self, entity_id: UUID) -> Any:
        model = await self.session.get(self.model_cls, entity_id)
        if model is None or model.business_id != self.business_id:
            raise EntityNotFoundError(f"{self.entity} {entity_id} not found")
        return model

    async def _publish(self, action: str, payload: Any) -> None:
        if self.feed is not None:
            self.feed.publish(ChangeEvent(entity=self.entity, action=action, payload=payload))

    async def get_all(self) -> list[T]:
        stmt = select(self.model_cls).where(self.model_cls.business_id == self.business_id)
        rows = (await self.session.execute(stmt)).scalars().all()
        return [await self._to_entity(row) for row in rows]

    async def update(self, entity_id: UUID, patch: dict[str, Any]) -> T:
        """Apply a partial update.

        Raises:
            EntityNotFoundError: If the id does not exist for this business
            ValueError: If the patch names an unknown or read-only field
        """
        model = await self._get_model(entity_id)
        columns = set(self.model_cls.__table__.columns.keys())
        for key, value in patch.items():
            if key not in columns or key in self.readonly_fields:
                raise ValueError(f"Cannot update field {key!r} on {self.entity}")
            if key in _NUMERIC_FIELDS and value is not None:
                value = _dec(value)
            setattr(model, key, value)

        await self.session.commit()
        await self.session.refresh(model)
        entity = await self._to_entity(model)
        await self._publish("UPDATE", entity)
        return entity

    async def delete(self, entity_id: UUID) -> None:
        model = await self._get_model(entity_id)
        await self.session.delete(model)
        await self.session.commit()
        await self._publish("DELETE", {"id": entity_id})


class MenuItemRepository(_Repository[MenuItem]):
    entity = "menu_items"
    model_cls = MenuItemModel

    async def _to_entity(self, model: MenuItemModel) -> MenuItem:
        stmt = select(MenuItemIngredientModel).where(
            MenuItemIngredientModel.menu_item_id == model.id
        )
        ingredients = (await self.session.execute(stmt)).scalars().all()
        return MenuItem(
            id=model.id,
            business_id=model.business_id,
            name=model.name,
            description=model.description,
            price=_float(model.price),
            category=model.category,
            is_available=model.is_available,
            prep_time=model.prep_time,
            allergens=list(model.allergens or []),
            ingredients=[
                MenuItemIngredient(
                    product_id=row.product_id, quantity=_float(row.quantity), unit=row.unit
                )
                for row in ingredients
            ],
        )

    async def create(self, item: MenuItem) -> MenuItem:
        model = MenuItemModel(
            id=item.id,
            business_id=self.business_id,
            name=item.name,
            description=item.description,
            price=_dec(item.price),
            category=item.category,
            is_available=item.is_available,
            prep_time=item.prep_time,
            allergens=list(item.allergens),
        )
        self.session.add(model)
        await self.session.flush()
        for ingredient in item.ingredients:
            self.session.add(
                MenuItemIngredientModel(
                    menu_item_id=item.id,
                    product_id=ingredient.product_id,
                    quantity=_dec(ingredient.quantity),
                    unit=ingredient.unit,
                )
            )
        await self.session.commit()

        created = await self._to_entity(model)
        logger.info(f"Created menu item {created.name!r} ({created.id})")
        await self._publish("INSERT", created)
        return created


class ProductRepository(_Repository[Product]):
    entity = "products"
    model_cls = ProductModel

    async def _to_entity(self, model: ProductModel) -> Product:
        return Product(
            id=model.id,
            business_id=model.business_id,
            name=model.name,
            cost_per_unit=_float(model.cost_per_unit),
            unit=model.unit,
            supplier=model.supplier,
            category=model.category,
            is_available=model.is_available,
            last_updated=model.last_updated,
            units_per_package=model.units_per_package,
            package_type=model.package_type,
            minimum_order_quantity=model.minimum_order_quantity,
            order_by_package=model.order_by_package,
        )

    async def create(self, product: Product) -> Product:
        model = ProductModel(
            id=product.id,
            business_id=self.business_id,
            name=product.name,
            cost_per_unit=_dec(product.cost_per_unit),
            unit=product.unit,
            supplier=product.supplier,
            category=product.category,
            is_available=product.is_available,
            units_per_package=product.units_per_package,
            package_type=product.package_type,
            minimum_order_quantity=product.minimum_order_quantity,
            order_by_package=product.order_by_package,
        )
        self.session.add(model)
        await self.session.commit()
        await self.session.refresh(model)

        created = await self._to_entity(model)
        await self._publish("INSERT", created)
        return created


class InventoryRepository(_Repository[InventoryItem]):
    entity = "inventory_items"
    model_cls = InventoryItemModel

    async def _to_entity(self, model: InventoryItemModel) -> InventoryItem:
        return InventoryItem(
            id=model.id,
            business_id=model.business_id,
            name=model.name,
            unit=model.unit,
            current_stock=_float(model.current_stock),
            reserved_quantity=_float(model.reserved_quantity),
            min_threshold=_float(model.min_threshold),
        )

    async def create(self, item: InventoryItem) -> InventoryItem:
        model = InventoryItemModel(
            id=item.id,
            business_id=self.business_id,
            name=item.name,
            unit=item.unit,
            current_stock=_dec(item.current_stock),
            reserved_quantity=_dec(item.reserved_quantity),
            min_threshold=_dec(item.min_threshold),
        )
        self.session.add(model)
        await self.session.commit()

        created = await self._to_entity(model)
        await self._publish("INSERT", created)
        return created


class OrderRepository(_Repository[Order]):
    """Order gateway with inventory validation for completed orders.

    A completed order whose ingredients are not covered by stock is still
    stored, but as pending, and InsufficientInventoryError is raised after
    the commit. Covered orders deduct their ingredients from stock.
    """

    entity = "orders"
    model_cls = OrderModel

    async def _to_entity(self, model: OrderModel) -> Order:
        stmt = (
            select(OrderItemModel)
            .where(OrderItemModel.order_id == model.id)
            .order_by(OrderItemModel.position)
        )
        items = (await self.session.execute(stmt)).scalars().all()
        return Order(
            id=model.id,
            business_id=model.business_id,
            order_number=model.order_number,
            items=[
                OrderItem(
                    menu_item_id=row.menu_item_id,
                    name=row.name,
                    description=row.description,
                    price=_float(row.price),
                    quantity=row.quantity,
                    unit_price=_float(row.unit_price),
                    total_price=_float(row.total_price),
                    special_instructions=row.special_instructions,
                )
                for row in items
            ],
            total=_float(model.total),
            subtotal=_float(model.subtotal),
            tax_amount=_float(model.tax_amount),
            tip_amount=_float(model.tip_amount),
            discount_amount=_float(model.discount_amount),
            status=OrderStatus(model.status),
            order_time=model.order_time,
            completed_time=model.completed_time,
            location=model.location,
            payment_method=model.payment_method,
            payment_status=model.payment_status,
            external_source=model.external_source,
        )

    async def get_all(self) -> list[Order]:
        stmt = (
            select(OrderModel)
            .where(OrderModel.business_id == self.business_id)
            .order_by(OrderModel.order_time)
        )
        rows = (await self.session.execute(stmt)).scalars().all()
        return [await self._to_entity(row) for row in rows]

    async def create(self, order: Order) -> Order:
        """Store an order.

        Raises:
            DuplicateOrderNumberError: If the order number is already used
            InsufficientInventoryError: If a completed order was downgraded
                to pending for lack of stock (the order IS stored)
            GatewayError: On any other integrity violation
        """
        model = OrderModel(
            id=order.id,
            business_id=self.business_id,
            order_number=order.order_number,
            total=_dec(order.total),
            subtotal=_dec(order.subtotal),
            tax_amount=_dec(order.tax_amount),
            tip_amount=_dec(order.tip_amount),
            discount_amount=_dec(order.discount_amount),
            status=order.status.value,
            order_time=order.order_time,
            completed_time=order.completed_time,
            location=order.location,
            payment_method=order.payment_method,
            payment_status=order.payment_status,
            external_source=order.external_source,
        )
        self.session.add(model)
        try:
            await self.session.flush()
        except IntegrityError as e:
            await self.session.rollback()
            if "order_number" in str(e.orig):
                raise DuplicateOrderNumberError(order.order_number) from e
            raise GatewayError(f"Failed to create order {order.order_number}: {e.orig}") from e

        for position, item in enumerate(order.items):
            self.session.add(
                OrderItemModel(
                    order_id=model.id,
                    position=position,
                    menu_item_id=item.menu_item_id,
                    name=item.name,
                    description=item.description,
                    price=_dec(item.price),
                    quantity=item.quantity,
                    unit_price=_dec(item.unit_price),
                    total_price=_dec(item.total_price),
                    special_instructions=item.special_instructions,
                )
            )

        shortfalls: list[InventoryShortfall] = []
        if order.status == OrderStatus.COMPLETED:
            shortfalls, deductions = await self._check_inventory(order.items)
            if shortfalls:
                model.status = OrderStatus.PENDING.value
                model.payment_status = "pending"
                model.completed_time = None
            else:
                for inventory_item, quantity in deductions:
                    inventory_item.current_stock = inventory_item.current_stock - _dec(quantity)

        await self.session.commit()
        created = await self._to_entity(model)
        await self._publish("INSERT", created)

        if shortfalls:
            logger.warning(
                f"Order {created.order_number} stored as pending: insufficient inventory"
            )
            raise InsufficientInventoryError(shortfalls, order_number=created.order_number)
        return created

    async def _check_inventory(
        self, items: Iterable[OrderItem]
    ) -> tuple[list[InventoryShortfall], list[tuple[InventoryItemModel, float]]]:
        """Aggregate recipe requirements and compare them with stock on hand.

        Inventory rows are matched to products by trimmed, case-insensitive
        name; a product with no inventory row has nothing available.
        """
        quantities: dict[UUID, int] = {}
        for item in items:
            quantities[item.menu_item_id] = quantities.get(item.menu_item_id, 0) + item.quantity
        if not quantities:
            return [], []

        stmt = (
            select(MenuItemIngredientModel, ProductModel)
            .join(ProductModel, ProductModel.id == MenuItemIngredientModel.product_id)
            .where(MenuItemIngredientModel.menu_item_id.in_(list(quantities)))
        )
        required: dict[UUID, dict[str, Any]] = {}
        for ingredient, product in (await self.session.execute(stmt)).all():
            entry = required.setdefault(
                product.id,
                {"name": product.name, "unit": product.unit or ingredient.unit or "", "quantity": 0.0},
            )
            entry["quantity"] += _float(ingredient.quantity) * quantities[ingredient.menu_item_id]

        if not required:
            return [], []

        inventory_stmt = select(InventoryItemModel).where(
            InventoryItemModel.business_id == self.business_id
        )
        inventory = {
            row.name.lower().strip(): row
            for row in (await self.session.execute(inventory_stmt)).scalars().all()
        }

        shortfalls: list[InventoryShortfall] = []
        deductions: list[tuple[InventoryItemModel, float]] = []
        for entry in required.values():
            stock = inventory.get(entry["name"].lower().strip())
            if stock is None:
                shortfalls.append(
                    InventoryShortfall(entry["name"], entry["quantity"], 0.0, entry["unit"])
                )
                continue

            available = _float(stock.current_stock) - _float(stock.reserved_quantity)
            if available < entry["quantity"]:
                shortfalls.append(
                    InventoryShortfall(stock.name, entry["quantity"], available, stock.unit)
                )
            else:
                deductions.append((stock, entry["quantity"]))

        return shortfalls, deductions

    async def delete(self, entity_id: UUID) -> None:
        model = await self._get_model(entity_id)
        await self.session.execute(
            sa_delete(OrderItemModel).where(OrderItemModel.order_id == entity_id)
        )
        await self.session.delete(model)
        await self.session.commit()
        await self._publish("DELETE", {"id": entity_id})


class ProductMappingRepository(_Repository[SavedProductMapping]):
    """Remembered product name -> menu item decisions."""

    entity = "product_mappings"
    model_cls = ProductMappingModel

    async def _to_entity(self, model: ProductMappingModel) -> SavedProductMapping:
        return SavedProductMapping(
            id=model.id,
            business_id=model.business_id,
            original_name=model.original_name,
            source_type=model.source_type,
            menu_item_id=model.menu_item_id,
            confidence=_float(model.confidence),
            is_manual=model.is_manual,
            last_used_at=model.last_used_at,
        )

    async def get_all(self, source_type: str | None = None) -> list[SavedProductMapping]:
        stmt = select(ProductMappingModel).where(
            ProductMappingModel.business_id == self.business_id
        )
        if source_type is not None:
            stmt = stmt.where(ProductMappingModel.source_type == source_type)
        rows = (await self.session.execute(stmt)).scalars().all()
        return [await self._to_entity(row) for row in rows]

    async def create(self, mapping: SavedProductMapping) -> SavedProductMapping:
        return await self.upsert(mapping)

    async def upsert(self, mapping: SavedProductMapping) -> SavedProductMapping:
        """Insert or replace the mapping for (original_name, source_type)."""
        stmt = select(ProductMappingModel).where(
            ProductMappingModel.business_id == self.business_id,
            ProductMappingModel.original_name == mapping.original_name,
            ProductMappingModel.source_type == mapping.source_type,
        )
        model = (await self.session.execute(stmt)).scalar_one_or_none()

        action = "UPDATE"
        if model is None:
            action = "INSERT"
            model = ProductMappingModel(
                id=mapping.id,
                business_id=self.business_id,
                original_name=mapping.original_name,
                source_type=mapping.source_type,
            )
            self.session.add(model)

        model.menu_item_id = mapping.menu_item_id
        model.confidence = _dec(mapping.confidence)
        model.is_manual = mapping.is_manual
        model.last_used_at = datetime.now(timezone.utc)

        await self.session.commit()
        saved = await self._to_entity(model)
        logger.debug(f"Saved product mapping {saved.original_name!r} -> {saved.menu_item_id}")
        await self._publish(action, saved)
        return saved
