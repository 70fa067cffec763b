"""Database layer for NomNom with async SQLAlchemy."""

from nomnom.db.connection import close_db, get_session, init_db
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

__all__ = [
    "Base",
    "MenuItemModel",
    "MenuItemIngredientModel",
    "ProductModel",
    "InventoryItemModel",
    "OrderModel",
    "OrderItemModel",
    "ProductMappingModel",
    "get_session",
    "init_db",
    "close_db",
]
