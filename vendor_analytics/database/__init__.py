"""
Database Module
"""
from .connection import close_database, create_schema, get_db, get_engine, init_database
from .models import Base
from .repositories import (
    SqlMetricRowRepository,
    SqlOrderItemRepository,
    SqlOrderRepository,
    SqlRefundRepository,
    SqlRsvpRepository,
    SqlStoreOwnershipLookup,
)

__all__ = [
    "init_database",
    "close_database",
    "create_schema",
    "get_db",
    "get_engine",
    "Base",
    "SqlStoreOwnershipLookup",
    "SqlOrderRepository",
    "SqlRefundRepository",
    "SqlOrderItemRepository",
    "SqlRsvpRepository",
    "SqlMetricRowRepository",
]
