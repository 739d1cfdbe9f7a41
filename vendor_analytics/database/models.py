"""
Database Models - Reporting Schema

Reference storage schema for the analytics repositories:

Dimension Tables:
- Store: Vendor stores with owner and store type
- Event: Events sold through a store

Fact Tables:
- Order: Checkout orders (grain: order)
- OrderItem: Line items (grain: order item), ticket / boost / rsvp
- RefundLog: Refunds recorded against orders
- RsvpSubmission: Free reservations for events

Timestamps are UNIX epoch seconds (UTC). Money is Numeric(12, 2).
"""

from decimal import Decimal
from enum import Enum
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


# =============================================================================
# ENUMERATIONS
# =============================================================================

class OrderState(str, Enum):
    """Order workflow state"""
    DRAFT = "draft"
    PLACED = "placed"
    COMPLETED = "completed"
    CANCELED = "canceled"


class OrderItemType(str, Enum):
    """Order item bundle"""
    TICKET = "ticket"
    RSVP = "rsvp"
    BOOST = "boost"  # event promotion bought by the vendor, platform revenue


class RefundStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class RsvpStatus(str, Enum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    WAITLIST = "waitlist"


class EventStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    CANCELLED = "cancelled"


# =============================================================================
# DIMENSION TABLES
# =============================================================================

class Store(Base):
    """
    Store Dimension Table

    One vendor may own several stores; only stores of the eligible type
    count for vendor scope.
    """
    __tablename__ = "stores"

    store_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    owner_id: Mapped[int] = mapped_column(Integer, nullable=False)
    type: Mapped[str] = mapped_column(String(32), default="online", nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)

    # Relationships
    events: Mapped[List["Event"]] = relationship(back_populates="store")
    orders: Mapped[List["Order"]] = relationship(back_populates="store")

    __table_args__ = (
        Index("ix_stores_owner_type", "owner_id", "type"),
    )


class Event(Base):
    """
    Event Dimension Table
    """
    __tablename__ = "events"

    event_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    store_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("stores.store_id"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    status: Mapped[EventStatus] = mapped_column(
        SQLEnum(EventStatus), default=EventStatus.PUBLISHED
    )
    created: Mapped[int] = mapped_column(Integer, nullable=False)
    changed: Mapped[int] = mapped_column(Integer, nullable=False)

    # Relationships
    store: Mapped["Store"] = relationship(back_populates="events")

    __table_args__ = (
        Index("ix_events_store_status", "store_id", "status"),
    )


# =============================================================================
# FACT TABLES
# =============================================================================

class Order(Base):
    """
    Order Fact Table

    Grain at order level. total_price is the order total in currency_code.
    """
    __tablename__ = "orders"

    order_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    store_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("stores.store_id"), nullable=False
    )
    state: Mapped[OrderState] = mapped_column(
        SQLEnum(OrderState), default=OrderState.DRAFT
    )
    placed: Mapped[Optional[int]] = mapped_column(Integer)
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency_code: Mapped[str] = mapped_column(String(3), nullable=False)

    # Relationships
    store: Mapped["Store"] = relationship(back_populates="orders")
    items: Mapped[List["OrderItem"]] = relationship(back_populates="order")
    refunds: Mapped[List["RefundLog"]] = relationship(back_populates="order")

    __table_args__ = (
        Index("ix_orders_store_state_placed", "store_id", "state", "placed"),
    )


class OrderItem(Base):
    """
    Order Item Fact Table

    Line-item detail; event_id links ticket items to the event they admit to.
    """
    __tablename__ = "order_items"

    order_item_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    order_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("orders.order_id"), nullable=False
    )
    event_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("events.event_id")
    )
    type: Mapped[OrderItemType] = mapped_column(
        SQLEnum(OrderItemType), default=OrderItemType.TICKET
    )
    quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency_code: Mapped[str] = mapped_column(String(3), nullable=False)

    # Relationships
    order: Mapped["Order"] = relationship(back_populates="items")

    __table_args__ = (
        Index("ix_order_items_order", "order_id"),
        Index("ix_order_items_event", "event_id"),
    )


class RefundLog(Base):
    """
    Refund Fact Table

    Historical rows may store the currency code in mixed case.
    """
    __tablename__ = "refund_log"

    refund_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    order_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("orders.order_id"), nullable=False
    )
    event_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("events.event_id")
    )
    status: Mapped[RefundStatus] = mapped_column(
        SQLEnum(RefundStatus), default=RefundStatus.PENDING
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency_code: Mapped[str] = mapped_column(String(3), nullable=False)
    refund_type: Mapped[str] = mapped_column(String(16), default="full")
    donation_refunded: Mapped[bool] = mapped_column(Boolean, default=False)
    created: Mapped[int] = mapped_column(Integer, nullable=False)

    # Relationships
    order: Mapped["Order"] = relationship(back_populates="refunds")

    __table_args__ = (
        Index("ix_refund_log_order_status", "order_id", "status"),
    )


class RsvpSubmission(Base):
    """
    RSVP Fact Table
    """
    __tablename__ = "rsvp_submissions"

    rsvp_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    event_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("events.event_id"), nullable=False
    )
    status: Mapped[RsvpStatus] = mapped_column(
        SQLEnum(RsvpStatus), default=RsvpStatus.CONFIRMED
    )
    created: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        Index("ix_rsvp_submissions_event_status", "event_id", "status"),
    )
