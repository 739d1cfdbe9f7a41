"""
SQL Repositories

SQLAlchemy implementations of the analytics collaborator interfaces:
- SqlStoreOwnershipLookup: stores owned by an actor
- SqlOrderRepository / SqlRefundRepository / SqlOrderItemRepository /
  SqlRsvpRepository: single-store KPI sums and counts
- SqlMetricRowRepository: grouped metric rows for the query service

Every window filter is inclusive on both ends. Money sums are returned as
Decimal and converted to cents by the caller.
"""

from contextlib import AbstractContextManager
from decimal import Decimal
from typing import Callable, List, Optional, Sequence, Set

from sqlalchemy import Numeric, and_, func, select, type_coerce

from vendor_analytics.analytics.interfaces import RawCountRow, RawMoneyRow, RawRefundRow
from vendor_analytics.config import get_settings
from vendor_analytics.database.connection import get_db
from vendor_analytics.database.models import (
    Event,
    EventStatus,
    Order,
    OrderItem,
    OrderItemType,
    OrderState,
    RefundLog,
    RefundStatus,
    RsvpStatus,
    RsvpSubmission,
    Store,
)

SessionScope = Callable[[], AbstractContextManager]


def _money_sum(expression):
    """SUM of a money expression, 0 when empty, returned as Decimal(12, 2)"""
    return type_coerce(func.coalesce(func.sum(expression), 0), Numeric(12, 2))


def _line_total():
    return OrderItem.unit_price * OrderItem.quantity


def _completed_in_window(start_ts: int, end_ts: int):
    return and_(
        Order.state == OrderState.COMPLETED,
        Order.placed >= start_ts,
        Order.placed <= end_ts,
    )


def _paid_ticket_item():
    # Free / RSVP items have no price; boost items are platform revenue
    return and_(
        OrderItem.unit_price > 0,
        OrderItem.type != OrderItemType.BOOST,
    )


class _SqlRepository:
    """Shared session handling"""

    def __init__(self, session_scope: Optional[SessionScope] = None):
        self.session_scope = session_scope or get_db

    def _scalar(self, stmt):
        with self.session_scope() as session:
            return session.execute(stmt).scalar()


# =============================================================================
# IDENTITY
# =============================================================================

class SqlStoreOwnershipLookup(_SqlRepository):
    """Stores owned by an actor, restricted to the eligible store type"""

    def __init__(self, session_scope: Optional[SessionScope] = None, store_type: Optional[str] = None):
        super().__init__(session_scope)
        self.store_type = store_type or get_settings().analytics.vendor_store_type

    def store_ids_owned_by(self, actor_id: int) -> Set[int]:
        stmt = select(Store.store_id).where(
            Store.owner_id == actor_id,
            Store.type == self.store_type,
        )
        with self.session_scope() as session:
            return {int(store_id) for store_id in session.execute(stmt).scalars()}


# =============================================================================
# KPI REPOSITORIES
# =============================================================================

class SqlOrderRepository(_SqlRepository):

    def sum_completed_order_totals(
        self, store_id: int, start_ts: int, end_ts: int, currency: str
    ) -> Decimal:
        stmt = select(_money_sum(Order.total_price)).where(
            Order.store_id == store_id,
            _completed_in_window(start_ts, end_ts),
            Order.currency_code == currency,
        )
        return self._scalar(stmt)

    def count_completed_orders(
        self, store_id: int, start_ts: int, end_ts: int, currency: str
    ) -> int:
        stmt = select(func.count(Order.order_id)).where(
            Order.store_id == store_id,
            _completed_in_window(start_ts, end_ts),
            Order.currency_code == currency,
        )
        return int(self._scalar(stmt) or 0)


class SqlRefundRepository(_SqlRepository):

    def sum_completed_refunds(
        self, store_id: int, start_ts: int, end_ts: int, currency: Optional[str]
    ) -> Decimal:
        stmt = (
            select(_money_sum(RefundLog.amount))
            .join(Order, Order.order_id == RefundLog.order_id)
            .where(
                Order.store_id == store_id,
                _completed_in_window(start_ts, end_ts),
                RefundLog.status == RefundStatus.COMPLETED,
            )
        )
        if currency is not None:
            # Historical rows store mixed-case currency codes
            stmt = stmt.where(func.upper(RefundLog.currency_code) == currency.upper())
        return self._scalar(stmt)


class SqlOrderItemRepository(_SqlRepository):

    def sum_paid_ticket_quantities(
        self, store_id: int, start_ts: int, end_ts: int, currency: str
    ) -> int:
        # Not restricted to a single event: all events of the store count
        stmt = (
            select(func.coalesce(func.sum(OrderItem.quantity), 0))
            .join(Order, Order.order_id == OrderItem.order_id)
            .where(
                Order.store_id == store_id,
                _completed_in_window(start_ts, end_ts),
                _paid_ticket_item(),
                OrderItem.currency_code == currency,
            )
        )
        return int(self._scalar(stmt) or 0)


class SqlRsvpRepository(_SqlRepository):

    def count_confirmed_rsvps(self, store_id: int, start_ts: int, end_ts: int) -> int:
        stmt = (
            select(func.count(RsvpSubmission.rsvp_id))
            .join(Event, Event.event_id == RsvpSubmission.event_id)
            .where(
                Event.store_id == store_id,
                RsvpSubmission.status == RsvpStatus.CONFIRMED,
                RsvpSubmission.created >= start_ts,
                RsvpSubmission.created <= end_ts,
            )
        )
        return int(self._scalar(stmt) or 0)


# =============================================================================
# GROUPED METRIC ROWS
# =============================================================================

class SqlMetricRowRepository(_SqlRepository):
    """
    Grouped metric queries. Store isolation is enforced through the
    order item -> event -> store linkage and an IN filter on the effective
    store ids; an empty id list returns no rows.
    """

    def gross_revenue_rows(
        self, store_ids: Sequence[int], start_ts: int, end_ts: int, currency: str
    ) -> List[RawMoneyRow]:
        if not store_ids:
            return []

        stmt = (
            select(
                Event.store_id,
                OrderItem.event_id,
                OrderItem.currency_code,
                _money_sum(_line_total()).label("amount"),
            )
            .join(Order, Order.order_id == OrderItem.order_id)
            .join(Event, Event.event_id == OrderItem.event_id)
            .where(
                _completed_in_window(start_ts, end_ts),
                _paid_ticket_item(),
                OrderItem.currency_code == currency,
                Event.store_id.in_(list(store_ids)),
            )
            .group_by(Event.store_id, OrderItem.event_id, OrderItem.currency_code)
        )
        with self.session_scope() as session:
            return [
                RawMoneyRow(store_id=row[0], event_id=row[1], currency=row[2], amount=row[3])
                for row in session.execute(stmt)
            ]

    def refund_rows(
        self, store_ids: Sequence[int], start_ts: int, end_ts: int, currency: str
    ) -> List[RawRefundRow]:
        if not store_ids:
            return []

        ticket_item = OrderItem.__table__.alias("ticket_item")
        ticket_subtotal = (
            select(_money_sum(ticket_item.c.unit_price * ticket_item.c.quantity))
            .where(
                ticket_item.c.order_id == RefundLog.order_id,
                ticket_item.c.event_id == RefundLog.event_id,
                ticket_item.c.unit_price > 0,
                ticket_item.c.type != OrderItemType.BOOST,
            )
            .scalar_subquery()
        )

        stmt = (
            select(
                Event.store_id,
                RefundLog.event_id,
                RefundLog.currency_code,
                RefundLog.amount,
                type_coerce(ticket_subtotal, Numeric(12, 2)).label("ticket_subtotal"),
                RefundLog.donation_refunded,
                RefundLog.refund_type,
            )
            .join(Order, Order.order_id == RefundLog.order_id)
            .join(Event, Event.event_id == RefundLog.event_id)
            .where(
                _completed_in_window(start_ts, end_ts),
                RefundLog.status == RefundStatus.COMPLETED,
                func.upper(RefundLog.currency_code) == currency.upper(),
                Event.store_id.in_(list(store_ids)),
            )
            .order_by(RefundLog.refund_id)
        )
        with self.session_scope() as session:
            return [
                RawRefundRow(
                    store_id=row[0],
                    event_id=row[1],
                    currency=row[2].upper(),
                    amount=row[3],
                    ticket_subtotal=row[4],
                    donation_refunded=bool(row[5]),
                    refund_type=row[6] or "full",
                )
                for row in session.execute(stmt)
            ]

    def tickets_sold_rows(
        self, store_ids: Sequence[int], start_ts: int, end_ts: int
    ) -> List[RawCountRow]:
        if not store_ids:
            return []

        # One per paid line item, regardless of quantity
        stmt = (
            select(Event.store_id, OrderItem.event_id, func.count(OrderItem.order_item_id))
            .join(Order, Order.order_id == OrderItem.order_id)
            .join(Event, Event.event_id == OrderItem.event_id)
            .where(
                _completed_in_window(start_ts, end_ts),
                _paid_ticket_item(),
                Event.store_id.in_(list(store_ids)),
            )
            .group_by(Event.store_id, OrderItem.event_id)
        )
        return self._count_rows(stmt, with_event=True)

    def reserved_rsvp_rows(
        self, store_ids: Sequence[int], start_ts: int, end_ts: int
    ) -> List[RawCountRow]:
        if not store_ids:
            return []

        stmt = (
            select(Event.store_id, RsvpSubmission.event_id, func.count(RsvpSubmission.rsvp_id))
            .join(Event, Event.event_id == RsvpSubmission.event_id)
            .where(
                RsvpSubmission.status == RsvpStatus.CONFIRMED,
                RsvpSubmission.created >= start_ts,
                RsvpSubmission.created <= end_ts,
                Event.store_id.in_(list(store_ids)),
            )
            .group_by(Event.store_id, RsvpSubmission.event_id)
        )
        return self._count_rows(stmt, with_event=True)

    def active_event_rows(self, store_ids: Sequence[int], at_ts: int) -> List[RawCountRow]:
        if not store_ids:
            return []

        stmt = (
            select(Event.store_id, func.count(Event.event_id))
            .where(
                Event.status == EventStatus.PUBLISHED,
                Event.created <= at_ts,
                Event.store_id.in_(list(store_ids)),
            )
            .group_by(Event.store_id)
        )
        return self._count_rows(stmt, with_event=False)

    def cancelled_event_rows(
        self, store_ids: Sequence[int], start_ts: int, end_ts: int
    ) -> List[RawCountRow]:
        if not store_ids:
            return []

        stmt = (
            select(Event.store_id, func.count(Event.event_id))
            .where(
                Event.status == EventStatus.CANCELLED,
                Event.changed >= start_ts,
                Event.changed <= end_ts,
                Event.store_id.in_(list(store_ids)),
            )
            .group_by(Event.store_id)
        )
        return self._count_rows(stmt, with_event=False)

    def boost_revenue(self, start_ts: int, end_ts: int, currency: str) -> Decimal:
        stmt = (
            select(_money_sum(_line_total()))
            .join(Order, Order.order_id == OrderItem.order_id)
            .where(
                _completed_in_window(start_ts, end_ts),
                OrderItem.type == OrderItemType.BOOST,
                OrderItem.currency_code == currency,
            )
        )
        return self._scalar(stmt)

    def _count_rows(self, stmt, with_event: bool) -> List[RawCountRow]:
        with self.session_scope() as session:
            rows = session.execute(stmt).all()

        if with_event:
            return [
                RawCountRow(store_id=int(row[0]), event_id=int(row[1]), count=int(row[2] or 0))
                for row in rows
            ]
        return [RawCountRow(store_id=int(row[0]), count=int(row[1] or 0)) for row in rows]
