"""
Collaborator Interfaces

Contracts for everything the analytics core consumes but does not own:
permissions, store ownership, the order/refund/order-item/RSVP storage,
the cache store and the clock. Implementations are passed in explicitly
through constructors.
"""

import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence, Set, Union

DecimalAmount = Union[str, Decimal, None]


# =============================================================================
# IDENTITY
# =============================================================================

class PermissionChecker(Protocol):
    """Permissions of the authenticated caller"""

    def current_actor_id(self) -> int:
        ...

    def has_permission(self, actor_id: int, permission: str) -> bool:
        ...


class StoreOwnershipLookup(Protocol):
    """Stores owned by an actor, restricted to the eligible store type"""

    def store_ids_owned_by(self, actor_id: int) -> Set[int]:
        ...


# =============================================================================
# KPI REPOSITORIES
# =============================================================================

class OrderRepository(Protocol):

    def sum_completed_order_totals(
        self, store_id: int, start_ts: int, end_ts: int, currency: str
    ) -> DecimalAmount:
        """Decimal sum of completed order totals placed in the window"""
        ...

    def count_completed_orders(
        self, store_id: int, start_ts: int, end_ts: int, currency: str
    ) -> int:
        ...


class RefundRepository(Protocol):

    def sum_completed_refunds(
        self, store_id: int, start_ts: int, end_ts: int, currency: Optional[str]
    ) -> DecimalAmount:
        """Decimal sum of completed refunds joined to qualifying orders"""
        ...


class OrderItemRepository(Protocol):

    def sum_paid_ticket_quantities(
        self, store_id: int, start_ts: int, end_ts: int, currency: str
    ) -> int:
        """Quantity of order items with unit price > 0 on completed orders"""
        ...


class RsvpRepository(Protocol):

    def count_confirmed_rsvps(self, store_id: int, start_ts: int, end_ts: int) -> int:
        ...


# =============================================================================
# GROUPED METRIC ROWS
# =============================================================================

@dataclass(frozen=True)
class RawMoneyRow:
    """Un-converted money aggregate keyed by store + event + currency"""
    store_id: int
    event_id: int
    currency: str
    amount: DecimalAmount


@dataclass(frozen=True)
class RawRefundRow:
    """A completed refund with the ticket subtotal of its order for the event"""
    store_id: int
    event_id: int
    currency: str
    amount: DecimalAmount
    ticket_subtotal: DecimalAmount
    donation_refunded: bool = False
    refund_type: str = "full"


@dataclass(frozen=True)
class RawCountRow:
    store_id: int
    count: int
    event_id: Optional[int] = None


class MetricRowRepository(Protocol):
    """Grouped metric queries, always restricted to the given store ids"""

    def gross_revenue_rows(
        self, store_ids: Sequence[int], start_ts: int, end_ts: int, currency: str
    ) -> List[RawMoneyRow]:
        ...

    def refund_rows(
        self, store_ids: Sequence[int], start_ts: int, end_ts: int, currency: str
    ) -> List[RawRefundRow]:
        ...

    def tickets_sold_rows(
        self, store_ids: Sequence[int], start_ts: int, end_ts: int
    ) -> List[RawCountRow]:
        ...

    def reserved_rsvp_rows(
        self, store_ids: Sequence[int], start_ts: int, end_ts: int
    ) -> List[RawCountRow]:
        ...

    def active_event_rows(self, store_ids: Sequence[int], at_ts: int) -> List[RawCountRow]:
        ...

    def cancelled_event_rows(
        self, store_ids: Sequence[int], start_ts: int, end_ts: int
    ) -> List[RawCountRow]:
        ...

    def boost_revenue(self, start_ts: int, end_ts: int, currency: str) -> DecimalAmount:
        """Decimal sum of completed boost items (platform revenue, not vendor)"""
        ...


# =============================================================================
# INFRASTRUCTURE
# =============================================================================

class CacheBackend(Protocol):
    """Key/value cache with TTL and tag-based invalidation"""

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        ...

    def set(self, key: str, value: Dict[str, Any], ttl_seconds: int, tags: Iterable[str]) -> bool:
        ...

    def invalidate_tags(self, tags: Iterable[str]) -> int:
        ...


class Clock(Protocol):

    def now(self) -> int:
        """Current time in epoch seconds"""
        ...


class SystemClock:
    """Wall clock"""

    def now(self) -> int:
        return int(time.time())
