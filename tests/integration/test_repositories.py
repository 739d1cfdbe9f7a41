"""
Integration Tests - SQL Repositories

Runs the analytics services against an in-memory SQLite reporting schema.
"""
from decimal import Decimal

import pytest

from vendor_analytics.analytics.admin import AdminRevenueQueryService
from vendor_analytics.analytics.guard import QueryGuard
from vendor_analytics.analytics.kpi import KpiAggregator
from vendor_analytics.analytics.query import AnalyticsQuery, Scope
from vendor_analytics.analytics.scope import ScopeResolver
from vendor_analytics.analytics.service import AnalyticsQueryService
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
from vendor_analytics.database.repositories import (
    SqlMetricRowRepository,
    SqlOrderItemRepository,
    SqlOrderRepository,
    SqlRefundRepository,
    SqlRsvpRepository,
    SqlStoreOwnershipLookup,
)
from vendor_analytics.serving.cache import InMemoryTagCache

from tests.stubs import ADMIN_ID, END_TS, START_TS, STORE_ID, VENDOR_ID, FixedClock, StubPermissions

OTHER_STORE_ID = 43


@pytest.fixture
def seeded(session_scope):
    """Vendor 7 owns store 42; vendor 8 owns store 43"""
    with session_scope() as session:
        session.add_all([
            Store(store_id=STORE_ID, owner_id=VENDOR_ID, type="online", name="Main"),
            Store(store_id=44, owner_id=VENDOR_ID, type="offline", name="Box office"),
            Store(store_id=OTHER_STORE_ID, owner_id=8, type="online", name="Other"),
        ])
        session.flush()
        session.add_all([
            Event(event_id=1, store_id=STORE_ID, title="Gig", status=EventStatus.PUBLISHED,
                  created=START_TS - 100, changed=START_TS - 100),
            Event(event_id=2, store_id=STORE_ID, title="Rained out", status=EventStatus.CANCELLED,
                  created=START_TS - 100, changed=START_TS + 10),
            Event(event_id=3, store_id=OTHER_STORE_ID, title="Other gig", status=EventStatus.PUBLISHED,
                  created=START_TS - 100, changed=START_TS - 100),
        ])
        session.flush()
        session.add_all([
            # Completed in window: 2 x 40.00 tickets + 20.00 boost
            Order(order_id=100, store_id=STORE_ID, state=OrderState.COMPLETED,
                  placed=START_TS + 100, total_price=Decimal("100.00"), currency_code="AUD"),
            Order(order_id=101, store_id=STORE_ID, state=OrderState.CANCELED,
                  placed=START_TS + 100, total_price=Decimal("50.00"), currency_code="AUD"),
            Order(order_id=102, store_id=STORE_ID, state=OrderState.COMPLETED,
                  placed=END_TS + 10, total_price=Decimal("70.00"), currency_code="AUD"),
            Order(order_id=103, store_id=OTHER_STORE_ID, state=OrderState.COMPLETED,
                  placed=START_TS + 200, total_price=Decimal("30.00"), currency_code="AUD"),
        ])
        session.flush()
        session.add_all([
            OrderItem(order_item_id=1, order_id=100, event_id=1, type=OrderItemType.TICKET,
                      quantity=2, unit_price=Decimal("40.00"), currency_code="AUD"),
            OrderItem(order_item_id=2, order_id=100, event_id=1, type=OrderItemType.RSVP,
                      quantity=1, unit_price=Decimal("0.00"), currency_code="AUD"),
            OrderItem(order_item_id=3, order_id=100, event_id=None, type=OrderItemType.BOOST,
                      quantity=1, unit_price=Decimal("20.00"), currency_code="AUD"),
            OrderItem(order_item_id=4, order_id=103, event_id=3, type=OrderItemType.TICKET,
                      quantity=1, unit_price=Decimal("30.00"), currency_code="AUD"),
            RefundLog(refund_id=1, order_id=100, event_id=1, status=RefundStatus.COMPLETED,
                      amount=Decimal("20.00"), currency_code="aud", created=START_TS + 300),
            RefundLog(refund_id=2, order_id=100, event_id=1, status=RefundStatus.PENDING,
                      amount=Decimal("5.00"), currency_code="AUD", created=START_TS + 300),
            RsvpSubmission(rsvp_id=1, event_id=1, status=RsvpStatus.CONFIRMED, created=START_TS + 5),
            RsvpSubmission(rsvp_id=2, event_id=1, status=RsvpStatus.CANCELLED, created=START_TS + 5),
            RsvpSubmission(rsvp_id=3, event_id=3, status=RsvpStatus.CONFIRMED, created=START_TS + 5),
        ])
    return session_scope


@pytest.fixture
def vendor_resolver(seeded):
    ownership = SqlStoreOwnershipLookup(seeded, store_type="online")
    return ScopeResolver(StubPermissions(VENDOR_ID), ownership, superuser_actor_id=None)


@pytest.fixture
def service(seeded, vendor_resolver):
    return AnalyticsQueryService(vendor_resolver, QueryGuard(), SqlMetricRowRepository(seeded))


def money_query(**overrides):
    params = dict(scope=Scope.VENDOR, start_ts=START_TS, end_ts=END_TS, currency="AUD")
    params.update(overrides)
    return AnalyticsQuery(**params)


class TestOwnership:

    def test_only_online_stores(self, seeded):
        lookup = SqlStoreOwnershipLookup(seeded, store_type="online")

        assert lookup.store_ids_owned_by(VENDOR_ID) == {STORE_ID}
        assert lookup.store_ids_owned_by(12345) == set()


class TestKpiRepositories:
    """Single-store sums and counts"""

    def test_order_totals(self, seeded):
        orders = SqlOrderRepository(seeded)

        assert orders.sum_completed_order_totals(STORE_ID, START_TS, END_TS, "AUD") == Decimal("100.00")
        assert orders.count_completed_orders(STORE_ID, START_TS, END_TS, "AUD") == 1

    def test_window_is_inclusive(self, seeded):
        orders = SqlOrderRepository(seeded)

        assert orders.count_completed_orders(STORE_ID, START_TS + 100, START_TS + 100, "AUD") == 1

    def test_refunds_match_currency_case_insensitively(self, seeded):
        refunds = SqlRefundRepository(seeded)

        assert refunds.sum_completed_refunds(STORE_ID, START_TS, END_TS, "AUD") == Decimal("20.00")

    def test_empty_sum_is_zero(self, seeded):
        refunds = SqlRefundRepository(seeded)

        assert refunds.sum_completed_refunds(STORE_ID, START_TS, END_TS, "USD") == Decimal("0.00")

    def test_paid_ticket_quantities(self, seeded):
        items = SqlOrderItemRepository(seeded)

        assert items.sum_paid_ticket_quantities(STORE_ID, START_TS, END_TS, "AUD") == 2

    def test_confirmed_rsvps(self, seeded):
        rsvps = SqlRsvpRepository(seeded)

        assert rsvps.count_confirmed_rsvps(STORE_ID, START_TS, END_TS) == 1


def test_vendor_kpi_card(seeded, vendor_resolver):
    aggregator = KpiAggregator(
        vendor_resolver,
        QueryGuard(),
        SqlOrderRepository(seeded),
        SqlRefundRepository(seeded),
        SqlOrderItemRepository(seeded),
        SqlRsvpRepository(seeded),
        InMemoryTagCache(FixedClock()),
        clock=FixedClock(),
    )

    result = aggregator.get_kpis_for_store(STORE_ID, START_TS, END_TS, "AUD")

    assert result.revenue_net_cents == 8000
    assert result.orders_count == 1
    assert result.tickets_sold == 2
    assert result.rsvps_confirmed == 1


class TestMetricRows:
    """Grouped metrics through the query service"""

    def test_gross_revenue_excludes_boost_and_other_stores(self, service):
        rows = service.get_gross_revenue(money_query())

        assert [(r.store_id, r.event_id, r.currency, r.amount_cents) for r in rows] == [
            (STORE_ID, 1, "AUD", 8000),
        ]

    def test_net_revenue(self, service):
        rows = service.get_net_revenue(money_query())

        assert [(r.event_id, r.amount_cents) for r in rows] == [(1, 6000)]

    def test_tickets_sold(self, service):
        rows = service.get_tickets_sold(money_query(currency=None))

        assert [(r.event_id, r.count) for r in rows] == [(1, 1)]

    def test_reserved_rsvps(self, service):
        rows = service.get_reserved_rsvps(money_query(currency=None))

        assert [(r.store_id, r.event_id, r.count) for r in rows] == [(STORE_ID, 1, 1)]

    def test_active_events(self, service):
        rows = service.get_active_events(money_query(start_ts=None, currency=None))

        assert [(r.store_id, r.count) for r in rows] == [(STORE_ID, 1)]

    def test_cancelled_events(self, service):
        rows = service.get_cancelled_events(money_query(currency=None))

        assert [(r.store_id, r.count) for r in rows] == [(STORE_ID, 1)]


def test_admin_platform_revenue(seeded):
    permissions = StubPermissions(ADMIN_ID, {"administer commerce_store"})
    resolver = ScopeResolver(
        permissions,
        SqlStoreOwnershipLookup(seeded, store_type="online"),
        admin_permissions=["administer commerce_store"],
        superuser_actor_id=None,
    )
    repository = SqlMetricRowRepository(seeded)
    admin = AdminRevenueQueryService(
        AnalyticsQueryService(resolver, QueryGuard(), repository), resolver, repository
    )

    revenue = admin.get_platform_revenue([STORE_ID, OTHER_STORE_ID], START_TS, END_TS, "AUD")

    assert revenue.ticket_net_cents == 9000
    assert revenue.boost_net_cents == 2000
    assert revenue.total_cents == 11000


def test_card_revenue_includes_boost_lines_grouped_revenue_does_not(seeded, vendor_resolver, service):
    aggregator = KpiAggregator(
        vendor_resolver,
        QueryGuard(),
        SqlOrderRepository(seeded),
        SqlRefundRepository(seeded),
        SqlOrderItemRepository(seeded),
        SqlRsvpRepository(seeded),
        InMemoryTagCache(FixedClock()),
        clock=FixedClock(),
    )

    card = aggregator.get_kpis_for_store(STORE_ID, START_TS, END_TS, "AUD")
    grouped = service.get_net_revenue(money_query())

    # Order total 100.00 carries the 20.00 boost line
    assert card.revenue_net_cents == 8000
    assert sum(row.amount_cents for row in grouped) == 6000
