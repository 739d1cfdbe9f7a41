"""
KPI Aggregator

Computes the vendor KPI card (net revenue, orders, tickets sold, confirmed
RSVPs) for one store and window.

- Authorization goes through the scope resolver and query guard (fail-closed)
- Money math is integer cents only
- Results are cached with a TTL and invalidated by tags
- A failing data source degrades only its own number to zero (fail-soft)
"""

from typing import Any, Callable, List, Optional, Union

import structlog
from pydantic import ValidationError

from vendor_analytics.analytics.catalog import Metric
from vendor_analytics.analytics.guard import QueryGuard
from vendor_analytics.analytics.interfaces import (
    CacheBackend,
    Clock,
    OrderItemRepository,
    OrderRepository,
    RefundRepository,
    RsvpRepository,
    SystemClock,
)
from vendor_analytics.analytics.money import decimal_to_cents
from vendor_analytics.analytics.query import AnalyticsQuery, Scope
from vendor_analytics.analytics.rows import KpiResult, TimeWindow
from vendor_analytics.analytics.scope import ScopeResolver
from vendor_analytics.config import get_settings

SECONDS_PER_DAY = 24 * 60 * 60

# Write paths purge these tags when orders, order items or RSVPs change
KPI_CACHE_TAGS = ("order-list", "order-item-list", "rsvp-list")


def store_cache_tag(store_id: int) -> str:
    return f"store:{store_id}"


class KpiAggregator:
    """
    Vendor KPI aggregation service.

    Example:
        aggregator = KpiAggregator(resolver, guard, orders, refunds, items, rsvps, cache)
        window = aggregator.get_default_range_last_30_days()
        kpis = aggregator.get_kpis_for_store(42, window.start, window.end, "AUD")
    """

    def __init__(
        self,
        scope_resolver: ScopeResolver,
        guard: QueryGuard,
        orders: OrderRepository,
        refunds: RefundRepository,
        order_items: OrderItemRepository,
        rsvps: RsvpRepository,
        cache: CacheBackend,
        clock: Optional[Clock] = None,
        logger: Optional[Any] = None,
        cache_ttl_seconds: Optional[int] = None,
        cache_prefix: Optional[str] = None,
        default_range_days: Optional[int] = None,
    ):
        settings = get_settings().analytics
        self.scope_resolver = scope_resolver
        self.guard = guard
        self.orders = orders
        self.refunds = refunds
        self.order_items = order_items
        self.rsvps = rsvps
        self.cache = cache
        self.clock = clock or SystemClock()
        self.logger = logger or structlog.get_logger(__name__)
        self.cache_ttl_seconds = cache_ttl_seconds or settings.kpi_cache_ttl_seconds
        self.cache_prefix = cache_prefix or settings.kpi_cache_prefix
        self.default_currency = settings.default_currency
        self.default_range_days = default_range_days or settings.default_range_days

    def get_kpis_for_store(
        self,
        store_id: int,
        start_ts: int,
        end_ts: int,
        currency: Optional[str] = None,
        scope: Union[Scope, str] = Scope.VENDOR,
    ) -> KpiResult:
        """
        KPI values for one store over a window.

        Args:
            store_id: Store to report on; must be inside the caller's scope
            start_ts: Window start (inclusive), epoch seconds
            end_ts: Window end (inclusive), epoch seconds
            currency: ISO currency code, defaults to the configured currency
            scope: Scope.VENDOR (own stores) or Scope.ADMIN

        Returns:
            KpiResult

        Raises:
            AnalyticsError: Any authorization or validation failure
        """
        currency = currency if currency is not None else self.default_currency
        self._authorize(store_id, start_ts, end_ts, currency, scope)

        key = self.cache_key(store_id, start_ts, end_ts, currency)
        cached = self.cache.get(key)
        if cached is not None:
            try:
                return KpiResult(**cached)
            except (TypeError, ValidationError):
                self.logger.warning("Discarding malformed KPI cache entry", store_id=store_id)

        gross_cents = self._fail_soft(
            "gross_revenue", store_id,
            lambda: decimal_to_cents(
                self.orders.sum_completed_order_totals(store_id, start_ts, end_ts, currency)
            ),
        )
        refunded_cents = self._fail_soft(
            "refunds", store_id,
            lambda: decimal_to_cents(
                self.refunds.sum_completed_refunds(store_id, start_ts, end_ts, currency)
            ),
        )
        orders_count = self._fail_soft(
            "orders_count", store_id,
            lambda: int(self.orders.count_completed_orders(store_id, start_ts, end_ts, currency)),
        )
        tickets_sold = self._fail_soft(
            "tickets_sold", store_id,
            lambda: int(self.order_items.sum_paid_ticket_quantities(store_id, start_ts, end_ts, currency)),
        )
        rsvps_confirmed = self._fail_soft(
            "rsvps_confirmed", store_id,
            lambda: int(self.rsvps.count_confirmed_rsvps(store_id, start_ts, end_ts)),
        )

        result = KpiResult(
            # Refunds larger than gross (partial period, data entry) clamp to 0
            revenue_net_cents=max(0, gross_cents - refunded_cents),
            orders_count=max(0, orders_count),
            tickets_sold=max(0, tickets_sold),
            rsvps_confirmed=max(0, rsvps_confirmed),
            currency=currency,
        )

        self.cache.set(key, result.model_dump(), self.cache_ttl_seconds, self.cache_tags(store_id))
        return result

    def get_default_range_last_30_days(self, now_ts: Optional[int] = None) -> TimeWindow:
        """
        Rolling window of the configured length (30 days by default) ending now.

        No validation is done here; the window still goes through the guard.
        """
        end = int(now_ts) if now_ts is not None else self.clock.now()
        return TimeWindow(start=end - self.default_range_days * SECONDS_PER_DAY, end=end)

    def cache_key(self, store_id: int, start_ts: int, end_ts: int, currency: str) -> str:
        return ":".join([self.cache_prefix, str(store_id), str(start_ts), str(end_ts), currency])

    def cache_tags(self, store_id: int) -> List[str]:
        return list(KPI_CACHE_TAGS) + [store_cache_tag(store_id)]

    def invalidate_store(self, store_id: int) -> int:
        """Purge every cached KPI card for a store"""
        return self.cache.invalidate_tags([store_cache_tag(store_id)])

    def _authorize(
        self,
        store_id: int,
        start_ts: int,
        end_ts: int,
        currency: str,
        scope: Union[Scope, str],
    ) -> None:
        money_query = AnalyticsQuery(
            scope=scope,
            store_ids=(store_id,) if scope == Scope.ADMIN else (),
            start_ts=start_ts,
            end_ts=end_ts,
            currency=currency,
        )
        count_query = money_query.with_currency(None)

        effective_store_ids = self.scope_resolver.resolve_effective_store_ids(money_query)
        self.guard.assert_scope_rules(money_query, effective_store_ids)
        self.guard.assert_store_in_scope(money_query, Metric.NET_REVENUE, store_id, effective_store_ids)
        self.guard.assert_valid_for_money_metric(money_query, Metric.NET_REVENUE)
        self.guard.assert_valid_for_count_metric(count_query, Metric.TICKETS_SOLD)

    def _fail_soft(self, sub_metric: str, store_id: int, compute: Callable[[], int]) -> int:
        """Run one sub-metric; a data-source failure reads as zero."""
        try:
            return compute()
        except Exception as e:
            self.logger.warning(
                "KPI sub-metric unavailable, reporting zero",
                sub_metric=sub_metric,
                store_id=store_id,
                error_type=type(e).__name__,
            )
            return 0
