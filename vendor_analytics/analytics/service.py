"""
Analytics Query Service

Read-only, scoped per-metric API. Every call:
1. resolves the effective store ids (fail-closed)
2. applies the guard assertions for the metric
3. reads grouped rows restricted to the effective store ids
4. verifies every returned row stays inside the scope
"""

from typing import Dict, Iterable, List, Sequence, Tuple, Union

from vendor_analytics.analytics.catalog import Metric
from vendor_analytics.analytics.guard import QueryGuard
from vendor_analytics.analytics.interfaces import MetricRowRepository, RawCountRow
from vendor_analytics.analytics.money import decimal_to_cents
from vendor_analytics.analytics.query import AnalyticsQuery
from vendor_analytics.analytics.refunds import allocate_ticket_only_refund_cents
from vendor_analytics.analytics.rows import (
    CountByStoreEventRow,
    CountByStoreRow,
    DataIntegrityFlag,
    DataIntegrityReport,
    MoneyByStoreEventCurrencyRow,
)
from vendor_analytics.analytics.scope import ScopeResolver

REFUNDS_EXCEED_GROSS = "refunds_exceed_gross"

MoneyKey = Tuple[int, int, str]
AnyRow = Union[MoneyByStoreEventCurrencyRow, CountByStoreEventRow, CountByStoreRow]


class AnalyticsQueryService:
    """
    Scoped analytics metrics.

    Example:
        service = AnalyticsQueryService(resolver, guard, SqlMetricRowRepository())
        rows = service.get_net_revenue(AnalyticsQuery(Scope.VENDOR, start_ts=t0, end_ts=t1, currency="AUD"))
    """

    def __init__(
        self,
        scope_resolver: ScopeResolver,
        guard: QueryGuard,
        repository: MetricRowRepository,
    ):
        self.scope_resolver = scope_resolver
        self.guard = guard
        self.repository = repository

    # =========================================================================
    # MONEY METRICS
    # =========================================================================

    def get_gross_revenue(self, query: AnalyticsQuery) -> List[MoneyByStoreEventCurrencyRow]:
        effective = self._authorize_money(query, Metric.GROSS_REVENUE)
        totals = self._gross_cents_by_key(query, effective)
        rows = [
            MoneyByStoreEventCurrencyRow(store_id=s, event_id=e, currency=c, amount_cents=cents)
            for (s, e, c), cents in sorted(totals.items())
        ]
        self._assert_rows(query, Metric.GROSS_REVENUE, rows, effective)
        return rows

    def get_refund_amount(self, query: AnalyticsQuery) -> List[MoneyByStoreEventCurrencyRow]:
        effective = self._authorize_money(query, Metric.REFUND_AMOUNT)
        totals = self._refund_cents_by_key(query, effective)
        rows = [
            MoneyByStoreEventCurrencyRow(store_id=s, event_id=e, currency=c, amount_cents=cents)
            for (s, e, c), cents in sorted(totals.items())
        ]
        self._assert_rows(query, Metric.REFUND_AMOUNT, rows, effective)
        return rows

    def get_net_revenue(self, query: AnalyticsQuery) -> List[MoneyByStoreEventCurrencyRow]:
        """
        Gross minus ticket-only refunds per store/event/currency.

        Net is clamped at zero; clamped rows carry the refunds_exceed_gross
        integrity flag.
        """
        effective = self._authorize_money(query, Metric.NET_REVENUE)
        gross = self._gross_cents_by_key(query, effective)
        refunds = self._refund_cents_by_key(query, effective)

        rows = []
        for store_id, event_id, currency in sorted(set(gross) | set(refunds)):
            net = gross.get((store_id, event_id, currency), 0) - refunds.get((store_id, event_id, currency), 0)
            flags = [DataIntegrityFlag(code=REFUNDS_EXCEED_GROSS)] if net < 0 else []
            rows.append(MoneyByStoreEventCurrencyRow(
                store_id=store_id,
                event_id=event_id,
                currency=currency,
                amount_cents=max(0, net),
                integrity_flags=flags,
            ))

        self._assert_rows(query, Metric.NET_REVENUE, rows, effective)
        return rows

    # =========================================================================
    # COUNT METRICS
    # =========================================================================

    def get_tickets_sold(self, query: AnalyticsQuery) -> List[CountByStoreEventRow]:
        effective = self.scope_resolver.resolve_effective_store_ids(query)
        self.guard.assert_valid_for_count_metric(query, Metric.TICKETS_SOLD)
        self.guard.assert_scope_rules(query, effective)
        self.guard.assert_order_item_anchoring_required(Metric.TICKETS_SOLD)

        raw = self.repository.tickets_sold_rows(effective, query.start_ts, query.end_ts)
        rows = self._count_by_store_event(raw)
        self._assert_rows(query, Metric.TICKETS_SOLD, rows, effective)
        return rows

    def get_reserved_rsvps(self, query: AnalyticsQuery) -> List[CountByStoreEventRow]:
        effective = self._authorize_count(query, Metric.RSVPS_RESERVED)
        raw = self.repository.reserved_rsvp_rows(effective, query.start_ts, query.end_ts)
        rows = self._count_by_store_event(raw)
        self._assert_rows(query, Metric.RSVPS_RESERVED, rows, effective)
        return rows

    def get_active_events(self, query: AnalyticsQuery) -> List[CountByStoreRow]:
        effective = self._authorize_count(query, Metric.ACTIVE_EVENTS)
        raw = self.repository.active_event_rows(effective, query.end_ts)
        rows = self._count_by_store(raw)
        self._assert_rows(query, Metric.ACTIVE_EVENTS, rows, effective)
        return rows

    def get_cancelled_events(self, query: AnalyticsQuery) -> List[CountByStoreRow]:
        effective = self._authorize_count(query, Metric.CANCELLED_EVENTS)
        raw = self.repository.cancelled_event_rows(effective, query.start_ts, query.end_ts)
        rows = self._count_by_store(raw)
        self._assert_rows(query, Metric.CANCELLED_EVENTS, rows, effective)
        return rows

    def get_integrity_report(
        self,
        metric: Metric,
        rows: Iterable[AnyRow],
        effective_store_ids: Iterable[int],
    ) -> DataIntegrityReport:
        """Gather row-level integrity flags for a metric run."""
        flags = [flag for row in rows for flag in row.integrity_flags]
        return DataIntegrityReport(
            metric=metric.value,
            store_ids=sorted(set(effective_store_ids)),
            flags=flags,
        )

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _authorize_money(self, query: AnalyticsQuery, metric: Metric) -> List[int]:
        effective = self.scope_resolver.resolve_effective_store_ids(query)
        self.guard.assert_scope_rules(query, effective)
        self.guard.assert_order_item_anchoring_required(metric)
        self.guard.assert_valid_for_money_metric(query, metric)
        return effective

    def _authorize_count(self, query: AnalyticsQuery, metric: Metric) -> List[int]:
        effective = self.scope_resolver.resolve_effective_store_ids(query)
        self.guard.assert_scope_rules(query, effective)
        self.guard.assert_valid_for_count_metric(query, metric)
        return effective

    def _gross_cents_by_key(self, query: AnalyticsQuery, effective: Sequence[int]) -> Dict[MoneyKey, int]:
        totals: Dict[MoneyKey, int] = {}
        for raw in self.repository.gross_revenue_rows(effective, query.start_ts, query.end_ts, query.currency):
            key = (int(raw.store_id), int(raw.event_id), raw.currency.upper())
            totals[key] = totals.get(key, 0) + decimal_to_cents(raw.amount)
        return totals

    def _refund_cents_by_key(self, query: AnalyticsQuery, effective: Sequence[int]) -> Dict[MoneyKey, int]:
        totals: Dict[MoneyKey, int] = {}
        for raw in self.repository.refund_rows(effective, query.start_ts, query.end_ts, query.currency):
            key = (int(raw.store_id), int(raw.event_id), raw.currency.upper())
            allocated = allocate_ticket_only_refund_cents(
                decimal_to_cents(raw.amount),
                decimal_to_cents(raw.ticket_subtotal),
                raw.donation_refunded,
                raw.refund_type,
            )
            totals[key] = totals.get(key, 0) + allocated
        return totals

    @staticmethod
    def _count_by_store_event(raw_rows: Iterable[RawCountRow]) -> List[CountByStoreEventRow]:
        counts: Dict[Tuple[int, int], int] = {}
        for raw in raw_rows:
            key = (int(raw.store_id), int(raw.event_id or 0))
            counts[key] = counts.get(key, 0) + int(raw.count)
        return [
            CountByStoreEventRow(store_id=s, event_id=e, count=c)
            for (s, e), c in sorted(counts.items())
        ]

    @staticmethod
    def _count_by_store(raw_rows: Iterable[RawCountRow]) -> List[CountByStoreRow]:
        counts: Dict[int, int] = {}
        for raw in raw_rows:
            counts[int(raw.store_id)] = counts.get(int(raw.store_id), 0) + int(raw.count)
        return [CountByStoreRow(store_id=s, count=c) for s, c in sorted(counts.items())]

    def _assert_rows(
        self,
        query: AnalyticsQuery,
        metric: Metric,
        rows: Sequence[AnyRow],
        effective: Sequence[int],
    ) -> None:
        keys = [(row.store_id, getattr(row, "event_id", None)) for row in rows]
        self.guard.assert_rows_within_scope(query, metric, keys, effective)
