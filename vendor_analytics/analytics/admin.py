"""
Admin Revenue Query Service

Platform revenue for the admin dashboard: ticket net revenue (boost items
excluded) plus boost net revenue. Admin surface only; never used from a
vendor context.
"""

from typing import Sequence

from vendor_analytics.analytics.interfaces import MetricRowRepository
from vendor_analytics.analytics.money import decimal_to_cents
from vendor_analytics.analytics.query import AnalyticsQuery, Scope
from vendor_analytics.analytics.rows import PlatformRevenue
from vendor_analytics.analytics.scope import ScopeResolver
from vendor_analytics.analytics.service import AnalyticsQueryService


class AdminRevenueQueryService:
    """Admin-only platform revenue aggregation."""

    def __init__(
        self,
        query_service: AnalyticsQueryService,
        scope_resolver: ScopeResolver,
        repository: MetricRowRepository,
    ):
        self.query_service = query_service
        self.scope_resolver = scope_resolver
        self.repository = repository

    def get_platform_revenue(
        self,
        store_ids: Sequence[int],
        start_ts: int,
        end_ts: int,
        currency: str,
    ) -> PlatformRevenue:
        """
        Platform revenue for the given stores and window.

        Args:
            store_ids: Stores to include (admin scope)
            start_ts: Range start (inclusive), epoch seconds
            end_ts: Range end (inclusive), epoch seconds
            currency: ISO currency code

        Returns:
            PlatformRevenue with total = ticket net + boost net

        Raises:
            AccessDeniedError: Current actor is not an admin
        """
        self.scope_resolver.require_admin()

        ticket_net_cents = self.get_ticket_net_cents(store_ids, start_ts, end_ts, currency)
        boost_net_cents = self.get_boost_net_cents(start_ts, end_ts, currency)
        return PlatformRevenue(
            ticket_net_cents=ticket_net_cents,
            boost_net_cents=boost_net_cents,
            total_cents=ticket_net_cents + boost_net_cents,
        )

    def get_ticket_net_cents(
        self,
        store_ids: Sequence[int],
        start_ts: int,
        end_ts: int,
        currency: str,
    ) -> int:
        if not store_ids:
            return 0

        query = AnalyticsQuery(
            scope=Scope.ADMIN,
            store_ids=tuple(store_ids),
            start_ts=start_ts,
            end_ts=end_ts,
            currency=currency,
        )
        return sum(row.amount_cents for row in self.query_service.get_net_revenue(query))

    def get_boost_net_cents(self, start_ts: int, end_ts: int, currency: str) -> int:
        """Completed boost order items in the window, single currency."""
        return max(0, decimal_to_cents(self.repository.boost_revenue(start_ts, end_ts, currency)))
