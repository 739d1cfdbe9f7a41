"""
Analytics Module
"""
from .catalog import Metric, MetricShape, TimeShape, resolve_metric
from .exceptions import (
    AccessDeniedError,
    AnalyticsError,
    InvalidScopeError,
    InvalidTimeWindowError,
    InvariantViolationError,
    MissingCurrencyError,
)
from .guard import QueryGuard
from .kpi import KpiAggregator
from .money import cents_to_decimal_string, decimal_to_cents
from .query import AnalyticsQuery, Scope
from .rows import KpiResult, PlatformRevenue, TimeWindow
from .scope import ScopeResolver
from .service import AnalyticsQueryService
from .admin import AdminRevenueQueryService

__all__ = [
    "Metric",
    "MetricShape",
    "TimeShape",
    "resolve_metric",
    "AnalyticsError",
    "AccessDeniedError",
    "InvalidScopeError",
    "InvalidTimeWindowError",
    "InvariantViolationError",
    "MissingCurrencyError",
    "QueryGuard",
    "KpiAggregator",
    "decimal_to_cents",
    "cents_to_decimal_string",
    "AnalyticsQuery",
    "Scope",
    "KpiResult",
    "PlatformRevenue",
    "TimeWindow",
    "ScopeResolver",
    "AnalyticsQueryService",
    "AdminRevenueQueryService",
]
