"""
Analytics Query Guard

Strict, fail-closed guardrails for analytics queries:
- Closed metric taxonomy (no semantic mixing)
- Money vs count metric typing
- Time window shape (range vs point-in-time)
- Currency presence and format
- Order-item anchoring
- Vendor vs admin scope rules

The guard is the only place that logs violations. Every failure logs one
structured event and then raises. Logged fields are limited to metric,
violation code, scope and store ids; no PII is ever included.
"""

import re
from typing import Any, Dict, Iterable, NoReturn, Optional, Sequence, Tuple, Union

import structlog

from vendor_analytics.analytics.catalog import Metric, TimeShape, resolve_metric, shape_of
from vendor_analytics.analytics.exceptions import (
    AccessDeniedError,
    AnalyticsError,
    InvalidScopeError,
    InvalidTimeWindowError,
    InvariantViolationError,
    MissingCurrencyError,
)
from vendor_analytics.analytics.query import AnalyticsQuery, Scope, normalize_store_ids

CURRENCY_PATTERN = re.compile(r"^[A-Z]{3}$")

VIOLATION_EVENT = "Analytics guardrail violation"

MetricLike = Union[Metric, str]


class QueryGuard:
    """
    Validates analytics queries before any data is read.

    All assertion methods are pure predicates over already constructed values:
    they return normally on success and log + raise on failure.

    Example:
        guard = QueryGuard()
        guard.assert_scope_rules(query, effective_store_ids)
        guard.assert_valid_for_money_metric(query, Metric.NET_REVENUE)
    """

    def __init__(self, logger: Optional[Any] = None):
        self.logger = logger or structlog.get_logger(__name__)

    # =========================================================================
    # METRIC TYPING
    # =========================================================================

    def assert_no_semantic_mixing(self, metric: MetricLike) -> Metric:
        """
        Assert the metric belongs to the closed catalog.

        Returns:
            The resolved Metric
        """
        resolved = resolve_metric(metric)
        if resolved is None:
            # No query context here, so no store ids
            self.logger.error(
                VIOLATION_EVENT,
                metric=str(metric),
                violation_code="unknown_metric",
            )
            raise InvariantViolationError("Unknown analytics metric.", code="unknown_metric")
        return resolved

    def assert_valid_for_money_metric(self, query: AnalyticsQuery, metric: MetricLike) -> None:
        resolved = self.assert_no_semantic_mixing(metric)

        if not shape_of(resolved).is_money:
            self._fail(
                InvariantViolationError("Metric is not a money metric."),
                "error", resolved.value, "metric_type_mismatch_money", query,
            )

        self._assert_time_window(query, resolved)
        self.assert_no_currency_mixing(query, resolved)

    def assert_valid_for_count_metric(self, query: AnalyticsQuery, metric: MetricLike) -> None:
        resolved = self.assert_no_semantic_mixing(metric)

        if shape_of(resolved).is_money:
            self._fail(
                InvariantViolationError("Metric is not a count metric."),
                "error", resolved.value, "metric_type_mismatch_count", query,
            )

        self._assert_time_window(query, resolved)

        # Count metrics must not carry a currency
        if query.currency is not None:
            self._fail(
                InvariantViolationError("Currency is not allowed for count metrics."),
                "warning", resolved.value, "currency_not_allowed_for_count_metric", query,
            )

    def assert_no_currency_mixing(self, query: AnalyticsQuery, metric: MetricLike = "money") -> None:
        """Money queries need exactly one well-formed ISO currency code."""
        label = metric.value if isinstance(metric, Metric) else str(metric)

        if query.currency is None:
            self._fail(
                MissingCurrencyError("Currency is required for money metrics."),
                "warning", label, "missing_currency", query,
            )

        if not isinstance(query.currency, str) or not CURRENCY_PATTERN.match(query.currency):
            self._fail(
                InvariantViolationError("Invalid currency code."),
                "warning", label, "invalid_currency_code", query,
            )

    def assert_order_item_anchoring_required(self, metric: MetricLike) -> None:
        resolved = self.assert_no_semantic_mixing(metric)

        if not shape_of(resolved).requires_order_item_anchor:
            # Developer-path violation, e.g. RSVP or event counts
            self.logger.error(
                VIOLATION_EVENT,
                metric=resolved.value,
                violation_code="order_item_anchoring_not_applicable",
            )
            raise InvariantViolationError(
                "Order-item anchoring is not applicable for this metric.",
                code="order_item_anchoring_not_applicable",
            )

    # =========================================================================
    # SCOPE
    # =========================================================================

    def assert_scope_rules(self, query: AnalyticsQuery, effective_store_ids: Iterable[int]) -> None:
        """
        Enforce vendor/admin scope rules against the resolved store ids.

        Admin scope requires the normalized requested ids to be set-equal to
        the effective ids: extra ids are not silently granted and missing ids
        are not silently dropped.
        """
        effective = normalize_store_ids(effective_store_ids)
        extra = {"effective_store_ids": effective}

        if query.scope == Scope.VENDOR:
            if not effective:
                self._fail(
                    AccessDeniedError("Vendor scope requires at least one effective store."),
                    "warning", "scope", "vendor_scope_requires_at_least_one_store", query, extra,
                )
            return

        if query.scope == Scope.ADMIN:
            if not query.store_ids:
                self._fail(
                    AccessDeniedError("Admin scope requires one or more store IDs."),
                    "warning", "scope", "admin_scope_missing_store_ids", query, extra,
                )

            if not effective:
                self._fail(
                    AccessDeniedError("Admin scope requires effective store IDs."),
                    "warning", "scope", "admin_scope_missing_effective_store_ids", query,
                )

            if normalize_store_ids(query.store_ids) != effective:
                self._fail(
                    AccessDeniedError("Admin scope store IDs mismatch."),
                    "warning", "scope", "admin_scope_store_ids_mismatch", query, extra,
                )
            return

        self._fail(
            InvalidScopeError("Invalid analytics scope."),
            "warning", "scope", "invalid_scope", query, extra,
        )

    def assert_store_in_scope(
        self,
        query: AnalyticsQuery,
        metric: MetricLike,
        store_id: int,
        effective_store_ids: Iterable[int],
    ) -> None:
        """A single-store report must target a store inside the effective scope."""
        effective = normalize_store_ids(effective_store_ids)
        if store_id not in effective:
            self._fail(
                AccessDeniedError("Store is outside the effective analytics scope."),
                "warning", str(getattr(metric, "value", metric)), "store_not_in_effective_scope", query,
                {"effective_store_ids": effective, "target_store_id": store_id},
            )

    def assert_rows_within_scope(
        self,
        query: AnalyticsQuery,
        metric: MetricLike,
        row_keys: Sequence[Tuple[int, Optional[int]]],
        effective_store_ids: Iterable[int],
    ) -> None:
        """
        Aggregated rows must have positive keys and stay inside the scope.

        Args:
            row_keys: (store_id, event_id) per row; event_id is None for
                store-level rows
        """
        label = str(getattr(metric, "value", metric))
        effective = set(normalize_store_ids(effective_store_ids))

        for store_id, event_id in row_keys:
            if store_id <= 0 or (event_id is not None and event_id <= 0):
                self._fail(
                    InvariantViolationError("Invalid aggregation key."),
                    "error", label, "invalid_aggregation_key", query,
                )
            if store_id not in effective:
                self._fail(
                    InvariantViolationError("Aggregated row is outside the effective scope."),
                    "error", label, "row_outside_effective_scope", query,
                    {"effective_store_ids": sorted(effective)},
                )

    # =========================================================================
    # TIME WINDOWS
    # =========================================================================

    def _assert_time_window(self, query: AnalyticsQuery, metric: Metric) -> None:
        time_shape = shape_of(metric).time_shape
        if time_shape == TimeShape.RANGE:
            self._assert_range_window(query, metric)
        elif time_shape == TimeShape.POINT_IN_TIME:
            self._assert_point_in_time_window(query, metric)
        else:
            self._fail(
                InvariantViolationError("Metric time category is unknown."),
                "error", metric.value, "metric_time_category_unknown", query,
            )

    def _assert_range_window(self, query: AnalyticsQuery, metric: Metric) -> None:
        if query.start_ts is None or query.end_ts is None:
            self._fail(
                InvalidTimeWindowError("Range metrics require start_ts and end_ts."),
                "warning", metric.value, "missing_range_timestamps", query,
            )

        try:
            start, end = int(query.start_ts), int(query.end_ts)
        except (TypeError, ValueError):
            # Non-numeric timestamps fail the same check as non-positive ones
            start = end = 0

        if start <= 0 or end <= 0 or start >= end:
            self._fail(
                InvalidTimeWindowError("Invalid time window."),
                "warning", metric.value, "invalid_range_timestamps", query,
            )

    def _assert_point_in_time_window(self, query: AnalyticsQuery, metric: Metric) -> None:
        if query.end_ts is None:
            self._fail(
                InvalidTimeWindowError("Point-in-time metrics require end_ts."),
                "warning", metric.value, "missing_end_ts", query,
            )

        if query.start_ts is not None:
            self._fail(
                InvalidTimeWindowError("Point-in-time metrics must not include start_ts."),
                "warning", metric.value, "start_ts_not_allowed_for_point_in_time", query,
            )

        try:
            end = int(query.end_ts)
        except (TypeError, ValueError):
            end = 0

        if end <= 0:
            self._fail(
                InvalidTimeWindowError("Invalid end_ts."),
                "warning", metric.value, "invalid_end_ts", query,
            )

    # =========================================================================
    # LOGGING
    # =========================================================================

    def _fail(
        self,
        error: AnalyticsError,
        level: str,
        metric: str,
        violation_code: str,
        query: AnalyticsQuery,
        extra: Optional[Dict[str, Any]] = None,
    ) -> NoReturn:
        """Log a violation, then raise it with the violation code attached."""
        self._log_violation(level, metric, violation_code, query, extra)
        error.code = violation_code
        raise error

    def _log_violation(
        self,
        level: str,
        metric: str,
        violation_code: str,
        query: AnalyticsQuery,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        context: Dict[str, Any] = {
            "metric": metric,
            "violation_code": violation_code,
            "scope": query.scope_name,
            # Requested ids (admin); empty for vendor
            "store_ids": normalize_store_ids(query.store_ids),
        }
        if extra:
            context.update(extra)

        if level == "error":
            self.logger.error(VIOLATION_EVENT, **context)
        else:
            self.logger.warning(VIOLATION_EVENT, **context)

