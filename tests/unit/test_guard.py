"""
Unit Tests - Query Guard
"""
import pytest
from structlog.testing import capture_logs

from vendor_analytics.analytics.catalog import Metric, TimeShape, money_metrics, shape_of
from vendor_analytics.analytics.exceptions import (
    AccessDeniedError,
    InvalidScopeError,
    InvalidTimeWindowError,
    InvariantViolationError,
    MissingCurrencyError,
)
from vendor_analytics.analytics.guard import VIOLATION_EVENT, QueryGuard
from vendor_analytics.analytics.query import AnalyticsQuery, Scope

from tests.stubs import END_TS, START_TS, STORE_ID


def money_query(**overrides):
    params = dict(scope=Scope.VENDOR, start_ts=START_TS, end_ts=END_TS, currency="AUD")
    params.update(overrides)
    return AnalyticsQuery(**params)


def count_query(**overrides):
    return money_query(currency=None, **overrides)


MONEY_METRICS = sorted(money_metrics(), key=lambda m: m.value)
COUNT_METRICS = sorted(set(Metric) - money_metrics(), key=lambda m: m.value)


def count_query_for(metric, **overrides):
    """Count query shaped for the metric's time window"""
    if shape_of(metric).time_shape == TimeShape.POINT_IN_TIME:
        overrides.setdefault("start_ts", None)
    overrides.setdefault("currency", None)
    return money_query(**overrides)


def run_and_capture(call):
    """Run a failing guard call; return the raised error and captured logs"""
    with capture_logs() as logs:
        with pytest.raises(Exception) as exc_info:
            call(QueryGuard())
    return exc_info.value, logs


class TestMetricTyping:
    """Tests for taxonomy and money/count typing"""

    def test_unknown_metric(self):
        error, logs = run_and_capture(lambda g: g.assert_no_semantic_mixing("Profit"))

        assert isinstance(error, InvariantViolationError)
        assert error.code == "unknown_metric"
        assert logs == [{
            "event": VIOLATION_EVENT,
            "log_level": "error",
            "metric": "Profit",
            "violation_code": "unknown_metric",
        }]

    def test_known_metric_is_returned(self, guard):
        assert guard.assert_no_semantic_mixing("GrossRevenue") is Metric.GROSS_REVENUE

    def test_count_metric_rejected_as_money(self):
        error, logs = run_and_capture(
            lambda g: g.assert_valid_for_money_metric(money_query(), Metric.TICKETS_SOLD)
        )

        assert isinstance(error, InvariantViolationError)
        assert error.code == "metric_type_mismatch_money"
        assert logs[0]["log_level"] == "error"

    def test_money_metric_rejected_as_count(self):
        error, _ = run_and_capture(
            lambda g: g.assert_valid_for_count_metric(count_query(), Metric.NET_REVENUE)
        )

        assert isinstance(error, InvariantViolationError)
        assert error.code == "metric_type_mismatch_count"

    def test_valid_money_query_passes(self, guard):
        with capture_logs() as logs:
            guard.assert_valid_for_money_metric(money_query(), Metric.NET_REVENUE)

        assert logs == []

    def test_valid_count_query_passes(self, guard):
        guard.assert_valid_for_count_metric(count_query(), Metric.RSVPS_RESERVED)


class TestCurrency:

    @pytest.mark.parametrize("metric", MONEY_METRICS)
    def test_missing_currency(self, metric):
        error, logs = run_and_capture(
            lambda g: g.assert_valid_for_money_metric(money_query(currency=None), metric)
        )

        assert isinstance(error, MissingCurrencyError)
        assert error.code == "missing_currency"
        assert logs[0]["log_level"] == "warning"

    @pytest.mark.parametrize("currency", ["aud", "AU", "AUDD", "A1D", ""])
    def test_invalid_currency_code(self, currency):
        error, _ = run_and_capture(
            lambda g: g.assert_valid_for_money_metric(money_query(currency=currency), Metric.GROSS_REVENUE)
        )

        assert isinstance(error, InvariantViolationError)
        assert error.code == "invalid_currency_code"

    @pytest.mark.parametrize("metric", COUNT_METRICS)
    def test_currency_not_allowed_for_count(self, metric):
        query = count_query_for(metric, currency="AUD")
        error, _ = run_and_capture(lambda g: g.assert_valid_for_count_metric(query, metric))

        assert isinstance(error, InvariantViolationError)
        assert error.code == "currency_not_allowed_for_count_metric"


class TestTimeWindows:
    """Tests for range and point-in-time windows"""

    @pytest.mark.parametrize("start,end,code", [
        (None, END_TS, "missing_range_timestamps"),
        (START_TS, None, "missing_range_timestamps"),
        (0, END_TS, "invalid_range_timestamps"),
        (END_TS, END_TS, "invalid_range_timestamps"),
        (END_TS, START_TS, "invalid_range_timestamps"),
        ("yesterday", END_TS, "invalid_range_timestamps"),
        (START_TS, "now", "invalid_range_timestamps"),
        (START_TS, [END_TS], "invalid_range_timestamps"),
    ])
    def test_range_windows(self, start, end, code):
        query = money_query(start_ts=start, end_ts=end)
        error, _ = run_and_capture(lambda g: g.assert_valid_for_money_metric(query, Metric.NET_REVENUE))

        assert isinstance(error, InvalidTimeWindowError)
        assert error.code == code

    def test_non_numeric_timestamp_is_logged(self):
        query = money_query(start_ts="yesterday")
        error, logs = run_and_capture(lambda g: g.assert_valid_for_money_metric(query, Metric.GROSS_REVENUE))

        assert isinstance(error, InvalidTimeWindowError)
        assert logs == [{
            "event": VIOLATION_EVENT,
            "log_level": "warning",
            "metric": "Gross Revenue",
            "violation_code": "invalid_range_timestamps",
            "scope": "vendor",
            "store_ids": [],
        }]

    def test_point_in_time_passes_with_end_only(self, guard):
        guard.assert_valid_for_count_metric(count_query(start_ts=None), Metric.ACTIVE_EVENTS)

    @pytest.mark.parametrize("start,end,code", [
        (None, None, "missing_end_ts"),
        (START_TS, END_TS, "start_ts_not_allowed_for_point_in_time"),
        (0, END_TS, "start_ts_not_allowed_for_point_in_time"),
        (-1, END_TS, "start_ts_not_allowed_for_point_in_time"),
        (2 ** 40, END_TS, "start_ts_not_allowed_for_point_in_time"),
        (None, -1, "invalid_end_ts"),
        (None, "soon", "invalid_end_ts"),
    ])
    def test_point_in_time_windows(self, start, end, code):
        query = count_query(start_ts=start, end_ts=end)
        error, _ = run_and_capture(lambda g: g.assert_valid_for_count_metric(query, Metric.ACTIVE_EVENTS))

        assert isinstance(error, InvalidTimeWindowError)
        assert error.code == code


class TestAnchoring:

    def test_anchored_metric_passes(self, guard):
        guard.assert_order_item_anchoring_required(Metric.TICKETS_SOLD)

    def test_unanchored_metric_is_developer_error(self):
        error, logs = run_and_capture(
            lambda g: g.assert_order_item_anchoring_required(Metric.RSVPS_RESERVED)
        )

        assert isinstance(error, InvariantViolationError)
        assert error.code == "order_item_anchoring_not_applicable"
        assert logs[0]["metric"] == "RSVPs (Reserved)"
        assert "store_ids" not in logs[0]


class TestScopeRules:
    """Tests for vendor/admin scope rules"""

    def test_vendor_with_stores_passes(self, guard):
        guard.assert_scope_rules(money_query(), [STORE_ID])

    def test_vendor_without_stores(self):
        error, logs = run_and_capture(lambda g: g.assert_scope_rules(money_query(), []))

        assert isinstance(error, AccessDeniedError)
        assert error.code == "vendor_scope_requires_at_least_one_store"
        assert logs[0]["scope"] == "vendor"
        assert logs[0]["store_ids"] == []

    def test_admin_set_equal_ids_pass(self, guard):
        query = money_query(scope=Scope.ADMIN, store_ids=(5, 3, 5))

        guard.assert_scope_rules(query, [3, 5])

    @pytest.mark.parametrize("effective", [[5], [5, 7, 9]])
    def test_admin_effective_must_equal_requested(self, effective):
        query = money_query(scope=Scope.ADMIN, store_ids=(5, 7))
        error, _ = run_and_capture(lambda g: g.assert_scope_rules(query, effective))

        assert isinstance(error, AccessDeniedError)

    def test_admin_missing_requested_ids(self):
        query = money_query(scope=Scope.ADMIN)
        error, _ = run_and_capture(lambda g: g.assert_scope_rules(query, [3]))

        assert error.code == "admin_scope_missing_store_ids"

    def test_admin_missing_effective_ids(self):
        query = money_query(scope=Scope.ADMIN, store_ids=(3,))
        error, _ = run_and_capture(lambda g: g.assert_scope_rules(query, []))

        assert error.code == "admin_scope_missing_effective_store_ids"

    def test_admin_mismatch_is_not_silently_fixed(self):
        query = money_query(scope=Scope.ADMIN, store_ids=(3, 4))
        error, logs = run_and_capture(lambda g: g.assert_scope_rules(query, [3]))

        assert isinstance(error, AccessDeniedError)
        assert error.code == "admin_scope_store_ids_mismatch"
        assert logs[0]["store_ids"] == [3, 4]
        assert logs[0]["effective_store_ids"] == [3]

    def test_invalid_scope(self):
        error, logs = run_and_capture(lambda g: g.assert_scope_rules(money_query(scope="global"), [1]))

        assert isinstance(error, InvalidScopeError)
        assert error.code == "invalid_scope"
        assert logs[0]["scope"] == "global"


class TestRowScope:

    def test_store_outside_scope(self):
        error, logs = run_and_capture(
            lambda g: g.assert_store_in_scope(money_query(), Metric.NET_REVENUE, 43, [STORE_ID])
        )

        assert isinstance(error, AccessDeniedError)
        assert error.code == "store_not_in_effective_scope"
        assert logs[0]["target_store_id"] == 43

    def test_rows_inside_scope_pass(self, guard):
        guard.assert_rows_within_scope(money_query(), Metric.GROSS_REVENUE, [(STORE_ID, 1), (STORE_ID, None)], [STORE_ID])

    def test_invalid_aggregation_key(self):
        error, _ = run_and_capture(
            lambda g: g.assert_rows_within_scope(money_query(), Metric.TICKETS_SOLD, [(STORE_ID, 0)], [STORE_ID])
        )

        assert isinstance(error, InvariantViolationError)
        assert error.code == "invalid_aggregation_key"

    def test_row_outside_scope(self):
        error, logs = run_and_capture(
            lambda g: g.assert_rows_within_scope(money_query(), Metric.TICKETS_SOLD, [(99, 1)], [STORE_ID])
        )

        assert isinstance(error, InvariantViolationError)
        assert error.code == "row_outside_effective_scope"
        assert logs[0]["log_level"] == "error"


def test_logged_fields_are_limited():
    _, logs = run_and_capture(lambda g: g.assert_valid_for_money_metric(money_query(currency=None), Metric.NET_REVENUE))

    assert set(logs[0]) == {"event", "log_level", "metric", "violation_code", "scope", "store_ids"}
