"""
Unit Tests - Analytics Query
"""
import dataclasses

import pytest

from vendor_analytics.analytics.query import AnalyticsQuery, Scope, normalize_store_ids


class TestAnalyticsQuery:
    """Tests for the query value object"""

    def test_scope_string_is_coerced(self):
        query = AnalyticsQuery(scope="admin", store_ids=[3, 1])

        assert query.scope is Scope.ADMIN
        assert query.store_ids == (3, 1)

    def test_unknown_scope_is_kept(self):
        query = AnalyticsQuery(scope="global")

        assert query.scope == "global"
        assert query.scope_name == "global"

    def test_is_frozen(self):
        query = AnalyticsQuery(scope=Scope.VENDOR)

        with pytest.raises(dataclasses.FrozenInstanceError):
            query.currency = "AUD"

    def test_with_window_returns_copy(self):
        query = AnalyticsQuery(scope=Scope.VENDOR, start_ts=1, end_ts=2, currency="AUD")
        moved = query.with_window(None, 10)

        assert moved.start_ts is None and moved.end_ts == 10
        assert moved.currency == "AUD"
        assert query.start_ts == 1

    def test_with_currency(self):
        query = AnalyticsQuery(scope=Scope.VENDOR, currency="AUD")

        assert query.with_currency(None).currency is None
        assert query.currency == "AUD"


class TestNormalizeStoreIds:

    def test_sorts_and_deduplicates(self):
        assert normalize_store_ids([5, 2, 5, 9]) == [2, 5, 9]

    def test_drops_invalid_values(self):
        assert normalize_store_ids([0, -3, "x", None, "7", 4]) == [4, 7]

    def test_empty(self):
        assert normalize_store_ids([]) == []
