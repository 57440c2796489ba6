"""
Tests for filter normalization, filtering and aggregation.
"""

import pytest

from subscriber_core.filters import SubscriberFilters, fee_bracket, normalize_filters
from subscriber_core.metrics import (
    area_options,
    compute_dashboard,
    compute_stats,
    filter_subscribers,
    revenue_by_area,
    status_counts,
)

from conftest import make_subscriber


def names(records):
    return [r.name for r in records]


class TestFeeBracket:
    @pytest.mark.parametrize(
        "fee,bracket",
        [(0, "low"), (599.99, "low"), (600.0, "medium"), (899.99, "medium"), (900.0, "high"), (5000, "high")],
    )
    def test_boundaries_belong_to_higher_bracket(self, fee, bracket):
        assert fee_bracket(fee) == bracket

    @pytest.mark.parametrize("fee", [0, 599.99, 600, 750, 899.99, 900, 1200])
    def test_each_fee_matches_exactly_one_bracket(self, fee):
        records = [make_subscriber("x", "X", float(fee))]
        matches = [
            r for r in ("low", "medium", "high")
            if filter_subscribers(records, SubscriberFilters(fee_range=r))
        ]
        assert matches == [fee_bracket(fee)]

    def test_filter_follows_bracket_limits(self, monkeypatch):
        monkeypatch.setattr("subscriber_core.filters.LOW_FEE_LIMIT", 500.0)
        records = [make_subscriber("x", "X", 550.0)]

        assert names(filter_subscribers(records, SubscriberFilters(fee_range="medium"))) == ["X"]
        assert filter_subscribers(records, SubscriberFilters(fee_range="low")) == []


class TestFilterSubscribers:
    def test_high_bracket_ignores_status(self, scenario_records):
        filtered = filter_subscribers(scenario_records, SubscriberFilters(fee_range="high"))

        assert names(filtered) == ["C"]

    def test_no_filters_returns_everything_in_order(self, scenario_records):
        assert names(filter_subscribers(scenario_records, SubscriberFilters())) == ["A", "B", "C"]

    def test_search_is_case_insensitive_across_fields(self):
        records = [
            make_subscriber("1", "Ravi Kumar", 400, phone="9847000001"),
            make_subscriber("2", "Meera", 400, address="Near RAVIPURAM temple"),
            make_subscriber("3", "Joseph", 400, area="Edappally", subscriber_code="SUB-20260101-001"),
            make_subscriber("4", "Sara", 400, phone="9847000004"),
        ]

        assert names(filter_subscribers(records, SubscriberFilters(search_term="ravi"))) == ["Ravi Kumar", "Meera"]
        assert names(filter_subscribers(records, SubscriberFilters(search_term="000004"))) == ["Sara"]
        assert names(filter_subscribers(records, SubscriberFilters(search_term="edapp"))) == ["Joseph"]
        assert names(filter_subscribers(records, SubscriberFilters(search_term="sub-2026"))) == ["Joseph"]

    def test_search_treats_term_literally(self):
        records = [make_subscriber("1", "A.B", 400), make_subscriber("2", "AXB", 400)]

        assert names(filter_subscribers(records, SubscriberFilters(search_term="a.b"))) == ["A.B"]

    def test_area_is_exact_match(self):
        records = [
            make_subscriber("1", "A", 400, area="Kaloor"),
            make_subscriber("2", "B", 400, area="Kaloor East"),
        ]

        assert names(filter_subscribers(records, SubscriberFilters(area="Kaloor"))) == ["A"]

    def test_predicates_are_combined_with_and(self):
        records = [
            make_subscriber("1", "Anu", 950, area="Kaloor"),
            make_subscriber("2", "Anand", 500, area="Kaloor"),
            make_subscriber("3", "Anjali", 950, area="Vyttila"),
            make_subscriber("4", "Bijo", 950, area="Kaloor"),
        ]

        filters = SubscriberFilters(search_term="an", area="Kaloor", fee_range="high")

        assert names(filter_subscribers(records, filters)) == ["Anu"]

    def test_empty_list(self):
        assert filter_subscribers([], SubscriberFilters(search_term="x")) == []


class TestStats:
    def test_example_scenario(self, scenario_records):
        stats = compute_stats(scenario_records)

        assert stats.total == 3
        assert stats.active == 2
        assert stats.total_revenue == pytest.approx(1200.0)
        assert stats.total_revenue_display == "1200.00"

    def test_inactive_and_suspended_contribute_nothing(self):
        records = [
            make_subscriber("1", "A", 300, status="inactive"),
            make_subscriber("2", "B", 800, status="suspended"),
        ]

        stats = compute_stats(records)

        assert stats.active == 0
        assert stats.total_revenue == 0.0
        assert stats.total_revenue_display == "0.00"

    def test_status_counts(self, scenario_records):
        assert status_counts(scenario_records) == {"active": 2, "inactive": 1, "suspended": 0}


class TestAreaOptions:
    def test_all_first_then_first_seen_order_without_duplicates(self):
        records = [
            make_subscriber("1", "A", 1, area="Vyttila"),
            make_subscriber("2", "B", 1, area="Kaloor"),
            make_subscriber("3", "C", 1, area="Vyttila"),
            make_subscriber("4", "D", 1, area="Aluva"),
        ]

        assert area_options(records) == ["all", "Vyttila", "Kaloor", "Aluva"]

    def test_empty_list_still_has_sentinel(self):
        assert area_options([]) == ["all"]


class TestNormalizeFilters:
    def test_defaults(self):
        assert normalize_filters(None) == SubscriberFilters()

    def test_unknown_fee_range_and_blank_area_fall_back_to_all(self):
        f = normalize_filters({"search_term": "  ravi ", "area": " ", "fee_range": "premium"})

        assert f == SubscriberFilters(search_term="ravi", area="all", fee_range="all")

    def test_fee_range_is_case_insensitive(self):
        assert normalize_filters({"fee_range": "HIGH"}).fee_range == "high"


class TestDashboard:
    def test_revenue_by_area_counts_active_only(self, scenario_records):
        records = scenario_records + [make_subscriber("d", "D", 250, area="Aluva")]

        by_area = revenue_by_area(records).set_index("area")

        assert by_area.loc["Kaloor", "revenue"] == pytest.approx(1200.0)
        assert by_area.loc["Kaloor", "subscribers"] == 2
        assert by_area.loc["Aluva", "revenue"] == pytest.approx(250.0)

    def test_payload(self, scenario_records):
        payload = compute_dashboard(SubscriberFilters(fee_range="high"), scenario_records)

        assert payload["filters"] == {"search_term": "", "area": "all", "fee_range": "high"}
        assert payload["stats"]["total"] == 3
        assert payload["stats"]["active"] == 2
        assert payload["stats"]["total_revenue"] == 1200.0
        assert payload["stats"]["total_revenue_display"] == "₹1,200.00"
        assert payload["areas"] == ["all", "Kaloor"]
        assert payload["filtered_count"] == 1
        assert [s["id"] for s in payload["subscribers"]] == ["c"]
        assert payload["charts"]["revenue_by_area"] is not None

    def test_payload_without_active_records_has_no_chart(self):
        payload = compute_dashboard(SubscriberFilters(), [make_subscriber("1", "A", 100, status="inactive")])

        assert payload["revenue_by_area"] == []
        assert payload["charts"]["revenue_by_area"] is None
