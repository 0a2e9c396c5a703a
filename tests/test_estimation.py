"""
Estimation calculator tests: selection shapes, hours / PD / cost, frozen
estimation fallback.  Pure, no database.
"""

from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from advisory_hub.services.estimation import (
    KIND_ACTIVITY,
    KIND_SUB_ACTIVITY,
    billable_assignment_days,
    compute_cost,
    compute_hours,
    compute_pd,
    get_estimation,
    normalize_selection,
    selected_sub_activities,
)


# ═════════════════════════════════════════════════════════════════════════════
# Hours over selection shapes
# ═════════════════════════════════════════════════════════════════════════════


class TestComputeHours:
    def test_single_service_object(self):
        selection = {
            "activities": {"x": {"selected": True, "estimated_hours": 5}},
            "subActivities": {"y": {"selected": True, "estimated_hours": 3}},
        }
        hours = compute_hours(selection)
        assert hours == 8
        assert compute_pd(hours) == 1.0

    def test_unselected_activity_ignored(self):
        selection = {"activities": {
            "x": {"selected": False, "estimated_hours": 5},
            "y": {"selected": True, "estimated_hours": 2},
        }}
        assert compute_hours(selection) == 2

    def test_activity_requires_selected_true(self):
        selection = {"activities": {"x": {"estimated_hours": 5}}}
        assert compute_hours(selection) == 0

    def test_sub_activity_without_selected_key_counts(self):
        selection = {"subActivities": {"y": {"estimated_hours": 3}}}
        assert compute_hours(selection) == 3

    def test_bare_boolean_sub_activity_contributes_zero(self):
        selection = {
            "activities": {"x": {"selected": True, "estimated_hours": 4}},
            "subActivities": {"y": True},
        }
        assert compute_hours(selection) == 4

    def test_camel_case_hours(self):
        selection = {"activities": {"x": {"selected": True, "estimatedHours": 6}}}
        assert compute_hours(selection) == 6

    def test_list_containers(self):
        selection = {
            "activities": [{"id": "x", "selected": True, "estimated_hours": 2}],
            "subActivities": [{"id": "y", "selected": True, "estimated_hours": 1.5}],
        }
        assert compute_hours(selection) == 3.5

    def test_multi_service_array(self):
        selection = [
            {"activities": {"x": {"selected": True, "estimated_hours": 5}}},
            {"subActivities": {"y": {"selected": True, "estimated_hours": 3}}},
        ]
        assert compute_hours(selection) == 8

    def test_offering_mapping_replaces_single_form(self):
        single = {"activities": {"x": {"selected": True, "estimated_hours": 100}}}
        offerings = {
            "k8s": {"activities": {
                "a1": {
                    "selected": True,
                    "estimated_hours": 4,
                    "subActivities": {"s1": {"selected": True, "estimated_hours": 2}, "s2": True},
                },
            }},
        }
        assert compute_hours(single, offerings) == 6

    def test_offering_mapping_without_hours_falls_back_to_single(self):
        single = {"activities": {"x": {"selected": True, "estimated_hours": 7}}}
        offerings = {"k8s": {"activities": {"a1": {"selected": False, "estimated_hours": 4}}}}
        assert compute_hours(single, offerings) == 7

    def test_flat_activity_map(self):
        selection = {
            "act-1": {
                "selected": True,
                "estimated_hours": 4,
                "subActivities": {"sub-1": {"selected": True, "estimated_hours": 2}},
            },
            "act-2": {"selected": False, "estimated_hours": 10},
        }
        assert compute_hours(selection) == 6

    @pytest.mark.parametrize("selection", [None, {}, [], "garbage", 42])
    def test_empty_or_unknown_shapes(self, selection):
        assert compute_hours(selection) == 0

    def test_negative_and_invalid_hours_clamped(self):
        selection = {"activities": {
            "x": {"selected": True, "estimated_hours": -5},
            "y": {"selected": True, "estimated_hours": "n/a"},
            "z": {"selected": True, "estimated_hours": "2.5"},
        }}
        assert compute_hours(selection) == 2.5

    def test_idempotent(self):
        selection = {
            "activities": {"x": {"selected": True, "estimated_hours": 5}},
            "subActivities": {"y": {"selected": True, "estimated_hours": 3}},
        }
        assert compute_hours(selection) == compute_hours(selection)


class TestNormalizeSelection:
    def test_kinds_and_parent(self):
        selection = {"activities": {
            "a1": {"selected": True, "name": "Assess", "estimated_hours": 4,
                   "subActivities": {"s1": {"selected": True, "name": "Interview", "estimated_hours": 2}}},
        }}
        items = normalize_selection(selection)
        assert [(i.id, i.kind) for i in items] == [("a1", KIND_ACTIVITY), ("s1", KIND_SUB_ACTIVITY)]
        assert items[1].parent_id == "a1"

    def test_custom_flag(self):
        selection = {"activities": {"c1": {"selected": True, "estimated_hours": 1, "isCustom": True}}}
        assert normalize_selection(selection)[0].is_custom


# ═════════════════════════════════════════════════════════════════════════════
# PD / cost / days
# ═════════════════════════════════════════════════════════════════════════════


class TestDerivedFigures:
    @pytest.mark.parametrize("hours,pd", [(0, 0), (8, 1.0), (10, 1.25), (12, 1.5), (3.3, 0.41)])
    def test_compute_pd(self, hours, pd):
        assert compute_pd(hours) == pd

    def test_compute_cost(self):
        assert compute_cost(8, 120) == 960
        assert compute_cost(8, None) == 0

    @pytest.mark.parametrize("hours,pct,days", [(10, 50, 3), (8, 100, 1), (0, 50, 0), (10, 0, 0), (10, None, 0)])
    def test_billable_assignment_days(self, hours, pct, days):
        assert billable_assignment_days(hours, pct) == days


class TestSelectedSubActivities:
    def test_flat_list_for_timesheet(self):
        selection = {
            "activities": {"a1": {"selected": True, "estimated_hours": 4}},
            "subActivities": {
                "s1": {"selected": True, "name": "One", "estimated_hours": 2},
                "s2": {"selected": False, "name": "Two", "estimated_hours": 5},
                "s3": True,
            },
        }
        assert selected_sub_activities(selection) == [{"id": "s1", "name": "One", "estimated_hours": 2.0}]

    def test_sub_activity_under_two_offerings_is_merged(self):
        offerings = {
            "off-1": {"subActivities": {"s1": {"selected": True, "name": "Interviews", "estimated_hours": 3}}},
            "off-2": {"subActivities": {"s1": {"selected": True, "name": "Interviews", "estimated_hours": 2}}},
        }
        subs = selected_sub_activities(None, offerings)
        assert subs == [{"id": "s1", "name": "Interviews", "estimated_hours": 5.0}]
        assert sum(s["estimated_hours"] for s in subs) == compute_hours(None, offerings)

    def test_include_unknown_keeps_hourless(self):
        selection = {"subActivities": {"s3": True}}
        assert selected_sub_activities(selection, include_unknown=True) == [
            {"id": "s3", "name": "", "estimated_hours": None},
        ]


# ═════════════════════════════════════════════════════════════════════════════
# get_estimation
# ═════════════════════════════════════════════════════════════════════════════


def _request(**overrides):
    fields = {
        "assignee_id": None,
        "assignee": None,
        "selected_activities": {
            "activities": {"x": {"selected": True, "estimated_hours": 5}},
            "subActivities": {"y": {"selected": True, "estimated_hours": 3}},
        },
        "service_offering_activities": None,
        "estimation_saved_at": None,
        "saved_total_hours": None,
        "saved_total_pd_estimate": None,
        "saved_total_cost": None,
        "saved_assignee_rate": None,
        "saved_assignee_role": None,
    }
    fields.update(overrides)
    req = SimpleNamespace(**fields)
    req.is_estimation_frozen = req.estimation_saved_at is not None
    return req


def _assignee(rate=100.0, title="Advisory Consultant"):
    return SimpleNamespace(rate_per_hour=rate, billability_role=title)


class TestGetEstimation:
    def test_live_when_not_frozen(self):
        est = get_estimation(_request(), _assignee(rate=50))
        assert est["hours"] == 8
        assert est["pd"] == 1.0
        assert est["cost"] == 400
        assert est["rate"] == 50
        assert est["frozen"] is False

    def test_live_without_assignee(self):
        est = get_estimation(_request())
        assert est["cost"] == 0
        assert est["role"] is None

    def test_frozen_snapshot_wins_over_live(self):
        saved_at = datetime(2026, 1, 5, tzinfo=timezone.utc)
        req = _request(
            estimation_saved_at=saved_at,
            saved_total_hours=20, saved_total_pd_estimate=2.5, saved_total_cost=2000,
            saved_assignee_rate=100, saved_assignee_role="Senior Consultant",
        )
        est = get_estimation(req, _assignee(rate=999))
        assert (est["hours"], est["pd"], est["cost"], est["rate"]) == (20, 2.5, 2000, 100)
        assert est["role"] == "Senior Consultant"
        assert est["frozen"] is True
        assert est["estimation_saved_at"] == saved_at.isoformat()

    def test_zero_saved_values_fall_back_to_live(self):
        req = _request(
            estimation_saved_at=datetime(2026, 1, 5, tzinfo=timezone.utc),
            saved_total_hours=0, saved_total_pd_estimate=0, saved_total_cost=0,
            saved_assignee_rate=0,
        )
        est = get_estimation(req, _assignee(rate=10))
        assert est["hours"] == 8
        assert est["pd"] == 1.0
        assert est["rate"] == 10
        assert est["cost"] == 80
