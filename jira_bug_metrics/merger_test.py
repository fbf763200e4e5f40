"""Tests for merging period snapshots."""

import pytest

from .merger import (
    find_best_matching_period,
    group_periods,
    grouped_period_configs,
    merge_buckets_by_key,
    merge_period_data,
)


def make_period_data(period_id, start, end, severity, components, created=None):
    total = sum(severity.values())
    data = {
        "periodId": period_id,
        "startDate": start,
        "endDate": end,
        "generatedAt": f"{end}T12:00:00.000Z",
        "totalBugs": total,
        "severity": [{"label": k, "count": v, "percentage": 0} for k, v in severity.items()],
        "environment": [{"environment": "prod", "count": total, "percentage": 100}],
        "resolution": [{"status": "To Do", "count": total, "percentage": 100}],
        "components": [{"name": k, "count": v} for k, v in components.items()],
        "trackers": [{"name": "Jira", "count": total, "percentage": 100}],
        "reasons": [{"reason": "другое", "count": total, "percentage": 100}],
        "rawBugs": [{"environment": "prod", "component": "x"}] * total,
    }
    if created is not None:
        data.update(
            {
                "totalBugsCreated": sum(created.values()),
                "componentsCreated": [{"name": k, "count": v} for k, v in created.items()],
                "reasonsCreated": [{"reason": "другое", "count": sum(created.values())}],
                "rawBugsCreated": [{"environment": "prod", "component": "x"}]
                * sum(created.values()),
            }
        )
    return data


@pytest.fixture(name="periods_data")
def fixture_periods_data():
    return [
        make_period_data(
            "period1", "2025-01-06", "2025-02-02", {"critical": 2, "low": 1}, {"API": 3}, {"API": 1}
        ),
        make_period_data(
            "period2", "2025-02-03", "2025-03-02", {"low": 4}, {"UI": 1, "API": 3}, {"UI": 2}
        ),
        make_period_data(
            "period3", "2025-03-03", "2025-03-30", {"major": 1, "critical": 1}, {"UI": 2}, {}
        ),
    ]


def test_merge_buckets_by_key():
    merged = merge_buckets_by_key(
        [
            [{"label": "a", "count": 1}, {"label": "b", "count": 2}],
            [{"label": "c", "count": 5}, {"label": "a", "count": 3}],
            [],
        ],
        "label",
        total=11,
    )

    assert merged == [
        {"label": "a", "count": 4, "percentage": 36.36},
        {"label": "b", "count": 2, "percentage": 18.18},
        {"label": "c", "count": 5, "percentage": 45.45},
    ]


def test_merge_buckets_without_total():
    assert merge_buckets_by_key([[{"name": "x", "count": 1}], None], "name") == [
        {"name": "x", "count": 1}
    ]


def test_merge_period_data(periods_data):
    merged = merge_period_data(periods_data[:2])

    assert merged["periodId"] == "period1-period2"
    assert merged["startDate"] == "2025-01-06"
    assert merged["endDate"] == "2025-03-02"
    assert merged["generatedAt"] == "2025-03-02T12:00:00.000Z"
    assert merged["totalBugs"] == 7
    assert merged["severity"] == [
        {"label": "critical", "count": 2, "percentage": 28.57},
        {"label": "low", "count": 5, "percentage": 71.43},
    ]
    assert [(b["name"], b["count"]) for b in merged["components"]] == [
        ("API", 6),
        ("UI", 1),
    ]
    assert merged["trackers"] == [{"name": "Jira", "count": 7, "percentage": 100.0}]
    assert len(merged["rawBugs"]) == 7

    assert merged["totalBugsCreated"] == 3
    assert merged["componentsCreated"] == [
        {"name": "API", "count": 1, "percentage": 33.33},
        {"name": "UI", "count": 2, "percentage": 66.67},
    ]
    assert len(merged["rawBugsCreated"]) == 3


def test_merge_conserves_totals(periods_data):
    merged = merge_period_data(periods_data)

    for field in ("severity", "environment", "resolution", "trackers", "reasons"):
        assert sum(b["count"] for b in merged[field]) == merged["totalBugs"]


def test_merge_is_associative(periods_data):
    a, b, c = periods_data

    assert merge_period_data([merge_period_data([a, b]), c]) == merge_period_data([a, b, c])
    assert merge_period_data([a, merge_period_data([b, c])]) == merge_period_data([a, b, c])


def test_merge_single_period_is_unchanged(periods_data):
    assert merge_period_data(periods_data[:1]) is periods_data[0]


def test_merge_empty_list():
    with pytest.raises(ValueError):
        merge_period_data([])


def test_merge_without_created_view():
    a = make_period_data("period1", "2025-01-01", "2025-01-31", {"low": 1}, {"API": 1})
    b = make_period_data("period2", "2025-02-01", "2025-02-28", {"low": 1}, {"API": 1})

    merged = merge_period_data([a, b])

    for field in ("totalBugsCreated", "componentsCreated", "reasonsCreated", "rawBugsCreated"):
        assert field not in merged


PERIOD_CONFIGS = [
    {"id": f"period{i}", "startDate": f"2025-0{i}-01", "endDate": f"2025-0{i}-28"}
    for i in range(1, 6)
]


def test_group_periods_short_group_first():
    groups = group_periods(PERIOD_CONFIGS, 2)

    assert [[p["id"] for p in g] for g in groups] == [
        ["period1"],
        ["period2", "period3"],
        ["period4", "period5"],
    ]


def test_group_periods_multiplier_one():
    assert len(group_periods(PERIOD_CONFIGS, 1)) == 5


def test_grouped_period_configs():
    configs = grouped_period_configs(group_periods(PERIOD_CONFIGS, 2))

    assert configs[0] == {
        "id": "period1",
        "label": "01.01 - 28.01",
        "startDate": "2025-01-01",
        "endDate": "2025-01-28",
        "sourceIds": ["period1"],
    }
    assert configs[1] == {
        "id": "period2-period3",
        "label": "01.02 - 28.03",
        "startDate": "2025-02-01",
        "endDate": "2025-03-28",
        "sourceIds": ["period2", "period3"],
    }


def test_find_best_matching_period():
    single = grouped_period_configs(group_periods(PERIOD_CONFIGS, 1))
    double = grouped_period_configs(group_periods(PERIOD_CONFIGS, 2))

    assert find_best_matching_period("period1", single, double) == "period1"
    assert find_best_matching_period("period3", single, double) == "period2-period3"
    assert find_best_matching_period("period4-period5", double, single) == "period4"
    assert find_best_matching_period("nope", single, double) == "period1"
    assert find_best_matching_period("period1", single, []) == ""
