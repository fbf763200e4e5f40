"""Tests for the output directory."""

import json
import os

import pytest

from .store import StoreError


def period(period_id, total=1):
    return {
        "periodId": period_id,
        "startDate": "2025-01-01",
        "endDate": "2025-01-31",
        "generatedAt": "2025-02-01T00:00:00.000Z",
        "totalBugs": total,
        "severity": [{"label": "low", "count": total, "percentage": 100}],
        "environment": [],
        "resolution": [],
        "components": [{"name": "Сервис", "count": total, "percentage": 100}],
        "trackers": [],
        "reasons": [],
        "rawBugs": [],
    }


def test_write_and_load_period(store):
    path = store.write_period(period("period1"))

    assert path == os.path.join(store.directory, "periods", "period1.json")
    assert store.load_period("period1") == period("period1")


def test_json_is_readable_utf8(store):
    path = store.write_period(period("period1"))

    with open(path, encoding="utf-8") as f:
        text = f.read()

    assert "Сервис" in text
    assert '\n  "periodId"' in text


def test_write_and_load_config(store):
    store.write_config({"projectKey": "DCLS", "periods": []})

    assert store.load_config() == {"projectKey": "DCLS", "periods": []}


def test_purge_removes_period_files_only(store):
    store.write_period(period("period1"))
    store.write_period(period("period2"))
    notes = os.path.join(store.periods_directory, "notes.txt")
    with open(notes, "w", encoding="utf-8") as f:
        f.write("keep")

    assert store.purge() == 2
    assert os.listdir(store.periods_directory) == ["notes.txt"]


def test_purge_missing_directory(store):
    assert store.purge() == 0


def test_load_missing_period(store):
    with pytest.raises(StoreError, match="not found"):
        store.load_period("period9")


def test_load_malformed_file(store):
    store.prepare()
    with open(store.period_path("period1"), "w", encoding="utf-8") as f:
        f.write("{not json")

    with pytest.raises(StoreError, match="Could not read"):
        store.load_period("period1")


def test_load_grouped_period_skips_missing(store):
    store.write_period(period("period1", total=2))
    store.write_period(period("period3", total=3))

    merged = store.load_grouped_period(["period1", "period2", "period3"])

    assert merged["periodId"] == "period1-period3"
    assert merged["totalBugs"] == 5


def test_load_grouped_period_without_data(store):
    with pytest.raises(StoreError, match="No data"):
        store.load_grouped_period(["period1"])


def test_written_config_is_json(store):
    path = store.write_config({"visibility": {"trackers": False}})

    with open(path, encoding="utf-8") as f:
        assert json.load(f) == {"visibility": {"trackers": False}}


def test_grouped_period_bounds_follow_existing_files(store):
    data = period("period3", total=3)
    data.update(startDate="2025-03-01", endDate="2025-03-31")
    store.write_period(period("period2", total=2))
    store.write_period(data)

    merged = store.load_grouped_period(["period1", "period2", "period3"])

    assert merged["periodId"] == "period2-period3"
    assert merged["startDate"] == "2025-01-01"
    assert merged["endDate"] == "2025-03-31"
