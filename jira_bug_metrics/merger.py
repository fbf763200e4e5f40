"""Re-aggregation of adjacent period snapshots into coarser periods.

Used by consumers of the output to show e.g. two-period or quarter views
without querying Jira again. Counts are summed by bucket key and
percentages recomputed from the merged totals.
"""

import datetime
import logging

import pandas as pd

from .periods import partition_leading
from .transformers import percentage

logger = logging.getLogger(__name__)

# bucket list -> (key field, total it is a share of)
BUCKET_KEYS = {
    "severity": ("label", "totalBugs"),
    "environment": ("environment", "totalBugs"),
    "resolution": ("status", "totalBugs"),
    "components": ("name", "totalBugs"),
    "trackers": ("name", "totalBugs"),
    "reasons": ("reason", "totalBugs"),
    "componentsCreated": ("name", "totalBugsCreated"),
    "reasonsCreated": ("reason", "totalBugsCreated"),
}

CREATED_FIELDS = (
    "totalBugsCreated",
    "componentsCreated",
    "reasonsCreated",
    "rawBugsCreated",
)


def merge_buckets_by_key(bucket_lists, key, total=None):
    """Merge several bucket lists, summing ``count`` for equal keys.

    Keys keep the order of their first appearance. Percentages are
    recomputed against ``total`` when one is given.
    """
    records = [
        {key: bucket.get(key) or "", "count": bucket.get("count", 0)}
        for buckets in bucket_lists
        for bucket in buckets or []
    ]
    if not records:
        return []

    df = pd.DataFrame(records, columns=[key, "count"])
    counts = df.groupby(key, sort=False)["count"].sum()

    merged = []
    for label, count in counts.items():
        bucket = {key: label, "count": int(count)}
        if total is not None:
            bucket["percentage"] = percentage(int(count), total)
        merged.append(bucket)
    return merged


def _merged_period_id(first, last):
    return f"{first.split('-')[0]}-{last.split('-')[-1]}"


def merge_period_data(periods_data):
    """Merge adjacent period snapshots, oldest first, into one snapshot.

    Raises:
        ValueError: If ``periods_data`` is empty
    """
    if not periods_data:
        raise ValueError("Cannot merge an empty list of periods")

    if len(periods_data) == 1:
        return periods_data[0]

    first = periods_data[0]
    last = periods_data[-1]

    merged = {
        "periodId": _merged_period_id(first["periodId"], last["periodId"]),
        "startDate": min(p["startDate"] for p in periods_data),
        "endDate": max(p["endDate"] for p in periods_data),
        "generatedAt": max(
            (p.get("generatedAt") or "" for p in periods_data),
            default="",
        )
        or datetime.datetime.now(datetime.timezone.utc).isoformat(),
        "totalBugs": sum(p.get("totalBugs", 0) for p in periods_data),
    }

    has_created = any("totalBugsCreated" in p for p in periods_data)
    if has_created:
        merged["totalBugsCreated"] = sum(
            p.get("totalBugsCreated", 0) for p in periods_data
        )

    for field, (key, total_field) in BUCKET_KEYS.items():
        if field in CREATED_FIELDS and not has_created:
            continue
        merged[field] = merge_buckets_by_key(
            [p.get(field) for p in periods_data], key, merged[total_field]
        )

    merged["rawBugs"] = [bug for p in periods_data for bug in p.get("rawBugs") or []]
    if has_created:
        merged["rawBugsCreated"] = [
            bug for p in periods_data for bug in p.get("rawBugsCreated") or []
        ]

    logger.debug(
        "Merged %d periods into %s (%d bugs)",
        len(periods_data),
        merged["periodId"],
        merged["totalBugs"],
    )
    return merged


def group_periods(periods, multiplier):
    """Group period configs by ``multiplier``, the short group first."""
    return partition_leading(periods, multiplier)


def _short_date(date):
    _, month, day = date.split("-")
    return f"{day}.{month}"


def grouped_period_configs(groups):
    """Describe each group of period configs as one selectable period."""
    configs = []
    for group in groups:
        first, last = group[0], group[-1]
        configs.append(
            {
                "id": first["id"] if len(group) == 1 else f"{first['id']}-{last['id']}",
                "label": f"{_short_date(first['startDate'])} - "
                f"{_short_date(last['endDate'])}",
                "startDate": first["startDate"],
                "endDate": last["endDate"],
                "sourceIds": [p["id"] for p in group],
            }
        )
    return configs


def find_best_matching_period(current_id, old_grouped, new_grouped):
    """Map a selected period id onto a new grouping.

    Prefers the same id, then the first new group sharing a source period,
    then the first new group. Returns ``""`` if there are no groups.
    """
    if any(p["id"] == current_id for p in new_grouped):
        return current_id

    fallback = new_grouped[0]["id"] if new_grouped else ""

    current = next((p for p in old_grouped if p["id"] == current_id), None)
    if current is None:
        return fallback

    for candidate in new_grouped:
        if set(current["sourceIds"]) & set(candidate["sourceIds"]):
            return candidate["id"]

    return fallback
