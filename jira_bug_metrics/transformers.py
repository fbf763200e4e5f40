"""Transform raw Jira issues into dashboard metrics.

Each issue is flattened into one row of a DataFrame (see :mod:`.fields` for
how values are extracted), then every dimension is counted with a group-by.
Buckets keep the order in which their keys first appear; component buckets
are ordered by descending count.
"""

import logging

import pandas as pd

from . import fields
from .fields import NO_COMPONENT

logger = logging.getLogger(__name__)

TRACKER_NAME = "Jira"


def percentage(count, total):
    """Share of ``total`` in percent, rounded to 2 decimals; 0 when total is 0."""
    if not total:
        return 0
    return round(count / total * 100, 2)


def count_buckets(values, key, total, sort_by_count=False):
    """Count occurrences of each value into ``{key, count, percentage}`` records."""
    series = pd.Series(list(values), dtype=object)
    if series.empty:
        return []

    counts = series.groupby(series, sort=False).size()
    if sort_by_count:
        counts = counts.sort_values(ascending=False, kind="mergesort")

    return [
        {key: label, "count": int(count), "percentage": percentage(int(count), total)}
        for label, count in counts.items()
    ]


def _component_buckets(component_lists, total):
    names = pd.Series(
        [names or [NO_COMPONENT] for names in component_lists], dtype=object
    ).explode()
    return count_buckets(names, "name", total, sort_by_count=True)


def _issue_frame(issues, severity_field, reason_field, environment_field, component_field):
    rows = []
    for issue in issues:
        names = fields.component_names(issue, component_field)
        rows.append(
            {
                "severity": fields.severity(issue, severity_field),
                "environment": fields.environment(issue, environment_field),
                "resolution": fields.resolution(issue),
                "reason": fields.reason(issue, reason_field),
                "components": names,
                "component": names[0] if names else NO_COMPONENT,
            }
        )

    return pd.DataFrame(
        rows,
        columns=[
            "severity",
            "environment",
            "resolution",
            "reason",
            "components",
            "component",
        ],
    )


def _raw_bugs(df):
    return [
        {"environment": env, "component": component}
        for env, component in zip(df["environment"], df["component"])
    ]


def transform_bugs_to_metrics(
    issues,
    severity_field,
    reason_field,
    environment_field="environment",
    component_field="",
):
    """Aggregate the backlog view of one period.

    Returns:
        Dictionary with ``totalBugs``, ``severity``, ``environment``,
        ``resolution``, ``components``, ``trackers``, ``reasons`` and ``rawBugs``
    """
    total = len(issues)
    df = _issue_frame(
        issues, severity_field, reason_field, environment_field, component_field
    )

    trackers = []
    if total:
        trackers = [{"name": TRACKER_NAME, "count": total, "percentage": 100.0}]

    metrics = {
        "totalBugs": total,
        "severity": count_buckets(df["severity"], "label", total),
        "environment": count_buckets(df["environment"], "environment", total),
        "resolution": count_buckets(df["resolution"], "status", total),
        "components": _component_buckets(df["components"], total),
        "trackers": trackers,
        "reasons": count_buckets(df["reason"], "reason", total),
        "rawBugs": _raw_bugs(df),
    }

    logger.debug(
        "Transformed %d issues: %d severities, %d environments, %d components",
        total,
        len(metrics["severity"]),
        len(metrics["environment"]),
        len(metrics["components"]),
    )
    return metrics


def extract_components_and_reasons(
    issues, reason_field, component_field="", environment_field="environment"
):
    """Aggregate the created view of one period: components, reasons and the
    raw projection, computed independently of :func:`transform_bugs_to_metrics`.

    Returns:
        Dictionary with ``total``, ``components``, ``reasons`` and ``rawBugs``
    """
    total = len(issues)
    component_lists = [fields.component_names(i, component_field) for i in issues]
    reasons = [fields.reason(i, reason_field) for i in issues]

    raw_bugs = [
        {
            "environment": fields.environment(issue, environment_field),
            "component": names[0] if names else NO_COMPONENT,
        }
        for issue, names in zip(issues, component_lists)
    ]

    return {
        "total": total,
        "components": _component_buckets(component_lists, total),
        "reasons": count_buckets(reasons, "reason", total),
        "rawBugs": raw_bugs,
    }
