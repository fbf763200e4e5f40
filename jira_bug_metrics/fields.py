"""Normalization of issue field values.

Depending on how a Jira instance is configured, the same logical field can
arrive as a plain string, an option object (``{"value": ...}`` or
``{"name": ...}``) or a list of either. Everything is resolved through
:func:`option_label` and :func:`option_labels` so the extractors below never
type-check values themselves. Missing values fall back to a sentinel bucket.
"""

import logging

logger = logging.getLogger(__name__)

UNKNOWN = "unknown"
NO_COMPONENT = "no_component"
OTHER_REASON = "другое"

DONE = "Done"
IN_PROGRESS = "In Progress"
TO_DO = "To Do"


def option_label(value):
    """Resolve one field value to a label, or None if it has none.

    Blank strings count as missing. For a list the first usable label wins.
    """
    if isinstance(value, str):
        return value if value.strip() else None
    if isinstance(value, dict):
        for key in ("value", "name"):
            label = value.get(key)
            if isinstance(label, str) and label.strip():
                return label
        return None
    if isinstance(value, (list, tuple)):
        labels = option_labels(value)
        return labels[0] if labels else None
    return None


def option_labels(value):
    """Resolve a field value to a list of labels, dropping unusable items."""
    if isinstance(value, (list, tuple)):
        labels = []
        for item in value:
            if isinstance(item, (list, tuple)):
                continue
            label = option_label(item)
            if label is not None:
                labels.append(label)
        return labels

    label = option_label(value)
    return [label] if label is not None else []


def _fields(issue):
    return issue.get("fields") or {}


def _fallback(issue, what, sentinel):
    logger.debug("Issue %s has no %s, using '%s'", issue.get("key"), what, sentinel)
    return sentinel


def severity(issue, severity_field):
    """Severity from the custom field, else the priority name, lowercased."""
    fields = _fields(issue)
    label = option_label(fields.get(severity_field)) if severity_field else None

    if label is None:
        label = option_label(fields.get("priority"))
    if label is None:
        label = _fallback(issue, "severity", UNKNOWN)

    return label.lower()


def environment(issue, environment_field="environment"):
    """Environment from the configured field, else the standard field, lowercased."""
    fields = _fields(issue)
    label = option_label(fields.get(environment_field)) if environment_field else None

    if label is None and environment_field != "environment":
        label = option_label(fields.get("environment"))
    if label is None:
        label = _fallback(issue, "environment", UNKNOWN)

    return label.lower()


def resolution(issue):
    """Collapse the workflow status into ``Done``, ``In Progress`` or ``To Do``."""
    status = _fields(issue).get("status") or {}
    name = status.get("name") if isinstance(status, dict) else None
    category = status.get("statusCategory") if isinstance(status, dict) else None
    category_name = category.get("name") if isinstance(category, dict) else None

    if DONE in (category_name, name):
        return DONE
    if IN_PROGRESS in (category_name, name):
        return IN_PROGRESS
    return TO_DO


def component_names(issue, component_field=""):
    """All component names of an issue; empty if it has none.

    A configured custom field replaces the standard ``components`` field.
    """
    names = option_labels(_fields(issue).get(component_field or "components"))
    if not names:
        _fallback(issue, "component", NO_COMPONENT)
    return names


def reason(issue, reason_field):
    """Bug reason from the custom field, case preserved."""
    label = option_label(_fields(issue).get(reason_field)) if reason_field else None
    if label is None:
        label = _fallback(issue, "bug reason", OTHER_REASON)
    return label
