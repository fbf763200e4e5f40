"""Jira Bug Metrics - bug quality metrics per sprint period, extracted from JIRA.

This package fetches the bugs of a project's recent sprints, aggregates them
by severity, environment, resolution, component and reason, and writes JSON
snapshots (one per period plus a ``config.json`` index) for a dashboard.
"""
