"""JQL builders.

Every builder returns a single line with whitespace collapsed, which keeps
the queries stable for logging and comparison.
"""

import re


def normalize_jql(jql):
    return re.sub(r"\s+", " ", jql).strip()


def bugs_for_period_jql(project_key, period):
    """Bugs in a period's sprints, or created within its dates when the
    period carries no sprint ids.
    """
    if period.sprint_ids:
        return bugs_in_sprints_jql(project_key, period.sprint_ids)
    return bugs_in_date_range_jql(project_key, period.start_date, period.end_date)


def bugs_in_sprints_jql(project_key, sprint_ids):
    sprints = ",".join(str(sprint_id) for sprint_id in sprint_ids)
    return normalize_jql(
        f"""
        project = {project_key}
        AND issuetype = Bug
        AND Sprint IN ({sprints})
        ORDER BY created DESC
        """
    )


def bugs_for_sprint_jql(project_key, sprint_id):
    return normalize_jql(
        f"""
        project = {project_key}
        AND issuetype = Bug
        AND Sprint = {sprint_id}
        ORDER BY created DESC
        """
    )


def all_bugs_jql(project_key):
    return normalize_jql(
        f"""
        project = {project_key}
        AND issuetype = Bug
        ORDER BY created DESC
        """
    )


def bugs_in_date_range_jql(project_key, start_date, end_date):
    return normalize_jql(
        f"""
        project = {project_key}
        AND issuetype = Bug
        AND created >= "{start_date}"
        AND created <= "{end_date}"
        ORDER BY created DESC
        """
    )


def open_bugs_at_date_jql(project_key, target_date):
    """Bugs that existed on ``target_date`` and had not been Done before it.

    Relies on the ``WAS ... BEFORE`` history operator, so the answer reflects
    the status at that date rather than the current one.
    """
    return normalize_jql(
        f"""
        project = {project_key}
        AND issuetype = Bug
        AND created <= "{target_date}"
        AND NOT status WAS IN ("Done") BEFORE "{target_date}"
        ORDER BY created DESC
        """
    )
