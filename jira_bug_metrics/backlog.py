"""Backlog trend reconstruction.

For every completed sprint, count the bugs that were open when it finished.
Counts come from the approximate-count endpoint with a point-in-time JQL
query, so no issue bodies are fetched.
"""

import logging
import time

from jira.exceptions import JIRAError
from requests.exceptions import RequestException

from .jira_client import is_auth_error
from .models import Sprint, SprintBacklogSample, date_part, parse_timestamp
from .queries import open_bugs_at_date_jql

logger = logging.getLogger(__name__)

SPRINT_DELAY_SECONDS = 1


def select_completed_sprints(sprints, max_sprints):
    """Closed sprints with a completion date, most recent ``max_sprints``,
    ordered by completion.
    """
    sprints = [s if isinstance(s, Sprint) else Sprint.from_dict(s) for s in sprints]
    completed = [s for s in sprints if s.is_closed and s.complete_date]
    completed.sort(key=lambda s: parse_timestamp(s.complete_date))
    return completed[-max_sprints:] if max_sprints else completed


def collect_sprint_backlog(
    client, board_id, project_key, max_sprints=50, sleep=time.sleep, sprints=None
):
    """Collect one backlog sample per completed sprint.

    A sprint whose count fails is logged and left out; authentication errors
    propagate.

    Args:
        client: JiraClient
        board_id: Board whose sprints are sampled
        project_key: Project the bugs belong to
        max_sprints: Number of most recent sprints to sample
        sleep: Delay function, called between sprints
        sprints: Sprint list already fetched for the board, if any

    Returns:
        List of SprintBacklogSample, oldest first
    """
    if sprints is None:
        logger.info("Loading sprints of board %s", board_id)
        sprints = client.get_sprints(board_id)

    completed = select_completed_sprints(sprints, max_sprints)
    logger.info(
        "Sampling backlog size at the completion of %d sprints", len(completed)
    )

    samples = []
    for i, sprint in enumerate(completed):
        if i > 0:
            sleep(SPRINT_DELAY_SECONDS)

        jql = open_bugs_at_date_jql(project_key, date_part(sprint.complete_date))
        logger.debug("JQL: %s", jql)

        try:
            count = client.count_issues(jql)
        except (JIRAError, RequestException) as e:
            if is_auth_error(e):
                raise
            logger.error("Failed to count backlog for sprint %s: %s", sprint.name, e)
            continue

        samples.append(
            SprintBacklogSample(
                sprint=sprint.name,
                start_date=date_part(sprint.start_date),
                end_date=date_part(sprint.end_date),
                backlog_bugs=count,
            )
        )
        logger.info(
            "%s: %d open bugs (%d/%d, %d%%)",
            sprint.name,
            count,
            i + 1,
            len(completed),
            round((i + 1) / len(completed) * 100),
        )

    logger.info("Collected backlog samples for %d sprints", len(samples))
    return samples
