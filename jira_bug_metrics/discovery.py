"""Look around a Jira site to find the values the extraction needs.

Lists the projects, the custom fields that look like severity, bug reason or
environment fields, and every board with a summary of its sprints. With a
project configured it also counts the project's bugs, overall and for the
configured board's recent sprints, to confirm the settings before a run.
"""

import logging
import sys

from jira.exceptions import JIRAError
from requests.exceptions import RequestException

from .jira_client import is_auth_error
from .models import Sprint, date_part
from .queries import all_bugs_jql, bugs_for_sprint_jql

logger = logging.getLogger(__name__)

FIELD_KEYWORDS = (
    "severity",
    "серьезность",
    "причина",
    "reason",
    "root cause",
    "environment",
    "окружение",
    "среда",
)
RECENT_CLOSED_SPRINTS = 5


def relevant_fields(fields):
    """Custom fields whose name contains one of ``FIELD_KEYWORDS``."""
    return [
        f
        for f in fields
        if f.get("custom")
        and any(keyword in (f.get("name") or "").lower() for keyword in FIELD_KEYWORDS)
    ]


def summarize_sprints(sprints):
    """Count sprints per state and pick the active and recent closed ones."""
    by_state = {"active": [], "closed": [], "future": []}
    for sprint in sprints:
        by_state.setdefault(sprint.state, []).append(sprint)

    return {
        "total": len(sprints),
        "active": by_state["active"],
        "closed": by_state["closed"],
        "future": by_state["future"],
        "recent_closed": by_state["closed"][-RECENT_CLOSED_SPRINTS:],
    }


def _report_failure(what, error, out):
    if is_auth_error(error):
        raise error
    logger.debug("Discovery of %s failed", what, exc_info=True)
    print(f"  Could not fetch {what}: {error}", file=out)


def _heading(title, out):
    print(title, file=out)
    print("-" * 40, file=out)


def list_projects(client, out):
    _heading("PROJECTS", out)
    try:
        projects = client.get_projects()
    except (JIRAError, RequestException) as e:
        _report_failure("projects", e, out)
        return

    if not projects:
        print("  (no projects available)", file=out)
    for project in projects:
        print(f"  {project.get('key', ''):<12} - {project.get('name', '')}", file=out)


def list_fields(client, out):
    _heading("CUSTOM FIELDS", out)
    try:
        fields = client.get_fields()
    except (JIRAError, RequestException) as e:
        _report_failure("fields", e, out)
        return

    custom = [f for f in fields if f.get("custom")]
    relevant = relevant_fields(custom)
    if relevant:
        print("  Relevant fields:", file=out)
        for f in relevant:
            print(f"    {f['id']:<20} - {f.get('name', '')}", file=out)
        print("", file=out)

    print(f"  Custom fields: {len(custom)}", file=out)
    for f in custom:
        print(f"    {f['id']:<20} - {f.get('name', '')}", file=out)


def count_project_bugs(client, project_key, out):
    try:
        count = client.count_issues(all_bugs_jql(project_key))
    except (JIRAError, RequestException) as e:
        _report_failure(f"bugs of {project_key}", e, out)
        return
    print(f"  Bugs in {project_key}: {count}", file=out)


def _print_sprint_bug_counts(client, project_key, sprints, out):
    for sprint in sprints:
        try:
            count = client.count_issues(bugs_for_sprint_jql(project_key, sprint.id))
        except (JIRAError, RequestException) as e:
            _report_failure(f"bugs of {sprint.name}", e, out)
            continue
        print(f"             {sprint.name}: {count} bugs", file=out)


def list_boards(client, out, project_key=None, board_id=None):
    _heading("BOARDS", out)
    try:
        boards = client.get_boards()
    except (JIRAError, RequestException) as e:
        _report_failure("boards", e, out)
        return

    if not boards:
        print("  (no boards available)", file=out)

    for board in boards:
        print(
            f"  ID: {str(board['id']):<6} - {board.get('name', '')} ({board.get('type', '')})",
            file=out,
        )
        location = board.get("location") or {}
        if location.get("projectKey"):
            print(f"         Project: {location['projectKey']}", file=out)

        try:
            sprints = [Sprint.from_dict(s) for s in client.get_sprints(board["id"])]
        except (JIRAError, RequestException) as e:
            _report_failure("sprints", e, out)
            print("", file=out)
            continue

        summary = summarize_sprints(sprints)
        print(
            f"         Sprints: {summary['total']} total "
            f"(active: {len(summary['active'])}, closed: {len(summary['closed'])}, "
            f"future: {len(summary['future'])})",
            file=out,
        )
        if summary["active"]:
            print(f"         Active: {summary['active'][0].name}", file=out)
        if summary["recent_closed"]:
            print("         Recent closed:", file=out)
            for sprint in summary["recent_closed"]:
                dates = ""
                if sprint.start_date and sprint.end_date:
                    dates = f" ({date_part(sprint.start_date)} - {date_part(sprint.end_date)})"
                print(f"           - {sprint.name}{dates}", file=out)

        if project_key and board["id"] == board_id and summary["recent_closed"]:
            print("         Bugs per recent sprint:", file=out)
            _print_sprint_bug_counts(client, project_key, summary["recent_closed"], out)
        print("", file=out)


def discover(client, project_key=None, board_id=None, out=None):
    """Print what the site offers, section by section.

    A failing section is reported and the next one still runs; an
    authentication failure stops discovery.
    """
    out = out or sys.stdout

    print("=" * 60, file=out)
    print("JIRA DISCOVERY", file=out)
    print("=" * 60, file=out)
    print("", file=out)

    list_projects(client, out)
    if project_key:
        count_project_bugs(client, project_key, out)
    print("", file=out)

    list_fields(client, out)
    print("", file=out)

    list_boards(client, out, project_key=project_key, board_id=board_id)

    print("Next steps:", file=out)
    print("  1. Set JIRA_PROJECT_KEY to the project key", file=out)
    print("  2. Set JIRA_FIELD_SEVERITY, JIRA_FIELD_BUG_REASON and", file=out)
    print("     JIRA_FIELD_ENVIRONMENT to the matching field ids", file=out)
    print("  3. Set JIRA_BOARD_ID to the board holding the sprints", file=out)
    print("  4. Run jira-bug-metrics without --discover", file=out)
