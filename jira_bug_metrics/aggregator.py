"""Extraction run orchestration.

A run plans the periods from the board's sprints, then for each period, in
order, fetches the bugs in its sprints (backlog view) and the bugs created
within its dates (created view), and writes one snapshot. It finishes with
the backlog trend and ``config.json``.

Periods are processed strictly one after another with fixed pauses between
queries; the client's own pacing comes on top of that.
"""

import datetime
import logging
import time
from dataclasses import dataclass, field
from typing import List

from jira.exceptions import JIRAError
from requests.exceptions import RequestException

from .backlog import collect_sprint_backlog
from .jira_client import is_auth_error
from .periods import plan_periods
from .queries import bugs_for_period_jql, bugs_in_date_range_jql
from .transformers import extract_components_and_reasons, transform_bugs_to_metrics

logger = logging.getLogger(__name__)

PERIOD_DELAY_SECONDS = 5
QUERY_DELAY_SECONDS = 2

WRITTEN = "written"
SKIPPED = "skipped"
FAILED = "failed"


def utc_now():
    return datetime.datetime.now(datetime.timezone.utc)


def to_timestamp(moment):
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def format_duration(seconds):
    seconds = int(round(seconds))
    minutes, seconds = divmod(seconds, 60)
    if minutes:
        return f"{minutes}m {seconds}s"
    return f"{seconds}s"


@dataclass
class PeriodStat:
    """Outcome of processing one period."""

    period_id: str
    label: str
    status: str
    bugs: int = 0
    bugs_created: int = 0
    seconds: float = 0.0


@dataclass
class RunSummary:
    """Outcome of a whole extraction run."""

    periods_planned: int = 0
    period_stats: List[PeriodStat] = field(default_factory=list)
    components: List[str] = field(default_factory=list)
    sprint_samples: int = 0
    elapsed_seconds: float = 0.0

    def _count(self, status):
        return sum(1 for s in self.period_stats if s.status == status)

    @property
    def periods_written(self):
        return self._count(WRITTEN)

    @property
    def periods_skipped(self):
        return self._count(SKIPPED)

    @property
    def periods_failed(self):
        return self._count(FAILED)

    @property
    def total_bugs(self):
        return sum(s.bugs for s in self.period_stats)


class PeriodAggregator:
    """Drive one extraction run.

    ``settings`` is the ``settings`` section of the options (see
    :func:`jira_bug_metrics.config.config_to_options`). ``sleep``, ``clock``
    and ``now`` are injectable so tests can run without real delays.
    """

    def __init__(
        self,
        client,
        settings,
        store,
        sleep=time.sleep,
        clock=time.monotonic,
        now=utc_now,
    ):
        self.client = client
        self.settings = settings
        self.store = store
        self.sleep = sleep
        self.clock = clock
        self.now = now
        self.components = set()

    def run(self):
        """Run the extraction and return a :class:`RunSummary`.

        Raises:
            JIRAError: If the sprints cannot be loaded, or on an
                authentication error at any point
        """
        started = self.clock()
        summary = RunSummary()
        self.components = set()

        self.store.purge()
        self.store.prepare()

        sprints = self.load_sprints()
        periods = plan_periods(
            sprints,
            self.settings["sprints_per_period"],
            self.settings["max_sprints"],
        )
        summary.periods_planned = len(periods)

        for i, period in enumerate(periods):
            if i > 0:
                logger.debug("Waiting %ds between periods", PERIOD_DELAY_SECONDS)
                self.sleep(PERIOD_DELAY_SECONDS)

            stat = self.process_period(period, i + 1, len(periods))
            summary.period_stats.append(stat)
            self._log_progress(summary.period_stats, len(periods))

        samples = self.collect_sprint_trend(sprints)
        summary.sprint_samples = len(samples)

        self.store.write_config(self.build_config(periods, samples))

        summary.components = sorted(self.components)
        summary.elapsed_seconds = self.clock() - started
        return summary

    def load_sprints(self):
        board_id = self.settings["board_id"]
        logger.info("Loading sprints of board %s", board_id)
        try:
            return self.client.get_sprints(board_id)
        except (JIRAError, RequestException) as e:
            logger.error("Could not load sprints of board %s: %s", board_id, e)
            raise

    def process_period(self, period, index, count):
        """Fetch, transform and persist one period.

        Query failures other than authentication errors mark the period as
        failed and let the run continue.
        """
        started = self.clock()
        settings = self.settings
        project_key = settings["project_key"]

        logger.info("[%d/%d] Period %s (%s)", index, count, period.id, period.label)
        if period.sprint_names:
            logger.info("Sprints: %s", ", ".join(period.sprint_names))

        jql = bugs_for_period_jql(project_key, period)
        logger.debug("JQL: %s", jql)

        try:
            issues = self.client.search_issues(jql)
        except (JIRAError, RequestException) as e:
            if is_auth_error(e):
                raise
            logger.error("Failed to load bugs for %s: %s", period.id, e)
            return PeriodStat(
                period.id, period.label, FAILED, seconds=self.clock() - started
            )

        logger.info("Found %d bugs in the sprints of %s", len(issues), period.id)

        if not issues:
            logger.warning("Skipping %s: no bugs", period.id)
            return PeriodStat(
                period.id, period.label, SKIPPED, seconds=self.clock() - started
            )

        metrics = transform_bugs_to_metrics(
            issues,
            settings["severity_field"],
            settings["reason_field"],
            settings["environment_field"],
            settings["component_field"],
        )
        self.components.update(c["name"] for c in metrics["components"])

        data = {
            "periodId": period.id,
            "startDate": period.start_date,
            "endDate": period.end_date,
            "generatedAt": to_timestamp(self.now()),
        }
        data.update(metrics)

        self.sleep(QUERY_DELAY_SECONDS)
        created = self.fetch_created_view(period)
        if created is not None:
            data.update(created)

        self.store.write_period(data)

        stat = PeriodStat(
            period.id,
            period.label,
            WRITTEN,
            bugs=len(issues),
            bugs_created=data.get("totalBugsCreated", 0),
            seconds=self.clock() - started,
        )
        logger.info(
            "Severity: %s",
            ", ".join(f"{b['label']}={b['count']}" for b in metrics["severity"]),
        )
        logger.info(
            "Environment: %s",
            ", ".join(f"{b['environment']}={b['count']}" for b in metrics["environment"]),
        )
        return stat

    def fetch_created_view(self, period):
        """Components, reasons and raw bugs of the bugs created in the period.

        Returns None if the query failed.
        """
        settings = self.settings
        jql = bugs_in_date_range_jql(
            settings["project_key"], period.start_date, period.end_date
        )
        logger.debug("JQL: %s", jql)

        try:
            issues = self.client.search_issues(jql)
        except (JIRAError, RequestException) as e:
            if is_auth_error(e):
                raise
            logger.error(
                "Failed to load bugs created in %s, writing the backlog view only: %s",
                period.id,
                e,
            )
            return None

        logger.info(
            "Found %d bugs created between %s and %s",
            len(issues),
            period.start_date,
            period.end_date,
        )

        created = extract_components_and_reasons(
            issues,
            settings["reason_field"],
            settings["component_field"],
            settings["environment_field"],
        )
        self.components.update(c["name"] for c in created["components"])

        return {
            "totalBugsCreated": created["total"],
            "componentsCreated": created["components"],
            "reasonsCreated": created["reasons"],
            "rawBugsCreated": created["rawBugs"],
        }

    def collect_sprint_trend(self, sprints):
        try:
            return collect_sprint_backlog(
                self.client,
                self.settings["board_id"],
                self.settings["project_key"],
                self.settings["sprint_analysis_count"],
                sleep=self.sleep,
                sprints=sprints,
            )
        except (JIRAError, RequestException) as e:
            if is_auth_error(e):
                raise
            logger.error("Failed to collect the sprint backlog trend: %s", e)
            logger.warning("The sprint backlog chart will be empty")
            return []

    def build_config(self, periods, samples):
        """Build the ``config.json`` index of the run."""
        visibility = dict(self.settings["visibility"])
        for section, visible in visibility.items():
            logger.info("Section %s: %s", section, "shown" if visible else "hidden")

        return {
            "lastUpdated": to_timestamp(self.now()),
            "projectKey": self.settings["project_key"],
            "sprintsPerPeriod": self.settings["sprints_per_period"],
            "totalSprintsAnalyzed": self.settings["max_sprints"],
            "periods": [p.to_config() for p in periods],
            "components": sorted(self.components),
            "sprints": [s.to_dict() for s in samples],
            "visibility": visibility,
        }

    def _log_progress(self, stats, count):
        done = len(stats)
        logger.info("Progress: %d/%d periods (%d%%)", done, count, round(done / count * 100))

        remaining = count - done
        if remaining:
            average = sum(s.seconds for s in stats) / done
            logger.info(
                "About %d periods left, ETA ~%s",
                remaining,
                format_duration(average * remaining),
            )
