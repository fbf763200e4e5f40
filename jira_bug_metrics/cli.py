import argparse
import logging
import os
import sys

from dotenv import load_dotenv
from jira.exceptions import JIRAError
from requests.exceptions import RequestException

from .aggregator import PeriodAggregator, format_duration
from .config import ConfigError, config_to_options, validate_options
from .discovery import discover
from .jira_client import ResponseRecorder, create_jira_client
from .store import DashboardStore

load_dotenv(".env.local")
load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_DIRECTORY = "data"
DEFAULT_LOGS_DIRECTORY = "logs"
LOG_FILE = "fetch-jira.log"
RESPONSES_DIRECTORY = "responses"


def configure_argument_parser():
    """Configure an ArgumentParser that manages command line options."""

    parser = argparse.ArgumentParser(
        description=(
            "Extract bug metrics from JIRA, grouped into sprint periods, "
            "and write them as JSON snapshots for the dashboard."
        )
    )

    # Basic options
    parser.add_argument(
        "config", metavar="config.yml", nargs="?", help="Configuration file (optional)"
    )
    parser.add_argument("-v", dest="verbose", action="store_true", help="Verbose output")
    parser.add_argument(
        "--logs",
        action="store_true",
        help="Write a detailed log to <logs directory>/fetch-jira.log",
    )
    parser.add_argument(
        "--resp",
        action="store_true",
        help="Save every HTTP response body to <logs directory>/responses/",
    )
    parser.add_argument(
        "--discover",
        action="store_true",
        help="List projects, custom fields, boards and sprints instead of extracting",
    )

    # Output directories
    parser.add_argument(
        "--output-directory",
        "-o",
        metavar="data",
        help="Write config.json and periods/ to this directory (default: data)",
    )
    parser.add_argument(
        "--logs-directory",
        metavar="logs",
        default=DEFAULT_LOGS_DIRECTORY,
        help="Directory for --logs and --resp output (default: logs)",
    )

    # Connection options
    parser.add_argument("--domain", metavar="https://my.jira.com", help="JIRA domain name")
    parser.add_argument("--username", metavar="user", help="JIRA user email")
    parser.add_argument("--password", metavar="token", help="JIRA API token")

    # Project options
    parser.add_argument("--project", dest="project_key", metavar="KEY", help="Project key")
    parser.add_argument("--board", dest="board_id", type=int, metavar="ID", help="Board id")

    return parser


def main():
    parser = configure_argument_parser()
    args = parser.parse_args()

    sys.exit(run_command_line(parser, args))


def configure_logging(args):
    logging.basicConfig(
        format="[%(asctime)s %(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        level=logging.DEBUG if args.verbose else logging.INFO,
    )

    if not args.logs:
        return None

    os.makedirs(args.logs_directory, exist_ok=True)
    log_file = os.path.join(args.logs_directory, LOG_FILE)
    if os.path.exists(log_file):
        os.remove(log_file)

    handler = logging.FileHandler(log_file, encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(
        logging.Formatter(
            "[%(asctime)s %(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )

    root = logging.getLogger()
    root.addHandler(handler)
    root.setLevel(logging.DEBUG)
    for existing in root.handlers:
        if existing is not handler and not args.verbose:
            existing.setLevel(logging.INFO)

    return log_file


def run_command_line(parser, args):
    """Run an extraction and return the process exit code."""
    log_file = configure_logging(args)
    if log_file:
        print(f"Detailed log: {log_file}")

    # Configuration and settings
    # (command line arguments override config file and environment)

    try:
        data = None
        if args.config:
            logger.debug("Parsing options from %s", args.config)
            with open(args.config, encoding="utf-8") as config:
                data = config.read()

        options = config_to_options(data)

        # Allow command line arguments to override options
        override_options(options["connection"], args)
        override_options(options["settings"], args)

        validate_options(options, require_project=not args.discover)
    except FileNotFoundError:
        print(
            f"Error: Configuration file '{args.config}' not found. "
            "Please provide a valid config file."
        )
        return 1
    except ConfigError as e:
        print(f"Error: {e}")
        return 1

    output_dir = (
        args.output_directory or options["output_directory"] or DEFAULT_OUTPUT_DIRECTORY
    )
    settings = options["settings"]

    recorder = None
    if args.resp:
        recorder = ResponseRecorder(os.path.join(args.logs_directory, RESPONSES_DIRECTORY))
        recorder.purge()
        print(f"HTTP responses: {recorder.directory}")

    if not args.discover:
        log_settings(settings)

    try:
        client = create_jira_client(options["connection"], recorder=recorder)
        if args.discover:
            discover(client, settings["project_key"], settings["board_id"])
            return 0
        aggregator = PeriodAggregator(client, settings, DashboardStore(output_dir))
        summary = aggregator.run()
    except ConfigError as e:
        print(f"Error: {e}")
        return 1
    except JIRAError as e:
        logger.error("Aborting: JIRA returned %s: %s", e.status_code, e.text)
        return 1
    except RequestException as e:
        logger.error("Aborting: %s", e)
        return 1

    print_summary(summary, output_dir)
    return 0


def log_settings(settings):
    logger.info("Project: %s", settings["project_key"])
    logger.info("Severity field: %s", settings["severity_field"])
    logger.info("Bug reason field: %s", settings["reason_field"])
    logger.info("Environment field: %s", settings["environment_field"])
    logger.info(
        "Component field: %s", settings["component_field"] or "(standard components)"
    )
    logger.info("Sprints per period: %s", settings["sprints_per_period"])
    logger.info("Max sprints: %s", settings["max_sprints"])


def override_options(options, arguments):
    """Update `options` dict with settings from `arguments`
    with the same key.
    """
    for key in options.keys():
        if getattr(arguments, key, None) is not None:
            options[key] = getattr(arguments, key)


def print_summary(summary, output_dir, out=None):
    out = out or sys.stdout

    print("=" * 60, file=out)
    print(f"Done. Output written to {output_dir}", file=out)
    print("=" * 60, file=out)
    print(
        f"Periods: {summary.periods_written} written, "
        f"{summary.periods_skipped} skipped, "
        f"{summary.periods_failed} failed "
        f"(of {summary.periods_planned} planned)",
        file=out,
    )
    print(f"Bugs: {summary.total_bugs}", file=out)
    print(f"Components: {len(summary.components)}", file=out)
    print(f"Sprints with backlog data: {summary.sprint_samples}", file=out)
    print(f"Elapsed: {format_duration(summary.elapsed_seconds)}", file=out)

    if summary.period_stats:
        print("", file=out)
        print("Per period:", file=out)
    for i, stat in enumerate(summary.period_stats, 1):
        print(
            f"  {i}. {stat.label}: {stat.bugs} bugs, {stat.status} "
            f"({round(stat.seconds)}s)",
            file=out,
        )


if __name__ == "__main__":
    main()
