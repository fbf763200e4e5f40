"""JIRA client utilities for Jira Bug Metrics.

This module provides the rate-limited REST client used by every network call
of an extraction run, plus helpers for creating it from connection options.
"""

import datetime
import json
import logging
import os

import requests
from jira.exceptions import JIRAError

from .config import ConfigError
from .config.type_utils import normalize_value
from .ratelimit import RateLimiter

logger = logging.getLogger(__name__)

CLOUD_API_ROOT = "https://api.atlassian.com/ex/jira"
DEFAULT_TIMEOUT = 30
MAX_ATTEMPTS = 10
SEARCH_PAGE_SIZE = 100
SPRINT_PAGE_SIZE = 50

AUTH_ERROR_STATUSES = (401, 403)


def is_auth_error(error):
    """Return True if the error is an authentication/authorization failure."""
    return getattr(error, "status_code", None) in AUTH_ERROR_STATUSES


def parse_retry_after(value):
    """Parse a ``Retry-After`` header given in seconds, or return None."""
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def get_jira_connection_params(connection):
    """Extract JIRA connection parameters from connection configuration."""
    url = normalize_value(connection.get("domain"))
    username = normalize_value(connection.get("username"))
    password = normalize_value(connection.get("password"))

    missing_params = []
    if not url:
        missing_params.append("JIRA_HOST")
    if not username:
        missing_params.append("JIRA_EMAIL")
    if not password:
        missing_params.append("JIRA_API_TOKEN")

    if missing_params:
        raise ConfigError(
            f"Missing required JIRA connection parameters: "
            f"{', '.join(missing_params)}."
        )

    return url, username, password


class ResponseRecorder:
    """Save raw response bodies to disk for debugging (``--resp``)."""

    def __init__(self, directory):
        self.directory = directory
        os.makedirs(directory, exist_ok=True)

    def purge(self):
        """Remove responses saved by a previous run."""
        for name in os.listdir(self.directory):
            path = os.path.join(self.directory, name)
            if os.path.isfile(path):
                os.remove(path)

    def save(self, request_id, response, data):
        timestamp = datetime.datetime.now(datetime.timezone.utc)
        file_name = "req-%04d-%s.json" % (
            request_id,
            timestamp.strftime("%Y-%m-%dT%H-%M-%S.%fZ"),
        )
        path = os.path.join(self.directory, file_name)

        payload = {
            "requestId": request_id,
            "timestamp": timestamp.isoformat(),
            "status": response.status_code,
            "statusText": response.reason,
            "headers": dict(response.headers),
            "data": data,
        }

        try:
            with open(path, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2, ensure_ascii=False)
        except OSError as e:
            logger.error("Could not save response #%d to %s: %s", request_id, path, e)
            return None

        logger.debug("Saved response #%d to %s", request_id, file_name)
        return path


class JiraClient:
    """Rate-limited client for the Jira REST and Agile APIs.

    Every request goes through a shared :class:`RateLimiter`. HTTP 429 is
    retried with backoff up to ``max_attempts`` times in total; any other
    non-2xx status raises :class:`JIRAError` straight away with the
    server's response body.
    """

    def __init__(
        self,
        domain,
        username,
        password,
        cloud_id=None,
        timeout=DEFAULT_TIMEOUT,
        rate_limiter=None,
        session=None,
        recorder=None,
        max_attempts=MAX_ATTEMPTS,
    ):
        if cloud_id:
            root = f"{CLOUD_API_ROOT}/{cloud_id}"
        else:
            root = domain.rstrip("/")

        self.api_url = f"{root}/rest/api/3"
        self.agile_url = f"{root}/rest/agile/1.0"

        self.session = session if session is not None else requests.Session()
        self.session.auth = (username, password)
        self.session.headers.update(
            {"Accept": "application/json", "Content-Type": "application/json"}
        )

        self.rate_limiter = rate_limiter if rate_limiter is not None else RateLimiter()
        self.recorder = recorder
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.request_count = 0

    def request(self, url, method="GET", params=None, json_body=None):
        """Send a request and return the decoded JSON body.

        Raises:
            JIRAError: On a non-2xx response, or when 429 retries are exhausted
            requests.exceptions.RequestException: On transport failures
        """
        self.request_count += 1
        request_id = self.request_count
        limiter = self.rate_limiter

        logger.debug(
            "[REQ#%d] %s %s (consecutive 429s=%d, interval=%.2fs)",
            request_id,
            method,
            url,
            limiter.consecutive_429,
            limiter.min_interval,
        )

        for attempt in range(1, self.max_attempts + 1):
            limiter.throttle()

            response = self.session.request(
                method, url, params=params, json=json_body, timeout=self.timeout
            )
            logger.debug(
                "[REQ#%d] Attempt %d/%d: %s %s",
                request_id,
                attempt,
                self.max_attempts,
                response.status_code,
                response.reason,
            )

            if response.status_code == 429:
                delay = limiter.backoff_delay(
                    parse_retry_after(response.headers.get("Retry-After"))
                )
                logger.warning(
                    "Rate limited (429) on request #%d, attempt %d/%d; "
                    "waiting %d seconds",
                    request_id,
                    attempt,
                    self.max_attempts,
                    round(delay),
                )
                if attempt < self.max_attempts:
                    limiter.sleep(delay)
                    limiter.widen()
                continue

            if not 200 <= response.status_code < 300:
                logger.debug(
                    "[REQ#%d] Error body: %s", request_id, response.text[:200]
                )
                raise JIRAError(
                    text=response.text, status_code=response.status_code, url=url
                )

            data = response.json()
            limiter.record_success()

            if self.recorder is not None:
                self.recorder.save(request_id, response, data)

            return data

        logger.error("[REQ#%d] Giving up after %d attempts", request_id, self.max_attempts)
        raise JIRAError(
            text=f"Max retries exceeded after {self.max_attempts} attempts",
            status_code=429,
            url=url,
        )

    def get_projects(self):
        return self.request(f"{self.api_url}/project")

    def get_fields(self):
        return self.request(f"{self.api_url}/field")

    def get_boards(self):
        return self.request(f"{self.agile_url}/board").get("values") or []

    def count_issues(self, jql):
        """Return the approximate number of issues matching ``jql``.

        Uses the count-only endpoint, no issue bodies are transferred.

        Raises:
            JIRAError: If the response carries no integer ``count``
        """
        url = f"{self.api_url}/search/approximate-count"
        result = self.request(url, method="POST", json_body={"jql": jql})

        count = result.get("count") if isinstance(result, dict) else None
        if isinstance(count, bool) or not isinstance(count, int):
            raise JIRAError(text=f"Unexpected count response: {result!r}", url=url)
        return count

    def search_issues(self, jql, fields=("*all",), page_size=SEARCH_PAGE_SIZE):
        """Return every issue matching ``jql``, following pagination.

        Paging stops when the server reports ``isLast``, when the reported
        ``total`` has been reached, or when a page comes back empty.
        """
        issues = []
        start_at = 0
        total = None
        next_page_token = None

        while True:
            params = {
                "jql": jql,
                "startAt": start_at,
                "maxResults": page_size,
                "fields": ",".join(fields),
            }
            if next_page_token:
                params["nextPageToken"] = next_page_token

            page = self.request(f"{self.api_url}/search/jql", params=params)
            batch = page.get("issues") or []
            issues.extend(batch)

            if page.get("total") is not None:
                total = page["total"]

            if total and total > page_size:
                logger.info(
                    "Fetched %d/%d issues (%d%%)",
                    len(issues),
                    total,
                    round(len(issues) / total * 100),
                )

            if page.get("isLast") is True:
                logger.debug("Pagination complete: isLast")
                break
            if total and len(issues) >= total:
                logger.debug("Pagination complete: %d >= %d", len(issues), total)
                break
            if not batch:
                logger.debug("Pagination complete: empty page")
                break

            start_at += page_size
            next_page_token = page.get("nextPageToken")

        return issues

    def get_sprints(self, board_id):
        """Return every sprint of a board, in any state."""
        sprints = []
        start_at = 0

        while True:
            page = self.request(
                f"{self.agile_url}/board/{board_id}/sprint",
                params={"startAt": start_at, "maxResults": SPRINT_PAGE_SIZE},
            )
            values = page.get("values") or []
            sprints.extend(values)

            if page.get("isLast") or len(values) < SPRINT_PAGE_SIZE:
                break

            start_at += SPRINT_PAGE_SIZE

        return sprints


def create_jira_client(connection, recorder=None, rate_limiter=None):
    """Create a JIRA client with the given connection options."""
    url, username, password = get_jira_connection_params(connection)

    if connection.get("cloud_id"):
        logger.info("Connecting to Jira Cloud %s", connection["cloud_id"])
    else:
        logger.info("Connecting to %s", url)

    return JiraClient(
        url,
        username,
        password,
        cloud_id=connection.get("cloud_id"),
        timeout=connection.get("timeout") or DEFAULT_TIMEOUT,
        rate_limiter=rate_limiter,
        recorder=recorder,
    )
