"""Tests for JIRA client utilities."""

import json
import os

import pytest
import requests
from jira.exceptions import JIRAError

from .config import ConfigError
from .jira_client import (
    JiraClient,
    ResponseRecorder,
    create_jira_client,
    get_jira_connection_params,
    is_auth_error,
    parse_retry_after,
)
from .test_classes import FauxResponse, FauxSession, jira_error


def make_client(responses, rate_limiter, **kwargs):
    session = FauxSession(responses)
    client = JiraClient(
        "https://example.atlassian.net/",
        "me@example.com",
        "token",
        rate_limiter=rate_limiter,
        session=session,
        **kwargs,
    )
    return client, session


class TestGetJiraConnectionParams:
    """Test cases for get_jira_connection_params function."""

    def test_get_params_from_config(self, connection):
        url, username, password = get_jira_connection_params(connection)

        assert url == "https://example.atlassian.net"
        assert username == "me@example.com"
        assert password == "token"

    def test_get_params_strips_whitespace_and_quotes(self):
        connection = {
            "domain": "  https://jira.example.com  ",
            "username": '"testuser"',
            "password": "  testpass  ",
        }

        assert get_jira_connection_params(connection) == (
            "https://jira.example.com",
            "testuser",
            "testpass",
        )

    def test_get_params_missing(self):
        connection = {"domain": "https://jira.example.com", "username": None}

        with pytest.raises(ConfigError, match="JIRA_EMAIL, JIRA_API_TOKEN"):
            get_jira_connection_params(connection)


def test_is_auth_error():
    assert is_auth_error(jira_error(401))
    assert is_auth_error(jira_error(403))
    assert not is_auth_error(jira_error(404))
    assert not is_auth_error(requests.ConnectionError("boom"))


def test_parse_retry_after():
    assert parse_retry_after("12") == 12
    assert parse_retry_after(None) is None
    assert parse_retry_after("Wed, 21 Oct 2015 07:28:00 GMT") is None


class TestRequest:
    """Rate limiting and error handling of JiraClient.request."""

    def test_success_returns_json(self, rate_limiter):
        client, session = make_client([FauxResponse(data={"ok": True})], rate_limiter)

        assert client.request(f"{client.api_url}/myself") == {"ok": True}
        assert session.requests[0]["url"] == (
            "https://example.atlassian.net/rest/api/3/myself"
        )
        assert session.auth == ("me@example.com", "token")

    def test_three_429s_back_off_then_succeed(self, rate_limiter, clock):
        client, session = make_client(
            [
                FauxResponse(429),
                FauxResponse(429),
                FauxResponse(429),
                FauxResponse(data={"count": 3}),
            ],
            rate_limiter,
        )

        assert client.request(f"{client.api_url}/x") == {"count": 3}

        assert clock.sleeps == [30, 60, 120]
        assert clock.sleeps == sorted(clock.sleeps)
        assert len(session.requests) == 4
        assert rate_limiter.consecutive_429 == 0
        # Doubled to 2, 4, capped at 5, then relaxed by the success
        assert rate_limiter.min_interval == pytest.approx(4.5)

    def test_interval_doubles_while_throttled(self, rate_limiter):
        intervals = []
        client, _ = make_client(
            [FauxResponse(429), FauxResponse(429), FauxResponse(429), FauxResponse()],
            rate_limiter,
        )
        original_widen = rate_limiter.widen

        def widen():
            original_widen()
            intervals.append(rate_limiter.min_interval)

        rate_limiter.widen = widen
        client.request(f"{client.api_url}/x")

        assert intervals == [2, 4, 5]

    def test_retry_after_header_is_used(self, rate_limiter, clock):
        client, _ = make_client(
            [FauxResponse(429, headers={"Retry-After": "50"}), FauxResponse()],
            rate_limiter,
        )

        client.request(f"{client.api_url}/x")

        assert clock.sleeps == [50]

    def test_gives_up_after_max_attempts(self, rate_limiter, clock):
        client, session = make_client(
            [FauxResponse(429) for _ in range(3)], rate_limiter, max_attempts=3
        )

        with pytest.raises(JIRAError) as excinfo:
            client.request(f"{client.api_url}/x")

        assert excinfo.value.status_code == 429
        assert len(session.requests) == 3
        # No wait after the final attempt
        assert clock.sleeps == [30, 60]

    def test_error_status_raises_immediately(self, rate_limiter, clock):
        client, session = make_client(
            [FauxResponse(500, data={"errorMessages": ["boom"]})], rate_limiter
        )

        with pytest.raises(JIRAError) as excinfo:
            client.request(f"{client.api_url}/x")

        assert excinfo.value.status_code == 500
        assert "boom" in excinfo.value.text
        assert len(session.requests) == 1
        assert clock.sleeps == []

    def test_auth_error_carries_body(self, rate_limiter):
        client, _ = make_client(
            [FauxResponse(401, data={"message": "Unauthorized"})], rate_limiter
        )

        with pytest.raises(JIRAError) as excinfo:
            client.request(f"{client.api_url}/x")

        assert is_auth_error(excinfo.value)
        assert "Unauthorized" in excinfo.value.text

    def test_network_error_is_not_retried(self, rate_limiter):
        client, session = make_client(
            [requests.ConnectionError("reset"), FauxResponse()], rate_limiter
        )

        with pytest.raises(requests.ConnectionError):
            client.request(f"{client.api_url}/x")

        assert len(session.requests) == 1

    def test_requests_are_paced(self, rate_limiter, clock):
        client, _ = make_client([FauxResponse(), FauxResponse()], rate_limiter)

        client.request(f"{client.api_url}/x")
        client.request(f"{client.api_url}/y")

        assert clock.sleeps == [1.0]


class TestSearchIssues:
    """Pagination of the search endpoint."""

    def test_stops_on_is_last_despite_total(self, rate_limiter):
        pages = [
            FauxResponse(data={"issues": [{"key": "A-1"}], "total": 1000}),
            FauxResponse(data={"issues": [{"key": "A-2"}], "total": 1000}),
            FauxResponse(
                data={"issues": [{"key": "A-3"}], "total": 1000, "isLast": True}
            ),
            FauxResponse(data={"issues": [{"key": "A-4"}], "total": 1000}),
        ]
        client, session = make_client(pages, rate_limiter)

        issues = client.search_issues("project = A")

        assert [i["key"] for i in issues] == ["A-1", "A-2", "A-3"]
        assert len(session.requests) == 3
        assert [r["params"]["startAt"] for r in session.requests] == [0, 100, 200]

    def test_stops_when_total_reached(self, rate_limiter):
        pages = [
            FauxResponse(data={"issues": [{"key": f"A-{i}"} for i in range(100)], "total": 150}),
            FauxResponse(data={"issues": [{"key": f"B-{i}"} for i in range(50)], "total": 150}),
        ]
        client, session = make_client(pages, rate_limiter)

        assert len(client.search_issues("project = A")) == 150
        assert len(session.requests) == 2

    def test_stops_on_empty_page(self, rate_limiter):
        pages = [
            FauxResponse(data={"issues": [{"key": "A-1"}]}),
            FauxResponse(data={"issues": []}),
        ]
        client, session = make_client(pages, rate_limiter)

        assert len(client.search_issues("project = A")) == 1
        assert len(session.requests) == 2

    def test_sends_query_parameters(self, rate_limiter):
        pages = [
            FauxResponse(data={"issues": [{"key": "A-1"}], "nextPageToken": "abc"}),
            FauxResponse(data={"issues": [{"key": "A-2"}], "isLast": True}),
        ]
        client, session = make_client(pages, rate_limiter)

        client.search_issues("project = A")

        first, second = session.requests
        assert first["url"] == "https://example.atlassian.net/rest/api/3/search/jql"
        assert first["params"] == {
            "jql": "project = A",
            "startAt": 0,
            "maxResults": 100,
            "fields": "*all",
        }
        assert second["params"]["nextPageToken"] == "abc"


class TestGetSprints:
    def test_pages_until_is_last(self, rate_limiter):
        pages = [
            FauxResponse(data={"values": [{"id": i} for i in range(50)], "isLast": False}),
            FauxResponse(data={"values": [{"id": 50}], "isLast": True}),
        ]
        client, session = make_client(pages, rate_limiter)

        sprints = client.get_sprints(42)

        assert len(sprints) == 51
        assert session.requests[0]["url"] == (
            "https://example.atlassian.net/rest/agile/1.0/board/42/sprint"
        )
        assert [r["params"]["startAt"] for r in session.requests] == [0, 50]

    def test_stops_on_short_page(self, rate_limiter):
        client, session = make_client(
            [FauxResponse(data={"values": [{"id": 1}, {"id": 2}]})], rate_limiter
        )

        assert len(client.get_sprints(42)) == 2
        assert len(session.requests) == 1


def test_count_issues_posts_jql(rate_limiter):
    client, session = make_client([FauxResponse(data={"count": 17})], rate_limiter)

    assert client.count_issues("project = A") == 17
    request = session.requests[0]
    assert request["method"] == "POST"
    assert request["url"].endswith("/rest/api/3/search/approximate-count")
    assert request["json"] == {"jql": "project = A"}


@pytest.mark.parametrize("data", [{"count": None}, {"count": "many"}, {}, []])
def test_count_issues_rejects_malformed_count(rate_limiter, data):
    client, _ = make_client([FauxResponse(data=data)], rate_limiter)

    with pytest.raises(JIRAError, match="Unexpected count response") as exc_info:
        client.count_issues("project = A")

    assert not is_auth_error(exc_info.value)


def test_get_boards_returns_values(rate_limiter):
    client, session = make_client(
        [FauxResponse(data={"values": [{"id": 42, "name": "Team"}]})], rate_limiter
    )

    assert client.get_boards() == [{"id": 42, "name": "Team"}]
    assert session.requests[0]["url"].endswith("/rest/agile/1.0/board")


def test_projects_and_fields(rate_limiter):
    client, session = make_client(
        [
            FauxResponse(data=[{"key": "DCLS"}]),
            FauxResponse(data=[{"id": "customfield_10100", "name": "Severity"}]),
        ],
        rate_limiter,
    )

    assert client.get_projects() == [{"key": "DCLS"}]
    assert client.get_fields()[0]["name"] == "Severity"
    assert [r["url"].split("/rest/api/3")[1] for r in session.requests] == [
        "/project",
        "/field",
    ]


def test_cloud_id_selects_gateway_urls(rate_limiter):
    client, _ = make_client([], rate_limiter, cloud_id="abc-123")

    assert client.api_url == "https://api.atlassian.com/ex/jira/abc-123/rest/api/3"
    assert client.agile_url == (
        "https://api.atlassian.com/ex/jira/abc-123/rest/agile/1.0"
    )


class TestResponseRecorder:
    def test_saves_successful_responses(self, rate_limiter, tmp_path):
        recorder = ResponseRecorder(str(tmp_path / "responses"))
        client, _ = make_client(
            [FauxResponse(data={"count": 2})], rate_limiter, recorder=recorder
        )

        client.request(f"{client.api_url}/x")

        (name,) = os.listdir(recorder.directory)
        assert name.startswith("req-0001-")
        with open(os.path.join(recorder.directory, name), encoding="utf-8") as f:
            saved = json.load(f)
        assert saved["requestId"] == 1
        assert saved["status"] == 200
        assert saved["data"] == {"count": 2}

    def test_purge_removes_old_files(self, tmp_path):
        directory = tmp_path / "responses"
        directory.mkdir()
        (directory / "req-0001-old.json").write_text("{}")

        recorder = ResponseRecorder(str(directory))
        recorder.purge()

        assert os.listdir(str(directory)) == []

    def test_save_failure_is_logged(self, tmp_path, caplog):
        recorder = ResponseRecorder(str(tmp_path / "responses"))
        recorder.directory = str(tmp_path / "missing" / "deeper")

        assert recorder.save(1, FauxResponse(), {}) is None
        assert "Could not save response" in caplog.text


def test_create_jira_client(connection):
    client = create_jira_client(connection)

    assert isinstance(client, JiraClient)
    assert client.api_url == "https://example.atlassian.net/rest/api/3"
    assert client.timeout == 30


def test_create_jira_client_requires_credentials():
    with pytest.raises(ConfigError):
        create_jira_client({"domain": "https://example.atlassian.net"})
