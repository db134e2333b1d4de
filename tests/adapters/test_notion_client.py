"""Tests for the low-level Notion API client."""

import json
from unittest.mock import Mock

import pytest
import requests

from novel2notion.adapters.notion import NotionApiClient, RetryPolicy
from novel2notion.core.ports.config_provider import WorkspaceConfig
from novel2notion.core.ports.workspace import (
    AuthenticationError,
    ClientConstructionError,
    NotFoundError,
    PartialCreateError,
    PermissionError,
    RetryExhaustedError,
    TransientError,
    ValidationError,
    WorkspaceError,
)


def make_response(status=200, body=None, headers=None, url="https://api.notion.com/v1/x"):
    response = requests.Response()
    response.status_code = status
    response._content = json.dumps(body).encode("utf-8") if body is not None else b""
    response.headers.update(headers or {})
    response.url = url
    response.reason = "OK" if status < 400 else "Error"
    response.encoding = "utf-8"
    return response


@pytest.fixture
def config():
    return WorkspaceConfig(api_key="secret-token", root_page_id="root-page")


@pytest.fixture
def session():
    return Mock()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def client(config, session, sleeps):
    limiter = Mock()
    limiter.acquire.return_value = 0.0
    limiter.budget = 3
    return NotionApiClient(
        config,
        limiter=limiter,
        retry_policy=RetryPolicy(max_attempts=4, backoff_base=0.5, backoff_max=8.0),
        session=session,
        sleep=sleeps.append,
    )


class TestConstruction:
    """Tests for client construction."""

    def test_headers(self, client, session):
        session.headers.update.assert_called_once()
        headers = session.headers.update.call_args.args[0]
        assert headers["Authorization"] == "Bearer secret-token"
        assert headers["Notion-Version"] == "2022-06-28"
        assert headers["Content-Type"] == "application/json"

    def test_missing_key(self, session):
        with pytest.raises(ClientConstructionError, match="API key"):
            NotionApiClient(WorkspaceConfig(api_key=""), session=session)

    @pytest.mark.parametrize("url", ["", "ftp://api.notion.com", "not a url"])
    def test_bad_url(self, session, url):
        with pytest.raises(ClientConstructionError, match="Invalid API URL"):
            NotionApiClient(WorkspaceConfig(api_key="k", api_url=url), session=session)


class TestRequest:
    """Tests for request(), error classification and retries."""

    def test_success(self, client, session):
        session.request.return_value = make_response(200, {"id": "page-1"})

        assert client.get("pages/page-1") == {"id": "page-1"}
        method, url = session.request.call_args.args
        assert method == "GET"
        assert url == "https://api.notion.com/v1/pages/page-1"
        assert session.request.call_args.kwargs["timeout"] == 30.0

    def test_empty_body(self, client, session):
        session.request.return_value = make_response(200)

        assert client.get("blocks/b1") == {}

    def test_every_attempt_is_throttled(self, client, session):
        session.request.side_effect = [make_response(503), make_response(200, {})]

        client.get("users/me")

        assert client.limiter.acquire.call_count == 2

    def test_unauthorized_not_retried(self, client, session, sleeps):
        session.request.return_value = make_response(401, {"message": "API token is invalid."})

        with pytest.raises(AuthenticationError):
            client.get("users/me")

        assert session.request.call_count == 1
        assert sleeps == []

    def test_forbidden(self, client, session):
        session.request.return_value = make_response(403, {"message": "Restricted resource"})

        with pytest.raises(PermissionError, match="Restricted resource"):
            client.get("pages/p1")

    def test_not_found(self, client, session):
        session.request.return_value = make_response(404, {"message": "Could not find page"})

        with pytest.raises(NotFoundError) as exc_info:
            client.get("pages/p1")

        assert exc_info.value.status == 404
        assert exc_info.value.endpoint == "pages/p1"

    def test_validation_error_message(self, client, session):
        session.request.return_value = make_response(
            400, {"object": "error", "message": "body.children should be defined"}
        )

        with pytest.raises(ValidationError, match="body.children should be defined"):
            client.request("POST", "pages", json={})

        assert session.request.call_count == 1

    def test_conflict_is_terminal(self, client, session):
        session.request.return_value = make_response(409, {"message": "Conflict"})

        with pytest.raises(ValidationError):
            client.get("pages/p1")

        assert session.request.call_count == 1

    def test_rate_limit_honours_retry_after(self, client, session, sleeps):
        session.request.side_effect = [
            make_response(429, {"message": "slow down"}, headers={"Retry-After": "3"}),
            make_response(200, {"id": "page-1"}),
        ]

        assert client.get("pages/page-1") == {"id": "page-1"}
        assert sleeps == [3.0]

    def test_retry_exhausted(self, client, session, sleeps):
        session.request.return_value = make_response(503, {"message": "unavailable"})

        with pytest.raises(RetryExhaustedError) as exc_info:
            client.get("pages/p1")

        assert session.request.call_count == 4
        assert sleeps == [0.5, 1.0, 2.0]
        assert exc_info.value.attempts == 4
        assert isinstance(exc_info.value.last_error, TransientError)
        assert exc_info.value.status == 503

    def test_connection_error_then_success(self, client, session, sleeps):
        session.request.side_effect = [
            requests.exceptions.ConnectionError("reset"),
            make_response(200, {"ok": True}),
        ]

        assert client.get("users/me") == {"ok": True}
        assert sleeps == [0.5]

    def test_other_request_exception_not_retried(self, client, session):
        session.request.side_effect = requests.exceptions.InvalidURL("bad")

        with pytest.raises(WorkspaceError, match="Request failed"):
            client.get("users/me")

        assert session.request.call_count == 1


class TestDryRun:
    """Tests for dry-run mode."""

    def test_writes_are_skipped(self, config, session):
        client = NotionApiClient(config, dry_run=True, session=session)

        assert client.post("pages", json={"parent": {}}) == {}
        assert client.patch("pages/p1", json={}) == {}
        assert client.delete("blocks/b1") == {}
        session.request.assert_not_called()

    def test_reads_still_happen(self, config, session):
        session.request.return_value = make_response(200, {"id": "bot"})
        client = NotionApiClient(config, dry_run=True, session=session)

        assert client.get_me() == {"id": "bot"}


class TestConvenienceMethods:
    """Tests for the API wrappers."""

    def test_get_me_cached(self, client, session):
        session.request.return_value = make_response(200, {"id": "bot"})

        client.get_me()
        client.get_me()

        assert session.request.call_count == 1

    def test_connection_check(self, client, session):
        session.request.return_value = make_response(401, {})

        assert client.test_connection() is False

    def test_create_page_appends_overflow(self, client, session):
        session.request.return_value = make_response(200, {"id": "page-1"})
        children = [{"type": "paragraph", "n": i} for i in range(250)]

        client.create_page({"page_id": "root"}, {"title": []}, children)

        calls = session.request.call_args_list
        assert [c.args[0] for c in calls] == ["POST", "PATCH", "PATCH"]
        assert len(calls[0].kwargs["json"]["children"]) == 100
        assert calls[1].args[1].endswith("blocks/page-1/children")
        assert [len(c.kwargs["json"]["children"]) for c in calls[1:]] == [100, 50]

    def test_create_page_overflow_failure_keeps_page_id(self, client, session):
        session.request.side_effect = [
            make_response(200, {"id": "page-1"}),
            make_response(400, {"code": "validation_error", "message": "bad block"}),
        ]
        children = [{"type": "paragraph", "n": i} for i in range(150)]

        with pytest.raises(PartialCreateError) as excinfo:
            client.create_page({"page_id": "root"}, {"title": []}, children)

        assert excinfo.value.remote_id == "page-1"
        assert isinstance(excinfo.value.cause, ValidationError)
        assert excinfo.value.status == 400
        assert not excinfo.value.retryable

    def test_update_page_archive(self, client, session):
        session.request.return_value = make_response(200, {"id": "page-1"})

        client.update_page("page-1", archived=True)

        assert session.request.call_args.kwargs["json"] == {"archived": True}

    def test_iter_children_follows_cursor(self, client, session):
        session.request.side_effect = [
            make_response(200, {"results": [{"id": "b1"}], "has_more": True, "next_cursor": "c2"}),
            make_response(200, {"results": [{"id": "b2"}], "has_more": False}),
        ]

        assert [b["id"] for b in client.iter_children("page-1")] == ["b1", "b2"]
        second = session.request.call_args_list[1]
        assert second.kwargs["params"] == {"page_size": 100, "start_cursor": "c2"}

    def test_create_database(self, client, session):
        session.request.return_value = make_response(200, {"id": "db-1"})

        client.create_database("root", "Works", {"Title": {"title": {}}})

        body = session.request.call_args.kwargs["json"]
        assert body["parent"] == {"type": "page_id", "page_id": "root"}
        assert body["title"][0]["text"]["content"] == "Works"
