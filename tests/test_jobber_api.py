"""
Tests for the Jobber GraphQL client and token provider.
These tests mock the HTTP session; nothing touches the network.
"""
from datetime import datetime, timedelta
from unittest.mock import Mock, patch

import pytest
import requests

from jobber_agent.jobber.api import JobberAPI, JobberAPIError, RateLimiter
from jobber_agent.jobber.auth import JobberToken, JobberTokenProvider


def make_response(status_code=200, body=None):
    response = Mock()
    response.status_code = status_code
    response.text = "{}" if body is None else "body"
    response.json.return_value = body or {}
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status_code} error")
    return response


@pytest.fixture
def token_provider():
    provider = Mock()
    provider.get_access_token.return_value = "token-1"
    provider.get_access_token_force_refresh.return_value = "token-2"
    return provider


@pytest.fixture
def api(token_provider):
    api = JobberAPI(token_provider, "https://api.example.com/graphql")
    api.session = Mock()
    api.session.headers = {}
    return api


class TestGraphQLRequest:
    """Tests for JobberAPI.graphql_request."""

    def test_returns_data(self, api):
        api.session.post.return_value = make_response(body={"data": {"job": {"id": "j1"}}})

        assert api.get_job("j1") == {"id": "j1"}
        payload = api.session.post.call_args.kwargs["json"]
        assert payload["variables"] == {"id": "j1"}
        assert api.session.headers["Authorization"] == "Bearer token-1"
        assert api.session.headers["X-JOBBER-GRAPHQL-VERSION"] == "2023-11-15"

    def test_graphql_errors_raise(self, api):
        api.session.post.return_value = make_response(body={"errors": [{"message": "Not found"}]})

        with pytest.raises(JobberAPIError, match="Not found"):
            api.get_client("c1")

    def test_refreshes_token_on_401(self, api, token_provider):
        api.session.post.side_effect = [
            make_response(status_code=401),
            make_response(body={"data": {"quote": {"id": "q1"}}}),
        ]

        assert api.get_quote("q1") == {"id": "q1"}
        token_provider.get_access_token_force_refresh.assert_called_once()
        assert api.session.headers["Authorization"] == "Bearer token-2"

    @patch("jobber_agent.jobber.api.time.sleep")
    def test_retries_connection_errors(self, mock_sleep, api):
        api.session.post.side_effect = [
            requests.ConnectionError("reset"),
            make_response(body={"data": {"invoice": {"id": "i1"}}}),
        ]

        assert api.get_invoice("i1") == {"id": "i1"}
        mock_sleep.assert_called_once_with(1.0)

    @patch("jobber_agent.jobber.api.time.sleep")
    def test_gives_up_after_max_retries(self, mock_sleep, api):
        api.session.post.side_effect = requests.ConnectionError("reset")

        with pytest.raises(requests.ConnectionError, match="after 3 attempts"):
            api.get_job("j1")
        assert api.session.post.call_count == 3

    def test_http_errors_are_not_retried(self, api):
        api.session.post.return_value = make_response(status_code=500)

        with pytest.raises(requests.HTTPError):
            api.get_job("j1")
        assert api.session.post.call_count == 1


class TestJobberEndpoints:
    """Tests for users, assignment and health."""

    def test_get_users(self, api):
        api.session.post.return_value = make_response(body={"data": {"users": {"nodes": [{"id": "u1"}]}}})

        assert api.get_users() == [{"id": "u1"}]

    def test_assign_job(self, api):
        api.session.post.return_value = make_response(
            body={"data": {"jobAssign": {"success": True, "job": {"id": "j1"}, "errors": []}}}
        )

        assert api.assign_job("j1", "t1") == {"id": "j1"}
        assert api.session.post.call_args.kwargs["json"]["variables"] == {"jobId": "j1", "userId": "t1"}

    def test_assign_job_failure(self, api):
        api.session.post.return_value = make_response(
            body={"data": {"jobAssign": {"success": False, "errors": ["User unavailable"]}}}
        )

        with pytest.raises(JobberAPIError, match="User unavailable"):
            api.assign_job("j1", "t1")

    def test_health_check(self, api):
        api.session.post.return_value = make_response(body={"data": {"account": {"id": "a1"}}})

        assert api.health_check() == {"status": "healthy", "api": "connected"}

    def test_health_check_unhealthy(self, api):
        api.session.post.return_value = make_response(status_code=503)

        result = api.health_check()

        assert result["status"] == "unhealthy"
        assert result["api"] == "disconnected"

    def test_missing_url(self, token_provider):
        with pytest.raises(ValueError):
            JobberAPI(token_provider, None)


class TestRateLimiter:
    @patch("jobber_agent.jobber.api.time.sleep")
    def test_waits_when_budget_is_spent(self, mock_sleep):
        limiter = RateLimiter(max_requests=2)

        limiter.acquire()
        limiter.acquire()
        mock_sleep.assert_not_called()

        limiter.acquire()
        mock_sleep.assert_called_once()
        assert limiter.requests == 1


class TestJobberTokenProvider:
    """Tests for the client-credentials token cache."""

    @pytest.fixture
    def provider(self):
        return JobberTokenProvider("client-id", "client-secret", "https://api.example.com/api/")

    @patch("jobber_agent.jobber.auth.requests.post")
    def test_token_is_cached(self, mock_post, provider):
        mock_post.return_value = make_response(body={"access_token": "abc", "expires_in": 3600})

        assert provider.get_access_token() == "abc"
        assert provider.get_access_token() == "abc"
        mock_post.assert_called_once()
        assert mock_post.call_args.args[0] == "https://api.example.com/api/oauth/token"

    @patch("jobber_agent.jobber.auth.requests.post")
    def test_force_refresh(self, mock_post, provider):
        mock_post.return_value = make_response(body={"access_token": "abc", "expires_in": 3600})

        provider.get_access_token()
        provider.get_access_token_force_refresh()

        assert mock_post.call_count == 2

    @patch("jobber_agent.jobber.auth.requests.post")
    def test_refreshes_inside_buffer(self, mock_post, provider):
        mock_post.return_value = make_response(body={"access_token": "new", "expires_in": 3600})
        provider._token = JobberToken("old", datetime.utcnow() + timedelta(seconds=30))

        assert provider.get_access_token() == "new"

    @patch("jobber_agent.jobber.auth.requests.post")
    def test_error_body_without_token(self, mock_post, provider):
        mock_post.return_value = make_response(body={"error": "invalid_client"})

        with pytest.raises(ValueError, match="invalid_client"):
            provider.get_access_token()

    def test_missing_credentials(self):
        provider = JobberTokenProvider(None, None, "https://api.example.com/api")

        with pytest.raises(ValueError, match="Missing Jobber client credentials"):
            provider.get_access_token()
