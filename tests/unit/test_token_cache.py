"""Tests for the per-host token cache."""

import threading
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock
from urllib.parse import parse_qs, urlsplit

import pytest
from requests.exceptions import ConnectTimeout

from regwatch.registry.exceptions import TokenFetchError
from regwatch.registry.tokens import TokenCache
from tests.fixtures.fake_registry import make_response
from tests.fixtures.sample_data import REALM, SCOPE, SERVICE


@pytest.fixture
def session():
    """Mock requests session answering token requests."""
    mock_session = MagicMock()
    mock_session.get.return_value = make_response(200, {"token": "token-1"})
    return mock_session


@pytest.fixture
def cache(session):
    return TokenCache(session, timeout=5)


def _query(call):
    return parse_qs(urlsplit(call.args[0]).query, keep_blank_values=True)


class TestGetCached:
    def test_empty_before_first_refresh(self, cache):
        """Test that nothing is cached before the first refresh."""
        assert cache.get_cached("ghcr.io") == ""

    def test_returns_refreshed_token(self, cache):
        """Test that get_cached returns the refreshed token."""
        cache.refresh("ghcr.io", REALM, SERVICE, SCOPE)
        assert cache.get_cached("ghcr.io") == "token-1"

    def test_host_is_case_insensitive(self, cache):
        """Test that hosts are matched case-insensitively."""
        cache.refresh("GHCR.io", REALM, SERVICE, SCOPE)
        assert cache.get_cached("ghcr.io") == "token-1"

    def test_hosts_are_independent(self, cache):
        """Test that a token for one host is not used for another."""
        cache.refresh("ghcr.io", REALM, SERVICE, SCOPE)
        assert cache.get_cached("quay.io") == ""

    def test_does_not_wait_for_refresh_of_another_host(self, session, cache):
        """A slow refresh for one host must not block reads for another."""
        cache.refresh("quay.io", REALM, SERVICE, SCOPE)
        entered, release = threading.Event(), threading.Event()

        def slow_get(url, **kwargs):
            entered.set()
            release.wait(timeout=5)
            return make_response(200, {"token": "token-2"})

        session.get.side_effect = slow_get
        worker = threading.Thread(target=cache.refresh, args=("ghcr.io", REALM, SERVICE, SCOPE))
        worker.start()
        try:
            assert entered.wait(timeout=5)
            assert cache.get_cached("quay.io") == "token-1"
            assert cache.get_cached("ghcr.io") == ""
        finally:
            release.set()
            worker.join(timeout=5)
        assert cache.get_cached("ghcr.io") == "token-2"


class TestRefresh:
    def test_request_parameters(self, session, cache):
        """Test the token request URL, timeout and auth."""
        assert cache.refresh("registry.example", REALM, SERVICE, SCOPE) == "token-1"

        call = session.get.call_args
        assert call.args[0].startswith(REALM + "?")
        assert _query(call) == {"service": [SERVICE], "scope": [SCOPE]}
        assert call.kwargs["timeout"] == 5
        assert call.kwargs["auth"] is None

    def test_overwrites_query_already_in_realm(self, session, cache):
        """Test that service and scope replace values already in the realm."""
        cache.refresh("h.example", f"{REALM}?service=old&client_id=regwatch", SERVICE, SCOPE)
        assert _query(session.get.call_args) == {
            "service": [SERVICE],
            "scope": [SCOPE],
            "client_id": ["regwatch"],
        }

    def test_empty_params_still_sent(self, session, cache):
        """Test that empty service and scope values are sent rather than dropped."""
        cache.refresh("h.example", REALM, "", "")
        assert _query(session.get.call_args) == {"service": [""], "scope": [""]}

    def test_realm_blank_and_repeated_params_kept(self, session, cache):
        """Test that blank and repeated realm query parameters survive."""
        cache.refresh("h.example", f"{REALM}?audience=&tag=a&tag=b&scope=old", SERVICE, SCOPE)
        assert _query(session.get.call_args) == {
            "audience": [""],
            "tag": ["a", "b"],
            "service": [SERVICE],
            "scope": [SCOPE],
        }

    def test_per_call_timeout(self, session, cache):
        """Test that a per-call timeout is passed through."""
        cache.refresh("h.example", REALM, SERVICE, SCOPE, timeout=1.5)
        assert session.get.call_args.kwargs["timeout"] == 1.5

    @pytest.mark.parametrize("field", ["token", "Token", "access_token"])
    def test_token_field_casing(self, session, cache, field):
        """Test each accepted token field name."""
        session.get.return_value = make_response(200, {field: "abc"})
        assert cache.refresh("h.example", REALM, SERVICE, SCOPE) == "abc"

    def test_refresh_overwrites_previous_token(self, session, cache):
        """Test that a refresh replaces the stored token."""
        cache.refresh("h.example", REALM, SERVICE, SCOPE)
        session.get.return_value = make_response(200, {"token": "token-2"})
        assert cache.refresh("h.example", REALM, SERVICE, SCOPE) == "token-2"
        assert cache.get_cached("h.example") == "token-2"
        assert session.get.call_count == 2

    def test_reuses_token_obtained_after_request_time(self, session, cache):
        """Test that a token stored after the request started is reused."""
        requested_at = cache.now()
        cache.refresh("h.example", REALM, SERVICE, SCOPE)

        assert cache.refresh("h.example", REALM, SERVICE, SCOPE, requested_at=requested_at) == "token-1"
        assert session.get.call_count == 1

    def test_rejected_token_is_refetched(self, session, cache):
        """Test that a fresh token the registry just refused is replaced, not reused."""
        requested_at = cache.now()
        cache.refresh("h.example", REALM, SERVICE, SCOPE)
        session.get.return_value = make_response(200, {"token": "token-2"})

        token = cache.refresh(
            "h.example", REALM, SERVICE, SCOPE, requested_at=requested_at, rejected="token-1"
        )

        assert token == "token-2"
        assert session.get.call_count == 2

    def test_credentials_sent_as_basic_auth(self, session, cache):
        """Test that stored credentials are sent as Basic auth."""
        cache.set_credentials("Registry.Example", "user", "secret")
        cache.refresh("registry.example", REALM, SERVICE, SCOPE)
        assert session.get.call_args.kwargs["auth"] == ("user", "secret")


class TestRefreshErrors:
    def test_non_200(self, session, cache):
        """Test that a non-200 token response fails and caches nothing."""
        session.get.return_value = make_response(403, {"details": "denied"})
        with pytest.raises(TokenFetchError) as exc_info:
            cache.refresh("h.example", REALM, SERVICE, SCOPE)
        assert exc_info.value.status_code == 403
        assert cache.get_cached("h.example") == ""

    @pytest.mark.parametrize("body", [{}, {"token": ""}, {"other": "x"}])
    def test_missing_token(self, session, cache, body):
        """Test that a body without a token fails."""
        session.get.return_value = make_response(200, body)
        with pytest.raises(TokenFetchError):
            cache.refresh("h.example", REALM, SERVICE, SCOPE)

    def test_not_json(self, session, cache):
        """Test that a non-JSON body fails."""
        session.get.return_value = make_response(200, raw=b"<html>oops</html>")
        with pytest.raises(TokenFetchError):
            cache.refresh("h.example", REALM, SERVICE, SCOPE)

    def test_json_not_an_object(self, session, cache):
        """Test that a JSON array body fails."""
        session.get.return_value = make_response(200, ["token"])
        with pytest.raises(TokenFetchError):
            cache.refresh("h.example", REALM, SERVICE, SCOPE)

    def test_no_realm(self, session, cache):
        """Test that a challenge without a realm fails without a request."""
        with pytest.raises(TokenFetchError):
            cache.refresh("h.example", "", SERVICE, SCOPE)
        session.get.assert_not_called()

    def test_network_failure(self, session, cache):
        """Test that an unreachable token endpoint is a token fetch failure."""
        error = ConnectTimeout("timed out")
        session.get.side_effect = error
        with pytest.raises(TokenFetchError) as exc_info:
            cache.refresh("h.example", REALM, SERVICE, SCOPE)
        assert exc_info.value.__cause__ is error
        assert exc_info.value.status_code is None

    def test_failed_refresh_keeps_previous_token(self, session, cache):
        """Test that a failed refresh leaves the old token in place."""
        cache.refresh("h.example", REALM, SERVICE, SCOPE)
        session.get.side_effect = ConnectTimeout("timed out")
        with pytest.raises(TokenFetchError):
            cache.refresh("h.example", REALM, SERVICE, SCOPE)
        assert cache.get_cached("h.example") == "token-1"


class TestConcurrentRefresh:
    def test_concurrent_refreshes_fetch_once(self, session, cache):
        """Callers that started waiting before the fetch completed share its token."""
        workers = 10
        requested_at = cache.now()
        gate = threading.Event()

        def slow_get(url, **kwargs):
            gate.wait(timeout=5)
            return make_response(200, {"token": "shared"})

        session.get.side_effect = slow_get

        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [
                pool.submit(cache.refresh, "h.example", REALM, SERVICE, SCOPE, requested_at)
                for _ in range(workers)
            ]
            gate.set()
            tokens = [f.result(timeout=10) for f in futures]

        assert tokens == ["shared"] * workers
        assert session.get.call_count == 1
