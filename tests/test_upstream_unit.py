"""Unit tests for the upstream HTTP client."""

from unittest.mock import Mock, patch

import pytest
import requests

from feed_relay.errors import (
    UpstreamMalformed,
    UpstreamNetworkError,
    UpstreamRejected,
    UpstreamTimeout,
)
from feed_relay.upstream import UpstreamClient, UpstreamRequest, decode_json, looks_like_feed


def mock_response(status_code=200, text="", reason="OK"):
    response = Mock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 300
    response.reason = reason
    response.text = text
    return response


class TestUpstreamClientUnit:
    """Unit tests for UpstreamClient."""

    def setup_method(self):
        self.client = UpstreamClient("Test-Agent/1.0", execution_id="test-exec")

    def test_sets_user_agent(self):
        assert self.client.session.headers["User-Agent"] == "Test-Agent/1.0"

    def test_returns_body_and_closes_response(self):
        response = mock_response(text="<rss><channel></channel></rss>")
        with patch.object(self.client.session, "request", return_value=response) as mock_request:
            body = self.client.fetch(
                UpstreamRequest(url="https://example.com/feed", timeout=15, expect="feed")
            )

        assert body == "<rss><channel></channel></rss>"
        mock_request.assert_called_once_with(
            "GET",
            "https://example.com/feed",
            headers={},
            params=None,
            json=None,
            timeout=15,
        )
        response.close.assert_called_once()

    def test_non_2xx_is_rejected(self):
        response = mock_response(status_code=429, reason="Too Many Requests")
        with patch.object(self.client.session, "request", return_value=response):
            with pytest.raises(UpstreamRejected) as exc_info:
                self.client.fetch(UpstreamRequest(url="https://example.com", timeout=5))

        assert exc_info.value.upstream_status == 429
        assert exc_info.value.details == "429 Too Many Requests"
        assert exc_info.value.status_code == 500
        response.close.assert_called_once()

    def test_timeout(self):
        with patch.object(self.client.session, "request", side_effect=requests.Timeout("slow")):
            with pytest.raises(UpstreamTimeout) as exc_info:
                self.client.fetch(UpstreamRequest(url="https://example.com", timeout=5))

        assert exc_info.value.status_code == 504

    def test_connection_error(self):
        with patch.object(
            self.client.session, "request", side_effect=requests.ConnectionError("refused")
        ):
            with pytest.raises(UpstreamNetworkError):
                self.client.fetch(UpstreamRequest(url="https://example.com", timeout=5))

    def test_connection_error_redacts_secrets(self):
        error = requests.ConnectionError(
            "Max retries exceeded with url: /discovery/v2/events.json?apikey=SUPERSECRET123"
        )
        request = UpstreamRequest(
            url="https://app.ticketmaster.com/discovery/v2/events.json",
            timeout=5,
            params={"apikey": "SUPERSECRET123"},
            secrets=["SUPERSECRET123"],
        )
        with (
            patch.object(self.client.session, "request", side_effect=error),
            patch.object(self.client.logger, "log_upstream_call") as mock_log,
        ):
            with pytest.raises(UpstreamNetworkError) as exc_info:
                self.client.fetch(request)

        assert "SUPERSECRET123" not in exc_info.value.details
        assert "apikey=[REDACTED]" in exc_info.value.details
        assert "SUPERSECRET123" not in str(mock_log.call_args)

    def test_close_closes_session(self):
        with patch.object(self.client.session, "close") as mock_close:
            with self.client:
                pass
        mock_close.assert_called_once()

    def test_html_instead_of_feed_is_malformed(self):
        response = mock_response(text="<html><body>Blocked</body></html>")
        with patch.object(self.client.session, "request", return_value=response):
            with pytest.raises(UpstreamMalformed):
                self.client.fetch(
                    UpstreamRequest(url="https://example.com", timeout=5, expect="feed")
                )

    def test_fetch_json(self):
        response = mock_response(text='{"properties": {"forecast": "https://x"}}')
        with patch.object(self.client.session, "request", return_value=response):
            data = self.client.fetch_json(
                UpstreamRequest(url="https://example.com", timeout=5, expect="json")
            )

        assert data == {"properties": {"forecast": "https://x"}}

    def test_invalid_json_is_malformed(self):
        response = mock_response(text="not json")
        with patch.object(self.client.session, "request", return_value=response):
            with pytest.raises(UpstreamMalformed):
                self.client.fetch(UpstreamRequest(url="https://example.com", timeout=5, expect="json"))


class TestUpstreamHelpersUnit:
    """Unit tests for the module-level helpers."""

    def test_display_url_redacts_secrets(self):
        request = UpstreamRequest(
            url="https://api.example.com/events?apikey=s3cret", timeout=5, secrets=["s3cret"]
        )
        assert request.display_url() == "https://api.example.com/events?apikey=[REDACTED]"

    def test_redact_percent_encoded_secret(self):
        request = UpstreamRequest(url="https://x", timeout=5, secrets=["a b/c"])
        assert request.redact("key=a%20b/c and a b/c") == "key=[REDACTED] and [REDACTED]"

    def test_looks_like_feed(self):
        assert looks_like_feed('<?xml version="1.0"?><rss version="2.0">')
        assert looks_like_feed('<feed xmlns="http://www.w3.org/2005/Atom">')
        assert looks_like_feed("<rdf:RDF xmlns:rdf=...>")
        assert not looks_like_feed("<html><body>Access denied</body></html>")
        assert not looks_like_feed("")

    def test_decode_json(self):
        assert decode_json("[1, 2]") == [1, 2]
        with pytest.raises(UpstreamMalformed):
            decode_json("{broken")
