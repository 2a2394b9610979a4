"""Outbound HTTP client for third-party upstreams."""

import json
import re
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

import requests

from .errors import (
    UpstreamMalformed,
    UpstreamNetworkError,
    UpstreamRejected,
    UpstreamTimeout,
)
from .logging_config import create_execution_logger

FEED_ROOT_PATTERN = re.compile(r"<(rss|feed|rdf:RDF)[\s>]", re.IGNORECASE)


@dataclass
class UpstreamRequest:
    """A fully-formed request to one upstream."""

    url: str
    timeout: float
    headers: dict[str, str] = field(default_factory=dict)
    expect: str = "text"  # text | feed | json
    method: str = "GET"
    json_body: dict[str, Any] | None = None
    params: dict[str, str] | None = None
    secrets: list[str] = field(default_factory=list)  # values redacted from logs

    def redact(self, text: str) -> str:
        """Replace every secret, raw or percent-encoded, with a placeholder."""
        for secret in self.secrets:
            if secret:
                text = text.replace(secret, "[REDACTED]").replace(quote(secret), "[REDACTED]")
        return text

    def display_url(self) -> str:
        """URL safe to log."""
        return self.redact(self.url)


class UpstreamClient:
    """Issues single, bounded requests to upstream services."""

    def __init__(self, user_agent: str, execution_id: str | None = None):
        """Initialize the client.

        Args:
            user_agent: User-Agent sent with every request
            execution_id: Execution ID for logging context
        """
        self.logger = create_execution_logger("upstream", execution_id)
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": user_agent})

    def fetch(self, request: UpstreamRequest) -> str:
        """
        Perform the request and return the raw body.

        Raises:
            UpstreamTimeout: The upstream did not answer within request.timeout
            UpstreamRejected: Non-2xx response
            UpstreamNetworkError: Transport-level failure
            UpstreamMalformed: 2xx body that does not look like request.expect
        """
        url = request.display_url()
        self.logger.debug("Requesting upstream", upstream_url=url, timeout=request.timeout)

        response = None
        try:
            response = self.session.request(
                request.method,
                request.url,
                headers=request.headers,
                params=request.params,
                json=request.json_body,
                timeout=request.timeout,
            )
            if not response.ok:
                self.logger.log_upstream_call(url, response.status_code, success=False)
                raise UpstreamRejected(response.status_code, response.reason or "", url)
            body = response.text
        except requests.Timeout as e:
            self.logger.log_upstream_call(url, None, success=False, error="timeout")
            raise UpstreamTimeout(f"No response from upstream within {request.timeout}s") from e
        except requests.RequestException as e:
            # Transport errors echo the full URL, query string included.
            error = request.redact(f"{type(e).__name__}: {e}")
            self.logger.log_upstream_call(url, None, success=False, error=error)
            raise UpstreamNetworkError(error) from e
        finally:
            if response is not None:
                response.close()

        self.logger.log_upstream_call(
            url, response.status_code, success=True, content_length=len(body)
        )
        self._check_payload(request, body)
        return body

    def close(self) -> None:
        """Release pooled connections."""
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def fetch_json(self, request: UpstreamRequest) -> Any:
        """Perform the request and decode the JSON body."""
        body = self.fetch(request)
        return decode_json(body)

    def _check_payload(self, request: UpstreamRequest, body: str) -> None:
        if request.expect == "feed" and not looks_like_feed(body):
            self.logger.error(
                "Upstream body has no RSS/Atom root element",
                upstream_url=request.display_url(),
            )
            raise UpstreamMalformed("Response does not contain an RSS or Atom feed")
        if request.expect == "json":
            decode_json(body)


def looks_like_feed(body: str) -> bool:
    """True when the text contains an RSS, Atom or RDF root element."""
    return bool(FEED_ROOT_PATTERN.search(body or ""))


def decode_json(body: str) -> Any:
    """Decode a JSON body, mapping failures onto UpstreamMalformed."""
    try:
        return json.loads(body)
    except (json.JSONDecodeError, TypeError) as e:
        raise UpstreamMalformed(f"Response is not valid JSON: {e}") from e
