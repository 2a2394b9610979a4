"""Generic fetch, normalize and render pipeline shared by every feed endpoint."""

import random
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from .cache import DiskCache, make_cache_key
from .config import CachePolicy, Config
from .credentials import get_api_key
from .errors import UpstreamError, UpstreamMalformed
from .logging_config import create_execution_logger
from .models import ChannelMetadata, FeedDocument, NormalizedItem
from .render import FeedRenderer
from .upstream import UpstreamClient

LIVE = "live"
CACHE = "cache"
STALE_CACHE = "stale_cache"
MOCK = "mock"


@dataclass
class Ok:
    """Payload obtained from the upstream or a fresh cache entry."""

    payload: Any
    origin: str


@dataclass
class Degraded:
    """Upstream failed; payload comes from a stale cache entry or mock data."""

    payload: Any
    origin: str
    error: UpstreamError


@dataclass
class Failed:
    """Upstream failed and no fallback exists."""

    error: UpstreamError


FetchOutcome = Ok | Degraded | Failed


@dataclass
class CredentialRequirement:
    env_var: str
    required: bool = True


@dataclass
class FetchContext:
    """Everything a source needs to talk to its upstream."""

    client: UpstreamClient
    config: Config
    credentials: dict[str, str | None] = field(default_factory=dict)
    execution_id: str | None = None


def no_params(query: Mapping[str, str]) -> dict[str, Any]:
    return {}


@dataclass
class SourceDescriptor:
    """
    Table entry describing one feed endpoint.

    ``fetch`` returns the raw upstream body and ``decode`` turns that body
    into the payload handed to ``normalize``. A ``mock`` generator must produce
    the same payload shape as ``decode``. ``cache_params`` selects the
    parameters that shape the upstream query and therefore the cache key.
    """

    name: str
    fetch: Callable[[FetchContext, dict[str, Any]], str]
    decode: Callable[[str], Any]
    normalize: Callable[[Any, dict[str, Any], datetime], list[NormalizedItem]]
    channel: Callable[[dict[str, Any], Config], ChannelMetadata]
    parse_params: Callable[[Mapping[str, str]], dict[str, Any]] = no_params
    cache_policy: CachePolicy | None = None
    cache_params: Callable[[dict[str, Any]], dict[str, Any]] | None = None
    mock: Callable[[dict[str, Any], datetime, random.Random], Any] | None = None
    credentials: list[CredentialRequirement] = field(default_factory=list)
    max_age: int = 3600
    cors: bool = False


@dataclass
class FeedResult:
    """A rendered feed plus how its payload was obtained."""

    body: str
    origin: str
    items_rendered: int
    error: UpstreamError | None = None


class FeedPipeline:
    """Runs one source descriptor: cache, upstream, fallback, normalize, render."""

    def __init__(
        self,
        config: Config,
        cache: DiskCache | None = None,
        client: UpstreamClient | None = None,
        clock: Callable[[], float] = time.time,
        rng: random.Random | None = None,
        execution_id: str | None = None,
    ):
        """Initialize the pipeline.

        Args:
            config: Application configuration
            cache: Disk cache (defaults to one rooted at config.cache_dir)
            client: Upstream client (defaults to one using config.user_agent)
            clock: Returns the current epoch time in seconds
            rng: Random source for mock data
            execution_id: Execution ID for logging context
        """
        self.config = config
        self.clock = clock
        self.execution_id = execution_id
        self.cache = cache or DiskCache(config.cache_dir, execution_id, clock=clock)
        self.owns_client = client is None
        self.client = client or UpstreamClient(config.user_agent, execution_id)
        self.rng = rng or random.Random()
        self.renderer = FeedRenderer()
        self.logger = create_execution_logger("pipeline", execution_id)

    def now(self) -> datetime:
        return datetime.fromtimestamp(self.clock(), UTC)

    def resolve_credentials(self, source: SourceDescriptor) -> dict[str, str | None]:
        """Look up the source's API keys; raises ConfigurationMissing."""
        return {
            credential.env_var: get_api_key(
                credential.env_var,
                self.config.aws_region,
                self.execution_id,
                required=credential.required,
            )
            for credential in source.credentials
        }

    def cache_key(self, source: SourceDescriptor, params: dict[str, Any]) -> str | None:
        if source.cache_policy is None:
            return None
        key_params = source.cache_params(params) if source.cache_params else params
        return make_cache_key(source.name, key_params)

    def fetch_outcome(
        self,
        source: SourceDescriptor,
        params: dict[str, Any],
        credentials: dict[str, str | None] | None = None,
    ) -> FetchOutcome:
        """
        Obtain the source payload.

        Order: fresh cache entry, live upstream (written back to the cache),
        stale cache entry, mock data. Upstream errors are only returned, as
        ``Failed``, when none of the fallbacks applies.
        """
        key = self.cache_key(source, params)

        if key is not None:
            entry = self.cache.read(key)
            if entry is not None and source.cache_policy.is_fresh(entry.age_ms):
                payload = self._decode_cached(source, key, entry.body, params)
                if payload is not None:
                    self.logger.log_cache_event(key, "hit", age_ms=entry.age_ms)
                    return Ok(payload, CACHE)

        context = FetchContext(
            client=self.client,
            config=self.config,
            credentials=credentials or {},
            execution_id=self.execution_id,
        )
        try:
            body = source.fetch(context, params)
            payload = self._decode(source, body, params)
        except UpstreamError as e:
            self.logger.warning(
                f"Upstream failed for {source.name}: {e}",
                source=source.name,
                error=str(e),
                error_type=type(e).__name__,
            )
            return self._fallback(source, params, key, e)

        if key is not None:
            self.cache.write(key, body)
        return Ok(payload, LIVE)

    def _fallback(
        self,
        source: SourceDescriptor,
        params: dict[str, Any],
        key: str | None,
        error: UpstreamError,
    ) -> FetchOutcome:
        if key is not None:
            entry = self.cache.read_stale_allowed(key)
            if entry is not None:
                payload = self._decode_cached(source, key, entry.body, params)
                if payload is not None:
                    return Degraded(payload, STALE_CACHE, error)

        if source.mock is not None:
            self.logger.info(f"Serving mock data for {source.name}", source=source.name)
            return Degraded(source.mock(params, self.now(), self.rng), MOCK, error)

        return Failed(error)

    def _decode(self, source: SourceDescriptor, body: str, params: dict[str, Any]) -> Any:
        """
        Decode a body and check that it normalizes.

        A body that parses but has an unexpected shape raises UpstreamMalformed,
        so it takes the fallback path and is never written to the cache.
        """
        try:
            payload = source.decode(body)
            source.normalize(payload, params, self.now())
        except UpstreamError:
            raise
        except (AttributeError, KeyError, IndexError, TypeError, ValueError) as e:
            raise UpstreamMalformed(
                f"Unexpected {source.name} payload: {type(e).__name__}: {e}"
            ) from e
        return payload

    def _decode_cached(
        self, source: SourceDescriptor, key: str, body: str, params: dict[str, Any]
    ) -> Any:
        try:
            return self._decode(source, body, params)
        except UpstreamMalformed as e:
            self.logger.warning(
                f"Ignoring unreadable cache entry: {e}", cache_key=key, error=str(e)
            )
            return None

    def build_document(
        self, source: SourceDescriptor, params: dict[str, Any], payload: Any, now: datetime
    ) -> FeedDocument:
        channel = source.channel(params, self.config)
        items = source.normalize(payload, params, now)
        for item in items:
            # Items without a page of their own point back at the feed.
            if not item.link:
                item.link = channel.link
        return FeedDocument(channel=channel, items=items)

    def close(self) -> None:
        """Close the upstream client when this pipeline created it."""
        if self.owns_client:
            self.client.close()

    def run(self, source: SourceDescriptor, query: Mapping[str, str]) -> FeedResult:
        """
        Serve one request for ``source``.

        Raises:
            ValidationError: Query parameters are invalid
            ConfigurationMissing: A required credential is absent
            UpstreamError: The upstream failed and no fallback exists
        """
        params = source.parse_params(query)
        credentials = self.resolve_credentials(source)

        outcome = self.fetch_outcome(source, params, credentials)
        if isinstance(outcome, Failed):
            raise outcome.error

        now = self.now()
        document = self.build_document(source, params, outcome.payload, now)
        body = self.renderer.render_document(document, now)

        self.logger.info(
            f"Rendered {source.name} feed",
            source=source.name,
            origin=outcome.origin,
            items_count=len(document.items),
        )
        return FeedResult(
            body=body,
            origin=outcome.origin,
            items_rendered=len(document.items),
            error=getattr(outcome, "error", None),
        )
