"""Property-based tests for the disk cache."""

import tempfile

from hypothesis import given
from hypothesis import strategies as st

from feed_relay.cache import DiskCache, make_cache_key

param_names = st.text(min_size=1, max_size=12)
param_values = st.one_of(
    st.text(max_size=20), st.integers(min_value=-1000, max_value=1000), st.booleans()
)
param_dicts = st.dictionaries(param_names, param_values, max_size=4)


class TestCacheProperties:
    """Property-based tests for DiskCache and cache keys."""

    @given(
        key=st.from_regex(r"[a-z][a-z0-9=+%-]{0,40}", fullmatch=True),
        body=st.text(max_size=500).filter(lambda s: "\r" not in s),
    )
    def test_write_then_read_returns_body_with_zero_age(self, key, body):
        """Reading right after a write returns the same body with an age of zero."""
        now = 1_700_000_000.0
        with tempfile.TemporaryDirectory() as cache_dir:
            cache = DiskCache(cache_dir, clock=lambda: now)

            assert cache.write(key, body) is True
            entry = cache.read(key)

            assert entry is not None
            assert entry.body == body
            assert entry.age_ms == 0

    @given(
        source_a=st.text(min_size=1, max_size=10),
        params_a=param_dicts,
        source_b=st.text(min_size=1, max_size=10),
        params_b=param_dicts,
    )
    def test_distinct_queries_never_share_a_key(self, source_a, params_a, source_b, params_b):
        """Two different (source, params) pairs always produce different keys."""

        # Values are compared by their text form, with booleans as true/false.
        def canonical(params):
            return {
                name: ("true" if value else "false") if isinstance(value, bool) else str(value)
                for name, value in params.items()
            }

        same_query = source_a == source_b and canonical(params_a) == canonical(params_b)
        key_a = make_cache_key(source_a, params_a)
        key_b = make_cache_key(source_b, params_b)

        if same_query:
            assert key_a == key_b
        else:
            assert key_a != key_b

    @given(params=param_dicts)
    def test_key_ignores_parameter_order(self, params):
        """Parameter insertion order does not change the key."""
        reversed_params = dict(reversed(list(params.items())))
        assert make_cache_key("reddit", params) == make_cache_key("reddit", reversed_params)

    @given(age_seconds=st.integers(min_value=0, max_value=10 * 24 * 3600))
    def test_age_tracks_clock(self, age_seconds):
        """Entry age is the clock distance since the write."""
        clock = {"now": 1_700_000_000.0}
        with tempfile.TemporaryDirectory() as cache_dir:
            cache = DiskCache(cache_dir, clock=lambda: clock["now"])
            cache.write("craigslist", "<rss></rss>")

            clock["now"] += age_seconds
            entry = cache.read_stale_allowed("craigslist")

            assert entry is not None
            assert entry.age_ms == age_seconds * 1000
