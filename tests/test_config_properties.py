"""Property-based tests for configuration management."""

import json
import os
import tempfile
from pathlib import Path
from unittest.mock import patch

from hypothesis import given
from hypothesis import strategies as st

from feed_relay.config import Config

feed_names = st.from_regex(r"[a-z][a-z0-9-]{0,15}", fullmatch=True)


class TestConfigProperties:
    """Property-based tests for Config class."""

    @given(
        st.lists(
            st.tuples(feed_names, st.booleans()),
            min_size=1,
            max_size=8,
            unique_by=lambda feed: feed[0],
        ).filter(lambda feeds: any(enabled for _, enabled in feeds))
    )
    def test_enabled_feeds_in_file_order(self, feeds):
        """Exactly the enabled feeds are returned, in the order the file lists them."""
        data = {
            "feeds": [
                {"name": name, "url": f"https://{name}.example.com/rss", "enabled": enabled}
                for name, enabled in feeds
            ]
        }
        with tempfile.TemporaryDirectory() as directory:
            (Path(directory) / "feeds.json").write_text(json.dumps(data), encoding="utf-8")
            original = os.getcwd()
            os.chdir(directory)
            try:
                result = Config().get_external_feeds()
            finally:
                os.chdir(original)

        assert [feed.name for feed in result] == [name for name, enabled in feeds if enabled]
        assert all(feed.url == f"https://{feed.name}.example.com/rss" for feed in result)

    @given(st.sampled_from(["1", "true", "TRUE", "yes", "0", "false", "no", ""]))
    def test_metrics_flag(self, value):
        """METRICS_ENABLED accepts 1/true/yes in any case and nothing else."""
        with patch.dict(os.environ, {"METRICS_ENABLED": value}, clear=True):
            config = Config()

        assert config.metrics_enabled is (value.lower() in ("1", "true", "yes"))
