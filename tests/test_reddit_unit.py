"""Unit tests for the Reddit source."""

import json
from datetime import UTC, datetime
from unittest.mock import Mock

import pytest

from feed_relay.errors import UpstreamMalformed, ValidationError
from feed_relay.pipeline import FetchContext
from feed_relay.sources import reddit

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=UTC)


def raw_post(post_id: str, **overrides) -> dict:
    post = {
        "id": post_id,
        "title": f"Post {post_id}",
        "author": "wolverine",
        "subreddit": "annarbor",
        "permalink": f"/r/annarbor/comments/{post_id}/post/",
        "url": f"https://reddit.com/r/annarbor/comments/{post_id}/post/",
        "selftext": "",
        "score": 42,
        "upvote_ratio": 0.95,
        "num_comments": 7,
        "created_utc": 1_790_000_000,
        "thumbnail": "self",
        "domain": "self.annarbor",
    }
    post.update(overrides)
    return post


class TestRedditParamsUnit:
    """Unit tests for query parsing and cache keys."""

    def test_defaults(self):
        assert reddit.parse_params({}) == {
            "subreddit": "annarbor",
            "sort": "hot",
            "timeframe": None,
            "limit": 25,
        }

    def test_subreddit_is_lowercased(self):
        assert reddit.parse_params({"subreddit": "AnnArbor"})["subreddit"] == "annarbor"

    @pytest.mark.parametrize("name", ["annarbor;rm", "ann arbor", "../etc", "a-b", ""])
    def test_invalid_subreddit(self, name):
        query = {"subreddit": name} if name else {"subreddit": " "}
        with pytest.raises(ValidationError) as exc_info:
            reddit.parse_params(query)
        assert exc_info.value.message == "Invalid subreddit name"
        assert exc_info.value.status_code == 400

    def test_timeframe_only_keys_top(self):
        hot = reddit.parse_params({"sort": "hot", "timeframe": "week"})
        top = reddit.parse_params({"sort": "top", "timeframe": "week"})

        assert reddit.cache_params(hot) == {"subreddit": "annarbor", "sort": "hot", "timeframe": None}
        assert reddit.cache_params(top) == {"subreddit": "annarbor", "sort": "top", "timeframe": "week"}
        assert "limit" not in reddit.cache_params(top)

    def test_fetch_requests_full_page(self):
        client = Mock()
        client.fetch.return_value = "{}"
        context = FetchContext(client=client, config=Mock())

        reddit.fetch(context, reddit.parse_params({"sort": "top", "timeframe": "day", "limit": "5"}))

        request = client.fetch.call_args[0][0]
        assert request.url == "https://www.reddit.com/r/annarbor/top.json"
        assert request.params == {"limit": "100", "t": "day"}
        assert request.expect == "json"


class TestRedditNormalizeUnit:
    """Unit tests for decoding and normalization."""

    def test_decode(self):
        body = json.dumps({"data": {"children": [{"data": raw_post("a")}, {"data": raw_post("b")}]}})
        posts = reddit.decode(body)
        assert [post["id"] for post in posts] == ["a", "b"]

    def test_decode_without_children(self):
        with pytest.raises(UpstreamMalformed):
            reddit.decode(json.dumps({"error": 404}))

    def test_decode_skips_children_without_data(self):
        children = [{"data": None}, {"kind": "t3"}, "t3_x", {"data": raw_post("c")}]
        posts = reddit.decode(json.dumps({"data": {"children": children}}))
        assert [post["id"] for post in posts] == ["c"]

    def test_decode_with_only_unreadable_children(self):
        with pytest.raises(UpstreamMalformed):
            reddit.decode(json.dumps({"data": {"children": [{"data": None}]}}))

    def test_normalize_limit_and_order(self):
        posts = [raw_post(str(i)) for i in range(10)]
        params = reddit.parse_params({"limit": "3"})
        items = reddit.normalize(posts, params, NOW)

        assert [item.id for item in items] == ["reddit-annarbor-0", "reddit-annarbor-1", "reddit-annarbor-2"]
        first = items[0]
        assert first.link == "https://reddit.com/r/annarbor/comments/0/post/"
        assert first.author == "u/wolverine"
        assert first.published == datetime.fromtimestamp(1_790_000_000, UTC)
        assert first.title == "💬 Post 0 (📊 42 • 💬 7)"
        assert first.enclosure_url is None

    def test_preview_image_becomes_enclosure(self):
        post = raw_post(
            "img",
            domain="i.redd.it",
            thumbnail="https://b.thumbs.redditmedia.com/t.jpg",
            preview={"images": [{"source": {"url": "https://preview.redd.it/x.jpg?a=1&amp;b=2"}}]},
        )
        (item,) = reddit.normalize([post], reddit.parse_params({}), NOW)

        assert item.enclosure_url == "https://preview.redd.it/x.jpg?a=1&b=2"
        assert item.title.startswith("🖼️")

    def test_long_selftext_is_truncated(self):
        post = raw_post("long", selftext="x" * 800)
        (item,) = reddit.normalize([post], reddit.parse_params({}), NOW)

        assert "... (truncated)" in item.description
        assert "x" * 501 not in item.description

    def test_markdown_to_html(self):
        html = reddit.markdown_to_html("**bold** *it* ~~gone~~ 2^10\n\n<script>")
        assert "<strong>bold</strong>" in html
        assert "<em>it</em>" in html
        assert "<del>gone</del>" in html
        assert "<sup>10</sup>" in html
        assert "&lt;script&gt;" in html
        assert reddit.markdown_to_html("") == ""

    def test_emoji_tables(self):
        assert reddit.score_emoji(5000) == "🔥"
        assert reddit.score_emoji(600) == "⭐"
        assert reddit.score_emoji(101) == "👍"
        assert reddit.score_emoji(51) == "👌"
        assert reddit.score_emoji(3) == "📊"
        assert reddit.post_type_emoji(reddit.to_post(raw_post("p", stickied=True))) == "📌"
        assert reddit.post_type_emoji(reddit.to_post(raw_post("v", is_video=True))) == "🎥"
        assert reddit.post_type_emoji(reddit.to_post(raw_post("l", domain="example.com"))) == "🔗"
