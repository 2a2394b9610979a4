"""Subreddit listings from the public Reddit JSON API."""

import re
from datetime import UTC, datetime
from typing import Any

from .. import formatting as fmt
from ..config import SOCIAL_CACHE, TIMEOUTS, Config
from ..errors import UpstreamMalformed, ValidationError
from ..models import ChannelMetadata, NormalizedItem
from ..pipeline import FetchContext, SourceDescriptor
from ..upstream import UpstreamRequest, decode_json
from .common import parse_choice, parse_limit, with_query

API_URL = "https://www.reddit.com/r/{subreddit}/{sort}.json"
UPSTREAM_PAGE_SIZE = 100
SELFTEXT_LIMIT = 500

SUBREDDIT_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")
SORTS = ("hot", "new", "top", "rising")
TIMEFRAMES = ("hour", "day", "week", "month", "year", "all")

# Thumbnail values Reddit uses instead of a URL.
PLACEHOLDER_THUMBNAILS = {"self", "default", "nsfw", "spoiler", "image", ""}


def parse_params(query) -> dict[str, Any]:
    subreddit = (query.get("subreddit") or "annarbor").strip()
    if not SUBREDDIT_PATTERN.match(subreddit):
        raise ValidationError(
            "Subreddit names may only contain letters, digits and underscores",
            message="Invalid subreddit name",
        )
    return {
        "subreddit": subreddit.lower(),
        "sort": parse_choice(query, "sort", SORTS, "hot"),
        "timeframe": parse_choice(query, "timeframe", TIMEFRAMES, None),
        "limit": parse_limit(query),
    }


def cache_params(params: dict[str, Any]) -> dict[str, Any]:
    """Parameters that change the upstream query; timeframe only applies to top."""
    return {
        "subreddit": params["subreddit"],
        "sort": params["sort"],
        "timeframe": params["timeframe"] if params["sort"] == "top" else None,
    }


def fetch(context: FetchContext, params: dict[str, Any]) -> str:
    query = {"limit": str(UPSTREAM_PAGE_SIZE)}
    if params["sort"] == "top" and params["timeframe"]:
        query["t"] = params["timeframe"]
    return context.client.fetch(
        UpstreamRequest(
            url=API_URL.format(subreddit=params["subreddit"], sort=params["sort"]),
            timeout=TIMEOUTS.api,
            params=query,
            expect="json",
        )
    )


def decode(body: str) -> list[dict[str, Any]]:
    data = decode_json(body)
    try:
        children = data["data"]["children"]
    except (KeyError, TypeError) as e:
        raise UpstreamMalformed("Reddit listing has no data.children") from e
    if not isinstance(children, list):
        raise UpstreamMalformed("Reddit listing children is not a list")
    posts = [
        child["data"]
        for child in children
        if isinstance(child, dict) and isinstance(child.get("data"), dict)
    ]
    if children and not posts:
        raise UpstreamMalformed("Reddit listing has no readable posts")
    return posts


def to_post(raw: dict[str, Any]) -> dict[str, Any]:
    """Flatten a Reddit API post into the fields the feed uses."""
    permalink = raw.get("permalink") or ""
    if permalink and not permalink.startswith("http"):
        permalink = f"https://reddit.com{permalink}"

    image_url = raw.get("thumbnail")
    if image_url in PLACEHOLDER_THUMBNAILS:
        image_url = None
    images = (raw.get("preview") or {}).get("images") or []
    if images and images[0].get("source", {}).get("url"):
        image_url = images[0]["source"]["url"].replace("&amp;", "&")

    return {
        "id": str(raw.get("id", "")),
        "title": raw.get("title") or "Untitled post",
        "author": raw.get("author") or "[deleted]",
        "subreddit": raw.get("subreddit") or "",
        "url": raw.get("url") or permalink,
        "permalink": permalink,
        "selftext": raw.get("selftext") or "",
        "score": int(raw.get("score") or 0),
        "upvote_ratio": float(raw.get("upvote_ratio") or 0),
        "num_comments": int(raw.get("num_comments") or 0),
        "created_utc": float(raw.get("created_utc") or 0),
        "image_url": image_url,
        "is_video": bool(raw.get("is_video")),
        "domain": raw.get("domain") or "",
        "flair": raw.get("link_flair_text") or None,
        "stickied": bool(raw.get("stickied")),
        "locked": bool(raw.get("locked")),
        "nsfw": bool(raw.get("over_18")),
    }


def post_type_emoji(post: dict[str, Any]) -> str:
    domain = post["domain"]
    if post["stickied"]:
        return "📌"
    if post["is_video"]:
        return "🎥"
    if post["selftext"]:
        return "📝"
    if "imgur" in domain or "i.redd.it" in domain:
        return "🖼️"
    if "youtube" in domain or "youtu.be" in domain:
        return "📺"
    if domain == f"self.{post['subreddit']}":
        return "💬"
    return "🔗"


def score_emoji(score: int) -> str:
    if score > 1000:
        return "🔥"
    if score > 500:
        return "⭐"
    if score > 100:
        return "👍"
    if score > 50:
        return "👌"
    return "📊"


def markdown_to_html(text: str) -> str:
    """Convert the small subset of Reddit markdown used in self posts."""
    if not text:
        return ""
    html = fmt.escape_html(text)
    html = re.sub(r"\*\*(.*?)\*\*", r"<strong>\1</strong>", html)
    html = re.sub(r"\*(.*?)\*", r"<em>\1</em>", html)
    html = re.sub(r"~~(.*?)~~", r"<del>\1</del>", html)
    html = re.sub(r"\^(\S+)", r"<sup>\1</sup>", html)
    html = html.replace("\n\n", "</p><p>").replace("\n", "<br>")
    return f"<p>{html}</p>"


def describe(post: dict[str, Any], posted: datetime) -> str:
    labels = [fmt.badge(f"👤 u/{post['author']}", "#ff4500")]
    if post["flair"]:
        labels.append(fmt.badge(f"🏷️ {post['flair']}", "#0079d3"))
    if post["stickied"]:
        labels.append(fmt.badge("📌 Pinned", "#46d160"))
    if post["locked"]:
        labels.append(fmt.badge("🔒 Locked", "#ffd635", color="black"))
    if post["nsfw"]:
        labels.append(fmt.badge("🔞 NSFW", "#ff585b"))

    parts = [
        fmt.image(
            post["image_url"],
            "Post thumbnail",
            style="width: 120px; height: 120px; object-fit: cover; border-radius: 8px;",
        ),
        f'<h2 style="margin: 0 0 10px 0; color: #2c3e50;">{fmt.escape_html(post["title"])}</h2>',
        fmt.badges(labels),
    ]

    if post["selftext"]:
        body = markdown_to_html(post["selftext"][:SELFTEXT_LIMIT])
        if len(post["selftext"]) > SELFTEXT_LIMIT:
            body += "<p><em>... (truncated)</em></p>"
        parts.append(fmt.panel("📝 Post Content", body, accent="#0079d3"))

    parts.append(
        fmt.stat_grid(
            [
                (f"{score_emoji(post['score'])} Score", f"{post['score']:,}", "#ff4500"),
                ("💬 Comments", str(post["num_comments"]), "#0079d3"),
                ("📊 Upvote %", f"{round(post['upvote_ratio'] * 100)}%", "#46d160"),
                ("🌐 Domain", post["domain"], "#666"),
            ]
        )
    )

    parts.append(fmt.button(post["permalink"], "💬 View Comments on Reddit", "#ff4500"))
    if post["url"] and post["url"] != post["permalink"]:
        parts.append(fmt.button(post["url"], "🔗 View Original Link", "#0079d3"))

    parts.append(
        fmt.footer(
            [
                ("📅 Posted", fmt.format_datetime(posted)),
                ("🏠 Subreddit", f"/r/{post['subreddit']}"),
                ("🔗 Permalink", post["permalink"]),
            ]
        )
    )
    return fmt.container("".join(parts))


def normalize(raw_posts: list[dict[str, Any]], params: dict[str, Any], now: datetime) -> list[NormalizedItem]:
    """Posts in upstream order, cut to the requested limit."""
    items = []
    for raw in raw_posts[: params["limit"]]:
        post = to_post(raw)
        subreddit = post["subreddit"] or params["subreddit"]
        post["subreddit"] = subreddit
        posted = datetime.fromtimestamp(post["created_utc"], UTC) if post["created_utc"] else now
        score = score_emoji(post["score"])

        categories = ["Reddit", subreddit]
        if post["flair"]:
            categories.append(post["flair"])

        items.append(
            NormalizedItem(
                id=f"reddit-{subreddit.lower()}-{post['id']}",
                title=(
                    f"{post_type_emoji(post)} {post['title']} "
                    f"({score} {post['score']} • 💬 {post['num_comments']})"
                ),
                link=post["permalink"] or post["url"],
                published=posted,
                categories=categories,
                payload=post,
                description=describe(post, posted),
                author=f"u/{post['author']}",
                enclosure_url=post["image_url"],
            )
        )
    return items


def channel(params: dict[str, Any], config: Config) -> ChannelMetadata:
    subreddit = params["subreddit"]
    sort_title = params["sort"].capitalize()
    timeframe = f" ({params['timeframe']})" if params["timeframe"] else ""
    return ChannelMetadata(
        title=f"🤖 Reddit: /r/{subreddit} ({sort_title})",
        description=f"{sort_title} posts from /r/{subreddit}{timeframe}",
        link=f"https://reddit.com/r/{subreddit}/{params['sort']}",
        self_link=with_query(
            config.endpoint_url("reddit"),
            {"subreddit": subreddit, "sort": params["sort"], "timeframe": params["timeframe"]},
        ),
        ttl=30,
        categories=["Reddit", subreddit],
        copyright="Content from Reddit users",
        managing_editor="reddit-rss@localhost",
        image_url="https://www.redditstatic.com/desktop2x/img/favicon/favicon-96x96.png",
        image_title="Reddit RSS Feed",
        image_size=96,
    )


SOURCE = SourceDescriptor(
    name="reddit",
    parse_params=parse_params,
    fetch=fetch,
    decode=decode,
    normalize=normalize,
    channel=channel,
    cache_policy=SOCIAL_CACHE,
    cache_params=cache_params,
    max_age=1800,
)
