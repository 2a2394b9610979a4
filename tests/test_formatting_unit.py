"""Unit tests for description HTML helpers."""

from datetime import datetime

from feed_relay import formatting as fmt


class TestFormattingUnit:
    """Unit tests for the formatting helpers."""

    def test_escape_html(self):
        assert fmt.escape_html("<a href=\"x\">Tom's</a> & co") == (
            "&lt;a href=&quot;x&quot;&gt;Tom&#x27;s&lt;/a&gt; &amp; co"
        )
        assert fmt.escape_html(None) == ""
        assert fmt.escape_html(42) == "42"

    def test_truncate(self):
        assert fmt.truncate("short", 10) == "short"
        assert fmt.truncate("abcdefghij", 4) == "abcd..."
        assert fmt.truncate(None, 4) == ""

    def test_dates(self):
        value = datetime(2026, 10, 18, 9, 5)
        assert fmt.format_datetime(value) == "Oct 18, 2026 9:05 AM"
        assert fmt.format_datetime(None) == "TBA"
        assert fmt.format_date(value) == "Sunday, October 18, 2026"

    def test_money(self):
        assert fmt.format_money(425000) == "$425,000"
        assert fmt.format_money(1249.6) == "$1,250"

    def test_user_text_is_escaped(self):
        html = fmt.panel("<b>", fmt.field_line("Price", "<script>")) + fmt.badge("<i>", "red")
        assert "<script>" not in html
        assert "&lt;b&gt;" in html
        assert "&lt;i&gt;" in html

    def test_image_without_url(self):
        assert fmt.image(None, "alt") == ""
        assert 'src="https://x.example.com/a.jpg?a=1&amp;b=2"' in fmt.image(
            "https://x.example.com/a.jpg?a=1&b=2", "alt"
        )

    def test_badges(self):
        assert fmt.badges([]) == ""
        assert fmt.badges(["<span>a</span>"]).endswith("<span>a</span></div>")
