
from src.utils.text_cleaner import (
    html_to_plain_text,
    looks_like_html,
    normalize_text,
    plain_text_length,
    sanitize_whitespace,
    summarize,
    truncate_text,
)


def test_html_to_plain_text_drops_scripts_and_keeps_blocks():
    html = """
    <html><head><style>.x{}</style><script>alert(1)</script></head>
    <body>
      <!-- tracking -->
      <h2>Breaking discovery</h2>
      <p>Physics &amp; AI!<br>Second line</p>
    </body></html>
    """
    text = html_to_plain_text(html)
    assert "alert(1)" not in text
    assert "tracking" not in text
    assert text.splitlines() == ["Breaking discovery", "Physics & AI!", "Second line"]


def test_plain_text_length_counts_visible_text_only():
    assert plain_text_length("<p>abc</p>") == 3
    assert plain_text_length("  plain  ") == 5
    assert plain_text_length("") == 0


def test_looks_like_html():
    assert looks_like_html("<div>x</div>")
    assert not looks_like_html("a < 3")
    assert not looks_like_html("")


def test_sanitize_whitespace_keeps_preformatted_blocks():
    markup = "<div>\n   a   b\n</div>\n\n<pre>  keep\n  this </pre>"
    cleaned = sanitize_whitespace(markup)
    assert "<div> a b </div>" in cleaned
    assert "<pre>  keep\n  this </pre>" in cleaned


def test_sanitize_whitespace_plain_text():
    assert sanitize_whitespace("  one \n two\tthree ") == "one two three"


def test_truncate_and_summarize():
    assert truncate_text("abcdef", 3) == "abc"
    assert truncate_text("abc", 10) == "abc"
    summary = summarize("<p>" + "word " * 200 + "</p>", 300)
    assert len(summary) <= 300
    assert "<p>" not in summary


def test_normalize_text_is_deterministic_and_idempotent():
    s = "  The  post   Café  appeared\n first  on  X  "
    a = normalize_text(s)
    b = normalize_text(a)
    assert a == b
    assert "Café" in a
