"""网页抓取"""
import httpx
import pytest

from magpie.services.base import ScrapeError
from magpie.services.scraper import (
    SSRFError,
    WebScraper,
    count_words,
    detect_content_type,
    extract_domain,
    parse_html,
    validate_url,
)

HTML = """
<html lang="en-US">
<head>
  <title>Fallback Title</title>
  <meta property="og:title" content="OG Title">
  <meta name="description" content="Page description">
  <meta property="og:site_name" content="Example">
  <script>var x = 1;</script>
</head>
<body>
  <nav>menu</nav>
  <article><p>Hello   world from the article.</p></article>
  <footer>footer</footer>
</body>
</html>
"""


@pytest.mark.parametrize("url", [
    "http://localhost/admin",
    "http://127.0.0.1:8080/",
    "http://10.1.2.3/",
    "http://192.168.1.1/",
    "http://169.254.169.254/latest/meta-data",
    "http://[::1]/",
    "file:///etc/passwd",
    "ftp://example.com/",
])
def test_validate_url_blocks_internal_targets(url):
    with pytest.raises(SSRFError):
        validate_url(url, resolve=False)


def test_validate_url_allows_public_host():
    assert validate_url("https://example.com/a", resolve=False) == "https://example.com/a"


def test_helpers():
    assert extract_domain("https://www.Example.com/path") == "example.com"
    assert detect_content_type("https://www.youtube.com/watch?v=1") == "video"
    assert detect_content_type("https://example.com/paper.pdf") == "pdf"
    assert detect_content_type("https://example.com/post") == "article"
    assert count_words("hello world 你好") == 4


def test_parse_html_extracts_metadata_and_body():
    result = parse_html("https://example.com/post", HTML)
    assert result.title == "OG Title"
    assert result.description == "Page description"
    assert result.site_name == "Example"
    assert result.language == "en"
    assert result.content == "Hello world from the article."
    assert result.word_count == 5


def test_parse_html_truncates_content():
    html = "<html><body><p>" + "a" * 500 + "</p></body></html>"
    assert len(parse_html("https://example.com", html, max_content_length=100).content) == 100


async def test_scrape_with_transport():
    transport = httpx.MockTransport(lambda request: httpx.Response(
        200, text=HTML, headers={"content-type": "text/html; charset=utf-8"},
    ))
    result = await WebScraper(transport=transport).scrape("https://example.com/post")
    assert result.title == "OG Title"


async def test_scrape_http_error():
    transport = httpx.MockTransport(lambda request: httpx.Response(404, text="missing"))
    with pytest.raises(ScrapeError):
        await WebScraper(transport=transport).scrape("https://example.com/missing")


async def test_scrape_rejects_oversized_response():
    transport = httpx.MockTransport(lambda request: httpx.Response(200, content=b"x" * 2048))
    with pytest.raises(ScrapeError):
        await WebScraper(max_size=1024, transport=transport).scrape("https://example.com/big")


async def test_scrape_blocks_redirect_to_internal_address():
    def handler(request):
        if request.url.host == "example.com":
            return httpx.Response(302, headers={"location": "http://127.0.0.1/secret"})
        return httpx.Response(200, text="secret")

    with pytest.raises(SSRFError):
        await WebScraper(transport=httpx.MockTransport(handler)).scrape("https://example.com/r")
