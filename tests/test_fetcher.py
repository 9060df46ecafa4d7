import httpx
import pytest

from docgate.crawler.fetcher import ROBOTS_DISALLOWED, Fetcher, classify_content_type, decode_body
from docgate.models.crawl import CrawlTask
from docgate.models.source import AuthConfig

ROBOTS = "User-agent: *\nDisallow: /private/\n"


def make_fetcher(handler) -> Fetcher:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=True)
    return Fetcher(client=client, user_agent="docgate-test")


def task(url: str, auth: AuthConfig | None = None) -> CrawlTask:
    return CrawlTask(url=url, source_id="docs", priority=1, auth=auth)


def site(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/robots.txt":
        return httpx.Response(200, text=ROBOTS)
    if request.url.path == "/old":
        return httpx.Response(301, headers={"Location": "https://site.test/new"})
    if request.url.path == "/missing":
        return httpx.Response(404)
    if request.url.path.endswith(".pdf"):
        return httpx.Response(200, content=b"%PDF-1.4", headers={"content-type": "application/octet-stream"})
    return httpx.Response(200, html="<html><body><p>hello</p></body></html>")


async def test_fetches_html():
    async with make_fetcher(site) as fetcher:
        result = await fetcher.fetch(task("https://site.test/page"))

    assert result.ok
    assert result.status == 200
    assert result.content_type == "html"
    assert "hello" in result.text
    assert result.priority == 1


async def test_robots_disallow_becomes_403():
    async with make_fetcher(site) as fetcher:
        result = await fetcher.fetch(task("https://site.test/private/page"))

    assert result.status == 403
    assert result.error == ROBOTS_DISALLOWED


async def test_robots_fetched_once_per_origin():
    robots_calls = []

    def handler(request):
        if request.url.path == "/robots.txt":
            robots_calls.append(request.url)
        return site(request)

    async with make_fetcher(handler) as fetcher:
        await fetcher.fetch(task("https://site.test/a"))
        await fetcher.fetch(task("https://site.test/b"))

    assert len(robots_calls) == 1


async def test_unreachable_robots_allows_everything():
    def handler(request):
        if request.url.path == "/robots.txt":
            raise httpx.ConnectError("refused", request=request)
        return site(request)

    async with make_fetcher(handler) as fetcher:
        result = await fetcher.fetch(task("https://site.test/private/page"))

    assert result.ok


async def test_auth_headers_are_sent():
    seen = {}

    def handler(request):
        if request.url.path != "/robots.txt":
            seen.update(request.headers)
        return site(request)

    auth = AuthConfig(cookies="session=abc", authorization="Bearer t0k", headers={"X-Team": "docs"})
    async with make_fetcher(handler) as fetcher:
        await fetcher.fetch(task("https://site.test/page", auth=auth))

    assert seen["cookie"] == "session=abc"
    assert seen["authorization"] == "Bearer t0k"
    assert seen["x-team"] == "docs"
    assert seen["user-agent"] == "docgate-test"


async def test_redirect_records_final_url():
    async with make_fetcher(site) as fetcher:
        result = await fetcher.fetch(task("https://site.test/old"))

    assert result.ok
    assert result.final_url == "https://site.test/new"
    assert result.effective_url == "https://site.test/new"


async def test_http_error_status():
    async with make_fetcher(site) as fetcher:
        result = await fetcher.fetch(task("https://site.test/missing"))

    assert result.status == 404
    assert result.error == "http_404"
    assert not result.ok


async def test_transport_error_becomes_500():
    def handler(request):
        if request.url.path == "/robots.txt":
            return httpx.Response(404)
        raise httpx.ReadTimeout("timed out", request=request)

    async with make_fetcher(handler) as fetcher:
        result = await fetcher.fetch(task("https://site.test/page"))

    assert result.status == 500
    assert result.error == "timed out"


async def test_pdf_url_keeps_raw_payload():
    async with make_fetcher(site) as fetcher:
        result = await fetcher.fetch(task("https://site.test/manual.pdf"))

    assert result.content_type == "pdf"
    assert result.payload == b"%PDF-1.4"
    assert result.text is None


async def test_shift_jis_body_is_decoded():
    body = "<html><body><p>交通ルール</p></body></html>".encode("shift_jis")

    def handler(request):
        if request.url.path == "/robots.txt":
            return httpx.Response(404)
        return httpx.Response(200, content=body, headers={"content-type": "text/html"})

    async with make_fetcher(handler) as fetcher:
        result = await fetcher.fetch(task("https://site.test/ja"))

    assert "交通ルール" in result.text


async def test_robots_can_be_ignored():
    fetcher = Fetcher(
        client=httpx.AsyncClient(transport=httpx.MockTransport(site)),
        user_agent="docgate-test",
        respect_robots=False,
    )
    assert await fetcher.allowed("https://site.test/private/page")
    await fetcher.client.aclose()


def test_classify_content_type():
    assert classify_content_type("text/html; charset=utf-8", "https://x.test/a") == "html"
    assert classify_content_type("application/pdf", "https://x.test/a") == "pdf"
    assert classify_content_type("", "https://x.test/A.PDF") == "pdf"
    assert classify_content_type("text/plain", "https://x.test/a") == "html"


def test_decode_body_prefers_declared_charset():
    body = "日本語".encode("euc-jp")
    assert decode_body(body, "euc-jp") == "日本語"
    assert decode_body("plain".encode("utf-8")) == "plain"
