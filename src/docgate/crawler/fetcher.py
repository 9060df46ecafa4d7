"""HTTP fetcher with robots.txt checks, auth injection and content-type detection."""

import time
from urllib.parse import urlsplit
from urllib.robotparser import RobotFileParser

import httpx
import structlog

from docgate.config import get_settings
from docgate.models.crawl import ContentType, CrawlResult, CrawlTask
from docgate.models.source import AuthConfig
from docgate.observability.metrics import FETCH_LATENCY, PAGES_FETCHED, ROBOTS_BLOCKED

logger = structlog.get_logger()

# Tried in order; the first that decodes without errors wins.
CANDIDATE_ENCODINGS = ("utf-8", "shift_jis", "euc-jp", "iso-2022-jp")

ROBOTS_DISALLOWED = "robots.txt disallows crawling"


def decode_body(body: bytes, declared: str | None = None) -> str:
    """Decode an HTML body, preferring the declared charset."""
    encodings = [declared] if declared else []
    encodings.extend(e for e in CANDIDATE_ENCODINGS if e != declared)
    for encoding in encodings:
        try:
            return body.decode(encoding)
        except (UnicodeDecodeError, LookupError):
            continue
    return body.decode("utf-8", errors="replace")


def classify_content_type(header: str, url: str) -> ContentType:
    """html or pdf from the Content-Type header, falling back to a .pdf URL suffix."""
    header = header.lower()
    if "text/html" in header or "xhtml" in header:
        return "html"
    if "application/pdf" in header:
        return "pdf"
    if urlsplit(url).path.lower().endswith(".pdf"):
        return "pdf"
    # Anything else is treated as markup.
    return "html"


def auth_headers(auth: AuthConfig | None) -> dict[str, str]:
    if auth is None:
        return {}
    headers = {}
    if auth.cookies:
        headers["Cookie"] = auth.cookies
    if auth.authorization:
        headers["Authorization"] = auth.authorization
    headers.update(auth.headers)
    return headers


class Fetcher:
    """
    Fetches crawl tasks over HTTP.

    Never raises for network or HTTP failures: every outcome is a CrawlResult,
    with `error` set when the page could not be retrieved. robots.txt is
    fetched once per origin and treated as allow-all when unreachable.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        user_agent: str | None = None,
        timeout: float | None = None,
        robots_timeout: float | None = None,
        respect_robots: bool = True,
    ):
        settings = get_settings()
        self.user_agent = user_agent or settings.user_agent
        self.timeout = timeout or settings.fetch_timeout_seconds
        self.robots_timeout = robots_timeout or settings.robots_timeout_seconds
        self.respect_robots = respect_robots
        self._client = client
        self._owns_client = client is None
        self._robots: dict[str, RobotFileParser] = {}

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                max_redirects=5,
            )
        return self._client

    async def __aenter__(self) -> "Fetcher":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _get_robots(self, url: str) -> RobotFileParser:
        parts = urlsplit(url)
        origin = f"{parts.scheme}://{parts.netloc}"

        if origin in self._robots:
            return self._robots[origin]

        rp = RobotFileParser()
        robots_url = f"{origin}/robots.txt"
        try:
            resp = await self.client.get(
                robots_url,
                timeout=self.robots_timeout,
                headers={"User-Agent": self.user_agent},
            )
            if resp.status_code == 200:
                rp.parse(resp.text.splitlines())
            else:
                rp.parse([])  # No robots.txt - allow all
        except httpx.HTTPError as e:
            logger.debug("robots_unavailable", url=robots_url, error=str(e))
            rp.parse([])

        self._robots[origin] = rp
        return rp

    async def allowed(self, url: str) -> bool:
        if not self.respect_robots:
            return True
        robots = await self._get_robots(url)
        return robots.can_fetch(self.user_agent, url)

    async def fetch(self, task: CrawlTask) -> CrawlResult:
        """
        Fetch one task.

        Args:
            task: URL plus optional per-source auth

        Returns:
            CrawlResult; html bodies are decoded into `text`, pdf bodies kept in `payload`
        """
        url = task.url

        if not await self.allowed(url):
            ROBOTS_BLOCKED.inc()
            PAGES_FETCHED.labels(source_id=task.source_id, status="blocked").inc()
            logger.info("robots_disallowed", url=url)
            return CrawlResult(url=url, status=403, error=ROBOTS_DISALLOWED, priority=task.priority)

        headers = {
            "User-Agent": self.user_agent,
            "Accept": "text/html,application/pdf,*/*",
            **auth_headers(task.auth),
        }

        start = time.perf_counter()
        try:
            response = await self.client.get(url, headers=headers)
        except httpx.HTTPError as e:
            PAGES_FETCHED.labels(source_id=task.source_id, status="error").inc()
            logger.error("fetch_failed", url=url, error=str(e) or type(e).__name__)
            return CrawlResult(
                url=url, status=500, error=str(e) or type(e).__name__, priority=task.priority
            )
        finally:
            FETCH_LATENCY.observe(time.perf_counter() - start)

        final_url = str(response.url)
        if not response.is_success:
            PAGES_FETCHED.labels(source_id=task.source_id, status="http_error").inc()
            logger.warning("fetch_http_error", url=url, status=response.status_code)
            return CrawlResult(
                url=url,
                final_url=final_url,
                status=response.status_code,
                error=f"http_{response.status_code}",
                priority=task.priority,
            )

        content_type = classify_content_type(response.headers.get("content-type", ""), final_url)
        PAGES_FETCHED.labels(source_id=task.source_id, status="ok").inc()
        logger.debug("fetched", url=url, final_url=final_url, content_type=content_type)

        if content_type == "pdf":
            return CrawlResult(
                url=url,
                final_url=final_url,
                status=response.status_code,
                content_type="pdf",
                payload=response.content,
                priority=task.priority,
            )

        return CrawlResult(
            url=url,
            final_url=final_url,
            status=response.status_code,
            content_type="html",
            text=decode_body(response.content, response.charset_encoding),
            priority=task.priority,
        )
