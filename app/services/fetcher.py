import asyncio
import logging

import httpx
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright
from pydantic import BaseModel

from app.exceptions.custom import FetchError

logger = logging.getLogger(__name__)

_DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
_MAX_BODY = 5 * 1024 * 1024  # 5 MB


class FetchResult(BaseModel):
    html: str
    final_url: str
    via_browser: bool = False


class BrowserRenderer:
    """Headless Chromium fallback for pages plain HTTP cannot get."""

    def __init__(self, user_agent: str = _DEFAULT_USER_AGENT):
        self._user_agent = user_agent

    async def render(self, url: str, timeout: float) -> FetchResult:
        try:
            async with async_playwright() as p:
                browser = await p.chromium.launch(headless=True)
                try:
                    page = await browser.new_page(user_agent=self._user_agent)
                    await page.goto(url, wait_until="domcontentloaded", timeout=timeout * 1000)
                    html = await page.content()
                    final_url = page.url
                finally:
                    await browser.close()
        except PlaywrightError as e:
            raise FetchError(f"Browser render failed: {e}") from e
        return FetchResult(html=html, final_url=final_url or url, via_browser=True)


class PageFetcher:
    """HTTP page fetch with bounded retries and an optional headless fallback."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        user_agent: str = _DEFAULT_USER_AGENT,
        max_body_bytes: int = _MAX_BODY,
        renderer: BrowserRenderer | None = None,
        retries: int = 2,
        retry_backoff: float = 1.0,
    ):
        self._client = client
        self._user_agent = user_agent
        self._max_body_bytes = max_body_bytes
        self._renderer = renderer
        self._retries = retries
        self._retry_backoff = retry_backoff

    async def fetch(self, url: str, timeout: float) -> FetchResult:
        """Single plain HTTP GET. Raises FetchError on non-2xx, timeout, network or non-HTML."""
        try:
            resp = await self._client.get(
                url,
                follow_redirects=True,
                timeout=timeout,
                headers={"User-Agent": self._user_agent, "Accept": _ACCEPT},
            )
        except httpx.TimeoutException as e:
            raise FetchError(
                f"Timeout fetching {url}", retryable=True, browser_candidate=True
            ) from e
        except httpx.TransportError as e:
            raise FetchError(
                f"Network error fetching {url}: {e}", retryable=True, browser_candidate=True
            ) from e

        if resp.status_code >= 400:
            raise FetchError(
                f"HTTP {resp.status_code}",
                status_code=resp.status_code,
                retryable=resp.status_code == 429 or resp.status_code >= 500,
                browser_candidate=resp.status_code == 403,
            )

        content_type = resp.headers.get("content-type", "")
        if content_type and "html" not in content_type and "xml" not in content_type:
            raise FetchError(f"Unsupported content type: {content_type}")

        body = resp.content
        if len(body) > self._max_body_bytes:
            logger.debug("Truncating oversized page %s (%d bytes)", url, len(body))
            body = body[: self._max_body_bytes]
        html = body.decode(resp.encoding or "utf-8", errors="replace")
        return FetchResult(html=html, final_url=str(resp.url))

    async def fetch_with_retry(
        self,
        url: str,
        timeout: float,
        use_browser_fallback: bool = True,
        retries: int | None = None,
    ) -> FetchResult:
        """Fetch, retrying timeout/network/429/5xx failures with a fixed backoff.

        When plain HTTP still fails in a way a browser might get past (timeout,
        network error, 403) and a renderer is configured, the page is rendered
        headless instead.
        """
        retries = self._retries if retries is None else retries
        last_error: FetchError | None = None

        for attempt in range(retries + 1):
            try:
                return await self.fetch(url, timeout)
            except FetchError as e:
                last_error = e
                if not e.retryable or attempt == retries:
                    break
                logger.debug(
                    "Retrying %s in %.1fs (attempt %d/%d): %s",
                    url, self._retry_backoff, attempt + 1, retries, e,
                )
                await asyncio.sleep(self._retry_backoff)

        if use_browser_fallback and self._renderer is not None and last_error.browser_candidate:
            logger.info("Falling back to headless browser for %s (%s)", url, last_error)
            return await self._renderer.render(url, timeout)
        raise last_error
