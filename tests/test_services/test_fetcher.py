"""Tests for PageFetcher."""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
import respx
from httpx import Response

from app.exceptions.custom import FetchError
from app.services.fetcher import FetchResult, PageFetcher

URL = "https://hotel-lumiere.fr/"


@pytest.fixture
def client():
    return httpx.AsyncClient()


@pytest.fixture
def fetcher(client):
    return PageFetcher(client, retry_backoff=0)


def _renderer(html: str = "<html>rendered</html>") -> MagicMock:
    renderer = MagicMock()
    renderer.render = AsyncMock(return_value=FetchResult(html=html, final_url=URL, via_browser=True))
    return renderer


# --- fetch ---


@respx.mock
async def test_fetch_returns_html_and_final_url(fetcher):
    respx.get(URL).mock(
        return_value=Response(301, headers={"location": "https://www.hotel-lumiere.fr/"})
    )
    respx.get("https://www.hotel-lumiere.fr/").mock(
        return_value=Response(200, html="<p>Bonjour</p>", headers={"content-type": "text/html"})
    )
    result = await fetcher.fetch(URL, timeout=5)

    assert result.html == "<p>Bonjour</p>"
    assert result.final_url == "https://www.hotel-lumiere.fr/"
    assert result.via_browser is False


@respx.mock
async def test_fetch_sends_user_agent(client):
    route = respx.get(URL).mock(
        return_value=Response(200, html="<p>ok</p>", headers={"content-type": "text/html"})
    )
    fetcher = PageFetcher(client, user_agent="TestAgent/1.0")
    await fetcher.fetch(URL, timeout=5)

    assert route.calls.last.request.headers["user-agent"] == "TestAgent/1.0"


@respx.mock
async def test_fetch_http_error_status(fetcher):
    respx.get(URL).mock(return_value=Response(404))
    with pytest.raises(FetchError) as exc_info:
        await fetcher.fetch(URL, timeout=5)

    assert exc_info.value.status_code == 404
    assert exc_info.value.retryable is False
    assert exc_info.value.browser_candidate is False
    assert exc_info.value.message == "HTTP 404"


@respx.mock
async def test_fetch_rejects_non_html(fetcher):
    respx.get(URL).mock(
        return_value=Response(200, content=b"%PDF-1.4", headers={"content-type": "application/pdf"})
    )
    with pytest.raises(FetchError, match="Unsupported content type"):
        await fetcher.fetch(URL, timeout=5)


@respx.mock
async def test_fetch_truncates_oversized_body(client):
    respx.get(URL).mock(
        return_value=Response(200, html="x" * 100, headers={"content-type": "text/html"})
    )
    fetcher = PageFetcher(client, max_body_bytes=10)
    result = await fetcher.fetch(URL, timeout=5)

    assert result.html == "x" * 10


@respx.mock
async def test_fetch_timeout_is_retryable(fetcher):
    respx.get(URL).mock(side_effect=httpx.ConnectTimeout)
    with pytest.raises(FetchError) as exc_info:
        await fetcher.fetch(URL, timeout=5)

    assert exc_info.value.retryable is True
    assert exc_info.value.browser_candidate is True


# --- fetch_with_retry ---


@respx.mock
async def test_retries_server_errors(fetcher):
    route = respx.get(URL).mock(side_effect=[
        Response(503),
        Response(200, html="<p>ok</p>", headers={"content-type": "text/html"}),
    ])
    result = await fetcher.fetch_with_retry(URL, timeout=5)

    assert result.html == "<p>ok</p>"
    assert route.call_count == 2


@respx.mock
async def test_retries_are_bounded(fetcher):
    route = respx.get(URL).mock(return_value=Response(500))
    with pytest.raises(FetchError):
        await fetcher.fetch_with_retry(URL, timeout=5)

    assert route.call_count == 3


@respx.mock
async def test_client_errors_not_retried(fetcher):
    route = respx.get(URL).mock(return_value=Response(404))
    with pytest.raises(FetchError):
        await fetcher.fetch_with_retry(URL, timeout=5)

    assert route.call_count == 1


@respx.mock
async def test_forbidden_falls_back_to_browser(client):
    respx.get(URL).mock(return_value=Response(403))
    renderer = _renderer()
    fetcher = PageFetcher(client, renderer=renderer, retry_backoff=0)

    result = await fetcher.fetch_with_retry(URL, timeout=5)

    assert result.via_browser is True
    assert result.html == "<html>rendered</html>"
    renderer.render.assert_awaited_once_with(URL, 5)


@respx.mock
async def test_network_error_falls_back_after_retries(client):
    route = respx.get(URL).mock(side_effect=httpx.ConnectError)
    renderer = _renderer()
    fetcher = PageFetcher(client, renderer=renderer, retries=1, retry_backoff=0)

    result = await fetcher.fetch_with_retry(URL, timeout=5)

    assert result.via_browser is True
    assert route.call_count == 2


@respx.mock
async def test_browser_fallback_can_be_disabled(client):
    respx.get(URL).mock(return_value=Response(403))
    renderer = _renderer()
    fetcher = PageFetcher(client, renderer=renderer, retry_backoff=0)

    with pytest.raises(FetchError):
        await fetcher.fetch_with_retry(URL, timeout=5, use_browser_fallback=False)
    renderer.render.assert_not_awaited()


@respx.mock
async def test_not_found_never_rendered(client):
    respx.get(URL).mock(return_value=Response(404))
    renderer = _renderer()
    fetcher = PageFetcher(client, renderer=renderer, retry_backoff=0)

    with pytest.raises(FetchError):
        await fetcher.fetch_with_retry(URL, timeout=5)
    renderer.render.assert_not_awaited()
