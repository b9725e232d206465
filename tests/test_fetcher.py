"""
Tests for AssetFetcher against a local aiohttp server.
"""

import pytest
from aiohttp import test_utils, web

from media_cache.exceptions import FetchError
from media_cache.media.fetcher import AssetFetcher


def make_app(statuses: list[int], hits: list[str]) -> web.Application:
    """Answers each request with the next status in `statuses` (the last one repeats)."""

    async def handler(request):
        hits.append(request.path_qs)
        status = statuses[min(len(hits), len(statuses)) - 1]
        if status == 200:
            return web.Response(body=b"cover-bytes")
        return web.Response(status=status)

    app = web.Application()
    app.router.add_get("/{key:.*}", handler)
    return app


@pytest.mark.asyncio
async def test_fetches_body():
    hits = []
    async with test_utils.TestServer(make_app([200], hits)) as server:
        async with AssetFetcher(base_delay=0) as fetcher:
            body = await fetcher.fetch(str(server.make_url("/cover.jpg?X-Amz-Signature=abc")))

    assert body == b"cover-bytes"
    assert hits == ["/cover.jpg?X-Amz-Signature=abc"]


@pytest.mark.asyncio
async def test_retries_server_errors():
    hits = []
    async with test_utils.TestServer(make_app([503, 500, 200], hits)) as server:
        async with AssetFetcher(max_attempts=3, base_delay=0) as fetcher:
            body = await fetcher.fetch(str(server.make_url("/song.mp3")))

    assert body == b"cover-bytes"
    assert len(hits) == 3


@pytest.mark.asyncio
async def test_client_errors_fail_without_retry():
    hits = []
    async with test_utils.TestServer(make_app([403], hits)) as server:
        async with AssetFetcher(max_attempts=3, base_delay=0) as fetcher:
            with pytest.raises(FetchError) as exc_info:
                await fetcher.fetch(str(server.make_url("/song.mp3")))

    assert exc_info.value.status == 403
    assert len(hits) == 1


@pytest.mark.asyncio
async def test_gives_up_after_max_attempts():
    hits = []
    async with test_utils.TestServer(make_app([502], hits)) as server:
        async with AssetFetcher(max_attempts=2, base_delay=0) as fetcher:
            with pytest.raises(FetchError, match="HTTP 502"):
                await fetcher.fetch(str(server.make_url("/song.mp3")))

    assert len(hits) == 2
