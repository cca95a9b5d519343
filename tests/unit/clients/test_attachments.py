"""
Unit tests for the IPFS attachment announcer.
"""

from __future__ import annotations

import json

import httpx
import pytest

from consentid.clients.attachments import AttachmentAnnouncer

URL = "https://ipfs.test/announce"


class TestAnnounce:
    @pytest.mark.asyncio
    async def test_posts_content_and_returns_hash(self):
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"Hash": "QmTestHash"})

        announcer = AttachmentAnnouncer(URL, transport=httpx.MockTransport(handler))
        try:
            assert await announcer.announce("aGVsbG8=") == "QmTestHash"
        finally:
            await announcer.close()

        assert json.loads(seen["body"]["did"]) == {"pdf64": "aGVsbG8="}

    @pytest.mark.asyncio
    async def test_missing_hash(self):
        announcer = AttachmentAnnouncer(
            URL, transport=httpx.MockTransport(lambda r: httpx.Response(200, json={}))
        )
        with pytest.raises(ValueError):
            await announcer.announce("aGVsbG8=")
        await announcer.close()

    @pytest.mark.asyncio
    async def test_http_error_propagates(self):
        announcer = AttachmentAnnouncer(
            URL, transport=httpx.MockTransport(lambda r: httpx.Response(503))
        )
        with pytest.raises(httpx.HTTPStatusError):
            await announcer.announce("aGVsbG8=")
        await announcer.close()
