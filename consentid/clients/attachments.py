"""
consentid -- Attachment Announcer

Announces file content to an IPFS gateway and returns the content hash,
so a validation can vouch for a document without embedding it. The
gateway expects ``{"did": "<json with pdf64>"}`` and answers with
``{"Hash": "<cid>"}``.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import httpx
import structlog

if TYPE_CHECKING:
    from consentid.config import AttachmentConfig

logger = structlog.get_logger("consentid.clients.attachments")


class AttachmentAnnouncer:
    """HTTP client for the IPFS announce endpoint."""

    def __init__(
        self,
        url: str,
        timeout_s: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url
        self._client = httpx.AsyncClient(timeout=timeout_s, transport=transport)

    @classmethod
    def from_config(cls, config: AttachmentConfig) -> AttachmentAnnouncer:
        return cls(url=config.announce_url, timeout_s=config.timeout_s)

    async def announce(self, content_b64: str) -> str:
        """Publish base64 content; returns the IPFS hash."""
        response = await self._client.post(
            self._url,
            json={"did": json.dumps({"pdf64": content_b64}, separators=(",", ":"))},
        )
        response.raise_for_status()
        content_hash = response.json().get("Hash")
        if not content_hash:
            raise ValueError("Announce response carried no Hash")

        logger.info("attachment_announced", hash=content_hash, size=len(content_b64))
        return str(content_hash)

    async def close(self) -> None:
        await self._client.aclose()
