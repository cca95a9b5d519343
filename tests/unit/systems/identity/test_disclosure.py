"""
Unit tests for disclosure documents.
"""

from __future__ import annotations

import json

import pytest

from consentid.systems.identity.consent import ConsentRecord
from consentid.systems.identity.disclosure import extract_disclosure, render_disclosure_document
from consentid.systems.identity.errors import DecodeError, ValidationError


class TestDisclosureDocument:
    @pytest.mark.asyncio
    async def test_render_and_extract(self):
        snapshot = await ConsentRecord({"name": "</script><b>x</b>"}).reveal()
        document = render_disclosure_document(snapshot)

        assert 'id="ssiObject"' in document
        assert extract_disclosure(document) == snapshot

    @pytest.mark.asyncio
    async def test_bare_json(self):
        snapshot = await ConsentRecord("x").reveal()
        assert extract_disclosure(json.dumps(snapshot.to_wire())) == snapshot

    @pytest.mark.asyncio
    async def test_legacy_private_key_field(self):
        snapshot = await ConsentRecord("x").reveal()
        legacy = {
            "privateKey": snapshot.private_key,
            "identity": snapshot.identity,
            "signature": snapshot.signature,
            "payload": snapshot.payload,
        }
        html = f'<html><body><script type="application/json" id="ssiObject">{json.dumps(legacy)}</script></body></html>'
        assert extract_disclosure(html.encode()).private_key == snapshot.private_key

    def test_document_without_snapshot(self):
        with pytest.raises(DecodeError):
            extract_disclosure("<html><body>nothing here</body></html>")

    def test_snapshot_without_key(self):
        with pytest.raises(ValidationError):
            extract_disclosure('{"identity": "0x1"}')

    @pytest.mark.asyncio
    async def test_non_script_host_element(self):
        snapshot = await ConsentRecord("x").reveal()
        html = (
            f'<html><body><div id="ssiObject">{json.dumps(snapshot.to_wire())}</div>'
            "<footer>Footer text</footer></body></html>"
        )
        assert extract_disclosure(html) == snapshot
