"""
consentid -- Disclosure Documents

A disclosure snapshot is handed to the data subject as a standalone HTML
file. The snapshot itself is embedded as JSON in
``<script type="application/json" id="ssiObject">`` so tools (the CLI's
``revoke`` command, a wallet) can read it back without rendering the page.
"""

from __future__ import annotations

import html
import json
from typing import Any

import structlog
from bs4 import BeautifulSoup

from consentid.primitives.bundles import DisclosureSnapshot
from consentid.primitives.common import utc_now
from consentid.systems.identity.errors import DecodeError, ValidationError

logger = structlog.get_logger("consentid.systems.identity.disclosure")

SCRIPT_ELEMENT_ID = "ssiObject"

_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>Consent {identity}</title>
</head>
<body>
<h1>Consent identity</h1>
<p>Keep this file. Whoever holds it can revoke the consent below.</p>
<dl>
<dt>Identity</dt><dd>{identity}</dd>
<dt>Payload</dt><dd><pre>{payload}</pre></dd>
<dt>Signature</dt><dd><code>{signature}</code></dd>
<dt>Issued</dt><dd>{issued}</dd>
</dl>
<p>Revoke with: <code>consentid revoke &lt;this file&gt;</code></p>
<script type="application/json" id="{element_id}">{snapshot_json}</script>
</body>
</html>
"""


def render_disclosure_document(snapshot: DisclosureSnapshot) -> str:
    """Standalone HTML page carrying ``snapshot``."""
    # "</" would close the script element early
    snapshot_json = json.dumps(snapshot.to_wire(), ensure_ascii=False).replace("</", "<\\/")
    return _TEMPLATE.format(
        identity=html.escape(snapshot.identity),
        payload=html.escape(snapshot.payload),
        signature=html.escape(snapshot.signature),
        issued=utc_now().isoformat(timespec="seconds"),
        element_id=SCRIPT_ELEMENT_ID,
        snapshot_json=snapshot_json,
    )


def _element_text(document: str) -> str | None:
    """textContent of the element with id=ssiObject, None when absent."""
    element = BeautifulSoup(document, "html.parser").find(id=SCRIPT_ELEMENT_ID)
    if element is None:
        return None
    return element.get_text()


def extract_disclosure(document: str | bytes) -> DisclosureSnapshot:
    """
    Read a snapshot back from a disclosure document.

    Accepts the HTML produced by render_disclosure_document() or a bare JSON
    snapshot. Older documents name the key field ``privateKey``; both
    spellings are accepted.
    """
    if isinstance(document, bytes):
        document = document.decode("utf-8")

    text = document.strip()
    if not text.startswith("{"):
        content = _element_text(document)
        if content is None:
            raise DecodeError(f"No element with id={SCRIPT_ELEMENT_ID!r} in document")
        text = content.strip()

    try:
        data: Any = json.loads(text)
    except ValueError as exc:
        raise DecodeError("Disclosure snapshot is not valid JSON") from exc
    if not isinstance(data, dict):
        raise DecodeError("Disclosure snapshot must be a JSON object")

    if "privateKeyMaterial" not in data and "privateKey" in data:
        data["privateKeyMaterial"] = data.pop("privateKey")

    missing = [f for f in ("privateKeyMaterial", "identity") if not data.get(f)]
    if missing:
        raise ValidationError(f"Disclosure snapshot is missing {', '.join(missing)}")

    snapshot = DisclosureSnapshot(
        private_key=str(data["privateKeyMaterial"]),
        identity=str(data["identity"]),
        signature=str(data.get("signature", "")),
        payload=str(data.get("payload", "")),
    )
    logger.debug("disclosure_extracted", identity=snapshot.identity)
    return snapshot
