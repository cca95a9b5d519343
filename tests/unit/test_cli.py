"""
Unit tests for the consentid command line.
"""

from __future__ import annotations

import asyncio

import pytest

from consentid import cli
from consentid.clients.ledger import InMemoryLedgerClient
from consentid.systems.identity.consent import ConsentRecord
from consentid.systems.identity.disclosure import render_disclosure_document


@pytest.fixture
def ledger(monkeypatch):
    shared = InMemoryLedgerClient()
    monkeypatch.setattr(cli, "create_ledger_client", lambda config: shared)
    monkeypatch.setattr(cli, "setup_logging", lambda config: None)
    return shared


def _published_snapshot(ledger: InMemoryLedgerClient):
    async def _run():
        record = ConsentRecord({"newsletter": True}, ledger=ledger)
        await record.publish()
        return await record.reveal()

    return asyncio.run(_run())


class TestIsGranted:
    def test_granted(self, ledger, capsys):
        snapshot = _published_snapshot(ledger)
        assert cli.main(["isgranted", snapshot.identity]) == cli.EXIT_GRANTED
        assert "Granted at" in capsys.readouterr().out

    def test_revoked(self, ledger, tmp_path, capsys):
        snapshot = _published_snapshot(ledger)
        document = tmp_path / "ssi.html"
        document.write_text(render_disclosure_document(snapshot))

        assert cli.main(["revoke", str(document)]) == 0
        assert snapshot.identity in capsys.readouterr().out
        assert cli.main(["isgranted", snapshot.identity]) == cli.EXIT_REVOKED
        assert "Revoked at" in capsys.readouterr().out

    def test_bad_identity(self, ledger):
        assert cli.main(["isgranted", "nobody"]) == cli.EXIT_ERROR


class TestArguments:
    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc:
            cli.main(["--version"])
        assert exc.value.code == 0
        assert "consentid" in capsys.readouterr().out

    def test_command_required(self):
        with pytest.raises(SystemExit):
            cli.main([])
