"""
consentid -- External Service Clients

The ledger (publish / revoke / vote registry) and the IPFS attachment
announcer.
"""

from consentid.clients.attachments import AttachmentAnnouncer
from consentid.clients.ledger import (
    InMemoryLedgerClient,
    LedgerClient,
    LedgerError,
    Web3LedgerClient,
    create_ledger_client,
)

__all__ = [
    "AttachmentAnnouncer",
    "InMemoryLedgerClient",
    "LedgerClient",
    "LedgerError",
    "Web3LedgerClient",
    "create_ledger_client",
]
