"""
consentid -- Decentralized consent and validation records

Records bind payloads to freshly minted secp256k1 identities, can be
co-signed by two parties, and are timestamped, revoked and voted on through
a ledger client.
"""

__version__ = "1.2.3"
