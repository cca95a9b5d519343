"""
consentid -- Ledger Client Abstraction

The ledger is the external, append-only record of publish / revoke / vote
events. It is ordered and timestamped by the chain, not by us.

Two implementations:
  Web3LedgerClient      JSON-RPC node via web3's AsyncWeb3, one signed
                        transaction per write, awaited until its receipt
  InMemoryLedgerClient  in-process ledger for tests and offline use

Writes take the signing KeyMaterial because the contracts record
msg.sender; reads take a bare identity. No retries happen here: a failed
RPC call or a reverted transaction propagates to the caller.
"""

from __future__ import annotations

import asyncio
import hashlib
import weakref
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import structlog
from eth_utils import to_checksum_address
from web3 import AsyncWeb3
from web3.providers import AsyncHTTPProvider

from consentid.clients.abi import PUBLISH_ABI, REVOKE_ABI, VOTE_ABI
from consentid.primitives.bundles import LedgerReceipt, VoteTally
from consentid.primitives.common import unix_now

if TYPE_CHECKING:
    from web3.contract import AsyncContract

    from consentid.config import LedgerConfig
    from consentid.systems.identity.keys import KeyMaterial

logger = structlog.get_logger("consentid.clients.ledger")


class LedgerError(RuntimeError):
    """The ledger accepted the transaction but it did not succeed (status 0)."""


class LedgerClient(ABC):
    """Abstract interface for the publish / revoke / vote registry."""

    # ─── Writes ────────────────────────────────────────────────────

    @abstractmethod
    async def publish(self, signer: KeyMaterial) -> LedgerReceipt:
        """Announce signer.identity. Returns once the transaction is confirmed."""
        ...

    @abstractmethod
    async def revoke(self, signer: KeyMaterial) -> LedgerReceipt:
        """Revoke signer.identity. Returns once the transaction is confirmed."""
        ...

    @abstractmethod
    async def upvote(self, signer: KeyMaterial, identity: str) -> LedgerReceipt:
        ...

    @abstractmethod
    async def downvote(self, signer: KeyMaterial, identity: str) -> LedgerReceipt:
        ...

    # ─── Reads ─────────────────────────────────────────────────────

    @abstractmethod
    async def published_at(self, identity: str) -> int:
        """Unix timestamp of publication, 0 if never published."""
        ...

    @abstractmethod
    async def revoked_at(self, identity: str) -> int:
        """Unix timestamp of revocation, 0 if never revoked."""
        ...

    @abstractmethod
    async def vote_counts(self, identity: str) -> VoteTally:
        ...

    @abstractmethod
    async def upvoter(self, identity: str, index: int) -> str:
        ...

    @abstractmethod
    async def downvoter(self, identity: str, index: int) -> str:
        ...

    @abstractmethod
    async def close(self) -> None:
        """Clean up resources."""
        ...


# ─── Web3 ─────────────────────────────────────────────────────────


class Web3LedgerClient(LedgerClient):
    """
    Ledger backed by the registry contracts on an EVM chain.

    Lifecycle: construct → (optional) connect() → use → close().
    Each write is built, signed locally with the caller's KeyMaterial,
    sent raw, and awaited until its receipt arrives. Writes from the same
    sender are serialised so nonces never collide.
    """

    def __init__(self, config: LedgerConfig, w3: AsyncWeb3 | None = None) -> None:
        self._config = config
        self._w3 = w3 or AsyncWeb3(AsyncHTTPProvider(config.rpc_url))
        self._chain_id: int | None = config.chain_id
        # Entries vanish once no write for that sender is in flight
        self._sender_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )
        self._logger = logger.bind(component="web3_ledger", rpc_url=config.rpc_url)

    # ── Lifecycle ─────────────────────────────────────────────

    async def connect(self) -> None:
        """Check that the node answers. Raises ConnectionError otherwise."""
        if not await self._w3.is_connected():
            raise ConnectionError(f"Ledger node not reachable at {self._config.rpc_url}")
        self._chain_id = await self._resolve_chain_id()
        self._logger.info("ledger_connected", chain_id=self._chain_id)

    async def close(self) -> None:
        await self._w3.provider.disconnect()
        self._logger.info("ledger_disconnected")

    # ── Writes ────────────────────────────────────────────────

    async def publish(self, signer: KeyMaterial) -> LedgerReceipt:
        contract = self._contract(self._config.publish_contract, PUBLISH_ABI, "publish_contract")
        return await self._transact(signer, contract, "publish")

    async def revoke(self, signer: KeyMaterial) -> LedgerReceipt:
        contract = self._contract(self._config.revoke_contract, REVOKE_ABI, "revoke_contract")
        return await self._transact(signer, contract, "revoke")

    async def upvote(self, signer: KeyMaterial, identity: str) -> LedgerReceipt:
        contract = self._contract(self._config.vote_contract, VOTE_ABI, "vote_contract")
        return await self._transact(signer, contract, "upvote", to_checksum_address(identity))

    async def downvote(self, signer: KeyMaterial, identity: str) -> LedgerReceipt:
        contract = self._contract(self._config.vote_contract, VOTE_ABI, "vote_contract")
        return await self._transact(signer, contract, "downvote", to_checksum_address(identity))

    # ── Reads ─────────────────────────────────────────────────

    async def published_at(self, identity: str) -> int:
        contract = self._contract(self._config.publish_contract, PUBLISH_ABI, "publish_contract")
        ts = await contract.functions.publishs(to_checksum_address(identity)).call()
        return int(ts)

    async def revoked_at(self, identity: str) -> int:
        contract = self._contract(self._config.revoke_contract, REVOKE_ABI, "revoke_contract")
        ts = await contract.functions.revocations(to_checksum_address(identity)).call()
        return int(ts)

    async def vote_counts(self, identity: str) -> VoteTally:
        contract = self._contract(self._config.vote_contract, VOTE_ABI, "vote_contract")
        target = to_checksum_address(identity)
        upvotes = await contract.functions.upvoteCount(target).call()
        downvotes = await contract.functions.downvoteCount(target).call()
        return VoteTally(upvotes=int(upvotes), downvotes=int(downvotes))

    async def upvoter(self, identity: str, index: int) -> str:
        contract = self._contract(self._config.vote_contract, VOTE_ABI, "vote_contract")
        voter = await contract.functions.upvoters(to_checksum_address(identity), index).call()
        return str(voter)

    async def downvoter(self, identity: str, index: int) -> str:
        contract = self._contract(self._config.vote_contract, VOTE_ABI, "vote_contract")
        voter = await contract.functions.downvoters(to_checksum_address(identity), index).call()
        return str(voter)

    # ── Internal helpers ──────────────────────────────────────

    def _contract(self, address: str, abi: list[dict[str, Any]], setting: str) -> AsyncContract:
        if not address:
            raise RuntimeError(f"Ledger {setting} not configured. Set ledger.{setting}.")
        return self._w3.eth.contract(address=to_checksum_address(address), abi=abi)

    async def _resolve_chain_id(self) -> int:
        if self._chain_id is None:
            self._chain_id = int(await self._w3.eth.chain_id)
        return self._chain_id

    async def _transact(
        self,
        signer: KeyMaterial,
        contract: AsyncContract,
        method: str,
        *args: Any,
    ) -> LedgerReceipt:
        sender = signer.identity
        lock = self._sender_locks.get(sender)
        if lock is None:
            lock = asyncio.Lock()
            self._sender_locks[sender] = lock

        async with lock:
            gas_price = self._config.gas_price_wei
            if gas_price is None:
                gas_price = int(await self._w3.eth.gas_price)

            tx = await getattr(contract.functions, method)(*args).build_transaction({
                "from": sender,
                "nonce": await self._w3.eth.get_transaction_count(sender, "pending"),
                "gas": self._config.gas_limit,
                "gasPrice": gas_price,
                "chainId": await self._resolve_chain_id(),
            })
            signed = signer.sign_transaction(tx)
            tx_hash = await self._w3.eth.send_raw_transaction(signed.raw_transaction)

        self._logger.info(
            "ledger_transaction_sent",
            method=method,
            sender=sender,
            tx_hash=AsyncWeb3.to_hex(tx_hash),
        )

        receipt = await self._w3.eth.wait_for_transaction_receipt(
            tx_hash,
            timeout=self._config.receipt_timeout_s,
            poll_latency=self._config.receipt_poll_interval_s,
        )

        result = LedgerReceipt(
            tx_hash=AsyncWeb3.to_hex(receipt["transactionHash"]),
            sender=sender,
            method=method,
            block_number=int(receipt["blockNumber"]),
            status=int(receipt["status"]),
        )

        if result.status != 1:
            self._logger.error(
                "ledger_transaction_reverted",
                method=method,
                sender=sender,
                tx_hash=result.tx_hash,
            )
            raise LedgerError(f"Ledger transaction {method} reverted: {result.tx_hash}")

        self._logger.info(
            f"ledger_{method}_confirmed",
            sender=sender,
            tx_hash=result.tx_hash,
            block_number=result.block_number,
        )
        return result


# ─── In-memory ───────────────────────────────────────────────────


class InMemoryLedgerClient(LedgerClient):
    """
    In-process ledger with the registry contracts' semantics.

    - the first publish / revoke timestamp for an identity wins
    - one vote per voter per target; voting the other way moves the vote
    - voter lists keep first-vote order

    Each write gets a synthetic block number and transaction hash. Shared
    freely between records; all state is keyed by checksummed identity.
    """

    def __init__(self, clock: Callable[[], int] = unix_now) -> None:
        self._clock = clock
        self._block_number = 0
        self._published: dict[str, int] = {}
        self._revoked: dict[str, int] = {}
        self._upvoters: dict[str, list[str]] = {}
        self._downvoters: dict[str, list[str]] = {}
        self._logger = logger.bind(component="memory_ledger")

    # ── Writes ────────────────────────────────────────────────

    async def publish(self, signer: KeyMaterial) -> LedgerReceipt:
        self._published.setdefault(signer.identity, self._clock())
        return self._receipt(signer.identity, "publish")

    async def revoke(self, signer: KeyMaterial) -> LedgerReceipt:
        self._revoked.setdefault(signer.identity, self._clock())
        return self._receipt(signer.identity, "revoke")

    async def upvote(self, signer: KeyMaterial, identity: str) -> LedgerReceipt:
        target = to_checksum_address(identity)
        self._move_vote(signer.identity, target, into=self._upvoters, out_of=self._downvoters)
        return self._receipt(signer.identity, "upvote", target)

    async def downvote(self, signer: KeyMaterial, identity: str) -> LedgerReceipt:
        target = to_checksum_address(identity)
        self._move_vote(signer.identity, target, into=self._downvoters, out_of=self._upvoters)
        return self._receipt(signer.identity, "downvote", target)

    # ── Reads ─────────────────────────────────────────────────

    async def published_at(self, identity: str) -> int:
        return self._published.get(to_checksum_address(identity), 0)

    async def revoked_at(self, identity: str) -> int:
        return self._revoked.get(to_checksum_address(identity), 0)

    async def vote_counts(self, identity: str) -> VoteTally:
        target = to_checksum_address(identity)
        return VoteTally(
            upvotes=len(self._upvoters.get(target, [])),
            downvotes=len(self._downvoters.get(target, [])),
        )

    async def upvoter(self, identity: str, index: int) -> str:
        return self._voter_at(self._upvoters, identity, index)

    async def downvoter(self, identity: str, index: int) -> str:
        return self._voter_at(self._downvoters, identity, index)

    async def close(self) -> None:
        pass

    # ── Internal helpers ──────────────────────────────────────

    @staticmethod
    def _voter_at(voters: dict[str, list[str]], identity: str, index: int) -> str:
        # uint256 index on the contract: no negative indexing
        if index < 0:
            raise IndexError(f"voter index must be >= 0, got {index}")
        return voters.get(to_checksum_address(identity), [])[index]

    @staticmethod
    def _move_vote(
        voter: str,
        target: str,
        *,
        into: dict[str, list[str]],
        out_of: dict[str, list[str]],
    ) -> None:
        opposite = out_of.get(target, [])
        if voter in opposite:
            opposite.remove(voter)
        voters = into.setdefault(target, [])
        if voter not in voters:
            voters.append(voter)

    def _receipt(self, sender: str, method: str, target: str = "") -> LedgerReceipt:
        self._block_number += 1
        digest = hashlib.sha256(
            f"{self._block_number}:{sender}:{method}:{target}".encode()
        ).hexdigest()
        receipt = LedgerReceipt(
            tx_hash="0x" + digest,
            sender=sender,
            method=method,
            block_number=self._block_number,
        )
        self._logger.debug(
            f"ledger_{method}_confirmed",
            sender=sender,
            target=target or None,
            block_number=receipt.block_number,
        )
        return receipt


# ─── Factory ─────────────────────────────────────────────────────


def create_ledger_client(config: LedgerConfig) -> LedgerClient:
    """Factory to create the configured ledger client."""
    if config.strategy == "web3":
        return Web3LedgerClient(config)
    elif config.strategy == "memory":
        return InMemoryLedgerClient()
    else:
        raise ValueError(f"Unknown ledger strategy: {config.strategy}")
