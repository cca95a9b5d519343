"""
consentid -- Ledger Contract ABIs

Minimal ABI fragments for the three registry contracts. Each contract keys
its state by msg.sender for writes and by address for reads.
"""

from __future__ import annotations

from typing import Any


def _view(name: str, inputs: list[tuple[str, str]], output: str) -> dict[str, Any]:
    return {
        "type": "function",
        "name": name,
        "stateMutability": "view",
        "inputs": [{"name": n, "type": t} for n, t in inputs],
        "outputs": [{"name": "", "type": output}],
    }


def _write(name: str, inputs: list[tuple[str, str]]) -> dict[str, Any]:
    return {
        "type": "function",
        "name": name,
        "stateMutability": "nonpayable",
        "inputs": [{"name": n, "type": t} for n, t in inputs],
        "outputs": [],
    }


# publish() records block.timestamp for msg.sender; publishs(addr) reads it back.
PUBLISH_ABI: list[dict[str, Any]] = [
    _write("publish", []),
    _view("publishs", [("", "address")], "uint256"),
]

# revoke() records block.timestamp for msg.sender; revocations(addr) reads it back.
REVOKE_ABI: list[dict[str, Any]] = [
    _write("revoke", []),
    _view("revocations", [("", "address")], "uint256"),
]

VOTE_ABI: list[dict[str, Any]] = [
    _write("upvote", [("target", "address")]),
    _write("downvote", [("target", "address")]),
    _view("upvoteCount", [("target", "address")], "uint256"),
    _view("downvoteCount", [("target", "address")], "uint256"),
    _view("upvoters", [("target", "address"), ("index", "uint256")], "address"),
    _view("downvoters", [("target", "address"), ("index", "uint256")], "address"),
]
