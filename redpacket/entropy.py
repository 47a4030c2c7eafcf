"""
Entropy sources for random-split red packets.

On-chain the split is driven by block-derived entropy. Off-chain the source
is injected so runs can be replayed: the same salt and the same claim order
always produce the same payouts.
"""
import secrets
from itertools import cycle
from typing import Iterable, Protocol

from web3 import Web3
from eth_abi.packed import encode_packed

from redpacket.eth import normalize_address, to_bytes32


class EntropySource(Protocol):
    def next_random(self, seed: bytes) -> int:
        """Return a uint256 derived from ``seed``."""
        ...


def claim_seed(distribution_id: bytes, claimer: str, nonce: int) -> bytes:
    return bytes(Web3.keccak(
        encode_packed(['bytes32', 'address', 'uint256'], [distribution_id, normalize_address(claimer), nonce])
    ))


class KeccakEntropySource:
    """uint256(keccak256(salt ‖ seed))."""

    def __init__(self, salt):
        self.salt = to_bytes32(salt)

    def next_random(self, seed: bytes) -> int:
        return int.from_bytes(Web3.keccak(self.salt + bytes(seed)), 'big')


class SequenceEntropySource:
    """Replays a fixed list of values, ignoring the seed. Meant for tests."""

    def __init__(self, values: Iterable[int]):
        values = list(values)
        if not values:
            raise ValueError('SequenceEntropySource needs at least one value')
        self._values = cycle(values)

    def next_random(self, seed: bytes) -> int:
        return next(self._values)


class SystemEntropySource:
    def next_random(self, seed: bytes) -> int:
        return secrets.randbits(256)
