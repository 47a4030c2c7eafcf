"""Data models for distributions and their claims."""
from dataclasses import dataclass, field
from enum import Enum, IntEnum

from eth_utils import encode_hex

from redpacket.eth import ZERO_BYTES32


class TokenType(IntEnum):
    ETH = 0
    ERC20 = 1


class DistributionKind(str, Enum):
    REDPACKET = 'redpacket'
    DISTRIBUTOR = 'distributor'


class DistributionState(str, Enum):
    ACTIVE = 'active'
    ALL_CLAIMED = 'all_claimed'
    EXPIRED = 'expired'
    REFUNDED = 'refunded'


@dataclass
class Distribution:
    """
    One red packet or merkle distributor instance.

    ``total_amount``, ``packet_count``, the token and the root are fixed at
    creation. ``remaining_amount`` and ``remaining_packets`` only go down, and
    ``refunded`` / ``all_claimed`` only ever flip from False to True.
    """
    id: bytes
    creator: str
    merkle_root: bytes
    token_type: TokenType
    token_address: str
    total_amount: int
    packet_count: int
    is_random_split: bool
    creation_time: int
    duration: int
    hash_lock: bytes = ZERO_BYTES32
    name: str = ''
    message: str = ''
    kind: DistributionKind = DistributionKind.REDPACKET
    remaining_amount: int = field(default=None)
    remaining_packets: int = field(default=None)
    refunded_amount: int = 0
    refunded: bool = False
    all_claimed: bool = False

    def __post_init__(self):
        if self.remaining_amount is None:
            self.remaining_amount = self.total_amount
        if self.remaining_packets is None:
            self.remaining_packets = self.packet_count

    @property
    def expire_timestamp(self) -> int:
        return self.creation_time + self.duration

    @property
    def claimed_packets(self) -> int:
        return self.packet_count - self.remaining_packets

    @property
    def claimed_amount(self) -> int:
        return self.total_amount - self.remaining_amount - self.refunded_amount

    @property
    def is_password_locked(self) -> bool:
        return self.hash_lock != ZERO_BYTES32

    def to_dict(self):
        return {
            "id": encode_hex(self.id),
            "kind": self.kind.value,
            "name": self.name,
            "message": self.message,
            "creator": self.creator,
            "merkle_root": encode_hex(self.merkle_root),
            "hash_lock": encode_hex(self.hash_lock),
            "token_type": int(self.token_type),
            "token_address": self.token_address,
            "total_amount": str(self.total_amount),
            "remaining_amount": str(self.remaining_amount),
            "packet_count": self.packet_count,
            "remaining_packets": self.remaining_packets,
            "is_random_split": self.is_random_split,
            "creation_time": self.creation_time,
            "duration": self.duration,
            "expire_timestamp": self.expire_timestamp,
            "refunded": self.refunded,
            "all_claimed": self.all_claimed,
        }


@dataclass(frozen=True)
class ClaimRecord:
    distribution_id: bytes
    claimant: object  # checksummed address, or leaf index for distributors
    amount: int
    timestamp: int
