"""
Payout computation for red packets.

Two algorithms, picked per distribution:

* even split: ``remaining_amount // remaining_packets``
* random split: ``1 + rand % ceil(2 * remaining_amount / remaining_packets)``
  clamped so that every later packet can still pay out the floor

The last packet always takes exactly what remains, so a full run of claims
pays out ``total_amount`` with no dust.
"""
from config import Config
from redpacket.entropy import KeccakEntropySource
from redpacket.errors import InsufficientAmountError, InvalidParameterError, OutOfStockError


def ceil_div(a: int, b: int) -> int:
    return -(-a // b)


class RedPacketAllocator:
    def __init__(self, entropy=None, minimum_unit_share=None, max_packets=None):
        self.entropy = entropy or KeccakEntropySource(Config.get_entropy_salt())
        self.minimum_unit_share = (
            Config.get_min_unit_share() if minimum_unit_share is None else minimum_unit_share
        )
        self.max_packets = Config.MAX_PACKETS if max_packets is None else max_packets
        if self.minimum_unit_share < 1:
            raise InvalidParameterError(f'minimum_unit_share must be at least 1, got {self.minimum_unit_share}')

    def validate(self, total_amount: int, packet_count: int) -> None:
        if packet_count <= 0:
            raise InvalidParameterError('At least 1 recipient')
        if packet_count > self.max_packets:
            raise InvalidParameterError(f'At most {self.max_packets} recipients')
        if total_amount < packet_count * self.minimum_unit_share:
            raise InsufficientAmountError(
                f'{total_amount} cannot pay {packet_count} packets at least {self.minimum_unit_share} each'
            )

    def max_share(self, remaining_amount: int, remaining_packets: int) -> int:
        """Largest payout that still leaves the floor for every later packet."""
        return remaining_amount - (remaining_packets - 1) * self.minimum_unit_share

    def even_share(self, remaining_amount: int, remaining_packets: int) -> int:
        return remaining_amount // remaining_packets

    def random_share(self, remaining_amount: int, remaining_packets: int, seed: bytes) -> int:
        upper = ceil_div(2 * remaining_amount, remaining_packets)
        share = 1 + self.entropy.next_random(seed) % upper
        share = min(share, self.max_share(remaining_amount, remaining_packets))
        return max(share, self.minimum_unit_share)

    def compute_share(self, remaining_amount: int, remaining_packets: int, is_random_split: bool, seed: bytes = b'') -> int:
        """
        Payout for the next claimant given the pool before the claim.

        Raises:
            OutOfStockError: no packets remain
        """
        if remaining_packets <= 0:
            raise OutOfStockError()
        if remaining_packets == 1:
            return remaining_amount
        if is_random_split:
            return self.random_share(remaining_amount, remaining_packets, seed)
        return self.even_share(remaining_amount, remaining_packets)
