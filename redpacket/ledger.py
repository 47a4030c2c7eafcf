"""
Idempotent claim tracking and remaining-pool accounting.

Address claimants are tracked by set membership; integer claimants (leaf
indices of a fixed-amount distribution) live in a claimed bitmap packed into
256-bit words, the layout the MerkleDistributor contract uses.
"""
import logging
from collections import defaultdict
from contextlib import contextmanager
from typing import Dict, List, Tuple

from redpacket.errors import AlreadyClaimedError, InvalidParameterError, OutOfStockError
from redpacket.models import ClaimRecord
from redpacket.store import DistributionStore

logger = logging.getLogger(__name__)


class ClaimedBitMap:
    WORD_BITS = 256

    def __init__(self):
        self._words: Dict[int, int] = {}

    def _position(self, index):
        if index < 0:
            raise InvalidParameterError(f'Leaf index must be non-negative, got {index}')
        return divmod(index, self.WORD_BITS)

    def is_claimed(self, index: int) -> bool:
        word, bit = self._position(index)
        return bool((self._words.get(word, 0) >> bit) & 1)

    def set_claimed(self, index: int) -> None:
        word, bit = self._position(index)
        self._words[word] = self._words.get(word, 0) | (1 << bit)

    def clear(self, index: int) -> None:
        word, bit = self._position(index)
        self._words[word] = self._words.get(word, 0) & ~(1 << bit)

    def word(self, word_index: int) -> int:
        return self._words.get(word_index, 0)


class ClaimLedger:
    def __init__(self, store: DistributionStore):
        self.store = store
        self._bitmaps: Dict[bytes, ClaimedBitMap] = defaultdict(ClaimedBitMap)
        self._records: Dict[bytes, Dict[object, ClaimRecord]] = defaultdict(dict)

    def is_claimed(self, distribution_id: bytes, claimant_key) -> bool:
        if isinstance(claimant_key, int):
            return self._bitmaps[distribution_id].is_claimed(claimant_key)
        return claimant_key in self._records[distribution_id]

    def mark_claimed(self, distribution_id: bytes, claimant_key, amount: int, timestamp: int = 0) -> ClaimRecord:
        """
        Record a payout of ``amount`` to ``claimant_key``.

        Raises:
            AlreadyClaimedError: the claimant was already paid
            OutOfStockError: no packets remain
            InvalidParameterError: amount is negative or exceeds the remaining pool
        """
        distribution = self.store.get(distribution_id)
        with self.store.lock(distribution_id):
            if self.is_claimed(distribution_id, claimant_key):
                raise AlreadyClaimedError()
            if distribution.remaining_packets == 0:
                raise OutOfStockError()
            if amount < 0 or amount > distribution.remaining_amount:
                raise InvalidParameterError(
                    f'Claim amount {amount} outside remaining pool {distribution.remaining_amount}'
                )

            record = ClaimRecord(distribution_id, claimant_key, amount, timestamp)
            if isinstance(claimant_key, int):
                self._bitmaps[distribution_id].set_claimed(claimant_key)
            self._records[distribution_id][claimant_key] = record
            distribution.remaining_amount -= amount
            distribution.remaining_packets -= 1
            if distribution.remaining_packets == 0:
                distribution.all_claimed = True
        logger.debug('claim recorded: id=0x%s claimant=%s amount=%d', bytes(distribution_id).hex(), claimant_key, amount)
        return record

    def revert_claim(self, record: ClaimRecord) -> None:
        """Undo ``record`` while the caller still holds the distribution lock."""
        distribution = self.store.get(record.distribution_id)
        with self.store.lock(record.distribution_id):
            records = self._records[record.distribution_id]
            if records.get(record.claimant) != record:
                raise InvalidParameterError('Claim record is not the latest for this claimant')
            del records[record.claimant]
            if isinstance(record.claimant, int):
                self._bitmaps[record.distribution_id].clear(record.claimant)
            distribution.remaining_amount += record.amount
            distribution.remaining_packets += 1
            distribution.all_claimed = False
        logger.debug('claim reverted: id=0x%s claimant=%s', bytes(record.distribution_id).hex(), record.claimant)

    @contextmanager
    def pending_claim(self, distribution_id: bytes, claimant_key, amount: int, timestamp: int = 0):
        """
        Mark a claim, then revert it if the body raises.

        The distribution lock is held for the whole block, so nobody observes
        the claim before the body (the token transfer) has succeeded.
        """
        with self.store.lock(distribution_id):
            record = self.mark_claimed(distribution_id, claimant_key, amount, timestamp)
            try:
                yield record
            except BaseException:
                self.revert_claim(record)
                raise

    def remaining(self, distribution_id: bytes) -> Tuple[int, int]:
        distribution = self.store.get(distribution_id)
        with self.store.lock(distribution_id):
            return distribution.remaining_amount, distribution.remaining_packets

    def claims(self, distribution_id: bytes) -> List[ClaimRecord]:
        return list(self._records[distribution_id].values())

    def claimed_amount(self, distribution_id: bytes, claimant_key) -> int:
        record = self._records[distribution_id].get(claimant_key)
        return record.amount if record else 0
