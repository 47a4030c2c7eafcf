"""
Fixed-amount merkle distributor.

Each leaf commits to ``(index, account, amount)``; the claimant receives
exactly ``amount``. Claims are tracked per leaf index in a claimed bitmap.
"""
import logging

from redpacket.errors import AlreadyClaimedError, InvalidParameterError, InvalidProofError
from redpacket.eth import distribution_id, normalize_address, to_bytes32
from redpacket.events import Claimed, DistributorCreated
from redpacket.merkle import MerkleTree, balance_leaf
from redpacket.models import Distribution, DistributionKind, TokenType
from redpacket.service import DistributionService

logger = logging.getLogger(__name__)


class MerkleDistributorFactory(DistributionService):
    ESCROW_LABEL = 'redpacket.merkle-distributor'

    def create_distributor(
        self,
        creator,
        number,
        message,
        name,
        token_type,
        token_address,
        total_tokens,
        merkle_root,
        duration,
    ) -> bytes:
        creator = normalize_address(creator)
        if number <= 0:
            raise InvalidParameterError('At least 1 recipient')
        if total_tokens <= 0:
            raise InvalidParameterError(f'Total must be positive, got {total_tokens}')
        if duration <= 0:
            raise InvalidParameterError(f'Duration must be positive, got {duration}')

        distribution = Distribution(
            id=distribution_id(creator, message),
            creator=creator,
            merkle_root=to_bytes32(merkle_root),
            token_type=TokenType(token_type),
            token_address=self._resolve_token(token_type, token_address),
            total_amount=total_tokens,
            packet_count=number,
            is_random_split=False,
            creation_time=self.clock.now(),
            duration=duration,
            name=name,
            message=message,
            kind=DistributionKind.DISTRIBUTOR,
        )
        self._register(distribution)
        self.events.emit(DistributorCreated(
            total_tokens=total_tokens,
            id=distribution.id,
            name=name,
            message=message,
            token_address=distribution.token_address,
            number=number,
            duration=duration,
            creator=creator,
            creation_time=distribution.creation_time,
        ))
        logger.info('created distributor 0x%s: %d tokens for %d leaves', distribution.id.hex(), total_tokens, number)
        return distribution.id

    def is_claimed(self, distributor_id: bytes, index: int) -> bool:
        return self.ledger.is_claimed(distributor_id, index)

    def claim(self, distributor_id: bytes, index: int, account, amount: int, proof) -> int:
        """
        Pay ``amount`` to ``account`` for leaf ``index``.

        Raises:
            ExpiredError, OutOfStockError, AlreadyClaimedError, InvalidProofError
        """
        distribution = self.store.get(distributor_id)
        account = normalize_address(account)
        with self.store.lock(distributor_id):
            now = self.clock.now()
            self.policy.check_claimable(distribution, now)
            if index < 0 or amount < 0:
                raise InvalidProofError('MerkleDistributor: Invalid proof.')
            if self.ledger.is_claimed(distributor_id, index):
                raise AlreadyClaimedError('MerkleDistributor: already claimed')
            if not MerkleTree.verify(balance_leaf(index, account, amount), proof, distribution.merkle_root):
                raise InvalidProofError('MerkleDistributor: Invalid proof.')

            with self.ledger.pending_claim(distributor_id, index, amount, now):
                self._payout(distribution, account, amount)
            self.events.emit(Claimed(distributor_id, index, account, amount))

        logger.debug('leaf %d (%s) claimed %d from 0x%s', index, account, amount, bytes(distributor_id).hex())
        return amount
