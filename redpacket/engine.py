"""
Red packet claim engine.

A red packet splits ``total_tokens`` into ``number`` packets shared among the
accounts committed to by ``merkle_root``. Each eligible account may claim one
packet while the packet is live; the creator gets the rest back after expiry.
Packets created with a non-zero ``lock`` additionally require a zk proof of
the password.
"""
import logging

from redpacket.allocator import RedPacketAllocator
from redpacket.entropy import claim_seed
from redpacket.errors import (
    AlreadyClaimedError,
    InvalidParameterError,
    InvalidProofError,
    ProofVerificationFailedError,
)
from redpacket.eth import ZERO_BYTES32, distribution_id, normalize_address, to_bytes32
from redpacket.events import ClaimSuccess, CreationSuccess
from redpacket.merkle import MerkleTree, account_leaf
from redpacket.models import Distribution, DistributionKind, TokenType
from redpacket.service import DistributionService
from redpacket.verifier import require_password_proof

logger = logging.getLogger(__name__)


class RedPacketEngine(DistributionService):
    ESCROW_LABEL = 'redpacket.happy-red-packet'

    def __init__(self, token_ledger, allocator=None, verifier=None, **kwargs):
        super().__init__(token_ledger, **kwargs)
        self.allocator = allocator or RedPacketAllocator()
        self.verifier = verifier

    def create_red_packet(
        self,
        creator,
        merkle_root,
        lock,
        number,
        ifrandom,
        duration,
        message,
        name,
        token_type,
        token_address,
        total_tokens,
    ) -> bytes:
        """
        Register a red packet and escrow ``total_tokens`` from the creator.

        Returns:
            The red packet id, keccak256(abi.encodePacked(creator, message))

        Raises:
            InvalidParameterError: bad packet count, duration or token
            InsufficientAmountError: total cannot cover the per-packet floor
            DistributionExistsError: creator already used this message
            TransferFailedError: escrow could not be pulled
        """
        creator = normalize_address(creator)
        lock = to_bytes32(lock)
        self.allocator.validate(total_tokens, number)
        if duration <= 0:
            raise InvalidParameterError(f'Duration must be positive, got {duration}')
        if lock != ZERO_BYTES32 and self.verifier is None:
            raise InvalidParameterError('Password red packets need a proof verifier')

        distribution = Distribution(
            id=distribution_id(creator, message),
            creator=creator,
            merkle_root=to_bytes32(merkle_root),
            token_type=TokenType(token_type),
            token_address=self._resolve_token(token_type, token_address),
            total_amount=total_tokens,
            packet_count=number,
            is_random_split=bool(ifrandom),
            creation_time=self.clock.now(),
            duration=duration,
            hash_lock=lock,
            name=name,
            message=message,
            kind=DistributionKind.REDPACKET,
        )
        self._register(distribution)
        self.events.emit(CreationSuccess(
            total=distribution.total_amount,
            id=distribution.id,
            name=name,
            message=message,
            creator=creator,
            creation_time=distribution.creation_time,
            token_address=distribution.token_address,
            number=number,
            ifrandom=distribution.is_random_split,
            duration=duration,
            hash_lock=lock,
        ))

        logger.info(
            'created red packet 0x%s: %d tokens in %d packets (random=%s)',
            distribution.id.hex(), total_tokens, number, distribution.is_random_split,
        )
        return distribution.id

    def claim_ordinary_redpacket(self, redpacket_id: bytes, claimer, proof) -> int:
        distribution = self.store.get(redpacket_id)
        if distribution.is_password_locked:
            raise ProofVerificationFailedError('Password proof required')
        return self._claim(distribution, claimer, proof, None)

    def claim_password_redpacket(self, redpacket_id: bytes, claimer, proof, zk_proof) -> int:
        return self._claim(self.store.get(redpacket_id), claimer, proof, zk_proof)

    def _claim(self, distribution: Distribution, claimer, proof, zk_proof) -> int:
        claimer = normalize_address(claimer)
        with self.store.lock(distribution.id):
            now = self.clock.now()
            self.policy.check_claimable(distribution, now)
            if self.ledger.is_claimed(distribution.id, claimer):
                raise AlreadyClaimedError()
            if not MerkleTree.verify(account_leaf(claimer), proof, distribution.merkle_root):
                raise InvalidProofError()
            if distribution.is_password_locked:
                require_password_proof(self.verifier, distribution.hash_lock, zk_proof)

            seed = claim_seed(distribution.id, claimer, distribution.claimed_packets)
            amount = self.allocator.compute_share(
                distribution.remaining_amount,
                distribution.remaining_packets,
                distribution.is_random_split,
                seed,
            )
            with self.ledger.pending_claim(distribution.id, claimer, amount, now):
                self._payout(distribution, claimer, amount)

            self.events.emit(ClaimSuccess(
                id=distribution.id,
                claimer=claimer,
                claimed_value=amount,
                token_address=distribution.token_address,
                lock=distribution.hash_lock,
            ))

        logger.debug('%s claimed %d from 0x%s', claimer, amount, distribution.id.hex())
        return amount

    def check_availability(self, redpacket_id: bytes, claimer) -> dict:
        distribution = self.store.get(redpacket_id)
        claimer = normalize_address(claimer)
        with self.store.lock(redpacket_id):
            return {
                "token_address": distribution.token_address,
                "balance": distribution.remaining_amount,
                "total": distribution.packet_count,
                "claimed": distribution.claimed_packets,
                "expired": self.policy.is_expired(distribution),
                "claimed_amount": self.ledger.claimed_amount(redpacket_id, claimer),
            }
