"""
Shared plumbing for services that escrow tokens and pay out against a root.

A service owns the collaborators (store, ledger, refund policy, token ledger,
event log) and the escrow address funds are held at. Every mutating
operation runs under the distribution's lock in three steps: check all
preconditions, update the ledger, then call the token ledger. A failed
transfer rolls the ledger update back before the lock is released.
"""
import logging

from web3 import Web3

from redpacket.errors import InvalidParameterError
from redpacket.eth import ZERO_ADDRESS, normalize_address
from redpacket.events import EventLog, RefundSuccess
from redpacket.ledger import ClaimLedger
from redpacket.models import Distribution, TokenType
from redpacket.refund import RefundPolicy
from redpacket.store import DistributionStore

logger = logging.getLogger(__name__)


def escrow_address(label: str) -> str:
    return Web3.to_checksum_address('0x' + bytes(Web3.keccak(text=label))[-20:].hex())


class DistributionService:
    ESCROW_LABEL = 'redpacket.escrow'

    def __init__(self, token_ledger, store=None, ledger=None, policy=None, events=None, address=None):
        self.token_ledger = token_ledger
        self.store = store or DistributionStore()
        self.ledger = ledger or ClaimLedger(self.store)
        self.policy = policy or RefundPolicy()
        self.events = events or EventLog()
        self.address = normalize_address(address) if address else escrow_address(self.ESCROW_LABEL)

    @property
    def clock(self):
        return self.policy.clock

    def get(self, distribution_id: bytes) -> Distribution:
        return self.store.get(distribution_id)

    def state(self, distribution_id: bytes):
        return self.policy.state(self.store.get(distribution_id))

    def _resolve_token(self, token_type, token_address) -> str:
        token_type = TokenType(token_type)
        if token_type == TokenType.ETH:
            return ZERO_ADDRESS
        token_address = normalize_address(token_address)
        if token_address == ZERO_ADDRESS:
            raise InvalidParameterError('ERC20 distributions need a token address')
        return token_address

    def _register(self, distribution: Distribution) -> None:
        """Store ``distribution`` and pull its total into escrow."""
        with self.store.lock(distribution.id):
            self.store.add(distribution)
            try:
                self._escrow(distribution)
            except Exception:
                self.store.remove(distribution.id)
                raise

    def _escrow(self, distribution: Distribution) -> None:
        if distribution.token_type == TokenType.ETH:
            # native value arrives with the call itself
            self.token_ledger.transfer(ZERO_ADDRESS, distribution.creator, self.address, distribution.total_amount)
        else:
            self.token_ledger.transfer_from(
                distribution.token_address,
                self.address,
                distribution.creator,
                self.address,
                distribution.total_amount,
            )

    def _payout(self, distribution: Distribution, to: str, amount: int) -> None:
        self.token_ledger.transfer(distribution.token_address, self.address, to, amount)

    def refund(self, distribution_id: bytes, caller: str) -> int:
        """
        Return whatever is left to the creator once the distribution expired.

        Raises:
            UnauthorizedError, AlreadyRefundedError, NotExpiredError, NothingToRefundError
        """
        distribution = self.store.get(distribution_id)
        with self.store.lock(distribution_id):
            self.policy.check_refundable(distribution, caller)
            amount = self.policy.mark_refunded(distribution)
            try:
                self._payout(distribution, distribution.creator, amount)
            except Exception:
                self.policy.restore(distribution, amount)
                raise
            self.events.emit(RefundSuccess(distribution_id, distribution.token_address, amount))

        logger.info('refunded %d to %s from 0x%s', amount, distribution.creator, bytes(distribution_id).hex())
        return amount
