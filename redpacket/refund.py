"""
Expiry and refund rules.

Per distribution::

    ACTIVE -> ALL_CLAIMED | EXPIRED -> REFUNDED

Expiry is a comparison against a clock at the moment an operation runs;
nothing is scheduled.
"""
import time

from redpacket.errors import (
    AlreadyRefundedError,
    ExpiredError,
    NotExpiredError,
    NothingToRefundError,
    OutOfStockError,
    UnauthorizedError,
)
from redpacket.eth import normalize_address
from redpacket.models import Distribution, DistributionState


class SystemClock:
    def now(self) -> int:
        return int(time.time())


class ManualClock:
    """A clock that only moves when told to."""

    def __init__(self, start: int = 0):
        self._now = int(start)

    def now(self) -> int:
        return self._now

    def set(self, timestamp: int) -> None:
        if timestamp < self._now:
            raise ValueError(f'Clock cannot go backwards: {timestamp} < {self._now}')
        self._now = int(timestamp)

    def advance(self, seconds: int) -> int:
        self.set(self._now + seconds)
        return self._now


class RefundPolicy:
    def __init__(self, clock=None):
        self.clock = clock or SystemClock()

    def is_expired(self, distribution: Distribution, now=None) -> bool:
        now = self.clock.now() if now is None else now
        return now >= distribution.expire_timestamp

    def state(self, distribution: Distribution, now=None) -> DistributionState:
        if distribution.refunded:
            return DistributionState.REFUNDED
        if distribution.all_claimed:
            return DistributionState.ALL_CLAIMED
        if self.is_expired(distribution, now):
            return DistributionState.EXPIRED
        return DistributionState.ACTIVE

    def check_claimable(self, distribution: Distribution, now=None) -> None:
        if self.is_expired(distribution, now):
            raise ExpiredError()
        if distribution.remaining_packets == 0:
            raise OutOfStockError()

    def check_refundable(self, distribution: Distribution, caller: str, now=None) -> None:
        """
        Raises:
            UnauthorizedError: caller is not the creator
            AlreadyRefundedError: refund already happened
            NotExpiredError: expiry has not been reached
            NothingToRefundError: nothing left in the pool
        """
        if normalize_address(caller) != distribution.creator:
            raise UnauthorizedError()
        if distribution.refunded:
            raise AlreadyRefundedError()
        if not self.is_expired(distribution, now):
            raise NotExpiredError()
        if distribution.remaining_amount == 0:
            raise NothingToRefundError()

    def mark_refunded(self, distribution: Distribution) -> int:
        """Flip the distribution to REFUNDED and return the amount released."""
        amount = distribution.remaining_amount
        distribution.refunded_amount += amount
        distribution.remaining_amount = 0
        distribution.refunded = True
        return amount

    def restore(self, distribution: Distribution, amount: int) -> None:
        # rollback of mark_refunded when the refund transfer fails
        distribution.refunded_amount -= amount
        distribution.remaining_amount = amount
        distribution.refunded = False
