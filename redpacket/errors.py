"""
Error kinds raised by the claim engine.

Every error is terminal for the operation that raised it: the engine checks
all preconditions before touching the ledger, so a raised error never leaves
a partial state change behind. Each class carries the revert string the
on-chain contracts use as its default message.
"""


class RedPacketError(Exception):
    """Base class for every claim engine error."""

    default_message = 'red packet error'

    def __init__(self, message=None):
        super().__init__(message or self.default_message)


class EmptySetError(RedPacketError):
    default_message = 'No leaves to build tree'


class InvalidProofError(RedPacketError):
    default_message = 'Verification failed, forbidden'


class AlreadyClaimedError(RedPacketError):
    default_message = 'Already claimed'


class OutOfStockError(RedPacketError):
    default_message = 'Out of stock'


class ExpiredError(RedPacketError):
    default_message = 'Expired'


class NotExpiredError(RedPacketError):
    default_message = 'Not expired yet'


class InsufficientAmountError(RedPacketError):
    default_message = '#tokens > #packets'


class InvalidParameterError(RedPacketError):
    default_message = 'Invalid parameter'


class NothingToRefundError(RedPacketError):
    default_message = 'None left in the red packet'


class AlreadyRefundedError(RedPacketError):
    default_message = 'Already refunded'


class UnauthorizedError(RedPacketError):
    default_message = 'Creator Only'


class ProofVerificationFailedError(RedPacketError):
    default_message = 'Wrong password'


class DistributionExistsError(RedPacketError):
    default_message = 'Distributor already exists'


class DistributionNotFoundError(RedPacketError):
    default_message = 'Distribution not found'


class TransferFailedError(RedPacketError):
    default_message = 'Transfer failed'
