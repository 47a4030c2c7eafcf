"""
Token ledger collaborator.

The engine never holds balances itself: it escrows on creation and pays out
on claim and refund through a ``TokenLedger``. Any failure raises
``TransferFailedError`` and aborts the enclosing operation.
"""
from collections import defaultdict
from typing import Protocol

from redpacket.errors import TransferFailedError
from redpacket.eth import normalize_address


class TokenLedger(Protocol):
    def transfer(self, token: str, sender: str, to: str, amount: int) -> None:
        ...

    def transfer_from(self, token: str, spender: str, owner: str, to: str, amount: int) -> None:
        ...

    def permit(self, token: str, owner: str, spender: str, value: int, deadline: int, v: int, r: bytes, s: bytes) -> None:
        ...


class InMemoryTokenLedger:
    """
    Balances and allowances kept in dicts. The native asset is just the
    token at the zero address.
    """

    def __init__(self, clock=None):
        self.clock = clock
        self._balances = defaultdict(int)
        self._allowances = defaultdict(int)

    def balance_of(self, token, account) -> int:
        return self._balances[(normalize_address(token), normalize_address(account))]

    def allowance(self, token, owner, spender) -> int:
        return self._allowances[(normalize_address(token), normalize_address(owner), normalize_address(spender))]

    def mint(self, token, account, amount) -> None:
        self._balances[(normalize_address(token), normalize_address(account))] += amount

    def approve(self, token, owner, spender, amount) -> None:
        self._allowances[(normalize_address(token), normalize_address(owner), normalize_address(spender))] = amount

    def transfer(self, token, sender, to, amount) -> None:
        if amount < 0:
            raise TransferFailedError(f'Invalid transfer amount {amount}')
        src = (normalize_address(token), normalize_address(sender))
        dst = (normalize_address(token), normalize_address(to))
        if self._balances[src] < amount:
            raise TransferFailedError('ERC20: transfer amount exceeds balance')
        self._balances[src] -= amount
        self._balances[dst] += amount

    def transfer_from(self, token, spender, owner, to, amount) -> None:
        key = (normalize_address(token), normalize_address(owner), normalize_address(spender))
        if self._allowances[key] < amount:
            raise TransferFailedError('ERC20: insufficient allowance')
        self.transfer(token, owner, to, amount)
        self._allowances[key] -= amount

    def permit(self, token, owner, spender, value, deadline, v, r, s) -> None:
        # signature checks belong to the token; only the deadline is enforced here
        if self.clock is not None and self.clock.now() > deadline:
            raise TransferFailedError('ERC2612ExpiredSignature')
        self.approve(token, owner, spender, value)
