"""
External token ledger

Custody of the reward token lives outside the engine. The engine only
needs to pull deposits in and push claims and withdrawals out.
"""

from typing import Dict

from .errors import InsufficientPoolError


class TokenLedger:
    """Interface to the external token ledger."""

    def transfer_in(self, source: str, amount: int):
        """Pull `amount` tokens from `source` into game custody."""
        raise NotImplementedError

    def transfer_out(self, recipient: str, amount: int):
        """Release `amount` tokens from game custody to `recipient`."""
        raise NotImplementedError


class InMemoryTokenLedger(TokenLedger):
    """
    Token balances held in a dict, for tests and local runs.

    `custody` is the game's own balance. An optional `on_transfer_out`
    hook runs inside each release, before any balance moves; if it
    raises, the transfer fails. Tests use it to attempt re-entry.
    """

    def __init__(self, balances: Dict[str, int] = None):
        self.balances: Dict[str, int] = dict(balances or {})
        self.custody = 0
        self.on_transfer_out = None

    def balance_of(self, holder: str) -> int:
        return self.balances.get(holder, 0)

    def transfer_in(self, source: str, amount: int):
        if self.balance_of(source) < amount:
            raise InsufficientPoolError(f"{source} holds less than {amount}")
        self.balances[source] -= amount
        self.custody += amount

    def transfer_out(self, recipient: str, amount: int):
        if self.custody < amount:
            raise InsufficientPoolError("Custody cannot cover the transfer")
        if self.on_transfer_out is not None:
            self.on_transfer_out(recipient, amount)
        self.custody -= amount
        self.balances[recipient] = self.balance_of(recipient) + amount
