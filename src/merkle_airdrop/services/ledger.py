"""
Merkle Airdrop Claim Service - Ledger Capability

The claim registry never moves balances itself. It holds a Ledger
capability bound to its custody account and asks it to transfer funds out.
Any asset backend (token contract client, accounting database) can stand
behind the protocol; InMemoryLedger is the reference implementation used by
the HTTP service and the tests.
"""

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

import structlog

from merkle_airdrop.crypto.leaf import normalize_identity, validate_amount

logger = structlog.get_logger(__name__)

INSUFFICIENT_BALANCE = "insufficient balance"


class LedgerError(Exception):
    """Raised when a ledger operation is called with invalid arguments."""

    pass


@dataclass(frozen=True)
class TransferResult:
    """Outcome of a ledger transfer. Failures carry the ledger's reason."""

    ok: bool
    reason: str | None = None

    @classmethod
    def success(cls) -> "TransferResult":
        return cls(ok=True)

    @classmethod
    def failure(cls, reason: str) -> "TransferResult":
        return cls(ok=False, reason=reason)


@runtime_checkable
class Ledger(Protocol):
    """Fungible-asset ledger as seen from the custody account."""

    def transfer(self, to: str, amount: int) -> TransferResult:
        """Move amount from custody to an account."""
        ...

    def balance_of(self, account: str) -> int:
        """Current balance of an account."""
        ...


class InMemoryLedger:
    """
    Single-asset ledger kept in a dictionary.

    transfer() spends from the holder account (the registry custody);
    transfer_from() lets tooling and tests move funds between any accounts.
    A failed transfer changes nothing.
    """

    def __init__(self, holder: str) -> None:
        self._holder = normalize_identity(holder)
        self._balances: dict[str, int] = {}
        self._total_deposited = 0

    @property
    def holder(self) -> str:
        return self._holder

    @property
    def total_deposited(self) -> int:
        """Funds ever minted into the ledger."""
        return self._total_deposited

    @property
    def total_supply(self) -> int:
        return sum(self._balances.values())

    def deposit(self, account: str, amount: int) -> None:
        """Mint amount into account."""
        account = self._account(account)
        amount = self._amount(amount)
        self._balances[account] = self._balances.get(account, 0) + amount
        self._total_deposited += amount
        logger.info("Ledger deposit", account=account, amount=amount)

    def balance_of(self, account: str) -> int:
        return self._balances.get(self._account(account), 0)

    def transfer(self, to: str, amount: int) -> TransferResult:
        return self.transfer_from(self._holder, to, amount)

    def transfer_from(self, sender: str, to: str, amount: int) -> TransferResult:
        sender = self._account(sender)
        to = self._account(to)
        amount = self._amount(amount)

        available = self._balances.get(sender, 0)
        if available < amount:
            logger.warning(
                "Ledger transfer rejected",
                sender=sender,
                to=to,
                amount=amount,
                available=available,
            )
            return TransferResult.failure(INSUFFICIENT_BALANCE)

        self._balances[sender] = available - amount
        self._balances[to] = self._balances.get(to, 0) + amount
        logger.debug("Ledger transfer", sender=sender, to=to, amount=amount)
        return TransferResult.success()

    @staticmethod
    def _account(account: str) -> str:
        try:
            return normalize_identity(account)
        except ValueError as e:
            raise LedgerError(str(e)) from e

    @staticmethod
    def _amount(amount: int) -> int:
        try:
            return validate_amount(amount)
        except ValueError as e:
            raise LedgerError(str(e)) from e
