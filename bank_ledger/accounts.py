"""
Account Module

The account entity and its withdraw policies. Policies form a closed set of
variants, each with one rule function registered in WITHDRAW_RULES.

Account operations are not self-synchronising: callers must hold the
account's mutation lock (see transactions.AccountLocks).
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional
from enum import Enum
import hmac

from .errors import InsufficientFunds, OverdraftExceeded
from .money import (
    ZERO, AmountLike, add_amounts, format_amount, subtract_amounts, to_amount,
    to_positive_amount
)


class AccountVariant(Enum):
    """Withdraw policies an account can carry"""
    STANDARD = "standard"    # Balance may not go below zero
    OVERDRAFT = "overdraft"  # Balance may go down to -overdraft_limit


@dataclass
class Account:
    """
    Bank account: identity, opaque credential token, balance and policy
    """
    id: int
    name: str
    credential_hash: str = field(repr=False)
    balance: Decimal = ZERO
    variant: AccountVariant = AccountVariant.STANDARD
    overdraft_limit: Optional[Decimal] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        self.balance = to_amount(self.balance)

        if self.variant == AccountVariant.OVERDRAFT:
            if self.overdraft_limit is None:
                raise ValueError("Overdraft account requires an overdraft limit")
            self.overdraft_limit = to_amount(self.overdraft_limit)
            if self.overdraft_limit <= ZERO:
                raise ValueError("Overdraft limit must be positive")
        elif self.overdraft_limit is not None:
            raise ValueError(f"{self.variant.value} account cannot carry an overdraft limit")

    @property
    def available_funds(self) -> Decimal:
        """Largest amount a withdrawal could take right now"""
        if self.variant == AccountVariant.OVERDRAFT:
            return add_amounts(self.balance, self.overdraft_limit)
        return self.balance

    def deposit(self, amount: AmountLike) -> Decimal:
        """
        Add a positive amount to the balance

        Raises:
            InvalidAmount: If amount <= 0 or the new balance is too large

        Returns:
            The new balance
        """
        amount = to_positive_amount(amount)
        self.balance = add_amounts(self.balance, amount)
        self.updated_at = datetime.now(timezone.utc)
        return self.balance

    def withdraw(self, amount: AmountLike) -> Decimal:
        """
        Take a positive amount from the balance, subject to the variant's rule

        Raises:
            InvalidAmount: If amount <= 0 or the result is too large
            InsufficientFunds: Standard account without enough balance
            OverdraftExceeded: Overdraft account past its limit

        Returns:
            The new balance
        """
        amount = to_positive_amount(amount)
        self.ensure_can_withdraw(amount)
        self.balance = subtract_amounts(self.balance, amount)
        self.updated_at = datetime.now(timezone.utc)
        return self.balance

    def ensure_can_withdraw(self, amount: Decimal) -> None:
        """Apply the variant's withdraw rule without touching the balance"""
        WITHDRAW_RULES[self.variant](self, amount)

    def check_credential(self, candidate: Any) -> bool:
        """Compare a candidate token with the stored one in constant time"""
        if not isinstance(candidate, str) or not isinstance(self.credential_hash, str):
            return False
        return hmac.compare_digest(candidate.encode("utf-8"), self.credential_hash.encode("utf-8"))

    def to_record(self) -> Dict[str, Any]:
        """Convert to the durable record shape"""
        return {
            "id": self.id,
            "name": self.name,
            "credential_hash": self.credential_hash,
            "balance": str(self.balance),
            "variant": self.variant.value,
            "overdraft_limit": str(self.overdraft_limit) if self.overdraft_limit is not None else None,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_record(cls, data: Dict[str, Any]) -> 'Account':
        """Create instance from a durable record"""
        limit = data.get("overdraft_limit")
        kwargs = {}
        # Records written without timestamps get fresh ones
        if data.get("created_at"):
            kwargs["created_at"] = datetime.fromisoformat(data["created_at"])
        if data.get("updated_at"):
            kwargs["updated_at"] = datetime.fromisoformat(data["updated_at"])

        return cls(
            id=int(data["id"]),
            name=data["name"],
            credential_hash=data["credential_hash"],
            balance=Decimal(data["balance"]),
            variant=AccountVariant(data.get("variant", AccountVariant.STANDARD.value)),
            overdraft_limit=Decimal(limit) if limit is not None else None,
            **kwargs
        )

    def describe(self) -> str:
        """One-line listing used by account overviews"""
        return f"ID: {self.id} | Name: {self.name} | Balance: {format_amount(self.balance)}"


def _standard_rule(account: Account, amount: Decimal) -> None:
    if amount > account.balance:
        raise InsufficientFunds(
            f"Insufficient funds in account {account.id}: "
            f"balance {account.balance}, requested {amount}"
        )


def _overdraft_rule(account: Account, amount: Decimal) -> None:
    if amount > account.available_funds:
        raise OverdraftExceeded(
            f"Overdraft limit exceeded for account {account.id}: "
            f"balance {account.balance}, limit {account.overdraft_limit}, requested {amount}"
        )


# One rule per variant; a new variant must register here
WITHDRAW_RULES: Dict[AccountVariant, Callable[[Account, Decimal], None]] = {
    AccountVariant.STANDARD: _standard_rule,
    AccountVariant.OVERDRAFT: _overdraft_rule,
}
