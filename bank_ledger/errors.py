"""Exception hierarchy for bank_ledger."""

from typing import Optional


class BankLedgerError(Exception):
    """Base exception for all bank_ledger errors."""


class InvalidAmount(BankLedgerError, ValueError):
    """Raised when an amount is non-positive or not a number."""


class PolicyViolation(BankLedgerError):
    """Raised when a withdrawal breaks the account's withdraw policy."""


class InsufficientFunds(PolicyViolation):
    """Raised when a standard account would go below zero."""


class OverdraftExceeded(PolicyViolation):
    """Raised when an overdraft account would go below its limit."""


class AccountNotFound(BankLedgerError):
    """Raised when an account id is not in the ledger or the store."""

    def __init__(self, account_id: int):
        super().__init__(f"Account {account_id} not found")
        self.account_id = account_id


class AuthenticationFailed(BankLedgerError):
    """Raised when a credential does not match the stored one."""


class LockTimeout(BankLedgerError):
    """Raised when the account lock could not be acquired in time.

    The transaction was not attempted.
    """


class TransactionCancelled(BankLedgerError):
    """Raised when a transaction is cancelled before taking the account lock."""


class PersistenceError(BankLedgerError):
    """Raised by a persistence gateway when the durable store fails."""


class DuplicateRecordError(PersistenceError):
    """Raised when inserting a record whose id already exists."""


class PersistenceFailure(BankLedgerError):
    """Raised when a mutation committed in memory but the durable flush failed.

    Callers must retry the flush, never the mutation itself.
    """

    def __init__(self, account_id: int, message: str, result: Optional[object] = None):
        super().__init__(message)
        self.account_id = account_id
        self.result = result
