"""
Transaction Execution Module

Runs deposits and withdrawals as units of work against ledger accounts.
Each account has exactly one exclusive mutation lock, owned here rather than
by the Account entity. The lock covers only the read-modify-write of the
balance; the durable flush happens after it is released.

Transaction states:
    REQUESTED -> LOCKED -> VALIDATED -> APPLIED -> FLUSHED
    REQUESTED -> REJECTED (invalid amount)
    REQUESTED -> LOCKED -> REJECTED (policy violation)
    REQUESTED -> LOCK_TIMEOUT | CANCELLED
    APPLIED -> FLUSH_FAILED
"""

from contextlib import contextmanager
from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Union
from enum import Enum
import threading
import time
import uuid

from .accounts import Account
from .config import BankLedgerConfig, get_config
from .errors import (
    InvalidAmount, LockTimeout, PersistenceFailure, PolicyViolation,
    TransactionCancelled
)
from .gateway import PersistenceGateway
from .ledger import Ledger
from .logging_config import get_logger, log_action
from .money import AmountLike, to_positive_amount


class TransactionKind(Enum):
    """Balance mutations the executor can run"""
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"


class TransactionState(Enum):
    """States of a single transaction"""
    REQUESTED = "requested"        # Accepted, waiting for the account lock
    LOCKED = "locked"              # Holding the account lock
    VALIDATED = "validated"        # Passed the variant's policy check
    APPLIED = "applied"            # Balance mutated, lock released
    FLUSHED = "flushed"            # Balance written to durable storage
    REJECTED = "rejected"          # Invalid amount or policy violation, no mutation
    LOCK_TIMEOUT = "lock_timeout"  # Lock not acquired in time, not attempted
    CANCELLED = "cancelled"        # Cancelled before acquiring the lock
    FLUSH_FAILED = "flush_failed"  # Applied in memory, durable write failed


@dataclass
class TransactionResult:
    """
    Outcome of one executed transaction
    """
    account_id: int
    kind: TransactionKind
    amount: Optional[Decimal] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    state: TransactionState = TransactionState.REQUESTED
    balance_before: Optional[Decimal] = None
    balance_after: Optional[Decimal] = None
    error: Optional[str] = None
    requested_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    applied_at: Optional[datetime] = None
    flushed_at: Optional[datetime] = None
    history: List[TransactionState] = field(default_factory=lambda: [TransactionState.REQUESTED])

    def transition(self, state: TransactionState) -> None:
        self.state = state
        self.history.append(state)

    @property
    def is_applied(self) -> bool:
        """Check if the mutation is committed in memory"""
        return TransactionState.APPLIED in self.history

    @property
    def is_flushed(self) -> bool:
        return self.state == TransactionState.FLUSHED


class AccountLocks:
    """
    Lock table keyed by account id, parallel to the ledger's account table

    Two locks per account: the mutation lock guarding the balance, and a
    flush lock ordering durable writes so an older balance cannot overwrite
    a newer one.
    """

    def __init__(self):
        self._locks: Dict[int, threading.Lock] = {}
        self._flush_locks: Dict[int, threading.Lock] = {}
        self._guard = threading.Lock()

    def lock_for(self, account_id: int) -> threading.Lock:
        """Get (creating on first use) the mutation lock of an account"""
        with self._guard:
            lock = self._locks.get(account_id)
            if lock is None:
                lock = self._locks[account_id] = threading.Lock()
            return lock

    def flush_lock_for(self, account_id: int) -> threading.Lock:
        with self._guard:
            lock = self._flush_locks.get(account_id)
            if lock is None:
                lock = self._flush_locks[account_id] = threading.Lock()
            return lock

    @contextmanager
    def acquire(
        self,
        account_id: int,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
        poll_interval: float = 0.05
    ) -> Iterator[None]:
        """
        Hold an account's mutation lock for the duration of the block

        Args:
            account_id: Account whose lock to take
            timeout: Seconds to wait; None waits indefinitely
            cancel_event: When set before the lock is taken, give up
            poll_interval: Wait slice between cancel checks

        Raises:
            LockTimeout: The lock was not free within timeout
            TransactionCancelled: cancel_event was set while waiting
        """
        lock = self.lock_for(account_id)
        if cancel_event is None:
            acquired = lock.acquire(timeout=-1 if timeout is None else timeout)
        else:
            acquired = self._acquire_cancellable(lock, timeout, cancel_event, poll_interval)

        if not acquired:
            raise LockTimeout(f"Timed out after {timeout}s waiting for account {account_id}")

        try:
            yield
        finally:
            lock.release()

    @staticmethod
    def _acquire_cancellable(
        lock: threading.Lock,
        timeout: Optional[float],
        cancel_event: threading.Event,
        poll_interval: float
    ) -> bool:
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            if cancel_event.is_set():
                raise TransactionCancelled("Transaction cancelled before acquiring the account lock")

            wait = poll_interval
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return lock.acquire(blocking=False)
                wait = min(wait, remaining)

            if lock.acquire(timeout=wait):
                return True


_USE_CONFIG = object()


class TransactionExecutor:
    """
    Serialises balance mutations per account and flushes them to storage
    """

    def __init__(
        self,
        ledger: Ledger,
        gateway: PersistenceGateway,
        locks: Optional[AccountLocks] = None,
        config: Optional[BankLedgerConfig] = None
    ):
        self.ledger = ledger
        self.gateway = gateway
        self.locks = locks or AccountLocks()
        self.config = config or get_config()
        self.logger = get_logger("bank_ledger.transactions")

    def execute(
        self,
        account_id: int,
        kind: Union[TransactionKind, str],
        amount: AmountLike,
        timeout=_USE_CONFIG,
        cancel_event: Optional[threading.Event] = None
    ) -> TransactionResult:
        """
        Run a deposit or withdrawal against one account

        Args:
            account_id: Target account
            kind: TransactionKind or its string value
            amount: Positive amount
            timeout: Seconds to wait for the account lock; None blocks,
                default comes from config.lock_timeout_seconds
            cancel_event: Cancels the transaction if set before the lock is taken

        Returns:
            TransactionResult in FLUSHED state

        Raises:
            InvalidAmount: amount <= 0 or not a number
            InsufficientFunds / OverdraftExceeded: policy rejected the withdrawal
            AccountNotFound: account_id is not in the ledger
            LockTimeout / TransactionCancelled: not attempted
            PersistenceFailure: applied in memory, flush failed; retry flush()
        """
        kind = TransactionKind(kind)
        if timeout is _USE_CONFIG:
            timeout = self.config.lock_timeout_seconds

        result = TransactionResult(account_id=account_id, kind=kind)
        resource = f"account:{account_id}"

        account = self.ledger.get(account_id)

        try:
            result.amount = to_positive_amount(amount)
        except InvalidAmount as e:
            self._reject(result, e)
            raise

        try:
            with self.locks.acquire(account_id, timeout, cancel_event, self.config.lock_poll_interval):
                result.transition(TransactionState.LOCKED)
                self._apply(account, result)
        except LockTimeout as e:
            result.transition(TransactionState.LOCK_TIMEOUT)
            result.error = str(e)
            log_action(
                self.logger, "warning", "Transaction lock timeout",
                action="transaction_lock_timeout", resource=resource,
                extra={"transaction_id": result.id, "kind": kind.value, "timeout": timeout}
            )
            raise
        except TransactionCancelled as e:
            result.transition(TransactionState.CANCELLED)
            result.error = str(e)
            log_action(
                self.logger, "info", "Transaction cancelled",
                action="transaction_cancelled", resource=resource,
                extra={"transaction_id": result.id, "kind": kind.value}
            )
            raise

        log_action(
            self.logger, "info", f"Transaction applied: {kind.value}",
            action="transaction_applied", resource=resource,
            extra={
                "transaction_id": result.id,
                "kind": kind.value,
                "amount": str(result.amount),
                "balance_before": str(result.balance_before),
                "balance_after": str(result.balance_after)
            }
        )

        try:
            self._write_balance(account)
        except PersistenceFailure as e:
            result.transition(TransactionState.FLUSH_FAILED)
            result.error = str(e)
            e.result = result
            raise

        result.flushed_at = datetime.now(timezone.utc)
        result.transition(TransactionState.FLUSHED)
        return result

    def deposit(self, account_id: int, amount: AmountLike, **kwargs) -> TransactionResult:
        return self.execute(account_id, TransactionKind.DEPOSIT, amount, **kwargs)

    def withdraw(self, account_id: int, amount: AmountLike, **kwargs) -> TransactionResult:
        return self.execute(account_id, TransactionKind.WITHDRAW, amount, **kwargs)

    def get_balance(self, account_id: int) -> Decimal:
        """Read a balance under the account lock"""
        account = self.ledger.get(account_id)
        with self.locks.acquire(account_id):
            return account.balance

    def flush(self, account_id: int) -> Decimal:
        """
        Write the current in-memory balance of an account to storage

        This is the retry path after PersistenceFailure: it never re-applies
        a mutation.

        Returns:
            The balance that was written
        """
        account = self.ledger.get(account_id)
        balance = self._write_balance(account)
        log_action(
            self.logger, "info", "Balance flushed",
            action="balance_flushed", resource=f"account:{account_id}",
            extra={"balance": str(balance)}
        )
        return balance

    def flush_all(self) -> List[int]:
        """
        Flush every ledger account

        Returns:
            Ids of accounts whose flush failed
        """
        failed = []
        for account in self.ledger.all_accounts():
            try:
                self._write_balance(account)
            except PersistenceFailure:
                failed.append(account.id)
        return failed

    def _apply(self, account: Account, result: TransactionResult) -> None:
        """Validate and mutate; caller holds the account lock"""
        result.balance_before = account.balance
        try:
            if result.kind == TransactionKind.WITHDRAW:
                account.ensure_can_withdraw(result.amount)
            result.transition(TransactionState.VALIDATED)

            if result.kind == TransactionKind.DEPOSIT:
                account.deposit(result.amount)
            else:
                account.withdraw(result.amount)
        except (InvalidAmount, PolicyViolation) as e:
            self._reject(result, e)
            raise

        result.balance_after = account.balance
        result.applied_at = datetime.now(timezone.utc)
        result.transition(TransactionState.APPLIED)

    def _reject(self, result: TransactionResult, error: Exception) -> None:
        result.transition(TransactionState.REJECTED)
        result.error = str(error)
        log_action(
            self.logger, "info", f"Transaction rejected: {type(error).__name__}",
            action="transaction_rejected", resource=f"account:{result.account_id}",
            extra={
                "transaction_id": result.id,
                "kind": result.kind.value,
                "amount": str(result.amount) if result.amount is not None else None,
                "reason": str(error)
            }
        )

    def _write_balance(self, account: Account) -> Decimal:
        """
        Persist the latest balance of an account

        Durable writes for one account are serialised by its flush lock, and
        the balance is read under the mutation lock inside it, so the last
        write always carries the newest committed balance.

        Raises:
            PersistenceFailure: The gateway could not store the balance
        """
        with self.locks.flush_lock_for(account.id):
            with self.locks.acquire(account.id):
                balance = account.balance
            try:
                self.gateway.update_balance(account.id, balance)
            except Exception as e:
                log_action(
                    self.logger, "error", f"Balance flush failed: {e}",
                    action="flush_failed", resource=f"account:{account.id}",
                    extra={"balance": str(balance), "error_type": type(e).__name__}
                )
                raise PersistenceFailure(
                    account.id,
                    f"Account {account.id} balance {balance} not persisted: {e}"
                ) from e
        return balance
