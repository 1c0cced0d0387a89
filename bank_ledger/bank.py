"""
Banking Service Module

The surface front ends (console, GUI, HTTP) call: create account,
authenticate, deposit/withdraw, list accounts, get balance. Wires the ledger,
the transaction executor and the persistence gateway together and owns the
explicit cache population paths (startup load and per-account refresh).
"""

from decimal import Decimal
from dataclasses import dataclass
from typing import Iterable, List, Optional, Union
import threading

from .accounts import Account, AccountVariant
from .config import BankLedgerConfig, get_config
from .errors import (
    AccountNotFound, AuthenticationFailed, DuplicateRecordError, InvalidAmount,
    PersistenceError, PersistenceFailure
)
from .gateway import PersistenceGateway, StoragePersistenceGateway
from .ledger import Ledger
from .logging_config import get_logger, log_action, setup_logging
from .money import AmountLike, ZERO, to_amount
from .storage import create_storage
from .transactions import AccountLocks, TransactionExecutor, TransactionKind, TransactionResult

MAX_ID_ATTEMPTS = 10


@dataclass(frozen=True)
class AccountSummary:
    """Read-only view of an account for listings"""
    id: int
    name: str
    balance: Decimal
    variant: AccountVariant

    @classmethod
    def of(cls, account: Account) -> 'AccountSummary':
        return cls(id=account.id, name=account.name, balance=account.balance, variant=account.variant)


class AccountIdAllocator:
    """
    Hands out increasing integer account ids, never reusing one in-process
    """

    def __init__(self, start: int = 1000):
        self._next = start
        self._lock = threading.Lock()

    def reserve_above(self, ids: Iterable[int]) -> None:
        """Make sure future ids are larger than every id given"""
        with self._lock:
            for account_id in ids:
                if account_id >= self._next:
                    self._next = account_id + 1

    def allocate(self) -> int:
        with self._lock:
            account_id = self._next
            self._next += 1
            return account_id


class BankingService:
    """
    Account operations exposed to front ends
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        ledger: Optional[Ledger] = None,
        executor: Optional[TransactionExecutor] = None,
        id_allocator: Optional[AccountIdAllocator] = None,
        config: Optional[BankLedgerConfig] = None
    ):
        self.config = config or get_config()
        self.gateway = gateway
        self.ledger = ledger or Ledger()
        self.executor = executor or TransactionExecutor(
            self.ledger, self.gateway, AccountLocks(), self.config
        )
        self.id_allocator = id_allocator or AccountIdAllocator(self.config.account_id_start)
        self._refresh_lock = threading.Lock()
        self.logger = get_logger("bank_ledger.bank")

    @classmethod
    def from_config(cls, config: Optional[BankLedgerConfig] = None) -> 'BankingService':
        """
        Build a service from configuration

        Applies config.log_level and config.log_format to the package logger
        and opens the storage backend named by config.database_url.
        """
        config = config or get_config()
        setup_logging(config.log_level, config.log_format)
        storage = create_storage(config.database_url)
        gateway = StoragePersistenceGateway(storage, config.accounts_table)
        return cls(gateway, config=config)

    def load_accounts(self) -> int:
        """
        Seed the ledger from durable storage (startup)

        Returns:
            Number of accounts loaded
        """
        try:
            accounts = self.gateway.fetch_all()
        except PersistenceError as e:
            log_action(
                self.logger, "error", f"Startup load failed: {e}",
                action="load_accounts_failed"
            )
            raise
        count = self.ledger.load(accounts)
        self.id_allocator.reserve_above(self.ledger.ids())
        log_action(
            self.logger, "info", f"Loaded {count} accounts",
            action="load_accounts", extra={"count": count}
        )
        return count

    def refresh_account(self, account_id: int) -> Account:
        """
        Pull one account from durable storage into the ledger

        An account already in the ledger is returned as is: the in-memory
        instance is authoritative and is never replaced by the stored copy.

        Raises:
            AccountNotFound: The store has no such account
        """
        if self.ledger.contains(account_id):
            return self.ledger.get(account_id)

        account = self.gateway.fetch(account_id)
        if account is None:
            raise AccountNotFound(account_id)

        # Another caller may have loaded it meanwhile; keep whichever came first
        with self._refresh_lock:
            if self.ledger.contains(account_id):
                return self.ledger.get(account_id)
            self.ledger.put(account)
        self.id_allocator.reserve_above([account_id])
        return account

    def create_account(
        self,
        name: str,
        credential: str,
        initial_balance: AmountLike = ZERO,
        variant: Union[AccountVariant, str] = AccountVariant.STANDARD,
        overdraft_limit: Optional[AmountLike] = None
    ) -> Account:
        """
        Create a new account

        Args:
            name: Display name
            credential: Opaque credential token (see credentials.hash_credential)
            initial_balance: Opening balance, must be >= 0
            variant: Withdraw policy
            overdraft_limit: Limit for OVERDRAFT accounts (config default if omitted)

        Returns:
            Created Account, already stored and in the ledger

        Raises:
            InvalidAmount: Negative opening balance
            PersistenceFailure: The durable record could not be created
        """
        variant = AccountVariant(variant)
        balance = to_amount(initial_balance)
        if balance < ZERO:
            raise InvalidAmount(f"Initial balance must be >= 0, got {balance}")

        if variant == AccountVariant.OVERDRAFT and overdraft_limit is None:
            overdraft_limit = self.config.overdraft_limit

        limit = to_amount(overdraft_limit) if overdraft_limit is not None else None

        # Ids already taken in the store but not loaded here are skipped
        for attempt in range(MAX_ID_ATTEMPTS):
            account = Account(
                id=self.id_allocator.allocate(),
                name=name,
                credential_hash=credential,
                balance=balance,
                variant=variant,
                overdraft_limit=limit
            )
            try:
                self.gateway.create(account)
                break
            except DuplicateRecordError:
                if attempt == MAX_ID_ATTEMPTS - 1:
                    raise PersistenceFailure(
                        account.id, f"No free account id after {MAX_ID_ATTEMPTS} attempts"
                    )
            except PersistenceError as e:
                log_action(
                    self.logger, "error", f"Account creation failed: {e}",
                    action="account_create_failed", resource=f"account:{account.id}"
                )
                raise PersistenceFailure(account.id, f"Account {account.id} was not created: {e}") from e

        self.ledger.put(account)

        log_action(
            self.logger, "info", "Account created",
            action="account_created", resource=f"account:{account.id}",
            extra={
                "name": name,
                "variant": variant.value,
                "initial_balance": str(balance)
            }
        )
        return account

    def authenticate(self, account_id: int, credential: str) -> Account:
        """
        Check a credential token against an account

        Raises:
            AccountNotFound: Unknown account id
            AuthenticationFailed: Credential does not match
        """
        account = self.ledger.get(account_id)
        if not account.check_credential(credential):
            log_action(
                self.logger, "warning", "Authentication failed",
                action="authentication_failed", resource=f"account:{account_id}"
            )
            raise AuthenticationFailed(f"Wrong credential for account {account_id}")
        return account

    def execute(self, account_id: int, kind: Union[TransactionKind, str],
                amount: AmountLike, **kwargs) -> TransactionResult:
        return self.executor.execute(account_id, kind, amount, **kwargs)

    def deposit(self, account_id: int, amount: AmountLike, **kwargs) -> TransactionResult:
        return self.executor.deposit(account_id, amount, **kwargs)

    def withdraw(self, account_id: int, amount: AmountLike, **kwargs) -> TransactionResult:
        return self.executor.withdraw(account_id, amount, **kwargs)

    def get_balance(self, account_id: int) -> Decimal:
        return self.executor.get_balance(account_id)

    def list_accounts(self) -> List[AccountSummary]:
        """Snapshot of all ledger accounts in insertion order"""
        summaries = []
        for account in self.ledger.all_accounts():
            with self.executor.locks.acquire(account.id):
                summaries.append(AccountSummary.of(account))
        return summaries

    def flush(self, account_id: int) -> Decimal:
        return self.executor.flush(account_id)

    def flush_all(self) -> List[int]:
        return self.executor.flush_all()
