"""
Persistence Gateway Module

The narrow durable-storage contract the ledger core depends on, and its
implementation over a StorageInterface backend. The core only calls the
gateway at defined checkpoints: account creation, startup load, explicit
refresh, and the flush after each committed transaction.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from datetime import datetime, timezone
from typing import List, Optional

from .accounts import Account
from .errors import DuplicateRecordError, PersistenceError
from .storage import StorageInterface
from .logging_config import get_logger, log_action


class PersistenceGateway(ABC):
    """Durable store for account records"""

    @abstractmethod
    def create(self, account: Account) -> None:
        """Insert a new durable record; fails on a duplicate id"""
        pass

    @abstractmethod
    def fetch(self, account_id: int) -> Optional[Account]:
        """Point lookup"""
        pass

    @abstractmethod
    def fetch_all(self) -> List[Account]:
        """Full scan, used at startup to seed the ledger"""
        pass

    @abstractmethod
    def update_balance(self, account_id: int, balance: Decimal) -> None:
        """Idempotent balance overwrite"""
        pass


class StoragePersistenceGateway(PersistenceGateway):
    """
    Gateway over one table of a storage backend

    Every backend error is re-raised as PersistenceError so callers deal
    with a single failure type.
    """

    def __init__(self, storage: StorageInterface, table: str = "accounts"):
        self.storage = storage
        self.table = table
        self.logger = get_logger("bank_ledger.gateway")

    def create(self, account: Account) -> None:
        try:
            self.storage.insert(self.table, str(account.id), account.to_record())
        except DuplicateRecordError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to create account {account.id}: {e}") from e

    def fetch(self, account_id: int) -> Optional[Account]:
        try:
            data = self.storage.load(self.table, str(account_id))
        except Exception as e:
            raise PersistenceError(f"Failed to fetch account {account_id}: {e}") from e
        if data is None:
            return None
        return self._to_account(data)

    def fetch_all(self) -> List[Account]:
        try:
            records = self.storage.load_all(self.table)
        except Exception as e:
            raise PersistenceError(f"Failed to load accounts: {e}") from e
        return [self._to_account(data) for data in records]

    def update_balance(self, account_id: int, balance: Decimal) -> None:
        """
        Overwrite the stored balance

        Writing the same balance twice leaves the record unchanged apart from
        its updated_at stamp.

        Raises:
            PersistenceError: If the record is missing or the backend fails
        """
        record_id = str(account_id)
        try:
            data = self.storage.load(self.table, record_id)
            if data is None:
                raise PersistenceError(f"Account {account_id} has no durable record")
            data["balance"] = str(balance)
            data["updated_at"] = datetime.now(timezone.utc).isoformat()
            self.storage.save(self.table, record_id, data)
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to update balance of account {account_id}: {e}") from e

    def _to_account(self, data) -> Account:
        try:
            return Account.from_record(data)
        except (KeyError, ValueError, TypeError, ArithmeticError) as e:
            log_action(
                self.logger, "error", f"Corrupt account record: {e}",
                action="corrupt_record", resource=f"account:{data.get('id')}",
                extra={"table": self.table, "error_type": type(e).__name__}
            )
            raise PersistenceError(f"Corrupt account record {data.get('id')!r}") from e
