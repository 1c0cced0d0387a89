"""
Ledger Module

In-memory, authoritative mapping from account id to Account for the running
process. The ledger never reaches into durable storage on its own: it is
populated explicitly (startup load, account creation, explicit refresh).
"""

import threading
from typing import Dict, Iterable, List

from .accounts import Account
from .errors import AccountNotFound


class Ledger:
    """
    Thread-safe account map

    The map lock only guards the dictionary. It is unrelated to the
    per-account mutation locks held while balances change.
    """

    def __init__(self):
        self._accounts: Dict[int, Account] = {}
        self._lock = threading.RLock()

    def put(self, account: Account) -> None:
        """Insert or replace the entry for account.id (last writer wins)"""
        with self._lock:
            self._accounts[account.id] = account

    def get(self, account_id: int) -> Account:
        """
        Get account by ID

        Raises:
            AccountNotFound: If the id is not in the ledger
        """
        with self._lock:
            account = self._accounts.get(account_id)
        if account is None:
            raise AccountNotFound(account_id)
        return account

    def contains(self, account_id: int) -> bool:
        with self._lock:
            return account_id in self._accounts

    def all_accounts(self) -> List[Account]:
        """Snapshot of all accounts in insertion order"""
        with self._lock:
            return list(self._accounts.values())

    def ids(self) -> List[int]:
        with self._lock:
            return list(self._accounts.keys())

    def load(self, accounts: Iterable[Account]) -> int:
        """Bulk insert used when seeding from durable storage"""
        count = 0
        with self._lock:
            for account in accounts:
                self._accounts[account.id] = account
                count += 1
        return count

    def __len__(self) -> int:
        with self._lock:
            return len(self._accounts)

    def __contains__(self, account_id: object) -> bool:
        with self._lock:
            return account_id in self._accounts
