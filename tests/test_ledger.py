"""
Test suite for the in-memory ledger
"""

import threading
import pytest
from decimal import Decimal

from bank_ledger.accounts import Account
from bank_ledger.errors import AccountNotFound
from bank_ledger.ledger import Ledger


def make_account(account_id, name="Holder", balance="0"):
    return Account(id=account_id, name=name, credential_hash="pw", balance=Decimal(balance))


class TestLedger:
    """Test ledger put/get/listing"""

    def setup_method(self):
        """Set up test fixtures"""
        self.ledger = Ledger()

    def test_get_unknown_id(self):
        with pytest.raises(AccountNotFound) as exc_info:
            self.ledger.get(4242)
        assert exc_info.value.account_id == 4242
        assert "4242" in str(exc_info.value)

    def test_put_then_get_returns_same_instance(self):
        account = make_account(1001)
        self.ledger.put(account)
        assert self.ledger.get(1001) is account

    def test_put_replaces_last_writer_wins(self):
        first = make_account(1001, name="First")
        second = make_account(1001, name="Second")

        self.ledger.put(first)
        self.ledger.put(second)

        assert self.ledger.get(1001) is second
        assert len(self.ledger) == 1

    def test_all_accounts_in_insertion_order(self):
        for account_id in (1003, 1001, 1002):
            self.ledger.put(make_account(account_id))

        assert [a.id for a in self.ledger.all_accounts()] == [1003, 1001, 1002]
        assert self.ledger.ids() == [1003, 1001, 1002]

    def test_all_accounts_is_a_snapshot(self):
        self.ledger.put(make_account(1))
        snapshot = self.ledger.all_accounts()
        self.ledger.put(make_account(2))

        assert len(snapshot) == 1
        assert len(self.ledger.all_accounts()) == 2

    def test_contains(self):
        self.ledger.put(make_account(7))
        assert self.ledger.contains(7)
        assert 7 in self.ledger
        assert not self.ledger.contains(8)

    def test_load_bulk(self):
        count = self.ledger.load(make_account(i) for i in range(1000, 1005))
        assert count == 5
        assert len(self.ledger) == 5

    def test_no_remove_operation(self):
        assert not hasattr(self.ledger, "remove")

    def test_concurrent_puts(self):
        """Concurrent inserts from many threads all land"""
        errors = []

        def insert_range(start):
            try:
                for i in range(start, start + 100):
                    self.ledger.put(make_account(i))
                    self.ledger.get(i)
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=insert_range, args=(n * 100,)) for n in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert len(self.ledger) == 800
