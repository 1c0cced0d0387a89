#!/usr/bin/env python3
"""
Example: Concurrent deposit and withdraw on one account

Runs a deposit thread and a withdraw thread against the same account and
shows that the per-account lock keeps the balance consistent. Uses the
storage backend named by BANK_LEDGER_DATABASE_URL (in-memory by default).
"""

import os
import sys
import threading
from decimal import Decimal

# Add the package to the path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from bank_ledger.bank import BankingService
from bank_ledger.config import get_config
from bank_ledger.credentials import hash_credential, token_for
from bank_ledger.errors import BankLedgerError
from bank_ledger.money import format_amount


def run_transaction(bank, account_id, kind, amount):
    name = threading.current_thread().name
    try:
        result = bank.execute(account_id, kind, amount)
        print(f"   {name}: {kind} {format_amount(result.amount)} -> balance {format_amount(result.balance_after)}")
    except BankLedgerError as e:
        print(f"   {name} FAILED: {e}")


def main():
    config = get_config()

    print("Bank Ledger - concurrent transactions example")
    print("=" * 50)

    print(f"\n1. Storage backend: {config.database_url}")
    bank = BankingService.from_config(config)
    loaded = bank.load_accounts()
    print(f"   Loaded {loaded} existing accounts")

    print("\n2. Create account")
    stored = hash_credential("demo-secret")
    account = bank.create_account("Demo Holder", stored, Decimal('1000.00'), variant="overdraft")
    bank.authenticate(account.id, token_for("demo-secret", stored))
    print(f"   {account.describe()} ({account.variant.value}, limit {format_amount(account.overdraft_limit)})")

    print("\n3. Deposit 200 and withdraw 150 concurrently")
    threads = [
        threading.Thread(target=run_transaction, args=(bank, account.id, "deposit", 200), name="DepositThread"),
        threading.Thread(target=run_transaction, args=(bank, account.id, "withdraw", 150), name="WithdrawThread"),
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    print(f"\n4. Final balance: {format_amount(bank.get_balance(account.id))}")

    print("\n5. Accounts")
    for summary in bank.list_accounts():
        print(f"   ID: {summary.id} | Name: {summary.name} | Balance: {format_amount(summary.balance)}")


if __name__ == "__main__":
    main()
