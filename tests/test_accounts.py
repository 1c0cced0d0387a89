"""
Test suite for accounts module

Tests deposit/withdraw rules for each variant, credential checks and the
durable record round trip.
"""

import pytest
from decimal import Decimal

from bank_ledger.accounts import Account, AccountVariant, WITHDRAW_RULES
from bank_ledger.errors import InsufficientFunds, InvalidAmount, OverdraftExceeded


def make_standard(balance="1000.00", account_id=1001):
    return Account(id=account_id, name="Alice", credential_hash="s3cret", balance=Decimal(balance))


def make_overdraft(balance="100.00", limit="1000.00", account_id=2001):
    return Account(
        id=account_id,
        name="Bob",
        credential_hash="token",
        balance=Decimal(balance),
        variant=AccountVariant.OVERDRAFT,
        overdraft_limit=Decimal(limit)
    )


class TestAccount:
    """Test Account construction"""

    def test_valid_standard_account(self):
        account = make_standard()

        assert account.id == 1001
        assert account.name == "Alice"
        assert account.balance == Decimal('1000.00')
        assert account.variant == AccountVariant.STANDARD
        assert account.overdraft_limit is None
        assert account.available_funds == Decimal('1000.00')

    def test_valid_overdraft_account(self):
        account = make_overdraft()

        assert account.variant == AccountVariant.OVERDRAFT
        assert account.overdraft_limit == Decimal('1000.00')
        assert account.available_funds == Decimal('1100.00')

    def test_overdraft_requires_limit(self):
        with pytest.raises(ValueError, match="requires an overdraft limit"):
            Account(id=1, name="X", credential_hash="t", variant=AccountVariant.OVERDRAFT)

    def test_overdraft_limit_must_be_positive(self):
        with pytest.raises(ValueError, match="must be positive"):
            make_overdraft(limit="0")

    def test_standard_rejects_limit(self):
        with pytest.raises(ValueError, match="cannot carry an overdraft limit"):
            Account(id=1, name="X", credential_hash="t", overdraft_limit=Decimal('10'))

    def test_balance_normalised(self):
        account = Account(id=1, name="X", credential_hash="t", balance="12.345")
        assert account.balance == Decimal('12.35')

    def test_credential_not_in_repr(self):
        assert "s3cret" not in repr(make_standard())

    def test_every_variant_has_a_rule(self):
        assert set(WITHDRAW_RULES) == set(AccountVariant)


class TestDeposit:
    """Test deposits"""

    def test_deposit_adds_to_balance(self):
        account = make_standard()
        assert account.deposit(Decimal('200')) == Decimal('1200.00')
        assert account.balance == Decimal('1200.00')

    @pytest.mark.parametrize("amount", [0, -5, "-0.01"])
    def test_deposit_rejects_non_positive(self, amount):
        account = make_standard()
        with pytest.raises(InvalidAmount):
            account.deposit(amount)
        assert account.balance == Decimal('1000.00')

    def test_deposit_has_no_upper_bound(self):
        account = make_standard()
        account.deposit(Decimal('1000000000000'))
        assert account.balance == Decimal('1000000001000.00')

    def test_deposits_past_28_digits_keep_cents(self):
        account = make_standard(balance="0")
        account.deposit(Decimal("60000000000000000000000000.01"))
        account.deposit(Decimal("60000000000000000000000000.01"))
        assert account.balance == Decimal("120000000000000000000000000.02")

    def test_deposit_past_supported_digits_leaves_balance(self):
        balance = "9" * 62 + ".99"
        account = make_standard(balance=balance)
        with pytest.raises(InvalidAmount):
            account.deposit(Decimal("0.01"))
        assert account.balance == Decimal(balance)

    def test_deposit_updates_timestamp(self):
        account = make_standard()
        before = account.updated_at
        account.deposit(1)
        assert account.updated_at >= before


class TestStandardWithdraw:
    """Test the standard withdraw rule"""

    def test_withdraw_within_balance(self):
        account = make_standard()
        assert account.withdraw(Decimal('400')) == Decimal('600.00')

    def test_withdraw_entire_balance(self):
        account = make_standard()
        account.withdraw(Decimal('1000'))
        assert account.balance == Decimal('0.00')

    def test_withdraw_more_than_balance(self):
        account = make_standard()
        with pytest.raises(InsufficientFunds):
            account.withdraw(Decimal('1000.01'))
        assert account.balance == Decimal('1000.00')

    @pytest.mark.parametrize("amount", [0, -5])
    def test_withdraw_rejects_non_positive(self, amount):
        account = make_standard()
        with pytest.raises(InvalidAmount):
            account.withdraw(amount)
        assert account.balance == Decimal('1000.00')

    def test_scenario_deposit_then_withdrawals(self):
        account = make_standard()

        account.deposit(200)
        assert account.balance == Decimal('1200.00')

        with pytest.raises(InsufficientFunds):
            account.withdraw(1500)
        assert account.balance == Decimal('1200.00')

        account.withdraw(1200)
        assert account.balance == Decimal('0.00')


class TestOverdraftWithdraw:
    """Test the overdraft withdraw rule"""

    def test_withdraw_into_overdraft(self):
        account = make_overdraft()
        account.withdraw(Decimal('600'))
        assert account.balance == Decimal('-500.00')

    def test_withdraw_to_exact_limit(self):
        account = make_overdraft()
        account.withdraw(Decimal('1100'))
        assert account.balance == Decimal('-1000.00')

    def test_withdraw_past_limit(self):
        account = make_overdraft()
        with pytest.raises(OverdraftExceeded):
            account.withdraw(Decimal('1100.01'))
        assert account.balance == Decimal('100.00')

    def test_withdraw_all_available_past_28_digits(self):
        account = make_overdraft(balance="5" + "0" * 29 + ".05", limit="1000")
        account.withdraw(Decimal("5" + "0" * 25 + "1000.05"))
        assert account.balance == Decimal("-1000.00")

    def test_overdraft_is_not_insufficient_funds(self):
        account = make_overdraft(balance="0")
        with pytest.raises(OverdraftExceeded):
            account.withdraw(Decimal('5000'))

    def test_deposit_repays_overdraft(self):
        account = make_overdraft(balance="0")
        account.withdraw(500)
        account.deposit(700)
        assert account.balance == Decimal('200.00')


class TestCredential:
    """Test credential comparison"""

    def test_exact_match(self):
        assert make_standard().check_credential("s3cret")

    def test_case_sensitive(self):
        assert not make_standard().check_credential("S3CRET")

    def test_no_partial_match(self):
        account = make_standard()
        assert not account.check_credential("s3cre")
        assert not account.check_credential("s3cret ")
        assert not account.check_credential("")

    def test_non_string_never_raises(self):
        account = make_standard()
        assert not account.check_credential(None)
        assert not account.check_credential(12345)
        assert not account.check_credential(b"s3cret")


class TestRecord:
    """Test conversion to and from the durable record"""

    def test_round_trip_keeps_policy(self):
        account = make_overdraft(balance="-250.50")
        restored = Account.from_record(account.to_record())

        assert restored.id == account.id
        assert restored.name == account.name
        assert restored.credential_hash == account.credential_hash
        assert restored.balance == Decimal('-250.50')
        assert restored.variant == AccountVariant.OVERDRAFT
        assert restored.overdraft_limit == Decimal('1000.00')
        assert restored.created_at == account.created_at

    def test_record_stores_decimals_as_strings(self):
        record = make_standard().to_record()
        assert record["balance"] == "1000.00"
        assert record["overdraft_limit"] is None
        assert record["variant"] == "standard"

    def test_minimal_record_defaults_to_standard(self):
        account = Account.from_record({
            "id": "1234", "name": "Legacy", "credential_hash": "pw", "balance": "50"
        })
        assert account.id == 1234
        assert account.variant == AccountVariant.STANDARD
        assert account.balance == Decimal('50.00')

    def test_describe(self):
        assert make_standard().describe() == "ID: 1001 | Name: Alice | Balance: 1,000.00"
