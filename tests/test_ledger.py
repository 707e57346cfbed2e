"""
Test suite for the ledger engine

Tests registration, authentication, withdrawals, wire transfers and the
card flow against an in-memory accounts list.
"""

import pytest
from decimal import Decimal
from datetime import datetime, timezone

from wallet_ledger.config import WalletConfig
from wallet_ledger.currency import Money
from wallet_ledger.errors import (
    AccountNotFoundError, BelowMinimumError, CardNotEligibleError,
    CardNotFoundError, DuplicateAccountError, FeatureDisabledError,
    InsufficientFundsError, InvalidAmountError, InvalidCredentialsError,
    InvalidInputError
)
from wallet_ledger.ledger import LedgerEngine
from wallet_ledger.transactions import TransactionKind


NOW = datetime(2025, 12, 9, 10, 0, tzinfo=timezone.utc)


def eur(value) -> Money:
    return Money(Decimal(str(value)))


class TestRegistration:
    """Test account registration and authentication"""
    
    def setup_method(self):
        self.engine = LedgerEngine(WalletConfig())
        self.accounts = []
    
    def test_register_credits_welcome_bonus(self):
        """Test register credits welcome bonus"""
        result = self.engine.register(self.accounts, "Alice", "a@x.com", "111", "0000", now=NOW)
        
        account = result.account
        assert account.balance == eur(1800)
        assert len(account.transactions) == 1
        
        bonus = account.transactions[0]
        assert bonus.kind == TransactionKind.CREDIT
        assert bonus.description == "Delux Welcome Bonus"
        assert bonus.balance_after == eur(1800)
        assert result.audit_entries[0].email == "a@x.com"
        assert self.accounts == [account]
    
    def test_duplicate_email_rejected(self):
        """Test duplicate email rejected"""
        self.engine.register(self.accounts, "Alice", "a@x.com", "111", "0000", now=NOW)
        
        with pytest.raises(DuplicateAccountError):
            self.engine.register(self.accounts, "Alice Two", "a@x.com", "999", "1234", now=NOW)
        assert len(self.accounts) == 1
    
    def test_duplicate_phone_rejected(self):
        """Test duplicate phone rejected"""
        self.engine.register(self.accounts, "Alice", "a@x.com", "111", "0000", now=NOW)
        
        with pytest.raises(DuplicateAccountError):
            self.engine.register(self.accounts, "Bob", "b@x.com", "111", "1234", now=NOW)
    
    @pytest.mark.parametrize("fields", [
        ("", "a@x.com", "111", "0000"),
        ("Alice", "  ", "111", "0000"),
        ("Alice", "a@x.com", None, "0000"),
        ("Alice", "a@x.com", "111", ""),
    ])
    def test_blank_fields_rejected(self, fields):
        """Test blank fields rejected"""
        with pytest.raises(InvalidInputError):
            self.engine.register(self.accounts, *fields, now=NOW)
        assert self.accounts == []
    
    def test_authenticate_by_email_or_phone(self):
        """Test authenticate by email or phone"""
        self.engine.register(self.accounts, "Alice", "a@x.com", "111", "0000", now=NOW)
        
        assert self.engine.authenticate(self.accounts, "a@x.com", "0000").email == "a@x.com"
        assert self.engine.authenticate(self.accounts, "111", "0000").email == "a@x.com"
    
    @pytest.mark.parametrize("identifier,pin", [
        ("a@x.com", "1111"),
        ("A@X.COM", "0000"),
        ("222", "0000"),
        ("", ""),
    ])
    def test_authenticate_rejects_mismatch(self, identifier, pin):
        """Test authenticate rejects mismatch"""
        self.engine.register(self.accounts, "Alice", "a@x.com", "111", "0000", now=NOW)
        
        with pytest.raises(InvalidCredentialsError):
            self.engine.authenticate(self.accounts, identifier, pin)


class TestWithdrawals:
    """Test cash withdrawals"""
    
    def setup_method(self):
        self.engine = LedgerEngine(WalletConfig())
        self.accounts = []
        self.engine.register(self.accounts, "Alice", "a@x.com", "111", "0000", now=NOW)
        self.account = self.accounts[0]
    
    def test_withdraw(self):
        """Test withdraw"""
        result = self.engine.withdraw(self.accounts, "a@x.com", "200", now=NOW)
        
        assert self.account.balance == eur(1600)
        assert result.transaction.kind == TransactionKind.WITHDRAWAL
        assert result.transaction.balance_after == eur(1600)
        assert result.transaction.description == "Withdrawal of 200.00€"
        assert self.account.is_consistent()
    
    def test_below_minimum_rejected(self):
        """Test below minimum rejected"""
        with pytest.raises(BelowMinimumError):
            self.engine.withdraw(self.accounts, "a@x.com", 50, now=NOW)
        assert self.account.balance == eur(1800)
        assert len(self.account.transactions) == 1
    
    def test_insufficient_funds_reported_before_minimum(self):
        """Test insufficient funds reported before minimum"""
        self.engine.withdraw(self.accounts, "a@x.com", "1770", now=NOW)
        assert self.account.balance == eur(30)
        
        with pytest.raises(InsufficientFundsError):
            self.engine.withdraw(self.accounts, "a@x.com", 50, now=NOW)
    
    @pytest.mark.parametrize("amount", ["1e30", "1e27", Decimal("123456789012345678901234567890.99")])
    def test_huge_amount_is_insufficient_funds(self, amount):
        """Test amounts far beyond any balance report insufficient funds"""
        with pytest.raises(InsufficientFundsError):
            self.engine.withdraw(self.accounts, "a@x.com", amount, now=NOW)
        assert self.account.balance == eur(1800)
    
    def test_entire_balance_can_be_withdrawn(self):
        """Test entire balance can be withdrawn"""
        self.engine.withdraw(self.accounts, "a@x.com", "1800", now=NOW)
        assert self.account.balance.is_zero()
    
    @pytest.mark.parametrize("amount", ["abc", "", None, 0, -5, "NaN", "Infinity", True, "0.001"])
    def test_invalid_amounts(self, amount):
        """Test invalid amounts"""
        with pytest.raises(InvalidAmountError):
            self.engine.withdraw(self.accounts, "a@x.com", amount, now=NOW)
        assert self.account.balance == eur(1800)
    
    def test_invalid_amount_checked_before_account(self):
        """Test invalid amount checked before account"""
        with pytest.raises(InvalidAmountError):
            self.engine.withdraw(self.accounts, "nobody@x.com", "abc", now=NOW)
    
    def test_unknown_account(self):
        """Test unknown account"""
        with pytest.raises(AccountNotFoundError):
            self.engine.withdraw(self.accounts, "nobody@x.com", 200, now=NOW)


class TestWireTransfers:
    """Test transfers between accounts"""
    
    def setup_method(self):
        self.engine = LedgerEngine(WalletConfig())
        self.accounts = []
        self.engine.register(self.accounts, "Alice", "a@x.com", "111", "0000", now=NOW)
        self.engine.register(self.accounts, "Bob", "b@x.com", "222", "1111", now=NOW)
        self.alice, self.bob = self.accounts
    
    def test_transfer_posts_matching_legs(self):
        """Test transfer posts matching legs"""
        result = self.engine.wire_transfer(self.accounts, "a@x.com", "b@x.com", "500", now=NOW)
        
        assert self.alice.balance == eur(1300)
        assert self.bob.balance == eur(2300)
        
        sent = self.alice.transactions[-1]
        received = self.bob.transactions[-1]
        assert sent.kind == TransactionKind.WIRE_SENT
        assert sent.to == "b@x.com"
        assert received.kind == TransactionKind.WIRE_RECEIVED
        assert received.sender == "a@x.com"
        assert sent.date == received.date == NOW
        assert sent.amount == received.amount == eur(500)
        
        assert result.counterparty is self.bob
        assert [e.email for e in result.audit_entries] == ["a@x.com", "b@x.com"]
    
    def test_total_is_conserved(self):
        """Test total is conserved"""
        before = self.alice.balance + self.bob.balance
        self.engine.wire_transfer(self.accounts, "a@x.com", "b@x.com", "123.45", now=NOW)
        self.engine.wire_transfer(self.accounts, "b@x.com", "a@x.com", "1000", now=NOW)
        
        assert self.alice.balance + self.bob.balance == before
        assert self.alice.is_consistent() and self.bob.is_consistent()
    
    def test_small_transfers_have_no_minimum(self):
        """Test small transfers have no minimum"""
        self.engine.wire_transfer(self.accounts, "a@x.com", "b@x.com", "0.01", now=NOW)
        assert self.alice.balance == eur("1799.99")
    
    def test_insufficient_funds_changes_nothing(self):
        """Test insufficient funds changes nothing"""
        with pytest.raises(InsufficientFundsError):
            self.engine.wire_transfer(self.accounts, "a@x.com", "b@x.com", "1800.01", now=NOW)
        
        assert self.alice.balance == self.bob.balance == eur(1800)
        assert len(self.alice.transactions) == len(self.bob.transactions) == 1
    
    @pytest.mark.parametrize("sender,recipient,amount", [
        ("a@x.com", "nobody@x.com", "100"),
        ("nobody@x.com", "b@x.com", "100"),
        ("a@x.com", "", "100"),
        ("a@x.com", "b@x.com", "-1"),
        ("a@x.com", "b@x.com", "abc"),
    ])
    def test_invalid_input(self, sender, recipient, amount):
        """Test invalid input"""
        with pytest.raises(InvalidInputError):
            self.engine.wire_transfer(self.accounts, sender, recipient, amount, now=NOW)
        assert self.alice.balance == self.bob.balance == eur(1800)
    
    @pytest.mark.parametrize("amount", ["1e27", "1e30"])
    def test_huge_transfer_is_insufficient_funds(self, amount):
        """Test a transfer far beyond the sender balance"""
        with pytest.raises(InsufficientFundsError):
            self.engine.wire_transfer(self.accounts, "a@x.com", "b@x.com", amount, now=NOW)
        assert self.alice.balance == self.bob.balance == eur(1800)
    
    def test_self_transfer_is_allowed(self):
        """Test self transfer is allowed"""
        self.engine.wire_transfer(self.accounts, "a@x.com", "a@x.com", "100", now=NOW)
        
        assert self.alice.balance == eur(1800)
        assert [t.kind for t in self.alice.transactions[-2:]] == [
            TransactionKind.WIRE_SENT, TransactionKind.WIRE_RECEIVED
        ]
        assert self.alice.is_consistent()


class TestCards:
    """Test card linking and card withdrawals"""
    
    def setup_method(self):
        self.engine = LedgerEngine(WalletConfig())
        self.accounts = []
        self.engine.register(self.accounts, "Alice", "a@x.com", "111", "0000", now=NOW)
        self.account = self.accounts[0]
    
    def add_card(self, number="4111 1111 1111 1111"):
        return self.engine.add_card(
            self.accounts, "a@x.com", number, "12/29", "123", "Alice", "Visa", now=NOW
        ).card
    
    def test_add_card_is_pending(self):
        """Test add card is pending"""
        card = self.add_card()
        
        assert card.card_number == "4111111111111111"
        assert not card.is_active
        assert self.account.cards == [card]
        assert self.account.balance == eur(1800)
    
    def test_short_card_number_rejected(self):
        """Test short card number rejected"""
        with pytest.raises(InvalidInputError):
            self.add_card("4111 1111")
    
    def test_missing_card_fields_rejected(self):
        """Test missing card fields rejected"""
        with pytest.raises(InvalidInputError):
            self.engine.add_card(self.accounts, "a@x.com", "4111111111111111", "", "123", "Alice", "Visa")
    
    def test_pending_card_cannot_receive_withdrawals(self):
        """Test pending card cannot receive withdrawals"""
        card = self.add_card()
        
        with pytest.raises(CardNotEligibleError):
            self.engine.withdraw_to_card(self.accounts, "a@x.com", card.id, 200, now=NOW)
    
    def test_unknown_card_not_eligible(self):
        """Test unknown card not eligible"""
        with pytest.raises(CardNotEligibleError):
            self.engine.withdraw_to_card(self.accounts, "a@x.com", "missing", 200, now=NOW)
    
    def test_confirm_then_withdraw(self):
        """Test confirm then withdraw"""
        card = self.add_card()
        self.engine.confirm_card(self.accounts, "a@x.com", card.id, "4321", now=NOW)
        assert card.is_active
        
        result = self.engine.withdraw_to_card(self.accounts, "a@x.com", card.id, "250", now=NOW)
        
        transaction = result.transaction
        assert transaction.kind == TransactionKind.CARD_WITHDRAWAL
        assert transaction.card_details == {"last4": "1111", "cardType": "Visa"}
        assert transaction.description == "Withdrawal of 250.00€ to card ending in 1111"
        assert self.account.balance == eur(1550)
    
    def test_card_withdrawal_rules(self):
        """Test card withdrawal rules"""
        card = self.add_card()
        self.engine.confirm_card(self.accounts, "a@x.com", card.id, "4321", now=NOW)
        
        with pytest.raises(BelowMinimumError):
            self.engine.withdraw_to_card(self.accounts, "a@x.com", card.id, 99, now=NOW)
        with pytest.raises(InsufficientFundsError):
            self.engine.withdraw_to_card(self.accounts, "a@x.com", card.id, 5000, now=NOW)
    
    def test_confirm_unknown_card(self):
        """Test confirm unknown card"""
        with pytest.raises(CardNotFoundError):
            self.engine.confirm_card(self.accounts, "a@x.com", "missing", "4321", now=NOW)
    
    def test_confirm_requires_otp(self):
        """Test confirm requires otp"""
        card = self.add_card()
        with pytest.raises(InvalidInputError):
            self.engine.confirm_card(self.accounts, "a@x.com", card.id, " ", now=NOW)
        assert not card.is_active
    
    def test_cards_can_be_disabled(self):
        """Test cards can be disabled"""
        engine = LedgerEngine(WalletConfig(enable_cards=False))
        
        with pytest.raises(FeatureDisabledError):
            engine.add_card(self.accounts, "a@x.com", "4111111111111111", "12/29", "123", "Alice", "Visa")
        with pytest.raises(FeatureDisabledError):
            engine.withdraw_to_card(self.accounts, "a@x.com", "any", 200)
    
    def test_update_profile(self):
        """Test update profile"""
        card = self.add_card()
        self.engine.update_profile(self.accounts, "a@x.com", city="Paris", default_withdraw_card_id=card.id)
        self.engine.update_profile(self.accounts, "a@x.com", city="", country="France")
        
        assert self.account.profile.city == "Paris"
        assert self.account.profile.country == "France"
        assert self.account.profile.default_withdraw_card_id == card.id
