"""
Ledger Engine

Balance mutations over the in-process accounts collection: registration,
authentication, withdrawals, card withdrawals and wire transfers, plus the
card and profile maintenance that feeds them. The engine never touches the
store; it mutates the list it is given and reports what it posted so the
caller can persist the collection and write the audit log.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, List, Optional
import uuid

from .accounts import Account, PaymentCard, Profile, find_account
from .clock import utc_now
from .config import WalletConfig, get_config
from .currency import Money, currency_from_code, parse_amount
from .errors import (
    AccountNotFoundError, BelowMinimumError, CardNotEligibleError,
    CardNotFoundError, DuplicateAccountError, FeatureDisabledError,
    InsufficientFundsError, InvalidAmountError, InvalidCredentialsError,
    InvalidInputError
)
from .logging_config import get_logger, log_action
from .transactions import AuditLogEntry, Transaction, TransactionKind


@dataclass
class Posting:
    """A transaction appended to one account"""
    account: Account
    transaction: Transaction


@dataclass
class LedgerResult:
    """Outcome of a ledger operation"""
    account: Account
    postings: List[Posting] = field(default_factory=list)
    counterparty: Optional[Account] = None
    card: Optional[PaymentCard] = None
    
    @property
    def audit_entries(self) -> List[AuditLogEntry]:
        """One audit record per monetary movement"""
        return [
            AuditLogEntry.for_transaction(posting.account.email, posting.transaction)
            for posting in self.postings
        ]
    
    @property
    def transaction(self) -> Optional[Transaction]:
        """The first posted transaction, if any"""
        return self.postings[0].transaction if self.postings else None


def _require(*values: Any) -> bool:
    return all(value is not None and str(value).strip() != "" for value in values)


class LedgerEngine:
    """
    Stateless ledger operations over a list of Account objects
    """
    
    def __init__(self, config: Optional[WalletConfig] = None):
        config = config or get_config()
        self.currency = currency_from_code(config.currency)
        self.welcome_bonus = Money(Decimal(config.welcome_bonus), self.currency)
        self.minimum_withdrawal = Money(Decimal(config.minimum_withdrawal), self.currency)
        self.minimum_card_number_length = config.minimum_card_number_length
        self.cards_enabled = config.enable_cards
        self.logger = get_logger("wallet_ledger.ledger")
    
    def register(
        self,
        accounts: List[Account],
        full_name: str,
        email: str,
        phone_number: str,
        pin: str,
        now: Optional[datetime] = None
    ) -> LedgerResult:
        """
        Create an account credited with the welcome bonus
        
        Raises:
            InvalidInputError: If any field is blank
            DuplicateAccountError: If the email or phone number is taken
        """
        if not _require(full_name, email, phone_number, pin):
            raise InvalidInputError("All fields are required.")
        
        if any(a.email == email or a.phone_number == phone_number for a in accounts):
            raise DuplicateAccountError("Email or phone number already registered.")
        
        now = now or utc_now()
        account = Account(
            full_name=full_name,
            email=email,
            phone_number=phone_number,
            pin=pin,
            balance=Money.zero(self.currency),
            profile=Profile()
        )
        transaction = account.apply(
            TransactionKind.CREDIT,
            self.welcome_bonus,
            now,
            "Delux Welcome Bonus"
        )
        accounts.append(account)
        
        log_action(
            self.logger, "info", "Account registered",
            account=email, action="register", resource=f"account:{email}",
            extra={"welcome_bonus": self.welcome_bonus.to_json()}
        )
        
        return LedgerResult(account=account, postings=[Posting(account, transaction)])
    
    def authenticate(self, accounts: List[Account], identifier: str, pin: str) -> Account:
        """
        Match an email or phone number together with the exact PIN
        
        Raises:
            InvalidCredentialsError: If no account matches both
        """
        if _require(identifier, pin):
            for account in accounts:
                if (account.email == identifier or account.phone_number == identifier) and account.pin == pin:
                    return account
        
        log_action(
            self.logger, "warning", "Authentication failed",
            action="authenticate", resource=f"identifier:{identifier}"
        )
        raise InvalidCredentialsError()
    
    def get_account(self, accounts: List[Account], email: str) -> Account:
        """
        Raises:
            AccountNotFoundError: If no account has this email
        """
        account = find_account(accounts, email)
        if account is None:
            raise AccountNotFoundError(f"Account {email} not found.")
        return account
    
    def withdraw(
        self,
        accounts: List[Account],
        email: str,
        amount: Any,
        now: Optional[datetime] = None
    ) -> LedgerResult:
        """
        Debit the account for a withdrawal
        
        Checks run in this order: amount validity, account, funds, then the
        minimum amount. Funds are checked before the minimum so that an
        amount below both reports insufficient funds, as it always has.
        
        Raises:
            InvalidAmountError, AccountNotFoundError, InsufficientFundsError,
            BelowMinimumError
        """
        money = parse_amount(amount, self.currency)
        account = self.get_account(accounts, email)
        self._check_withdrawal(account, money)
        
        transaction = account.apply(
            TransactionKind.WITHDRAWAL,
            money,
            now or utc_now(),
            f"Withdrawal of {money.to_string()}"
        )
        
        log_action(
            self.logger, "info", "Withdrawal posted",
            account=email, action="withdraw", resource=f"account:{email}",
            extra={"amount": money.to_json(), "balance": account.balance.to_json()}
        )
        
        return LedgerResult(account=account, postings=[Posting(account, transaction)])
    
    def withdraw_to_card(
        self,
        accounts: List[Account],
        email: str,
        card_id: str,
        amount: Any,
        now: Optional[datetime] = None
    ) -> LedgerResult:
        """
        Debit the account for a payout to one of its active cards
        
        Raises:
            FeatureDisabledError, InvalidAmountError, AccountNotFoundError,
            CardNotEligibleError, InsufficientFundsError, BelowMinimumError
        """
        self._require_cards()
        money = parse_amount(amount, self.currency)
        account = self.get_account(accounts, email)
        
        card = account.find_card(card_id) if card_id else None
        if card is None or not card.is_active:
            raise CardNotEligibleError()
        
        self._check_withdrawal(account, money)
        
        transaction = account.apply(
            TransactionKind.CARD_WITHDRAWAL,
            money,
            now or utc_now(),
            f"Withdrawal of {money.to_string()} to card ending in {card.last4}",
            card_details={"last4": card.last4, "cardType": card.card_type}
        )
        
        log_action(
            self.logger, "info", "Card withdrawal posted",
            account=email, action="withdraw_to_card", resource=f"card:{card.id}",
            extra={"amount": money.to_json(), "balance": account.balance.to_json()}
        )
        
        return LedgerResult(account=account, postings=[Posting(account, transaction)], card=card)
    
    def wire_transfer(
        self,
        accounts: List[Account],
        sender_email: str,
        recipient_email: str,
        amount: Any,
        now: Optional[datetime] = None
    ) -> LedgerResult:
        """
        Move funds between two accounts of the same collection
        
        Both legs are applied to the same list with one shared timestamp, so
        a single replace of the collection persists the whole transfer.
        Sending to oneself is allowed.
        
        Raises:
            InvalidInputError: If a field is missing, the amount is not
                positive, or either account is unknown
            InsufficientFundsError: If the sender cannot cover the amount
        """
        if not _require(sender_email, recipient_email):
            raise InvalidInputError()
        try:
            money = parse_amount(amount, self.currency)
        except InvalidAmountError:
            raise InvalidInputError()
        
        sender = find_account(accounts, sender_email)
        if sender is None:
            raise InvalidInputError("Invalid sender email. Account not found.")
        recipient = find_account(accounts, recipient_email)
        if recipient is None:
            raise InvalidInputError("Invalid recipient email. Account not found.")
        
        if not sender.can_afford(money):
            raise InsufficientFundsError(
                f"Sender has insufficient funds. Current balance: {sender.balance.to_string()}"
            )
        
        now = now or utc_now()
        sent = sender.apply(
            TransactionKind.WIRE_SENT,
            money,
            now,
            f"Wire transfer to {recipient_email}",
            to=recipient_email
        )
        received = recipient.apply(
            TransactionKind.WIRE_RECEIVED,
            money,
            now,
            f"Wire transfer from {sender_email}",
            sender=sender_email
        )
        
        log_action(
            self.logger, "info", "Wire transfer posted",
            account=sender_email, action="wire_transfer",
            resource=f"account:{recipient_email}",
            extra={
                "amount": money.to_json(),
                "sender_balance": sender.balance.to_json(),
                "recipient_balance": recipient.balance.to_json()
            }
        )
        
        return LedgerResult(
            account=sender,
            counterparty=recipient,
            postings=[Posting(sender, sent), Posting(recipient, received)]
        )
    
    def add_card(
        self,
        accounts: List[Account],
        email: str,
        card_number: str,
        expiry_date: str,
        cvv: str,
        card_holder_name: str,
        card_type: str,
        now: Optional[datetime] = None
    ) -> LedgerResult:
        """
        Link a new card in pending state
        
        Raises:
            FeatureDisabledError, InvalidInputError, AccountNotFoundError
        """
        self._require_cards()
        if not _require(card_number, expiry_date, cvv, card_holder_name, card_type):
            raise InvalidInputError("All fields are required.")
        
        clean_number = "".join(str(card_number).split())
        if len(clean_number) < self.minimum_card_number_length:
            raise InvalidInputError("Invalid card number.")
        
        account = self.get_account(accounts, email)
        card = PaymentCard(
            id=str(uuid.uuid4()),
            card_number=clean_number,
            expiry_date=expiry_date,
            cvv=cvv,
            card_holder_name=card_holder_name,
            card_type=card_type,
            added_date=now or utc_now()
        )
        account.cards.append(card)
        
        log_action(
            self.logger, "info", "Card added",
            account=email, action="add_card", resource=f"card:{card.id}",
            extra={"masked_number": card.masked_number, "card_type": card_type}
        )
        
        return LedgerResult(account=account, card=card)
    
    def confirm_card(
        self,
        accounts: List[Account],
        email: str,
        card_id: str,
        otp: str,
        now: Optional[datetime] = None
    ) -> LedgerResult:
        """
        Activate a pending card with its one-time code
        
        Any non-blank code is accepted.
        
        Raises:
            FeatureDisabledError, InvalidInputError, AccountNotFoundError,
            CardNotFoundError
        """
        self._require_cards()
        if not _require(card_id, otp):
            raise InvalidInputError("Card ID and OTP are required.")
        
        account = self.get_account(accounts, email)
        card = account.find_card(card_id)
        if card is None:
            raise CardNotFoundError()
        
        card.activate(str(otp).strip(), now or utc_now())
        
        log_action(
            self.logger, "info", "Card activated",
            account=email, action="confirm_card", resource=f"card:{card.id}"
        )
        
        return LedgerResult(account=account, card=card)
    
    def update_profile(
        self,
        accounts: List[Account],
        email: str,
        address: Optional[str] = None,
        city: Optional[str] = None,
        country: Optional[str] = None,
        postal_code: Optional[str] = None,
        default_withdraw_card_id: Optional[str] = None
    ) -> LedgerResult:
        """Merge non-empty profile fields over the stored profile"""
        account = self.get_account(accounts, email)
        account.profile.merge(
            address=address,
            city=city,
            country=country,
            postal_code=postal_code,
            default_withdraw_card_id=default_withdraw_card_id
        )
        return LedgerResult(account=account)
    
    def _check_withdrawal(self, account: Account, money: Money) -> None:
        if not account.can_afford(money):
            raise InsufficientFundsError(
                f"Insufficient funds. Your current balance is {account.balance.to_string()}."
            )
        if money < self.minimum_withdrawal:
            raise BelowMinimumError(
                f"Minimum withdrawal amount is {self.minimum_withdrawal.to_string()}."
            )
    
    def _require_cards(self) -> None:
        if not self.cards_enabled:
            raise FeatureDisabledError("Card operations are disabled.")
