"""
Account Management Module

Wallet accounts with their profile, linked payment cards and transaction
history. An account's balance always equals the signed sum of its history;
every balance change goes through Account.apply() so the two cannot drift.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional
from enum import Enum

from .clock import format_timestamp, parse_timestamp
from .currency import Currency, Money, to_decimal
from .transactions import Transaction, TransactionKind


class CardStatus(Enum):
    """Payment card lifecycle states"""
    PENDING = "pending"  # Saved, waiting for one-time code confirmation
    ACTIVE = "active"    # Confirmed, usable for withdrawals


@dataclass
class Profile:
    """Optional postal details and withdrawal preference"""
    address: str = ""
    city: str = ""
    country: str = ""
    postal_code: str = ""
    default_withdraw_card_id: Optional[str] = None
    
    def merge(self, **updates: Optional[str]) -> None:
        """Overwrite fields with every non-empty value supplied"""
        for name, value in updates.items():
            if not hasattr(self, name):
                raise ValueError(f"Unknown profile field: {name}")
            if value:
                setattr(self, name, value)
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            'address': self.address,
            'city': self.city,
            'country': self.country,
            'postalCode': self.postal_code,
            'defaultWithdrawCardId': self.default_withdraw_card_id
        }
    
    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'Profile':
        data = data or {}
        return cls(
            address=data.get('address') or '',
            city=data.get('city') or '',
            country=data.get('country') or '',
            postal_code=data.get('postalCode') or '',
            default_withdraw_card_id=data.get('defaultWithdrawCardId')
        )


@dataclass
class PaymentCard:
    """
    External card linked to an account
    Created pending; becomes active through one-time code confirmation
    and never goes back.
    """
    id: str
    card_number: str
    expiry_date: str
    cvv: str
    card_holder_name: str
    card_type: str
    added_date: datetime
    status: CardStatus = CardStatus.PENDING
    otp: Optional[str] = None
    activated_date: Optional[datetime] = None
    
    @property
    def last4(self) -> str:
        return self.card_number[-4:]
    
    @property
    def masked_number(self) -> str:
        return f"**** **** **** {self.last4}"
    
    @property
    def is_active(self) -> bool:
        return self.status == CardStatus.ACTIVE
    
    def activate(self, otp: str, now: datetime) -> None:
        """Store the one-time code and mark the card active"""
        self.otp = otp
        if not self.is_active:
            self.status = CardStatus.ACTIVE
            self.activated_date = now
    
    def to_dict(self) -> Dict[str, Any]:
        result = {
            'id': self.id,
            'cardNumber': self.card_number,
            'maskedNumber': self.masked_number,
            'expiryDate': self.expiry_date,
            'cvv': self.cvv,
            'cardHolderName': self.card_holder_name,
            'cardType': self.card_type,
            'status': self.status.value,
            'addedDate': format_timestamp(self.added_date),
            'otp': self.otp
        }
        if self.activated_date:
            result['activatedDate'] = format_timestamp(self.activated_date)
        return result
    
    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PaymentCard':
        activated = data.get('activatedDate')
        return cls(
            id=str(data['id']),
            card_number=data['cardNumber'],
            expiry_date=data.get('expiryDate', ''),
            cvv=data.get('cvv', ''),
            card_holder_name=data.get('cardHolderName', ''),
            card_type=data.get('cardType', ''),
            added_date=parse_timestamp(data['addedDate']),
            status=CardStatus(data.get('status', CardStatus.PENDING.value)),
            otp=data.get('otp'),
            activated_date=parse_timestamp(activated) if activated else None
        )


@dataclass
class Account:
    """Custodial wallet account, keyed by email"""
    full_name: str
    email: str
    phone_number: str
    pin: str
    balance: Money
    profile: Profile = field(default_factory=Profile)
    cards: List[PaymentCard] = field(default_factory=list)
    transactions: List[Transaction] = field(default_factory=list)
    
    @property
    def currency(self) -> Currency:
        return self.balance.currency
    
    def can_afford(self, amount: Money) -> bool:
        """Check if the balance covers the amount"""
        return self.balance >= amount
    
    def apply(
        self,
        kind: TransactionKind,
        amount: Money,
        date: datetime,
        description: str,
        **details: Any
    ) -> Transaction:
        """
        Apply one movement to the balance and append it to the history
        
        Args:
            kind: Transaction kind; decides the sign
            amount: Positive magnitude
            date: Transaction timestamp
            description: Free-text description
            details: Optional Transaction fields (to, sender, card_details, investment_id)
            
        Returns:
            The appended Transaction
            
        Raises:
            ValueError: If a debit would make the balance negative
        """
        if kind.is_credit:
            new_balance = self.balance + amount
        else:
            new_balance = self.balance - amount
        
        if new_balance.is_negative():
            raise ValueError(f"{kind.value} of {amount.to_string()} would overdraw {self.email}")
        
        transaction = Transaction(
            kind=kind,
            amount=amount,
            date=date,
            description=description,
            balance_after=new_balance,
            **details
        )
        self.transactions.append(transaction)
        self.balance = new_balance
        return transaction
    
    def replay_balance(self) -> Money:
        """Recompute the balance from the transaction history"""
        running = Money.zero(self.currency)
        for transaction in self.transactions:
            running = running + transaction.signed_amount
        return running
    
    def is_consistent(self) -> bool:
        """
        Check that every post-balance snapshot matches the running sum
        and that the final sum equals the stored balance
        """
        running = Money.zero(self.currency)
        for transaction in self.transactions:
            running = running + transaction.signed_amount
            if transaction.balance_after != running:
                return False
        return running == self.balance
    
    def find_card(self, card_id: str) -> Optional[PaymentCard]:
        for card in self.cards:
            if card.id == card_id:
                return card
        return None
    
    def find_settlement(self, investment_id: str) -> Optional[Transaction]:
        """Find the investment return already credited for a contract"""
        for transaction in self.transactions:
            if (transaction.kind == TransactionKind.INVESTMENT_RETURN
                    and transaction.investment_id == investment_id):
                return transaction
        return None
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            'fullName': self.full_name,
            'email': self.email,
            'phoneNumber': self.phone_number,
            'pin': self.pin,
            'balance': self.balance.to_json(),
            'profile': self.profile.to_dict(),
            'cards': [card.to_dict() for card in self.cards],
            'transactions': [t.to_dict() for t in self.transactions]
        }
    
    @classmethod
    def from_dict(cls, data: Dict[str, Any], currency: Currency = Currency.EUR) -> 'Account':
        return cls(
            full_name=data.get('fullName', ''),
            email=data['email'],
            phone_number=str(data.get('phoneNumber', '')),
            pin=str(data.get('pin', '')),
            balance=Money(to_decimal(data.get('balance', 0)), currency),
            profile=Profile.from_dict(data.get('profile')),
            cards=[PaymentCard.from_dict(c) for c in data.get('cards') or []],
            transactions=[Transaction.from_dict(t, currency) for t in data.get('transactions') or []]
        )


def accounts_from_records(records: List[Dict[str, Any]], currency: Currency = Currency.EUR) -> List[Account]:
    return [Account.from_dict(record, currency) for record in records]


def accounts_to_records(accounts: List[Account]) -> List[Dict[str, Any]]:
    return [account.to_dict() for account in accounts]


def find_account(accounts: List[Account], email: str) -> Optional[Account]:
    """Find an account by exact email"""
    for account in accounts:
        if account.email == email:
            return account
    return None
