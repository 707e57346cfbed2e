"""
Transaction Records Module

Per-account transaction history entries and the global audit log. History
entries are immutable once appended and carry the account balance right
after they were applied. The audit log is an account-independent record of
every monetary movement, written on a best-effort basis.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional
from enum import Enum

from .clock import format_timestamp, parse_timestamp
from .currency import Currency, Money, to_decimal
from .locking import CollectionLockManager
from .logging_config import get_logger, log_action
from .storage import Collection, DocumentStore
from .unit_of_work import UnitOfWork


class TransactionKind(Enum):
    """Kinds of monetary movement, stored by their display label"""
    CREDIT = "Credit"
    DEBIT = "Debit"
    WITHDRAWAL = "Withdrawal"
    CARD_WITHDRAWAL = "Withdrawal to Card"
    WIRE_SENT = "Wire Sent"
    WIRE_RECEIVED = "Wire Received"
    INVESTMENT = "Investment"
    INVESTMENT_RETURN = "Investment Return"
    
    @property
    def is_credit(self) -> bool:
        """Check if this kind increases the balance"""
        return self in (
            TransactionKind.CREDIT,
            TransactionKind.WIRE_RECEIVED,
            TransactionKind.INVESTMENT_RETURN
        )


@dataclass(frozen=True)
class Transaction:
    """
    One entry in an account's history
    
    amount is always a positive magnitude; the kind decides its sign.
    """
    kind: TransactionKind
    amount: Money
    date: datetime
    description: str
    balance_after: Money
    to: Optional[str] = None  # Wire recipient
    sender: Optional[str] = None  # Wire sender
    card_details: Optional[Dict[str, str]] = None
    investment_id: Optional[str] = None
    duration_days: Optional[int] = None  # Investment term, kept for contract recovery
    
    def __post_init__(self):
        if not self.amount.is_positive():
            raise ValueError("Transaction amount must be positive")
        if self.amount.currency != self.balance_after.currency:
            raise ValueError("Transaction amount and balance must use the same currency")
    
    @property
    def signed_amount(self) -> Money:
        """Amount with the sign it applies to the balance"""
        return self.amount if self.kind.is_credit else -self.amount
    
    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            'type': self.kind.value,
            'amount': self.amount.to_json(),
            'date': format_timestamp(self.date),
            'description': self.description,
            'balanceAfterTransaction': self.balance_after.to_json()
        }
        if self.to is not None:
            result['to'] = self.to
        if self.sender is not None:
            result['from'] = self.sender
        if self.card_details is not None:
            result['cardDetails'] = dict(self.card_details)
        if self.investment_id is not None:
            result['investmentId'] = self.investment_id
        if self.duration_days is not None:
            result['duration'] = self.duration_days
        return result
    
    @classmethod
    def from_dict(cls, data: Dict[str, Any], currency: Currency = Currency.EUR) -> 'Transaction':
        return cls(
            kind=TransactionKind(data['type']),
            amount=Money(to_decimal(data['amount']), currency),
            date=parse_timestamp(data['date']),
            description=data.get('description', ''),
            balance_after=Money(to_decimal(data['balanceAfterTransaction']), currency),
            to=data.get('to'),
            sender=data.get('from'),
            card_details=data.get('cardDetails'),
            investment_id=data.get('investmentId'),
            duration_days=data.get('duration')
        )


@dataclass(frozen=True)
class AuditLogEntry:
    """Global audit record of one monetary movement"""
    email: str
    kind: TransactionKind
    amount: Money
    date: datetime
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            'email': self.email,
            'type': self.kind.value,
            'amount': self.amount.to_json(),
            'date': format_timestamp(self.date)
        }
    
    @classmethod
    def from_dict(cls, data: Dict[str, Any], currency: Currency = Currency.EUR) -> 'AuditLogEntry':
        return cls(
            email=data['email'],
            kind=TransactionKind(data['type']),
            amount=Money(to_decimal(data['amount']), currency),
            date=parse_timestamp(data['date'])
        )
    
    @classmethod
    def for_transaction(cls, email: str, transaction: Transaction) -> 'AuditLogEntry':
        return cls(
            email=email,
            kind=transaction.kind,
            amount=transaction.amount,
            date=transaction.date
        )


class AuditLog:
    """
    Appends movement records to the transactions_log collection
    
    Failures are reported on the operational log and never raised: the
    account mutation the entries describe has already been persisted.
    """
    
    def __init__(
        self,
        store: DocumentStore,
        locks: CollectionLockManager,
        currency: Currency = Currency.EUR,
        enabled: bool = True
    ):
        self.store = store
        self.locks = locks
        self.currency = currency
        self.enabled = enabled
        self.logger = get_logger("wallet_ledger.audit")
    
    def append(self, entries: List[AuditLogEntry]) -> bool:
        """
        Append entries to the audit log in one read-modify-write cycle
        
        Returns:
            True if the entries were written (or there was nothing to write)
        """
        if not entries or not self.enabled:
            return True
        
        try:
            with UnitOfWork(self.store, self.locks, Collection.TRANSACTIONS_LOG) as uow:
                records = uow.records[Collection.TRANSACTIONS_LOG]
                records.extend(entry.to_dict() for entry in entries)
                uow.commit({Collection.TRANSACTIONS_LOG: records})
            return True
        except Exception as e:
            log_action(
                self.logger, "error", f"Error logging transaction: {e}",
                account=entries[0].email, action="audit_append",
                resource=Collection.TRANSACTIONS_LOG.value,
                extra={
                    "entries": [entry.to_dict() for entry in entries],
                    "error_type": type(e).__name__
                }
            )
            return False
    
    def entries_for(self, email: str) -> List[AuditLogEntry]:
        """Read the audit entries recorded for one account"""
        records = self.store.get(Collection.TRANSACTIONS_LOG)
        return [
            AuditLogEntry.from_dict(record, self.currency)
            for record in records
            if record.get('email') == email
        ]
