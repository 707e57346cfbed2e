"""
Wallet Service

Entry point for the request boundary. Each mutating call is one
read-modify-write cycle: lock the collections it needs, load them, run one
engine operation on the in-memory copy, replace the changed collections and
then append the audit log. Callers pass the already-authenticated account
email explicitly; the service keeps no per-user state between calls.
"""

from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from .accounts import Account, PaymentCard, accounts_from_records, accounts_to_records
from .clock import utc_now
from .config import WalletConfig, get_config
from .currency import currency_from_code
from .investments import (
    InvestmentEngine, InvestmentListing, InvestmentResult,
    contracts_from_records, contracts_to_records
)
from .ledger import LedgerEngine, LedgerResult
from .locking import CollectionLockManager
from .logging_config import get_logger
from .storage import Collection, DocumentStore, create_store
from .sweeper import MaturitySweeper
from .transactions import AuditLog, Transaction
from .unit_of_work import UnitOfWork


class WalletService:
    """
    Composes the document store, lock manager, engines, audit log and sweeper
    """
    
    def __init__(
        self,
        store: Optional[DocumentStore] = None,
        config: Optional[WalletConfig] = None,
        locks: Optional[CollectionLockManager] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        self.config = config or get_config()
        self.store = store or create_store(self.config)
        self.locks = locks or CollectionLockManager(self.config.lock_timeout_seconds)
        self.currency = currency_from_code(self.config.currency)
        self.clock = clock
        self.logger = get_logger("wallet_ledger.service")
        
        self.ledger = LedgerEngine(self.config)
        self.investment_engine = InvestmentEngine(self.config)
        self.audit_log = AuditLog(
            self.store, self.locks, self.currency,
            enabled=self.config.enable_audit_logging
        )
        self.sweeper = MaturitySweeper(
            self.store, self.locks, self.audit_log,
            currency=self.currency,
            batch_size=self.config.sweep_batch_size,
            clock=clock
        )
    
    # Ledger operations
    
    def register(self, full_name: str, email: str, phone_number: str, pin: str) -> Account:
        """Create an account credited with the welcome bonus"""
        result = self._mutate_accounts(
            lambda accounts: self.ledger.register(
                accounts, full_name, email, phone_number, pin, now=self.clock()
            )
        )
        return result.account
    
    def authenticate(self, identifier: str, pin: str) -> Account:
        """Look up the account matching an email or phone number and PIN"""
        return self.ledger.authenticate(self._read_accounts(), identifier, pin)
    
    def withdraw(self, email: str, amount: Any) -> Transaction:
        result = self._mutate_accounts(
            lambda accounts: self.ledger.withdraw(accounts, email, amount, now=self.clock())
        )
        return result.transaction
    
    def withdraw_to_card(self, email: str, card_id: str, amount: Any) -> Transaction:
        result = self._mutate_accounts(
            lambda accounts: self.ledger.withdraw_to_card(
                accounts, email, card_id, amount, now=self.clock()
            )
        )
        return result.transaction
    
    def wire_transfer(self, sender_email: str, recipient_email: str, amount: Any) -> LedgerResult:
        """Transfer funds; both legs are persisted by the same replace"""
        return self._mutate_accounts(
            lambda accounts: self.ledger.wire_transfer(
                accounts, sender_email, recipient_email, amount, now=self.clock()
            )
        )
    
    def add_card(
        self,
        email: str,
        card_number: str,
        expiry_date: str,
        cvv: str,
        card_holder_name: str,
        card_type: str
    ) -> PaymentCard:
        result = self._mutate_accounts(
            lambda accounts: self.ledger.add_card(
                accounts, email, card_number, expiry_date, cvv,
                card_holder_name, card_type, now=self.clock()
            )
        )
        return result.card
    
    def confirm_card(self, email: str, card_id: str, otp: str) -> PaymentCard:
        result = self._mutate_accounts(
            lambda accounts: self.ledger.confirm_card(
                accounts, email, card_id, otp, now=self.clock()
            )
        )
        return result.card
    
    def update_profile(self, email: str, **fields: Optional[str]) -> Account:
        result = self._mutate_accounts(
            lambda accounts: self.ledger.update_profile(accounts, email, **fields)
        )
        return result.account
    
    def get_account(self, email: str) -> Account:
        return self.ledger.get_account(self._read_accounts(), email)
    
    def transaction_history(self, email: str) -> List[Transaction]:
        return list(self.get_account(email).transactions)
    
    # Investment operations
    
    def open_investment(self, email: str, principal: Any, duration_days: Any) -> InvestmentResult:
        """
        Debit the principal and record a running contract
        
        Accounts are written before investments; if the investments write
        fails the accounts collection is restored before the error surfaces.
        """
        with UnitOfWork(self.store, self.locks, Collection.ACCOUNTS, Collection.INVESTMENTS) as uow:
            accounts = accounts_from_records(uow.records[Collection.ACCOUNTS], self.currency)
            investments = contracts_from_records(uow.records[Collection.INVESTMENTS], self.currency)
            
            result = self.investment_engine.open_investment(
                accounts, investments, email, principal, duration_days, now=self.clock()
            )
            
            uow.commit({
                Collection.ACCOUNTS: accounts_to_records(accounts),
                Collection.INVESTMENTS: contracts_to_records(investments)
            })
        
        self.audit_log.append(result.audit_entries)
        return result
    
    def list_investments(self, email: str, now: Optional[datetime] = None) -> InvestmentListing:
        investments = contracts_from_records(
            self.store.load(Collection.INVESTMENTS), self.currency
        )
        return self.investment_engine.list_investments(investments, email, now or self.clock())
    
    def sweep(self, now: Optional[datetime] = None) -> int:
        """Settle matured contracts; returns how many were credited"""
        return self.sweeper.sweep(now)
    
    # Diagnostics
    
    def check_store(self) -> Dict[str, Optional[int]]:
        """Record counts per collection, None where a read failed"""
        counts = self.store.health_check()
        for collection, count in counts.items():
            if count is None:
                self.logger.error(f"Store connection failed for {collection}")
            else:
                self.logger.info(f"{collection} connection successful. Found {count} records.")
        return counts
    
    def verify_accounts(self) -> List[str]:
        """Emails of accounts whose balance disagrees with their history"""
        accounts = accounts_from_records(self.store.get(Collection.ACCOUNTS), self.currency)
        inconsistent = [account.email for account in accounts if not account.is_consistent()]
        for email in inconsistent:
            self.logger.error(f"Balance of {email} does not match its transaction history")
        return inconsistent
    
    def _read_accounts(self) -> List[Account]:
        return accounts_from_records(self.store.load(Collection.ACCOUNTS), self.currency)
    
    def _mutate_accounts(self, operation: Callable[[List[Account]], LedgerResult]) -> LedgerResult:
        with UnitOfWork(self.store, self.locks, Collection.ACCOUNTS) as uow:
            accounts = accounts_from_records(uow.records[Collection.ACCOUNTS], self.currency)
            result = operation(accounts)
            uow.commit({Collection.ACCOUNTS: accounts_to_records(accounts)})
        
        self.audit_log.append(result.audit_entries)
        return result
    
    def close(self) -> None:
        self.store.close()
