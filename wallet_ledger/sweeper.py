"""
Maturity Sweeper

Settles matured investment contracts: credits the fixed return to the owner
account, appends an Investment Return transaction and marks the contract
completed. The contract status is what prevents a second credit; the
investmentId carried by the return transaction lets a later pass finish a
settlement whose status write was lost without crediting again.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from .accounts import Account, accounts_from_records, accounts_to_records, find_account
from .clock import as_utc, utc_now
from .currency import Currency
from .locking import CollectionLockManager
from .logging_config import get_logger, log_action
from .storage import Collection, DocumentStore
from .investments import (
    RETURN_MULTIPLIER, InvestmentContract, InvestmentStatus,
    contracts_from_records, contracts_to_records
)
from .transactions import AuditLog, AuditLogEntry, TransactionKind
from .unit_of_work import UnitOfWork


logger = get_logger("wallet_ledger.sweeper")


@dataclass
class SweepBatch:
    """Outcome of one settlement pass"""
    settled: List[InvestmentContract] = field(default_factory=list)    # Credited in this pass
    recovered: List[InvestmentContract] = field(default_factory=list)  # Credited earlier, status fixed now
    restored: List[InvestmentContract] = field(default_factory=list)   # Contracts rebuilt from history
    skipped: List[InvestmentContract] = field(default_factory=list)    # Owner account missing
    audit_entries: List[AuditLogEntry] = field(default_factory=list)
    
    @property
    def processed(self) -> int:
        return len(self.settled) + len(self.recovered)
    
    @property
    def changed(self) -> bool:
        return bool(self.settled or self.recovered or self.restored)


def restore_orphaned_contracts(
    accounts: List[Account],
    investments: List[InvestmentContract]
) -> List[InvestmentContract]:
    """
    Rebuild running contracts for Investment debits that have no contract
    
    This happens only when the accounts write of an investment landed but
    the contract write and its compensation both failed.
    """
    known = {contract.id for contract in investments}
    restored = []
    
    for account in accounts:
        for transaction in account.transactions:
            if transaction.kind != TransactionKind.INVESTMENT:
                continue
            if not transaction.investment_id or transaction.investment_id in known:
                continue
            if not transaction.duration_days:
                continue
            
            contract = InvestmentContract(
                id=transaction.investment_id,
                email=account.email,
                full_name=account.full_name,
                amount=transaction.amount,
                return_amount=transaction.amount * RETURN_MULTIPLIER,
                duration_days=transaction.duration_days,
                start_date=transaction.date,
                complete_date=transaction.date + timedelta(days=transaction.duration_days)
            )
            investments.append(contract)
            known.add(contract.id)
            restored.append(contract)
            
            log_action(
                logger, "warning", "Restored investment contract missing from collection",
                account=account.email, action="restore_contract",
                resource=f"investment:{contract.id}"
            )
    
    return restored


def settle_matured(
    accounts: List[Account],
    investments: List[InvestmentContract],
    now: datetime,
    limit: Optional[int] = None
) -> SweepBatch:
    """
    Settle running contracts whose completion date is at or before `now`
    
    Mutates both lists in place. At most `limit` contracts are settled or
    recovered in one call.
    """
    now = as_utc(now)
    batch = SweepBatch()
    batch.restored = restore_orphaned_contracts(accounts, investments)
    
    for contract in investments:
        if limit is not None and batch.processed >= limit:
            break
        if contract.status != InvestmentStatus.RUNNING or not contract.is_matured(now):
            continue
        
        account = find_account(accounts, contract.email)
        if account is None:
            logger.warning(f"Investment {contract.id} owner {contract.email} not found, leaving it running")
            batch.skipped.append(contract)
            continue
        
        previous = account.find_settlement(contract.id)
        if previous is not None:
            contract.mark_completed()
            batch.recovered.append(contract)
            batch.audit_entries.append(AuditLogEntry.for_transaction(account.email, previous))
            continue
        
        transaction = account.apply(
            TransactionKind.INVESTMENT_RETURN,
            contract.return_amount,
            now,
            f"Investment return from {contract.amount.to_string()} investment",
            investment_id=contract.id
        )
        contract.mark_completed()
        batch.settled.append(contract)
        batch.audit_entries.append(AuditLogEntry.for_transaction(account.email, transaction))
    
    return batch


class MaturitySweeper:
    """
    Runs settle_matured() against the store in bounded batches
    
    Each batch holds the accounts and investments locks for one
    load/settle/commit cycle, so a large backlog never pins the locks for
    the whole pass.
    """
    
    def __init__(
        self,
        store: DocumentStore,
        locks: CollectionLockManager,
        audit_log: AuditLog,
        currency: Currency = Currency.EUR,
        batch_size: int = 500,
        clock: Callable[[], datetime] = utc_now
    ):
        if batch_size <= 0:
            raise ValueError("Sweep batch size must be positive")
        self.store = store
        self.locks = locks
        self.audit_log = audit_log
        self.currency = currency
        self.batch_size = batch_size
        self.clock = clock
    
    def sweep(self, now: Optional[datetime] = None) -> int:
        """
        Settle every matured running contract
        
        Args:
            now: Settlement instant (defaults to the sweeper clock)
            
        Returns:
            Number of contracts credited by this call
            
        Raises:
            ConcurrencyTimeoutError: If a batch could not lock the collections
            StoreUnavailableError: If a batch could not be read or written
        """
        now = as_utc(now or self.clock())
        credited = 0
        batches = 0
        
        while True:
            with UnitOfWork(self.store, self.locks, Collection.ACCOUNTS, Collection.INVESTMENTS) as uow:
                accounts = accounts_from_records(uow.records[Collection.ACCOUNTS], self.currency)
                investments = contracts_from_records(uow.records[Collection.INVESTMENTS], self.currency)
                
                batch = settle_matured(accounts, investments, now, limit=self.batch_size)
                
                if batch.changed:
                    uow.commit({
                        Collection.ACCOUNTS: accounts_to_records(accounts),
                        Collection.INVESTMENTS: contracts_to_records(investments)
                    })
            
            self.audit_log.append(batch.audit_entries)
            credited += len(batch.settled)
            batches += 1
            
            if batch.processed < self.batch_size:
                break
        
        log_action(
            logger, "info", f"Investment processing complete. {credited} investments were completed.",
            action="sweep",
            extra={"credited": credited, "batches": batches, "now": now.isoformat()}
        )
        
        return credited
