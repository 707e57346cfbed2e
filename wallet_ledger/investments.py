"""
Investment Engine

Fixed-odds investment contracts: the principal is debited when a contract
opens and three times the principal is credited back once it matures.
Contracts reference their owner by email only; the engine keeps the two
collections consistent by convention.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, Iterator, List, Optional, Sequence
from enum import Enum
import math
import uuid

from .accounts import Account, find_account
from .clock import as_utc, format_timestamp, parse_timestamp, utc_now
from .config import WalletConfig, get_config
from .currency import Currency, Money, currency_from_code, to_decimal
from .errors import (
    AccountNotFoundError, BelowMinimumError, InsufficientFundsError,
    InvalidAmountError, InvalidDurationError
)
from .logging_config import get_logger, log_action
from .transactions import AuditLogEntry, Transaction, TransactionKind


# Fixed return on every contract; not market-linked and not configurable
RETURN_MULTIPLIER = Decimal("3")

ONE_DAY = timedelta(days=1)


class InvestmentStatus(Enum):
    """Investment contract states"""
    RUNNING = "running"
    COMPLETED = "completed"


@dataclass
class InvestmentContract:
    """
    Time-bounded investment owned by the account with the given email
    Only the maturity sweep changes it after creation.
    """
    id: str
    email: str
    full_name: str
    amount: Money
    return_amount: Money
    duration_days: int
    start_date: datetime
    complete_date: datetime
    status: InvestmentStatus = InvestmentStatus.RUNNING
    
    @property
    def is_running(self) -> bool:
        return self.status == InvestmentStatus.RUNNING
    
    def is_matured(self, now: datetime) -> bool:
        """Check if the completion date has been reached"""
        return as_utc(now) >= self.complete_date
    
    def days_remaining(self, now: datetime) -> int:
        """Whole days left until completion, rounded up; 0 once matured"""
        if self.is_matured(now):
            return 0
        return math.ceil((self.complete_date - as_utc(now)) / ONE_DAY)
    
    def mark_completed(self) -> None:
        """Transition running -> completed"""
        if not self.is_running:
            raise ValueError(f"Investment {self.id} is already {self.status.value}")
        self.status = InvestmentStatus.COMPLETED
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'email': self.email,
            'fullName': self.full_name,
            'amount': self.amount.to_json(),
            'returnAmount': self.return_amount.to_json(),
            'duration': self.duration_days,
            'startDate': format_timestamp(self.start_date),
            'completeDate': format_timestamp(self.complete_date),
            'status': self.status.value
        }
    
    @classmethod
    def from_dict(cls, data: Dict[str, Any], currency: Currency = Currency.EUR) -> 'InvestmentContract':
        contract_id = data.get('id') or legacy_contract_id(data['email'], str(data['startDate']))
        return cls(
            id=str(contract_id),
            email=data['email'],
            full_name=data.get('fullName', ''),
            amount=Money(to_decimal(data['amount']), currency),
            return_amount=Money(to_decimal(data['returnAmount']), currency),
            duration_days=int(data['duration']),
            start_date=parse_timestamp(data['startDate']),
            complete_date=parse_timestamp(data['completeDate']),
            status=InvestmentStatus(data.get('status', InvestmentStatus.RUNNING.value))
        )


def legacy_contract_id(email: str, start_date: str) -> str:
    """Deterministic id for contracts stored before ids were recorded"""
    return str(uuid.uuid5(uuid.NAMESPACE_URL, f"investment:{email}:{start_date}"))


def contracts_from_records(records: List[Dict[str, Any]], currency: Currency = Currency.EUR) -> List[InvestmentContract]:
    return [InvestmentContract.from_dict(record, currency) for record in records]


def contracts_to_records(contracts: List[InvestmentContract]) -> List[Dict[str, Any]]:
    return [contract.to_dict() for contract in contracts]


@dataclass(frozen=True)
class InvestmentView:
    """A contract annotated with its maturity as of a given instant"""
    contract: InvestmentContract
    is_matured: bool
    days_remaining: int
    
    @classmethod
    def at(cls, contract: InvestmentContract, now: datetime) -> 'InvestmentView':
        return cls(
            contract=contract,
            is_matured=contract.is_matured(now),
            days_remaining=contract.days_remaining(now)
        )
    
    def to_dict(self) -> Dict[str, Any]:
        result = self.contract.to_dict()
        result['isMatured'] = self.is_matured
        result['daysRemaining'] = self.days_remaining
        return result


class InvestmentListing:
    """
    Lazy view over one account's contracts
    
    Every iteration starts a fresh pass over the underlying collection,
    so the listing can be consumed any number of times.
    """
    
    def __init__(self, contracts: Sequence[InvestmentContract], email: str, now: datetime):
        self._contracts = contracts
        self.email = email
        self.now = as_utc(now)
    
    def __iter__(self) -> Iterator[InvestmentView]:
        for contract in self._contracts:
            if contract.email == self.email:
                yield InvestmentView.at(contract, self.now)


@dataclass
class InvestmentResult:
    """Outcome of opening an investment"""
    account: Account
    contract: InvestmentContract
    transaction: Transaction
    
    @property
    def audit_entries(self) -> List[AuditLogEntry]:
        return [AuditLogEntry.for_transaction(self.account.email, self.transaction)]


class InvestmentEngine:
    """
    Opens and lists investment contracts
    """
    
    def __init__(self, config: Optional[WalletConfig] = None):
        config = config or get_config()
        self.currency = currency_from_code(config.currency)
        self.minimum_investment = Money(Decimal(config.minimum_investment), self.currency)
        self.logger = get_logger("wallet_ledger.investments")
    
    def open_investment(
        self,
        accounts: List[Account],
        investments: List[InvestmentContract],
        email: str,
        principal: Any,
        duration_days: Any,
        now: Optional[datetime] = None
    ) -> InvestmentResult:
        """
        Debit the principal and start a running contract
        
        Args:
            accounts: Accounts collection (mutated)
            investments: Investment contracts collection (mutated)
            email: Owner account email
            principal: Amount to invest
            duration_days: Positive whole number of days
            now: Start instant (defaults to current UTC time)
            
        Returns:
            InvestmentResult with the new contract and the debit transaction
            
        Raises:
            BelowMinimumError: If the principal is not a number or below the minimum
            InvalidDurationError: If the duration is not a positive whole number
                or ends beyond the last representable date
            AccountNotFoundError: If the account does not exist
            InsufficientFundsError: If the principal exceeds the balance
        """
        try:
            amount = Money(to_decimal(principal), self.currency)
        except InvalidAmountError:
            amount = None
        if amount is None or amount < self.minimum_investment:
            raise BelowMinimumError(
                f"Minimum investment is {self.minimum_investment.to_string()}."
            )
        
        days = self._parse_duration(duration_days)
        now = as_utc(now or utc_now())
        try:
            complete_date = now + timedelta(days=days)
        except OverflowError:
            raise InvalidDurationError()
        
        account = find_account(accounts, email)
        if account is None:
            raise AccountNotFoundError(f"Account {email} not found.")
        
        if not account.can_afford(amount):
            raise InsufficientFundsError(
                f"Insufficient balance for investment. Your current balance is {account.balance.to_string()}."
            )
        
        contract = InvestmentContract(
            id=str(uuid.uuid4()),
            email=account.email,
            full_name=account.full_name,
            amount=amount,
            return_amount=amount * RETURN_MULTIPLIER,
            duration_days=days,
            start_date=now,
            complete_date=complete_date
        )
        transaction = account.apply(
            TransactionKind.INVESTMENT,
            amount,
            now,
            f"Investment of {amount.to_string()} for {days} days",
            investment_id=contract.id,
            duration_days=days
        )
        investments.append(contract)
        
        log_action(
            self.logger, "info", "Investment opened",
            account=email, action="open_investment", resource=f"investment:{contract.id}",
            extra={
                "amount": amount.to_json(),
                "return_amount": contract.return_amount.to_json(),
                "duration_days": days,
                "complete_date": format_timestamp(contract.complete_date)
            }
        )
        
        return InvestmentResult(account=account, contract=contract, transaction=transaction)
    
    def list_investments(
        self,
        investments: Sequence[InvestmentContract],
        email: str,
        now: Optional[datetime] = None
    ) -> InvestmentListing:
        """List one account's contracts annotated with maturity at `now`"""
        return InvestmentListing(investments, email, now or utc_now())
    
    @staticmethod
    def _parse_duration(value: Any) -> int:
        if isinstance(value, bool):
            raise InvalidDurationError()
        try:
            days = to_decimal(value)
        except InvalidAmountError:
            raise InvalidDurationError()
        if days != days.to_integral_value() or days <= 0:
            raise InvalidDurationError()
        return int(days)
