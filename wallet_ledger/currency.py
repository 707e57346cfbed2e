"""
Currency Support Module

Handles ISO 4217 currency codes and proper Decimal precision for
wallet balances. NEVER uses float for monetary values.
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation, getcontext, localcontext
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .errors import InvalidAmountError

# Set global decimal context for financial precision
getcontext().prec = 28

# Largest accepted power of ten; anything beyond is not a monetary amount
MAX_AMOUNT_EXPONENT = 60


class Currency(Enum):
    """ISO 4217 Currency Codes with precision and display symbol"""
    EUR = ("EUR", 2, "€")  # Euro, 2 decimal places
    USD = ("USD", 2, "$")  # US Dollar, 2 decimal places
    GBP = ("GBP", 2, "£")  # British Pound, 2 decimal places
    
    def __init__(self, code: str, precision: int, symbol: str):
        self.code = code
        self.precision = precision
        self.symbol = symbol


@dataclass(frozen=True)
class Money:
    """
    Immutable money representation with currency and proper precision.
    All monetary values MUST use this class or raw Decimal.
    """
    amount: Decimal
    currency: Currency = Currency.EUR
    
    def __post_init__(self):
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, 'amount', Decimal(str(self.amount)))
        
        # Round to currency precision, widening the context so every
        # integer digit of a large amount survives the quantize
        exponent = Decimal('0.1') ** self.currency.precision
        with localcontext() as ctx:
            ctx.prec = max(ctx.prec, self.amount.adjusted() + self.currency.precision + 2)
            rounded = self.amount.quantize(exponent, rounding=ROUND_HALF_UP)
        object.__setattr__(self, 'amount', rounded)
    
    @classmethod
    def zero(cls, currency: Currency = Currency.EUR) -> 'Money':
        return cls(Decimal('0'), currency)
    
    def __add__(self, other: 'Money') -> 'Money':
        if self.currency != other.currency:
            raise ValueError(f"Cannot add {self.currency.code} and {other.currency.code}")
        return Money(self.amount + other.amount, self.currency)
    
    def __sub__(self, other: 'Money') -> 'Money':
        if self.currency != other.currency:
            raise ValueError(f"Cannot subtract {other.currency.code} from {self.currency.code}")
        return Money(self.amount - other.amount, self.currency)
    
    def __mul__(self, multiplier: Decimal) -> 'Money':
        if not isinstance(multiplier, Decimal):
            multiplier = Decimal(str(multiplier))
        return Money(self.amount * multiplier, self.currency)
    
    def __neg__(self) -> 'Money':
        return Money(-self.amount, self.currency)
    
    def __eq__(self, other) -> bool:
        if not isinstance(other, Money):
            return False
        return self.amount == other.amount and self.currency == other.currency
    
    def __hash__(self) -> int:
        return hash((self.amount, self.currency))
    
    def __lt__(self, other: 'Money') -> bool:
        if self.currency != other.currency:
            raise ValueError(f"Cannot compare {self.currency.code} and {other.currency.code}")
        return self.amount < other.amount
    
    def __le__(self, other: 'Money') -> bool:
        if self.currency != other.currency:
            raise ValueError(f"Cannot compare {self.currency.code} and {other.currency.code}")
        return self.amount <= other.amount
    
    def __gt__(self, other: 'Money') -> bool:
        if self.currency != other.currency:
            raise ValueError(f"Cannot compare {self.currency.code} and {other.currency.code}")
        return self.amount > other.amount
    
    def __ge__(self, other: 'Money') -> bool:
        if self.currency != other.currency:
            raise ValueError(f"Cannot compare {self.currency.code} and {other.currency.code}")
        return self.amount >= other.amount
    
    def is_zero(self) -> bool:
        """Check if amount is exactly zero"""
        return self.amount == Decimal('0')
    
    def is_positive(self) -> bool:
        """Check if amount is positive"""
        return self.amount > Decimal('0')
    
    def is_negative(self) -> bool:
        """Check if amount is negative"""
        return self.amount < Decimal('0')
    
    def to_string(self) -> str:
        """Format for display, e.g. 1,800.00€"""
        return f"{self.amount:,.{self.currency.precision}f}{self.currency.symbol}"
    
    def to_json(self) -> str:
        """Plain decimal string used in stored documents"""
        return str(self.amount)


def to_decimal(value: Any) -> Decimal:
    """
    Convert a stored or submitted value to a finite Decimal.
    
    Accepts Decimal, int, float and numeric strings (surrounding whitespace
    is ignored). Raises InvalidAmountError for anything else, including
    booleans, NaN and infinities, and magnitudes of
    10**MAX_AMOUNT_EXPONENT or more.
    """
    if isinstance(value, bool) or value is None:
        raise InvalidAmountError()
    
    if isinstance(value, Decimal):
        result = value
    else:
        text = str(value).strip()
        if not text:
            raise InvalidAmountError()
        try:
            result = Decimal(text)
        except InvalidOperation:
            raise InvalidAmountError()
    
    if not result.is_finite():
        raise InvalidAmountError()
    if result and result.adjusted() >= MAX_AMOUNT_EXPONENT:
        raise InvalidAmountError()
    return result


def parse_amount(value: Any, currency: Currency = Currency.EUR) -> Money:
    """Parse a user-supplied amount that must be a positive finite number"""
    amount = to_decimal(value)
    if amount <= 0:
        raise InvalidAmountError()
    money = Money(amount, currency)
    # Values below the currency precision round to zero
    if not money.is_positive():
        raise InvalidAmountError()
    return money


def currency_from_code(code: str) -> Currency:
    """Look up a Currency by ISO code"""
    try:
        return Currency[code.upper()]
    except KeyError:
        raise ValueError(f"Unsupported currency: {code}")
