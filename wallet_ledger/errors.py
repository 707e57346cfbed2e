"""Ledger domain specific exceptions."""

from typing import Any, Dict


class WalletError(Exception):
    """Base class for wallet ledger errors."""
    
    code = "WALLET_ERROR"
    
    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__doc__ or self.code)
        self.message = message or self.__class__.__doc__ or self.code
    
    def to_dict(self) -> Dict[str, Any]:
        """Render the error for the request boundary"""
        return {
            "error": self.code,
            "category": self.category,
            "message": self.message
        }
    
    @property
    def category(self) -> str:
        return "error"


class ValidationError(WalletError):
    """Raised for malformed or out-of-range input. Never mutates state."""
    
    code = "VALIDATION_ERROR"
    
    @property
    def category(self) -> str:
        return "validation"


class InvalidAmountError(ValidationError):
    """Invalid amount. Please enter a positive number."""
    
    code = "INVALID_AMOUNT"


class InvalidDurationError(ValidationError):
    """Invalid duration. Please enter a positive number of days."""
    
    code = "INVALID_DURATION"


class InvalidInputError(ValidationError):
    """Invalid input. Please check all fields."""
    
    code = "INVALID_INPUT"


class NotFoundError(WalletError):
    """Raised when an account, card or investment reference is unknown."""
    
    code = "NOT_FOUND"
    
    @property
    def category(self) -> str:
        return "not_found"


class AccountNotFoundError(NotFoundError):
    """Account not found."""
    
    code = "ACCOUNT_NOT_FOUND"


class CardNotFoundError(NotFoundError):
    """Card not found. Please add the card again."""
    
    code = "CARD_NOT_FOUND"


class BusinessRuleError(WalletError):
    """Raised when a well-formed request breaks a ledger rule."""
    
    code = "BUSINESS_RULE"
    
    @property
    def category(self) -> str:
        return "business_rule"


class InsufficientFundsError(BusinessRuleError):
    """Insufficient funds."""
    
    code = "INSUFFICIENT_FUNDS"


class BelowMinimumError(BusinessRuleError):
    """Amount is below the allowed minimum."""
    
    code = "BELOW_MINIMUM"


class DuplicateAccountError(BusinessRuleError):
    """Email or phone number already registered."""
    
    code = "DUPLICATE_ACCOUNT"


class InvalidCredentialsError(BusinessRuleError):
    """Invalid credentials. Please check your email/phone and PIN."""
    
    code = "INVALID_CREDENTIALS"


class CardNotEligibleError(BusinessRuleError):
    """Card not found, not authorized, or not active."""
    
    code = "CARD_NOT_ELIGIBLE"


class FeatureDisabledError(BusinessRuleError):
    """This operation is disabled by configuration."""
    
    code = "FEATURE_DISABLED"


class ConcurrencyTimeoutError(WalletError):
    """Could not acquire the collection locks in time."""
    
    code = "CONCURRENCY_TIMEOUT"
    
    @property
    def category(self) -> str:
        return "concurrency"


class StoreUnavailableError(WalletError):
    """The document store could not be read or written."""
    
    code = "STORE_UNAVAILABLE"
    
    @property
    def category(self) -> str:
        return "store"
