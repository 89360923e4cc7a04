"""
Error Classification

Defines the error types raised by ledger gateways, the bridge router, the
wallet store and the price oracle. The orchestrator turns every one of them
into a TransferOutcome; none of them reach the conversation layer.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCategory(str, Enum):
    """Categories of errors for outcome reporting."""

    VALIDATION = "validation"             # Bad user input
    DEPENDENCY = "dependency"             # Wallet/price/balance lookup failed
    INSUFFICIENT_FUNDS = "insufficient_funds"  # Principal exceeds balance
    SUBMISSION = "submission"             # Ledger rejected the transaction
    ROUTE_REJECTED = "route_rejected"     # Bridge router refused to quote
    TIMEOUT = "timeout"                   # Submitted but not confirmed in time
    NETWORK = "network"                   # Connectivity issues
    UNKNOWN = "unknown"


@dataclass
class ErrorContext:
    """Additional context about an error."""

    category: ErrorCategory = ErrorCategory.UNKNOWN
    reason: Optional[str] = None
    fee_related: bool = False
    chain: Optional[str] = None
    tx_hash: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)


class RefuelError(Exception):
    """Base class for every classified failure in the transfer pipeline."""

    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(
        self,
        message: str,
        context: Optional[ErrorContext] = None,
    ):
        super().__init__(message)
        self.message = message
        self.context = context or ErrorContext(category=self.category, reason=message)


class DependencyError(RefuelError):
    """An external lookup needed before submission failed."""

    category = ErrorCategory.DEPENDENCY


class WalletResolutionError(DependencyError):
    """The wallet store could not resolve custody material."""

    def __init__(self, message: str = "credential resolution failed", chain: Optional[str] = None):
        super().__init__(
            message,
            context=ErrorContext(category=self.category, reason="credential resolution failed", chain=chain),
        )


class WalletNotFoundError(WalletResolutionError):
    """The user has no wallet of the requested family yet."""


class PriceUnavailableError(DependencyError):
    """USD price missing, zero or not fetchable."""

    def __init__(self, message: str = "price unavailable", symbol: Optional[str] = None):
        super().__init__(
            message,
            context=ErrorContext(
                category=self.category,
                reason="price unavailable",
                details={"symbol": symbol} if symbol else {},
            ),
        )


class BalanceUnavailableError(DependencyError):
    """Balance query failed; this is never the same thing as a zero balance."""

    def __init__(self, message: str = "unable to verify balance", chain: Optional[str] = None):
        super().__init__(
            message,
            context=ErrorContext(category=self.category, reason="unable to verify balance", chain=chain),
        )


class InsufficientBalanceError(RefuelError):
    """Wallet balance is below the principal to send."""

    category = ErrorCategory.INSUFFICIENT_FUNDS

    def __init__(
        self,
        message: str = "insufficient balance",
        required: Optional[str] = None,
        available: Optional[str] = None,
        token: Optional[str] = None,
    ):
        super().__init__(
            message,
            context=ErrorContext(
                category=self.category,
                reason="insufficient balance",
                details={
                    "required": required,
                    "available": available,
                    "token": token,
                },
            ),
        )


class SubmissionError(RefuelError):
    """The ledger refused or reverted a submitted transaction."""

    category = ErrorCategory.SUBMISSION

    def __init__(
        self,
        message: str,
        reason: Optional[str] = None,
        fee_related: bool = False,
        chain: Optional[str] = None,
        tx_hash: Optional[str] = None,
    ):
        super().__init__(
            message,
            context=ErrorContext(
                category=self.category,
                reason=reason or message,
                fee_related=fee_related,
                chain=chain,
                tx_hash=tx_hash,
            ),
        )


class RouteRejectedError(RefuelError):
    """The bridge router declined to quote or validate the route."""

    category = ErrorCategory.ROUTE_REJECTED

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(
            message,
            context=ErrorContext(
                category=self.category,
                reason=message,
                details={"status_code": status_code} if status_code else {},
            ),
        )


class ConfirmationTimeoutError(RefuelError):
    """A transaction was broadcast but not confirmed within the wait window."""

    category = ErrorCategory.TIMEOUT

    def __init__(
        self,
        message: str = "completion not confirmed within window",
        tx_hash: Optional[str] = None,
        chain: Optional[str] = None,
    ):
        super().__init__(
            message,
            context=ErrorContext(
                category=self.category,
                reason="completion not confirmed within window",
                chain=chain,
                tx_hash=tx_hash,
            ),
        )


_FEE_PATTERNS = (
    "insufficient funds for gas",
    "insufficient funds for transfer",
    "insufficient funds",
    "insufficient lamports",
    "attempt to debit",
    "insufficientfundsforfee",
    "insufficient fee",
    "max fee per gas less than block base fee",
    "fee too low",
    "underpriced",
)

_NONCE_PATTERNS = ("nonce too low", "nonce too high", "already known", "known transaction")

_REVERT_PATTERNS = ("execution reverted", "revert", "out of gas", "transaction failed")

_BLOCKHASH_PATTERNS = ("blockhash not found", "block height exceeded")

_NETWORK_PATTERNS = ("connection", "network", "unreachable", "refused", "dns", "socket", "ssl")

_TIMEOUT_PATTERNS = ("timeout", "timed out", "deadline")


def classify_error(error: Exception) -> ErrorContext:
    """
    Classify an exception and return its error context.

    Raw RPC messages are matched against known patterns so the user sees a
    short normalized reason. Fee shortfalls reported at submission time stay
    in the SUBMISSION category: the principal passed the balance pre-check,
    so the missing funds are for fees.
    """
    if isinstance(error, RefuelError):
        return error.context

    message = str(error).lower()

    if any(p in message for p in _FEE_PATTERNS):
        return ErrorContext(
            category=ErrorCategory.SUBMISSION,
            reason="insufficient funds to cover network fees",
            fee_related=True,
        )

    if any(p in message for p in _NONCE_PATTERNS):
        return ErrorContext(
            category=ErrorCategory.SUBMISSION,
            reason="conflicting pending transaction (nonce)",
        )

    if any(p in message for p in _BLOCKHASH_PATTERNS):
        return ErrorContext(
            category=ErrorCategory.SUBMISSION,
            reason="transaction expired before inclusion",
        )

    if any(p in message for p in _REVERT_PATTERNS):
        return ErrorContext(
            category=ErrorCategory.SUBMISSION,
            reason="transaction reverted",
        )

    if any(p in message for p in _TIMEOUT_PATTERNS):
        return ErrorContext(
            category=ErrorCategory.TIMEOUT,
            reason="completion not confirmed within window",
        )

    if any(p in message for p in _NETWORK_PATTERNS):
        return ErrorContext(
            category=ErrorCategory.NETWORK,
            reason="network error while talking to the ledger",
        )

    return ErrorContext(category=ErrorCategory.UNKNOWN, reason=str(error) or "unknown error")


def submission_error_from(error: Exception, *, chain: Optional[str] = None, tx_hash: Optional[str] = None) -> SubmissionError:
    """Wrap a raw gateway exception into a normalized SubmissionError."""
    if isinstance(error, SubmissionError):
        return error
    context = classify_error(error)
    return SubmissionError(
        str(error),
        reason=context.reason,
        fee_related=context.fee_related,
        chain=chain,
        tx_hash=tx_hash,
    )


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "RefuelError",
    "DependencyError",
    "WalletResolutionError",
    "WalletNotFoundError",
    "PriceUnavailableError",
    "BalanceUnavailableError",
    "InsufficientBalanceError",
    "SubmissionError",
    "RouteRejectedError",
    "ConfirmationTimeoutError",
    "classify_error",
    "submission_error_from",
]
