"""
Transfer pipeline models and types.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from ..chains import SupportedChain
from ...providers.models import WalletCredential


class FlowKind(str, Enum):
    """The two user flows; they differ only in how the destination is resolved."""
    BRIDGE = "bridge"
    SAME_CHAIN_TRANSFER = "transfer"


class OutcomeStatus(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"      # Submitted; settlement not observed in time


class FailureKind(str, Enum):
    """Why an attempt did not complete."""
    CREDENTIALS = "credentials"
    PRICE_UNAVAILABLE = "price_unavailable"
    INVALID_AMOUNT = "invalid_amount"
    BALANCE_UNAVAILABLE = "balance_unavailable"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    SUBMISSION = "submission"
    ROUTE_REJECTED = "route_rejected"
    BRIDGE_FAILED = "bridge_failed"
    TIMEOUT = "timeout"
    UNEXPECTED = "unexpected"


@dataclass(frozen=True)
class TransferRequest:
    """Candidate built by the conversation engine once every field is collected."""
    user_id: str
    flow: FlowKind
    source_chain: SupportedChain
    amount_usd: Decimal
    recipient_address: str
    destination_chain: Optional[SupportedChain] = None

    @property
    def is_bridge(self) -> bool:
        return self.flow == FlowKind.BRIDGE

    @property
    def target_chain(self) -> SupportedChain:
        """Network the recipient address lives on."""
        return self.destination_chain if self.is_bridge and self.destination_chain else self.source_chain


@dataclass(frozen=True)
class TransferIntent:
    """Request plus the credentials resolved for it; built once per attempt."""
    request: TransferRequest
    sender: WalletCredential
    receiver: Optional[WalletCredential] = None


@dataclass(frozen=True)
class TransferOutcome:
    """Terminal result of one orchestration run."""
    success: bool
    status: OutcomeStatus
    flow: FlowKind
    source_chain: SupportedChain
    destination_chain: Optional[SupportedChain] = None
    failure_kind: Optional[FailureKind] = None
    reason: Optional[str] = None
    native_amount: Optional[Decimal] = None
    native_symbol: Optional[str] = None
    amount_usd: Optional[Decimal] = None
    recipient_address: Optional[str] = None
    tx_refs: Tuple[str, ...] = ()
    explorer_link: Optional[str] = None
    request_id: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def timed_out(self) -> bool:
        return self.status == OutcomeStatus.TIMED_OUT
