"""
Conversation models: stages, inbound events, outbound messages and the
per-user conversation state.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Optional, Tuple

from ..chains import SupportedChain
from ..transfer.models import FlowKind


class Stage(str, Enum):
    """Where a user is in the intent-collection flow."""
    IDLE = "idle"
    AWAITING_SOURCE_CHAIN = "awaiting_source_chain"
    AWAITING_DESTINATION_CHAIN = "awaiting_destination_chain"
    AWAITING_AMOUNT = "awaiting_amount"
    AWAITING_ADDRESS = "awaiting_address"


class EventKind(str, Enum):
    BEGIN_BRIDGE = "begin_bridge"
    BEGIN_TRANSFER = "begin_transfer"
    CHAIN_SELECTED = "chain_selected"
    TEXT = "text"
    CANCEL = "cancel"
    SHOW_WALLET = "show_wallet"
    CREATE_WALLET = "create_wallet"
    CHECK_STATUS = "check_status"


class MessageKind(str, Enum):
    PROMPT = "prompt"            # Asks for the next piece of input
    REJECTION = "rejection"      # Input refused; stage unchanged
    INFO = "info"
    OUTCOME = "outcome"          # Terminal result of a transfer or bridge


@dataclass(frozen=True)
class UserEvent:
    """One inbound event from the messaging front-end."""
    kind: EventKind
    value: Optional[str] = None


@dataclass(frozen=True)
class OutboundMessage:
    text: str
    kind: MessageKind = MessageKind.INFO
    options: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ConversationState:
    """
    Per-user state. Never mutated: every transition builds a new record, and a
    new flow starts from ``ConversationState.start(flow)`` so no field from a
    previous flow survives.
    """
    stage: Stage = Stage.IDLE
    flow: Optional[FlowKind] = None
    source_chain: Optional[SupportedChain] = None
    destination_chain: Optional[SupportedChain] = None
    amount_usd: Optional[Decimal] = None
    recipient_address: Optional[str] = None

    @classmethod
    def start(cls, flow: FlowKind) -> "ConversationState":
        return cls(stage=Stage.AWAITING_SOURCE_CHAIN, flow=flow)

    @property
    def is_idle(self) -> bool:
        return self.stage == Stage.IDLE

    @property
    def is_bridge(self) -> bool:
        return self.flow == FlowKind.BRIDGE

    def to_dict(self) -> dict:
        return {
            "stage": self.stage.value,
            "flow": self.flow.value if self.flow else None,
            "source_chain": self.source_chain.value if self.source_chain else None,
            "destination_chain": self.destination_chain.value if self.destination_chain else None,
            "amount_usd": str(self.amount_usd) if self.amount_usd is not None else None,
            "recipient_address": self.recipient_address,
        }


IDLE_STATE = ConversationState()
