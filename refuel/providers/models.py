"""Value types exchanged with external collaborators (wallets, ledgers, router)."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Protocol, Tuple

from ..core.chains import ChainFamily, SupportedChain


class Signer(Protocol):
    """Signing capability for one wallet.

    Implementations hand the unsigned payload to whoever holds the key (the
    custody service) and return the serialized signed transaction.
    """

    async def sign(self, chain: SupportedChain, payload: Dict[str, Any]) -> str:
        ...


@dataclass(frozen=True)
class WalletCredential:
    """Custody material for one chain family: an address plus its signer."""

    family: ChainFamily
    address: str
    signer: Signer = field(compare=False, repr=False)


@dataclass(frozen=True)
class UserWallets:
    """All wallets a user owns, keyed by chain family."""

    user_id: str
    credentials: Dict[ChainFamily, WalletCredential] = field(default_factory=dict)

    def for_family(self, family: ChainFamily) -> Optional[WalletCredential]:
        return self.credentials.get(family)

    @property
    def is_empty(self) -> bool:
        return not self.credentials


class ReceiptStatus(str, Enum):
    CONFIRMED = "confirmed"
    PENDING = "pending"


@dataclass(frozen=True)
class TransactionReceipt:
    """Result of a gateway submission that was accepted by the network."""

    chain: SupportedChain
    tx_hash: str
    status: ReceiptStatus = ReceiptStatus.CONFIRMED
    block_number: Optional[int] = None
    fee: Optional[int] = None


@dataclass(frozen=True)
class BridgeQuote:
    """Router-provided route for moving value between two chains."""

    source: SupportedChain
    destination: SupportedChain
    amount_in: int
    sender_address: str
    recipient_address: str
    request_id: Optional[str] = None
    amount_out: Optional[int] = None
    fees_usd: Optional[str] = None
    eta_seconds: Optional[float] = None
    transactions: Tuple[Dict[str, Any], ...] = ()
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)


@dataclass(frozen=True)
class BridgeReceipt:
    """Proof that the source-side leg of a bridge was submitted."""

    quote: BridgeQuote
    request_id: Optional[str]
    source_tx_hashes: Tuple[str, ...] = ()


class SettlementStatus(str, Enum):
    SETTLED = "settled"
    PENDING = "pending"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class BridgeSettlement:
    """Observed state of a bridge on the destination chain."""

    status: SettlementStatus
    request_id: Optional[str] = None
    destination_tx_hashes: Tuple[str, ...] = ()
    detail: Optional[str] = None

    @property
    def is_settled(self) -> bool:
        return self.status == SettlementStatus.SETTLED


__all__ = [
    "Signer",
    "WalletCredential",
    "UserWallets",
    "ReceiptStatus",
    "TransactionReceipt",
    "BridgeQuote",
    "BridgeReceipt",
    "SettlementStatus",
    "BridgeSettlement",
]
