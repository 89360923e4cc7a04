from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Dict, Optional

from ..core.chains import ChainFamily, ChainInfo, SupportedChain
from .models import (
    BridgeQuote,
    BridgeReceipt,
    BridgeSettlement,
    TransactionReceipt,
    UserWallets,
    WalletCredential,
)


class Provider(ABC):
    """Base provider interface"""

    name: str
    timeout_s: int = 10

    @abstractmethod
    async def ready(self) -> bool:
        """Check if provider is ready to serve requests"""
        pass

    @abstractmethod
    async def health_check(self) -> Dict[str, Any]:
        """Return provider health status"""
        pass


class PriceOracle(Provider):
    """Provider for native asset USD prices"""

    @abstractmethod
    async def get_usd_price(self, symbol: str) -> Optional[Decimal]:
        """USD price for a native asset symbol, or None when unavailable"""
        pass


class LedgerGateway(Provider):
    """Read/write access to one network's ledger"""

    chain: SupportedChain

    @abstractmethod
    async def get_balance(self, address: str) -> int:
        """Native balance in the smallest unit; raises on query failure"""
        pass

    @abstractmethod
    async def submit_native_transfer(
        self,
        credential: WalletCredential,
        to_address: str,
        amount: int,
    ) -> TransactionReceipt:
        """Send ``amount`` smallest units and wait for the network's confirmation"""
        pass

    @abstractmethod
    async def submit_prepared(
        self,
        credential: WalletCredential,
        payload: Dict[str, Any],
    ) -> TransactionReceipt:
        """Sign and broadcast a transaction prepared by a third party (e.g. a bridge route)"""
        pass


class BridgeRouter(Provider):
    """Opaque cross-chain routing capability"""

    @abstractmethod
    async def quote(
        self,
        source: ChainInfo,
        destination: ChainInfo,
        amount: int,
        sender_address: str,
        recipient_address: str,
    ) -> BridgeQuote:
        """Quote a route; raises RouteRejectedError when the router declines"""
        pass

    @abstractmethod
    async def initiate(
        self,
        quote: BridgeQuote,
        sender: WalletCredential,
        recipient_address: str,
    ) -> BridgeReceipt:
        """Submit the source-side transactions of a quoted route, exactly once"""
        pass

    @abstractmethod
    async def await_completion(
        self,
        receipt: BridgeReceipt,
        receiver: WalletCredential,
        timeout_s: float,
    ) -> BridgeSettlement:
        """Poll until the route settles, fails, or ``timeout_s`` elapses"""
        pass

    @abstractmethod
    async def get_status(self, request_id: str) -> BridgeSettlement:
        """Single status lookup for a previously initiated route"""
        pass


class WalletStore(Provider):
    """Custody service mapping a user to per-family wallets"""

    @abstractmethod
    async def get_wallets(self, user_id: str) -> UserWallets:
        """Raises WalletNotFoundError when the user has no wallets"""
        pass

    @abstractmethod
    async def create_wallet(self, user_id: str, family: ChainFamily) -> str:
        """Create (or replace) the user's wallet for ``family``; returns its address"""
        pass
