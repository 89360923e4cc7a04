from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from refuel.core.chains import ChainDirectory, ChainFamily, SupportedChain
from refuel.providers.models import (
    BridgeQuote,
    BridgeReceipt,
    BridgeSettlement,
    ReceiptStatus,
    SettlementStatus,
    TransactionReceipt,
    UserWallets,
    WalletCredential,
)

EVM_ADDRESS = "0x1111111111111111111111111111111111111111"
EVM_RECIPIENT = "0x2222222222222222222222222222222222222222"
SOL_ADDRESS = "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM"
SOL_RECIPIENT = "So11111111111111111111111111111111111111112"

ETH_PRICE = Decimal("2500")
SOL_PRICE = Decimal("150")


def make_gateway(chain: SupportedChain, balance: int = 10**20) -> MagicMock:
    gateway = MagicMock()
    gateway.chain = chain
    gateway.get_balance = AsyncMock(return_value=balance)
    gateway.submit_native_transfer = AsyncMock(
        return_value=TransactionReceipt(chain=chain, tx_hash=f"0x{chain.value}tx", status=ReceiptStatus.CONFIRMED)
    )
    gateway.submit_prepared = AsyncMock(
        return_value=TransactionReceipt(chain=chain, tx_hash=f"0x{chain.value}step", status=ReceiptStatus.CONFIRMED)
    )
    gateway.health_check = AsyncMock(return_value={"status": "configured"})
    return gateway


@pytest.fixture
def directory() -> ChainDirectory:
    return ChainDirectory.from_gateways({chain: make_gateway(chain) for chain in SupportedChain})


@pytest.fixture
def wallets() -> UserWallets:
    return UserWallets(
        user_id="user-1",
        credentials={
            ChainFamily.EVM: WalletCredential(ChainFamily.EVM, EVM_ADDRESS, signer=MagicMock()),
            ChainFamily.SOLANA: WalletCredential(ChainFamily.SOLANA, SOL_ADDRESS, signer=MagicMock()),
        },
    )


@pytest.fixture
def wallet_store(wallets) -> MagicMock:
    store = MagicMock()
    store.get_wallets = AsyncMock(return_value=wallets)
    store.create_wallet = AsyncMock(return_value=EVM_ADDRESS)
    store.health_check = AsyncMock(return_value={"status": "configured"})
    return store


@pytest.fixture
def price_oracle() -> MagicMock:
    prices = {"ETH": ETH_PRICE, "SOL": SOL_PRICE}
    oracle = MagicMock()
    oracle.get_usd_price = AsyncMock(side_effect=lambda symbol: prices.get(symbol))
    oracle.health_check = AsyncMock(return_value={"status": "healthy"})
    return oracle


@pytest.fixture
def bridge_router() -> MagicMock:
    router = MagicMock()

    async def quote(source, destination, amount, sender_address, recipient_address):
        return BridgeQuote(
            source=source.chain,
            destination=destination.chain,
            amount_in=amount,
            sender_address=sender_address,
            recipient_address=recipient_address,
            request_id="0xrequest",
            transactions=({"to": EVM_RECIPIENT, "value": str(amount), "data": "0x"},),
        )

    async def initiate(quote, sender, recipient_address):
        return BridgeReceipt(quote=quote, request_id=quote.request_id, source_tx_hashes=("0xsource",))

    router.quote = AsyncMock(side_effect=quote)
    router.initiate = AsyncMock(side_effect=initiate)
    router.await_completion = AsyncMock(
        return_value=BridgeSettlement(
            status=SettlementStatus.SETTLED,
            request_id="0xrequest",
            destination_tx_hashes=("0xdestination",),
        )
    )
    router.get_status = AsyncMock(
        return_value=BridgeSettlement(status=SettlementStatus.PENDING, request_id="0xrequest")
    )
    router.health_check = AsyncMock(return_value={"status": "healthy"})
    return router
