"""
Tests for the conversation state machine.
"""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from refuel.core.chains import SupportedChain
from refuel.core.conversation import (
    ConversationEngine,
    ConversationState,
    EventKind,
    MessageKind,
    Stage,
    UserEvent,
)
from refuel.core.errors import ConfirmationTimeoutError, WalletNotFoundError
from refuel.core.transfer import FlowKind, TransferOrchestrator
from refuel.providers.models import BridgeSettlement, SettlementStatus

USER = "user-1"
SOL_RECIPIENT = "So11111111111111111111111111111111111111112"
EVM_RECIPIENT = "0x2222222222222222222222222222222222222222"


@pytest.fixture
def notifier() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def orchestrator(directory, price_oracle, wallet_store, bridge_router) -> TransferOrchestrator:
    return TransferOrchestrator(directory, price_oracle, wallet_store, bridge_router, bridge_timeout_s=900)


@pytest.fixture
def engine(directory, orchestrator, notifier) -> ConversationEngine:
    return ConversationEngine(directory, orchestrator, notifier=notifier, min_amount_usd=Decimal("2"))


async def send(engine, kind, value=None):
    return await engine.handle_event(USER, UserEvent(kind=kind, value=value))


async def walk_bridge_to_address(engine):
    await send(engine, EventKind.BEGIN_BRIDGE)
    await send(engine, EventKind.CHAIN_SELECTED, "arbitrum")
    await send(engine, EventKind.CHAIN_SELECTED, "solana")
    await send(engine, EventKind.TEXT, "5")


@pytest.mark.asyncio
async def test_begin_bridge_lists_supported_chains(engine):
    reply = await send(engine, EventKind.BEGIN_BRIDGE)

    assert reply.kind == MessageKind.PROMPT
    assert reply.options == ("Ethereum", "Solana", "Base", "Optimism", "Arbitrum")
    assert engine.get_state(USER).stage == Stage.AWAITING_SOURCE_CHAIN
    assert engine.get_state(USER).flow == FlowKind.BRIDGE


@pytest.mark.asyncio
async def test_bridge_flow_follows_transition_table(engine):
    await send(engine, EventKind.BEGIN_BRIDGE)

    reply = await send(engine, EventKind.CHAIN_SELECTED, "arbitrum")
    assert engine.get_state(USER).stage == Stage.AWAITING_DESTINATION_CHAIN
    assert "Arbitrum" not in reply.options

    await send(engine, EventKind.TEXT, "sol")
    assert engine.get_state(USER).stage == Stage.AWAITING_AMOUNT
    assert engine.get_state(USER).amount_usd is None

    await send(engine, EventKind.TEXT, "5")
    state = engine.get_state(USER)
    assert state.stage == Stage.AWAITING_ADDRESS
    assert state.amount_usd == Decimal("5")
    assert state.recipient_address is None


@pytest.mark.asyncio
async def test_unsupported_chain_is_rejected_without_transition(engine):
    await send(engine, EventKind.BEGIN_BRIDGE)

    reply = await send(engine, EventKind.CHAIN_SELECTED, "polygon")

    assert reply.kind == MessageKind.REJECTION
    assert engine.get_state(USER).stage == Stage.AWAITING_SOURCE_CHAIN


@pytest.mark.asyncio
async def test_same_source_and_destination_is_rejected(engine):
    await send(engine, EventKind.BEGIN_BRIDGE)
    await send(engine, EventKind.CHAIN_SELECTED, "base")

    reply = await send(engine, EventKind.CHAIN_SELECTED, "base")

    assert reply.kind == MessageKind.REJECTION
    assert engine.get_state(USER).stage == Stage.AWAITING_DESTINATION_CHAIN


@pytest.mark.asyncio
@pytest.mark.parametrize("text", ["abc", "1", "-5", "1.99"])
async def test_bad_amounts_leave_stage_unchanged(engine, text):
    await send(engine, EventKind.BEGIN_BRIDGE)
    await send(engine, EventKind.CHAIN_SELECTED, "arbitrum")
    await send(engine, EventKind.CHAIN_SELECTED, "solana")
    before = engine.get_state(USER)

    reply = await send(engine, EventKind.TEXT, text)

    assert reply.kind == MessageKind.REJECTION
    assert engine.get_state(USER) == before


@pytest.mark.asyncio
async def test_minimum_amount_is_accepted(engine):
    await send(engine, EventKind.BEGIN_BRIDGE)
    await send(engine, EventKind.CHAIN_SELECTED, "arbitrum")
    await send(engine, EventKind.CHAIN_SELECTED, "solana")

    await send(engine, EventKind.TEXT, "2")

    assert engine.get_state(USER).stage == Stage.AWAITING_ADDRESS


@pytest.mark.asyncio
async def test_address_is_validated_for_destination_chain(engine):
    await walk_bridge_to_address(engine)

    reply = await send(engine, EventKind.TEXT, EVM_RECIPIENT)

    assert reply.kind == MessageKind.REJECTION
    assert engine.get_state(USER).stage == Stage.AWAITING_ADDRESS


@pytest.mark.asyncio
async def test_end_to_end_bridge_success(engine, notifier, bridge_router):
    await walk_bridge_to_address(engine)

    reply = await send(engine, EventKind.TEXT, SOL_RECIPIENT)

    # State is reset before the orchestrator runs
    assert reply.kind == MessageKind.INFO
    assert engine.get_state(USER) == ConversationState()

    await engine.drain()

    notifier.assert_awaited_once()
    user_id, message = notifier.await_args.args
    assert user_id == USER
    assert message.kind == MessageKind.OUTCOME
    assert "Bridge completed" in message.text
    assert "0xsource" in message.text
    bridge_router.initiate.assert_awaited_once()


@pytest.mark.asyncio
async def test_end_to_end_bridge_timeout_can_be_checked_later(engine, notifier, bridge_router):
    bridge_router.await_completion.side_effect = ConfirmationTimeoutError(tx_hash="0xsource")
    await walk_bridge_to_address(engine)

    await send(engine, EventKind.TEXT, SOL_RECIPIENT)
    await engine.drain()

    _, message = notifier.await_args.args
    assert "completion not confirmed within window" in message.text
    assert "rejected" not in message.text

    pending = await send(engine, EventKind.CHECK_STATUS)
    assert "still pending" in pending.text
    bridge_router.get_status.assert_awaited_once_with("0xrequest")

    bridge_router.get_status.return_value = BridgeSettlement(
        status=SettlementStatus.SETTLED,
        request_id="0xrequest",
        destination_tx_hashes=("0xdest",),
    )
    settled = await send(engine, EventKind.CHECK_STATUS)
    assert "settled" in settled.text
    assert "0xdest" in settled.text

    nothing = await send(engine, EventKind.CHECK_STATUS)
    assert "no unconfirmed bridge" in nothing.text


@pytest.mark.asyncio
async def test_repeated_address_does_not_submit_twice(engine, bridge_router):
    await walk_bridge_to_address(engine)

    await send(engine, EventKind.TEXT, SOL_RECIPIENT)
    second = await send(engine, EventKind.TEXT, SOL_RECIPIENT)
    await engine.drain()

    assert second is None
    assert bridge_router.quote.await_count == 1


@pytest.mark.asyncio
async def test_same_chain_transfer_skips_destination(engine, notifier, directory):
    await send(engine, EventKind.BEGIN_TRANSFER)
    await send(engine, EventKind.CHAIN_SELECTED, "base")
    assert engine.get_state(USER).stage == Stage.AWAITING_AMOUNT

    await send(engine, EventKind.TEXT, "$5")
    rejected = await send(engine, EventKind.TEXT, SOL_RECIPIENT)
    assert rejected.kind == MessageKind.REJECTION

    await send(engine, EventKind.TEXT, EVM_RECIPIENT)
    await engine.drain()

    _, message = notifier.await_args.args
    assert "Transfer confirmed" in message.text
    directory.gateway(SupportedChain.BASE).submit_native_transfer.assert_awaited_once()


@pytest.mark.asyncio
@pytest.mark.parametrize("steps", [1, 2, 3, 4])
async def test_cancel_in_any_stage_resets_state(engine, steps):
    events = [
        (EventKind.BEGIN_BRIDGE, None),
        (EventKind.CHAIN_SELECTED, "arbitrum"),
        (EventKind.CHAIN_SELECTED, "solana"),
        (EventKind.TEXT, "5"),
    ]
    for kind, value in events[:steps]:
        await send(engine, kind, value)

    reply = await send(engine, EventKind.CANCEL)

    assert "cancelled" in reply.text
    assert engine.get_state(USER) == ConversationState()


@pytest.mark.asyncio
async def test_cancel_and_text_while_idle(engine):
    cancel = await send(engine, EventKind.CANCEL)
    text = await send(engine, EventKind.TEXT, "hello")

    assert cancel.text == "Nothing to cancel."
    assert text is None


@pytest.mark.asyncio
async def test_begin_mid_flow_starts_fresh(engine):
    await walk_bridge_to_address(engine)

    await send(engine, EventKind.BEGIN_TRANSFER)

    assert engine.get_state(USER) == ConversationState(
        stage=Stage.AWAITING_SOURCE_CHAIN,
        flow=FlowKind.SAME_CHAIN_TRANSFER,
    )


@pytest.mark.asyncio
async def test_users_do_not_share_state(engine):
    await send(engine, EventKind.BEGIN_BRIDGE)

    await engine.handle_event("user-2", UserEvent(EventKind.BEGIN_TRANSFER))
    await engine.handle_event("user-2", UserEvent(EventKind.CHAIN_SELECTED, "base"))

    assert engine.get_state(USER).stage == Stage.AWAITING_SOURCE_CHAIN
    assert engine.get_state("user-2").stage == Stage.AWAITING_AMOUNT


@pytest.mark.asyncio
async def test_orchestrator_crash_becomes_generic_failure(directory, notifier):
    orchestrator = AsyncMock(spec=TransferOrchestrator)
    orchestrator.execute.side_effect = RuntimeError("boom")
    engine = ConversationEngine(directory, orchestrator, notifier=notifier, min_amount_usd=Decimal("2"))
    await walk_bridge_to_address(engine)

    await send(engine, EventKind.TEXT, SOL_RECIPIENT)
    await engine.drain()

    _, message = notifier.await_args.args
    assert "unknown error" in message.text
    assert engine.get_state(USER).is_idle


@pytest.mark.asyncio
async def test_show_wallet_offers_creation_when_missing(engine, wallet_store):
    wallet_store.get_wallets.side_effect = WalletNotFoundError("none")

    reply = await send(engine, EventKind.SHOW_WALLET)

    assert reply.options == ("evm", "solana")


@pytest.mark.asyncio
async def test_show_wallet_lists_balances(engine, directory):
    directory.gateway(SupportedChain.SOLANA).get_balance.side_effect = RuntimeError("rpc down")

    reply = await send(engine, EventKind.SHOW_WALLET)

    assert "0x1111111111111111111111111111111111111111" in reply.text
    assert "Solana: 0 SOL" in reply.text
    assert "(unavailable)" in reply.text
    assert engine.get_state(USER).is_idle


@pytest.mark.asyncio
async def test_create_wallet(engine, wallet_store):
    from refuel.core.chains import ChainFamily

    bad = await send(engine, EventKind.CREATE_WALLET, "btc")
    good = await send(engine, EventKind.CREATE_WALLET, "EVM")

    assert bad.kind == MessageKind.REJECTION
    assert "0x1111111111111111111111111111111111111111" in good.text
    wallet_store.create_wallet.assert_awaited_once_with(USER, ChainFamily.EVM)


@pytest.mark.asyncio
@pytest.mark.parametrize("text", ["1e30", "1000000.01"])
async def test_amounts_above_maximum_are_rejected(engine, text):
    await send(engine, EventKind.BEGIN_TRANSFER)
    await send(engine, EventKind.CHAIN_SELECTED, "base")
    before = engine.get_state(USER)

    reply = await send(engine, EventKind.TEXT, text)

    assert reply.kind == MessageKind.REJECTION
    assert "$1,000,000.00" in reply.text
    assert engine.get_state(USER) == before


@pytest.mark.asyncio
async def test_huge_amount_reports_insufficient_balance(directory, orchestrator, notifier):
    engine = ConversationEngine(
        directory,
        orchestrator,
        notifier=notifier,
        min_amount_usd=Decimal("2"),
        max_amount_usd=Decimal("1e40"),
    )
    await send(engine, EventKind.BEGIN_TRANSFER)
    await send(engine, EventKind.CHAIN_SELECTED, "base")
    await send(engine, EventKind.TEXT, "1e30")

    await send(engine, EventKind.TEXT, EVM_RECIPIENT)
    await engine.drain()

    _, message = notifier.await_args.args
    assert "Insufficient balance" in message.text
    assert "unknown error" not in message.text
