from decimal import Decimal

from refuel.core.chains import SupportedChain
from refuel.core.conversation import ConversationState, InMemorySessionStore, Stage
from refuel.core.transfer import FlowKind, OutcomeStatus, TransferOutcome


def test_unknown_user_is_idle():
    store = InMemorySessionStore()

    assert store.get("nobody") == ConversationState()
    assert len(store) == 0


def test_put_and_reset_are_scoped_to_user():
    store = InMemorySessionStore()
    state = ConversationState(
        stage=Stage.AWAITING_AMOUNT,
        flow=FlowKind.BRIDGE,
        source_chain=SupportedChain.BASE,
        destination_chain=SupportedChain.SOLANA,
    )

    store.put("a", state)
    store.put("b", ConversationState.start(FlowKind.SAME_CHAIN_TRANSFER))
    store.reset("b")

    assert store.get("a") == state
    assert store.get("b").stage == Stage.IDLE
    assert len(store) == 1


def test_idle_state_is_not_stored():
    store = InMemorySessionStore()
    store.put("a", ConversationState.start(FlowKind.BRIDGE))

    store.put("a", ConversationState())

    assert len(store) == 0


def test_pending_bridge_memory():
    store = InMemorySessionStore()
    outcome = TransferOutcome(
        success=False,
        status=OutcomeStatus.TIMED_OUT,
        flow=FlowKind.BRIDGE,
        source_chain=SupportedChain.BASE,
        destination_chain=SupportedChain.SOLANA,
        amount_usd=Decimal("5"),
        request_id="0xrequest",
    )

    store.remember_pending_bridge("a", outcome)
    assert store.pending_bridge("a") is outcome
    assert store.pending_bridge("b") is None

    store.remember_pending_bridge("a", None)
    assert store.pending_bridge("a") is None


def test_state_serializes_for_api():
    state = ConversationState(
        stage=Stage.AWAITING_ADDRESS,
        flow=FlowKind.BRIDGE,
        source_chain=SupportedChain.ARBITRUM,
        destination_chain=SupportedChain.SOLANA,
        amount_usd=Decimal("5.5"),
    )

    assert state.to_dict() == {
        "stage": "awaiting_address",
        "flow": "bridge",
        "source_chain": "arbitrum",
        "destination_chain": "solana",
        "amount_usd": "5.5",
        "recipient_address": None,
    }
