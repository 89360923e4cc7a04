"""
Conversation Engine

Explicit finite-state machine that turns inbound user events into prompts and,
once a flow is complete, into a TransferOrchestrator run.

Each accepted event emits exactly one message. Rejected input emits one
corrective message and leaves the stored state untouched. When the address is
accepted the user's state is reset to Idle before the orchestrator is
scheduled, so repeated events can never submit twice.
"""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from typing import Awaitable, Callable, Dict, Optional, Set

from ...config import settings
from ...logging_config import bind_user, clear_user
from ...providers.models import SettlementStatus
from ...services.address import is_valid_address_for_chain
from ...services.balances import build_wallet_overview
from ..chains import ChainDirectory, ChainFamily, ChainInfo
from ..errors import WalletNotFoundError, WalletResolutionError
from ..transfer.amounts import format_usd, parse_usd_amount
from ..transfer.models import FlowKind, TransferOutcome, TransferRequest
from ..transfer.orchestrator import TransferOrchestrator
from . import messages
from .models import ConversationState, EventKind, OutboundMessage, Stage, UserEvent
from .session_store import InMemorySessionStore, SessionStore

logger = logging.getLogger(__name__)

# Async callback delivering messages produced after the turn that caused them.
Notifier = Callable[[str, OutboundMessage], Awaitable[None]]

StageHandler = Callable[[str, ConversationState, UserEvent], Awaitable[Optional[OutboundMessage]]]


class ConversationEngine:
    """
    Per-user conversation state machine.

    Usage:
        engine = ConversationEngine(directory, orchestrator, notifier=send)
        reply = await engine.handle_event(user_id, UserEvent(EventKind.BEGIN_BRIDGE))
    """

    # Events each stage accepts besides the ones handled in every stage
    TRANSITIONS: Dict[Stage, Set[EventKind]] = {
        Stage.IDLE: set(),
        Stage.AWAITING_SOURCE_CHAIN: {EventKind.CHAIN_SELECTED, EventKind.TEXT},
        Stage.AWAITING_DESTINATION_CHAIN: {EventKind.CHAIN_SELECTED, EventKind.TEXT},
        Stage.AWAITING_AMOUNT: {EventKind.TEXT},
        Stage.AWAITING_ADDRESS: {EventKind.TEXT},
    }

    GLOBAL_EVENTS: Set[EventKind] = {
        EventKind.BEGIN_BRIDGE,
        EventKind.BEGIN_TRANSFER,
        EventKind.CANCEL,
        EventKind.SHOW_WALLET,
        EventKind.CREATE_WALLET,
        EventKind.CHECK_STATUS,
    }

    def __init__(
        self,
        directory: ChainDirectory,
        orchestrator: TransferOrchestrator,
        *,
        sessions: Optional[SessionStore] = None,
        notifier: Optional[Notifier] = None,
        min_amount_usd: Optional[Decimal] = None,
        max_amount_usd: Optional[Decimal] = None,
    ):
        self.directory = directory
        self.orchestrator = orchestrator
        self.sessions = sessions or InMemorySessionStore()
        self.notifier = notifier
        self.min_amount_usd = min_amount_usd if min_amount_usd is not None else settings.min_amount_usd
        self.max_amount_usd = max_amount_usd if max_amount_usd is not None else settings.max_amount_usd
        self._inflight: Set[asyncio.Task] = set()

        self._stage_handlers: Dict[Stage, StageHandler] = {
            Stage.AWAITING_SOURCE_CHAIN: self._on_source_chain,
            Stage.AWAITING_DESTINATION_CHAIN: self._on_destination_chain,
            Stage.AWAITING_AMOUNT: self._on_amount,
            Stage.AWAITING_ADDRESS: self._on_address,
        }

    def get_state(self, user_id: str) -> ConversationState:
        return self.sessions.get(user_id)

    @property
    def inflight_count(self) -> int:
        return len(self._inflight)

    async def drain(self) -> None:
        """Wait for every scheduled orchestration to finish."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    async def handle_event(self, user_id: str, event: UserEvent) -> Optional[OutboundMessage]:
        """Apply ``event`` to the user's state; returns the reply for this turn, if any."""
        bind_user(user_id)
        try:
            return await self._dispatch(user_id, event)
        finally:
            clear_user()

    async def _dispatch(self, user_id: str, event: UserEvent) -> Optional[OutboundMessage]:
        state = self.sessions.get(user_id)

        if event.kind in (EventKind.BEGIN_BRIDGE, EventKind.BEGIN_TRANSFER):
            return self._begin(user_id, event.kind)
        if event.kind == EventKind.CANCEL:
            return self._cancel(user_id, state)
        if event.kind == EventKind.SHOW_WALLET:
            return await self._show_wallet(user_id)
        if event.kind == EventKind.CREATE_WALLET:
            return await self._create_wallet(user_id, event.value)
        if event.kind == EventKind.CHECK_STATUS:
            return await self._check_status(user_id)

        if event.kind not in self.TRANSITIONS.get(state.stage, set()):
            if state.is_idle:
                logger.debug("Ignoring %s event while idle", event.kind.value)
                return None
            return messages.rejection(self._reprompt_text(state))

        return await self._stage_handlers[state.stage](user_id, state, event)

    # ---------------------------
    # Global events
    # ---------------------------
    def _begin(self, user_id: str, kind: EventKind) -> OutboundMessage:
        flow = FlowKind.BRIDGE if kind == EventKind.BEGIN_BRIDGE else FlowKind.SAME_CHAIN_TRANSFER
        previous = self.sessions.get(user_id)
        if not previous.is_idle:
            logger.info("Restarting %s flow from %s", flow.value, previous.stage.value)
        self.sessions.put(user_id, ConversationState.start(flow))
        return messages.source_chain_prompt(flow, self.directory)

    def _cancel(self, user_id: str, state: ConversationState) -> OutboundMessage:
        if state.is_idle:
            return messages.info("Nothing to cancel.")
        self.sessions.reset(user_id)
        label = "Bridge" if state.is_bridge else "Transfer"
        return messages.info(f"{label} cancelled.")

    async def _show_wallet(self, user_id: str) -> OutboundMessage:
        try:
            wallets = await self.orchestrator.wallet_store.get_wallets(user_id)
        except WalletNotFoundError:
            return messages.wallet_creation_offer()
        except WalletResolutionError as e:
            logger.warning("Wallet lookup failed: %s", e.message)
            return messages.info("Could not load your wallet right now. Please try again later.")

        addresses = {family: cred.address for family, cred in wallets.credentials.items()}
        overview = await build_wallet_overview(self.directory, addresses, self.orchestrator.price_oracle)
        return messages.format_wallet_overview(overview)

    async def _create_wallet(self, user_id: str, value: Optional[str]) -> OutboundMessage:
        token = (value or "").strip().lower()
        try:
            family = ChainFamily(token)
        except ValueError:
            return messages.rejection(
                "Choose which wallet to create:",
                [f.value for f in ChainFamily],
            )

        try:
            address = await self.orchestrator.wallet_store.create_wallet(user_id, family)
        except WalletResolutionError as e:
            logger.warning("Wallet creation failed: %s", e.message)
            return messages.info("Could not create the wallet right now. Please try again later.")

        label = "EVM" if family == ChainFamily.EVM else "Solana"
        return messages.info(f"A new {label} wallet has been created. Your new wallet address is: {address}")

    async def _check_status(self, user_id: str) -> OutboundMessage:
        pending = self.sessions.pending_bridge(user_id)
        router = self.orchestrator.bridge_router
        if pending is None or not pending.request_id or router is None:
            return messages.info("There is no unconfirmed bridge to check.")

        try:
            settlement = await router.get_status(pending.request_id)
        except Exception as e:
            logger.warning("Bridge status lookup failed for %s: %s", pending.request_id, e)
            return messages.info("Could not reach the bridge right now. Please try again later.")

        if settlement.status == SettlementStatus.SETTLED:
            self.sessions.remember_pending_bridge(user_id, None)
            text = "✅ Your bridge has settled."
            if settlement.destination_tx_hashes:
                text += f"\nDestination transaction: {settlement.destination_tx_hashes[-1]}"
            return messages.info(text)
        if settlement.status == SettlementStatus.FAILED:
            self.sessions.remember_pending_bridge(user_id, None)
            return messages.info(f"❌ The bridge did not complete: {settlement.detail or 'failed'}")
        return messages.info("⏳ Your bridge is still pending. Check again in a few minutes.")

    # ---------------------------
    # Stage handlers
    # ---------------------------
    async def _on_source_chain(
        self, user_id: str, state: ConversationState, event: UserEvent
    ) -> OutboundMessage:
        info = self.directory.resolve(event.value)
        if info is None:
            return messages.rejection(
                "Unsupported chain. Select one of the listed chains.",
                self.directory.names(),
            )

        if state.is_bridge:
            self.sessions.put(
                user_id,
                ConversationState(
                    stage=Stage.AWAITING_DESTINATION_CHAIN,
                    flow=state.flow,
                    source_chain=info.chain,
                ),
            )
            return messages.prompt(
                f"Source: {info.name}\nSelect destination chain:",
                self.directory.names(exclude=info.chain),
            )

        self.sessions.put(
            user_id,
            ConversationState(stage=Stage.AWAITING_AMOUNT, flow=state.flow, source_chain=info.chain),
        )
        return messages.amount_prompt(self.min_amount_usd)

    async def _on_destination_chain(
        self, user_id: str, state: ConversationState, event: UserEvent
    ) -> OutboundMessage:
        info = self.directory.resolve(event.value)
        remaining = self.directory.names(exclude=state.source_chain)
        if info is None:
            return messages.rejection("Unsupported chain. Select one of the listed chains.", remaining)
        if info.chain == state.source_chain:
            return messages.rejection("Destination must be different from the source chain.", remaining)

        self.sessions.put(
            user_id,
            ConversationState(
                stage=Stage.AWAITING_AMOUNT,
                flow=state.flow,
                source_chain=state.source_chain,
                destination_chain=info.chain,
            ),
        )
        source_name = self.directory.get(state.source_chain).name
        amount = messages.amount_prompt(self.min_amount_usd)
        return messages.prompt(f"Bridge: {source_name} → {info.name}\n{amount.text}")

    async def _on_amount(
        self, user_id: str, state: ConversationState, event: UserEvent
    ) -> OutboundMessage:
        amount = parse_usd_amount(event.value)
        if amount is None or amount <= 0:
            return messages.rejection("Please enter a valid positive number for the amount.")
        if amount < self.min_amount_usd:
            return messages.rejection(f"Minimum amount is {format_usd(self.min_amount_usd)}.")
        if amount > self.max_amount_usd:
            return messages.rejection(f"Maximum amount is {format_usd(self.max_amount_usd)}.")

        self.sessions.put(
            user_id,
            ConversationState(
                stage=Stage.AWAITING_ADDRESS,
                flow=state.flow,
                source_chain=state.source_chain,
                destination_chain=state.destination_chain,
                amount_usd=amount,
            ),
        )
        return messages.address_prompt(self._target_chain(state).name)

    async def _on_address(
        self, user_id: str, state: ConversationState, event: UserEvent
    ) -> OutboundMessage:
        target = self._target_chain(state)
        address = (event.value or "").strip()
        if not is_valid_address_for_chain(address, target):
            return messages.rejection(f"Invalid address. Please enter a valid {target.name} address.")

        request = TransferRequest(
            user_id=user_id,
            flow=state.flow,
            source_chain=state.source_chain,
            destination_chain=state.destination_chain if state.is_bridge else None,
            amount_usd=state.amount_usd,
            recipient_address=address,
        )

        # No await between accepting the address and resetting the state.
        self.sessions.reset(user_id)
        self._schedule(request)
        return messages.processing_notice(request.flow)

    # ---------------------------
    # Orchestration
    # ---------------------------
    def _schedule(self, request: TransferRequest) -> None:
        task = asyncio.create_task(
            self._run(request),
            name=f"refuel-{request.flow.value}-{request.user_id}",
        )
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _run(self, request: TransferRequest) -> None:
        user_id = request.user_id
        logger.info(
            "Starting %s: %s -> %s, $%s",
            request.flow.value,
            request.source_chain.value,
            request.target_chain.value,
            request.amount_usd,
        )
        try:
            outcome = await self.orchestrator.execute(request)
            message = messages.format_outcome(outcome, self.directory)
            self._track(user_id, outcome)
            logger.info("%s finished with status %s", request.flow.value, outcome.status.value)
        except Exception:
            logger.exception("Orchestration crashed")
            message = messages.info("❌ An unknown error occurred. Please try again.")

        await self._notify(user_id, message)

    def _track(self, user_id: str, outcome: TransferOutcome) -> None:
        if outcome.timed_out and outcome.request_id:
            self.sessions.remember_pending_bridge(user_id, outcome)

    async def _notify(self, user_id: str, message: OutboundMessage) -> None:
        if self.notifier is None:
            logger.info("No notifier configured; dropping message: %s", message.text)
            return
        try:
            await self.notifier(user_id, message)
        except Exception:
            logger.exception("Failed to deliver message")

    def _target_chain(self, state: ConversationState) -> ChainInfo:
        chain = state.destination_chain if state.is_bridge else state.source_chain
        return self.directory.get(chain)

    def _reprompt_text(self, state: ConversationState) -> str:
        if state.stage == Stage.AWAITING_SOURCE_CHAIN:
            return "Please select a source chain."
        if state.stage == Stage.AWAITING_DESTINATION_CHAIN:
            return "Please select a destination chain."
        if state.stage == Stage.AWAITING_AMOUNT:
            return "Please enter the amount in USD."
        return "Please enter the recipient address."
