"""
Process-wide wiring of providers, the orchestrator and the conversation engine.

Outcomes produced after the turn that triggered them are queued in an
``Outbox`` per user; front-ends drain it (HTTP polling, the CLI loop).
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Deque, Dict, List, Optional

from ..config import Settings, settings
from ..core.chains import ChainDirectory, ChainFamily, SupportedChain, CHAIN_METADATA
from ..core.conversation import ConversationEngine, InMemorySessionStore, OutboundMessage
from ..core.transfer import TransferOrchestrator
from ..providers.base import LedgerGateway
from ..providers.coingecko import CoingeckoProvider
from ..providers.evm import EvmLedgerGateway
from ..providers.relay import RelayBridgeRouter
from ..providers.solana import SolanaLedgerGateway
from ..providers.wallet_store import HttpWalletStore

logger = logging.getLogger(__name__)


class Outbox:
    """Per-user queue of messages delivered outside the request/response turn."""

    def __init__(self, max_per_user: int = 50) -> None:
        self._queues: Dict[str, Deque[OutboundMessage]] = defaultdict(lambda: deque(maxlen=max_per_user))
        self._events: Dict[str, asyncio.Event] = defaultdict(asyncio.Event)

    async def __call__(self, user_id: str, message: OutboundMessage) -> None:
        self._queues[user_id].append(message)
        self._events[user_id].set()

    def drain(self, user_id: str) -> List[OutboundMessage]:
        queue = self._queues.pop(user_id, None)
        # A concurrent wait() may still hold this event
        event = self._events.get(user_id)
        if event is not None:
            event.clear()
        return list(queue) if queue else []

    async def wait(self, user_id: str, timeout_s: float) -> List[OutboundMessage]:
        """Block until a message arrives for ``user_id`` (or the timeout passes), then drain."""
        if not self._queues.get(user_id):
            try:
                await asyncio.wait_for(self._events[user_id].wait(), timeout=timeout_s)
            except asyncio.TimeoutError:
                pass
        return self.drain(user_id)


def build_gateways(config: Settings) -> Dict[SupportedChain, LedgerGateway]:
    """One LedgerGateway per network, in the order chains are offered to users."""
    urls = config.rpc_urls()
    gateways: Dict[SupportedChain, LedgerGateway] = {}
    for chain in SupportedChain:
        if CHAIN_METADATA[chain]["family"] == ChainFamily.SOLANA:
            gateways[chain] = SolanaLedgerGateway(
                urls.get(chain.value),
                confirmation_timeout_s=config.transfer_confirmation_timeout_seconds,
                timeout_s=config.request_timeout_seconds,
            )
        else:
            gateways[chain] = EvmLedgerGateway(
                chain,
                urls.get(chain.value),
                confirmation_timeout_s=config.transfer_confirmation_timeout_seconds,
                required_confirmations=config.required_confirmations,
                timeout_s=config.request_timeout_seconds,
            )
        if not urls.get(chain.value):
            logger.warning("No RPC URL configured for %s", chain.value)
    return gateways


@dataclass
class Runtime:
    directory: ChainDirectory
    orchestrator: TransferOrchestrator
    engine: ConversationEngine
    outbox: Outbox

    async def close(self) -> None:
        await self.engine.drain()
        for info in self.directory:
            close = getattr(info.gateway, "close", None)
            if close is not None:
                await close()


def build_runtime(config: Optional[Settings] = None) -> Runtime:
    config = config or settings
    directory = ChainDirectory.from_gateways(build_gateways(config))
    orchestrator = TransferOrchestrator(
        directory,
        CoingeckoProvider(),
        HttpWalletStore(timeout_s=config.request_timeout_seconds),
        RelayBridgeRouter(directory),
        bridge_timeout_s=config.bridge_completion_timeout_seconds,
    )
    outbox = Outbox()
    engine = ConversationEngine(
        directory,
        orchestrator,
        sessions=InMemorySessionStore(),
        notifier=outbox,
        min_amount_usd=config.min_amount_usd,
        max_amount_usd=config.max_amount_usd,
    )
    return Runtime(directory=directory, orchestrator=orchestrator, engine=engine, outbox=outbox)


# Module-level singleton for convenience
_runtime: Optional[Runtime] = None


def get_runtime() -> Runtime:
    global _runtime
    if _runtime is None:
        _runtime = build_runtime()
    return _runtime


def set_runtime(runtime: Optional[Runtime]) -> None:
    """Replace the process runtime (tests inject fakes through this)."""
    global _runtime
    _runtime = runtime


async def shutdown_runtime() -> None:
    global _runtime
    if _runtime is not None:
        await _runtime.close()
        _runtime = None
