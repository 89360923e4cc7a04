"""
Transfer Orchestrator

Executes one TransferRequest and produces exactly one TransferOutcome. Steps
run strictly in order:

    credentials -> price -> native amount -> balance check -> submit -> confirm

Every failure is caught here and turned into an outcome; nothing raised by a
collaborator reaches the conversation layer. Submissions are attempted at
most once per request.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Optional

from ...config import settings
from ...providers.base import BridgeRouter, PriceOracle, WalletStore
from ...providers.models import BridgeReceipt, SettlementStatus
from ..chains import ChainDirectory, ChainInfo
from ..errors import (
    BalanceUnavailableError,
    ConfirmationTimeoutError,
    InsufficientBalanceError,
    PriceUnavailableError,
    RefuelError,
    RouteRejectedError,
    SubmissionError,
    WalletResolutionError,
    classify_error,
)
from .amounts import compute_native_amount, format_native, from_smallest_unit, to_smallest_unit
from .models import (
    FailureKind,
    OutcomeStatus,
    TransferIntent,
    TransferOutcome,
    TransferRequest,
)

logger = logging.getLogger(__name__)


class _AmountTooSmall(RefuelError):
    pass


class TransferOrchestrator:
    """
    Runs transfers and bridges against the configured collaborators.

    Usage:
        orchestrator = TransferOrchestrator(directory, oracle, wallets, router)
        outcome = await orchestrator.execute(request)
    """

    def __init__(
        self,
        directory: ChainDirectory,
        price_oracle: PriceOracle,
        wallet_store: WalletStore,
        bridge_router: Optional[BridgeRouter] = None,
        *,
        bridge_timeout_s: Optional[float] = None,
    ):
        self.directory = directory
        self.price_oracle = price_oracle
        self.wallet_store = wallet_store
        self.bridge_router = bridge_router
        self.bridge_timeout_s = (
            bridge_timeout_s if bridge_timeout_s is not None else settings.bridge_completion_timeout_seconds
        )

    async def execute(self, request: TransferRequest) -> TransferOutcome:
        """Run ``request`` to a terminal outcome. Never raises."""
        source = self.directory.get(request.source_chain)
        outcome = _OutcomeBuilder(request, source)

        try:
            intent = await self._resolve_intent(request)
            logger.info("Credentials resolved for %s on %s", request.user_id, source.name)

            price = await self._fetch_price(source)
            if price is None or price <= 0:
                raise PriceUnavailableError(symbol=source.native_symbol)
            logger.info("%s price: $%s", source.native_symbol, price)

            native_amount = compute_native_amount(request.amount_usd, price, source.decimals)
            amount_raw = to_smallest_unit(native_amount, source.decimals)
            if amount_raw <= 0:
                raise _AmountTooSmall("amount too small")
            outcome.native_amount = native_amount
            outcome.details["price_usd"] = str(price)

            await self._check_balance(source, intent.sender.address, amount_raw)

            if request.is_bridge:
                return await self._bridge(intent, source, amount_raw, outcome)
            return await self._transfer(intent, source, amount_raw, outcome)

        except ConfirmationTimeoutError as e:
            logger.warning("Confirmation not observed for %s: %s", request.user_id, e.message)
            _record_submitted(outcome, e)
            if e.context.tx_hash and e.context.tx_hash not in outcome.tx_refs:
                outcome.tx_refs += (e.context.tx_hash,)
            if outcome.explorer_link is None:
                outcome.explorer_link = source.explorer_link(e.context.tx_hash)
            return outcome.timed_out(e.context.reason)
        except WalletResolutionError as e:
            logger.warning("Credential resolution failed for %s: %s", request.user_id, e.message)
            return outcome.failed(FailureKind.CREDENTIALS, e.context.reason)
        except PriceUnavailableError as e:
            logger.warning("Price unavailable for %s", source.native_symbol)
            return outcome.failed(FailureKind.PRICE_UNAVAILABLE, e.context.reason)
        except _AmountTooSmall as e:
            return outcome.failed(FailureKind.INVALID_AMOUNT, e.message)
        except BalanceUnavailableError as e:
            logger.warning("Balance query failed on %s for %s", source.name, request.user_id)
            return outcome.failed(FailureKind.BALANCE_UNAVAILABLE, e.context.reason)
        except InsufficientBalanceError as e:
            outcome.details.update({k: v for k, v in e.context.details.items() if v is not None})
            return outcome.failed(FailureKind.INSUFFICIENT_BALANCE, e.context.reason)
        except RouteRejectedError as e:
            logger.warning("Bridge route rejected: %s", e.message)
            return outcome.failed(FailureKind.ROUTE_REJECTED, e.context.reason)
        except SubmissionError as e:
            logger.warning("Submission failed on %s: %s", source.name, e.message)
            _record_submitted(outcome, e)
            if e.context.tx_hash and e.context.tx_hash not in outcome.tx_refs:
                outcome.tx_refs += (e.context.tx_hash,)
            if e.context.fee_related:
                outcome.details["fee_related"] = True
            return outcome.failed(FailureKind.SUBMISSION, e.context.reason)
        except Exception as e:
            logger.exception("Unexpected error executing %s for %s", request.flow.value, request.user_id)
            context = classify_error(e)
            return outcome.failed(FailureKind.UNEXPECTED, context.reason or "unexpected error")

    async def _resolve_intent(self, request: TransferRequest) -> TransferIntent:
        try:
            wallets = await self.wallet_store.get_wallets(request.user_id)
        except WalletResolutionError:
            raise
        except Exception as exc:
            raise WalletResolutionError(str(exc) or "credential resolution failed") from exc
        source = self.directory.get(request.source_chain)

        sender = wallets.for_family(source.family)
        if sender is None:
            raise WalletResolutionError(chain=source.chain.value)

        receiver = None
        if request.is_bridge:
            destination = self.directory.get(request.target_chain)
            receiver = wallets.for_family(destination.family)
            if receiver is None:
                raise WalletResolutionError(chain=destination.chain.value)

        return TransferIntent(request=request, sender=sender, receiver=receiver)

    async def _fetch_price(self, source: ChainInfo) -> Optional[Decimal]:
        try:
            return await self.price_oracle.get_usd_price(source.native_symbol)
        except Exception as exc:
            raise PriceUnavailableError(str(exc) or "price unavailable", symbol=source.native_symbol) from exc

    async def _check_balance(self, source: ChainInfo, address: str, amount_raw: int) -> None:
        """Strict pre-check: a failed query aborts, it is never read as zero."""
        gateway = self.directory.gateway(source.chain)
        try:
            balance_raw = await gateway.get_balance(address)
        except Exception as exc:
            raise BalanceUnavailableError(str(exc) or "unable to verify balance", chain=source.chain.value) from exc

        logger.info("Balance on %s: %s (need %s)", source.name, balance_raw, amount_raw)
        if balance_raw < amount_raw:
            raise InsufficientBalanceError(
                required=format_native(from_smallest_unit(amount_raw, source.decimals)),
                available=format_native(from_smallest_unit(balance_raw, source.decimals)),
                token=source.native_symbol,
            )

    async def _transfer(
        self,
        intent: TransferIntent,
        source: ChainInfo,
        amount_raw: int,
        outcome: "_OutcomeBuilder",
    ) -> TransferOutcome:
        gateway = self.directory.gateway(source.chain)
        receipt = await gateway.submit_native_transfer(
            intent.sender,
            intent.request.recipient_address,
            amount_raw,
        )
        logger.info("Transfer confirmed on %s: %s", source.name, receipt.tx_hash)
        outcome.tx_refs = (receipt.tx_hash,)
        outcome.explorer_link = source.explorer_link(receipt.tx_hash)
        return outcome.completed()

    async def _bridge(
        self,
        intent: TransferIntent,
        source: ChainInfo,
        amount_raw: int,
        outcome: "_OutcomeBuilder",
    ) -> TransferOutcome:
        if self.bridge_router is None:
            raise RouteRejectedError("bridging is not available")
        request = intent.request
        destination = self.directory.get(request.target_chain)

        quote = await self.bridge_router.quote(
            source,
            destination,
            amount_raw,
            intent.sender.address,
            request.recipient_address,
        )
        logger.info("Bridge quote %s: %s -> %s", quote.request_id, source.name, destination.name)
        if quote.fees_usd is not None:
            outcome.details["fees_usd"] = quote.fees_usd
        outcome.request_id = quote.request_id

        receipt: BridgeReceipt = await self.bridge_router.initiate(
            quote,
            intent.sender,
            request.recipient_address,
        )
        outcome.request_id = receipt.request_id
        outcome.tx_refs = receipt.source_tx_hashes
        if receipt.source_tx_hashes:
            outcome.explorer_link = source.explorer_link(receipt.source_tx_hashes[-1])

        settlement = await self.bridge_router.await_completion(
            receipt,
            intent.receiver,
            self.bridge_timeout_s,
        )
        if settlement.status == SettlementStatus.SETTLED:
            logger.info("Bridge %s settled on %s", receipt.request_id, destination.name)
            if settlement.destination_tx_hashes:
                outcome.details["destination_tx_hashes"] = list(settlement.destination_tx_hashes)
            return outcome.completed()
        if settlement.status == SettlementStatus.TIMED_OUT:
            return outcome.timed_out(ConfirmationTimeoutError().context.reason)

        logger.warning("Bridge %s failed: %s", receipt.request_id, settlement.detail)
        return outcome.failed(FailureKind.BRIDGE_FAILED, settlement.detail or "bridge failed")


def _record_submitted(outcome: "_OutcomeBuilder", error: RefuelError) -> None:
    """Keep hashes of route steps that were submitted before ``error``."""
    for tx_hash in error.context.details.get("submitted_tx_hashes") or ():
        if tx_hash not in outcome.tx_refs:
            outcome.tx_refs += (tx_hash,)


class _OutcomeBuilder:
    """Accumulates what is known so far; exactly one terminal method is called."""

    def __init__(self, request: TransferRequest, source: ChainInfo):
        self.request = request
        self.source = source
        self.native_amount: Optional[Decimal] = None
        self.tx_refs: tuple = ()
        self.explorer_link: Optional[str] = None
        self.request_id: Optional[str] = None
        self.details: dict = {}

    def _build(self, success: bool, status: OutcomeStatus, kind: Optional[FailureKind], reason: Optional[str]) -> TransferOutcome:
        return TransferOutcome(
            success=success,
            status=status,
            flow=self.request.flow,
            source_chain=self.request.source_chain,
            destination_chain=self.request.destination_chain,
            failure_kind=kind,
            reason=reason,
            native_amount=self.native_amount,
            native_symbol=self.source.native_symbol,
            amount_usd=self.request.amount_usd,
            recipient_address=self.request.recipient_address,
            tx_refs=tuple(self.tx_refs),
            explorer_link=self.explorer_link,
            request_id=self.request_id,
            details=dict(self.details),
        )

    def completed(self) -> TransferOutcome:
        return self._build(True, OutcomeStatus.COMPLETED, None, None)

    def failed(self, kind: FailureKind, reason: Optional[str]) -> TransferOutcome:
        return self._build(False, OutcomeStatus.FAILED, kind, reason)

    def timed_out(self, reason: Optional[str]) -> TransferOutcome:
        return self._build(False, OutcomeStatus.TIMED_OUT, FailureKind.TIMEOUT, reason)
