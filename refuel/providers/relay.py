"""Async client for Relay's public bridge API."""

from __future__ import annotations

import asyncio
import logging
import os
import time
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

import httpx

from ..config import settings
from ..core.chains import ChainDirectory, ChainInfo
from ..core.errors import ConfirmationTimeoutError, RefuelError, RouteRejectedError, SubmissionError
from .base import BridgeRouter
from .models import (
    BridgeQuote,
    BridgeReceipt,
    BridgeSettlement,
    SettlementStatus,
    WalletCredential,
)

logger = logging.getLogger(__name__)

_SETTLED_STATUSES = {"success"}
_FAILED_STATUSES = {"failure", "refund", "refunded"}


class RelayBridgeRouter(BridgeRouter):
    """BridgeRouter backed by https://api.relay.link endpoints.

    Source-side transactions returned by a quote are signed and submitted
    through the source chain's LedgerGateway, looked up in ``directory``.
    """

    name = "relay"

    def __init__(
        self,
        directory: ChainDirectory,
        *,
        base_url: Optional[str] = None,
        referrer: Optional[str] = None,
        timeout_s: int = 20,
        poll_interval_s: Optional[float] = None,
    ) -> None:
        configured = (
            base_url
            or getattr(settings, "relay_base_url", "")
            or os.environ.get("RELAY_BASE_URL", "")
        )
        if configured:
            self.base_urls: List[str] = [configured.rstrip("/")]
        else:
            self.base_urls = ["https://api.relay.link"]
        self.directory = directory
        self.referrer = referrer or settings.relay_referrer
        self.timeout_s = timeout_s
        self.poll_interval_s = (
            poll_interval_s if poll_interval_s is not None else settings.bridge_poll_interval_seconds
        )

    def _headers(self) -> Dict[str, str]:
        return {
            "accept": "application/json, text/plain, */*",
            "content-type": "application/json",
            "user-agent": "RefuelRelayClient/2026-10",
            "origin": "https://relay.link",
        }

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        merged_headers = {**self._headers(), **(headers or {})}
        last_error: Optional[Exception] = None

        for index, base_url in enumerate(self.base_urls):
            try:
                async with httpx.AsyncClient(base_url=base_url, timeout=self.timeout_s) as client:
                    response = await client.request(method, path, json=json, headers=merged_headers, **kwargs)
                    response.raise_for_status()
                    return response
            except httpx.HTTPStatusError as exc:
                # Stop early unless another base URL is left to try.
                if exc.response.status_code in (404, 405) and index < len(self.base_urls) - 1:
                    last_error = exc
                    continue
                raise
            except httpx.RequestError as exc:
                last_error = exc
                continue

        if last_error is not None:
            raise last_error
        raise RuntimeError("All Relay hosts failed without providing an error response")

    async def ready(self) -> bool:
        return bool(self.base_urls)

    async def health_check(self) -> Dict[str, Any]:
        try:
            response = await self._request("GET", "/chains")
            return {"status": "healthy", "latency_ms": int(response.elapsed.total_seconds() * 1000)}
        except Exception as e:
            return {"status": "error", "reason": str(e)}

    def build_quote_payload(
        self,
        source: ChainInfo,
        destination: ChainInfo,
        amount: int,
        sender_address: str,
        recipient_address: str,
    ) -> Dict[str, Any]:
        return {
            "user": sender_address,
            "originChainId": source.relay_chain_id,
            "destinationChainId": destination.relay_chain_id,
            "originCurrency": source.native_token_address,
            "destinationCurrency": destination.native_token_address,
            "recipient": recipient_address,
            "tradeType": "EXACT_INPUT",
            "amount": str(amount),
            "referrer": self.referrer,
            "useExternalLiquidity": False,
            "useDepositAddress": False,
            "topupGas": False,
        }

    async def quote(
        self,
        source: ChainInfo,
        destination: ChainInfo,
        amount: int,
        sender_address: str,
        recipient_address: str,
    ) -> BridgeQuote:
        payload = self.build_quote_payload(source, destination, amount, sender_address, recipient_address)

        try:
            response = await self._request("POST", "/quote", json=payload)
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            detail_text = (exc.response.text or "").strip()
            preview = detail_text[:200] if detail_text else "no response details"
            logger.warning("Relay quote error (%s): payload=%s detail=%s", status_code, payload, detail_text)
            if 400 <= status_code < 500:
                raise RouteRejectedError(
                    f"Relay rejected the route ({status_code}): {preview}",
                    status_code=status_code,
                ) from exc
            raise

        data = response.json()
        if not isinstance(data, dict) or not data.get("steps"):
            raise RouteRejectedError("Relay did not return any route data for that request")

        return self._parse_quote(data, source, destination, amount, sender_address, recipient_address)

    def _parse_quote(
        self,
        data: Dict[str, Any],
        source: ChainInfo,
        destination: ChainInfo,
        amount: int,
        sender_address: str,
        recipient_address: str,
    ) -> BridgeQuote:
        transactions: List[Dict[str, Any]] = []
        request_id: Optional[str] = None

        for step in data.get("steps") or []:
            if not request_id and step.get("requestId"):
                request_id = step["requestId"]
            for item in step.get("items", []):
                data_obj = item.get("data") or {}
                if not isinstance(data_obj, dict):
                    continue
                # EVM items carry to/data/value; Solana items carry instructions
                if ("to" in data_obj and ("data" in data_obj or "value" in data_obj)) or "instructions" in data_obj:
                    transactions.append(data_obj)

        if not request_id:
            request_id = data.get("requestId") or data.get("id")

        if not transactions:
            raise RouteRejectedError("Relay returned a route without executable transactions")

        details = data.get("details") or {}
        currency_out = details.get("currencyOut") or {}
        amount_out: Optional[int] = None
        if currency_out.get("amount") is not None:
            try:
                amount_out = int(currency_out["amount"])
            except (TypeError, ValueError):
                amount_out = None

        eta_seconds: Optional[float] = None
        if details.get("timeEstimate") is not None:
            try:
                eta_seconds = float(details["timeEstimate"])
            except (TypeError, ValueError):
                eta_seconds = None

        return BridgeQuote(
            source=source.chain,
            destination=destination.chain,
            amount_in=amount,
            sender_address=sender_address,
            recipient_address=recipient_address,
            request_id=request_id,
            amount_out=amount_out,
            fees_usd=_total_fee_usd(data.get("fees") or {}),
            eta_seconds=eta_seconds,
            transactions=tuple(transactions),
            raw=data,
        )

    async def initiate(
        self,
        quote: BridgeQuote,
        sender: WalletCredential,
        recipient_address: str,
    ) -> BridgeReceipt:
        if recipient_address != quote.recipient_address:
            raise SubmissionError(
                "Recipient does not match the quoted route",
                reason="recipient mismatch",
                chain=quote.source.value,
            )

        gateway = self.directory.gateway(quote.source)
        tx_hashes: List[str] = []
        # Each step transaction is submitted once; a failure aborts the remaining steps.
        for index, tx in enumerate(quote.transactions):
            try:
                receipt = await gateway.submit_prepared(sender, tx)
            except RefuelError as e:
                # Earlier steps are already on-chain
                if tx_hashes:
                    e.context.details["submitted_tx_hashes"] = list(tx_hashes)
                raise
            logger.info(
                "Relay step %s/%s submitted on %s: %s",
                index + 1,
                len(quote.transactions),
                quote.source.value,
                receipt.tx_hash,
            )
            tx_hashes.append(receipt.tx_hash)

        return BridgeReceipt(
            quote=quote,
            request_id=quote.request_id,
            source_tx_hashes=tuple(tx_hashes),
        )

    async def get_status(self, request_id: str) -> BridgeSettlement:
        response = await self._request(
            "GET",
            "/intents/status/v2",
            params={"requestId": request_id},
        )
        data = response.json()
        if not isinstance(data, dict):
            raise ValueError(f"Unexpected Relay status response: {data!r}")
        raw_status = str(data.get("status") or "").lower()
        raw_hashes = data.get("txHashes")
        tx_hashes = tuple(raw_hashes) if isinstance(raw_hashes, list) else ()

        if raw_status in _SETTLED_STATUSES:
            status = SettlementStatus.SETTLED
        elif raw_status in _FAILED_STATUSES:
            status = SettlementStatus.FAILED
        else:
            status = SettlementStatus.PENDING

        return BridgeSettlement(
            status=status,
            request_id=request_id,
            destination_tx_hashes=tx_hashes,
            detail=str(data.get("details") or raw_status) or None,
        )

    async def await_completion(
        self,
        receipt: BridgeReceipt,
        receiver: WalletCredential,
        timeout_s: float,
    ) -> BridgeSettlement:
        """Poll the intent status until it settles, fails, or ``timeout_s`` elapses.

        Transient status lookup errors are logged and retried. Expiry raises
        ConfirmationTimeoutError; the source-side transactions stay submitted.
        """
        if not receipt.request_id:
            raise ConfirmationTimeoutError(
                "Relay did not return a request id to track",
                tx_hash=receipt.source_tx_hashes[-1] if receipt.source_tx_hashes else None,
                chain=receipt.quote.destination.value,
            )

        logger.info(
            "Waiting for Relay request %s to reach %s on %s",
            receipt.request_id,
            receiver.address,
            receipt.quote.destination.value,
        )

        start = time.monotonic()
        interval = self.poll_interval_s

        while time.monotonic() - start <= timeout_s:
            try:
                settlement = await self.get_status(receipt.request_id)
                if settlement.status != SettlementStatus.PENDING:
                    return settlement
            except (httpx.HTTPError, ValueError) as e:
                logger.warning("Error checking Relay status for %s: %s", receipt.request_id, e)

            remaining = timeout_s - (time.monotonic() - start)
            if remaining <= 0:
                break
            await asyncio.sleep(min(interval, remaining))
            interval = min(interval * 1.5, 30.0)

        raise ConfirmationTimeoutError(
            tx_hash=receipt.source_tx_hashes[-1] if receipt.source_tx_hashes else None,
            chain=receipt.quote.destination.value,
        )


def _total_fee_usd(fee_dict: Dict[str, Any]) -> Optional[str]:
    total = Decimal("0")
    seen = False
    for fee_data in fee_dict.values():
        if not isinstance(fee_data, dict):
            continue
        amount_usd = fee_data.get("amountUsd")
        if amount_usd is None:
            continue
        try:
            total += Decimal(str(amount_usd))
            seen = True
        except (InvalidOperation, TypeError, ValueError):
            continue
    return str(total) if seen else None
