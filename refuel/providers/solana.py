"""
Solana ledger gateway.

Sends native SOL transfers (and router-prepared transactions) through the
wallet's custody signer and monitors them with getSignatureStatuses.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

from ..core.chains import SupportedChain
from ..core.errors import ConfirmationTimeoutError, SubmissionError, submission_error_from
from .models import ReceiptStatus, TransactionReceipt, WalletCredential
from .rpc import JsonRpcGateway

logger = logging.getLogger(__name__)


class SolanaLedgerGateway(JsonRpcGateway):
    """LedgerGateway for Solana mainnet.

    Usage:
        gateway = SolanaLedgerGateway("https://api.mainnet-beta.solana.com")
        lamports = await gateway.get_balance(address)
        receipt = await gateway.submit_native_transfer(credential, recipient, lamports)
    """

    def __init__(
        self,
        rpc_url: Optional[str],
        *,
        commitment: str = "confirmed",
        confirmation_timeout_s: float = 60.0,
        poll_interval_s: float = 1.0,
        timeout_s: Optional[float] = None,
    ) -> None:
        super().__init__(SupportedChain.SOLANA, rpc_url, timeout_s=timeout_s, logger=logger)
        self.commitment = commitment
        self.confirmation_timeout_s = confirmation_timeout_s
        self.poll_interval_s = poll_interval_s

    async def get_balance(self, address: str) -> int:
        result = await self._rpc_call(
            "getBalance",
            [address, {"commitment": self.commitment}],
        )
        if not isinstance(result, dict) or "value" not in result:
            raise ValueError(f"Unexpected getBalance response: {result!r}")
        return int(result["value"])

    async def get_latest_blockhash(self) -> Dict[str, Any]:
        result = await self._rpc_call(
            "getLatestBlockhash",
            [{"commitment": self.commitment}],
        )
        value = (result or {}).get("value", {})
        return {
            "blockhash": value.get("blockhash"),
            "lastValidBlockHeight": value.get("lastValidBlockHeight"),
        }

    async def submit_native_transfer(
        self,
        credential: WalletCredential,
        to_address: str,
        amount: int,
    ) -> TransactionReceipt:
        payload = {
            "type": "system_transfer",
            "from": credential.address,
            "to": to_address,
            "lamports": amount,
        }
        return await self._sign_send_and_wait(credential, payload)

    async def submit_prepared(
        self,
        credential: WalletCredential,
        payload: Dict[str, Any],
    ) -> TransactionReceipt:
        prepared = {"type": "prepared", "feePayer": credential.address, **payload}
        return await self._sign_send_and_wait(credential, prepared)

    async def _sign_send_and_wait(
        self,
        credential: WalletCredential,
        payload: Dict[str, Any],
    ) -> TransactionReceipt:
        try:
            blockhash = await self.get_latest_blockhash()
            signed = await credential.signer.sign(
                self.chain,
                {
                    **payload,
                    "recentBlockhash": blockhash["blockhash"],
                    "lastValidBlockHeight": blockhash["lastValidBlockHeight"],
                },
            )
            signature = await self._rpc_call(
                "sendTransaction",
                [
                    signed,
                    {
                        "encoding": "base64",
                        "skipPreflight": False,
                        "preflightCommitment": self.commitment,
                    },
                ],
            )
        except Exception as exc:
            raise submission_error_from(exc, chain=self.chain.value) from exc

        logger.info("Submitted solana transaction %s", signature)
        return await self.wait_for_confirmation(signature)

    async def wait_for_confirmation(self, signature: str) -> TransactionReceipt:
        """Wait for a transaction to reach the configured commitment.

        Uses exponential backoff for polling, capped at 5 seconds.
        """
        start = time.monotonic()
        interval = self.poll_interval_s

        while time.monotonic() - start <= self.confirmation_timeout_s:
            try:
                result = await self._rpc_call(
                    "getSignatureStatuses",
                    [[signature], {"searchTransactionHistory": False}],
                )
                statuses: List[Optional[Dict[str, Any]]] = (result or {}).get("value") or [None]
                status = statuses[0]
                if status:
                    if status.get("err"):
                        raise SubmissionError(
                            f"Transaction {signature} failed: {status['err']}",
                            reason="transaction failed on-chain",
                            chain=self.chain.value,
                            tx_hash=signature,
                        )
                    if status.get("confirmationStatus") in ("confirmed", "finalized"):
                        return TransactionReceipt(
                            chain=self.chain,
                            tx_hash=signature,
                            status=ReceiptStatus.CONFIRMED,
                            block_number=status.get("slot"),
                        )
            except SubmissionError:
                raise
            except Exception as e:
                logger.warning("Error checking signature status: %s", e)

            await asyncio.sleep(interval)
            interval = min(interval * 1.5, 5.0)

        raise ConfirmationTimeoutError(
            f"Transaction {signature} not confirmed after {self.confirmation_timeout_s}s",
            tx_hash=signature,
            chain=self.chain.value,
        )
