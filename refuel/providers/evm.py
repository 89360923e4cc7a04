"""
EVM ledger gateway.

Handles the lifecycle of a native-value transaction on an EVM chain:
- Nonce and gas price lookup
- Signing through the wallet's custody signer
- Broadcast via eth_sendRawTransaction
- Receipt polling until the required confirmations are reached
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, Optional

from ..core.chains import CHAIN_METADATA, SupportedChain
from ..core.errors import ConfirmationTimeoutError, SubmissionError, submission_error_from
from .models import ReceiptStatus, TransactionReceipt, WalletCredential
from .rpc import JsonRpcGateway, to_int

logger = logging.getLogger(__name__)

NATIVE_TRANSFER_GAS = 21_000


class EvmLedgerGateway(JsonRpcGateway):
    """LedgerGateway for Ethereum and its L2s."""

    def __init__(
        self,
        chain: SupportedChain,
        rpc_url: Optional[str],
        *,
        confirmation_timeout_s: float = 120.0,
        required_confirmations: int = 1,
        poll_interval_s: float = 2.0,
        timeout_s: Optional[float] = None,
    ) -> None:
        super().__init__(chain, rpc_url, timeout_s=timeout_s, logger=logger)
        self.chain_id: int = CHAIN_METADATA[chain]["evm_chain_id"]
        self.confirmation_timeout_s = confirmation_timeout_s
        self.required_confirmations = required_confirmations
        self.poll_interval_s = poll_interval_s

    async def get_balance(self, address: str) -> int:
        result = await self._rpc_call("eth_getBalance", [address, "latest"])
        if result is None:
            raise ValueError(f"Unexpected eth_getBalance response: {result!r}")
        return to_int(result)

    async def submit_native_transfer(
        self,
        credential: WalletCredential,
        to_address: str,
        amount: int,
    ) -> TransactionReceipt:
        tx = {
            "from": credential.address,
            "to": to_address,
            "value": amount,
            "data": "0x",
            "gas": NATIVE_TRANSFER_GAS,
        }
        return await self._sign_send_and_wait(credential, tx)

    async def submit_prepared(
        self,
        credential: WalletCredential,
        payload: Dict[str, Any],
    ) -> TransactionReceipt:
        tx = {
            "from": credential.address,
            "to": payload.get("to"),
            "value": to_int(payload.get("value")),
            "data": payload.get("data") or "0x",
        }
        if payload.get("gas") is not None:
            tx["gas"] = to_int(payload["gas"])
        return await self._sign_send_and_wait(credential, tx)

    async def _prepare(self, tx: Dict[str, Any]) -> Dict[str, Any]:
        """Fill nonce, gas limit and gas price; these are read-only RPC calls."""
        nonce = await self._rpc_call("eth_getTransactionCount", [tx["from"], "pending"])
        gas_price = await self._rpc_call("eth_gasPrice", [])

        if "gas" not in tx:
            estimate = await self._rpc_call(
                "eth_estimateGas",
                [{
                    "from": tx["from"],
                    "to": tx["to"],
                    "value": hex(tx["value"]),
                    "data": tx["data"],
                }],
            )
            # 20% headroom over the node's estimate
            tx["gas"] = to_int(estimate) * 12 // 10

        return {
            **tx,
            "chainId": self.chain_id,
            "nonce": to_int(nonce),
            "gasPrice": to_int(gas_price),
        }

    async def _sign_send_and_wait(
        self,
        credential: WalletCredential,
        tx: Dict[str, Any],
    ) -> TransactionReceipt:
        try:
            prepared = await self._prepare(tx)
            signed = await credential.signer.sign(self.chain, prepared)
            tx_hash = await self._rpc_call("eth_sendRawTransaction", [signed])
        except Exception as exc:
            raise submission_error_from(exc, chain=self.chain.value) from exc

        logger.info("Submitted %s transaction %s", self.chain.value, tx_hash)
        return await self.wait_for_confirmation(tx_hash)

    async def wait_for_confirmation(self, tx_hash: str) -> TransactionReceipt:
        """Poll for the receipt until confirmed, reverted or timed out."""
        start = time.monotonic()

        while time.monotonic() - start <= self.confirmation_timeout_s:
            try:
                receipt = await self._rpc_call("eth_getTransactionReceipt", [tx_hash])
                if receipt:
                    block_number = to_int(receipt.get("blockNumber"))

                    # 0x1 = success, 0x0 = revert
                    if to_int(receipt.get("status"), default=1) == 0:
                        raise SubmissionError(
                            f"Transaction {tx_hash} reverted",
                            reason="transaction reverted",
                            chain=self.chain.value,
                            tx_hash=tx_hash,
                        )

                    current_block = to_int(await self._rpc_call("eth_blockNumber", []))
                    confirmations = current_block - block_number + 1
                    if confirmations >= self.required_confirmations:
                        gas_used = to_int(receipt.get("gasUsed"))
                        gas_price = to_int(receipt.get("effectiveGasPrice"))
                        logger.info(
                            "Transaction confirmed: %s (block %s, %s confirmations)",
                            tx_hash,
                            block_number,
                            confirmations,
                        )
                        return TransactionReceipt(
                            chain=self.chain,
                            tx_hash=tx_hash,
                            status=ReceiptStatus.CONFIRMED,
                            block_number=block_number,
                            fee=gas_used * gas_price if gas_price else None,
                        )
            except SubmissionError:
                raise
            except Exception as e:
                logger.warning("Error checking transaction status: %s", e)

            await asyncio.sleep(self.poll_interval_s)

        raise ConfirmationTimeoutError(
            f"Transaction {tx_hash} not confirmed after {self.confirmation_timeout_s}s",
            tx_hash=tx_hash,
            chain=self.chain.value,
        )
