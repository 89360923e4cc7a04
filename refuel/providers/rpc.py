"""Shared JSON-RPC plumbing for ledger gateways."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from ..core.chains import SupportedChain
from .base import LedgerGateway


class RpcError(RuntimeError):
    """JSON-RPC error object returned by a node."""

    def __init__(self, method: str, error: Any):
        if isinstance(error, dict):
            message = error.get("message") or str(error)
            self.code = error.get("code")
            self.data = error.get("data")
        else:
            message = str(error)
            self.code = None
            self.data = None
        super().__init__(f"RPC error in {method}: {message}")
        self.method = method


class JsonRpcGateway(LedgerGateway):
    """LedgerGateway backed by a single JSON-RPC endpoint."""

    timeout_s = 30

    def __init__(
        self,
        chain: SupportedChain,
        rpc_url: Optional[str],
        *,
        timeout_s: Optional[float] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.chain = chain
        self.name = f"{chain.value}-rpc"
        self.rpc_url = rpc_url
        self._timeout_s = timeout_s or self.timeout_s
        self._client: Optional[httpx.AsyncClient] = None
        self._logger = logger or logging.getLogger(self.__class__.__module__)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout_s)
        return self._client

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def ready(self) -> bool:
        return bool(self.rpc_url)

    async def health_check(self) -> Dict[str, Any]:
        if not await self.ready():
            return {"status": "unavailable", "reason": "RPC URL not configured"}
        return {"status": "configured"}

    async def _rpc_call(self, method: str, params: List[Any]) -> Any:
        """Make an RPC call and return the ``result`` member."""
        if not self.rpc_url:
            raise ValueError(f"No RPC URL configured for {self.chain.value}")

        payload = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": method,
            "params": params,
        }

        client = await self._get_client()
        response = await client.post(
            self.rpc_url,
            json=payload,
            headers={"Content-Type": "application/json"},
        )
        response.raise_for_status()
        data = response.json()

        if "error" in data:
            raise RpcError(method, data["error"])

        return data.get("result")


def to_int(value: Any, default: int = 0) -> int:
    """Parse an integer that may arrive as int, decimal string or 0x-hex string."""
    if value is None or value == "":
        return default
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if text.lower().startswith("0x"):
        return int(text, 16)
    return int(text)
