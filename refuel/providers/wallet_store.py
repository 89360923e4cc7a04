"""HTTP client for the custody service that owns user wallets.

The service keeps one EVM and one Solana wallet per user and signs
transactions on their behalf; keys never leave it.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from ..config import settings
from ..core.chains import ChainFamily, SupportedChain
from ..core.errors import WalletNotFoundError, WalletResolutionError
from .base import WalletStore
from .models import UserWallets, WalletCredential

logger = logging.getLogger(__name__)

# Response key per wallet family
_FAMILY_KEYS: Dict[ChainFamily, str] = {
    ChainFamily.EVM: "evm_wallet",
    ChainFamily.SOLANA: "solana_wallet",
}


class CustodySigner:
    """Signer that asks the custody service to sign on the user's behalf."""

    def __init__(self, store: "HttpWalletStore", user_id: str, family: ChainFamily) -> None:
        self._store = store
        self.user_id = user_id
        self.family = family

    async def sign(self, chain: SupportedChain, payload: Dict[str, Any]) -> str:
        return await self._store.sign(self.user_id, self.family, chain, payload)


class HttpWalletStore(WalletStore):
    """WalletStore backed by ``{wallet_service_url}/api/refuel/wallet``."""

    name = "custody"

    def __init__(self, base_url: Optional[str] = None, timeout_s: Optional[float] = None) -> None:
        self.base_url = (base_url or settings.wallet_service_url).rstrip("/")
        self.timeout_s = timeout_s or settings.request_timeout_seconds

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        async with httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout_s) as client:
            response = await client.request(method, path, json=json)
            response.raise_for_status()
            return response.json() if response.content else {}

    async def ready(self) -> bool:
        return bool(self.base_url)

    async def health_check(self) -> Dict[str, Any]:
        if not await self.ready():
            return {"status": "unavailable", "reason": "Wallet service URL not configured"}
        return {"status": "configured", "base_url": self.base_url}

    async def get_wallets(self, user_id: str) -> UserWallets:
        try:
            data = await self._request("GET", f"/api/refuel/wallet/{user_id}")
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 404:
                raise WalletNotFoundError(f"No wallets found for user {user_id}") from exc
            logger.warning("Wallet lookup failed for %s: %s", user_id, exc)
            raise WalletResolutionError(f"Wallet service returned {exc.response.status_code}") from exc
        except (httpx.RequestError, ValueError) as exc:
            logger.warning("Wallet service unreachable for %s: %s", user_id, exc)
            raise WalletResolutionError(str(exc)) from exc

        credentials: Dict[ChainFamily, WalletCredential] = {}
        for family, key in _FAMILY_KEYS.items():
            entry = data.get(key) if isinstance(data, dict) else None
            address = entry.get("address") if isinstance(entry, dict) else None
            if address:
                credentials[family] = WalletCredential(
                    family=family,
                    address=address,
                    signer=CustodySigner(self, user_id, family),
                )

        if not credentials:
            raise WalletNotFoundError(f"No wallets found for user {user_id}")
        return UserWallets(user_id=user_id, credentials=credentials)

    async def create_wallet(self, user_id: str, family: ChainFamily) -> str:
        try:
            data = await self._request(
                "POST",
                f"/api/refuel/wallet/{family.value}",
                json={"telegram_id": user_id},
            )
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Wallet creation failed for %s (%s): %s", user_id, family.value, exc)
            raise WalletResolutionError(f"Could not create {family.value} wallet") from exc

        address = data.get("address") if isinstance(data, dict) else None
        if not address:
            raise WalletResolutionError(f"Wallet service did not return a {family.value} address")
        logger.info("Created %s wallet for %s", family.value, user_id)
        return address

    async def sign(
        self,
        user_id: str,
        family: ChainFamily,
        chain: SupportedChain,
        payload: Dict[str, Any],
    ) -> str:
        """Ask the custody service to sign ``payload`` for ``chain``; returns the serialized tx."""
        data = await self._request(
            "POST",
            f"/api/refuel/wallet/{user_id}/{family.value}/sign",
            json={"chain": chain.value, "transaction": payload},
        )
        signed = data.get("signed_transaction") if isinstance(data, dict) else None
        if not signed:
            raise RuntimeError("Custody service returned no signed transaction")
        return signed
