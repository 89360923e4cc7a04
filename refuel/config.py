import os

from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    def model_post_init(self, __context: Any) -> None:
        """Ensure we pick up legacy environment variable aliases."""

        super().model_post_init(__context)

        if not self.wallet_service_base_url:
            fallback = os.getenv("REFUEL_DATABASE_URL") or os.getenv("WALLET_API_URL")
            if fallback:
                object.__setattr__(self, "wallet_service_base_url", fallback)

    # Server Settings
    host: str = Field(default="127.0.0.1", description="Server host")
    port: int = Field(default=8000, description="Server port")
    log_level: str = Field(default="INFO", description="Logging level")

    # External API Keys
    alchemy_api_key: str = Field(default="", description="Alchemy API key")
    coingecko_api_key: str = Field(default="", description="Coingecko API key")

    # Provider Toggles
    enable_coingecko: bool = Field(default=True, description="Enable Coingecko provider")
    price_cache_ttl_seconds: int = Field(default=60, description="TTL for cached USD prices")

    request_timeout_seconds: int = Field(default=30, description="Request timeout")

    # RPC endpoints (empty means derive from the Alchemy key)
    ethereum_rpc_url: str = Field(default="", description="Ethereum mainnet JSON-RPC URL")
    base_rpc_url: str = Field(default="", description="Base JSON-RPC URL")
    optimism_rpc_url: str = Field(default="", description="Optimism JSON-RPC URL")
    arbitrum_rpc_url: str = Field(default="", description="Arbitrum JSON-RPC URL")
    solana_rpc_url: str = Field(default="", description="Solana JSON-RPC URL")

    relay_base_url: str = Field(
        default="",
        description="Override the default Relay API base URL",
    )
    relay_referrer: str = Field(default="refuel.bot", description="Referrer tag sent with Relay quotes")

    wallet_service_base_url: str = Field(
        default="",
        description="Base URL of the custody service that stores user wallets",
        validation_alias=AliasChoices("wallet_service_base_url", "WALLET_SERVICE_URL"),
    )

    # Transfer Policy
    min_amount_usd: Decimal = Field(
        default=Decimal("2"),
        gt=0,
        description="Smallest USD amount accepted for a bridge or transfer",
    )
    max_amount_usd: Decimal = Field(
        default=Decimal("1000000"),
        gt=0,
        description="Largest USD amount accepted for a bridge or transfer",
    )
    bridge_completion_timeout_seconds: float = Field(
        default=15 * 60,
        gt=0,
        description="How long to wait for a bridge to settle on the destination chain",
    )
    bridge_poll_interval_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Initial delay between bridge status polls",
    )
    transfer_confirmation_timeout_seconds: float = Field(
        default=120.0,
        gt=0,
        description="How long to wait for a same-chain transfer to be confirmed",
    )
    required_confirmations: int = Field(
        default=1,
        ge=1,
        description="Confirmations required before a same-chain transfer counts as settled",
    )

    @property
    def has_alchemy_key(self) -> bool:
        return bool(self.alchemy_api_key)

    @property
    def has_coingecko_key(self) -> bool:
        return bool(self.coingecko_api_key)

    @property
    def wallet_service_url(self) -> str:
        return (self.wallet_service_base_url or "https://refuel-database.onrender.com").rstrip("/")

    def rpc_urls(self) -> Dict[str, Optional[str]]:
        """Resolve the JSON-RPC endpoint for every supported network.

        Explicit URLs win; otherwise Alchemy endpoints are built from the API
        key. Solana falls back to the public (rate limited) RPC.
        """
        key = self.alchemy_api_key

        def _alchemy(slug: str) -> Optional[str]:
            return f"https://{slug}.g.alchemy.com/v2/{key}" if key else None

        return {
            "ethereum": self.ethereum_rpc_url or _alchemy("eth-mainnet"),
            "base": self.base_rpc_url or _alchemy("base-mainnet"),
            "optimism": self.optimism_rpc_url or _alchemy("opt-mainnet"),
            "arbitrum": self.arbitrum_rpc_url or _alchemy("arb-mainnet"),
            "solana": self.solana_rpc_url or _alchemy("solana-mainnet") or "https://api.mainnet-beta.solana.com",
        }


# Global settings instance
settings = Settings()
