from decimal import Decimal

from refuel.config import Settings


def test_wallet_service_url_legacy_alias(monkeypatch):
    """Wallet service URL should load from legacy aliases when present."""

    monkeypatch.delenv("WALLET_SERVICE_URL", raising=False)
    monkeypatch.delenv("WALLET_SERVICE_BASE_URL", raising=False)
    monkeypatch.setenv("REFUEL_DATABASE_URL", "https://custody.example.com/")

    settings = Settings()

    assert settings.wallet_service_url == "https://custody.example.com"


def test_wallet_service_url_direct_env(monkeypatch):
    """Environment-provided wallet service URL remains the primary source."""

    monkeypatch.setenv("WALLET_SERVICE_URL", "https://primary.example.com")
    monkeypatch.setenv("REFUEL_DATABASE_URL", "https://legacy.example.com")

    settings = Settings()

    assert settings.wallet_service_url == "https://primary.example.com"


def test_wallet_service_url_default(monkeypatch):
    for name in ("WALLET_SERVICE_URL", "WALLET_SERVICE_BASE_URL", "REFUEL_DATABASE_URL", "WALLET_API_URL"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings(_env_file=None)

    assert settings.wallet_service_url == "https://refuel-database.onrender.com"


def test_policy_defaults(monkeypatch):
    monkeypatch.delenv("MIN_AMOUNT_USD", raising=False)
    monkeypatch.delenv("BRIDGE_COMPLETION_TIMEOUT_SECONDS", raising=False)

    settings = Settings(_env_file=None)

    assert settings.min_amount_usd == Decimal("2")
    assert settings.max_amount_usd == Decimal("1000000")
    assert settings.bridge_completion_timeout_seconds == 900
    assert settings.required_confirmations == 1


def test_rpc_urls_built_from_alchemy_key(monkeypatch):
    for name in ("ETHEREUM_RPC_URL", "BASE_RPC_URL", "SOLANA_RPC_URL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("ALCHEMY_API_KEY", "abc123")
    monkeypatch.setenv("BASE_RPC_URL", "https://base.example.com")

    urls = Settings(_env_file=None).rpc_urls()

    assert urls["ethereum"] == "https://eth-mainnet.g.alchemy.com/v2/abc123"
    assert urls["base"] == "https://base.example.com"
    assert urls["solana"] == "https://solana-mainnet.g.alchemy.com/v2/abc123"


def test_solana_rpc_falls_back_to_public_endpoint(monkeypatch):
    for name in ("ETHEREUM_RPC_URL", "SOLANA_RPC_URL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("ALCHEMY_API_KEY", "")

    urls = Settings(_env_file=None).rpc_urls()

    assert urls["solana"] == "https://api.mainnet-beta.solana.com"
    assert urls["ethereum"] is None
