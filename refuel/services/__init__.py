"""Service layer helpers"""

from .address import is_valid_address_for_chain, is_valid_address_for_family
from .balances import BalanceSnapshot, WalletOverview, build_wallet_overview, fetch_balances

__all__ = [
    "is_valid_address_for_chain",
    "is_valid_address_for_family",
    "BalanceSnapshot",
    "WalletOverview",
    "build_wallet_overview",
    "fetch_balances",
]
