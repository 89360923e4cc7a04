"""
Wallet balance aggregation.

Fetches native balances for every configured network concurrently for the
wallet view. A network whose query fails shows a zero balance and is listed in
``failed_chains``; the remaining networks are unaffected. The transfer
pipeline never uses this helper: it must distinguish "zero" from "unknown".
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Mapping, Optional

from ..core.chains import ChainDirectory, ChainFamily, ChainInfo, SupportedChain
from ..core.transfer.amounts import from_smallest_unit
from ..providers.base import PriceOracle

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChainBalance:
    """Native balance on one network."""
    chain: SupportedChain
    name: str
    symbol: str
    address: str
    amount: Decimal
    usd_value: Optional[Decimal] = None


@dataclass
class BalanceSnapshot:
    """Per-network balances keyed by chain, plus the chains whose query failed."""
    balances: Dict[SupportedChain, Decimal] = field(default_factory=dict)
    failed_chains: List[SupportedChain] = field(default_factory=list)


@dataclass
class WalletOverview:
    addresses: Dict[ChainFamily, str]
    chains: List[ChainBalance] = field(default_factory=list)
    failed_chains: List[SupportedChain] = field(default_factory=list)

    @property
    def total_usd(self) -> Decimal:
        return sum((c.usd_value for c in self.chains if c.usd_value is not None), Decimal("0"))


async def _balance_for(info: ChainInfo, address: str) -> Decimal:
    gateway = info.gateway
    if gateway is None:
        raise RuntimeError(f"No ledger gateway configured for {info.name}")
    raw = await gateway.get_balance(address)
    return from_smallest_unit(raw, info.decimals)


async def fetch_balances(
    directory: ChainDirectory,
    addresses: Mapping[ChainFamily, str],
) -> BalanceSnapshot:
    """Fetch native balances for every configured network at once.

    Networks whose family has no address are skipped. A failure on one
    network yields zero for that network only.
    """
    targets = [info for info in directory if addresses.get(info.family)]
    results = await asyncio.gather(
        *[_balance_for(info, addresses[info.family]) for info in targets],
        return_exceptions=True,
    )

    snapshot = BalanceSnapshot()
    for info, result in zip(targets, results):
        if isinstance(result, BaseException):
            logger.warning("Balance query failed on %s: %s", info.name, result)
            snapshot.balances[info.chain] = Decimal("0")
            snapshot.failed_chains.append(info.chain)
        else:
            snapshot.balances[info.chain] = result
    return snapshot


async def build_wallet_overview(
    directory: ChainDirectory,
    addresses: Mapping[ChainFamily, str],
    oracle: PriceOracle,
) -> WalletOverview:
    """Balances for the wallet view, each with its USD value when a price is known."""
    snapshot = await fetch_balances(directory, addresses)

    symbols = sorted({info.native_symbol for info in directory if info.chain in snapshot.balances})
    prices = await asyncio.gather(*[oracle.get_usd_price(symbol) for symbol in symbols])
    price_by_symbol: Dict[str, Optional[Decimal]] = dict(zip(symbols, prices))

    overview = WalletOverview(addresses=dict(addresses), failed_chains=list(snapshot.failed_chains))
    for info in directory:
        if info.chain not in snapshot.balances:
            continue
        amount = snapshot.balances[info.chain]
        price = price_by_symbol.get(info.native_symbol)
        overview.chains.append(
            ChainBalance(
                chain=info.chain,
                name=info.name,
                symbol=info.native_symbol,
                address=addresses[info.family],
                amount=amount,
                usd_value=(amount * price).quantize(Decimal("0.01")) if price else None,
            )
        )
    return overview
