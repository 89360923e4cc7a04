"""
Tests for wallet balance aggregation.
"""

from decimal import Decimal

import pytest

from refuel.core.chains import ChainFamily, SupportedChain
from refuel.services.balances import build_wallet_overview, fetch_balances

EVM_ADDRESS = "0x1111111111111111111111111111111111111111"
SOL_ADDRESS = "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM"


@pytest.mark.asyncio
async def test_one_failing_chain_does_not_affect_the_others(directory):
    directory.gateway(SupportedChain.OPTIMISM).get_balance.side_effect = RuntimeError("rpc down")
    directory.gateway(SupportedChain.SOLANA).get_balance.return_value = 2_500_000_000

    snapshot = await fetch_balances(
        directory,
        {ChainFamily.EVM: EVM_ADDRESS, ChainFamily.SOLANA: SOL_ADDRESS},
    )

    assert snapshot.failed_chains == [SupportedChain.OPTIMISM]
    assert snapshot.balances[SupportedChain.OPTIMISM] == Decimal("0")
    assert snapshot.balances[SupportedChain.SOLANA] == Decimal("2.5")
    assert snapshot.balances[SupportedChain.BASE] == Decimal("100")


@pytest.mark.asyncio
async def test_chains_without_an_address_are_skipped(directory):
    snapshot = await fetch_balances(directory, {ChainFamily.SOLANA: SOL_ADDRESS})

    assert list(snapshot.balances) == [SupportedChain.SOLANA]
    directory.gateway(SupportedChain.BASE).get_balance.assert_not_awaited()


@pytest.mark.asyncio
async def test_wallet_overview_values_balances(directory, price_oracle):
    for chain in SupportedChain:
        directory.gateway(chain).get_balance.return_value = 10**15 if chain != SupportedChain.SOLANA else 10**9

    overview = await build_wallet_overview(
        directory,
        {ChainFamily.EVM: EVM_ADDRESS, ChainFamily.SOLANA: SOL_ADDRESS},
        price_oracle,
    )

    by_chain = {entry.chain: entry for entry in overview.chains}
    assert by_chain[SupportedChain.BASE].usd_value == Decimal("2.50")
    assert by_chain[SupportedChain.SOLANA].usd_value == Decimal("150.00")
    assert by_chain[SupportedChain.SOLANA].address == SOL_ADDRESS
    assert overview.total_usd == Decimal("160.00")
