"""
Chain identification types and metadata.

Supported networks form a closed enumeration. Static metadata lives in
``CHAIN_METADATA``; at process start it is combined with one LedgerGateway per
network into immutable ``ChainInfo`` descriptors held by a ``ChainDirectory``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Mapping, Optional

if TYPE_CHECKING:  # pragma: no cover
    from ..providers.base import LedgerGateway


class SupportedChain(str, Enum):
    """Networks the bot can refuel from and to."""

    ETHEREUM = "ethereum"
    SOLANA = "solana"
    BASE = "base"
    OPTIMISM = "optimism"
    ARBITRUM = "arbitrum"


class ChainFamily(str, Enum):
    """Address format / wallet family of a network."""

    EVM = "evm"
    SOLANA = "solana"


EVM_NATIVE_PLACEHOLDER = "0x0000000000000000000000000000000000000000"
SOLANA_NATIVE_PLACEHOLDER = "11111111111111111111111111111111"

CHAIN_METADATA: Dict[SupportedChain, Dict[str, Any]] = {
    SupportedChain.ETHEREUM: {
        'name': 'Ethereum',
        'aliases': ['ethereum', 'eth', 'mainnet', 'l1'],
        'native_symbol': 'ETH',
        'native_decimals': 18,
        'family': ChainFamily.EVM,
        'relay_chain_id': 1,
        'evm_chain_id': 1,
        'explorer_tx_url': 'https://etherscan.io/tx/',
    },
    SupportedChain.SOLANA: {
        'name': 'Solana',
        'aliases': ['solana', 'sol'],
        'native_symbol': 'SOL',
        'native_decimals': 9,
        'family': ChainFamily.SOLANA,
        'relay_chain_id': 792703809,
        'evm_chain_id': None,
        'explorer_tx_url': 'https://solscan.io/tx/',
    },
    SupportedChain.BASE: {
        'name': 'Base',
        'aliases': ['base', 'base mainnet'],
        'native_symbol': 'ETH',
        'native_decimals': 18,
        'family': ChainFamily.EVM,
        'relay_chain_id': 8453,
        'evm_chain_id': 8453,
        'explorer_tx_url': 'https://basescan.org/tx/',
    },
    SupportedChain.OPTIMISM: {
        'name': 'Optimism',
        'aliases': ['optimism', 'op', 'opt'],
        'native_symbol': 'ETH',
        'native_decimals': 18,
        'family': ChainFamily.EVM,
        'relay_chain_id': 10,
        'evm_chain_id': 10,
        'explorer_tx_url': 'https://optimistic.etherscan.io/tx/',
    },
    SupportedChain.ARBITRUM: {
        'name': 'Arbitrum',
        'aliases': ['arbitrum', 'arb', 'arbitrum one'],
        'native_symbol': 'ETH',
        'native_decimals': 18,
        'family': ChainFamily.EVM,
        'relay_chain_id': 42161,
        'evm_chain_id': 42161,
        'explorer_tx_url': 'https://arbiscan.io/tx/',
    },
}

CHAIN_ALIAS_TO_CHAIN: Dict[str, SupportedChain] = {
    alias: chain
    for chain, details in CHAIN_METADATA.items()
    for alias in details.get('aliases', [])
}


def parse_chain(token: Optional[str]) -> Optional[SupportedChain]:
    """Map a user-supplied chain token (name, alias or enum value) to a chain.

    Returns ``None`` for anything outside the supported set.
    """
    if not token:
        return None
    cleaned = token.strip().lower()
    try:
        return SupportedChain(cleaned)
    except ValueError:
        return CHAIN_ALIAS_TO_CHAIN.get(cleaned)


@dataclass(frozen=True)
class ChainInfo:
    """Immutable descriptor of one supported network."""

    chain: SupportedChain
    name: str
    native_symbol: str
    decimals: int
    family: ChainFamily
    relay_chain_id: int
    explorer_tx_url: str
    evm_chain_id: Optional[int] = None
    gateway: Optional["LedgerGateway"] = field(default=None, compare=False, repr=False)

    @property
    def native_token_address(self) -> str:
        if self.family == ChainFamily.SOLANA:
            return SOLANA_NATIVE_PLACEHOLDER
        return EVM_NATIVE_PLACEHOLDER

    def explorer_link(self, tx_hash: Optional[str]) -> Optional[str]:
        if not tx_hash:
            return None
        return f"{self.explorer_tx_url}{tx_hash}"


def chain_info_from_metadata(
    chain: SupportedChain,
    gateway: Optional["LedgerGateway"] = None,
) -> ChainInfo:
    details = CHAIN_METADATA[chain]
    return ChainInfo(
        chain=chain,
        name=details['name'],
        native_symbol=details['native_symbol'],
        decimals=details['native_decimals'],
        family=details['family'],
        relay_chain_id=details['relay_chain_id'],
        explorer_tx_url=details['explorer_tx_url'],
        evm_chain_id=details.get('evm_chain_id'),
        gateway=gateway,
    )


class ChainDirectory:
    """Typed per-network descriptor map keyed by ``SupportedChain``.

    Iteration order follows the order the chains were registered in, which is
    also the order chains are offered to the user.
    """

    def __init__(self, chains: Mapping[SupportedChain, ChainInfo]) -> None:
        self._chains: Dict[SupportedChain, ChainInfo] = dict(chains)

    @classmethod
    def from_gateways(cls, gateways: Mapping[SupportedChain, "LedgerGateway"]) -> "ChainDirectory":
        return cls({chain: chain_info_from_metadata(chain, gateway) for chain, gateway in gateways.items()})

    def __contains__(self, chain: object) -> bool:
        return chain in self._chains

    def __iter__(self) -> Iterator[ChainInfo]:
        return iter(self._chains.values())

    def __len__(self) -> int:
        return len(self._chains)

    def get(self, chain: SupportedChain) -> ChainInfo:
        try:
            return self._chains[chain]
        except KeyError:
            raise KeyError(f"Chain {chain!r} is not configured") from None

    def resolve(self, token: Optional[str]) -> Optional[ChainInfo]:
        """Resolve a selection token to a configured chain, or ``None``."""
        chain = parse_chain(token)
        if chain is None or chain not in self._chains:
            return None
        return self._chains[chain]

    def names(self, exclude: Optional[SupportedChain] = None) -> List[str]:
        return [info.name for info in self._chains.values() if info.chain != exclude]

    def gateway(self, chain: SupportedChain) -> "LedgerGateway":
        info = self.get(chain)
        if info.gateway is None:
            raise KeyError(f"No ledger gateway configured for {info.name}")
        return info.gateway


__all__ = [
    "SupportedChain",
    "ChainFamily",
    "ChainInfo",
    "ChainDirectory",
    "CHAIN_METADATA",
    "CHAIN_ALIAS_TO_CHAIN",
    "EVM_NATIVE_PLACEHOLDER",
    "SOLANA_NATIVE_PLACEHOLDER",
    "parse_chain",
    "chain_info_from_metadata",
]
