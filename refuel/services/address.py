"""Helpers for validating wallet addresses per chain family."""

from __future__ import annotations

import re
from functools import lru_cache

from ..core.chains import ChainFamily, ChainInfo

_BASE58_ALPHABET = set("123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz")

_EVM_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")


def is_valid_evm_address(address: str) -> bool:
    return bool(_EVM_ADDRESS_RE.fullmatch(address))


@lru_cache(maxsize=128)
def is_valid_solana_address(address: str) -> bool:
    if not address:
        return False
    length = len(address)
    if length < 32 or length > 44:
        return False
    return all(ch in _BASE58_ALPHABET for ch in address)


def is_valid_address_for_family(address: str, family: ChainFamily) -> bool:
    if not address:
        return False
    if family == ChainFamily.SOLANA:
        return is_valid_solana_address(address)
    return is_valid_evm_address(address)


def is_valid_address_for_chain(address: str, chain: ChainInfo) -> bool:
    return is_valid_address_for_family(address.strip(), chain.family)


__all__ = [
    "is_valid_evm_address",
    "is_valid_solana_address",
    "is_valid_address_for_family",
    "is_valid_address_for_chain",
]
