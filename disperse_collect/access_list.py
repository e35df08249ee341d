"""
Access-list derivation for ERC20 token storage.

Solidity stores ``mapping(address => uint256) _balances`` entries at
``keccak256(pad32(key) ++ pad32(slot))`` and nested mappings such as
``mapping(address => mapping(address => uint256)) _allowances`` at
``keccak256(pad32(inner) ++ keccak256(pad32(outer) ++ pad32(slot)))``.
These helpers compute the keys offline so a transaction can declare them
up front. Over-including is harmless; omitting a touched slot only costs gas.
"""
from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence, Tuple

from eth_utils import keccak, to_bytes, to_checksum_address

from .models import AccessListEntry


@dataclass(frozen=True)
class Erc20StorageLayout:
    """
    Storage slot indexes of the token's balance and allowance mappings.

    The defaults match the OpenZeppelin ERC20 implementation.
    """
    balances_slot: int = 0
    allowances_slot: int = 1


DEFAULT_LAYOUT = Erc20StorageLayout()


def _pad_address(address: str) -> bytes:
    return to_bytes(hexstr=address).rjust(32, b"\x00")


def _pad_slot(slot: int) -> bytes:
    return slot.to_bytes(32, "big")


def mapping_slot(key: str, slot: int) -> bytes:
    """Storage position of ``mapping(address => ...)[key]`` declared at ``slot``."""
    return keccak(_pad_address(key) + _pad_slot(slot))


def balance_slot(holder: str, layout: Erc20StorageLayout = DEFAULT_LAYOUT) -> str:
    """Storage key of ``balanceOf(holder)`` as 0x-prefixed hex."""
    return "0x" + mapping_slot(holder, layout.balances_slot).hex()


def allowance_slot(owner: str, spender: str, layout: Erc20StorageLayout = DEFAULT_LAYOUT) -> str:
    """Storage key of ``allowance(owner, spender)`` as 0x-prefixed hex."""
    outer = mapping_slot(owner, layout.allowances_slot)
    return "0x" + keccak(_pad_address(spender) + outer).hex()


def token_entry(
    token: str,
    holders: Iterable[str] = (),
    allowances: Iterable[Tuple[str, str]] = (),
    layout: Erc20StorageLayout = DEFAULT_LAYOUT,
) -> AccessListEntry:
    """
    Build the access-list entry for a token contract.

    Args:
        token: Token contract address
        holders: Addresses whose balance slots are touched
        allowances: (owner, spender) pairs whose allowance slots are touched
        layout: Storage layout of the token

    Returns:
        Entry with balance keys first, then allowance keys, without duplicates
    """
    keys = [balance_slot(holder, layout) for holder in holders]
    keys.extend(allowance_slot(owner, spender, layout) for owner, spender in allowances)
    return AccessListEntry(address=to_checksum_address(token), storage_keys=tuple(dict.fromkeys(keys)))


def account_entries(addresses: Iterable[str]) -> List[AccessListEntry]:
    """Entries that warm plain accounts (no storage keys)."""
    return [AccessListEntry(address=to_checksum_address(address)) for address in addresses]


def merge_access_list(entries: Sequence[AccessListEntry]) -> Tuple[AccessListEntry, ...]:
    """
    Merge entries that share an address.

    Addresses keep their first-seen position and storage keys are
    deduplicated in first-seen order, so equal inputs give equal outputs.
    """
    merged: Dict[str, List[str]] = {}
    for entry in entries:
        address = to_checksum_address(entry.address)
        keys = merged.setdefault(address, [])
        for key in entry.storage_keys:
            if key not in keys:
                keys.append(key)
    return tuple(AccessListEntry(address=address, storage_keys=tuple(keys)) for address, keys in merged.items())
