import re
from typing import Optional

EVM_ADDRESS_PATTERN = re.compile(r"0x[a-fA-F0-9]{40}")


def is_valid_address(address: Optional[str]) -> bool:
    """Check that a wallet address is 0x followed by 40 hex digits"""
    if not isinstance(address, str):
        return False
    return EVM_ADDRESS_PATTERN.fullmatch(address) is not None


def normalize_address(address: str) -> str:
    """
    Canonical storage form of a wallet address.

    EVM addresses are case-insensitive (mixed case is only a checksum), so
    lower-casing makes every spelling of one wallet hit the same unique key.
    """
    return address.strip().lower()
