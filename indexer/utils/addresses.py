"""
Address helpers.

All addresses are stored as lowercase hex strings.
"""

from web3 import Web3

from indexer.config.constants import ZERO_ADDRESS


def normalize_address(address: str) -> str:
    """
    Normalize an address to lowercase hex.

    Args:
        address: Address in any case, with 0x prefix

    Returns:
        Lowercase address

    Raises:
        ValueError: If the value is not a valid address
    """
    if not isinstance(address, str):
        raise ValueError(f"Invalid address: {address!r}")
    # Lowercase first: feeds may deliver checksummed or mixed-case hex
    lowered = address.strip().lower()
    if not Web3.is_address(lowered):
        raise ValueError(f"Invalid address: {address!r}")
    return lowered


def is_zero_address(address: str) -> bool:
    """Check for the mint/burn sentinel."""
    return address.lower() == ZERO_ADDRESS


def mask_address(address: str) -> str:
    """Shorten an address for logs."""
    if not address or len(address) < 12:
        return address
    return f"{address[:6]}...{address[-4:]}"
