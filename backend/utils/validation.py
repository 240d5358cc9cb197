import re

# Ethereum address regex
ETH_ADDRESS_REGEX = re.compile(r"^0x[a-fA-F0-9]{40}$")

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def validate_eth_address(address: str) -> str:
    """Validate Ethereum address format"""
    if not address:
        raise ValueError("Address cannot be empty")

    address = address.strip()

    if not ETH_ADDRESS_REGEX.match(address):
        raise ValueError(f"Invalid Ethereum address format: {address}")

    return address


def normalize_address(address: object) -> str:
    """Lower-case and trim an address; anything falsy becomes ``""``."""
    return str(address or "").strip().lower()


def is_zero_address(address: object) -> bool:
    return normalize_address(address) == ZERO_ADDRESS


def address_to_topic(address: str) -> str:
    """Left-pad a 20-byte address into a 32-byte indexed topic."""
    clean = validate_eth_address(address).lower()[2:]
    return "0x" + clean.rjust(64, "0")


def topic_to_address(topic_hex: str) -> str:
    """Extract an address from a 32-byte ABI-encoded topic.

    Addresses are left-padded with zeros in indexed event topics.
    """
    clean = str(topic_hex or "").lower().replace("0x", "")
    return "0x" + clean[-40:].rjust(40, "0")

