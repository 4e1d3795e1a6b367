"""Ledger address format validation."""

import base64
import hashlib

from depositwatch.core.exceptions import ValidationError

# Addresses are base32 (RFC 4648, no padding) of a 32-byte public key
# followed by the last 4 bytes of its SHA-512/256 digest.
ADDRESS_LENGTH = 58
BASE32_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ234567"
_PUBLIC_KEY_LENGTH = 32
_CHECKSUM_LENGTH = 4


def is_valid_address(address: str | None) -> bool:
    """Validate address format and checksum without network calls.

    Args:
        address: Candidate address.

    Returns:
        True if the address decodes and its checksum matches.

    Example:
        >>> is_valid_address("not-an-address")
        False
    """
    if address is None or not isinstance(address, str):
        return False

    address = address.strip()
    if len(address) != ADDRESS_LENGTH:
        return False

    if not all(c in BASE32_ALPHABET for c in address):
        return False

    # 58 chars -> pad to a multiple of 8 for the decoder
    try:
        raw = base64.b32decode(address + "======")
    except ValueError:
        return False

    if len(raw) != _PUBLIC_KEY_LENGTH + _CHECKSUM_LENGTH:
        return False

    public_key, checksum = raw[:_PUBLIC_KEY_LENGTH], raw[_PUBLIC_KEY_LENGTH:]
    digest = hashlib.new("sha512_256", public_key).digest()
    return digest[-_CHECKSUM_LENGTH:] == checksum


def encode_address(public_key: bytes) -> str:
    """Encode a 32-byte public key as a checksummed address."""
    if len(public_key) != _PUBLIC_KEY_LENGTH:
        msg = f"Public key must be {_PUBLIC_KEY_LENGTH} bytes, got {len(public_key)}"
        raise ValueError(msg)
    checksum = hashlib.new("sha512_256", public_key).digest()[-_CHECKSUM_LENGTH:]
    return base64.b32encode(public_key + checksum).decode("ascii").rstrip("=")


def require_valid_address(address: str) -> str:
    """Return the stripped address, or raise if it is malformed.

    Raises:
        ValidationError: If the address fails format or checksum validation.
    """
    if not is_valid_address(address):
        raise ValidationError(f"Invalid address format or checksum: {address!r}")
    return address.strip()
