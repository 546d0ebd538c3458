"""
Input validation for HTLC construction and spending.

Every public operation normalizes its inputs here before any script or
cryptographic work happens. Text-or-bytes parameters become bytes at this
boundary; nothing downstream branches on the input representation.
"""

import string
from typing import Optional

from .core import (
    FundingOutput,
    ValidationError,
    HASH_SIZE,
    MAX_MONEY,
    MAX_SCRIPT_SIZE,
    MAX_TIMEOUT,
    MAX_VOUT,
    MIN_TIMEOUT,
    PRIVKEY_SIZE,
    PUBKEY_SIZE,
    SECRET_SIZE,
)
from .chains.btc import BTCNetwork, address_to_script_pubkey

_HEX_DIGITS = frozenset(string.hexdigits)


def _is_hex(text: str) -> bool:
    return all(c in _HEX_DIGITS for c in text)


def to_bytes(value, field: str) -> bytes:
    """
    Normalize a bytes-like value or even-length hex text to bytes.

    Raises:
        ValidationError: empty, odd-length or non-hex text, or another type
    """
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, str):
        if not value:
            raise ValidationError(f"Invalid {field}: empty hex string")
        if len(value) % 2:
            raise ValidationError(f"Invalid {field}: odd-length hex string ({len(value)} chars)")
        if not _is_hex(value):
            raise ValidationError(f"Invalid {field}: non-hex characters")
        return bytes.fromhex(value)
    raise ValidationError(
        f"Invalid {field}: expected bytes or hex string, got {type(value).__name__}"
    )


def require_length(value, size: int, field: str) -> bytes:
    """Normalize and enforce an exact byte length."""
    data = to_bytes(value, field)
    if len(data) != size:
        raise ValidationError(
            f"Invalid {field} length: expected {size} bytes, got {len(data)}"
        )
    return data


def validate_secret(secret) -> bytes:
    return require_length(secret, SECRET_SIZE, "secret")


def validate_secret_hash(secret_hash) -> bytes:
    return require_length(secret_hash, HASH_SIZE, "secret hash")


def validate_private_key_bytes(private_key) -> bytes:
    return require_length(private_key, PRIVKEY_SIZE, "private key")


def validate_public_key(public_key, field: str = "public key") -> bytes:
    """
    Check length and compressed encoding of a public key.

    Whether the point is on the curve is checked by keys.verify_public_key.
    """
    data = require_length(public_key, PUBKEY_SIZE, field)
    if data[0] not in (0x02, 0x03):
        raise ValidationError(
            f"Invalid {field}: expected compressed encoding (0x02/0x03 prefix), "
            f"got 0x{data[0]:02x}"
        )
    return data


def validate_int(value, field: str, minimum: int, maximum: Optional[int] = None) -> int:
    """Require an integer (not bool, not float) in [minimum, maximum]."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(
            f"Invalid {field}: must be an integer, got {type(value).__name__}"
        )
    if value < minimum or (maximum is not None and value > maximum):
        if maximum is None:
            bound = f">= {minimum}"
        else:
            bound = f"between {minimum} and {maximum}"
        raise ValidationError(f"Invalid {field}: must be {bound}, got {value}")
    return value


def validate_timeout(timeout) -> int:
    return validate_int(timeout, "timeout", MIN_TIMEOUT, MAX_TIMEOUT)


def validate_vout(vout) -> int:
    return validate_int(vout, "vout", 0, MAX_VOUT)


def validate_amount(amount) -> int:
    return validate_int(amount, "amount", 1, MAX_MONEY)


def validate_fee(fee, amount: int) -> int:
    """Require 0 < fee < amount so the single output stays positive."""
    fee = validate_int(fee, "fee", 1, MAX_MONEY)
    if fee >= amount:
        raise ValidationError(
            f"Invalid fee: fee ({fee}) must be less than amount ({amount}); "
            f"output would be {amount - fee}"
        )
    return fee


def validate_txid(txid) -> str:
    """Require exactly 64 hex characters. Returns the lowercase txid."""
    if not isinstance(txid, str) or len(txid) != 64 or not _is_hex(txid):
        shown = txid if isinstance(txid, str) else type(txid).__name__
        raise ValidationError(
            f"Invalid prevTxId: expected 64 hex characters, got {shown!r}"
        )
    return txid.lower()


def validate_network(network) -> BTCNetwork:
    if not isinstance(network, BTCNetwork):
        raise ValidationError(
            f"Invalid network: expected BTCNetwork, got {type(network).__name__}"
        )
    return network


def validate_address(address, network: BTCNetwork) -> bytes:
    """
    Decode a destination address under the network's codec.

    Returns:
        The destination output script (scriptPubKey)
    """
    try:
        return address_to_script_pubkey(address, network)
    except ValueError as e:
        raise ValidationError(
            f"Invalid destination address: {address!r} on {network.name} ({e})"
        )


def validate_script(script) -> bytes:
    data = to_bytes(script, "contract script")
    if len(data) > MAX_SCRIPT_SIZE:
        raise ValidationError(
            f"Invalid contract script: {len(data)} bytes exceeds {MAX_SCRIPT_SIZE}"
        )
    return data


def validate_funding(txid, vout, amount) -> FundingOutput:
    """Validate a funding output reference (txid, vout, amount)."""
    return FundingOutput(
        txid=validate_txid(txid),
        vout=validate_vout(vout),
        amount=validate_amount(amount),
    )
