"""
Core types, errors and utilities for the shadowswap HTLC library.
"""

import hashlib
import secrets
from dataclasses import dataclass
from typing import Any, Dict, Tuple


# =============================================================================
# Errors
# =============================================================================

class HTLCError(Exception):
    """Base class for every error raised by shadowswap."""


class ValidationError(HTLCError, ValueError):
    """Malformed or out-of-range input (bad hex, length, range, address, fee)."""


class CryptographicError(HTLCError, ValueError):
    """Invalid private key scalar or public key point."""


class ConstructionError(HTLCError, RuntimeError):
    """An internal derivation step failed (address derivation, signing)."""


# =============================================================================
# Constants
# =============================================================================

SECRET_SIZE = 32
HASH_SIZE = 32
PUBKEY_SIZE = 33        # compressed secp256k1 point
PRIVKEY_SIZE = 32

# Relative timelock bounds (blocks), as accepted by the refund branch
MIN_TIMEOUT = 1
MAX_TIMEOUT = 0xFFFFFF

# Default HTLC parameters
DEFAULT_TIMEOUT_BLOCKS = 144    # ~24 hours (10 min blocks)
DEFAULT_FEE_SATS = 500

# Transaction fields
TX_VERSION = 2                  # BIP68 relative locks need version >= 2
TX_LOCKTIME = 0
SEQUENCE_FINAL = 0xFFFFFFFF
MAX_VOUT = 0xFFFFFFFF
MAX_MONEY = 21_000_000 * 100_000_000
MAX_SCRIPT_SIZE = 10_000



# =============================================================================
# Shared types
# =============================================================================

@dataclass(frozen=True)
class FundingOutput:
    """Reference to the output that locks funds in the HTLC."""
    txid: str       # 64 hex chars, display (big-endian) order
    vout: int       # output index
    amount: int     # satoshis

    def to_dict(self) -> Dict[str, Any]:
        return {
            "txid": self.txid,
            "vout": self.vout,
            "amount": self.amount,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FundingOutput":
        """Build from a UTXO dict ({"txid", "vout", "amount"}), validated."""
        from .validation import validate_funding
        return validate_funding(data.get("txid"), data.get("vout"), data.get("amount"))


# =============================================================================
# Secret / hash utilities
# =============================================================================

def sha256(data) -> bytes:
    """SHA256 of bytes or hex text."""
    from .validation import to_bytes
    return hashlib.sha256(to_bytes(data, "data")).digest()


def generate_secret() -> Tuple[bytes, bytes]:
    """
    Generate a random secret and its SHA256 hashlock.

    Returns:
        (secret, secret_hash), both 32 bytes
    """
    secret = secrets.token_bytes(SECRET_SIZE)
    secret_hash = hashlib.sha256(secret).digest()
    return secret, secret_hash


def verify_preimage(preimage, secret_hash) -> bool:
    """
    Verify that SHA256(preimage) == secret_hash.

    Args:
        preimage: 32-byte preimage (bytes or hex)
        secret_hash: Expected SHA256 hash (bytes or hex)

    Returns:
        True if valid, False on mismatch or malformed input
    """
    from .validation import to_bytes
    try:
        actual = hashlib.sha256(to_bytes(preimage, "preimage")).digest()
        expected = to_bytes(secret_hash, "secret hash")
    except ValidationError:
        return False
    return actual == expected
