"""
secp256k1 key handling for HTLC signing.

Keys are derived per call from raw bytes or WIF and never retained.
"""

import hashlib
import logging
import secrets
from dataclasses import dataclass, field

import base58
from ecdsa import SECP256k1, SigningKey, VerifyingKey, BadSignatureError, MalformedPointError
from ecdsa.der import UnexpectedDER
from ecdsa.util import sigencode_der_canonize, sigdecode_der

from .core import CryptographicError, ValidationError, PRIVKEY_SIZE
from .chains.btc import BTCNetwork
from .validation import (
    to_bytes,
    validate_network,
    validate_private_key_bytes,
    validate_public_key,
)

log = logging.getLogger(__name__)

# secp256k1 curve order
SECP256K1_N = SECP256k1.order


@dataclass(frozen=True)
class Keypair:
    """Network-scoped signing keypair (compressed public key)."""
    private_key: bytes = field(repr=False)
    public_key: bytes
    network: BTCNetwork

    def to_wif(self) -> str:
        """Export the private key in WIF (compressed)."""
        payload = bytes([self.network.wif_prefix]) + self.private_key + b'\x01'
        return base58.b58encode_check(payload).decode('ascii')


def _signing_key(private_key: bytes) -> SigningKey:
    secexp = int.from_bytes(private_key, 'big')
    if not 1 <= secexp < SECP256K1_N:
        raise CryptographicError(
            "Invalid private key: scalar must be between 1 and the secp256k1 group order - 1"
        )
    return SigningKey.from_string(private_key, curve=SECP256k1)


def keypair_from_private_key(private_key, network: BTCNetwork) -> Keypair:
    """
    Derive a keypair from 32 raw private key bytes (or hex).

    Raises:
        ValidationError: wrong length/format or network
        CryptographicError: key is zero or >= group order
    """
    network = validate_network(network)
    raw = validate_private_key_bytes(private_key)
    sk = _signing_key(raw)
    public_key = sk.get_verifying_key().to_string("compressed")
    return Keypair(private_key=raw, public_key=public_key, network=network)


def keypair_from_wif(wif: str, network: BTCNetwork) -> Keypair:
    """
    Decode a compressed-key WIF for the given network.

    Raises:
        ValidationError: bad encoding, uncompressed key, or wrong network prefix
        CryptographicError: key out of range
    """
    network = validate_network(network)
    if not isinstance(wif, str) or not wif:
        raise ValidationError("Invalid WIF: expected a non-empty string")
    try:
        decoded = base58.b58decode_check(wif)
    except ValueError as e:
        raise ValidationError(f"Invalid WIF: {e}")

    if decoded[0] != network.wif_prefix:
        raise ValidationError(
            f"Invalid WIF: prefix 0x{decoded[0]:02x} does not match {network.name} "
            f"(0x{network.wif_prefix:02x})"
        )
    if len(decoded) != PRIVKEY_SIZE + 2 or decoded[-1] != 0x01:
        raise ValidationError("Invalid WIF: only compressed keys are supported")

    return keypair_from_private_key(decoded[1:PRIVKEY_SIZE + 1], network)


def load_keypair(key, network: BTCNetwork) -> Keypair:
    """Accept a Keypair, raw private key bytes/hex, or a WIF string."""
    if isinstance(key, Keypair):
        if key.network != network:
            raise ValidationError(
                f"Invalid keypair: built for {key.network.name}, expected {network.name}"
            )
        return key
    if isinstance(key, str) and len(key) != PRIVKEY_SIZE * 2:
        return keypair_from_wif(key, network)
    return keypair_from_private_key(key, network)


def generate_keypair(network: BTCNetwork) -> Keypair:
    """Generate a random keypair from a secure entropy source."""
    while True:
        candidate = secrets.token_bytes(PRIVKEY_SIZE)
        if 1 <= int.from_bytes(candidate, 'big') < SECP256K1_N:
            return keypair_from_private_key(candidate, network)


def verify_public_key(public_key, field_name: str = "public key") -> bytes:
    """
    Check that a compressed public key is a point on secp256k1.

    Raises:
        ValidationError: wrong length or encoding
        CryptographicError: not a curve point
    """
    data = validate_public_key(public_key, field_name)
    try:
        VerifyingKey.from_string(data, curve=SECP256k1)
    except (MalformedPointError, ValueError) as e:
        raise CryptographicError(f"Invalid {field_name}: not a valid secp256k1 point ({e})")
    return data


def sign_digest(keypair: Keypair, digest: bytes) -> bytes:
    """
    Sign a 32-byte digest.

    Deterministic (RFC 6979) ECDSA, DER-encoded with low S.
    """
    sk = _signing_key(keypair.private_key)
    return sk.sign_digest_deterministic(
        digest,
        hashfunc=hashlib.sha256,
        sigencode=sigencode_der_canonize,
    )


def verify_signature(public_key, digest: bytes, signature: bytes) -> bool:
    """Verify a DER signature (without sighash byte) over a digest."""
    try:
        vk = VerifyingKey.from_string(to_bytes(public_key, "public key"), curve=SECP256k1)
        return vk.verify_digest(signature, digest, sigdecode=sigdecode_der)
    except (BadSignatureError, MalformedPointError, UnexpectedDER, ValidationError):
        return False
