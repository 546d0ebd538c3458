"""
Bitcoin network parameters and address codec for shadowswap.

Supports Mainnet/Testnet/Signet/Regtest. Every call takes the network
explicitly; nothing here touches process-wide state (python-bitcoinlib's
SelectParams is never called).
"""

import hashlib
import logging
from dataclasses import dataclass
from typing import Dict, Tuple

import base58
from bip_utils import Bech32ChecksumError, SegwitBech32Decoder, SegwitBech32Encoder

from ..core import (
    ConstructionError,
    ValidationError,
    DEFAULT_FEE_SATS,
    DEFAULT_TIMEOUT_BLOCKS,
)

log = logging.getLogger(__name__)


# Script opcodes used by standard output templates
OP_0 = 0x00
OP_1 = 0x51
OP_DUP = 0x76
OP_EQUAL = 0x87
OP_EQUALVERIFY = 0x88
OP_HASH160 = 0xa9
OP_CHECKSIG = 0xac

MAX_WITNESS_VERSION = 16
MIN_WITNESS_PROGRAM = 2
MAX_WITNESS_PROGRAM = 40


@dataclass(frozen=True)
class BTCNetwork:
    """Bitcoin network constants."""
    name: str                   # mainnet, testnet, signet, regtest
    bech32_hrp: str             # bc, tb, bcrt
    pubkey_hash_prefix: int     # base58 P2PKH version byte
    script_hash_prefix: int     # base58 P2SH version byte
    wif_prefix: int             # WIF version byte


MAINNET = BTCNetwork("mainnet", "bc", 0x00, 0x05, 0x80)
TESTNET = BTCNetwork("testnet", "tb", 0x6f, 0xc4, 0xef)
SIGNET = BTCNetwork("signet", "tb", 0x6f, 0xc4, 0xef)     # also Mutinynet
REGTEST = BTCNetwork("regtest", "bcrt", 0x6f, 0xc4, 0xef)

NETWORKS: Dict[str, BTCNetwork] = {
    net.name: net for net in (MAINNET, TESTNET, SIGNET, REGTEST)
}


def get_network(name: str) -> BTCNetwork:
    """Look up a network by name (mainnet, testnet, signet, regtest)."""
    try:
        return NETWORKS[name.lower()]
    except (KeyError, AttributeError):
        raise ValidationError(
            f"Invalid network: {name!r} (expected one of {', '.join(NETWORKS)})"
        )


@dataclass(frozen=True)
class HTLCConfig:
    """Parameters for creating and spending HTLCs."""
    network: BTCNetwork
    timeout_blocks: int = DEFAULT_TIMEOUT_BLOCKS
    fee_sats: int = DEFAULT_FEE_SATS


# =============================================================================
# Hashing helpers
# =============================================================================

def hash160(data: bytes) -> bytes:
    """HASH160 = RIPEMD160(SHA256(data))."""
    sha = hashlib.sha256(data).digest()
    return hashlib.new('ripemd160', sha).digest()


# =============================================================================
# Output scripts
# =============================================================================

def segwit_script_pubkey(version: int, program: bytes) -> bytes:
    """Witness output script: <version opcode> <push program>."""
    version_op = OP_0 if version == 0 else OP_1 + version - 1
    return bytes([version_op, len(program)]) + bytes(program)


def p2pkh_script_pubkey(pubkey_hash: bytes) -> bytes:
    return bytes([OP_DUP, OP_HASH160, 0x14]) + pubkey_hash + bytes([OP_EQUALVERIFY, OP_CHECKSIG])


def p2sh_script_pubkey(script_hash: bytes) -> bytes:
    return bytes([OP_HASH160, 0x14]) + script_hash + bytes([OP_EQUAL])


# =============================================================================
# Address codec
# =============================================================================

def encode_segwit_address(version: int, program: bytes, network: BTCNetwork) -> str:
    """
    Encode a witness program as a bech32 (v0) or bech32m (v1+) address.

    Raises:
        ConstructionError: if the program cannot be encoded
    """
    if not (0 <= version <= MAX_WITNESS_VERSION
            and MIN_WITNESS_PROGRAM <= len(program) <= MAX_WITNESS_PROGRAM
            and (version != 0 or len(program) in (20, 32))):
        raise ConstructionError(
            f"Failed to encode witness v{version} program of {len(program)} bytes "
            f"for {network.name}"
        )
    return SegwitBech32Encoder.Encode(network.bech32_hrp, version, bytes(program))


def decode_segwit_address(address: str, network: BTCNetwork) -> Tuple[int, bytes]:
    """
    Decode a bech32 (v0) or bech32m (v1+) address for the given network.

    A checksum variant that does not match the witness version is rejected
    (BIP350).

    Returns:
        (witness_version, witness_program)

    Raises:
        ValueError: if the address is not a valid segwit address on this network
    """
    if address != address.lower() and address != address.upper():
        raise ValueError("mixed-case address")
    try:
        version, program = SegwitBech32Decoder.Decode(network.bech32_hrp, address)
    except (ValueError, Bech32ChecksumError) as e:
        raise ValueError(f"not a {network.name} segwit address: {e}")

    # The encoder picks bech32 for v0 and bech32m for v1+
    if SegwitBech32Encoder.Encode(network.bech32_hrp, version, program) != address.lower():
        raise ValueError(f"wrong checksum variant for witness v{version}")
    return version, bytes(program)


def p2wsh_address(script: bytes, network: BTCNetwork) -> str:
    """P2WSH address: witness v0 program = SHA256(script)."""
    return encode_segwit_address(0, hashlib.sha256(script).digest(), network)


def p2wpkh_address(pubkey: bytes, network: BTCNetwork) -> str:
    """P2WPKH address: witness v0 program = HASH160(pubkey)."""
    return encode_segwit_address(0, hash160(pubkey), network)


def address_to_script_pubkey(address: str, network: BTCNetwork) -> bytes:
    """
    Convert a destination address into its output script.

    Accepts segwit (bech32/bech32m) and legacy base58 P2PKH/P2SH addresses.

    Raises:
        ValueError: if the address does not decode for this network
    """
    if not isinstance(address, str) or not address:
        raise ValueError("address must be a non-empty string")

    if address.lower().startswith(network.bech32_hrp + "1"):
        version, program = decode_segwit_address(address, network)
        return segwit_script_pubkey(version, program)

    # Legacy base58check: version byte + 20-byte hash
    decoded = base58.b58decode_check(address)
    if len(decoded) != 21:
        raise ValueError(f"unexpected base58 payload length {len(decoded)}")
    prefix, payload = decoded[0], decoded[1:]
    if prefix == network.pubkey_hash_prefix:
        return p2pkh_script_pubkey(payload)
    if prefix == network.script_hash_prefix:
        return p2sh_script_pubkey(payload)
    raise ValueError(f"base58 prefix 0x{prefix:02x} does not belong to {network.name}")
