"""
Bitcoin HTLC script construction for shadowswap.

Creates P2WSH (Pay-to-Witness-Script-Hash) HTLCs with a relative
(OP_CHECKSEQUENCEVERIFY) refund timelock.

HTLC Script Structure:
    OP_IF
        OP_SHA256 <secret_hash> OP_EQUALVERIFY
        <claimer_pubkey> OP_CHECKSIG
    OP_ELSE
        <timeout> OP_CHECKSEQUENCEVERIFY OP_DROP
        <refunder_pubkey> OP_CHECKSIG
    OP_ENDIF

To claim (with preimage):
    <signature> <preimage> <0x01> <witnessScript>

To refund (after timeout blocks):
    <signature> <> <witnessScript>
"""

import hashlib
import logging
import struct
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional, Tuple

from ..core import ConstructionError, ValidationError, HASH_SIZE, PUBKEY_SIZE
from ..chains.btc import BTCNetwork, encode_segwit_address, decode_segwit_address
from ..keys import verify_public_key
from ..validation import (
    to_bytes,
    validate_network,
    validate_secret_hash,
    validate_timeout,
)

log = logging.getLogger(__name__)


# Bitcoin Script opcodes
OP_0 = 0x00
OP_PUSHDATA1 = 0x4c
OP_PUSHDATA2 = 0x4d
OP_PUSHDATA4 = 0x4e
OP_1NEGATE = 0x4f
OP_1 = 0x51
OP_16 = 0x60
OP_IF = 0x63
OP_ELSE = 0x67
OP_ENDIF = 0x68
OP_DROP = 0x75
OP_EQUALVERIFY = 0x88
OP_SHA256 = 0xa8
OP_CHECKSIG = 0xac
OP_CHECKSEQUENCEVERIFY = 0xb2

OPCODE_NAMES = {
    OP_0: "OP_0",
    OP_PUSHDATA1: "OP_PUSHDATA1",
    OP_PUSHDATA2: "OP_PUSHDATA2",
    OP_PUSHDATA4: "OP_PUSHDATA4",
    OP_1NEGATE: "OP_1NEGATE",
    OP_IF: "OP_IF",
    OP_ELSE: "OP_ELSE",
    OP_ENDIF: "OP_ENDIF",
    OP_DROP: "OP_DROP",
    OP_EQUALVERIFY: "OP_EQUALVERIFY",
    OP_SHA256: "OP_SHA256",
    OP_CHECKSIG: "OP_CHECKSIG",
    OP_CHECKSEQUENCEVERIFY: "OP_CHECKSEQUENCEVERIFY",
}
OPCODE_NAMES.update({OP_1 + i: f"OP_{i + 1}" for i in range(16)})


# =============================================================================
# Script number codec and pushes
# =============================================================================

def encode_script_number(n: int) -> bytes:
    """
    Encode an integer as a minimal script number.

    Little-endian magnitude; an extra 0x00 (0x80 if negative) is appended
    when the top byte's high bit is set. Zero encodes as b"".
    """
    if n == 0:
        return b""
    negative = n < 0
    abs_n = abs(n)
    result = []
    while abs_n:
        result.append(abs_n & 0xff)
        abs_n >>= 8
    # Add sign bit if needed
    if result[-1] & 0x80:
        result.append(0x80 if negative else 0x00)
    elif negative:
        result[-1] |= 0x80
    return bytes(result)


def decode_script_number(data: bytes) -> int:
    """Inverse of encode_script_number. Rejects non-minimal encodings."""
    if not data:
        return 0
    if (data[-1] & 0x7f) == 0 and (len(data) == 1 or not data[-2] & 0x80):
        raise ValidationError(f"Non-minimal script number: {data.hex()}")
    value = int.from_bytes(data, 'little')
    if data[-1] & 0x80:
        return -(value & ~(0x80 << (8 * (len(data) - 1))))
    return value


def push_data(data: bytes) -> bytes:
    """Create push data opcode for Bitcoin script."""
    length = len(data)
    if length < OP_PUSHDATA1:
        return bytes([length]) + data
    elif length <= 0xff:
        return bytes([OP_PUSHDATA1, length]) + data
    elif length <= 0xffff:
        return bytes([OP_PUSHDATA2]) + struct.pack('<H', length) + data
    else:
        return bytes([OP_PUSHDATA4]) + struct.pack('<I', length) + data


def push_int(n: int) -> bytes:
    """Push integer to script (small ints use OP_0 / OP_1..OP_16 / OP_1NEGATE)."""
    if n == 0:
        return bytes([OP_0])
    elif n == -1:
        return bytes([OP_1NEGATE])
    elif 1 <= n <= 16:
        return bytes([OP_1 + n - 1])
    return push_data(encode_script_number(n))


# =============================================================================
# Parsing and disassembly
# =============================================================================

def iter_script(script: bytes) -> Iterator[Tuple[int, Optional[bytes]]]:
    """
    Yield (opcode, pushed_data) for each instruction.

    pushed_data is None for non-push opcodes.
    """
    pos = 0
    end = len(script)
    while pos < end:
        op = script[pos]
        pos += 1
        if op > OP_PUSHDATA4:
            yield op, None
            continue

        if op < OP_PUSHDATA1:
            size = op
        elif op == OP_PUSHDATA1:
            size = script[pos] if pos < end else -1
            pos += 1
        elif op == OP_PUSHDATA2:
            size = struct.unpack('<H', script[pos:pos + 2])[0] if pos + 2 <= end else -1
            pos += 2
        else:
            size = struct.unpack('<I', script[pos:pos + 4])[0] if pos + 4 <= end else -1
            pos += 4

        if size < 0 or pos + size > end:
            raise ValidationError(f"Truncated push in script at offset {pos}")
        yield op, script[pos:pos + size]
        pos += size


def disassemble(script: bytes) -> str:
    """Human-readable ASM: opcode names, data pushes as hex."""
    parts = []
    for op, data in iter_script(script):
        if data is not None and op != OP_0:
            parts.append(data.hex())
        else:
            parts.append(OPCODE_NAMES.get(op, f"OP_UNKNOWN_0x{op:02x}"))
    return " ".join(parts)


def _read_int(op: int, data: Optional[bytes]) -> int:
    if data is not None:
        return decode_script_number(data)
    if op == OP_1NEGATE:
        return -1
    if OP_1 <= op <= OP_16:
        return op - OP_1 + 1
    raise ValidationError(f"Expected a number push, got {OPCODE_NAMES.get(op, hex(op))}")


@dataclass(frozen=True)
class HTLCTerms:
    """The four inputs an HTLC script commits to."""
    secret_hash: bytes
    claimer_pubkey: bytes
    refunder_pubkey: bytes
    timeout: int


def parse_htlc_script(script) -> HTLCTerms:
    """
    Recover (secret_hash, claimer_pubkey, refunder_pubkey, timeout) from a script.

    Raises:
        ValidationError: if the script is not a shadowswap HTLC
    """
    script = to_bytes(script, "contract script")
    ops = list(iter_script(script))
    expected = [OP_IF, OP_SHA256, None, OP_EQUALVERIFY, None, OP_CHECKSIG,
                OP_ELSE, None, OP_CHECKSEQUENCEVERIFY, OP_DROP, None, OP_CHECKSIG,
                OP_ENDIF]
    if len(ops) != len(expected):
        raise ValidationError("Not an HTLC script: unexpected instruction count")
    for (op, data), want in zip(ops, expected):
        if want is not None and (op != want or data is not None):
            raise ValidationError(
                f"Not an HTLC script: expected {OPCODE_NAMES[want]}, "
                f"got {OPCODE_NAMES.get(op, hex(op))}"
            )

    secret_hash, claimer, refunder = ops[2][1], ops[4][1], ops[10][1]
    if secret_hash is None or len(secret_hash) != HASH_SIZE:
        raise ValidationError("Not an HTLC script: hashlock must be a 32-byte push")
    if claimer is None or len(claimer) != PUBKEY_SIZE or refunder is None or len(refunder) != PUBKEY_SIZE:
        raise ValidationError("Not an HTLC script: pubkeys must be 33-byte pushes")

    return HTLCTerms(
        secret_hash=secret_hash,
        claimer_pubkey=claimer,
        refunder_pubkey=refunder,
        timeout=_read_int(*ops[7]),
    )


# =============================================================================
# HTLC construction
# =============================================================================

@dataclass(frozen=True)
class HTLCContract:
    """A built HTLC: witness script plus its P2WSH funding address."""
    script: bytes
    asm: str
    script_hash: bytes      # SHA256(script) = P2WSH witness program
    address: str
    secret_hash: bytes
    claimer_pubkey: bytes
    refunder_pubkey: bytes
    timeout: int
    network: BTCNetwork

    @property
    def script_hex(self) -> str:
        return self.script.hex()

    @property
    def script_pubkey(self) -> bytes:
        return p2wsh_script_pubkey(self.script)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "scriptHex": self.script.hex(),
            "scriptHash": self.script_hash.hex(),
            "asm": self.asm,
            "secretHash": self.secret_hash.hex(),
            "claimerPubKey": self.claimer_pubkey.hex(),
            "refunderPubKey": self.refunder_pubkey.hex(),
            "timeout": self.timeout,
            "network": self.network.name,
        }


def p2wsh_script_pubkey(script: bytes) -> bytes:
    """P2WSH scriptPubKey: OP_0 <SHA256(witnessScript)>."""
    return bytes([OP_0, 0x20]) + hashlib.sha256(script).digest()


def build_htlc_script(secret_hash, claimer_pubkey, refunder_pubkey, timeout) -> bytes:
    """
    Create HTLC witness script.

    Args:
        secret_hash: SHA256 hash of the secret (32 bytes or hex)
        claimer_pubkey: Compressed pubkey for claim path (33 bytes or hex)
        refunder_pubkey: Compressed pubkey for refund path (33 bytes or hex)
        timeout: Relative timelock in blocks, 1..0xFFFFFF

    Returns:
        Witness script bytes

    Raises:
        ValidationError: malformed input
        CryptographicError: a pubkey is not a secp256k1 point
    """
    hashlock = validate_secret_hash(secret_hash)
    timeout = validate_timeout(timeout)
    claimer = verify_public_key(claimer_pubkey, "claimer public key")
    refunder = verify_public_key(refunder_pubkey, "refunder public key")

    script = bytes([OP_IF])
    script += bytes([OP_SHA256])
    script += push_data(hashlock)
    script += bytes([OP_EQUALVERIFY])
    script += push_data(claimer)
    script += bytes([OP_CHECKSIG])
    script += bytes([OP_ELSE])
    script += push_int(timeout)
    script += bytes([OP_CHECKSEQUENCEVERIFY, OP_DROP])
    script += push_data(refunder)
    script += bytes([OP_CHECKSIG])
    script += bytes([OP_ENDIF])

    return script


def script_to_p2wsh_address(script: bytes, network: BTCNetwork) -> str:
    """
    Convert witness script to P2WSH address.

    Raises:
        ConstructionError: if address encoding fails
    """
    return encode_segwit_address(0, hashlib.sha256(script).digest(), network)


def generate_htlc(secret_hash, claimer_pubkey, refunder_pubkey, timeout,
                  network: BTCNetwork) -> HTLCContract:
    """
    Build the HTLC script and derive its funding address.

    Args:
        secret_hash: SHA256(secret), 32 bytes or hex
        claimer_pubkey: Pubkey that can claim with the preimage
        refunder_pubkey: Pubkey that can refund after the timeout
        timeout: Relative timelock in blocks
        network: Target network

    Returns:
        HTLCContract with script, asm, script hash and address
    """
    network = validate_network(network)
    script = build_htlc_script(secret_hash, claimer_pubkey, refunder_pubkey, timeout)
    script_hash = hashlib.sha256(script).digest()
    address = script_to_p2wsh_address(script, network)

    # The address must decode back to the program we just committed to
    try:
        version, program = decode_segwit_address(address, network)
    except ValueError as e:
        raise ConstructionError(f"P2WSH address {address} does not decode: {e}")
    if version != 0 or program != script_hash:
        raise ConstructionError(f"P2WSH address {address} does not commit to the script hash")

    terms = parse_htlc_script(script)
    log.info(f"Created HTLC: {address}, timeout={terms.timeout} blocks, network={network.name}")

    return HTLCContract(
        script=script,
        asm=disassemble(script),
        script_hash=script_hash,
        address=address,
        secret_hash=terms.secret_hash,
        claimer_pubkey=terms.claimer_pubkey,
        refunder_pubkey=terms.refunder_pubkey,
        timeout=terms.timeout,
        network=network,
    )
