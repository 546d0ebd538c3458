"""
Witness stack assembly and serialization for HTLC spends.

Witness for claim (IF branch):
    <signature> <preimage> <0x01> <witnessScript>

Witness for refund (ELSE branch):
    <signature> <> <witnessScript>
"""

import struct
from typing import List, Optional, Sequence

from ..core import SECRET_SIZE

BRANCH_CLAIM = b'\x01'      # truthy: selects OP_IF
BRANCH_REFUND = b''         # empty: selects OP_ELSE (MINIMALIF)


def compact_size(n: int) -> bytes:
    """Encode integer as Bitcoin compact size (varint)."""
    if n < 0xfd:
        return struct.pack('<B', n)
    elif n <= 0xffff:
        return struct.pack('<BH', 0xfd, n)
    elif n <= 0xffffffff:
        return struct.pack('<BI', 0xfe, n)
    else:
        return struct.pack('<BQ', 0xff, n)


def serialize_witness(items: Sequence[bytes]) -> bytes:
    """Serialize a witness stack: item count, then length-prefixed items."""
    witness = compact_size(len(items))
    for item in items:
        witness += compact_size(len(item)) + bytes(item)
    return witness


def claim_witness(signature: bytes, secret: bytes, witness_script: bytes) -> List[bytes]:
    """Witness stack for the claim branch: [sig, secret, 0x01, script]."""
    return [signature, secret, BRANCH_CLAIM, witness_script]


def refund_witness(signature: bytes, witness_script: bytes) -> List[bytes]:
    """Witness stack for the refund branch: [sig, <empty>, script]."""
    return [signature, BRANCH_REFUND, witness_script]


def secret_from_claim_witness(stack: Sequence[bytes]) -> Optional[bytes]:
    """
    Extract the preimage from an HTLC claim witness.

    Returns the secret, or None if the stack is not a claim.
    """
    if len(stack) != 4:
        return None
    if bytes(stack[2]) != BRANCH_CLAIM:
        return None
    secret = bytes(stack[1])
    if len(secret) != SECRET_SIZE:
        return None
    return secret
