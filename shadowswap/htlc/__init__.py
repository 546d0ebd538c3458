"""
HTLC (Hash Time-Locked Contract) for the Bitcoin leg of an atomic swap.

HTLCs enable trustless atomic swaps by ensuring:
1. Funds can only be claimed with knowledge of a secret (preimage)
2. Funds can be refunded after a timeout if not claimed

Modules:
- script: P2WSH witness script, script numbers, parsing
- witness: witness stacks and their serialization
- transaction: claim/refund transactions (two-phase signing)
- record: persisted contract record
"""

from .script import (
    HTLCContract,
    HTLCTerms,
    build_htlc_script,
    generate_htlc,
    parse_htlc_script,
    encode_script_number,
    decode_script_number,
    disassemble,
)
from .witness import compact_size, serialize_witness, claim_witness, refund_witness
from .transaction import (
    UnsignedSpend,
    PresignedSpend,
    SpendTransaction,
    prepare_spend,
    sign_spend,
    finalize_spend,
    presign_spend,
    complete_claim,
    complete_refund,
    build_claim_tx,
    build_refund_tx,
    extract_preimage,
)
from .record import ContractRecord, KeyRecord

__all__ = [
    # Script
    "HTLCContract",
    "HTLCTerms",
    "build_htlc_script",
    "generate_htlc",
    "parse_htlc_script",
    "encode_script_number",
    "decode_script_number",
    "disassemble",
    # Witness
    "compact_size",
    "serialize_witness",
    "claim_witness",
    "refund_witness",
    # Transactions
    "UnsignedSpend",
    "PresignedSpend",
    "SpendTransaction",
    "prepare_spend",
    "sign_spend",
    "finalize_spend",
    "presign_spend",
    "complete_claim",
    "complete_refund",
    "build_claim_tx",
    "build_refund_tx",
    "extract_preimage",
    # Record
    "ContractRecord",
    "KeyRecord",
]
