"""
HTLC spend transactions: claim (preimage) and refund (after timeout).

Spending is a two-phase protocol:

1. prepare_spend() builds the unsigned 1-in/1-out transaction and
   sign_spend() produces a detached BIP143 signature over it. The sighash
   covers inputs and outputs but not the witness, so a claim can be signed
   before the preimage is known (presign_spend).
2. The witness stack is assembled from the signature plus the branch items
   (claim_witness / refund_witness) and finalize_spend() serializes the
   segwit transaction.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from bitcoin.core import (
    CMutableTransaction,
    CMutableTxIn,
    CMutableTxOut,
    COutPoint,
    CScript,
    CTransaction,
    Hash,
    b2lx,
    lx,
)
from bitcoin.core.script import SignatureHash, SIGHASH_ALL, SIGVERSION_WITNESS_V0
from bitcoin.core.serialize import SerializationError

from ..core import (
    ConstructionError,
    FundingOutput,
    ValidationError,
    SEQUENCE_FINAL,
    TX_LOCKTIME,
    TX_VERSION,
    sha256,
)
from ..chains.btc import BTCNetwork
from ..keys import Keypair, load_keypair, sign_digest, verify_signature
from ..validation import (
    to_bytes,
    validate_address,
    validate_fee,
    validate_funding,
    validate_int,
    validate_network,
    validate_script,
    validate_secret,
    validate_secret_hash,
    validate_timeout,
)
from .script import HTLCTerms, p2wsh_script_pubkey, parse_htlc_script
from .witness import (
    claim_witness,
    refund_witness,
    secret_from_claim_witness,
    serialize_witness,
)

log = logging.getLogger(__name__)

BRANCH_CLAIM = "claim"
BRANCH_REFUND = "refund"

FundingLike = Union[FundingOutput, Dict[str, Any]]


@dataclass
class UnsignedSpend:
    """Unsigned single-input, single-output spend of an HTLC output."""
    tx: CMutableTransaction
    funding: FundingOutput
    witness_script: bytes
    destination: str
    fee: int
    network: BTCNetwork

    @property
    def sequence(self) -> int:
        return self.tx.vin[0].nSequence

    @property
    def output_amount(self) -> int:
        return self.tx.vout[0].nValue

    @property
    def funding_script_pubkey(self) -> bytes:
        return p2wsh_script_pubkey(self.witness_script)

    def serialize(self) -> bytes:
        return self.tx.serialize()

    def sighash(self) -> bytes:
        """BIP143 SIGHASH_ALL digest for input 0, script code = witness script."""
        return SignatureHash(
            script=CScript(self.witness_script),
            txTo=self.tx,
            inIdx=0,
            hashtype=SIGHASH_ALL,
            amount=self.funding.amount,
            sigversion=SIGVERSION_WITNESS_V0,
        )


@dataclass
class PresignedSpend:
    """Unsigned spend plus a detached signature, waiting for its witness."""
    unsigned: UnsignedSpend
    signature: bytes        # DER + sighash byte
    public_key: bytes

    def to_dict(self) -> Dict[str, Any]:
        return {
            "raw_tx": self.unsigned.serialize().hex(),
            "signature": self.signature.hex(),
            "public_key": self.public_key.hex(),
            "utxo": self.unsigned.funding.to_dict(),
            "redeem_script": self.unsigned.witness_script.hex(),
            "destination": self.unsigned.destination,
            "fee": self.unsigned.fee,
        }


@dataclass(frozen=True)
class SpendTransaction:
    """A finalized, signed spend ready for broadcast."""
    tx_hex: str
    txid: str
    wtxid: str
    branch: str
    witness: Tuple[bytes, ...]
    sequence: int
    fee: int
    output_amount: int
    vsize: int

    @property
    def tx(self) -> CTransaction:
        """Deserialized transaction for inspection."""
        return CTransaction.deserialize(bytes.fromhex(self.tx_hex))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "txid": self.txid,
            "wtxid": self.wtxid,
            "hex": self.tx_hex,
            "branch": self.branch,
            "sequence": self.sequence,
            "fee": self.fee,
            "output_amount": self.output_amount,
            "vsize": self.vsize,
        }


# =============================================================================
# Phase 1: unsigned transaction + detached signature
# =============================================================================

def _coerce_funding(funding: FundingLike) -> FundingOutput:
    if isinstance(funding, FundingOutput):
        return validate_funding(funding.txid, funding.vout, funding.amount)
    if isinstance(funding, dict):
        return FundingOutput.from_dict(funding)
    raise ValidationError(
        f"Invalid funding output: expected FundingOutput or dict, got {type(funding).__name__}"
    )


def prepare_spend(funding: FundingLike, contract_script, destination: str,
                  fee: int, network: BTCNetwork,
                  sequence: int = SEQUENCE_FINAL) -> UnsignedSpend:
    """
    Build the unsigned spend of an HTLC output.

    Args:
        funding: FundingOutput or UTXO dict with txid, vout, amount (sats)
        contract_script: HTLC witness script (bytes or hex)
        destination: Address receiving amount - fee
        fee: Absolute fee in satoshis
        network: Network the destination belongs to
        sequence: nSequence of the single input

    Returns:
        UnsignedSpend

    Raises:
        ValidationError: any malformed input
    """
    network = validate_network(network)
    funding = _coerce_funding(funding)
    script = validate_script(contract_script)
    fee = validate_fee(fee, funding.amount)
    sequence = validate_int(sequence, "sequence", 0, SEQUENCE_FINAL)
    destination_script = validate_address(destination, network)

    output_amount = funding.amount - fee

    txin = CMutableTxIn(COutPoint(lx(funding.txid), funding.vout), nSequence=sequence)
    txout = CMutableTxOut(output_amount, CScript(destination_script))
    tx = CMutableTransaction([txin], [txout], nLockTime=TX_LOCKTIME, nVersion=TX_VERSION)

    return UnsignedSpend(
        tx=tx,
        funding=funding,
        witness_script=script,
        destination=destination,
        fee=fee,
        network=network,
    )


def sign_spend(unsigned: UnsignedSpend, keypair: Keypair) -> bytes:
    """
    Sign input 0 of an unsigned spend.

    Returns:
        DER signature with SIGHASH_ALL byte appended

    Raises:
        ConstructionError: if no valid signature was produced
    """
    sighash = unsigned.sighash()
    der = sign_digest(keypair, sighash)
    if not der or not verify_signature(keypair.public_key, sighash, der):
        raise ConstructionError("No valid signature produced for HTLC input 0")

    sig = der + bytes([SIGHASH_ALL])
    log.debug(f"Signed HTLC spend: sighash={sighash.hex()[:16]}..., sig={sig.hex()[:20]}...")
    return sig


# =============================================================================
# Phase 2: witness assembly and serialization
# =============================================================================

def finalize_spend(unsigned: UnsignedSpend, witness: Sequence[bytes],
                   branch: str) -> SpendTransaction:
    """
    Attach a witness stack to the unsigned spend and serialize it.

    Non-segwit: [version(4)] [inputs+outputs] [locktime(4)]
    Segwit:     [version(4)] [0x00 0x01] [inputs+outputs] [witness] [locktime(4)]
    """
    if not witness or not witness[0]:
        raise ConstructionError("Cannot finalize HTLC spend without a signature")

    unsigned_bytes = unsigned.serialize()
    version = unsigned_bytes[:4]
    locktime = unsigned_bytes[-4:]
    middle = unsigned_bytes[4:-4]

    signed_bytes = version + b'\x00\x01' + middle + serialize_witness(witness) + locktime

    weight = len(unsigned_bytes) * 3 + len(signed_bytes)
    txid = b2lx(Hash(unsigned_bytes))

    log.info(
        f"Built HTLC {branch}: txid={txid}, "
        f"{unsigned.output_amount} sats -> {unsigned.destination} (fee={unsigned.fee})"
    )

    return SpendTransaction(
        tx_hex=signed_bytes.hex(),
        txid=txid,
        wtxid=b2lx(Hash(signed_bytes)),
        branch=branch,
        witness=tuple(bytes(item) for item in witness),
        sequence=unsigned.sequence,
        fee=unsigned.fee,
        output_amount=unsigned.output_amount,
        vsize=(weight + 3) // 4,
    )


def _htlc_terms(script: bytes) -> Optional[HTLCTerms]:
    try:
        return parse_htlc_script(script)
    except ValidationError as e:
        log.debug(f"Contract script is not a standard HTLC: {e}")
        return None


# =============================================================================
# Pre-signing
# =============================================================================

def presign_spend(funding_txid, vout, amount, signer_key, contract_script,
                  destination: str, fee: int, network: BTCNetwork,
                  sequence: int = SEQUENCE_FINAL) -> PresignedSpend:
    """
    Sign an HTLC spend before its witness is complete.

    In segwit P2WSH the sighash does not cover the witness stack, so a
    claim can be signed now and the secret attached later with
    complete_claim(). For a refund pass sequence=timeout and finish with
    complete_refund().

    Raises:
        ValidationError: any input violation (raised before signing)
        CryptographicError: invalid private key
        ConstructionError: signing failed
    """
    funding = validate_funding(funding_txid, vout, amount)
    unsigned = prepare_spend(funding, contract_script, destination, fee, network, sequence)
    keypair = load_keypair(signer_key, unsigned.network)

    return PresignedSpend(
        unsigned=unsigned,
        signature=sign_spend(unsigned, keypair),
        public_key=keypair.public_key,
    )


def complete_claim(presigned: PresignedSpend, secret,
                   check_preimage: bool = False) -> SpendTransaction:
    """
    Assemble the claim witness from a pre-signed spend and the secret.

    Args:
        presigned: Result of presign_spend()
        secret: 32-byte preimage
        check_preimage: Fail fast if SHA256(secret) does not match the
            script's hashlock (otherwise left to script evaluation)
    """
    secret = validate_secret(secret)
    script = presigned.unsigned.witness_script

    if check_preimage:
        terms = parse_htlc_script(script)
        if sha256(secret) != terms.secret_hash:
            raise ValidationError("Invalid secret: SHA256(secret) does not match the HTLC hashlock")

    witness = claim_witness(presigned.signature, secret, script)
    return finalize_spend(presigned.unsigned, witness, BRANCH_CLAIM)


def complete_refund(presigned: PresignedSpend) -> SpendTransaction:
    """Assemble the refund witness from a pre-signed spend."""
    witness = refund_witness(presigned.signature, presigned.unsigned.witness_script)
    return finalize_spend(presigned.unsigned, witness, BRANCH_REFUND)


# =============================================================================
# Claim
# =============================================================================

def build_claim_tx(funding_txid, vout, amount, claimer_key, secret, contract_script,
                   destination: str, fee: int, network: BTCNetwork,
                   *, check_preimage: bool = False) -> SpendTransaction:
    """
    Claim an HTLC with the preimage.

    Witness stack for claim branch:
        [0]: signature
        [1]: preimage (32 bytes)
        [2]: 0x01 (selects OP_IF)
        [3]: witness script

    Args:
        funding_txid: Funding transaction id (64 hex chars)
        vout: Output index of the HTLC in the funding transaction
        amount: Value of the HTLC output in satoshis
        claimer_key: Keypair, 32-byte private key (bytes/hex) or WIF
        secret: 32-byte preimage
        contract_script: HTLC witness script
        destination: Where to send amount - fee
        fee: Absolute fee in satoshis
        network: Target network
        check_preimage: Verify SHA256(secret) against the script first

    Returns:
        SpendTransaction

    Raises:
        ValidationError: any input violation (raised before signing)
        CryptographicError: invalid private key
        ConstructionError: signing failed
    """
    funding = validate_funding(funding_txid, vout, amount)
    secret = validate_secret(secret)

    presigned = presign_spend(funding.txid, funding.vout, funding.amount, claimer_key,
                              contract_script, destination, fee, network)

    terms = _htlc_terms(presigned.unsigned.witness_script)
    if terms is not None and terms.claimer_pubkey != presigned.public_key:
        log.warning("Claim key does not match the claimer pubkey in the HTLC script")

    return complete_claim(presigned, secret, check_preimage=check_preimage)


# =============================================================================
# Refund
# =============================================================================

def build_refund_tx(funding_txid, vout, amount, refunder_key, contract_script,
                    destination: str, timeout: int, fee: int,
                    network: BTCNetwork) -> SpendTransaction:
    """
    Refund an HTLC after its relative timelock.

    The input's nSequence is set to timeout so OP_CHECKSEQUENCEVERIFY passes.

    Witness stack for refund branch:
        [0]: signature
        [1]: <empty> (selects OP_ELSE)
        [2]: witness script

    Args:
        funding_txid: Funding transaction id (64 hex chars)
        vout: Output index of the HTLC in the funding transaction
        amount: Value of the HTLC output in satoshis
        refunder_key: Keypair, 32-byte private key (bytes/hex) or WIF
        contract_script: HTLC witness script
        destination: Where to send amount - fee
        timeout: The CSV timeout in blocks (must match the HTLC)
        fee: Absolute fee in satoshis
        network: Target network

    Returns:
        SpendTransaction (valid for broadcast after timeout blocks)
    """
    funding = validate_funding(funding_txid, vout, amount)
    timeout = validate_timeout(timeout)

    terms = _htlc_terms(validate_script(contract_script))
    if terms is not None and timeout < terms.timeout:
        log.warning(
            f"Refund sequence {timeout} is below the HTLC timeout {terms.timeout}; "
            f"OP_CHECKSEQUENCEVERIFY will fail"
        )

    presigned = presign_spend(funding.txid, funding.vout, funding.amount, refunder_key,
                              contract_script, destination, fee, network, sequence=timeout)

    if terms is not None and terms.refunder_pubkey != presigned.public_key:
        log.warning("Refund key does not match the refunder pubkey in the HTLC script")

    return complete_refund(presigned)


# =============================================================================
# Secret extraction
# =============================================================================

def extract_preimage(tx_hex, secret_hash=None) -> Optional[bytes]:
    """
    Extract the revealed secret from a published claim transaction.

    Args:
        tx_hex: Serialized transaction (hex or bytes)
        secret_hash: If given, only return a secret hashing to it

    Returns:
        The 32-byte secret, or None if no input carries an HTLC claim witness
    """
    raw = to_bytes(tx_hex, "transaction")
    expected = validate_secret_hash(secret_hash) if secret_hash is not None else None

    try:
        tx = CTransaction.deserialize(raw)
    except SerializationError as e:
        raise ValidationError(f"Invalid transaction: {e}")

    for txin_witness in tx.wit.vtxinwit:
        secret = secret_from_claim_witness(list(txin_witness.scriptWitness.stack))
        if secret is None:
            continue
        if expected is None or sha256(secret) == expected:
            return secret
    return None


__all__: List[str] = [
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
]
