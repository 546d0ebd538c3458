"""
Persisted HTLC contract record.

The JSON layout is shared with the other swap legs:

    {
      "network": "testnet",
      "secret": {"preimage": "<hex|null>", "hash": "<hex>"},
      "contract": {"address": "...", "scriptHex": "...", "scriptHash": "..."},
      "claimerKey": {"publicKey": "<hex>", "privateKeyEncoded": "<WIF|null>"},
      "refunderKey": {"publicKey": "<hex>", "privateKeyEncoded": "<WIF|null>"},
      "timeout": {"blocks": 144}
    }

Private material (preimage, WIF keys) is optional so a counterparty can
hold a record with only the public half. The network is always supplied
by the caller when loading; a stored "network" name is only cross-checked
and may be absent or free text.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..core import ValidationError, DEFAULT_TIMEOUT_BLOCKS, generate_secret, sha256
from ..chains.btc import NETWORKS, BTCNetwork, HTLCConfig
from ..keys import Keypair, generate_keypair, keypair_from_wif, verify_public_key
from ..validation import (
    to_bytes,
    validate_network,
    validate_secret,
    validate_secret_hash,
    validate_timeout,
)
from .script import HTLCContract, generate_htlc

log = logging.getLogger(__name__)


def _check_stored_network(stored, network: BTCNetwork) -> None:
    """Reject a record whose stored network name names a different network."""
    if not isinstance(stored, str) or stored.lower() not in NETWORKS:
        return
    if stored.lower() != network.name:
        raise ValidationError(
            f"Invalid contract record: stored for {stored}, loading on {network.name}"
        )


@dataclass(frozen=True)
class KeyRecord:
    """Public key, plus the keypair when the private half is held."""
    public_key: bytes
    keypair: Optional[Keypair] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "publicKey": self.public_key.hex(),
            "privateKeyEncoded": self.keypair.to_wif() if self.keypair else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], network: BTCNetwork, role: str) -> "KeyRecord":
        if not isinstance(data, dict):
            raise ValidationError(f"Invalid {role} key: expected an object")
        public_key = verify_public_key(data.get("publicKey"), f"{role} public key")

        wif = data.get("privateKeyEncoded")
        if wif is None:
            return cls(public_key=public_key)

        keypair = keypair_from_wif(wif, network)
        if keypair.public_key != public_key:
            raise ValidationError(f"Invalid {role} key: private key does not match publicKey")
        return cls(public_key=public_key, keypair=keypair)


@dataclass
class ContractRecord:
    """Everything needed to fund, claim and refund one HTLC."""
    network: BTCNetwork
    secret_hash: bytes
    secret: Optional[bytes]
    address: str
    script: bytes
    script_hash: bytes
    claimer: KeyRecord
    refunder: KeyRecord
    timeout: int

    # =========================================================================
    # Creation
    # =========================================================================

    @classmethod
    def create(cls, network: BTCNetwork,
               timeout: int = DEFAULT_TIMEOUT_BLOCKS) -> "ContractRecord":
        """Fresh secret, fresh claimer/refunder keys, and the HTLC built from them."""
        secret, secret_hash = generate_secret()
        claimer = generate_keypair(network)
        refunder = generate_keypair(network)

        contract = generate_htlc(
            secret_hash, claimer.public_key, refunder.public_key, timeout, network
        )
        return cls.from_contract(contract, secret=secret, claimer=claimer, refunder=refunder)

    @classmethod
    def from_config(cls, config: HTLCConfig) -> "ContractRecord":
        return cls.create(config.network, config.timeout_blocks)

    @classmethod
    def from_contract(cls, contract: HTLCContract, secret: Optional[bytes] = None,
                      claimer: Optional[Keypair] = None,
                      refunder: Optional[Keypair] = None) -> "ContractRecord":
        """Wrap a built contract, attaching whatever private material is held."""
        for role, keypair, expected in (("claimer", claimer, contract.claimer_pubkey),
                                        ("refunder", refunder, contract.refunder_pubkey)):
            if keypair is not None and keypair.public_key != expected:
                raise ValidationError(f"Invalid {role} key: does not match the HTLC script")
        if secret is not None and sha256(validate_secret(secret)) != contract.secret_hash:
            raise ValidationError("Invalid secret: SHA256(secret) does not match the HTLC hashlock")

        return cls(
            network=contract.network,
            secret_hash=contract.secret_hash,
            secret=secret,
            address=contract.address,
            script=contract.script,
            script_hash=contract.script_hash,
            claimer=KeyRecord(contract.claimer_pubkey, claimer),
            refunder=KeyRecord(contract.refunder_pubkey, refunder),
            timeout=contract.timeout,
        )

    # =========================================================================
    # Verification
    # =========================================================================

    def rebuild_contract(self) -> HTLCContract:
        """
        Rebuild the HTLC from the hashlock, public keys and timeout.

        Raises:
            ValidationError: if the stored script, script hash or address
                differ from the rebuilt contract
        """
        contract = generate_htlc(
            self.secret_hash,
            self.claimer.public_key,
            self.refunder.public_key,
            self.timeout,
            self.network,
        )
        if contract.script != self.script:
            raise ValidationError("Invalid contract record: scriptHex does not match the rebuilt HTLC")
        if contract.script_hash != self.script_hash:
            raise ValidationError("Invalid contract record: scriptHash does not match the rebuilt HTLC")
        if contract.address != self.address:
            raise ValidationError(
                f"Invalid contract record: address {self.address} != rebuilt {contract.address}"
            )
        return contract

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_dict(self) -> Dict[str, Any]:
        return {
            "network": self.network.name,
            "secret": {
                "preimage": self.secret.hex() if self.secret is not None else None,
                "hash": self.secret_hash.hex(),
            },
            "contract": {
                "address": self.address,
                "scriptHex": self.script.hex(),
                "scriptHash": self.script_hash.hex(),
            },
            "claimerKey": self.claimer.to_dict(),
            "refunderKey": self.refunder.to_dict(),
            "timeout": {"blocks": self.timeout},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], network: BTCNetwork) -> "ContractRecord":
        """
        Load and verify a record for the given network.

        Raises:
            ValidationError: missing fields, mismatched keys or secret, a
                stored network name other than network.name, or a
                contract that does not rebuild to the stored script
            CryptographicError: an invalid key
        """
        if not isinstance(data, dict):
            raise ValidationError("Invalid contract record: expected a JSON object")
        network = validate_network(network)
        _check_stored_network(data.get("network"), network)
        try:
            secret_data = data["secret"]
            contract_data = data["contract"]
            claimer_data = data["claimerKey"]
            refunder_data = data["refunderKey"]
            timeout = data["timeout"]["blocks"]
            address = contract_data["address"]
            script_hex = contract_data["scriptHex"]
            script_hash_hex = contract_data["scriptHash"]
            secret_hash_hex = secret_data["hash"]
        except (KeyError, TypeError) as e:
            raise ValidationError(f"Invalid contract record: missing field {e}")

        secret_hash = validate_secret_hash(secret_hash_hex)
        secret = None
        if secret_data.get("preimage") is not None:
            secret = validate_secret(secret_data["preimage"])
            if sha256(secret) != secret_hash:
                raise ValidationError("Invalid secret: preimage does not match secret hash")

        record = cls(
            network=network,
            secret_hash=secret_hash,
            secret=secret,
            address=address,
            script=to_bytes(script_hex, "scriptHex"),
            script_hash=to_bytes(script_hash_hex, "scriptHash"),
            claimer=KeyRecord.from_dict(claimer_data, network, "claimer"),
            refunder=KeyRecord.from_dict(refunder_data, network, "refunder"),
            timeout=validate_timeout(timeout),
        )
        record.rebuild_contract()
        return record

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    @classmethod
    def from_json(cls, text: str, network: BTCNetwork) -> "ContractRecord":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Invalid contract record: {e}")
        return cls.from_dict(data, network)

    def save(self, path: str) -> None:
        with open(path, 'w') as f:
            f.write(self.to_json())
        log.info(f"Saved HTLC record {self.address} to {path}")

    @classmethod
    def load(cls, path: str, network: BTCNetwork) -> "ContractRecord":
        with open(path) as f:
            record = cls.from_json(f.read(), network)
        log.info(f"Loaded HTLC record {record.address} ({record.network.name})")
        return record
