#!/usr/bin/env python3
"""
Key Manager Tests

Private key range checks, WIF encoding per network, public key
validation and deterministic low-S signatures.
"""

import sys
import os
import hashlib
import unittest

import base58
from ecdsa import SECP256k1
from ecdsa.util import sigdecode_der

# Add package to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from shadowswap.core import CryptographicError, ValidationError
from shadowswap.chains.btc import MAINNET, TESTNET, p2wpkh_address
from shadowswap.keys import (
    Keypair,
    SECP256K1_N,
    generate_keypair,
    keypair_from_private_key,
    keypair_from_wif,
    load_keypair,
    sign_digest,
    verify_public_key,
    verify_signature,
)

KEY_ONE = (1).to_bytes(32, 'big')
PUBKEY_ONE = "0279be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798"
WIF_ONE_MAINNET = "KwDiBf89QgGbjEhKnhXJuH7LrciVrZi3qYjgd9M7rFU73sVHnoWn"


class TestPrivateKeys(unittest.TestCase):
    """Private key parsing and range checks."""

    def test_key_one(self):
        kp = keypair_from_private_key(KEY_ONE, MAINNET)
        self.assertEqual(kp.public_key.hex(), PUBKEY_ONE)
        self.assertEqual(p2wpkh_address(kp.public_key, MAINNET),
                         "bc1qw508d6qejxtdg4y5r3zarvary0c5xw7kv8f3t4")
        self.assertEqual(p2wpkh_address(kp.public_key, TESTNET),
                         "tb1qw508d6qejxtdg4y5r3zarvary0c5xw7kxpjzsx")

    def test_hex_input(self):
        kp = keypair_from_private_key("00" * 31 + "01", MAINNET)
        self.assertEqual(kp.public_key.hex(), PUBKEY_ONE)

    def test_zero_rejected(self):
        with self.assertRaises(CryptographicError):
            keypair_from_private_key(b"\x00" * 32, TESTNET)

    def test_group_order_rejected(self):
        with self.assertRaises(CryptographicError):
            keypair_from_private_key(SECP256K1_N.to_bytes(32, 'big'), TESTNET)
        with self.assertRaises(CryptographicError):
            keypair_from_private_key(b"\xff" * 32, TESTNET)

    def test_max_key_accepted(self):
        kp = keypair_from_private_key((SECP256K1_N - 1).to_bytes(32, 'big'), TESTNET)
        self.assertEqual(len(kp.public_key), 33)

    def test_wrong_length(self):
        with self.assertRaisesRegex(ValidationError, "private key length"):
            keypair_from_private_key(b"\x01" * 31, TESTNET)

    def test_private_key_not_in_repr(self):
        kp = keypair_from_private_key("11" * 32, TESTNET)
        self.assertNotIn("11" * 32, repr(kp))

    def test_generate(self):
        a = generate_keypair(TESTNET)
        b = generate_keypair(TESTNET)
        self.assertNotEqual(a.private_key, b.private_key)
        self.assertIn(a.public_key[0], (0x02, 0x03))


class TestWIF(unittest.TestCase):
    """WIF import/export."""

    def test_known_vector(self):
        kp = keypair_from_wif(WIF_ONE_MAINNET, MAINNET)
        self.assertEqual(kp.private_key, KEY_ONE)
        self.assertEqual(kp.to_wif(), WIF_ONE_MAINNET)

    def test_round_trip(self):
        kp = keypair_from_private_key("22" * 32, TESTNET)
        wif = kp.to_wif()
        self.assertEqual(wif[0], "c")
        self.assertEqual(keypair_from_wif(wif, TESTNET), kp)

    def test_wrong_network(self):
        wif = keypair_from_private_key("22" * 32, TESTNET).to_wif()
        with self.assertRaisesRegex(ValidationError, "prefix"):
            keypair_from_wif(wif, MAINNET)

    def test_uncompressed_rejected(self):
        wif = base58.b58encode_check(b"\x80" + KEY_ONE).decode('ascii')
        with self.assertRaisesRegex(ValidationError, "compressed"):
            keypair_from_wif(wif, MAINNET)

    def test_bad_checksum(self):
        bad = WIF_ONE_MAINNET[:-1] + ("o" if WIF_ONE_MAINNET[-1] != "o" else "p")
        with self.assertRaises(ValidationError):
            keypair_from_wif(bad, MAINNET)

    def test_load_keypair(self):
        kp = keypair_from_private_key(KEY_ONE, MAINNET)
        self.assertEqual(load_keypair(kp, MAINNET), kp)
        self.assertEqual(load_keypair(KEY_ONE, MAINNET), kp)
        self.assertEqual(load_keypair(KEY_ONE.hex(), MAINNET), kp)
        self.assertEqual(load_keypair(WIF_ONE_MAINNET, MAINNET), kp)
        with self.assertRaises(ValidationError):
            load_keypair(kp, TESTNET)


class TestPublicKeys(unittest.TestCase):
    """Compressed public key checks."""

    def test_valid(self):
        self.assertEqual(verify_public_key(PUBKEY_ONE).hex(), PUBKEY_ONE)

    def test_uncompressed_prefix(self):
        with self.assertRaises(ValidationError):
            verify_public_key("04" + PUBKEY_ONE[2:])

    def test_not_on_curve(self):
        with self.assertRaises(CryptographicError):
            verify_public_key("02" + "00" * 32)


class TestSigning(unittest.TestCase):
    """Deterministic ECDSA."""

    def setUp(self):
        self.kp = keypair_from_private_key("11" * 32, TESTNET)
        self.digest = hashlib.sha256(b"shadowswap").digest()

    def test_deterministic(self):
        self.assertEqual(sign_digest(self.kp, self.digest), sign_digest(self.kp, self.digest))

    def test_verifies(self):
        sig = sign_digest(self.kp, self.digest)
        self.assertTrue(verify_signature(self.kp.public_key, self.digest, sig))
        other = hashlib.sha256(b"other").digest()
        self.assertFalse(verify_signature(self.kp.public_key, other, sig))

    def test_low_s(self):
        for i in range(8):
            digest = hashlib.sha256(bytes([i])).digest()
            _, s = sigdecode_der(sign_digest(self.kp, digest), SECP256k1.order)
            self.assertLessEqual(s, SECP256k1.order // 2)

    def test_keypair_type(self):
        self.assertIsInstance(self.kp, Keypair)


if __name__ == "__main__":
    unittest.main(verbosity=2)
