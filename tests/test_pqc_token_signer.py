"""
PQC Token Signer Tests

Detached ML-DSA signatures: validity, tamper rejection and the boolean
contract of verify().

Usage:
    python -m pytest tests/test_pqc_token_signer.py -v
"""

import sys
from pathlib import Path

import pytest

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from pqcrypto.sign import ml_dsa_65

from services.pqc.exceptions import MalformedSignedPackageError
from services.pqc.token_signer import TokenSigner


@pytest.fixture(scope="module")
def sig_pair():
    return ml_dsa_65.generate_keypair()


@pytest.fixture(scope="module")
def other_sig_pair():
    return ml_dsa_65.generate_keypair()


@pytest.fixture
def signer():
    return TokenSigner()


# =============================================================================
# Valid signatures
# =============================================================================

def test_token_scenario(signer, sig_pair, other_sig_pair):
    public_key, private_key = sig_pair
    other_public_key, _ = other_sig_pair

    signature = signer.sign("token-abc123", private_key)

    assert signer.verify("token-abc123", signature, public_key) is True
    assert signer.verify("token-abc123", signature, other_public_key) is False


def test_hex_signature_accepted(signer, sig_pair):
    public_key, private_key = sig_pair
    signature = signer.sign("token-abc123", private_key)
    assert signer.verify("token-abc123", signature.hex(), public_key) is True


def test_structured_payload_is_canonicalized(signer, sig_pair):
    public_key, private_key = sig_pair
    signature = signer.sign({"sub": "user-1", "role": "farmer"}, private_key)
    assert signer.verify({"role": "farmer", "sub": "user-1"}, signature, public_key) is True


# =============================================================================
# Tampering
# =============================================================================

def test_single_bit_payload_change_rejected(signer, sig_pair):
    public_key, private_key = sig_pair
    payload = "token-abc123"
    signature = signer.sign(payload, private_key)

    for i in range(len(payload)):
        mutated = payload[:i] + chr(ord(payload[i]) ^ 1) + payload[i + 1:]
        assert signer.verify(mutated, signature, public_key) is False


@pytest.mark.parametrize("position", [0, 1000, -1])
def test_single_bit_signature_change_rejected(signer, sig_pair, position):
    public_key, private_key = sig_pair
    signature = bytearray(signer.sign("token-abc123", private_key))
    signature[position] ^= 0x01

    assert signer.verify("token-abc123", bytes(signature), public_key) is False


@pytest.mark.parametrize("bad_signature", ["zz-not-hex", "", "abcd", None])
def test_malformed_signature_returns_false(signer, sig_pair, bad_signature):
    public_key, _ = sig_pair
    assert signer.verify("token-abc123", bad_signature, public_key) is False


def test_malformed_public_key_returns_false(signer, sig_pair):
    _, private_key = sig_pair
    signature = signer.sign("token-abc123", private_key)
    assert signer.verify("token-abc123", signature, b"short") is False


# =============================================================================
# Signed packages
# =============================================================================

def test_package_round_trip(signer, sig_pair):
    public_key, private_key = sig_pair
    package = signer.sign_package("token-abc123", private_key)

    assert package.data == "token-abc123"
    assert signer.verify_package(package, public_key) is True
    assert signer.verify_package(package.model_dump(), public_key) is True


def test_tampered_package_returns_false(signer, sig_pair):
    public_key, private_key = sig_pair
    package = signer.sign_package({"batch": "B-001"}, private_key).model_dump()
    package["data"] = {"batch": "B-002"}

    assert signer.verify_package(package, public_key) is False


def test_package_accepts_raw_signature_bytes(signer, sig_pair):
    public_key, private_key = sig_pair
    signature = signer.sign("token-abc123", private_key)

    package = {"data": "token-abc123", "signature": signature}

    assert signer.verify_package(package, public_key) is True
    assert signer.verify_package({"data": "token-abc124", "signature": signature}, public_key) is False


@pytest.mark.parametrize("package", [
    {"data": "token-abc123"},
    {"signature": "abcd"},
    "token-abc123",
])
def test_structurally_invalid_package_raises(signer, sig_pair, package):
    public_key, _ = sig_pair
    with pytest.raises(MalformedSignedPackageError):
        signer.verify_package(package, public_key)
