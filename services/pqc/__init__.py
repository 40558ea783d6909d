"""
AgriTrace Post-Quantum Field Encryption & Token Signing
Transparent field-level encryption and a second signature layer on session tokens.

Security Model: ML-KEM-768 + AES-256-CBC envelopes, ML-DSA-65 detached signatures
Libraries: pqcrypto (PQClean bindings), cryptography, PyNaCl (encoding, randomness)
"""

from .context import CryptoContext
from .crypto_engine import EnvelopeCodec, canonicalize
from .exceptions import (
    PQCError,
    KeyStoreError,
    KeyGenerationError,
    KeyReadError,
    EncryptionError,
    DecryptionError,
    MalformedSignedPackageError,
    FieldNotEncryptedError,
)
from .field_encryption import EncryptedRecord, FieldEncryptor
from .key_store import KeyStore
from .models import Envelope, KeyPair, KeyScheme, SignedPackage
from .token_signer import TokenSigner

__all__ = [
    'CryptoContext',
    'EnvelopeCodec',
    'canonicalize',
    'PQCError',
    'KeyStoreError',
    'KeyGenerationError',
    'KeyReadError',
    'EncryptionError',
    'DecryptionError',
    'MalformedSignedPackageError',
    'FieldNotEncryptedError',
    'EncryptedRecord',
    'FieldEncryptor',
    'KeyStore',
    'Envelope',
    'KeyPair',
    'KeyScheme',
    'SignedPackage',
    'TokenSigner',
]
