"""
AgriTrace PQC - Crypto Engine
Hybrid field encryption: ML-KEM-768 establishes a fresh shared secret per
call, AES-256-CBC under that secret protects the value.

Security Architecture:
- KEM: ML-KEM-768 (via pqcrypto), fresh encapsulation per value
- Symmetric: AES-256-CBC + PKCS#7, key = raw 32-byte shared secret, random 16-byte IV
- Canonical String: str passes through, everything else is compact sorted JSON
"""

import json
import logging
from typing import Any, Mapping, Union

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from nacl.encoding import Base64Encoder, HexEncoder
from nacl.utils import random as random_bytes
from pqcrypto.kem import ml_kem_768
from pydantic import ValidationError

from .exceptions import DecryptionError, EncryptionError
from .models import IV_SIZE, Envelope

logger = logging.getLogger(__name__)

# ML-KEM-768 ciphertext length
KEM_CIPHERTEXT_SIZE = 1088


def canonicalize(value: Any) -> str:
    """
    Convert a value to the fixed string form used for encryption and signing.

    Strings pass through unchanged. Any other value is encoded as compact JSON
    with sorted keys so the same value always yields the same string.

    Raises:
        TypeError: value cannot be JSON encoded (e.g. bytes)
    """
    if isinstance(value, str):
        return value
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def restore(text: str) -> Any:
    """Parse recovered text as JSON, returning the raw string when it is not JSON."""
    try:
        return json.loads(text)
    except ValueError:
        return text


class EnvelopeCodec:
    """
    Converts values to and from self-contained Envelopes.

    Workflow (encrypt):
    1. Canonicalize the value
    2. Encapsulate against the KEM public key -> (kem_ciphertext, shared_secret)
    3. AES-256-CBC encrypt under shared_secret with a random IV
    4. Package hex KEM ciphertext, base64 AES ciphertext, hex IV
    """

    def encrypt(self, value: Any, public_key: bytes) -> Envelope:
        """
        Encrypt a value for the holder of the matching private key.

        Raises:
            EncryptionError: serialization, encapsulation or encryption failed
        """
        try:
            plaintext = canonicalize(value).encode('utf-8')
        except (TypeError, ValueError) as e:
            raise EncryptionError(f"Value cannot be serialized for encryption: {e}") from e

        try:
            kem_ciphertext, shared_secret = ml_kem_768.encrypt(public_key)
        except Exception as e:
            raise EncryptionError(f"KEM encapsulation failed: {e}") from e

        iv = random_bytes(IV_SIZE)
        try:
            encrypted = self._aes_encrypt(bytes(shared_secret), iv, plaintext)
        except ValueError as e:
            raise EncryptionError(f"Symmetric encryption failed: {e}") from e

        return Envelope(
            kem_ciphertext=HexEncoder.encode(bytes(kem_ciphertext)).decode(),
            symmetric_ciphertext=Base64Encoder.encode(encrypted).decode(),
            iv=HexEncoder.encode(iv).decode(),
        )

    def decrypt(self, envelope: Union[Envelope, Mapping[str, str]], private_key: bytes) -> Any:
        """
        Recover the value held in an envelope.

        Raises:
            DecryptionError: malformed envelope, wrong private key or corrupted data
        """
        return restore(self.decrypt_text(envelope, private_key))

    def decrypt_text(self, envelope: Union[Envelope, Mapping[str, str]], private_key: bytes) -> str:
        """
        Recover the canonical string held in an envelope, without JSON parsing.

        Callers that know the original value was a string use this so values
        like "true" or "12.50" come back unchanged.
        """
        if not isinstance(envelope, Envelope):
            try:
                envelope = Envelope.model_validate(envelope)
            except ValidationError as e:
                raise DecryptionError(f"Malformed envelope: {e}") from e

        kem_ciphertext = envelope.kem_ciphertext_bytes
        if len(kem_ciphertext) != KEM_CIPHERTEXT_SIZE:
            raise DecryptionError(
                f"KEM ciphertext is {len(kem_ciphertext)} bytes, expected {KEM_CIPHERTEXT_SIZE}"
            )

        try:
            shared_secret = ml_kem_768.decrypt(private_key, kem_ciphertext)
        except Exception as e:
            raise DecryptionError(f"KEM decapsulation failed: {e}") from e

        try:
            ciphertext = Base64Encoder.decode(envelope.symmetric_ciphertext.encode())
            plaintext = self._aes_decrypt(bytes(shared_secret), envelope.iv_bytes, ciphertext)
            text = plaintext.decode('utf-8')
        except ValueError as e:
            # Padding or UTF-8 failure: wrong key or corrupted ciphertext
            logger.warning("[PQC] Envelope decryption failed (key mismatch or corrupted data)")
            raise DecryptionError(
                "Decryption failed. Possible causes: wrong private key or corrupted data."
            ) from e

        return text

    def _aes_encrypt(self, key: bytes, iv: bytes, plaintext: bytes) -> bytes:
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        padded = padder.update(plaintext) + padder.finalize()

        encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
        return encryptor.update(padded) + encryptor.finalize()

    def _aes_decrypt(self, key: bytes, iv: bytes, ciphertext: bytes) -> bytes:
        decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
        padded = decryptor.update(ciphertext) + decryptor.finalize()

        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        return unpadder.update(padded) + unpadder.finalize()
