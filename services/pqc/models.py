"""
AgriTrace PQC - Pydantic Models
Key pairs, field envelopes and signed token packages.
"""

import re
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from nacl.encoding import HexEncoder


_HEX_RE = re.compile(r'^[0-9a-fA-F]+$')

# IV is one AES block
IV_SIZE = 16


class KeyScheme(str, Enum):
    """The two independent key pairs held per process."""
    KEM = "kyber"            # ML-KEM-768, field encryption
    SIGNATURE = "dilithium"  # ML-DSA-65, token signatures


class KeyPair(BaseModel):
    """Raw key material for one scheme. Never cross-used between schemes."""
    model_config = ConfigDict(frozen=True)

    scheme: KeyScheme
    public_key: bytes
    private_key: bytes = Field(..., repr=False)

    @property
    def public_key_hex(self) -> str:
        return HexEncoder.encode(self.public_key).decode()


class Envelope(BaseModel):
    """
    Persisted form of one encrypted field value.

    - kem_ciphertext: hex ML-KEM ciphertext (recovers the shared secret)
    - symmetric_ciphertext: base64 AES-256-CBC ciphertext of the canonical string
    - iv: hex 16-byte CBC initialization vector
    """
    kem_ciphertext: str = Field(..., description="Hex encoded KEM ciphertext")
    symmetric_ciphertext: str = Field(..., description="Base64 encoded AES-CBC ciphertext")
    iv: str = Field(..., description="Hex encoded 16-byte IV")

    @field_validator('kem_ciphertext')
    @classmethod
    def validate_kem_ciphertext(cls, v: str) -> str:
        if not v or not _HEX_RE.match(v) or len(v) % 2:
            raise ValueError("kem_ciphertext must be a non-empty hex string")
        return v

    @field_validator('symmetric_ciphertext')
    @classmethod
    def validate_symmetric_ciphertext(cls, v: str) -> str:
        if not v:
            raise ValueError("symmetric_ciphertext must not be empty")
        return v

    @field_validator('iv')
    @classmethod
    def validate_iv(cls, v: str) -> str:
        if len(v) != IV_SIZE * 2 or not _HEX_RE.match(v):
            raise ValueError(f"iv must be {IV_SIZE * 2} hex characters. Got length {len(v)}")
        return v

    @property
    def kem_ciphertext_bytes(self) -> bytes:
        return HexEncoder.decode(self.kem_ciphertext.encode())

    @property
    def iv_bytes(self) -> bytes:
        return HexEncoder.decode(self.iv.encode())


class SignedPackage(BaseModel):
    """A payload together with its detached hex ML-DSA signature."""
    data: Any = Field(..., description="Original payload (string or structured value)")
    signature: str = Field(..., description="Hex encoded detached signature")

    @field_validator('signature', mode='before')
    @classmethod
    def encode_raw_signature(cls, v: Any) -> Any:
        # Raw signature bytes from TokenSigner.sign() are stored as hex
        if isinstance(v, (bytes, bytearray)):
            return HexEncoder.encode(bytes(v)).decode()
        return v
