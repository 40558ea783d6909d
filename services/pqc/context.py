"""
AgriTrace PQC - Crypto Context
One object per process that owns the key store and binds the codec and
signer to the cached key pairs. Construct it at startup and pass it to the
route layer and the persistence hooks.
"""

import logging
from typing import Any, Dict, Mapping, Optional, Union

from config.pqc_settings import PQCSettings

from .crypto_engine import EnvelopeCodec
from .field_encryption import FieldEncryptor
from .key_store import KeyStore
from .models import Envelope, KeyScheme
from .token_signer import TokenSigner

logger = logging.getLogger(__name__)


class CryptoContext:
    """Process-wide entry point to field encryption and token signing."""

    def __init__(self, settings: PQCSettings, key_store: Optional[KeyStore] = None):
        self.settings = settings
        self.key_store = key_store or KeyStore(settings.key_storage_dir)
        self.codec = EnvelopeCodec()
        self.signer = TokenSigner()

    @classmethod
    def from_env(cls) -> "CryptoContext":
        return cls(PQCSettings.from_env())

    def initialize(self) -> None:
        """Load or generate both key pairs. Failures here abort startup."""
        self.key_store.initialize()
        logger.info(
            f"[PQC] Crypto context ready (signatures "
            f"{'enabled' if self.settings.signatures_enabled else 'disabled'})"
        )

    # =========================================================================
    # Field encryption
    # =========================================================================

    def encrypt_value(self, value: Any) -> Envelope:
        pair = self.key_store.load_or_generate(KeyScheme.KEM)
        return self.codec.encrypt(value, pair.public_key)

    def decrypt_value(self, envelope: Union[Envelope, Mapping[str, str]]) -> Any:
        pair = self.key_store.load_or_generate(KeyScheme.KEM)
        return self.codec.decrypt(envelope, pair.private_key)

    def decrypt_text(self, envelope: Union[Envelope, Mapping[str, str]]) -> str:
        pair = self.key_store.load_or_generate(KeyScheme.KEM)
        return self.codec.decrypt_text(envelope, pair.private_key)

    def field_encryptor(self) -> FieldEncryptor:
        return FieldEncryptor(self)

    # =========================================================================
    # Token signatures
    # =========================================================================

    @property
    def signatures_enabled(self) -> bool:
        return self.settings.signatures_enabled

    def sign_token(self, token: str) -> Optional[str]:
        """Hex ML-DSA signature over a token, or None when signatures are disabled."""
        if not self.signatures_enabled:
            return None
        pair = self.key_store.load_or_generate(KeyScheme.SIGNATURE)
        return self.signer.sign_package(token, pair.private_key).signature

    def verify_signature(self, payload: Any, signature: str) -> bool:
        """Check a hex signature over a token or any other payload."""
        pair = self.key_store.load_or_generate(KeyScheme.SIGNATURE)
        return self.signer.verify(payload, signature, pair.public_key)

    def public_keys(self) -> Dict[str, str]:
        """Public halves and fingerprints, safe to share."""
        kem = self.key_store.load_or_generate(KeyScheme.KEM)
        signature = self.key_store.load_or_generate(KeyScheme.SIGNATURE)
        return {
            "kem_public_key": kem.public_key_hex,
            "kem_fingerprint": self.key_store.fingerprint(KeyScheme.KEM),
            "signature_public_key": signature.public_key_hex,
            "signature_fingerprint": self.key_store.fingerprint(KeyScheme.SIGNATURE),
        }
