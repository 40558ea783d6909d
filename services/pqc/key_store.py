"""
AgriTrace PQC - Key Store
Loads, generates and persists the two process-wide key pairs.

Key files (hex encoded raw key bytes):
- kyber_public.key / kyber_private.key: ML-KEM-768 pair for field encryption
- dilithium_public.key / dilithium_private.key: ML-DSA-65 pair for token signatures

The private key files disclose every field ever encrypted under them.
Keep the key directory out of backups and version control that are not
access-controlled.
"""

import hashlib
import logging
import os
import threading
from pathlib import Path
from typing import Dict, Tuple

from nacl.encoding import HexEncoder
from pqcrypto.kem import ml_kem_768
from pqcrypto.sign import ml_dsa_65

from .exceptions import KeyGenerationError, KeyReadError
from .models import KeyPair, KeyScheme

logger = logging.getLogger(__name__)

_BACKENDS = {
    KeyScheme.KEM: ml_kem_768,
    KeyScheme.SIGNATURE: ml_dsa_65,
}

# scheme -> (public key bytes, private key bytes)
KEY_SIZES: Dict[KeyScheme, Tuple[int, int]] = {
    KeyScheme.KEM: (1184, 2400),
    KeyScheme.SIGNATURE: (1952, 4032),
}

_SELF_TEST_MESSAGE = b"agritrace-keypair-self-test"


class KeyStore:
    """
    Provides a cached KeyPair per scheme, generating and persisting it on first use.

    Loading distinguishes "no key yet" (neither file exists, safe to generate)
    from "key present but unusable" (raises KeyReadError). A store never
    regenerates over existing key material.
    """

    def __init__(self, key_dir: str = "data/keys"):
        self.key_dir = Path(key_dir)

        # Cached pairs, populated at most once per scheme
        self._pairs: Dict[KeyScheme, KeyPair] = {}
        self._lock = threading.Lock()

    def key_paths(self, scheme: KeyScheme) -> Tuple[Path, Path]:
        """Return (public_path, private_path) for a scheme."""
        scheme = KeyScheme(scheme)
        return (
            self.key_dir / f"{scheme.value}_public.key",
            self.key_dir / f"{scheme.value}_private.key",
        )

    def has_keys(self, scheme: KeyScheme) -> bool:
        public_path, private_path = self.key_paths(scheme)
        return public_path.exists() and private_path.exists()

    def load_or_generate(self, scheme: KeyScheme) -> KeyPair:
        """
        Return the key pair for a scheme.

        Reads both key files when present, otherwise generates a fresh pair
        and writes it. Concurrent first calls are serialized so only one
        pair is ever generated per key directory.

        Raises:
            KeyReadError: key files exist but are incomplete, corrupt or mismatched
            KeyGenerationError: the primitive or the file write failed
        """
        scheme = KeyScheme(scheme)
        pair = self._pairs.get(scheme)
        if pair is not None:
            return pair

        with self._lock:
            pair = self._pairs.get(scheme)
            if pair is None:
                pair = self._load_or_generate_locked(scheme)
                self._pairs[scheme] = pair
        return pair

    def initialize(self) -> Dict[KeyScheme, KeyPair]:
        """Load or generate both key pairs. Call once at process startup."""
        pairs = {scheme: self.load_or_generate(scheme) for scheme in KeyScheme}
        logger.info(f"[PQC] Key store initialized at {self.key_dir}")
        return pairs

    def fingerprint(self, scheme: KeyScheme) -> str:
        """SHA256 fingerprint of a public key, formatted for human comparison."""
        pair = self.load_or_generate(scheme)
        digest = hashlib.sha256(pair.public_key).hexdigest()
        return ':'.join(digest[i:i+2] for i in range(0, 16, 2))

    # =========================================================================
    # Loading
    # =========================================================================

    def _load_or_generate_locked(self, scheme: KeyScheme) -> KeyPair:
        public_path, private_path = self.key_paths(scheme)
        public_exists = public_path.exists()
        private_exists = private_path.exists()

        if public_exists and private_exists:
            pair = self._read_pair(scheme)
            logger.info(f"[PQC] Loaded {scheme.value} key pair from {self.key_dir}")
            return pair

        if public_exists or private_exists:
            present = public_path if public_exists else private_path
            raise KeyReadError(
                f"Incomplete {scheme.value} key pair: only {present.name} exists in {self.key_dir}. "
                "Refusing to generate a replacement that would orphan encrypted data."
            )

        return self._generate_pair(scheme)

    def _read_pair(self, scheme: KeyScheme) -> KeyPair:
        public_path, private_path = self.key_paths(scheme)
        public_size, private_size = KEY_SIZES[scheme]

        pair = KeyPair(
            scheme=scheme,
            public_key=self._read_key_file(public_path, public_size),
            private_key=self._read_key_file(private_path, private_size),
        )
        self._self_test(pair)
        return pair

    def _read_key_file(self, path: Path, expected_size: int) -> bytes:
        try:
            key_bytes = HexEncoder.decode(path.read_text().strip().encode())
        except (OSError, ValueError) as e:
            raise KeyReadError(f"Key file {path} is unreadable: {e}") from e

        if len(key_bytes) != expected_size:
            raise KeyReadError(
                f"Key file {path} holds {len(key_bytes)} bytes, expected {expected_size}"
            )
        return key_bytes

    def _self_test(self, pair: KeyPair) -> None:
        """Check the loaded public and private halves belong together."""
        backend = _BACKENDS[pair.scheme]
        try:
            if pair.scheme == KeyScheme.KEM:
                ciphertext, shared_secret = backend.encrypt(pair.public_key)
                matched = backend.decrypt(pair.private_key, ciphertext) == shared_secret
            else:
                signature = backend.sign(pair.private_key, _SELF_TEST_MESSAGE)
                matched = bool(backend.verify(pair.public_key, _SELF_TEST_MESSAGE, signature))
        except Exception as e:
            raise KeyReadError(f"{pair.scheme.value} key pair failed self-test: {e}") from e

        if not matched:
            raise KeyReadError(
                f"{pair.scheme.value} public and private key files in {self.key_dir} do not match"
            )

    # =========================================================================
    # Generation
    # =========================================================================

    def _generate_pair(self, scheme: KeyScheme) -> KeyPair:
        backend = _BACKENDS[scheme]
        try:
            public_key, private_key = backend.generate_keypair()
        except Exception as e:
            raise KeyGenerationError(f"Failed to generate {scheme.value} keys: {e}") from e

        try:
            self.key_dir.mkdir(parents=True, exist_ok=True)
            self._write_pair(scheme, bytes(public_key), bytes(private_key))
        except OSError as e:
            raise KeyGenerationError(
                f"Failed to persist {scheme.value} keys to {self.key_dir}: {e}"
            ) from e

        logger.info(f"[PQC] Generated new {scheme.value} key pair in {self.key_dir}")
        return KeyPair(scheme=scheme, public_key=bytes(public_key), private_key=bytes(private_key))

    def _write_pair(self, scheme: KeyScheme, public_key: bytes, private_key: bytes) -> None:
        """Write both halves under temporary names, then move them into place private first."""
        public_path, private_path = self.key_paths(scheme)

        private_tmp = self._write_key_file(private_path, HexEncoder.encode(private_key).decode(), private=True)
        public_tmp = self._write_key_file(public_path, HexEncoder.encode(public_key).decode(), private=False)

        os.replace(private_tmp, private_path)
        os.replace(public_tmp, public_path)

    def _write_key_file(self, path: Path, content: str, private: bool) -> Path:
        tmp_path = path.with_name(path.name + ".tmp")
        if not private:
            tmp_path.write_text(content)
            return tmp_path

        # Private key bytes must never exist on disk with a wider mode
        if tmp_path.exists():
            tmp_path.unlink()
        fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w") as f:
            f.write(content)
        return tmp_path
