"""
AgriTrace PQC - Token Signer
Detached ML-DSA-65 signatures over opaque payloads (session tokens).

This layers on top of the bearer token scheme, it does not replace it.
verify() answers with a definite boolean for every cryptographic failure so
the calling authorization code always gets an accept/reject decision.
"""

import logging
from typing import Any, Mapping, Union

from nacl.encoding import HexEncoder
from pqcrypto.sign import ml_dsa_65
from pydantic import ValidationError

from .crypto_engine import canonicalize
from .exceptions import MalformedSignedPackageError
from .models import SignedPackage

logger = logging.getLogger(__name__)


class TokenSigner:
    """Signs and verifies payloads with an ML-DSA-65 key pair."""

    def sign(self, payload: Any, private_key: bytes) -> bytes:
        """
        Sign the canonical form of a payload.

        Raises:
            TypeError: payload cannot be canonicalized
            ValueError: private key is not an ML-DSA-65 key
        """
        message = canonicalize(payload).encode('utf-8')
        return bytes(ml_dsa_65.sign(private_key, message))

    def verify(
        self,
        payload: Any,
        signature: Union[bytes, str],
        public_key: bytes,
    ) -> bool:
        """Return True only if signature is valid for payload under public_key."""
        try:
            message = canonicalize(payload).encode('utf-8')
            if isinstance(signature, str):
                signature = HexEncoder.decode(signature.encode())
            return bool(ml_dsa_65.verify(public_key, message, bytes(signature)))
        except Exception as e:
            logger.debug(f"[PQC] Signature verification rejected: {type(e).__name__}")
            return False

    def sign_package(self, payload: Any, private_key: bytes) -> SignedPackage:
        """Sign a payload and bundle it with its hex signature."""
        signature = self.sign(payload, private_key)
        return SignedPackage(data=payload, signature=HexEncoder.encode(signature).decode())

    def verify_package(
        self,
        package: Union[SignedPackage, Mapping[str, Any]],
        public_key: bytes,
    ) -> bool:
        """
        Verify a signed package.

        Raises:
            MalformedSignedPackageError: package lacks data/signature or is not a mapping
        """
        if not isinstance(package, SignedPackage):
            try:
                package = SignedPackage.model_validate(package)
            except ValidationError as e:
                raise MalformedSignedPackageError(f"Invalid signed package: {e}") from e

        return self.verify(package.data, package.signature, public_key)
