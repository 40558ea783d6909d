"""
AgriTrace PQC - Exceptions
Error taxonomy for key management, field encryption and token signing.

Signature verification failures are NOT exceptions: verify() returns False.
Only structurally malformed input to the verifier raises.
"""


class PQCError(Exception):
    """Base exception for the PQC layer."""
    pass


class KeyStoreError(PQCError):
    """Base exception for key store failures."""
    pass


class KeyGenerationError(KeyStoreError):
    """Raised when the underlying primitive cannot produce a key pair. Fatal."""
    pass


class KeyReadError(KeyStoreError):
    """Raised when persisted key material is present but unusable (missing half, corrupt, mismatched)."""
    pass


class EncryptionError(PQCError):
    """Raised when serialization, encapsulation or symmetric encryption fails."""
    pass


class DecryptionError(PQCError):
    """Raised when decapsulation, symmetric decryption or the padding check fails."""
    pass


class MalformedSignedPackageError(PQCError):
    """Raised when a signed package handed to the verifier is structurally invalid."""
    pass


class FieldNotEncryptedError(PQCError):
    """Raised when decryption is requested for a field the record type does not declare."""
    pass
