"""
AgriTrace PQC - Field Encryption
Hook surface the persistence layer calls around record writes and reads.

Each record type declares its encrypted fields as a class attribute; the
declaration is checked against the model's fields when the class is created.
Envelope parts live in three parallel maps keyed by field name:

- encrypted:         field -> base64 AES ciphertext
- encrypted_ciphers: field -> hex ML-KEM ciphertext
- encrypted_ivs:     field -> hex IV

The maps travel with the stored document but never appear in to_safe_dict().
"""

import copy
import logging
import types
from typing import Any, ClassVar, Dict, Mapping, Optional, Tuple, Type, TypeVar, Union, get_args, get_origin

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from .exceptions import DecryptionError, EncryptionError, FieldNotEncryptedError
from .models import Envelope

logger = logging.getLogger(__name__)

ENVELOPE_MAPS = ("encrypted", "encrypted_ciphers", "encrypted_ivs")

_MISSING = object()

RecordT = TypeVar("RecordT", bound="EncryptedRecord")

_UNION_TYPES = tuple(t for t in (Union, getattr(types, "UnionType", None)) if t is not None)


def _is_text_field(record_cls: Type[BaseModel], field: str) -> bool:
    """True if a field is declared as str (optionally Optional[str])."""
    annotation = record_cls.model_fields[field].annotation
    if get_origin(annotation) in _UNION_TYPES:
        members = [arg for arg in get_args(annotation) if arg is not type(None)]
    else:
        members = [annotation]
    return bool(members) and all(member is str for member in members)


class EncryptedRecord(BaseModel):
    """Base model for records that carry encrypted fields."""
    model_config = ConfigDict(validate_assignment=True)

    encrypted_fields: ClassVar[Tuple[str, ...]] = ()
    hidden_fields: ClassVar[Tuple[str, ...]] = ()

    encrypted: Dict[str, str] = Field(default_factory=dict)
    encrypted_ciphers: Dict[str, str] = Field(default_factory=dict)
    encrypted_ivs: Dict[str, str] = Field(default_factory=dict)

    # Encrypted-field values as of the last load/save
    _snapshot: Dict[str, Any] = PrivateAttr(default_factory=dict)
    _persisted: bool = PrivateAttr(default=False)

    @classmethod
    def __pydantic_init_subclass__(cls, **kwargs: Any) -> None:
        super().__pydantic_init_subclass__(**kwargs)
        for group in ("encrypted_fields", "hidden_fields"):
            unknown = [
                name for name in getattr(cls, group)
                if name not in cls.model_fields or name in ENVELOPE_MAPS
            ]
            if unknown:
                raise TypeError(
                    f"{cls.__name__}.{group} names unknown fields: {', '.join(unknown)}"
                )

    def is_modified(self, field: str) -> bool:
        """True if a field changed since the last load/save, or the record is new."""
        if not self._persisted:
            return True
        return self._snapshot.get(field, _MISSING) != getattr(self, field)

    def mark_persisted(self) -> None:
        self._snapshot = {
            field: copy.deepcopy(getattr(self, field)) for field in self.encrypted_fields
        }
        self._persisted = True

    def envelope_parts(self, field: str) -> Optional[Dict[str, str]]:
        """Stored envelope parts for a field, or None if it was never encrypted."""
        parts = {
            "symmetric_ciphertext": self.encrypted.get(field),
            "kem_ciphertext": self.encrypted_ciphers.get(field),
            "iv": self.encrypted_ivs.get(field),
        }
        if not all(parts.values()):
            return None
        return parts

    def set_envelope(self, field: str, envelope: Envelope) -> None:
        self.encrypted[field] = envelope.symmetric_ciphertext
        self.encrypted_ciphers[field] = envelope.kem_ciphertext
        self.encrypted_ivs[field] = envelope.iv

    def clear_envelope(self, field: str) -> None:
        for store in (self.encrypted, self.encrypted_ciphers, self.encrypted_ivs):
            store.pop(field, None)


class FieldEncryptor:
    """
    Encrypts declared fields before a record is written and decrypts them after
    it is read.

    `cipher` is any object with encrypt_value(value) -> Envelope and
    decrypt_value(envelope) -> value and decrypt_text(envelope) -> str
    (see CryptoContext). str fields are restored with decrypt_text so their
    text is never reinterpreted as JSON.
    """

    def __init__(self, cipher: Any):
        self.cipher = cipher

    # =========================================================================
    # Write path
    # =========================================================================

    def prepare_for_save(self, record: EncryptedRecord) -> Dict[str, Any]:
        """
        Encrypt modified fields and return the document to persist.

        Unmodified fields keep their stored envelope. Fields cleared to None or
        "" lose their envelope. Plaintext of enveloped fields is replaced by
        None in the returned document.

        Raises:
            EncryptionError: any field failed; the record's envelopes are left untouched
        """
        pending: Dict[str, Envelope] = {}
        cleared = []

        for field in record.encrypted_fields:
            if not record.is_modified(field):
                continue

            value = getattr(record, field)
            if value is None or value == "":
                cleared.append(field)
                continue

            try:
                pending[field] = self.cipher.encrypt_value(value)
            except EncryptionError:
                logger.error(f"[PQC] Error encrypting field {field} of {type(record).__name__}")
                raise

        for field in cleared:
            record.clear_envelope(field)
        for field, envelope in pending.items():
            record.set_envelope(field, envelope)

        return self.storage_document(record)

    def mark_saved(self, record: EncryptedRecord) -> None:
        """Call after the document returned by prepare_for_save was written."""
        record.mark_persisted()

    def storage_document(self, record: EncryptedRecord) -> Dict[str, Any]:
        document = record.model_dump()
        for field in record.encrypted_fields:
            if record.envelope_parts(field) is not None:
                document[field] = None
        return document

    # =========================================================================
    # Read path
    # =========================================================================

    def load(self, record_cls: Type[RecordT], document: Mapping[str, Any]) -> RecordT:
        """
        Build a record from a stored document, decrypting enveloped fields.

        A field that fails to decrypt keeps its stored value and is logged;
        the rest of the record still loads.
        """
        document = dict(document)
        maps = [document.get(name) or {} for name in ENVELOPE_MAPS]

        for field in record_cls.encrypted_fields:
            symmetric_ciphertext, kem_ciphertext, iv = (store.get(field) for store in maps)
            if not (symmetric_ciphertext and kem_ciphertext and iv):
                continue

            try:
                document[field] = self._decrypt(record_cls, field, {
                    "kem_ciphertext": kem_ciphertext,
                    "symmetric_ciphertext": symmetric_ciphertext,
                    "iv": iv,
                })
            except DecryptionError as e:
                logger.warning(
                    f"[PQC] Failed to decrypt field {field} of {record_cls.__name__}: {e}"
                )

        record = record_cls.model_validate(document)
        record.mark_persisted()
        return record

    def _decrypt(self, record_cls: Type[EncryptedRecord], field: str, parts: Mapping[str, str]) -> Any:
        if _is_text_field(record_cls, field):
            return self.cipher.decrypt_text(parts)
        return self.cipher.decrypt_value(parts)

    def decrypt_field(self, record: EncryptedRecord, field: str) -> Any:
        """
        Plaintext of one declared field.

        Returns the in-memory value when the field has no envelope (legacy
        plaintext) or was modified since the last save.

        Raises:
            FieldNotEncryptedError: field is not declared by the record type
            DecryptionError: the stored envelope cannot be decrypted
        """
        if field not in record.encrypted_fields:
            raise FieldNotEncryptedError(
                f"Field {field} is not configured for encryption on {type(record).__name__}"
            )

        parts = record.envelope_parts(field)
        if parts is None or record.is_modified(field):
            return getattr(record, field)

        try:
            return self._decrypt(type(record), field, parts)
        except DecryptionError:
            logger.error(f"[PQC] Error decrypting field {field} of {type(record).__name__}")
            raise

    def decrypt_fields(self, record: EncryptedRecord) -> Dict[str, Any]:
        """Decrypt every declared field, falling back to the stored value per field."""
        decrypted = {}
        for field in record.encrypted_fields:
            try:
                decrypted[field] = self.decrypt_field(record, field)
            except DecryptionError:
                logger.warning(f"[PQC] Using stored value for undecryptable field {field}")
                decrypted[field] = getattr(record, field)
        return decrypted

    def to_safe_dict(self, record: EncryptedRecord) -> Dict[str, Any]:
        """Externally visible form: no envelope maps, no hidden fields, decrypted values."""
        data = record.model_dump(exclude=set(ENVELOPE_MAPS) | set(record.hidden_fields))
        data.update(self.decrypt_fields(record))
        return data
