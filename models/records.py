"""
AgriTrace Record Models
Supply-chain records whose sensitive fields are stored as PQC envelopes.

Encrypted fields are Optional: a field that fails to decrypt on load falls
back to its stored value (None once encrypted) instead of failing the record.
"""

from datetime import datetime
from enum import Enum
from typing import ClassVar, List, Optional, Tuple

from pydantic import BaseModel, Field

from services.pqc.field_encryption import EncryptedRecord


# =============================================================================
# Enums
# =============================================================================

class UserRole(str, Enum):
    FARMER = "farmer"
    CERTIFIER = "certifier"
    RETAILER = "retailer"


class BatchStatus(str, Enum):
    CREATED = "CREATED"
    CERTIFIED = "CERTIFIED"
    REJECTED = "REJECTED"
    PURCHASED = "PURCHASED"


# =============================================================================
# User
# =============================================================================

class UserRecord(EncryptedRecord):
    """Registered participant. Personal details are encrypted at rest."""
    encrypted_fields: ClassVar[Tuple[str, ...]] = ("name", "email", "location", "company")
    hidden_fields: ClassVar[Tuple[str, ...]] = ("password_hash",)

    user_id: str
    username: str
    password_hash: str
    wallet_address: str
    role: UserRole
    name: Optional[str] = None
    email: Optional[str] = None
    location: Optional[str] = None
    company: Optional[str] = None
    registration_date: datetime = Field(default_factory=datetime.now)

    # Farmer
    last_harvest_date: Optional[datetime] = None
    registered_crops: List[str] = Field(default_factory=list)

    # Certifier
    certified_crops: List[str] = Field(default_factory=list)
    rejected_crops: List[str] = Field(default_factory=list)

    # Retailer
    purchased_crops: List[str] = Field(default_factory=list)


# =============================================================================
# Batch
# =============================================================================

class BatchHistoryEntry(BaseModel):
    from_address: Optional[str] = None
    to_address: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.now)
    action: BatchStatus


class BatchRecord(EncryptedRecord):
    """Crop batch moving through the chain. Crop details are encrypted at rest."""
    encrypted_fields: ClassVar[Tuple[str, ...]] = ("crop_name", "crop_variety", "location", "crop_health")

    batch_id: str
    crop_name: Optional[str] = None
    crop_variety: Optional[str] = None
    location: Optional[str] = None
    crop_health: Optional[str] = None
    harvest_date: datetime
    farmer: str = Field(..., description="Farmer wallet address")
    certifier: Optional[str] = None
    retailer: Optional[str] = None
    status: BatchStatus = BatchStatus.CREATED
    expiry: Optional[datetime] = None
    lab_results: Optional[bool] = None
    price: float
    created_at: datetime = Field(default_factory=datetime.now)
    certified_at: Optional[datetime] = None
    purchased_at: Optional[datetime] = None
    history: List[BatchHistoryEntry] = Field(default_factory=list)
