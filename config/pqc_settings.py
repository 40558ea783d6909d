"""
AgriTrace PQC Settings
Configuration consumed by the post-quantum encryption and signing layer.

Environment variables:
- PQC_KEY_STORAGE_DIR: directory holding the four key files (default data/keys)
- ENABLE_PQC_SIGNATURES: issue/verify ML-DSA signatures over session tokens
- PQC_REQUIRE_SIGNATURE: reject requests without X-PQC-Signature (only when enabled)
- JWT_SECRET / JWT_ALGORITHM / JWT_TTL_HOURS: bearer token settings
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional


DEFAULT_KEY_STORAGE_DIR = "data/keys"
DEFAULT_JWT_SECRET = "agritrace-jwt-secret-change-in-production"


def _env_flag(environ: Mapping[str, str], name: str, default: str = "false") -> bool:
    return environ.get(name, default).lower() == "true"


@dataclass
class PQCSettings:
    """Runtime configuration for the PQC layer."""
    key_storage_dir: str = DEFAULT_KEY_STORAGE_DIR
    signatures_enabled: bool = False
    require_signature: bool = False
    jwt_secret: str = DEFAULT_JWT_SECRET
    jwt_algorithm: str = "HS256"
    token_ttl_hours: int = 24

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "PQCSettings":
        """Build settings from environment variables (os.environ by default)."""
        if environ is None:
            environ = os.environ

        return cls(
            key_storage_dir=environ.get("PQC_KEY_STORAGE_DIR", DEFAULT_KEY_STORAGE_DIR),
            signatures_enabled=_env_flag(environ, "ENABLE_PQC_SIGNATURES"),
            require_signature=_env_flag(environ, "PQC_REQUIRE_SIGNATURE"),
            jwt_secret=environ.get("JWT_SECRET", DEFAULT_JWT_SECRET),
            jwt_algorithm=environ.get("JWT_ALGORITHM", "HS256"),
            token_ttl_hours=int(environ.get("JWT_TTL_HOURS", "24")),
        )
