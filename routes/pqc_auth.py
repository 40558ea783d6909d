"""
AgriTrace PQC - FastAPI Routes
Session tokens with an optional ML-DSA signature layer.

Endpoints:
- GET  /api/pqc/keys     - Public keys and fingerprints
- GET  /api/pqc/session  - Verify bearer token (+ X-PQC-Signature) and return claims
- POST /api/pqc/verify   - Check a detached signature over arbitrary data

Login/registration routes call issue_session_token() and protect their
handlers with Depends(require_session).
"""

import logging
import time
from typing import Any, Dict, Optional

import jwt
from fastapi import APIRouter, Depends, Header, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, Field

from services.pqc.context import CryptoContext

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/pqc", tags=["PQC"])
security = HTTPBearer(auto_error=False)

_crypto_context: Optional[CryptoContext] = None


def init_pqc_services(context: CryptoContext) -> None:
    """Register the process crypto context (call during app init)."""
    global _crypto_context
    _crypto_context = context
    logger.info("[PQC] Route services initialized")


def get_crypto_context() -> CryptoContext:
    if _crypto_context is None:
        raise HTTPException(status_code=500, detail="PQC service not initialized")
    return _crypto_context


# ============================================================================
# Request/Response Models
# ============================================================================

class SessionTokenResponse(BaseModel):
    """Bearer token plus its PQC signature (None when signatures are disabled)."""
    token: str
    pqc_signature: Optional[str] = None
    expires_at: int


class PublicKeysResponse(BaseModel):
    kem_public_key: str
    kem_fingerprint: str
    signature_public_key: str
    signature_fingerprint: str
    signatures_enabled: bool


class VerifySignatureRequest(BaseModel):
    data: Any = Field(..., description="Signed payload (string or structured value)")
    signature: str = Field(..., description="Hex encoded ML-DSA signature")


class VerifySignatureResponse(BaseModel):
    valid: bool


# ============================================================================
# Token helpers
# ============================================================================

def issue_session_token(context: CryptoContext, claims: Dict[str, Any]) -> SessionTokenResponse:
    """Sign a JWT for the given claims and, if enabled, add a PQC signature over it."""
    now_ts = int(time.time())
    exp_ts = now_ts + context.settings.token_ttl_hours * 3600

    payload = dict(claims)
    payload.update({"iat": now_ts, "exp": exp_ts})
    token = jwt.encode(payload, context.settings.jwt_secret, algorithm=context.settings.jwt_algorithm)

    return SessionTokenResponse(
        token=token,
        pqc_signature=context.sign_token(token),
        expires_at=exp_ts,
    )


def decode_session_token(context: CryptoContext, token: str) -> Optional[Dict[str, Any]]:
    """Decode and verify a session JWT. None if invalid or expired."""
    try:
        return jwt.decode(
            token,
            context.settings.jwt_secret,
            algorithms=[context.settings.jwt_algorithm],
        )
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None


async def require_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    x_pqc_signature: Optional[str] = Header(None),
    context: CryptoContext = Depends(get_crypto_context),
) -> Dict[str, Any]:
    """
    Request dependency: bearer token must be valid; when PQC signatures are
    enabled, a presented X-PQC-Signature must verify over the token.
    """
    if credentials is None:
        raise HTTPException(status_code=401, detail="No token, authorization denied")

    token = credentials.credentials
    claims = decode_session_token(context, token)
    if claims is None:
        raise HTTPException(status_code=401, detail="Token is not valid")

    if context.signatures_enabled:
        if x_pqc_signature is None:
            if context.settings.require_signature:
                raise HTTPException(status_code=401, detail="PQC signature required")
        elif not context.verify_signature(token, x_pqc_signature):
            logger.warning(f"[PQC] Rejected token signature for subject {claims.get('sub')}")
            raise HTTPException(status_code=401, detail="PQC signature verification failed")

    return claims


# ============================================================================
# Router
# ============================================================================

@router.get("/keys", response_model=PublicKeysResponse)
async def get_public_keys(context: CryptoContext = Depends(get_crypto_context)):
    """Public halves of both key pairs. Compare fingerprints out of band before trusting."""
    info = context.public_keys()
    return PublicKeysResponse(signatures_enabled=context.signatures_enabled, **info)


@router.get("/session")
async def get_session(claims: Dict[str, Any] = Depends(require_session)):
    """Return the verified token claims."""
    return {"valid": True, "claims": claims}


@router.post("/verify", response_model=VerifySignatureResponse)
async def verify_signature(
    request: VerifySignatureRequest,
    context: CryptoContext = Depends(get_crypto_context),
):
    """Check a detached signature made with this service's signing key."""
    return VerifySignatureResponse(valid=context.verify_signature(request.data, request.signature))
