"""
PQC Route Tests

Bearer token + X-PQC-Signature handling through the FastAPI seam.

Usage:
    python -m pytest tests/test_pqc_routes.py -v
"""

import sys
from pathlib import Path

from fastapi.testclient import TestClient

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from config.pqc_settings import PQCSettings
from main import create_app
from routes.pqc_auth import issue_session_token


CLAIMS = {"sub": "U-0001", "role": "farmer", "wallet_address": "0x5290"}


def build_client(tmp_path, **overrides):
    settings = PQCSettings(
        key_storage_dir=str(tmp_path / "keys"),
        signatures_enabled=True,
        jwt_secret="test-secret",
    )
    for key, value in overrides.items():
        setattr(settings, key, value)
    app = create_app(settings)
    return app, TestClient(app)


def auth_headers(session, signature=None):
    headers = {"Authorization": f"Bearer {session.token}"}
    if signature is not None:
        headers["X-PQC-Signature"] = signature
    return headers


# =============================================================================
# Signatures enabled
# =============================================================================

def test_signed_session_is_accepted(tmp_path):
    app, client = build_client(tmp_path)
    with client:
        session = issue_session_token(app.state.crypto_context, CLAIMS)
        assert session.pqc_signature

        response = client.get("/api/pqc/session", headers=auth_headers(session, session.pqc_signature))

    assert response.status_code == 200
    assert response.json()["claims"]["sub"] == "U-0001"


def test_signature_for_other_token_is_rejected(tmp_path):
    app, client = build_client(tmp_path)
    with client:
        context = app.state.crypto_context
        session = issue_session_token(context, CLAIMS)
        other = issue_session_token(context, {"sub": "U-0002"})

        response = client.get("/api/pqc/session", headers=auth_headers(session, other.pqc_signature))

    assert response.status_code == 401
    assert response.json()["detail"] == "PQC signature verification failed"


def test_garbage_signature_is_rejected(tmp_path):
    app, client = build_client(tmp_path)
    with client:
        session = issue_session_token(app.state.crypto_context, CLAIMS)
        response = client.get("/api/pqc/session", headers=auth_headers(session, "not-hex"))

    assert response.status_code == 401


def test_missing_signature_allowed_unless_required(tmp_path):
    app, client = build_client(tmp_path)
    with client:
        session = issue_session_token(app.state.crypto_context, CLAIMS)
        assert client.get("/api/pqc/session", headers=auth_headers(session)).status_code == 200

    app, client = build_client(tmp_path, require_signature=True)
    with client:
        session = issue_session_token(app.state.crypto_context, CLAIMS)
        response = client.get("/api/pqc/session", headers=auth_headers(session))

    assert response.status_code == 401
    assert response.json()["detail"] == "PQC signature required"


# =============================================================================
# Bearer token
# =============================================================================

def test_missing_token_is_rejected(tmp_path):
    _, client = build_client(tmp_path)
    with client:
        response = client.get("/api/pqc/session")

    assert response.status_code == 401
    assert response.json()["detail"] == "No token, authorization denied"


def test_invalid_token_is_rejected(tmp_path):
    _, client = build_client(tmp_path)
    with client:
        response = client.get("/api/pqc/session", headers={"Authorization": "Bearer not.a.jwt"})

    assert response.status_code == 401
    assert response.json()["detail"] == "Token is not valid"


# =============================================================================
# Signatures disabled
# =============================================================================

def test_disabled_signatures_are_neither_issued_nor_checked(tmp_path):
    app, client = build_client(tmp_path, signatures_enabled=False)
    with client:
        session = issue_session_token(app.state.crypto_context, CLAIMS)
        assert session.pqc_signature is None

        response = client.get("/api/pqc/session", headers=auth_headers(session, "not-hex"))

    assert response.status_code == 200


# =============================================================================
# Keys & verify endpoints
# =============================================================================

def test_public_keys_endpoint(tmp_path):
    _, client = build_client(tmp_path)
    with client:
        data = client.get("/api/pqc/keys").json()

    assert len(data["kem_public_key"]) == 1184 * 2
    assert len(data["signature_public_key"]) == 1952 * 2
    assert len(data["kem_fingerprint"].split(':')) == 8
    assert data["signatures_enabled"] is True
    assert "private" not in str(data)


def test_verify_endpoint(tmp_path):
    app, client = build_client(tmp_path)
    with client:
        signature = app.state.crypto_context.sign_token("token-abc123")

        valid = client.post("/api/pqc/verify", json={"data": "token-abc123", "signature": signature})
        invalid = client.post("/api/pqc/verify", json={"data": "token-abc124", "signature": signature})
        malformed = client.post("/api/pqc/verify", json={"data": "token-abc123"})

    assert valid.json() == {"valid": True}
    assert invalid.json() == {"valid": False}
    assert malformed.status_code == 422


def test_keys_persist_across_app_restarts(tmp_path):
    _, client = build_client(tmp_path)
    with client:
        first = client.get("/api/pqc/keys").json()

    _, client = build_client(tmp_path)
    with client:
        second = client.get("/api/pqc/keys").json()

    assert first == second
