#!/usr/bin/env python3
"""
AgriTrace PQC Service
Hosts the post-quantum key material and token-signature endpoints.

Configuration: see config/pqc_settings.py
"""

import logging
import os
import sys
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from config.pqc_settings import PQCSettings
from routes.pqc_auth import router as pqc_router, init_pqc_services
from services.pqc.context import CryptoContext


# ============================================================================
# Logging
# ============================================================================

def setup_logging():
    """Configure root logging to stdout."""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)]
    )
    return logging.getLogger(__name__)

logger = setup_logging()


# ============================================================================
# FastAPI application
# ============================================================================

def create_app(settings: Optional[PQCSettings] = None) -> FastAPI:
    """Build the app with one CryptoContext for the process lifetime."""
    settings = settings or PQCSettings.from_env()
    context = CryptoContext(settings)
    init_pqc_services(context)

    app = FastAPI(
        title="AgriTrace PQC API",
        version="1.0.0",
        description="Post-quantum field encryption keys and session token signatures"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.on_event("startup")
    async def startup_event():
        """Load or generate key pairs before serving requests."""
        context.initialize()

    app.include_router(pqc_router)
    app.state.crypto_context = context
    return app


if __name__ == "__main__":
    port = int(os.environ.get("PORT", "8000"))
    logger.info(f"[PQC] Starting AgriTrace PQC service on port {port}")

    uvicorn.run(
        create_app(),
        host="0.0.0.0",
        port=port,
        log_level="info",
        access_log=True
    )
