"""
AgriTrace Routes Package
"""

from .pqc_auth import router as pqc_router, init_pqc_services, require_session

__all__ = ['pqc_router', 'init_pqc_services', 'require_session']
