"""API Routes - Domain-based routing"""

from .connection import router as connection_router
from .probe import router as probe_router
from .settings import router as settings_router

__all__ = [
    'connection_router',
    'probe_router',
    'settings_router',
]
