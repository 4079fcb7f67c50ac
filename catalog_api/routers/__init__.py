"""
FastAPI роутеры
"""

from .admin import router as admin_router
from .health import router as health_router
from .partner import router as partner_router
from .reviews import router as reviews_router

__all__ = [
    'admin_router',
    'health_router',
    'partner_router',
    'reviews_router',
]
