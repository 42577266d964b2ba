# Routes package __init__.py - re-exports routers for main.py convenience
from .health import router as health_router
from .lessons import router as lessons_router
from .srs import router as srs_router

__all__ = ['health_router', 'lessons_router', 'srs_router']
