"""Database data layer package."""
from .connection import engine, SessionLocal, get_db, Base
from .cache_models import ProxyCacheEntry, UserRole, WholesaleApplication

__all__ = [
    "engine",
    "SessionLocal",
    "get_db",
    "Base",
    "ProxyCacheEntry",
    "UserRole",
    "WholesaleApplication",
]
