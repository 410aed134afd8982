from .connection import (
    async_session_maker,
    close_db,
    engine,
    init_db,
)
from .models.base import Base

__all__ = [
    "Base",
    "engine",
    "async_session_maker",
    "init_db",
    "close_db",
]
