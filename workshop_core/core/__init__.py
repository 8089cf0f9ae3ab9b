"""Core application utilities."""

from .config import Settings, get_settings
from .database import (
    async_session_factory,
    build_engine,
    close_db,
    engine,
    get_session,
    get_session_context,
    init_db,
)
from .dependencies import (
    AdminDep,
    CurrentUser,
    CurrentUserDep,
    SessionDep,
    get_current_user,
    require_admin,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Database
    "engine",
    "build_engine",
    "async_session_factory",
    "get_session",
    "get_session_context",
    "init_db",
    "close_db",
    # Dependencies
    "CurrentUser",
    "get_current_user",
    "require_admin",
    "CurrentUserDep",
    "AdminDep",
    "SessionDep",
]
