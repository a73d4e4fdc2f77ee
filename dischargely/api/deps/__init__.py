"""API dependencies - re-exports from submodules."""

from .auth import (
    AuthUser,
    CurrentAuthUser,
    CurrentUser,
    DbSession,
    OptionalUser,
    get_current_auth_user,
    get_current_user,
    get_current_user_optional,
    get_jwks,
    get_signing_key,
    security,
)
from .services import AppServices, get_services

__all__ = [
    # Auth
    "security",
    "get_jwks",
    "get_signing_key",
    "get_current_auth_user",
    "get_current_user",
    "get_current_user_optional",
    "AuthUser",
    "CurrentAuthUser",
    "CurrentUser",
    "DbSession",
    "OptionalUser",
    # Services
    "AppServices",
    "get_services",
]
