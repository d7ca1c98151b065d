"""Okta session establishment, role resolution and AWS role assumption."""

from .role_manager import RoleManager
from .role_resolver import RoleResolver
from .session import EstablishedSession, SessionEstablisher

__all__ = ["EstablishedSession", "RoleManager", "RoleResolver", "SessionEstablisher"]
