"""
ORM models. Importing this package registers every table on Base.metadata.
"""

from authcore.models.user import User, Role
from authcore.models.auth_session import AuthSession
from authcore.models.oauth_credential import OAuthCredential

__all__ = ["User", "Role", "AuthSession", "OAuthCredential"]
