"""
Authentication dependencies for FastAPI.
"""
from typing import Optional
from fastapi import Depends, Query
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from app.common.exceptions import AuthenticationError, PermissionDenied
from app.core.config import Settings, get_settings
from app.database.database import get_db
from app.modules.auth.schemas import AuthContext, UserRole
from app.modules.auth.service import AuthService
from app.modules.auth.utils import decode_access_token

# auto_error is off so missing credentials use the common error shape
security = HTTPBearer(auto_error=False)

ALL_ROLES = [role.value for role in UserRole]
STAFF_ROLES = [UserRole.ADMIN.value, UserRole.ACCOUNTANT.value]


def _resolve_context(token: Optional[str], db: Session, settings: Settings) -> AuthContext:
    if not token:
        raise AuthenticationError("Not authenticated")

    payload = decode_access_token(token, settings)
    user = AuthService(db, settings).get_active_user(payload["sub"])
    if user is None:
        raise AuthenticationError()

    return AuthContext(user_id=user.id, email=user.email, role=user.role, token=token)


class AuthDependencies:
    """Reusable authentication dependencies."""

    @staticmethod
    def get_auth_context(
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
        db: Session = Depends(get_db),
        settings: Settings = Depends(get_settings)
    ) -> AuthContext:
        """Resolve the caller from the Authorization: Bearer header."""
        token = credentials.credentials if credentials else None
        return _resolve_context(token, db, settings)

    @staticmethod
    def get_auth_context_from_query_or_header(
        token: Optional[str] = Query(None, description="Access token, for embedded viewers"),
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
        db: Session = Depends(get_db),
        settings: Settings = Depends(get_settings)
    ) -> AuthContext:
        """
        Resolve the caller from ?token= or the Authorization header.

        Only the inline document view uses this: iframes cannot attach
        custom headers.
        """
        if token:
            return _resolve_context(token, db, settings)
        return _resolve_context(credentials.credentials if credentials else None, db, settings)

    @staticmethod
    def require_role(allowed_roles: list[str], query_token: bool = False):
        """
        Dependency requiring one of the given roles.
        """
        source = (
            AuthDependencies.get_auth_context_from_query_or_header
            if query_token
            else AuthDependencies.get_auth_context
        )

        def role_checker(auth_context: AuthContext = Depends(source)) -> AuthContext:
            if auth_context.role.value not in allowed_roles:
                raise PermissionDenied(
                    f"One of these roles is required: {', '.join(allowed_roles)}",
                    required_roles=allowed_roles
                )
            return auth_context
        return role_checker

    @staticmethod
    def require_staff():
        return AuthDependencies.require_role(STAFF_ROLES)

    @staticmethod
    def require_any_role():
        return AuthDependencies.require_role(ALL_ROLES)


get_auth_context = AuthDependencies.get_auth_context
require_role = AuthDependencies.require_role
require_staff = AuthDependencies.require_staff
require_any_role = AuthDependencies.require_any_role
