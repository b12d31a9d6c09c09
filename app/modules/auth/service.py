from typing import Optional
from uuid import UUID
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
import logging

from app.common.exceptions import (
    AuthenticationError, ConflictError, DependencyUnavailable, PermissionDenied
)
from app.core.config import Settings
from app.modules.auth.models import User
from app.modules.auth.schemas import UserCreate, UserOut, UserRole, TokenResponse
from app.modules.auth.utils import hash_password, verify_password, create_access_token

logger = logging.getLogger(__name__)

PRIVILEGED_ROLES = (UserRole.ADMIN, UserRole.ACCOUNTANT)


class AuthService:
    """
    Registration, login and token issuance.
    """

    def __init__(self, db: Session, settings: Settings):
        self.db = db
        self.settings = settings

    def _issue_token(self, user: User) -> TokenResponse:
        token_data = {
            "sub": str(user.id),
            "email": user.email,
            "role": user.role
        }
        return TokenResponse(
            access_token=create_access_token(token_data, self.settings),
            token_type="bearer",
            expires_in=self.settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
            user=UserOut.model_validate(user)
        )

    def _may_register_privileged(self) -> bool:
        """The first user bootstraps the system and may pick any role."""
        if self.settings.ALLOW_PRIVILEGED_REGISTRATION:
            return True
        return self.db.query(User.id).first() is None

    def register(self, user_data: UserCreate) -> TokenResponse:
        """Create a user and return an access token for it."""
        email = user_data.email.lower()
        if self.db.query(User).filter(User.email == email).first():
            raise ConflictError("User already exists", resource="user")

        if user_data.role in PRIVILEGED_ROLES and not self._may_register_privileged():
            logger.warning(f"Refused public registration of {email} as {user_data.role.value}")
            raise PermissionDenied(
                "Only client accounts can be registered publicly",
                required_roles=[UserRole.CLIENT.value]
            )

        user = User(
            name=user_data.name,
            email=email,
            password=hash_password(user_data.password),
            role=user_data.role.value
        )
        try:
            self.db.add(user)
            self.db.commit()
            self.db.refresh(user)
        except IntegrityError:
            self.db.rollback()
            raise ConflictError("User already exists", resource="user")
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error registering user {email}: {e}")
            raise DependencyUnavailable("Could not store the user")

        logger.info(f"User registered: {user.email} ({user.role})")
        return self._issue_token(user)

    def login(self, email: str, password: str) -> TokenResponse:
        user = self.db.query(User).filter(User.email == email.lower()).first()

        if not user or not verify_password(password, user.password):
            logger.info(f"Failed login for {email}")
            raise AuthenticationError("Invalid email or password")

        if not user.is_active:
            raise PermissionDenied("Account is inactive")

        return self._issue_token(user)

    def get_active_user(self, user_id: str) -> Optional[User]:
        try:
            uid = UUID(str(user_id))
        except ValueError:
            return None
        user = self.db.query(User).filter(User.id == uid).first()
        if user is None or user.is_active is not True:
            return None
        return user
