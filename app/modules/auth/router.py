from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.common.exceptions import AuthenticationError
from app.core.config import Settings, get_settings
from app.dependencies.dbDependecies import get_db
from app.dependencies.userDependencies import current_user_dependency
from app.modules.auth.service import AuthService
from app.modules.auth.schemas import UserCreate, UserLogin, UserOut, TokenResponse

auth_router = APIRouter()


@auth_router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def register(
    user_data: UserCreate,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings)
):
    """
    Register a new user and return an access token.
    """
    return AuthService(db, settings).register(user_data)


@auth_router.post("/login", response_model=TokenResponse)
def login(
    credentials: UserLogin,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings)
):
    """
    Log in with email and password.
    """
    return AuthService(db, settings).login(credentials.email, credentials.password)


@auth_router.get("/me", response_model=UserOut)
def get_current_user_info(
    current_user: current_user_dependency,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings)
):
    """
    Information about the authenticated user.
    """
    user = AuthService(db, settings).get_active_user(current_user.user_id)
    if user is None:
        raise AuthenticationError()
    return user
