from fastapi import APIRouter, Depends
from sqlmodel import Session
import logging

from ..database import get_session
from ..dependencies import get_auth_service, get_current_user
from ..application.services.auth_service import AuthService
from ..infrastructure.persistence.sqlalchemy.repositories.user_repository_sql import SqlUserRepository
from ..schemas.auth.auth import LoginRequest, RegisterRequest, UserResponse
from ..schemas.common.common import TokenResponse
from ..exceptions import NotFound

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post("/register", response_model=UserResponse, status_code=201)
def register(body: RegisterRequest, auth: AuthService = Depends(get_auth_service)):
    user = auth.register(body.username, body.email, body.password)
    return UserResponse.from_dto(user)


@router.post("/login", response_model=TokenResponse)
def login(body: LoginRequest, auth: AuthService = Depends(get_auth_service)):
    token = auth.login(body.username, body.password)
    return TokenResponse(access_token=token)


@router.get("/me", response_model=UserResponse)
def me(current_user: str = Depends(get_current_user), session: Session = Depends(get_session)):
    user = SqlUserRepository(session).get_by_id(current_user)
    if not user:
        raise NotFound("User not found")
    return UserResponse.from_dto(user)
