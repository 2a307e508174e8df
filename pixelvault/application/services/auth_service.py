from dataclasses import dataclass
import logging
import re

from ..ports.user_repo import UserRepository, UserDto
from ...exceptions import AuthenticationError, ValidationError
from ...security import create_access_token, hash_password, verify_password

logger = logging.getLogger(__name__)

USERNAME_RE = re.compile(r"^[a-zA-Z0-9_]{3,50}$")
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[A-Za-z]{2,}$")
MIN_PASSWORD_LENGTH = 6


@dataclass
class AuthService:
    user_repo: UserRepository
    default_max_storage: int

    def register(self, username: str, email: str, password: str) -> UserDto:
        username = (username or "").strip()
        email = (email or "").strip().lower()
        if not USERNAME_RE.match(username):
            raise ValidationError("Username must be 3-50 letters, numbers, or underscores")
        if not EMAIL_RE.match(email):
            raise ValidationError("Please enter a valid email")
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        if self.user_repo.get_by_username(username) or self.user_repo.get_by_email(email):
            raise ValidationError("Username or email already exists")
        user = self.user_repo.create(username, email, hash_password(password), self.default_max_storage)
        logger.info(f"Registered user {user.id}")
        return user

    def login(self, username: str, password: str) -> str:
        user = self.user_repo.get_by_username((username or "").strip())
        if not user or not user.is_active:
            raise AuthenticationError("Invalid username or password")
        password_hash = self.user_repo.get_password_hash(user.id)
        if not password_hash or not verify_password(password or "", password_hash):
            raise AuthenticationError("Invalid username or password")
        self.user_repo.touch_last_login(user.id)
        return create_access_token({"sub": user.id})
