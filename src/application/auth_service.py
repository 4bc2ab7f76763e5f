import logging
import secrets

from passlib.context import CryptContext
from sqlalchemy.orm import Session

from src.domain.exceptions import (
    AppleEmailUnavailableError,
    EmailAlreadyRegisteredError,
    InvalidCredentialsError,
)
from src.infrastructure.apple.identity_verifier import AppleIdentityVerifier
from src.infrastructure.db.models import User
from src.infrastructure.repositories.user_repository import UserRepository


logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")

DEMO_EMAIL = "demo@seaboo.it"
DEMO_PASSWORD = "SeaBooDemo2025!"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


class AuthService:
    """Account registration and sign-in (password and Sign in with Apple)."""

    def __init__(self, db: Session, identity_verifier: AppleIdentityVerifier | None = None):
        self.db = db
        self.user_repository = UserRepository(db)
        self.identity_verifier = identity_verifier

    def register(
        self,
        email: str,
        password: str,
        role: str = "user",
        first_name: str | None = None,
        last_name: str | None = None,
        username: str | None = None,
        business_name: str | None = None,
        phone: str | None = None,
    ) -> User:
        if self.user_repository.get_by_email(email):
            raise EmailAlreadyRegisteredError("Email già registrata")

        user = self.user_repository.create_user(
            email=email,
            password_hash=hash_password(password),
            role=role,
            first_name=first_name,
            last_name=last_name,
            username=username,
            business_name=business_name if role == "owner" else None,
            phone=phone,
        )
        logger.info("Registered user %s with role %s", user.id, user.role)
        return user

    def authenticate(self, email: str, password: str) -> User:
        user = self.user_repository.get_by_email(email)
        if not user or not verify_password(password, user.password_hash):
            raise InvalidCredentialsError("Email o password non validi")
        return user

    def get_user(self, user_id: int) -> User | None:
        return self.user_repository.get_by_id(user_id)

    def sign_in_with_apple(
        self,
        identity_token: str,
        apple_user: dict | None = None,
        nonce: str | None = None,
    ) -> User:
        if self.identity_verifier is None:
            raise InvalidCredentialsError("Token Apple non valido")

        claims = self.identity_verifier.verify(identity_token, nonce=nonce)
        apple_user = apple_user or {}
        apple_sub = claims["sub"]

        user = self.user_repository.get_by_apple_sub(apple_sub)
        if user:
            return user

        email = claims.get("email") or apple_user.get("email")
        if not email:
            raise AppleEmailUnavailableError("Email Apple non disponibile")

        user = self.user_repository.get_by_email(email)
        if user:
            if user.apple_sub is None:
                user.apple_sub = apple_sub
            return user

        name = apple_user.get("name") or {}
        user = self.user_repository.create_user(
            email=email,
            password_hash=hash_password(secrets.token_urlsafe(24)),
            role="user",
            first_name=name.get("firstName") or apple_user.get("givenName"),
            last_name=name.get("lastName") or apple_user.get("familyName"),
            username=f"apple_{apple_sub[:10]}",
            apple_sub=apple_sub,
        )
        logger.info("Created user %s from Sign in with Apple", user.id)
        return user

    def create_demo_account(self) -> tuple[User, bool]:
        existing = self.user_repository.get_by_email(DEMO_EMAIL)
        if existing:
            return existing, False

        user = self.user_repository.create_user(
            email=DEMO_EMAIL,
            password_hash=hash_password(DEMO_PASSWORD),
            role="user",
            first_name="Demo",
            last_name="User",
        )
        return user, True
