# src/infrastructure/repositories/user_repository.py

from sqlalchemy.orm import Session
from sqlalchemy import func, select

from src.infrastructure.db.models import User


class UserRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, user_id: int) -> User | None:
        stmt = select(User).where(User.id == user_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_by_email(self, email: str) -> User | None:
        stmt = select(User).where(func.lower(User.email) == email.lower())
        return self.db.execute(stmt).scalar_one_or_none()

    def get_by_apple_sub(self, apple_sub: str) -> User | None:
        stmt = select(User).where(User.apple_sub == apple_sub)
        return self.db.execute(stmt).scalar_one_or_none()

    def create_user(
        self,
        email: str,
        password_hash: str,
        role: str = "user",
        first_name: str | None = None,
        last_name: str | None = None,
        username: str | None = None,
        business_name: str | None = None,
        phone: str | None = None,
        apple_sub: str | None = None,
    ) -> User:
        user = User(
            email=email.lower(),
            password_hash=password_hash,
            role=role,
            first_name=first_name,
            last_name=last_name,
            username=username,
            business_name=business_name,
            phone=phone,
            apple_sub=apple_sub,
        )
        self.db.add(user)
        self.db.flush()
        return user
