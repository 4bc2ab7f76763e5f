import os

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from src.application.stripe_service import StripePaymentService
from src.infrastructure.apple.identity_verifier import AppleIdentityVerifier
from src.infrastructure.apple.receipt_verifier import AppleReceiptVerifier
from src.infrastructure.db.models import User
from src.infrastructure.db.session import SessionLocal
from src.infrastructure.repositories.user_repository import UserRepository
from src.infrastructure.storage.image_storage import ImageStorage


def get_db():
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_receipt_verifier() -> AppleReceiptVerifier:
    return AppleReceiptVerifier(
        shared_secret=os.getenv("APP_STORE_SHARED_SECRET", ""),
    )


def get_identity_verifier() -> AppleIdentityVerifier:
    return AppleIdentityVerifier()


def get_image_storage() -> ImageStorage:
    return ImageStorage()


def get_stripe_service(db: Session = Depends(get_db)) -> StripePaymentService:
    return StripePaymentService(db)


def get_optional_user(
    request: Request,
    db: Session = Depends(get_db),
) -> User | None:
    session_user = request.session.get("user")
    if not session_user:
        return None

    user = UserRepository(db).get_by_id(int(session_user["id"]))
    if not user:
        request.session.pop("user", None)
    return user


def get_current_user(user: User | None = Depends(get_optional_user)) -> User:
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Non autenticato",
        )
    return user


def require_owner(user: User = Depends(get_current_user)) -> User:
    if user.role != "owner":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Accesso negato: solo per noleggiatori",
        )
    return user


def store_session_user(request: Request, user: User) -> None:
    request.session["user"] = {
        "id": str(user.id),
        "email": user.email,
        "firstName": user.first_name,
        "lastName": user.last_name,
        "role": user.role,
        "userType": user.user_type,
        "businessName": user.business_name,
    }
