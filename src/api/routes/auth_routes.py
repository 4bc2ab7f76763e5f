import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from src.api.dependencies import (
    get_current_user,
    get_db,
    get_identity_verifier,
    store_session_user,
)
from src.api.schemas.schemas import (
    AppleSignInRequest,
    AuthResponse,
    LoginRequest,
    ProfileResponse,
    RegisterRequest,
    UserResponse,
)
from src.application.auth_service import DEMO_EMAIL, DEMO_PASSWORD, AuthService
from src.domain.exceptions import (
    AppleEmailUnavailableError,
    EmailAlreadyRegisteredError,
    InvalidCredentialsError,
)
from src.infrastructure.apple.identity_verifier import AppleIdentityVerifier
from src.infrastructure.db.models import User


router = APIRouter(prefix="/api")
logger = logging.getLogger(__name__)


@router.post("/register", response_model=AuthResponse)
def register(
    payload: RegisterRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    service = AuthService(db)

    try:
        user = service.register(
            email=payload.email,
            password=payload.password,
            role=payload.role,
            first_name=payload.first_name,
            last_name=payload.last_name,
            username=payload.username,
            business_name=payload.business_name,
            phone=payload.phone,
        )
    except EmailAlreadyRegisteredError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc

    store_session_user(request, user)
    return AuthResponse(
        user=UserResponse.model_validate(user),
        redirect_to="/owner/dashboard" if user.role == "owner" else "/home",
    )


@router.post("/login", response_model=AuthResponse)
def login(
    payload: LoginRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    try:
        user = AuthService(db).authenticate(payload.email, payload.password)
    except InvalidCredentialsError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc

    store_session_user(request, user)
    return AuthResponse(user=UserResponse.model_validate(user))


@router.get("/user")
def current_user(request: Request):
    session_user = request.session.get("user")
    if not session_user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Non autenticato",
        )
    return {"user": session_user}


@router.post("/auth/apple", response_model=AuthResponse)
def apple_sign_in(
    payload: AppleSignInRequest,
    request: Request,
    db: Session = Depends(get_db),
    identity_verifier: AppleIdentityVerifier = Depends(get_identity_verifier),
):
    if not payload.identity_token:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Token Apple mancante",
        )

    service = AuthService(db, identity_verifier=identity_verifier)
    try:
        user = service.sign_in_with_apple(
            identity_token=payload.identity_token,
            apple_user=payload.user,
            nonce=payload.nonce,
        )
    except AppleEmailUnavailableError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except InvalidCredentialsError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token Apple non valido",
        ) from exc

    store_session_user(request, user)
    return AuthResponse(user=UserResponse.model_validate(user))


@router.post("/create-demo-account")
def create_demo_account(db: Session = Depends(get_db)):
    user, created = AuthService(db).create_demo_account()
    return {
        "success": True,
        "message": "Account demo creato" if created else "Account demo già esistente",
        "credentials": {"email": DEMO_EMAIL, "password": DEMO_PASSWORD},
        "user": {"id": user.id, "email": user.email},
    }


@router.post("/logout")
def logout(request: Request):
    request.session.clear()
    return {"success": True}


@router.get("/profile")
def profile(user: User = Depends(get_current_user)):
    return {"user": ProfileResponse.model_validate(user).model_dump(by_alias=True, mode="json")}
