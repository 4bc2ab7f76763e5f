from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from src.api.dependencies import get_current_user, get_db, require_owner
from src.api.schemas.schemas import BookingCreate, BookingResponse
from src.application.booking_service import BookingService
from src.domain.exceptions import (
    BookingValidationError,
    InvalidStateTransitionError,
    ResourceNotFoundError,
)
from src.infrastructure.db.models import User


router = APIRouter(prefix="/api")


@router.post("/bookings", response_model=BookingResponse)
def create_booking(
    request: BookingCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    service = BookingService(db)

    try:
        booking = service.create_booking(
            customer_id=user.id,
            boat_id=request.boat_id,
            start_date=request.start_date,
            end_date=request.end_date,
            guest_count=request.guest_count,
            special_requests=request.special_requests,
        )
    except ResourceNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except BookingValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc

    return BookingResponse.model_validate(booking)


@router.get("/bookings")
def list_my_bookings(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    bookings = BookingService(db).list_customer_bookings(user.id)
    return {
        "bookings": [
            BookingResponse.model_validate(booking).model_dump(by_alias=True, mode="json")
            for booking in bookings
        ]
    }


@router.post("/bookings/{booking_id}/cancel", response_model=BookingResponse)
def cancel_booking(
    booking_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        booking = BookingService(db).cancel_booking(user.id, booking_id)
    except ResourceNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except InvalidStateTransitionError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        ) from exc

    return BookingResponse.model_validate(booking)


@router.get("/owner/bookings")
def list_owner_bookings(
    owner: User = Depends(require_owner),
    db: Session = Depends(get_db),
):
    bookings = BookingService(db).list_owner_bookings(owner.id)
    return {
        "bookings": [
            BookingResponse.model_validate(booking).model_dump(by_alias=True, mode="json")
            for booking in bookings
        ]
    }
