from datetime import date
from decimal import Decimal
import logging

from sqlalchemy.orm import Session

from src.domain.exceptions import BookingValidationError, ResourceNotFoundError
from src.domain.state_machine import BookingStateMachine, BookingStatus
from src.infrastructure.db.models import Booking
from src.infrastructure.repositories.boat_repository import BoatRepository
from src.infrastructure.repositories.booking_repository import BookingRepository


logger = logging.getLogger(__name__)


class BookingService:
    """Application service coordinating booking workflow."""

    def __init__(self, db: Session):
        self.db = db
        self.booking_repository = BookingRepository(db)
        self.boat_repository = BoatRepository(db)

    def create_booking(
        self,
        customer_id: int,
        boat_id: int,
        start_date: date,
        end_date: date,
        guest_count: int,
        special_requests: str | None = None,
    ) -> Booking:
        boat = self.boat_repository.get_by_id(boat_id)
        if not boat or not boat.is_available:
            raise ResourceNotFoundError("Barca non trovata")

        if end_date <= start_date:
            raise BookingValidationError(
                "La data di fine deve essere successiva alla data di inizio"
            )
        if guest_count > boat.capacity:
            raise BookingValidationError(
                f"Numero di ospiti superiore alla capacità della barca ({boat.capacity})"
            )

        days = (end_date - start_date).days
        total_price = Decimal(boat.price_per_day) * days

        booking = self.booking_repository.create_booking(
            customer_id=customer_id,
            boat_id=boat.id,
            start_date=start_date,
            end_date=end_date,
            total_price=total_price,
            guest_count=guest_count,
            special_requests=special_requests,
        )
        logger.info(
            "Booking %s created. customer_id=%s boat_id=%s days=%s total=%s",
            booking.id,
            customer_id,
            boat.id,
            days,
            total_price,
        )
        return booking

    def list_customer_bookings(self, customer_id: int) -> list[Booking]:
        return self.booking_repository.list_by_customer(customer_id)

    def list_owner_bookings(self, owner_id: int) -> list[Booking]:
        return self.booking_repository.list_by_owner(owner_id)

    def cancel_booking(self, customer_id: int, booking_id: int) -> Booking:
        booking = self.booking_repository.get_by_id(booking_id)

        if not booking or booking.customer_id != customer_id:
            raise ResourceNotFoundError("Booking non trovato o non autorizzato")

        self._transition(booking, BookingStatus.CANCELLED)
        self.db.flush()
        self.db.refresh(booking)
        return booking

    def _transition(self, booking: Booking, to_status: BookingStatus) -> None:
        BookingStateMachine.validate_transition(booking.status, to_status)
        self.booking_repository.update_status(booking, to_status)
