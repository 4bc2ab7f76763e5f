import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from src.domain.exceptions import BookingValidationError, ResourceNotFoundError
from src.infrastructure.db.models import Boat, Booking
from src.infrastructure.repositories.boat_repository import BoatRepository


logger = logging.getLogger(__name__)


class BoatService:
    """Listings management for boat owners."""

    def __init__(self, db: Session):
        self.db = db
        self.boat_repository = BoatRepository(db)

    def list_public(self) -> list[Boat]:
        return self.boat_repository.list_available()

    def get_public(self, boat_id: int) -> Boat:
        boat = self.boat_repository.get_by_id(boat_id)
        if not boat:
            raise ResourceNotFoundError("Barca non trovata")
        return boat

    def list_for_owner(self, owner_id: int) -> list[Boat]:
        return self.boat_repository.list_by_owner(owner_id)

    def create_boat(self, owner_id: int, fields: dict[str, Any]) -> Boat:
        boat = self.boat_repository.create_boat(owner_id=owner_id, **fields)
        logger.info("Boat %s created by owner %s", boat.id, owner_id)
        return boat

    def update_boat(self, owner_id: int, boat_id: int, fields: dict[str, Any]) -> Boat:
        boat = self.get_owned(owner_id, boat_id)
        return self.boat_repository.update_boat(boat, **fields)

    def delete_boat(self, owner_id: int, boat_id: int) -> None:
        boat = self.get_owned(owner_id, boat_id)

        has_bookings = self.db.execute(
            select(Booking.id).where(Booking.boat_id == boat.id).limit(1)
        ).first()
        if has_bookings:
            raise BookingValidationError(
                "Impossibile eliminare una barca con prenotazioni"
            )

        self.boat_repository.delete_boat(boat)
        logger.info("Boat %s deleted by owner %s", boat_id, owner_id)

    def get_owned(self, owner_id: int, boat_id: int) -> Boat:
        boat = self.boat_repository.get_by_id(boat_id)
        if not boat or boat.owner_id != owner_id:
            raise ResourceNotFoundError("Barca non trovata")
        return boat
