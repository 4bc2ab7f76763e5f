# src/infrastructure/repositories/boat_repository.py

from typing import Any

from sqlalchemy.orm import Session
from sqlalchemy import select

from src.infrastructure.db.models import Boat


class BoatRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, boat_id: int) -> Boat | None:
        stmt = select(Boat).where(Boat.id == boat_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def list_available(self) -> list[Boat]:
        stmt = (
            select(Boat)
            .where(Boat.is_available.is_(True))
            .order_by(Boat.created_at.desc(), Boat.id.desc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def list_by_owner(self, owner_id: int) -> list[Boat]:
        stmt = (
            select(Boat)
            .where(Boat.owner_id == owner_id)
            .order_by(Boat.id)
        )
        return list(self.db.execute(stmt).scalars().all())

    def create_boat(self, owner_id: int, **fields: Any) -> Boat:
        boat = Boat(owner_id=owner_id, **fields)
        self.db.add(boat)
        self.db.flush()
        return boat

    def update_boat(self, boat: Boat, **fields: Any) -> Boat:
        for name, value in fields.items():
            setattr(boat, name, value)
        self.db.flush()
        return boat

    def delete_boat(self, boat: Boat) -> None:
        self.db.delete(boat)
        self.db.flush()
