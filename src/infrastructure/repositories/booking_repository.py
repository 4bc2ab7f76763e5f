# src/infrastructure/repositories/booking_repository.py

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum

from sqlalchemy.orm import Session
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from src.infrastructure.db.models import Boat, Booking
from src.domain.state_machine import BookingStatus, PaymentProvider


class CommitOutcome(str, Enum):
    COMMITTED = "committed"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"


class BookingRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(
        self,
        booking_id: int,
    ) -> Booking | None:

        stmt = select(Booking).where(Booking.id == booking_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def find_by_transaction_id(
        self,
        transaction_id: str,
    ) -> Booking | None:

        stmt = (
            select(Booking)
            .where(Booking.payment_transaction_id == transaction_id)
            .limit(1)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def list_by_customer(self, customer_id: int) -> list[Booking]:
        stmt = (
            select(Booking)
            .where(Booking.customer_id == customer_id)
            .order_by(Booking.created_at.desc(), Booking.id.desc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def list_by_owner(self, owner_id: int) -> list[Booking]:
        stmt = (
            select(Booking)
            .join(Boat, Boat.id == Booking.boat_id)
            .where(Boat.owner_id == owner_id)
            .order_by(Booking.start_date, Booking.id)
        )
        return list(self.db.execute(stmt).scalars().all())

    def create_booking(
        self,
        customer_id: int,
        boat_id: int,
        start_date: date,
        end_date: date,
        total_price: Decimal,
        guest_count: int,
        special_requests: str | None = None,
    ) -> Booking:

        booking = Booking(
            customer_id=customer_id,
            boat_id=boat_id,
            start_date=start_date,
            end_date=end_date,
            total_price=total_price,
            guest_count=guest_count,
            special_requests=special_requests,
            status=BookingStatus.PENDING,
        )

        self.db.add(booking)
        self.db.flush()
        return booking

    def update_status(
        self,
        booking: Booking,
        new_status: BookingStatus,
    ) -> None:

        booking.status = new_status

    def confirm_booking(
        self,
        booking_id: int,
        transaction_id: str,
        provider: PaymentProvider,
    ) -> CommitOutcome:
        """
        UPDATE ... WHERE id = :id AND status = 'pending'

        The unique constraint on payment_transaction_id is the
        serialization point between concurrent confirmations.
        A violation comes back as CONFLICT with the transaction
        rolled back.
        """

        stmt = (
            update(Booking)
            .where(Booking.id == booking_id)
            .where(Booking.status == BookingStatus.PENDING)
            .values(
                status=BookingStatus.CONFIRMED,
                payment_transaction_id=transaction_id,
                payment_provider=provider,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )

        try:
            result = self.db.execute(stmt)
            self.db.flush()
        except IntegrityError:
            self.db.rollback()
            return CommitOutcome.CONFLICT

        if result.rowcount == 0:
            return CommitOutcome.NOT_FOUND

        self.db.expire_all()
        return CommitOutcome.COMMITTED
