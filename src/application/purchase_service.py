from dataclasses import dataclass, field
import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.domain.exceptions import PurchaseConfirmationError, PurchaseErrorKind
from src.domain.state_machine import BookingStateMachine, BookingStatus, PaymentProvider
from src.infrastructure.apple.receipt_verifier import AppleReceiptVerifier
from src.infrastructure.repositories.booking_repository import (
    BookingRepository,
    CommitOutcome,
)


logger = logging.getLogger(__name__)

TRANSACTION_ALREADY_USED_MESSAGE = "Questa transazione Apple è già stata utilizzata"


@dataclass(frozen=True)
class PurchaseRequest:
    receipt_data: str | None
    product_id: str | None
    transaction_id: str | None
    booking_id: int | None = None
    customer_id: int | None = None


@dataclass(frozen=True)
class PurchaseConfirmation:
    environment: str
    transaction_id: str
    receipt: dict[str, Any] = field(default_factory=dict)
    purchase: dict[str, Any] = field(default_factory=dict)
    booking_id: int | None = None


class PurchaseConfirmationService:
    """
    Verifies an App Store receipt and, when a booking is named,
    confirms that booking at most once per durable transaction id.
    """

    def __init__(self, db: Session, verifier: AppleReceiptVerifier):
        self.db = db
        self.verifier = verifier
        self.booking_repository = BookingRepository(db)

    def confirm_purchase(self, request: PurchaseRequest) -> PurchaseConfirmation:
        self._validate(request)

        verification = self.verifier.verify(request.receipt_data)

        purchase = verification.find_purchase(
            transaction_id=request.transaction_id,
            product_id=request.product_id,
        )
        if purchase is None:
            logger.warning(
                "Receipt does not contain transaction. transaction_id=%s product_id=%s",
                request.transaction_id,
                request.product_id,
            )
            raise PurchaseConfirmationError(
                kind=PurchaseErrorKind.TRANSACTION_MISMATCH,
                message="Transaction non corrispondente nel receipt",
            )

        if request.booking_id is None:
            return PurchaseConfirmation(
                environment=verification.environment,
                transaction_id=request.transaction_id,
                receipt=verification.receipt_summary(),
                purchase=purchase.raw,
            )

        # Renewals and restores share the original id; key idempotency on it.
        durable_id = purchase.original_transaction_id or purchase.transaction_id

        try:
            self._confirm_booking(request, durable_id)
        except SQLAlchemyError as exc:
            logger.exception(
                "Failed to update booking %s for transaction %s",
                request.booking_id,
                durable_id,
            )
            raise PurchaseConfirmationError(
                kind=PurchaseErrorKind.INTERNAL_ERROR,
                message="Errore durante l'aggiornamento booking",
            ) from exc

        logger.info(
            "Booking %s confirmed via IAP. customer_id=%s transaction_id=%s "
            "original_transaction_id=%s product_id=%s environment=%s",
            request.booking_id,
            request.customer_id,
            request.transaction_id,
            durable_id,
            request.product_id,
            verification.environment,
        )

        return PurchaseConfirmation(
            environment=verification.environment,
            transaction_id=durable_id,
            receipt=verification.receipt_summary(),
            purchase=purchase.raw,
            booking_id=request.booking_id,
        )

    def _validate(self, request: PurchaseRequest) -> None:
        if not request.receipt_data:
            raise PurchaseConfirmationError(
                kind=PurchaseErrorKind.BAD_REQUEST,
                message="Receipt mancante",
            )
        if not request.product_id or not request.transaction_id:
            raise PurchaseConfirmationError(
                kind=PurchaseErrorKind.BAD_REQUEST,
                message="productId e transactionId sono obbligatori",
            )

    def _confirm_booking(self, request: PurchaseRequest, durable_id: str) -> None:
        existing = self.booking_repository.find_by_transaction_id(durable_id)
        if existing is not None:
            logger.warning(
                "Receipt replay blocked: transaction %s already used for booking %s",
                durable_id,
                existing.id,
            )
            raise PurchaseConfirmationError(
                kind=PurchaseErrorKind.TRANSACTION_ALREADY_USED,
                message=TRANSACTION_ALREADY_USED_MESSAGE,
            )

        booking = None
        if request.customer_id is not None:
            customer_bookings = self.booking_repository.list_by_customer(request.customer_id)
            booking = next(
                (item for item in customer_bookings if item.id == request.booking_id),
                None,
            )
        if booking is None:
            raise PurchaseConfirmationError(
                kind=PurchaseErrorKind.NOT_FOUND_OR_UNAUTHORIZED,
                message="Booking non trovato o non autorizzato",
            )

        if booking.status == BookingStatus.CONFIRMED:
            raise PurchaseConfirmationError(
                kind=PurchaseErrorKind.ALREADY_CONFIRMED,
                message="Booking già confermato",
            )
        if not BookingStateMachine.can_transition(booking.status, BookingStatus.CONFIRMED):
            raise PurchaseConfirmationError(
                kind=PurchaseErrorKind.BOOKING_NOT_PENDING,
                message="Booking non in attesa di pagamento",
            )

        outcome = self.booking_repository.confirm_booking(
            booking_id=booking.id,
            transaction_id=durable_id,
            provider=PaymentProvider.APPLE,
        )

        if outcome is CommitOutcome.CONFLICT:
            logger.warning(
                "Race condition blocked: transaction %s hit the uniqueness constraint",
                durable_id,
            )
            raise PurchaseConfirmationError(
                kind=PurchaseErrorKind.TRANSACTION_ALREADY_USED,
                message=TRANSACTION_ALREADY_USED_MESSAGE,
            )
        if outcome is CommitOutcome.NOT_FOUND:
            # Another request moved the booking out of pending first.
            holder = self.booking_repository.find_by_transaction_id(durable_id)
            if holder is not None:
                logger.warning(
                    "Race condition blocked: transaction %s already used for booking %s",
                    durable_id,
                    holder.id,
                )
                raise PurchaseConfirmationError(
                    kind=PurchaseErrorKind.TRANSACTION_ALREADY_USED,
                    message=TRANSACTION_ALREADY_USED_MESSAGE,
                )
            raise PurchaseConfirmationError(
                kind=PurchaseErrorKind.ALREADY_CONFIRMED,
                message="Booking già confermato",
            )
