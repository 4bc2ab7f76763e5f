from decimal import ROUND_HALF_UP, Decimal
import hashlib
import logging
import os
from typing import Any

import stripe
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.domain.exceptions import InvalidWebhookError, PaymentServiceUnavailableError
from src.domain.state_machine import PaymentProvider
from src.infrastructure.db.models import StripeWebhookEvent
from src.infrastructure.repositories.booking_repository import (
    BookingRepository,
    CommitOutcome,
)


logger = logging.getLogger(__name__)


def _to_cents(amount: Decimal) -> int:
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class StripePaymentService:
    """PaymentIntent creation and webhook-driven booking confirmation."""

    def __init__(
        self,
        db: Session,
        secret_key: str | None = None,
        webhook_secret: str | None = None,
    ):
        self.db = db
        self.secret_key = secret_key if secret_key is not None else os.getenv("STRIPE_SECRET_KEY")
        self.webhook_secret = (
            webhook_secret if webhook_secret is not None else os.getenv("STRIPE_WEBHOOK_SECRET")
        )
        self.booking_repository = BookingRepository(db)

    def create_payment_intent(
        self,
        amount: Decimal,
        booking_id: int | None = None,
        currency: str = "eur",
    ) -> str:
        if not self.secret_key:
            raise PaymentServiceUnavailableError("Payment service not configured")

        stripe.api_key = self.secret_key
        intent = stripe.PaymentIntent.create(
            amount=_to_cents(amount),
            currency=currency.lower(),
            metadata={
                "bookingId": str(booking_id) if booking_id else "",
                "platform": "seaboo",
            },
            automatic_payment_methods={"enabled": True},
        )
        logger.info("PaymentIntent %s created for booking %s", intent["id"], booking_id)
        return intent["client_secret"]

    def handle_webhook(self, payload: bytes, signature: str | None) -> dict[str, Any]:
        if not self.secret_key or not self.webhook_secret:
            raise PaymentServiceUnavailableError("Payment service not configured")

        try:
            event = stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except ValueError as exc:
            raise InvalidWebhookError("Invalid payload") from exc
        except stripe.SignatureVerificationError as exc:
            logger.error("Webhook signature verification failed: %s", exc)
            raise InvalidWebhookError(f"Webhook Error: {exc}") from exc

        event_id = event["id"]
        if self._already_seen(event_id):
            logger.info("Duplicate Stripe event %s ignored", event_id)
            return {"received": True}

        intent_id = None
        booking_id = None
        if event["type"] == "payment_intent.succeeded":
            intent = event["data"]["object"]
            intent_id = intent["id"]
            booking_id = self._confirm_from_intent(intent)
        else:
            logger.info("Unhandled event type %s", event["type"])

        self.db.add(
            StripeWebhookEvent(
                event_id=event_id,
                event_type=event["type"],
                payment_intent_id=intent_id,
                booking_id=booking_id,
                payload_hash=hashlib.sha256(payload).hexdigest(),
            )
        )
        try:
            self.db.flush()
        except IntegrityError:
            # A concurrent delivery of the same event recorded it first.
            self.db.rollback()
            logger.info("Duplicate Stripe event %s ignored after concurrent delivery", event_id)
        return {"received": True}

    def _already_seen(self, event_id: str) -> bool:
        stmt = select(StripeWebhookEvent.id).where(StripeWebhookEvent.event_id == event_id)
        return self.db.execute(stmt).first() is not None

    def _confirm_from_intent(self, intent: Any) -> int | None:
        metadata = intent.get("metadata") or {}
        raw_booking_id = metadata.get("bookingId")
        logger.info("Payment succeeded: %s", intent["id"])
        if not raw_booking_id:
            return None

        try:
            booking_id = int(raw_booking_id)
        except ValueError:
            logger.warning("PaymentIntent %s carries invalid bookingId %r", intent["id"], raw_booking_id)
            return None

        booking = self.booking_repository.get_by_id(booking_id)
        if not booking:
            logger.warning("PaymentIntent %s references missing booking %s", intent["id"], booking_id)
            return None

        received = intent.get("amount_received") or intent.get("amount")
        if received is not None and int(received) < _to_cents(Decimal(booking.total_price)):
            logger.warning(
                "PaymentIntent %s amount %s below booking %s total %s",
                intent["id"],
                received,
                booking_id,
                booking.total_price,
            )
            return booking_id

        outcome = self.booking_repository.confirm_booking(
            booking_id=booking_id,
            transaction_id=intent["id"],
            provider=PaymentProvider.STRIPE,
        )
        if outcome is CommitOutcome.COMMITTED:
            logger.info("Booking %s confirmed via Stripe intent %s", booking_id, intent["id"])
        elif outcome is CommitOutcome.CONFLICT:
            logger.warning("Stripe intent %s already used for another booking", intent["id"])
        else:
            logger.warning("Booking %s was not pending when intent %s succeeded", booking_id, intent["id"])
        return booking_id
