from datetime import date
from decimal import Decimal

import httpx
from sqlalchemy import select

from src.application.auth_service import hash_password
from src.domain.state_machine import BookingStatus
from src.infrastructure.apple.receipt_verifier import (
    PRODUCTION_VERIFY_URL,
    SANDBOX_VERIFY_URL,
    AppleReceiptVerifier,
)
from src.infrastructure.db.models import Boat, Booking, User
from src.infrastructure.db.session import get_db_session


PRODUCT_ID = "it.seaboo.rental.basic"


def make_user(email, role="user", user_id=None, password="password123"):
    with get_db_session() as db:
        user = User(
            id=user_id,
            email=email,
            password_hash=hash_password(password),
            role=role,
            business_name="Noleggi Test" if role == "owner" else None,
        )
        db.add(user)
        db.flush()
        return user.id


def make_boat(owner_id, price_per_day="150.00", capacity=6, boat_id=None):
    with get_db_session() as db:
        boat = Boat(
            id=boat_id,
            owner_id=owner_id,
            name="Azzurra",
            type="gommone",
            description="",
            capacity=capacity,
            price_per_day=Decimal(price_per_day),
            location="Sorrento",
            images=[],
            amenities=[],
            is_available=True,
        )
        db.add(boat)
        db.flush()
        return boat.id


def make_booking(
    customer_id,
    boat_id,
    booking_id=None,
    status=BookingStatus.PENDING,
    payment_transaction_id=None,
):
    with get_db_session() as db:
        booking = Booking(
            id=booking_id,
            customer_id=customer_id,
            boat_id=boat_id,
            start_date=date(2026, 7, 1),
            end_date=date(2026, 7, 3),
            total_price=Decimal("300.00"),
            guest_count=2,
            status=status,
            payment_transaction_id=payment_transaction_id,
        )
        db.add(booking)
        db.flush()
        return booking.id


def load_booking(booking_id):
    with get_db_session() as db:
        booking = db.execute(select(Booking).where(Booking.id == booking_id)).scalar_one()
        db.expunge(booking)
        return booking


def apple_payload(status=0, transaction_id="1000", original_transaction_id="1000",
                  product_id=PRODUCT_ID, environment="Production"):
    in_app = [
        {
            "transaction_id": transaction_id,
            "original_transaction_id": original_transaction_id,
            "product_id": product_id,
            "quantity": "1",
        }
    ]
    return {
        "status": status,
        "environment": environment,
        "receipt": {
            "bundle_id": "it.seaboo.app",
            "application_version": "12",
            "original_purchase_date": "2026-06-01 10:00:00 Etc/GMT",
            "in_app": in_app,
        },
    }


class AppleStub:
    """Routes production and sandbox calls to canned responses and records them."""

    def __init__(self, production, sandbox=None):
        self.production = production
        self.sandbox = sandbox
        self.calls = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.calls.append(url)
        if url == PRODUCTION_VERIFY_URL:
            return httpx.Response(200, json=self.production)
        if url == SANDBOX_VERIFY_URL and self.sandbox is not None:
            return httpx.Response(200, json=self.sandbox)
        return httpx.Response(404)

    def verifier(self) -> AppleReceiptVerifier:
        client = httpx.Client(transport=httpx.MockTransport(self.handler))
        return AppleReceiptVerifier(shared_secret="shared-secret", client=client)


def register(client, email, role="user", password="password123"):
    payload = {
        "email": email,
        "password": password,
        "role": role,
        "firstName": "Mario",
        "lastName": "Rossi",
    }
    if role == "owner":
        payload["businessName"] = "Noleggi Costiera"
    response = client.post("/api/register", json=payload)
    assert response.status_code == 200, response.text
    return response.json()["user"]["id"]


def create_boat_via_api(client, **overrides):
    form = {
        "name": "Azzurra",
        "type": "gommone",
        "capacity": "6",
        "pricePerDay": "150",
        "location": "Sorrento",
    }
    form.update(overrides)
    response = client.post("/api/boats", data=form)
    assert response.status_code == 200, response.text
    return response.json()["boat"]["id"]
