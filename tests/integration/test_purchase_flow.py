import httpx
import pytest
from sqlalchemy.exc import OperationalError

from src.api.dependencies import get_receipt_verifier
from src.domain.state_machine import BookingStatus, PaymentProvider
from src.infrastructure.apple.receipt_verifier import AppleReceiptVerifier
from src.infrastructure.repositories.booking_repository import BookingRepository
from src.main import app
from tests.factories import (
    PRODUCT_ID,
    AppleStub,
    apple_payload,
    load_booking,
    make_boat,
    make_booking,
    make_user,
)


@pytest.fixture
def customer(client):
    make_user("cliente@seaboo.it", user_id=7)
    owner_id = make_user("noleggi@seaboo.it", role="owner", user_id=100)
    boat_id = make_boat(owner_id, boat_id=3)
    make_booking(7, boat_id, booking_id=42)
    response = client.post(
        "/api/login",
        json={"email": "cliente@seaboo.it", "password": "password123"},
    )
    assert response.status_code == 200
    return client


def use_apple(stub):
    app.dependency_overrides[get_receipt_verifier] = stub.verifier
    return stub


def purchase_body(**overrides):
    body = {
        "receiptData": "base64-receipt",
        "productId": PRODUCT_ID,
        "transactionId": "1000",
        "bookingId": 42,
    }
    body.update(overrides)
    return body


# ---------------------
# SUCCESS
# ---------------------

def test_confirms_booking_with_verified_receipt(customer):
    use_apple(AppleStub(production=apple_payload()))

    response = customer.post("/api/verify-purchase", json=purchase_body())

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["environment"] == "Production"
    assert body["transactionId"] == "1000"
    assert body["bookingId"] == 42
    assert body["purchase"]["product_id"] == PRODUCT_ID
    assert body["receipt"]["bundle_id"] == "it.seaboo.app"

    booking = load_booking(42)
    assert booking.status is BookingStatus.CONFIRMED
    assert booking.payment_transaction_id == "1000"
    assert booking.payment_provider is PaymentProvider.APPLE

    listed = customer.get("/api/bookings").json()["bookings"]
    assert listed[0]["status"] == "confirmed"
    assert listed[0]["paymentProvider"] == "apple"


def test_sandbox_receipt_reports_sandbox(customer):
    use_apple(
        AppleStub(
            production={"status": 21007},
            sandbox=apple_payload(environment="Sandbox"),
        )
    )

    response = customer.post("/api/verify-purchase", json=purchase_body())

    assert response.status_code == 200
    assert response.json()["environment"] == "Sandbox"


def test_verify_only_needs_no_session(client):
    stub = use_apple(AppleStub(production=apple_payload()))

    response = client.post(
        "/api/verify-purchase",
        json=purchase_body(bookingId=None),
    )

    assert response.status_code == 200
    assert response.json()["bookingId"] is None
    assert response.json()["transactionId"] == "1000"
    assert len(stub.calls) == 1


# ---------------------
# REJECTIONS
# ---------------------

def test_booking_confirmation_requires_session(client):
    stub = use_apple(AppleStub(production=apple_payload()))

    response = client.post("/api/verify-purchase", json=purchase_body())

    assert response.status_code == 401
    assert stub.calls == []


def test_missing_receipt(customer):
    stub = use_apple(AppleStub(production=apple_payload()))

    response = customer.post("/api/verify-purchase", json=purchase_body(receiptData=None))

    assert response.status_code == 400
    assert response.json() == {
        "success": False,
        "error": "Receipt mancante",
        "kind": "bad_request",
    }
    assert stub.calls == []


def test_missing_transaction_id(customer):
    use_apple(AppleStub(production=apple_payload()))

    response = customer.post("/api/verify-purchase", json=purchase_body(transactionId=None))

    assert response.status_code == 400
    assert response.json()["error"] == "productId e transactionId sono obbligatori"


def test_receipt_rejected_by_apple(customer):
    use_apple(AppleStub(production={"status": 21004}))

    response = customer.post("/api/verify-purchase", json=purchase_body())

    assert response.status_code == 400
    assert response.json() == {
        "success": False,
        "error": "Shared secret non corretto",
        "kind": "provider_status_21004",
    }
    assert load_booking(42).status is BookingStatus.PENDING


def test_unknown_apple_status(customer):
    use_apple(AppleStub(production={"status": 21199}))

    response = customer.post("/api/verify-purchase", json=purchase_body())

    assert response.status_code == 400
    assert response.json()["kind"] == "provider_status_unknown"
    assert response.json()["error"] == "Verifica fallita: codice 21199"


def test_transaction_not_in_receipt(customer):
    use_apple(AppleStub(production=apple_payload(transaction_id="5555")))

    response = customer.post("/api/verify-purchase", json=purchase_body())

    assert response.status_code == 400
    assert response.json()["kind"] == "transaction_mismatch"
    assert load_booking(42).payment_transaction_id is None


def test_replayed_receipt_is_conflict(customer):
    use_apple(AppleStub(production=apple_payload()))
    first = customer.post("/api/verify-purchase", json=purchase_body())
    assert first.status_code == 200

    second = customer.post("/api/verify-purchase", json=purchase_body())

    assert second.status_code == 409
    assert second.json() == {
        "success": False,
        "error": "Questa transazione Apple è già stata utilizzata",
        "kind": "transaction_already_used",
    }


def test_receipt_cannot_confirm_second_booking(customer):
    make_booking(7, 3, booking_id=43)
    use_apple(AppleStub(production=apple_payload()))
    customer.post("/api/verify-purchase", json=purchase_body())

    response = customer.post("/api/verify-purchase", json=purchase_body(bookingId=43))

    assert response.status_code == 409
    assert load_booking(43).status is BookingStatus.PENDING


def test_foreign_booking_is_not_found(customer):
    make_user("altro@seaboo.it", user_id=8)
    make_booking(8, 3, booking_id=50)
    use_apple(AppleStub(production=apple_payload()))

    response = customer.post("/api/verify-purchase", json=purchase_body(bookingId=50))

    assert response.status_code == 404
    assert response.json()["kind"] == "not_found_or_unauthorized"
    assert load_booking(50).status is BookingStatus.PENDING


def test_apple_unreachable_is_service_unavailable(customer):
    def handler(request):
        raise httpx.ConnectError("unreachable", request=request)

    app.dependency_overrides[get_receipt_verifier] = lambda: AppleReceiptVerifier(
        shared_secret="shared-secret",
        client=httpx.Client(transport=httpx.MockTransport(handler)),
    )

    response = customer.post("/api/verify-purchase", json=purchase_body())

    assert response.status_code == 503
    assert response.json()["kind"] == "verification_unavailable"
    assert load_booking(42).status is BookingStatus.PENDING


def test_store_failure_hides_driver_details(customer, monkeypatch):
    use_apple(AppleStub(production=apple_payload()))

    def fail(self, **kwargs):
        raise OperationalError("UPDATE bookings", {}, Exception("disk I/O error"))

    monkeypatch.setattr(BookingRepository, "confirm_booking", fail)

    response = customer.post("/api/verify-purchase", json=purchase_body())

    assert response.status_code == 500
    assert response.json() == {
        "success": False,
        "error": "Errore durante l'aggiornamento booking",
        "kind": "internal_error",
    }
    assert "disk I/O error" not in response.text
    assert "UPDATE bookings" not in response.text
    assert load_booking(42).status is BookingStatus.PENDING
