import json

import httpx
import pytest

from src.domain.exceptions import PurchaseConfirmationError, PurchaseErrorKind
from src.infrastructure.apple.receipt_verifier import (
    PRODUCTION_VERIFY_URL,
    SANDBOX_VERIFY_URL,
    AppleReceiptVerifier,
)
from tests.factories import PRODUCT_ID, AppleStub, apple_payload


def test_valid_production_receipt():
    stub = AppleStub(production=apple_payload())

    result = stub.verifier().verify("base64-receipt")

    assert result.environment == "Production"
    assert stub.calls == [PRODUCTION_VERIFY_URL]
    purchase = result.find_purchase("1000", PRODUCT_ID)
    assert purchase is not None
    assert purchase.original_transaction_id == "1000"


def test_request_carries_receipt_and_shared_secret():
    bodies = []

    def handler(request):
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json=apple_payload())

    verifier = AppleReceiptVerifier(
        shared_secret="shared-secret",
        client=httpx.Client(transport=httpx.MockTransport(handler)),
    )
    verifier.verify("base64-receipt")

    assert bodies == [{"receipt-data": "base64-receipt", "password": "shared-secret"}]


# ---------------------
# SANDBOX FALLBACK
# ---------------------

def test_sandbox_receipt_is_retried_in_sandbox_once():
    stub = AppleStub(
        production={"status": 21007},
        sandbox=apple_payload(environment="Sandbox"),
    )

    result = stub.verifier().verify("base64-receipt")

    assert result.environment == "Sandbox"
    assert stub.calls == [PRODUCTION_VERIFY_URL, SANDBOX_VERIFY_URL]


def test_sandbox_environment_defaults_when_apple_omits_it():
    sandbox = apple_payload()
    del sandbox["environment"]
    stub = AppleStub(production={"status": 21007}, sandbox=sandbox)

    assert stub.verifier().verify("base64-receipt").environment == "Sandbox"


def test_sandbox_rejection_is_terminal():
    stub = AppleStub(production={"status": 21007}, sandbox={"status": 21003})

    with pytest.raises(PurchaseConfirmationError) as exc_info:
        stub.verifier().verify("base64-receipt")

    assert exc_info.value.code == "provider_status_21003"
    assert exc_info.value.message == "Receipt non autenticato"
    assert len(stub.calls) == 2


# ---------------------
# TERMINAL STATUSES
# ---------------------

@pytest.mark.parametrize("status", [21000, 21002, 21004, 21005, 21006, 21008, 21010])
def test_rejected_statuses_are_not_retried(status):
    stub = AppleStub(production={"status": status}, sandbox=apple_payload())

    with pytest.raises(PurchaseConfirmationError) as exc_info:
        stub.verifier().verify("base64-receipt")

    assert exc_info.value.kind is PurchaseErrorKind.PROVIDER_STATUS
    assert exc_info.value.code == f"provider_status_{status}"
    assert stub.calls == [PRODUCTION_VERIFY_URL]


def test_unknown_status_is_reported_with_code():
    stub = AppleStub(production={"status": 21099})

    with pytest.raises(PurchaseConfirmationError) as exc_info:
        stub.verifier().verify("base64-receipt")

    assert exc_info.value.code == "provider_status_unknown"
    assert exc_info.value.message == "Verifica fallita: codice 21099"


def test_unknown_status_is_not_retried_in_sandbox():
    stub = AppleStub(production={"status": 21099}, sandbox=apple_payload(environment="Sandbox"))

    with pytest.raises(PurchaseConfirmationError):
        stub.verifier().verify("base64-receipt")

    assert stub.calls == [PRODUCTION_VERIFY_URL]


# ---------------------
# TRANSPORT FAILURES
# ---------------------

def test_timeout_is_verification_unavailable():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    verifier = AppleReceiptVerifier(
        shared_secret="shared-secret",
        client=httpx.Client(transport=httpx.MockTransport(handler)),
    )

    with pytest.raises(PurchaseConfirmationError) as exc_info:
        verifier.verify("base64-receipt")

    assert exc_info.value.kind is PurchaseErrorKind.VERIFICATION_UNAVAILABLE
    assert exc_info.value.http_status == 503


def test_http_error_is_verification_unavailable():
    def handler(request):
        return httpx.Response(502, text="bad gateway")

    verifier = AppleReceiptVerifier(
        shared_secret="shared-secret",
        client=httpx.Client(transport=httpx.MockTransport(handler)),
    )

    with pytest.raises(PurchaseConfirmationError) as exc_info:
        verifier.verify("base64-receipt")

    assert exc_info.value.kind is PurchaseErrorKind.VERIFICATION_UNAVAILABLE


def test_payload_without_status_is_verification_unavailable():
    stub = AppleStub(production={"unexpected": True})

    with pytest.raises(PurchaseConfirmationError) as exc_info:
        stub.verifier().verify("base64-receipt")

    assert exc_info.value.kind is PurchaseErrorKind.VERIFICATION_UNAVAILABLE


# ---------------------
# PURCHASE LOOKUP
# ---------------------

def test_find_purchase_requires_matching_product():
    stub = AppleStub(production=apple_payload())
    result = stub.verifier().verify("base64-receipt")

    assert result.find_purchase("1000", "it.seaboo.rental.premium") is None
    assert result.find_purchase("9999", PRODUCT_ID) is None


def test_legacy_top_level_in_app_is_read():
    payload = apple_payload()
    payload["in_app"] = payload["receipt"].pop("in_app")
    stub = AppleStub(production=payload)

    result = stub.verifier().verify("base64-receipt")

    assert result.find_purchase("1000", PRODUCT_ID) is not None


def test_receipt_summary_keeps_identifying_fields():
    stub = AppleStub(production=apple_payload())

    summary = stub.verifier().verify("base64-receipt").receipt_summary()

    assert summary == {
        "bundle_id": "it.seaboo.app",
        "application_version": "12",
        "original_purchase_date": "2026-06-01 10:00:00 Etc/GMT",
    }
