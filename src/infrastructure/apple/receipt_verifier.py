# src/infrastructure/apple/receipt_verifier.py

from dataclasses import dataclass, field
import logging
import os
from typing import Any

import httpx

from src.domain.apple_status import AppleReceiptStatus, unknown_status_message
from src.domain.exceptions import PurchaseConfirmationError, PurchaseErrorKind


logger = logging.getLogger(__name__)

PRODUCTION_VERIFY_URL = "https://buy.itunes.apple.com/verifyReceipt"
SANDBOX_VERIFY_URL = "https://sandbox.itunes.apple.com/verifyReceipt"

PRODUCTION = "Production"
SANDBOX = "Sandbox"

DEFAULT_TIMEOUT_SECONDS = float(os.getenv("APPLE_VERIFY_TIMEOUT_SECONDS", "10"))


@dataclass(frozen=True)
class InAppPurchase:
    transaction_id: str
    original_transaction_id: str | None
    product_id: str
    raw: dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "InAppPurchase":
        original = payload.get("original_transaction_id")
        return cls(
            transaction_id=str(payload.get("transaction_id", "")),
            original_transaction_id=str(original) if original else None,
            product_id=str(payload.get("product_id", "")),
            raw=payload,
        )


@dataclass(frozen=True)
class ReceiptVerification:
    status: int
    environment: str
    receipt: dict[str, Any]
    in_app: list[InAppPurchase]

    def find_purchase(
        self,
        transaction_id: str,
        product_id: str,
    ) -> InAppPurchase | None:
        for purchase in self.in_app:
            if (
                purchase.transaction_id == transaction_id
                and purchase.product_id == product_id
            ):
                return purchase
        return None

    def receipt_summary(self) -> dict[str, Any]:
        return {
            "bundle_id": self.receipt.get("bundle_id"),
            "application_version": self.receipt.get("application_version"),
            "original_purchase_date": self.receipt.get("original_purchase_date"),
        }


class AppleReceiptVerifier:
    """
    Client for Apple's verifyReceipt endpoints.

    Always tries production first; a 21007 answer means the receipt was
    issued by the sandbox and is retried there once. Every other non-zero
    status is terminal and raised as PurchaseConfirmationError.
    """

    def __init__(
        self,
        shared_secret: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: httpx.Client | None = None,
    ):
        self.shared_secret = shared_secret
        self.timeout = timeout
        self._client = client

    def verify(self, receipt_data: str) -> ReceiptVerification:
        result = self._post(PRODUCTION_VERIFY_URL, receipt_data, PRODUCTION)

        status = AppleReceiptStatus.from_code(result.status)
        if status is not None and status.retry_in_sandbox:
            logger.info("Sandbox receipt sent to production, retrying against sandbox.")
            result = self._post(SANDBOX_VERIFY_URL, receipt_data, SANDBOX)
            status = AppleReceiptStatus.from_code(result.status)

        if status is None:
            logger.error(
                "Unmapped App Store status code %s from %s environment.",
                result.status,
                result.environment,
            )
            raise PurchaseConfirmationError(
                kind=PurchaseErrorKind.PROVIDER_STATUS,
                message=unknown_status_message(result.status),
                provider_status=result.status,
                provider_status_known=False,
            )

        if not status.is_valid:
            logger.warning(
                "Receipt rejected by App Store. status=%s environment=%s",
                status.value,
                result.environment,
            )
            raise PurchaseConfirmationError(
                kind=PurchaseErrorKind.PROVIDER_STATUS,
                message=status.message,
                provider_status=status.value,
            )

        return result

    def _post(
        self,
        url: str,
        receipt_data: str,
        environment: str,
    ) -> ReceiptVerification:
        body = {
            "receipt-data": receipt_data,
            "password": self.shared_secret,
        }
        try:
            if self._client is not None:
                response = self._client.post(url, json=body, timeout=self.timeout)
            else:
                with httpx.Client(timeout=self.timeout) as client:
                    response = client.post(url, json=body)
            response.raise_for_status()
            payload = response.json()
        except httpx.TimeoutException as exc:
            logger.error("App Store verification timed out. url=%s", url)
            raise PurchaseConfirmationError(
                kind=PurchaseErrorKind.VERIFICATION_UNAVAILABLE,
                message="Servizio di verifica Apple non disponibile",
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("App Store verification failed. url=%s error=%s", url, exc)
            raise PurchaseConfirmationError(
                kind=PurchaseErrorKind.VERIFICATION_UNAVAILABLE,
                message="Servizio di verifica Apple non disponibile",
            ) from exc

        return _parse_verification(payload, environment)


def _parse_verification(payload: Any, environment: str) -> ReceiptVerification:
    if not isinstance(payload, dict) or "status" not in payload:
        raise PurchaseConfirmationError(
            kind=PurchaseErrorKind.VERIFICATION_UNAVAILABLE,
            message="Servizio di verifica Apple non disponibile",
        )

    receipt = payload.get("receipt") or {}
    items = receipt.get("in_app") or payload.get("in_app") or []

    return ReceiptVerification(
        status=int(payload["status"]),
        environment=payload.get("environment") or environment,
        receipt=receipt,
        in_app=[InAppPurchase.from_payload(item) for item in items],
    )
