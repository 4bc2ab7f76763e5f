from enum import Enum


class SeaBooError(Exception):
    """
    Base exception for all domain-level errors
    inside the SeaBoo rental engine.
    """


class InvalidStateTransitionError(SeaBooError):
    """
    Raised when an illegal booking state transition is attempted.
    """

    def __init__(self, from_state: str, to_state: str):
        self.from_state = from_state
        self.to_state = to_state

        message = (
            f"Illegal state transition attempted: "
            f"{from_state} -> {to_state}"
        )
        super().__init__(message)


class EmailAlreadyRegisteredError(SeaBooError):
    """Raised when registering an email that already has an account."""


class InvalidCredentialsError(SeaBooError):
    """Raised when email/password or an Apple identity token do not check out."""


class ResourceNotFoundError(SeaBooError):
    """Raised when a boat or booking is missing or not visible to the caller."""


class BookingValidationError(SeaBooError):
    """Raised when booking terms are not acceptable for the boat."""


class PaymentServiceUnavailableError(SeaBooError):
    """Raised when a payment provider is not configured."""


class InvalidUploadError(SeaBooError):
    """Raised when an uploaded boat image is rejected."""


class PurchaseErrorKind(str, Enum):
    BAD_REQUEST = "bad_request"
    PROVIDER_STATUS = "provider_status"
    TRANSACTION_MISMATCH = "transaction_mismatch"
    TRANSACTION_ALREADY_USED = "transaction_already_used"
    NOT_FOUND_OR_UNAUTHORIZED = "not_found_or_unauthorized"
    ALREADY_CONFIRMED = "already_confirmed"
    BOOKING_NOT_PENDING = "booking_not_pending"
    VERIFICATION_UNAVAILABLE = "verification_unavailable"
    INTERNAL_ERROR = "internal_error"


_HTTP_STATUS_BY_KIND = {
    PurchaseErrorKind.BAD_REQUEST: 400,
    PurchaseErrorKind.PROVIDER_STATUS: 400,
    PurchaseErrorKind.TRANSACTION_MISMATCH: 400,
    PurchaseErrorKind.TRANSACTION_ALREADY_USED: 409,
    PurchaseErrorKind.NOT_FOUND_OR_UNAUTHORIZED: 404,
    PurchaseErrorKind.ALREADY_CONFIRMED: 400,
    PurchaseErrorKind.BOOKING_NOT_PENDING: 409,
    PurchaseErrorKind.VERIFICATION_UNAVAILABLE: 503,
    PurchaseErrorKind.INTERNAL_ERROR: 500,
}


class PurchaseConfirmationError(SeaBooError):
    """
    Raised by the purchase confirmation flow.

    `kind` is part of the public contract: callers tell a replayed
    transaction (409) apart from a foreign booking (404), a bad request
    (400) and an internal failure (500).
    """

    def __init__(
        self,
        kind: PurchaseErrorKind,
        message: str,
        provider_status: int | None = None,
        provider_status_known: bool = True,
    ):
        self.kind = kind
        self.message = message
        self.provider_status = provider_status
        self.provider_status_known = provider_status_known
        super().__init__(message)

    @property
    def code(self) -> str:
        if self.kind is PurchaseErrorKind.PROVIDER_STATUS:
            if not self.provider_status_known:
                return "provider_status_unknown"
            return f"provider_status_{self.provider_status}"
        return self.kind.value

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS_BY_KIND[self.kind]


class AppleEmailUnavailableError(SeaBooError):
    """Raised when neither the Apple token nor the client supplied an email."""


class InvalidWebhookError(SeaBooError):
    """Raised when a webhook payload or its signature does not verify."""
