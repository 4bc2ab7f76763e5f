# src/domain/apple_status.py

from enum import IntEnum


class AppleReceiptStatus(IntEnum):
    """Status codes returned by Apple's verifyReceipt endpoint."""

    VALID = 0
    UNREADABLE_RECEIPT = 21000
    MALFORMED_RECEIPT = 21002
    NOT_AUTHENTICATED = 21003
    SHARED_SECRET_MISMATCH = 21004
    SERVER_UNAVAILABLE = 21005
    SUBSCRIPTION_EXPIRED = 21006
    SANDBOX_RECEIPT_IN_PRODUCTION = 21007
    PRODUCTION_RECEIPT_IN_SANDBOX = 21008
    INTERNAL_DATA_ACCESS_ERROR = 21009
    ACCOUNT_NOT_FOUND = 21010

    @property
    def is_valid(self) -> bool:
        return self is AppleReceiptStatus.VALID

    @property
    def retry_in_sandbox(self) -> bool:
        return self is AppleReceiptStatus.SANDBOX_RECEIPT_IN_PRODUCTION

    @property
    def message(self) -> str:
        return STATUS_MESSAGES[self]

    @classmethod
    def from_code(cls, code: int) -> "AppleReceiptStatus | None":
        """Returns None for codes outside the documented set."""
        try:
            return cls(code)
        except ValueError:
            return None


STATUS_MESSAGES: dict[AppleReceiptStatus, str] = {
    AppleReceiptStatus.VALID: "Receipt valido",
    AppleReceiptStatus.UNREADABLE_RECEIPT: "App Store non può leggere il receipt",
    AppleReceiptStatus.MALFORMED_RECEIPT: "Dati del receipt malformati",
    AppleReceiptStatus.NOT_AUTHENTICATED: "Receipt non autenticato",
    AppleReceiptStatus.SHARED_SECRET_MISMATCH: "Shared secret non corretto",
    AppleReceiptStatus.SERVER_UNAVAILABLE: "Server receipt non disponibile",
    AppleReceiptStatus.SUBSCRIPTION_EXPIRED: "Receipt valido ma subscription scaduta",
    AppleReceiptStatus.SANDBOX_RECEIPT_IN_PRODUCTION: "Receipt da sandbox in produzione",
    AppleReceiptStatus.PRODUCTION_RECEIPT_IN_SANDBOX: "Receipt da produzione in sandbox",
    AppleReceiptStatus.INTERNAL_DATA_ACCESS_ERROR: "Errore interno di accesso ai dati",
    AppleReceiptStatus.ACCOUNT_NOT_FOUND: "Account utente non trovato o eliminato",
}


def unknown_status_message(code: int) -> str:
    return f"Verifica fallita: codice {code}"
