from datetime import date, datetime
import json
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


BoatType = Literal[
    "yacht",
    "catamarano",
    "gommone",
    "barca-vela",
    "motoscafo",
    "barche-senza-patente",
    "charter",
]


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# -----------------------------
# Auth
# -----------------------------
class RegisterRequest(CamelModel):
    email: str = Field(pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    password: str = Field(min_length=6)
    role: Literal["user", "owner"] = "user"
    first_name: str | None = None
    last_name: str | None = None
    username: str | None = None
    business_name: str | None = None
    phone: str | None = None

    @model_validator(mode="after")
    def owner_needs_business_name(self) -> "RegisterRequest":
        if self.role == "owner" and not self.business_name:
            raise ValueError("Il nome dell'attività è obbligatorio per i noleggiatori")
        return self


class LoginRequest(CamelModel):
    email: str
    password: str = Field(min_length=1)


class AppleSignInRequest(CamelModel):
    identity_token: str | None = None
    user: dict[str, Any] | None = None
    nonce: str | None = None


class UserResponse(CamelModel):
    id: int
    email: str
    first_name: str | None = None
    last_name: str | None = None
    role: str
    user_type: str
    business_name: str | None = None


class ProfileResponse(UserResponse):
    username: str | None = None
    phone: str | None = None
    created_at: datetime


class AuthResponse(CamelModel):
    success: bool = True
    user: UserResponse
    redirect_to: str | None = None


# -----------------------------
# Boats
# -----------------------------
class BoatFields(CamelModel):
    name: str | None = None
    type: BoatType | None = None
    description: str | None = None
    capacity: int | None = Field(default=None, gt=0)
    price_per_day: float | None = Field(default=None, ge=0)
    location: str | None = None
    port: str | None = None
    length: float | None = Field(default=None, gt=0)
    amenities: list[str] | None = None
    is_available: bool | None = None
    pickup_time: str | None = None
    return_time: str | None = None

    @field_validator("amenities", mode="before")
    @classmethod
    def parse_amenities(cls, value: Any) -> Any:
        # Multipart forms send amenities either as a JSON array or comma separated.
        if isinstance(value, str):
            value = value.strip()
            if value.startswith("["):
                return json.loads(value)
            return [item.strip() for item in value.split(",") if item.strip()]
        return value


class BoatCreate(BoatFields):
    name: str
    type: BoatType
    capacity: int = Field(gt=0)
    price_per_day: float = Field(ge=0)
    location: str


class BoatResponse(CamelModel):
    id: int
    owner_id: int
    name: str
    type: str
    description: str
    capacity: int
    price_per_day: float
    location: str
    port: str | None = None
    length: float | None = None
    images: list[str]
    amenities: list[str]
    is_available: bool
    pickup_time: str | None = None
    return_time: str | None = None


# -----------------------------
# Bookings
# -----------------------------
class BookingCreate(CamelModel):
    boat_id: int
    start_date: date
    end_date: date
    guest_count: int = Field(gt=0)
    special_requests: str | None = None


class BookingResponse(CamelModel):
    id: int
    customer_id: int
    boat_id: int
    start_date: date
    end_date: date
    total_price: float
    guest_count: int
    special_requests: str | None = None
    status: str
    payment_provider: str | None = None
    payment_transaction_id: str | None = None

    @field_validator("status", "payment_provider", mode="before")
    @classmethod
    def enum_value(cls, value: Any) -> Any:
        return getattr(value, "value", value)


# -----------------------------
# Payments
# -----------------------------
class VerifyPurchaseRequest(CamelModel):
    receipt_data: str | None = None
    product_id: str | None = None
    transaction_id: str | None = None
    booking_id: int | None = None


class VerifyPurchaseResponse(CamelModel):
    success: bool
    environment: str | None = None
    receipt: dict[str, Any] | None = None
    purchase: dict[str, Any] | None = None
    transaction_id: str | None = None
    booking_id: int | None = None


class PaymentIntentRequest(CamelModel):
    amount: float | None = None
    booking_id: int | None = None
    currency: str = "eur"


class PaymentIntentResponse(CamelModel):
    client_secret: str
