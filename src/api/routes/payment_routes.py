from decimal import Decimal
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from src.api.dependencies import (
    get_db,
    get_optional_user,
    get_receipt_verifier,
    get_stripe_service,
)
from src.api.schemas.schemas import (
    PaymentIntentRequest,
    PaymentIntentResponse,
    VerifyPurchaseRequest,
    VerifyPurchaseResponse,
)
from src.application.purchase_service import PurchaseConfirmationService, PurchaseRequest
from src.application.stripe_service import StripePaymentService
from src.domain.exceptions import (
    InvalidWebhookError,
    PaymentServiceUnavailableError,
    PurchaseConfirmationError,
)
from src.infrastructure.apple.receipt_verifier import AppleReceiptVerifier
from src.infrastructure.db.models import User


router = APIRouter(prefix="/api")
logger = logging.getLogger(__name__)


@router.post("/verify-purchase", response_model=VerifyPurchaseResponse)
def verify_purchase(
    request: VerifyPurchaseRequest,
    user: User | None = Depends(get_optional_user),
    db: Session = Depends(get_db),
    verifier: AppleReceiptVerifier = Depends(get_receipt_verifier),
):
    if request.booking_id is not None and user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Non autenticato",
        )

    service = PurchaseConfirmationService(db, verifier)

    try:
        confirmation = service.confirm_purchase(
            PurchaseRequest(
                receipt_data=request.receipt_data,
                product_id=request.product_id,
                transaction_id=request.transaction_id,
                booking_id=request.booking_id,
                customer_id=user.id if user else None,
            )
        )
    except PurchaseConfirmationError as exc:
        return JSONResponse(
            status_code=exc.http_status,
            content={"success": False, "error": exc.message, "kind": exc.code},
        )

    return VerifyPurchaseResponse(
        success=True,
        environment=confirmation.environment,
        receipt=confirmation.receipt,
        purchase=confirmation.purchase,
        transaction_id=confirmation.transaction_id,
        booking_id=confirmation.booking_id,
    )


@router.post("/create-payment-intent", response_model=PaymentIntentResponse)
def create_payment_intent(
    request: PaymentIntentRequest,
    service: StripePaymentService = Depends(get_stripe_service),
):
    if not request.amount or request.amount <= 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid amount",
        )

    try:
        client_secret = service.create_payment_intent(
            amount=Decimal(str(request.amount)),
            booking_id=request.booking_id,
            currency=request.currency,
        )
    except PaymentServiceUnavailableError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc

    return PaymentIntentResponse(client_secret=client_secret)


@router.post("/stripe/webhook")
async def stripe_webhook(
    request: Request,
    service: StripePaymentService = Depends(get_stripe_service),
):
    payload = await request.body()
    signature = request.headers.get("stripe-signature")

    try:
        return await run_in_threadpool(service.handle_webhook, payload, signature)
    except PaymentServiceUnavailableError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc
    except InvalidWebhookError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
