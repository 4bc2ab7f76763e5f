import logging
from typing import Any

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.api.dependencies import get_db, get_image_storage, require_owner
from src.api.schemas.schemas import BoatCreate, BoatFields, BoatResponse
from src.application.boat_service import BoatService
from src.domain.exceptions import (
    BookingValidationError,
    InvalidUploadError,
    ResourceNotFoundError,
)
from src.infrastructure.db.models import User
from src.infrastructure.storage.image_storage import ImageStorage


router = APIRouter(prefix="/api")
logger = logging.getLogger(__name__)


def _validation_detail(exc: ValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(item) for item in first.get("loc", ()))
    return f"{location}: {first.get('msg')}" if location else first.get("msg", "Dati non validi")


def _boat_fields(model: BoatFields) -> dict[str, Any]:
    return model.model_dump(exclude_none=True)


def _store_images(storage: ImageStorage, images: list[UploadFile]) -> list[str]:
    try:
        return storage.save_images(images)
    except InvalidUploadError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc


@router.get("/boats")
def list_boats(db: Session = Depends(get_db)):
    boats = BoatService(db).list_public()
    logger.info("Boats fetched: %s boats", len(boats))
    return {"boats": [BoatResponse.model_validate(boat).model_dump(by_alias=True) for boat in boats]}


@router.get("/boats/{boat_id}")
def get_boat(boat_id: int, db: Session = Depends(get_db)):
    try:
        boat = BoatService(db).get_public(boat_id)
    except ResourceNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    return {"boat": BoatResponse.model_validate(boat).model_dump(by_alias=True)}


@router.get("/owner/boats")
def list_owner_boats(
    owner: User = Depends(require_owner),
    db: Session = Depends(get_db),
):
    boats = BoatService(db).list_for_owner(owner.id)
    return {"boats": [BoatResponse.model_validate(boat).model_dump(by_alias=True) for boat in boats]}


@router.post("/boats")
def create_boat(
    name: str | None = Form(None),
    boat_type: str | None = Form(None, alias="type"),
    description: str | None = Form(None),
    capacity: str | None = Form(None),
    price_per_day: str | None = Form(None, alias="pricePerDay"),
    location: str | None = Form(None),
    port: str | None = Form(None),
    length: str | None = Form(None),
    amenities: str | None = Form(None),
    is_available: str | None = Form(None, alias="isAvailable"),
    pickup_time: str | None = Form(None, alias="pickupTime"),
    return_time: str | None = Form(None, alias="returnTime"),
    images: list[UploadFile] = File(default=[]),
    owner: User = Depends(require_owner),
    db: Session = Depends(get_db),
    storage: ImageStorage = Depends(get_image_storage),
):
    raw = {
        "name": name,
        "type": boat_type,
        "description": description,
        "capacity": capacity,
        "pricePerDay": price_per_day,
        "location": location,
        "port": port,
        "length": length,
        "amenities": amenities,
        "isAvailable": is_available,
        "pickupTime": pickup_time,
        "returnTime": return_time,
    }
    try:
        data = BoatCreate.model_validate({k: v for k, v in raw.items() if v is not None})
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=_validation_detail(exc),
        ) from exc

    fields = _boat_fields(data)
    fields.setdefault("description", "")
    fields["images"] = _store_images(storage, images)

    try:
        boat = BoatService(db).create_boat(owner.id, fields)
        db.commit()
    except SQLAlchemyError:
        storage.delete_images(fields["images"])
        raise

    return {"success": True, "boat": BoatResponse.model_validate(boat).model_dump(by_alias=True)}


@router.put("/boats/{boat_id}")
def update_boat(
    boat_id: int,
    name: str | None = Form(None),
    boat_type: str | None = Form(None, alias="type"),
    description: str | None = Form(None),
    capacity: str | None = Form(None),
    price_per_day: str | None = Form(None, alias="pricePerDay"),
    location: str | None = Form(None),
    port: str | None = Form(None),
    length: str | None = Form(None),
    amenities: str | None = Form(None),
    is_available: str | None = Form(None, alias="isAvailable"),
    pickup_time: str | None = Form(None, alias="pickupTime"),
    return_time: str | None = Form(None, alias="returnTime"),
    images: list[UploadFile] = File(default=[]),
    owner: User = Depends(require_owner),
    db: Session = Depends(get_db),
    storage: ImageStorage = Depends(get_image_storage),
):
    raw = {
        "name": name,
        "type": boat_type,
        "description": description,
        "capacity": capacity,
        "pricePerDay": price_per_day,
        "location": location,
        "port": port,
        "length": length,
        "amenities": amenities,
        "isAvailable": is_available,
        "pickupTime": pickup_time,
        "returnTime": return_time,
    }
    try:
        data = BoatFields.model_validate({k: v for k, v in raw.items() if v is not None})
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=_validation_detail(exc),
        ) from exc

    service = BoatService(db)
    fields = _boat_fields(data)

    try:
        # Ownership first, so a foreign boat never receives uploads.
        service.get_owned(owner.id, boat_id)
        if any(item.filename for item in images):
            fields["images"] = _store_images(storage, images)
        boat = service.update_boat(owner.id, boat_id, fields)
        db.commit()
    except SQLAlchemyError:
        storage.delete_images(fields.get("images", []))
        raise
    except ResourceNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc

    return {"success": True, "boat": BoatResponse.model_validate(boat).model_dump(by_alias=True)}


@router.delete("/boats/{boat_id}")
def delete_boat(
    boat_id: int,
    owner: User = Depends(require_owner),
    db: Session = Depends(get_db),
):
    try:
        BoatService(db).delete_boat(owner.id, boat_id)
    except ResourceNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except BookingValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        ) from exc

    return {"success": True}
