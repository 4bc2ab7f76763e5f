from decimal import Decimal

from sqlalchemy import select

from src.application.auth_service import AuthService, hash_password
from src.infrastructure.db.models import Base, Boat
from src.infrastructure.db.session import SessionLocal, engine
from src.infrastructure.repositories.user_repository import UserRepository


OWNER_EMAIL = "noleggi@seaboo.it"
OWNER_PASSWORD = "SeaBooOwner2025!"


def seed_owner(db):
    users = UserRepository(db)
    owner = users.get_by_email(OWNER_EMAIL)
    if owner:
        return owner

    return users.create_user(
        email=OWNER_EMAIL,
        password_hash=hash_password(OWNER_PASSWORD),
        role="owner",
        first_name="Marco",
        last_name="Esposito",
        business_name="Noleggi Costiera",
    )


def seed_boats(db, owner) -> None:
    boat_defs = [
        {
            "name": "Azzurra",
            "type": "gommone",
            "description": "Gommone 6 metri, ideale per le calette.",
            "capacity": 6,
            "price_per_day": Decimal("180.00"),
            "location": "Sorrento",
            "port": "Marina Piccola",
            "amenities": ["prendisole", "doccetta"],
            "pickup_time": "09:00",
            "return_time": "18:30",
        },
        {
            "name": "Libeccio",
            "type": "barca-vela",
            "description": "Sloop 12 metri con skipper su richiesta.",
            "capacity": 8,
            "price_per_day": Decimal("420.00"),
            "location": "Procida",
            "port": "Marina Grande",
            "amenities": ["cucina", "bimini", "tender"],
            "pickup_time": "10:00",
            "return_time": "19:00",
        },
        {
            "name": "Scirocco",
            "type": "barche-senza-patente",
            "description": "Barca 40cv, nessuna patente richiesta.",
            "capacity": 5,
            "price_per_day": Decimal("120.00"),
            "location": "Positano",
            "port": None,
            "amenities": ["tendalino"],
            "pickup_time": "09:30",
            "return_time": "18:00",
        },
    ]

    for item in boat_defs:
        existing = db.execute(
            select(Boat)
            .where(Boat.owner_id == owner.id)
            .where(Boat.name == item["name"])
        ).scalar_one_or_none()
        if existing:
            for name, value in item.items():
                setattr(existing, name, value)
            existing.is_available = True
            continue

        db.add(Boat(owner_id=owner.id, images=[], is_available=True, **item))


def main() -> None:
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        owner = seed_owner(db)
        seed_boats(db, owner)
        AuthService(db).create_demo_account()
        db.commit()
        print("Seed complete: owner account, three boats and the demo customer added.")
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main()
