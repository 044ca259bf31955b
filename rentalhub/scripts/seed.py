"""
RentalHub Backend — Seed Data
===============================

What:  Upserts the two login accounts every environment expects:
           test@example.com  / password123  (user)
           admin@example.com / admin123     (admin)
       With --demo it also creates an owner, one facility with two courts
       and three rentable products, skipping anything that already exists.

Usage:
    rentalhub-seed
    rentalhub-seed --demo
"""

import argparse
import asyncio
import logging
import sys
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rentalhub.database import async_session_factory, dispose_engine
from rentalhub.models.court import Court
from rentalhub.models.facility import Facility
from rentalhub.models.product import Product
from rentalhub.models.user import ROLE_ADMIN, ROLE_OWNER, ROLE_USER, User
from rentalhub.security import hash_password

logger = logging.getLogger("rentalhub.seed")

SEED_USERS = (
    ("test@example.com", "password123", "Test User", ROLE_USER),
    ("admin@example.com", "admin123", "Admin User", ROLE_ADMIN),
)

DEMO_OWNER = ("owner@example.com", "owner123", "Demo Owner", ROLE_OWNER)
DEMO_FACILITY = "Riverside Sports Arena"

DEMO_COURTS = (
    {"name": "Court A", "sport_type": "badminton", "capacity": 4, "price_per_hour": Decimal("400.00")},
    {"name": "Court B", "sport_type": "tennis", "capacity": 4, "price_per_hour": Decimal("600.00"),
     "price_per_day": Decimal("4000.00")},
)

DEMO_PRODUCTS = (
    {
        "name": "Yonex Badminton Racket",
        "category": "badminton",
        "price_per_hour": Decimal("50.00"),
        "price_per_day": Decimal("200.00"),
        "price_per_week": Decimal("1000.00"),
        "deposit_amount": Decimal("500.00"),
        "quantity": 10,
        "tags": ["racket", "indoor"],
    },
    {
        "name": "Wilson Tennis Racket",
        "category": "tennis",
        "price_per_day": Decimal("300.00"),
        "price_per_week": Decimal("1500.00"),
        "price_per_month": Decimal("5000.00"),
        "deposit_amount": Decimal("1000.00"),
        "quantity": 5,
        "tags": ["racket", "outdoor"],
    },
    {
        "name": "Football (Size 5)",
        "category": "football",
        "price_per_day": Decimal("100.00"),
        "deposit_amount": Decimal("200.00"),
        "quantity": 20,
        "maximum_rental_days": 14,
        "tags": ["ball"],
    },
)


async def upsert_user(
    db: AsyncSession, email: str, password: str, full_name: str, role: str
) -> User:
    """Create the account, or reset its password and role if it exists."""
    user = (await db.execute(select(User).where(User.email == email))).scalar_one_or_none()
    if user is None:
        user = User(
            email=email,
            password_hash=hash_password(password),
            full_name=full_name,
            role=role,
            is_verified=True,
        )
        db.add(user)
        logger.info("Created %s (%s)", email, role)
    else:
        user.password_hash = hash_password(password)
        user.role = role
        logger.info("Updated %s (%s)", email, role)
    await db.flush()
    return user


async def _find_facility(db: AsyncSession, owner: User) -> Optional[Facility]:
    stmt = select(Facility).where(Facility.owner_id == owner.id, Facility.name == DEMO_FACILITY)
    return (await db.execute(stmt)).scalar_one_or_none()


async def seed_demo(db: AsyncSession) -> None:
    owner = await upsert_user(db, *DEMO_OWNER)

    facility = await _find_facility(db, owner)
    if facility is not None:
        logger.info("Demo facility already present, skipping demo data")
        return

    facility = Facility(
        owner_id=owner.id,
        name=DEMO_FACILITY,
        description="Indoor and outdoor courts with equipment rental.",
        address="12 River Road, Bengaluru",
        amenities=["parking", "changing rooms", "drinking water"],
        contact_email=owner.email,
        operating_hours={
            day: {"open": "06:00", "close": "22:00", "closed": False}
            for day in ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
        },
    )
    db.add(facility)
    await db.flush()

    for court in DEMO_COURTS:
        db.add(Court(facility_id=facility.id, **court))
    for product in DEMO_PRODUCTS:
        db.add(
            Product(
                facility_id=facility.id,
                location=facility.address,
                available_quantity=product["quantity"],
                **product,
            )
        )
    await db.flush()
    logger.info(
        "Created facility '%s' with %d courts and %d products",
        facility.name, len(DEMO_COURTS), len(DEMO_PRODUCTS),
    )


async def seed(demo: bool = False) -> None:
    async with async_session_factory() as db:
        try:
            for email, password, full_name, role in SEED_USERS:
                await upsert_user(db, email, password, full_name, role)
            if demo:
                await seed_demo(db)
            await db.commit()
        except Exception:
            await db.rollback()
            raise


async def _run(demo: bool) -> int:
    try:
        await seed(demo=demo)
    except Exception as e:
        logger.error("Seeding failed: %s", str(e), exc_info=True)
        return 1
    finally:
        await dispose_engine()
    logger.info("Seeding complete")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed RentalHub login accounts and demo data.")
    parser.add_argument("--demo", action="store_true", help="also create a demo facility, courts and products")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    sys.exit(asyncio.run(_run(args.demo)))


if __name__ == "__main__":
    main()
