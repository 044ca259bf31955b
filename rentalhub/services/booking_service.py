"""
RentalHub Backend — Booking Service (Court Reservations)
=========================================================

What:  Creates court bookings without double-booking, lists them per role,
       applies status transitions and answers availability checks.
Who:   routes/bookings.py (including /api/availability/check); PaymentService confirms
       draft bookings after a verified payment.

Create flow (one transaction, committed by get_db_session):
    ┌────────────────┐   ┌──────────────┐   ┌────────────┐   ┌───────────┐
    │ SELECT court   │──▶│ time checks  │──▶│ conflict   │──▶│ INSERT    │
    │ FOR UPDATE     │   │ (future, >)  │   │ query      │   │ draft     │
    └────────────────┘   └──────────────┘   └────────────┘   └───────────┘
    The court row lock serialises concurrent creates for the same court,
    so two requests can never both pass the conflict query. The
    `ex_bookings_no_overlap` exclusion constraint (migration 001) is the
    backstop; its violation at flush is reported as BOOKING_CONFLICT too.

Conflict rule:
    Against draft/confirmed bookings on the same court, a new range
    [start, end) conflicts when any of these holds:
        existing.start <= start  AND existing.end >  start   (covers start)
        existing.start <  end    AND existing.end >= end     (covers end)
        existing.start >= start  AND existing.end <= end     (inside)
"""

import logging
import uuid
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, FrozenSet, List, Optional, Tuple

from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from rentalhub.dependencies import Pagination
from rentalhub.exceptions import (
    BookingConflictError,
    DatabaseError,
    InvalidStatusTransitionError,
    NotFoundError,
    PermissionDeniedError,
    RentalHubError,
    ValidationError,
)
from rentalhub.models.booking import (
    BOOKING_CANCELLED,
    BOOKING_COMPLETED,
    BOOKING_CONFIRMED,
    BOOKING_DRAFT,
    SLOT_HOLDING_STATUSES,
    Booking,
)
from rentalhub.models.court import Court
from rentalhub.models.facility import Facility
from rentalhub.models.product import Product
from rentalhub.models.user import ROLE_ADMIN, ROLE_OWNER, User
from rentalhub.schemas.booking import (
    AvailabilityCheckRequest,
    AvailabilityCheckResponse,
    BookingCreate,
    BookingDetail,
    BookingResponse,
    BookingUpdate,
)
from rentalhub.services.rental_service import rental_service

logger = logging.getLogger(__name__)

BOOKING_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    BOOKING_DRAFT: frozenset({BOOKING_CONFIRMED, BOOKING_CANCELLED}),
    BOOKING_CONFIRMED: frozenset({BOOKING_COMPLETED, BOOKING_CANCELLED}),
    BOOKING_CANCELLED: frozenset(),
    BOOKING_COMPLETED: frozenset(),
}

_CENT = Decimal("0.01")


def calculate_booking_price(price_per_hour: Decimal, start: datetime, end: datetime) -> Decimal:
    """price_per_hour × duration in hours, rounded half-up to 2 decimals."""
    hours = Decimal(str((end - start).total_seconds())) / Decimal(3600)
    return (Decimal(price_per_hour) * hours).quantize(_CENT, rounding=ROUND_HALF_UP)


def overlap_condition(start: datetime, end: datetime):
    return or_(
        and_(Booking.start_datetime <= start, Booking.end_datetime > start),
        and_(Booking.start_datetime < end, Booking.end_datetime >= end),
        and_(Booking.start_datetime >= start, Booking.end_datetime <= end),
    )


def validate_booking_transition(current: str, requested: str) -> None:
    allowed = BOOKING_TRANSITIONS.get(current, frozenset())
    if requested not in allowed:
        raise InvalidStatusTransitionError("booking", current, requested, allowed)


class BookingService:

    async def find_conflicts(
        self,
        db: AsyncSession,
        court_id: uuid.UUID,
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[uuid.UUID] = None,
    ) -> List[uuid.UUID]:
        query = select(Booking.id).where(
            Booking.court_id == court_id,
            Booking.status.in_(SLOT_HOLDING_STATUSES),
            overlap_condition(start, end),
        )
        if exclude_booking_id:
            query = query.where(Booking.id != exclude_booking_id)
        result = await db.execute(query)
        return list(result.scalars().all())

    async def create_booking(
        self, db: AsyncSession, user: User, payload: BookingCreate
    ) -> BookingResponse:
        """
        Reserve a court slot as a `draft` booking.

        Raises:
            NotFoundError:        court missing or inactive (404)
            ValidationError:      facility inactive, start in the past, bad range (400)
            BookingConflictError: slot overlaps a draft/confirmed booking (409)
            DatabaseError:        unexpected persistence failure (500)
        """
        start, end = payload.start_datetime, payload.end_datetime
        try:
            # ── Step 1: Lock the court row for the rest of the transaction ──
            result = await db.execute(
                select(Court).where(Court.id == payload.court_id).with_for_update()
            )
            court = result.scalar_one_or_none()
            if court is None or not court.is_active:
                raise NotFoundError(
                    resource="court",
                    resource_id=str(payload.court_id),
                    message="Court not found or inactive",
                )

            facility = await db.get(Facility, court.facility_id)
            if facility is None or not facility.is_active:
                raise ValidationError(
                    message="The facility for this court is not active",
                    field="court_id",
                )

            # ── Step 2: Time checks ───────────────────────────────────────
            now = datetime.now(timezone.utc)
            if start <= now:
                raise ValidationError(
                    message="Booking start time must be in the future",
                    field="start_datetime",
                )
            if end <= start:
                raise ValidationError(
                    message="End time must be after start time",
                    field="end_datetime",
                )

            # ── Step 3: Conflict detection ────────────────────────────────
            conflicts = await self.find_conflicts(db, court.id, start, end)
            if conflicts:
                logger.info(
                    "Booking conflict on court %s for %s → %s: %s",
                    court.id, start.isoformat(), end.isoformat(), conflicts,
                )
                raise BookingConflictError(conflicting_ids=conflicts)

            # ── Step 4: Price and insert ──────────────────────────────────
            booking = Booking(
                user_id=user.id,
                court_id=court.id,
                start_datetime=start,
                end_datetime=end,
                status=BOOKING_DRAFT,
                total_price=calculate_booking_price(court.price_per_hour, start, end),
                notes=payload.notes,
            )
            db.add(booking)
            try:
                await db.flush()
            except IntegrityError as e:
                # Exclusion constraint fired: a concurrent writer got there first.
                logger.warning("Overlap rejected by database for court %s: %s", court.id, str(e.orig))
                raise BookingConflictError(context={"court_id": str(court.id)})

            logger.info(
                "Booking %s created: court=%s user=%s total=%s",
                booking.id, court.id, user.id, booking.total_price,
            )
            return BookingResponse.model_validate(booking)

        except RentalHubError:
            raise
        except Exception as e:
            logger.error("Unexpected error creating booking: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not create the booking. Please try again.",
                context={"error_type": type(e).__name__},
            )

    async def list_bookings(
        self,
        db: AsyncSession,
        user: User,
        pagination: Pagination,
        user_id: Optional[uuid.UUID] = None,
        court_id: Optional[uuid.UUID] = None,
        facility_id: Optional[uuid.UUID] = None,
        status: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> Tuple[List[BookingDetail], int]:
        conditions = []
        if user.role == ROLE_ADMIN:
            if user_id:
                conditions.append(Booking.user_id == user_id)
        elif user.role == ROLE_OWNER:
            owned_courts = (
                select(Court.id).join(Facility, Court.facility_id == Facility.id)
                .where(Facility.owner_id == user.id)
            )
            conditions.append(Booking.court_id.in_(owned_courts))
            if user_id:
                conditions.append(Booking.user_id == user_id)
        else:
            conditions.append(Booking.user_id == user.id)

        if court_id:
            conditions.append(Booking.court_id == court_id)
        if facility_id:
            conditions.append(
                Booking.court_id.in_(select(Court.id).where(Court.facility_id == facility_id))
            )
        if status:
            conditions.append(Booking.status == status)
        if start_date:
            conditions.append(Booking.start_datetime >= start_date)
        if end_date:
            conditions.append(Booking.end_datetime <= end_date)

        try:
            result = await db.execute(
                select(Booking)
                .options(selectinload(Booking.court).selectinload(Court.facility))
                .where(*conditions)
                .order_by(Booking.created_at.desc())
                .offset(pagination.offset)
                .limit(pagination.limit)
            )
            bookings = result.scalars().all()
            total = (await db.execute(select(func.count(Booking.id)).where(*conditions))).scalar() or 0
            return [BookingDetail.model_validate(b) for b in bookings], total
        except Exception as e:
            logger.error("Database error listing bookings: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve bookings. Please try again.",
                context={"error_type": type(e).__name__},
            )

    async def _load_visible_booking(
        self, db: AsyncSession, booking_id: uuid.UUID, user: User, for_update: bool = False
    ) -> Tuple[Booking, bool]:
        """Returns (booking, caller_manages_it). Invisible bookings are 404s."""
        query = (
            select(Booking)
            .options(selectinload(Booking.court).selectinload(Court.facility))
            .where(Booking.id == booking_id)
        )
        if for_update:
            query = query.with_for_update(of=Booking)
        booking = (await db.execute(query)).scalar_one_or_none()
        if booking is None:
            raise NotFoundError(resource="booking", resource_id=str(booking_id))

        facility = booking.court.facility if booking.court else None
        manages = user.role == ROLE_ADMIN or (facility is not None and facility.owner_id == user.id)
        if booking.user_id != user.id and not manages:
            raise NotFoundError(resource="booking", resource_id=str(booking_id))
        return booking, manages

    async def get_booking(self, db: AsyncSession, booking_id: uuid.UUID, user: User) -> BookingDetail:
        booking, _ = await self._load_visible_booking(db, booking_id, user)
        return BookingDetail.model_validate(booking)

    async def update_booking(
        self,
        db: AsyncSession,
        booking_id: uuid.UUID,
        user: User,
        payload: BookingUpdate,
    ) -> BookingDetail:
        booking, manages = await self._load_visible_booking(db, booking_id, user, for_update=True)
        changes = payload.model_dump(exclude_unset=True)

        new_status = changes.get("status")
        if new_status and new_status != booking.status:
            validate_booking_transition(booking.status, new_status)
            if not manages and new_status != BOOKING_CANCELLED:
                raise PermissionDeniedError("You can only cancel your own booking")
            logger.info("Booking %s: %s → %s by %s", booking.id, booking.status, new_status, user.id)
            booking.status = new_status

        if "notes" in changes:
            booking.notes = changes["notes"]

        await db.flush()
        return BookingDetail.model_validate(booking)

    async def confirm_booking(
        self, db: AsyncSession, booking_id: uuid.UUID, payment_id: uuid.UUID
    ) -> Optional[Booking]:
        """Marks a booking confirmed after payment. Missing bookings are logged, not raised."""
        booking = await db.get(Booking, booking_id)
        if booking is None:
            logger.warning("Paid booking %s no longer exists", booking_id)
            return None
        if booking.status == BOOKING_DRAFT:
            booking.status = BOOKING_CONFIRMED
        booking.payment_id = payment_id
        return booking

    async def check_availability(
        self, db: AsyncSession, payload: AvailabilityCheckRequest
    ) -> AvailabilityCheckResponse:
        if payload.court_id is not None:
            court = await db.get(Court, payload.court_id)
            if court is None:
                raise NotFoundError(resource="court", resource_id=str(payload.court_id))
            conflicts = await self.find_conflicts(
                db,
                court.id,
                payload.start_datetime,
                payload.end_datetime,
                exclude_booking_id=payload.exclude_booking_id,
            )
            return AvailabilityCheckResponse(
                available=court.is_active and not conflicts,
                court_id=court.id,
                conflicting_bookings=conflicts,
            )

        product = await db.get(Product, payload.product_id)
        if product is None:
            raise NotFoundError(resource="product", resource_id=str(payload.product_id))
        reserved = await rental_service.reserved_quantity(
            db,
            product.id,
            payload.start_datetime,
            payload.end_datetime,
            exclude_rental_id=payload.exclude_rental_id,
        )
        remaining = max(product.quantity - reserved, 0)
        return AvailabilityCheckResponse(
            available=product.is_active and remaining > 0,
            product_id=product.id,
            total_quantity=product.quantity,
            reserved_quantity=reserved,
            remaining_quantity=remaining,
        )


booking_service = BookingService()
