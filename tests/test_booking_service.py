"""
RentalHub Backend — Booking Service Unit Tests
================================================

What:  BookingService pricing, conflict handling, status transitions and
       availability checks against a mocked session.

What we test:
    ✅ Price = hourly rate × hours, rounded half-up
    ✅ Transition table (draft → confirmed/cancelled, terminal states)
    ✅ Create: missing court, past start, overlap, database exclusion backstop
    ✅ Update: renters may only cancel; strangers get 404
    ✅ Availability for courts and for products
    ✅ Overlap rule: back-to-back slots are free, any shared time conflicts
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest
from sqlalchemy import Column, DateTime, Integer, MetaData, Table, create_engine, insert, literal_column, select
from sqlalchemy.exc import IntegrityError

from rentalhub.exceptions import (
    BookingConflictError,
    InvalidStatusTransitionError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from rentalhub.models.booking import Booking
from rentalhub.schemas.booking import AvailabilityCheckRequest, BookingCreate, BookingUpdate
from rentalhub.services.booking_service import (
    BookingService,
    calculate_booking_price,
    overlap_condition,
    validate_booking_transition,
)


def _booking(court, user_id, status="draft", start=None):
    start = start or datetime.now(timezone.utc) + timedelta(days=1)
    now = datetime.now(timezone.utc)
    return Booking(
        id=uuid4(),
        user_id=user_id,
        court_id=court.id,
        court=court,
        start_datetime=start,
        end_datetime=start + timedelta(hours=1),
        status=status,
        total_price=Decimal("500.00"),
        created_at=now,
        updated_at=now,
    )


class TestBookingPrice:

    def test_two_hours(self):
        start = datetime(2030, 1, 1, 10, tzinfo=timezone.utc)
        assert calculate_booking_price(Decimal("500"), start, start + timedelta(hours=2)) == Decimal("1000.00")

    def test_partial_hour_rounds_half_up(self):
        start = datetime(2030, 1, 1, 10, tzinfo=timezone.utc)
        price = calculate_booking_price(Decimal("333.33"), start, start + timedelta(minutes=90))
        assert price == Decimal("500.00")


class TestBookingTransitions:

    def test_draft_can_be_confirmed_or_cancelled(self):
        validate_booking_transition("draft", "confirmed")
        validate_booking_transition("draft", "cancelled")

    def test_confirmed_cannot_go_back_to_draft(self):
        with pytest.raises(InvalidStatusTransitionError) as exc_info:
            validate_booking_transition("confirmed", "draft")
        assert exc_info.value.context["current_status"] == "confirmed"

    @pytest.mark.parametrize("terminal", ["cancelled", "completed"])
    def test_terminal_states_are_final(self, terminal):
        with pytest.raises(InvalidStatusTransitionError):
            validate_booking_transition(terminal, "confirmed")


class TestCreateBooking:

    def setup_method(self):
        self.service = BookingService()

    @pytest.mark.asyncio
    async def test_missing_court_is_not_found(self, mock_db_session, make_result, regular_user, future_window):
        mock_db_session.execute.return_value = make_result(scalar=None)
        payload = BookingCreate(court_id=uuid4(), start_datetime=future_window[0], end_datetime=future_window[1])

        with pytest.raises(NotFoundError):
            await self.service.create_booking(mock_db_session, regular_user, payload)

    @pytest.mark.asyncio
    async def test_past_start_is_rejected(self, mock_db_session, make_result, make_court, regular_user):
        court = make_court()
        mock_db_session.execute.return_value = make_result(scalar=court)
        mock_db_session.get.return_value = court.facility
        start = datetime.now(timezone.utc) - timedelta(hours=3)
        payload = BookingCreate(court_id=court.id, start_datetime=start, end_datetime=start + timedelta(hours=1))

        with pytest.raises(ValidationError) as exc_info:
            await self.service.create_booking(mock_db_session, regular_user, payload)
        assert exc_info.value.field == "start_datetime"

    @pytest.mark.asyncio
    async def test_inactive_facility_is_rejected(
        self, mock_db_session, make_result, make_court, make_facility, regular_user, future_window
    ):
        court = make_court(facility=make_facility(is_active=False))
        mock_db_session.execute.return_value = make_result(scalar=court)
        mock_db_session.get.return_value = court.facility
        payload = BookingCreate(court_id=court.id, start_datetime=future_window[0], end_datetime=future_window[1])

        with pytest.raises(ValidationError):
            await self.service.create_booking(mock_db_session, regular_user, payload)

    @pytest.mark.asyncio
    async def test_overlap_raises_conflict(self, mock_db_session, make_result, make_court, regular_user, future_window):
        court = make_court()
        existing_id = uuid4()
        mock_db_session.execute.side_effect = [
            make_result(scalar=court),
            make_result(scalars=[existing_id]),
        ]
        mock_db_session.get.return_value = court.facility
        payload = BookingCreate(court_id=court.id, start_datetime=future_window[0], end_datetime=future_window[1])

        with pytest.raises(BookingConflictError) as exc_info:
            await self.service.create_booking(mock_db_session, regular_user, payload)
        assert exc_info.value.status_code == 409
        assert exc_info.value.context["conflicting_bookings"] == [str(existing_id)]
        mock_db_session.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_creates_priced_draft(self, mock_db_session, make_result, make_court, regular_user, future_window):
        court = make_court(price_per_hour=Decimal("450.00"))
        mock_db_session.execute.side_effect = [make_result(scalar=court), make_result(scalars=[])]
        mock_db_session.get.return_value = court.facility
        payload = BookingCreate(
            court_id=court.id,
            start_datetime=future_window[0],
            end_datetime=future_window[1],
            notes="Doubles practice",
        )

        result = await self.service.create_booking(mock_db_session, regular_user, payload)

        assert result.status == "draft"
        assert result.total_price == 900.0
        assert result.user_id == regular_user.id
        assert result.notes == "Doubles practice"
        mock_db_session.add.assert_called_once()

    @pytest.mark.asyncio
    async def test_exclusion_constraint_maps_to_conflict(
        self, mock_db_session, make_result, make_court, regular_user, future_window
    ):
        court = make_court()
        mock_db_session.execute.side_effect = [make_result(scalar=court), make_result(scalars=[])]
        mock_db_session.get.return_value = court.facility
        mock_db_session.flush.side_effect = IntegrityError(
            "INSERT INTO bookings", {}, Exception("conflicting key value violates exclusion constraint")
        )
        payload = BookingCreate(court_id=court.id, start_datetime=future_window[0], end_datetime=future_window[1])

        with pytest.raises(BookingConflictError):
            await self.service.create_booking(mock_db_session, regular_user, payload)


class TestUpdateBooking:

    def setup_method(self):
        self.service = BookingService()

    @pytest.mark.asyncio
    async def test_renter_can_cancel(self, mock_db_session, make_result, make_court, regular_user):
        booking = _booking(make_court(), regular_user.id)
        mock_db_session.execute.return_value = make_result(scalar=booking)

        result = await self.service.update_booking(
            mock_db_session, booking.id, regular_user, BookingUpdate(status="cancelled")
        )
        assert result.status == "cancelled"

    @pytest.mark.asyncio
    async def test_renter_cannot_confirm(self, mock_db_session, make_result, make_court, regular_user):
        booking = _booking(make_court(), regular_user.id)
        mock_db_session.execute.return_value = make_result(scalar=booking)

        with pytest.raises(PermissionDeniedError):
            await self.service.update_booking(
                mock_db_session, booking.id, regular_user, BookingUpdate(status="confirmed")
            )

    @pytest.mark.asyncio
    async def test_facility_owner_can_complete(self, mock_db_session, make_result, make_court, regular_user, owner_user):
        booking = _booking(make_court(), regular_user.id, status="confirmed")
        mock_db_session.execute.return_value = make_result(scalar=booking)

        result = await self.service.update_booking(
            mock_db_session, booking.id, owner_user, BookingUpdate(status="completed")
        )
        assert result.status == "completed"

    @pytest.mark.asyncio
    async def test_stranger_gets_not_found(self, mock_db_session, make_result, make_court, regular_user, other_user):
        booking = _booking(make_court(), regular_user.id)
        mock_db_session.execute.return_value = make_result(scalar=booking)

        with pytest.raises(NotFoundError):
            await self.service.get_booking(mock_db_session, booking.id, other_user)


class TestAvailability:

    def setup_method(self):
        self.service = BookingService()

    @pytest.mark.asyncio
    async def test_free_court_is_available(self, mock_db_session, make_result, make_court, future_window):
        court = make_court()
        mock_db_session.get.return_value = court
        mock_db_session.execute.return_value = make_result(scalars=[])
        payload = AvailabilityCheckRequest(
            court_id=court.id, start_datetime=future_window[0], end_datetime=future_window[1]
        )

        result = await self.service.check_availability(mock_db_session, payload)
        assert result.available is True
        assert result.conflicting_bookings == []

    @pytest.mark.asyncio
    async def test_product_remaining_quantity(self, mock_db_session, make_product, future_window):
        product = make_product(quantity=5)
        mock_db_session.get.return_value = product
        payload = AvailabilityCheckRequest(
            product_id=product.id, start_datetime=future_window[0], end_datetime=future_window[1]
        )

        with patch("rentalhub.services.booking_service.rental_service") as mock_rentals:
            mock_rentals.reserved_quantity = AsyncMock(return_value=3)
            result = await self.service.check_availability(mock_db_session, payload)

        assert result.available is True
        assert result.reserved_quantity == 3
        assert result.remaining_quantity == 2

    @pytest.mark.asyncio
    async def test_fully_reserved_product_is_unavailable(self, mock_db_session, make_product, future_window):
        product = make_product(quantity=2)
        mock_db_session.get.return_value = product
        payload = AvailabilityCheckRequest(
            product_id=product.id, start_datetime=future_window[0], end_datetime=future_window[1]
        )

        with patch("rentalhub.services.booking_service.rental_service") as mock_rentals:
            mock_rentals.reserved_quantity = AsyncMock(return_value=2)
            result = await self.service.check_availability(mock_db_session, payload)

        assert result.available is False
        assert result.remaining_quantity == 0


class TestOverlapRule:
    """
    Runs `overlap_condition` against a throwaway SQLite `bookings` table
    holding one booking from 10:00 to 11:00.
    """

    EXISTING = (datetime(2030, 1, 1, 10), datetime(2030, 1, 1, 11))

    @pytest.fixture
    def engine(self):
        engine = create_engine("sqlite://")
        slots = Table(
            "bookings",
            MetaData(),
            Column("id", Integer, primary_key=True),
            Column("start_datetime", DateTime),
            Column("end_datetime", DateTime),
        )
        slots.create(engine)
        with engine.begin() as conn:
            conn.execute(
                insert(slots).values(id=1, start_datetime=self.EXISTING[0], end_datetime=self.EXISTING[1])
            )
        yield engine
        engine.dispose()

    def _overlaps(self, engine, start_hour, end_hour):
        start = datetime(2030, 1, 1) + timedelta(hours=start_hour)
        end = datetime(2030, 1, 1) + timedelta(hours=end_hour)
        with engine.connect() as conn:
            ids = conn.execute(select(literal_column("id")).where(overlap_condition(start, end))).scalars().all()
        return bool(ids)

    @pytest.mark.parametrize(
        "start_hour, end_hour",
        [(11, 12), (9, 10), (8, 9), (12, 13)],
        ids=["back-to-back-after", "back-to-back-before", "well-before", "well-after"],
    )
    def test_touching_or_separate_slots_are_free(self, engine, start_hour, end_hour):
        assert self._overlaps(engine, start_hour, end_hour) is False

    @pytest.mark.parametrize(
        "start_hour, end_hour",
        [(10, 11), (10.5, 11.5), (9.5, 10.5), (9, 12), (10.25, 10.75)],
        ids=["identical", "covers-start", "covers-end", "contains-existing", "inside-existing"],
    )
    def test_overlapping_slots_conflict(self, engine, start_hour, end_hour):
        assert self._overlaps(engine, start_hour, end_hour) is True
