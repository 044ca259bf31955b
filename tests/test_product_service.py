"""
RentalHub Backend — Product Service Unit Tests
================================================

What we test:
    ✅ Create: only the facility owner, pricing tiers flattened, stock = quantity
    ✅ Update: quantity change keeps units on rental out, rental-day bounds
    ✅ Detail: inactive products hidden from the public, reviews + availability
    ✅ Delete: blocked by open rentals, otherwise soft delete
"""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from rentalhub.dependencies import Pagination
from rentalhub.exceptions import DatabaseError, NotFoundError, PermissionDeniedError, ValidationError
from rentalhub.models.facility import Facility
from rentalhub.models.product import Product
from rentalhub.models.review import Review
from rentalhub.schemas.product import PricingIn, PricingUpdate, ProductCreate, ProductUpdate
from rentalhub.services.product_service import ProductService


def _getter(mapping):
    def _get(model, key):
        return mapping.get(model)

    return _get


class TestCreateProduct:

    def setup_method(self):
        self.service = ProductService()

    def _payload(self, facility_id):
        return ProductCreate(
            facility_id=facility_id,
            name="Tennis Racket",
            category="tennis",
            pricing=PricingIn(day=Decimal("150"), week=Decimal("800")),
            deposit_amount=Decimal("300"),
            quantity=4,
            images=["https://cdn.example.com/racket.jpg"],
        )

    @pytest.mark.asyncio
    async def test_owner_creates_product(self, mock_db_session, make_facility, owner_user):
        facility = make_facility()
        mock_db_session.get.side_effect = _getter({Facility: facility})

        result = await self.service.create_product(mock_db_session, owner_user, self._payload(facility.id))

        assert result.facility_id == facility.id
        assert result.pricing.day == 150.0
        assert result.pricing.week == 800.0
        assert result.pricing.hour is None
        assert result.available_quantity == 4
        assert result.rating == 0
        assert result.images == ["https://cdn.example.com/racket.jpg"]

    @pytest.mark.asyncio
    async def test_non_owner_is_denied(self, mock_db_session, make_facility, regular_user):
        facility = make_facility()
        mock_db_session.get.side_effect = _getter({Facility: facility})

        with pytest.raises(PermissionDeniedError):
            await self.service.create_product(mock_db_session, regular_user, self._payload(facility.id))
        mock_db_session.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_facility(self, mock_db_session, owner_user):
        with pytest.raises(NotFoundError):
            await self.service.create_product(mock_db_session, owner_user, self._payload(uuid4()))


class TestUpdateProduct:

    def setup_method(self):
        self.service = ProductService()

    @pytest.mark.asyncio
    async def test_quantity_change_keeps_rented_units_out(self, mock_db_session, make_product, owner_user):
        product = make_product(quantity=10, available_quantity=7)
        mock_db_session.get.side_effect = _getter({Product: product, Facility: product.facility})

        result = await self.service.update_product(mock_db_session, product.id, owner_user, ProductUpdate(quantity=5))

        assert result.quantity == 5
        assert result.available_quantity == 2

    @pytest.mark.asyncio
    async def test_shrinking_below_rented_floors_at_zero(self, mock_db_session, make_product, owner_user):
        product = make_product(quantity=10, available_quantity=2)
        mock_db_session.get.side_effect = _getter({Product: product, Facility: product.facility})

        result = await self.service.update_product(mock_db_session, product.id, owner_user, ProductUpdate(quantity=4))

        assert result.available_quantity == 0

    @pytest.mark.asyncio
    async def test_maximum_below_minimum_is_rejected(self, mock_db_session, make_product, owner_user):
        product = make_product(minimum_rental_days=3)
        mock_db_session.get.side_effect = _getter({Product: product, Facility: product.facility})

        with pytest.raises(ValidationError) as exc_info:
            await self.service.update_product(
                mock_db_session, product.id, owner_user, ProductUpdate(maximum_rental_days=2)
            )
        assert exc_info.value.field == "maximum_rental_days"

    @pytest.mark.asyncio
    async def test_partial_pricing_update(self, mock_db_session, make_product, owner_user):
        product = make_product(price_per_week=Decimal("900"))
        mock_db_session.get.side_effect = _getter({Product: product, Facility: product.facility})

        result = await self.service.update_product(
            mock_db_session, product.id, owner_user, ProductUpdate(pricing=PricingUpdate(hour=Decimal("25")))
        )

        assert result.pricing.hour == 25.0
        assert result.pricing.day == 200.0
        assert result.pricing.week == 900.0

    @pytest.mark.asyncio
    async def test_read_only_fields_are_ignored(self, mock_db_session, make_product, owner_user):
        product = make_product(rating=Decimal("4.5"))
        mock_db_session.get.side_effect = _getter({Product: product, Facility: product.facility})

        payload = ProductUpdate.model_validate({"rating": 1, "total_reviews": 99, "name": "Pro Racket"})
        result = await self.service.update_product(mock_db_session, product.id, owner_user, payload)

        assert result.name == "Pro Racket"
        assert result.rating == 4.5
        assert result.total_reviews == 0

    @pytest.mark.asyncio
    async def test_null_for_required_fields_is_ignored(self, mock_db_session, make_product, owner_user):
        product = make_product(tags=["indoor"], description="Carbon frame")
        mock_db_session.get.side_effect = _getter({Product: product, Facility: product.facility})

        payload = ProductUpdate.model_validate(
            {"tags": None, "quantity": None, "minimum_rental_days": None, "images": None, "description": None}
        )
        result = await self.service.update_product(mock_db_session, product.id, owner_user, payload)

        assert product.tags == ["indoor"]
        assert product.quantity == 10
        assert product.minimum_rental_days == 1
        assert product.images == []
        assert result.description is None


class TestGetProduct:

    def setup_method(self):
        self.service = ProductService()

    @pytest.mark.asyncio
    async def test_inactive_product_hidden_from_public(self, mock_db_session, make_result, make_product, regular_user):
        mock_db_session.execute.return_value = make_result(scalar=make_product(is_active=False))

        with pytest.raises(NotFoundError):
            await self.service.get_product(mock_db_session, uuid4(), regular_user)

    @pytest.mark.asyncio
    async def test_detail_has_reviews_and_availability(
        self, mock_db_session, make_result, make_product, regular_user
    ):
        product = make_product()
        review = Review(
            id=uuid4(),
            product_id=product.id,
            user_id=regular_user.id,
            rating=5,
            comment="Great grip",
            created_at=datetime.now(timezone.utc),
        )
        mock_db_session.execute.side_effect = [
            make_result(scalar=product),
            make_result(rows=[(review, regular_user.full_name)]),
            make_result(rows=[(0, None)]),
        ]

        detail = await self.service.get_product(mock_db_session, product.id)

        assert detail.name == product.name
        assert detail.reviews[0].user_name == regular_user.full_name
        assert detail.availability.is_currently_available is True
        assert detail.availability.next_available_date is None


class TestDeleteProduct:

    def setup_method(self):
        self.service = ProductService()

    @pytest.mark.asyncio
    async def test_open_rentals_block_delete(self, mock_db_session, make_result, make_product, owner_user):
        product = make_product()
        mock_db_session.get.side_effect = _getter({Product: product, Facility: product.facility})
        mock_db_session.execute.return_value = make_result(scalar=2)

        with pytest.raises(ValidationError) as exc_info:
            await self.service.delete_product(mock_db_session, product.id, owner_user)
        assert exc_info.value.context["open_rentals"] == 2
        assert product.is_active is True

    @pytest.mark.asyncio
    async def test_delete_is_soft(self, mock_db_session, make_result, make_product, owner_user):
        product = make_product()
        mock_db_session.get.side_effect = _getter({Product: product, Facility: product.facility})
        mock_db_session.execute.return_value = make_result(scalar=0)

        await self.service.delete_product(mock_db_session, product.id, owner_user)

        assert product.is_active is False
        mock_db_session.delete.assert_not_awaited()


class TestListProducts:

    @pytest.mark.asyncio
    async def test_database_failure_is_wrapped(self, mock_db_session):
        mock_db_session.execute.side_effect = ConnectionError("connection reset")

        with pytest.raises(DatabaseError):
            await ProductService().list_products(mock_db_session, Pagination(page=1, limit=20))
