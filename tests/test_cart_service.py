"""
RentalHub Backend — Cart Service Unit Tests
=============================================

What we test:
    ✅ Line pricing (daily rate × days × quantity) and deposit
    ✅ Cart summary totals
    ✅ Add: inactive product, past dates, duration limits, stock, merging
    ✅ Update/clear scoped to the caller's own items
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from rentalhub.exceptions import NotFoundError, ValidationError
from rentalhub.models.cart import CartItem
from rentalhub.schemas.cart import CartItemCreate, CartItemUpdate
from rentalhub.services.cart_service import CartService, price_cart_item, summarize


def _today():
    return datetime.now(timezone.utc).date()


def _cart_item(user_id, product, start=None, days=3, quantity=2):
    start = start or _today() + timedelta(days=1)
    now = datetime.now(timezone.utc)
    return CartItem(
        id=uuid4(),
        user_id=user_id,
        product_id=product.id,
        product=product,
        start_date=start,
        end_date=start + timedelta(days=days),
        quantity=quantity,
        created_at=now,
        updated_at=now,
    )


class TestCartPricing:

    def test_line_price_and_deposit(self, make_product, regular_user):
        product = make_product(price_per_day=Decimal("200.00"), deposit_amount=Decimal("500.00"))
        line = price_cart_item(_cart_item(regular_user.id, product), product)

        assert line.duration_days == 3
        assert line.unit_price == 600.0
        assert line.item_total == 1200.0
        assert line.item_deposit == 1000.0

    def test_summary_totals(self, make_product, regular_user):
        racket = make_product(price_per_day=Decimal("100.00"), deposit_amount=Decimal("50.00"))
        ball = make_product(name="Football", price_per_day=Decimal("40.00"), deposit_amount=Decimal("0"))
        lines = [
            price_cart_item(_cart_item(regular_user.id, racket, days=2, quantity=1), racket),
            price_cart_item(_cart_item(regular_user.id, ball, days=5, quantity=3), ball),
        ]

        summary = summarize(lines)

        assert summary.total_items == 4
        assert summary.subtotal == 800.0
        assert summary.deposit == 50.0
        assert summary.total == 850.0
        assert summary.unique_products == 2

    def test_empty_summary(self):
        summary = summarize([])
        assert summary.total == 0
        assert summary.unique_products == 0


class TestAddToCart:

    def setup_method(self):
        self.service = CartService()

    def _payload(self, product_id, start=None, days=3, quantity=1):
        start = start or _today() + timedelta(days=1)
        return CartItemCreate(
            product_id=product_id, start_date=start, end_date=start + timedelta(days=days), quantity=quantity
        )

    @pytest.mark.asyncio
    async def test_inactive_product_is_not_found(self, mock_db_session, make_product, regular_user):
        product = make_product(is_active=False)
        mock_db_session.get.return_value = product

        with pytest.raises(NotFoundError):
            await self.service.add_item(mock_db_session, regular_user, self._payload(product.id))

    @pytest.mark.asyncio
    async def test_past_start_is_rejected(self, mock_db_session, make_result, make_product, regular_user):
        product = make_product()
        mock_db_session.get.return_value = product
        mock_db_session.execute.return_value = make_result(scalar=None)

        with pytest.raises(ValidationError) as exc_info:
            await self.service.add_item(
                mock_db_session, regular_user, self._payload(product.id, start=_today() - timedelta(days=2))
            )
        assert exc_info.value.field == "start_date"

    @pytest.mark.asyncio
    async def test_duration_above_maximum(self, mock_db_session, make_result, make_product, regular_user):
        product = make_product(maximum_rental_days=7)
        mock_db_session.get.return_value = product
        mock_db_session.execute.return_value = make_result(scalar=None)

        with pytest.raises(ValidationError) as exc_info:
            await self.service.add_item(mock_db_session, regular_user, self._payload(product.id, days=10))
        assert exc_info.value.context["duration_days"] == 10

    @pytest.mark.asyncio
    async def test_quantity_above_stock(self, mock_db_session, make_result, make_product, regular_user):
        product = make_product(quantity=2, available_quantity=2)
        mock_db_session.get.return_value = product
        mock_db_session.execute.return_value = make_result(scalar=None)

        with pytest.raises(ValidationError) as exc_info:
            await self.service.add_item(mock_db_session, regular_user, self._payload(product.id, quantity=3))
        assert exc_info.value.code == "INSUFFICIENT_QUANTITY"
        assert exc_info.value.context["stock"] == 2

    @pytest.mark.asyncio
    async def test_units_out_on_rental_do_not_block_the_cart(
        self, mock_db_session, make_result, make_product, regular_user
    ):
        # The cart checks stock; available units are checked at checkout.
        product = make_product(quantity=5, available_quantity=1)
        mock_db_session.get.return_value = product
        mock_db_session.execute.return_value = make_result(scalar=None)

        line = await self.service.add_item(mock_db_session, regular_user, self._payload(product.id, quantity=3))

        assert line.quantity == 3

    @pytest.mark.asyncio
    async def test_new_item_is_added(self, mock_db_session, make_result, make_product, regular_user):
        product = make_product()
        mock_db_session.get.return_value = product
        mock_db_session.execute.return_value = make_result(scalar=None)

        line = await self.service.add_item(mock_db_session, regular_user, self._payload(product.id, quantity=2))

        mock_db_session.add.assert_called_once()
        assert line.quantity == 2
        assert line.id is not None
        assert line.product.id == product.id

    @pytest.mark.asyncio
    async def test_same_product_and_dates_merge(self, mock_db_session, make_result, make_product, regular_user):
        product = make_product()
        start = _today() + timedelta(days=1)
        existing = _cart_item(regular_user.id, product, start=start, quantity=1)
        mock_db_session.get.return_value = product
        mock_db_session.execute.return_value = make_result(scalar=existing)

        line = await self.service.add_item(
            mock_db_session, regular_user, self._payload(product.id, start=start, quantity=2)
        )

        mock_db_session.add.assert_not_called()
        assert line.id == existing.id
        assert existing.quantity == 3


class TestCartItems:

    def setup_method(self):
        self.service = CartService()

    @pytest.mark.asyncio
    async def test_update_other_users_item_is_not_found(self, mock_db_session, make_result, regular_user):
        mock_db_session.execute.return_value = make_result(scalar=None)

        with pytest.raises(NotFoundError):
            await self.service.update_item(mock_db_session, uuid4(), regular_user, CartItemUpdate(quantity=1))

    @pytest.mark.asyncio
    async def test_update_quantity(self, mock_db_session, make_result, make_product, regular_user):
        product = make_product()
        item = _cart_item(regular_user.id, product, quantity=1)
        mock_db_session.execute.return_value = make_result(scalar=item)

        line = await self.service.update_item(mock_db_session, item.id, regular_user, CartItemUpdate(quantity=4))

        assert line.quantity == 4
        assert line.item_total == 2400.0

    @pytest.mark.asyncio
    async def test_get_cart_skips_deleted_products(self, mock_db_session, make_result, make_product, regular_user):
        product = make_product()
        kept = _cart_item(regular_user.id, product)
        orphan = _cart_item(regular_user.id, product)
        orphan.product = None
        mock_db_session.execute.return_value = make_result(scalars=[kept, orphan])

        cart = await self.service.get_cart(mock_db_session, regular_user)

        assert [line.id for line in cart.items] == [kept.id]
        assert cart.summary.total_items == 2

    @pytest.mark.asyncio
    async def test_clear_returns_removed_count(self, mock_db_session, make_result, regular_user):
        mock_db_session.execute.return_value = make_result(rowcount=3)

        assert await self.service.clear(mock_db_session, regular_user) == 3


def test_cart_dates_are_plain_dates():
    payload = CartItemCreate(product_id=uuid4(), start_date=date(2030, 5, 1), end_date=date(2030, 5, 4))
    assert payload.quantity == 1
