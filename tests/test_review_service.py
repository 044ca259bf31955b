"""
RentalHub Backend — Review Service Unit Tests
===============================================

What we test:
    ✅ Reviews tied to a rental require the author's returned order, once
    ✅ Reviews without a rental are limited to one per product per 30 days
    ✅ Product rating aggregate is recomputed after every write
    ✅ Edit window, author-only edits, author-or-admin deletes
    ✅ Star distribution keyed "1".."5"
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from rentalhub.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from rentalhub.models.product import Product
from rentalhub.models.rental import RentalOrder
from rentalhub.models.review import Review
from rentalhub.schemas.review import ReviewCreate, ReviewUpdate
from rentalhub.services.review_service import ReviewService, refresh_product_rating


def _review(user_id, product_id, created_at=None, rating=4):
    created_at = created_at or datetime.now(timezone.utc)
    return Review(
        id=uuid4(),
        user_id=user_id,
        product_id=product_id,
        rating=rating,
        title="Solid racket",
        comment="Strings held up fine",
        created_at=created_at,
        updated_at=created_at,
    )


def _order(user_id, status):
    now = datetime.now(timezone.utc)
    return RentalOrder(
        id=uuid4(),
        user_id=user_id,
        start_date=now - timedelta(days=5),
        end_date=now - timedelta(days=2),
        status=status,
        total_amount=Decimal("600.00"),
        deposit_amount=Decimal("0"),
    )


def _getter(mapping):
    """side_effect for session.get() that answers by model class."""

    def _get(model, key):
        return mapping.get(model)

    return _get


class TestRatingAggregate:

    @pytest.mark.asyncio
    async def test_rating_is_averaged_to_one_decimal(self, mock_db_session, make_result, make_product):
        product = make_product()
        mock_db_session.execute.return_value = make_result(rows=[(Decimal("4.333333"), 3)])
        mock_db_session.get.return_value = product

        await refresh_product_rating(mock_db_session, product.id)

        assert product.rating == Decimal("4.3")
        assert product.total_reviews == 3

    @pytest.mark.asyncio
    async def test_no_reviews_resets_rating(self, mock_db_session, make_result, make_product):
        product = make_product(rating=Decimal("3.5"), total_reviews=2)
        mock_db_session.execute.return_value = make_result(rows=[(None, 0)])
        mock_db_session.get.return_value = product

        await refresh_product_rating(mock_db_session, product.id)

        assert product.rating == Decimal("0")
        assert product.total_reviews == 0


class TestCreateReview:

    def setup_method(self):
        self.service = ReviewService()

    @pytest.mark.asyncio
    async def test_unknown_product(self, mock_db_session, regular_user):
        with pytest.raises(NotFoundError):
            await self.service.create_review(
                mock_db_session, regular_user, ReviewCreate(product_id=uuid4(), rating=5)
            )

    @pytest.mark.asyncio
    async def test_someone_elses_rental_is_not_found(self, mock_db_session, make_product, regular_user, other_user):
        product = make_product()
        order = _order(other_user.id, "returned")
        mock_db_session.get.side_effect = _getter({Product: product, RentalOrder: order})

        with pytest.raises(NotFoundError):
            await self.service.create_review(
                mock_db_session,
                regular_user,
                ReviewCreate(product_id=product.id, rating=5, rental_order_id=order.id),
            )

    @pytest.mark.asyncio
    async def test_rental_must_be_returned(self, mock_db_session, make_product, regular_user):
        product = make_product()
        order = _order(regular_user.id, "active")
        mock_db_session.get.side_effect = _getter({Product: product, RentalOrder: order})

        with pytest.raises(ValidationError) as exc_info:
            await self.service.create_review(
                mock_db_session,
                regular_user,
                ReviewCreate(product_id=product.id, rating=5, rental_order_id=order.id),
            )
        assert exc_info.value.message == "Can only review completed rentals"

    @pytest.mark.asyncio
    async def test_rental_reviewed_once(self, mock_db_session, make_result, make_product, regular_user):
        product = make_product()
        order = _order(regular_user.id, "returned")
        mock_db_session.get.side_effect = _getter({Product: product, RentalOrder: order})
        mock_db_session.execute.return_value = make_result(scalar=uuid4())

        with pytest.raises(ValidationError):
            await self.service.create_review(
                mock_db_session,
                regular_user,
                ReviewCreate(product_id=product.id, rating=4, rental_order_id=order.id),
            )
        mock_db_session.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_recent_review_without_rental_is_duplicate(self, mock_db_session, make_result, make_product, regular_user):
        product = make_product()
        mock_db_session.get.return_value = product
        mock_db_session.execute.return_value = make_result(scalar=1)

        with pytest.raises(ValidationError) as exc_info:
            await self.service.create_review(
                mock_db_session, regular_user, ReviewCreate(product_id=product.id, rating=3)
            )
        assert exc_info.value.field == "product_id"

    @pytest.mark.asyncio
    async def test_creates_review_and_refreshes_rating(self, mock_db_session, make_result, make_product, regular_user):
        product = make_product()
        mock_db_session.get.return_value = product
        mock_db_session.execute.side_effect = [
            make_result(scalar=0),
            make_result(rows=[(Decimal("5"), 1)]),
        ]

        result = await self.service.create_review(
            mock_db_session,
            regular_user,
            ReviewCreate(product_id=product.id, rating=5, title="Great", comment="Like new"),
        )

        assert result.rating == 5
        assert result.user_name == regular_user.full_name
        assert result.rental_order_id is None
        assert product.rating == Decimal("5.0")
        assert product.total_reviews == 1


class TestEditAndDelete:

    def setup_method(self):
        self.service = ReviewService()

    @pytest.mark.asyncio
    async def test_only_author_can_edit(self, mock_db_session, regular_user, other_user):
        mock_db_session.get.return_value = _review(regular_user.id, uuid4())

        with pytest.raises(NotFoundError):
            await self.service.update_review(mock_db_session, uuid4(), other_user, ReviewUpdate(rating=1))

    @pytest.mark.asyncio
    async def test_edit_window_closes_after_a_day(self, mock_db_session, regular_user):
        mock_db_session.get.return_value = _review(
            regular_user.id, uuid4(), created_at=datetime.now(timezone.utc) - timedelta(hours=25)
        )

        with pytest.raises(ValidationError):
            await self.service.update_review(mock_db_session, uuid4(), regular_user, ReviewUpdate(rating=1))

    @pytest.mark.asyncio
    async def test_edit_updates_fields(self, mock_db_session, make_result, make_product, regular_user):
        product = make_product()
        review = _review(regular_user.id, product.id)
        mock_db_session.get.side_effect = _getter({Review: review, Product: product})
        mock_db_session.execute.return_value = make_result(rows=[(Decimal("2"), 1)])

        result = await self.service.update_review(
            mock_db_session, review.id, regular_user, ReviewUpdate(rating=2, comment="Grip wore out")
        )

        assert result.rating == 2
        assert result.comment == "Grip wore out"
        assert result.title == "Solid racket"
        assert product.rating == Decimal("2.0")

    @pytest.mark.asyncio
    async def test_stranger_cannot_delete(self, mock_db_session, regular_user, other_user):
        mock_db_session.get.return_value = _review(regular_user.id, uuid4())

        with pytest.raises(PermissionDeniedError):
            await self.service.delete_review(mock_db_session, uuid4(), other_user)
        mock_db_session.delete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_admin_can_delete(self, mock_db_session, make_result, regular_user, admin_user):
        review = _review(regular_user.id, uuid4())
        mock_db_session.get.side_effect = _getter({Review: review})
        mock_db_session.execute.return_value = make_result(rows=[(None, 0)])

        await self.service.delete_review(mock_db_session, review.id, admin_user)
        mock_db_session.delete.assert_awaited_once_with(review)


class TestReviewStats:

    @pytest.mark.asyncio
    async def test_distribution_covers_every_star(self, mock_db_session, make_result):
        mock_db_session.execute.return_value = make_result(rows=[(5, 3), (4, 1), (1, 1)])

        stats = await ReviewService().review_stats(mock_db_session, uuid4())

        assert stats.rating_distribution == {"1": 1, "2": 0, "3": 0, "4": 1, "5": 3}
        assert stats.total_reviews == 5
        assert stats.average_rating == 4.0
