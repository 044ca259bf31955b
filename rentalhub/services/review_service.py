"""
RentalHub Backend — Review Service
====================================

What:  Product reviews and the product rating aggregate.
Who:   routes/reviews.py.

Rules:
    - A review tied to a rental order needs the order to be the author's
      and `returned`; each order can be reviewed once.
    - Without an order, one review per product per user per 30 days.
    - Authors may edit for 24 hours after posting.

Rating aggregate:
    Every write ends with refresh_product_rating(), which recomputes
    products.rating (avg, 1 decimal) and products.total_reviews from the
    reviews table. It is the only code path that writes those columns.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from rentalhub.dependencies import Pagination
from rentalhub.exceptions import (
    DatabaseError,
    NotFoundError,
    PermissionDeniedError,
    RentalHubError,
    ValidationError,
)
from rentalhub.models.product import Product
from rentalhub.models.rental import RENTAL_RETURNED, RentalOrder
from rentalhub.models.review import Review
from rentalhub.models.user import ROLE_ADMIN, User
from rentalhub.schemas.review import ReviewCreate, ReviewResponse, ReviewStats, ReviewUpdate

logger = logging.getLogger(__name__)

EDIT_WINDOW = timedelta(hours=24)
DUPLICATE_WINDOW = timedelta(days=30)


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _to_response(review: Review, user_name: Optional[str]) -> ReviewResponse:
    return ReviewResponse.model_validate(review).model_copy(update={"user_name": user_name})


async def refresh_product_rating(db: AsyncSession, product_id: uuid.UUID) -> None:
    """Recomputes a product's rating and review count from its reviews."""
    await db.flush()
    average, count = (
        await db.execute(
            select(func.avg(Review.rating), func.count(Review.id)).where(
                Review.product_id == product_id
            )
        )
    ).one()

    product = await db.get(Product, product_id)
    if product is None:
        return
    if count:
        product.rating = Decimal(str(average)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
    else:
        product.rating = Decimal("0")
    product.total_reviews = count or 0
    await db.flush()
    logger.debug("Product %s rating → %s (%d reviews)", product_id, product.rating, product.total_reviews)


class ReviewService:

    async def review_stats(self, db: AsyncSession, product_id: uuid.UUID) -> ReviewStats:
        rows = (
            await db.execute(
                select(Review.rating, func.count(Review.id))
                .where(Review.product_id == product_id)
                .group_by(Review.rating)
            )
        ).all()
        distribution: Dict[str, int] = {str(star): 0 for star in range(1, 6)}
        for rating, count in rows:
            distribution[str(rating)] = count
        total = sum(distribution.values())
        average = (
            sum(int(star) * count for star, count in distribution.items()) / total if total else 0.0
        )
        return ReviewStats(
            total_reviews=total,
            average_rating=round(average, 1),
            rating_distribution=distribution,
        )

    async def list_reviews(
        self,
        db: AsyncSession,
        pagination: Pagination,
        product_id: Optional[uuid.UUID] = None,
        user_id: Optional[uuid.UUID] = None,
        rating: Optional[int] = None,
        has_comment: Optional[bool] = None,
    ) -> Tuple[List[ReviewResponse], int, Optional[ReviewStats]]:
        try:
            conditions = []
            if product_id:
                conditions.append(Review.product_id == product_id)
            if user_id:
                conditions.append(Review.user_id == user_id)
            if rating is not None:
                conditions.append(Review.rating == rating)
            if has_comment is True:
                conditions.append(Review.comment.is_not(None))
                conditions.append(Review.comment != "")
            elif has_comment is False:
                conditions.append((Review.comment.is_(None)) | (Review.comment == ""))

            rows = (
                await db.execute(
                    select(Review, User.full_name)
                    .join(User, Review.user_id == User.id)
                    .where(*conditions)
                    .order_by(Review.created_at.desc())
                    .offset(pagination.offset)
                    .limit(pagination.limit)
                )
            ).all()
            total = (
                await db.execute(select(func.count(Review.id)).where(*conditions))
            ).scalar() or 0

            stats = await self.review_stats(db, product_id) if product_id else None
            return [_to_response(review, name) for review, name in rows], total, stats

        except Exception as e:
            logger.error("Database error listing reviews: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve reviews. Please try again.",
                context={"error_type": type(e).__name__},
            )

    async def get_review(self, db: AsyncSession, review_id: uuid.UUID) -> ReviewResponse:
        row = (
            await db.execute(
                select(Review, User.full_name)
                .join(User, Review.user_id == User.id)
                .where(Review.id == review_id)
            )
        ).first()
        if row is None:
            raise NotFoundError(resource="review", resource_id=str(review_id))
        review, name = row
        return _to_response(review, name)

    async def create_review(self, db: AsyncSession, user: User, payload: ReviewCreate) -> ReviewResponse:
        product = await db.get(Product, payload.product_id)
        if product is None:
            raise NotFoundError(resource="product", resource_id=str(payload.product_id))

        if payload.rental_order_id:
            order = await db.get(RentalOrder, payload.rental_order_id)
            if order is None or order.user_id != user.id:
                raise NotFoundError(resource="rental", resource_id=str(payload.rental_order_id))
            if order.status != RENTAL_RETURNED:
                raise ValidationError(message="Can only review completed rentals", field="rental_order_id")
            already = (
                await db.execute(
                    select(Review.id).where(Review.rental_order_id == payload.rental_order_id)
                )
            ).scalar_one_or_none()
            if already:
                raise ValidationError(
                    message="You have already reviewed this rental",
                    field="rental_order_id",
                )
        else:
            since = datetime.now(timezone.utc) - DUPLICATE_WINDOW
            recent = (
                await db.execute(
                    select(func.count(Review.id)).where(
                        Review.product_id == payload.product_id,
                        Review.user_id == user.id,
                        Review.created_at >= since,
                    )
                )
            ).scalar() or 0
            if recent:
                raise ValidationError(
                    message="You have already reviewed this product in the last 30 days",
                    field="product_id",
                )

        try:
            review = Review(user_id=user.id, **payload.model_dump())
            db.add(review)
            await db.flush()
        except IntegrityError:
            # Concurrent review of the same rental order.
            raise ValidationError(message="You have already reviewed this rental", field="rental_order_id")
        except RentalHubError:
            raise
        except Exception as e:
            logger.error("Failed to create review: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not save the review. Please try again.",
                context={"error_type": type(e).__name__},
            )

        await refresh_product_rating(db, payload.product_id)
        logger.info("Review %s created for product %s (rating=%d)", review.id, review.product_id, review.rating)
        return _to_response(review, user.full_name)

    async def update_review(
        self, db: AsyncSession, review_id: uuid.UUID, user: User, payload: ReviewUpdate
    ) -> ReviewResponse:
        review = await db.get(Review, review_id)
        if review is None or review.user_id != user.id:
            raise NotFoundError(resource="review", resource_id=str(review_id))
        if datetime.now(timezone.utc) - _as_utc(review.created_at) > EDIT_WINDOW:
            raise ValidationError(message="Reviews can only be edited within 24 hours of posting")

        changes = payload.model_dump(exclude_unset=True)
        for field, value in changes.items():
            if field == "rating" and value is None:
                continue
            setattr(review, field, value)

        await refresh_product_rating(db, review.product_id)
        return _to_response(review, user.full_name)

    async def delete_review(self, db: AsyncSession, review_id: uuid.UUID, user: User) -> None:
        review = await db.get(Review, review_id)
        if review is None:
            raise NotFoundError(resource="review", resource_id=str(review_id))
        if review.user_id != user.id and user.role != ROLE_ADMIN:
            raise PermissionDeniedError("You can only delete your own reviews")

        product_id = review.product_id
        await db.delete(review)
        await refresh_product_rating(db, product_id)
        logger.info("Review %s deleted by %s", review_id, user.id)


review_service = ReviewService()
