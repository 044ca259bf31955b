"""
RentalHub Backend — Product Service (Equipment Catalogue)
==========================================================

What:  Product listing with filters/sorting, detail (recent reviews and
       current availability), create, update and soft delete.
Who:   routes/products.py.

Sorting:
    Only whitelisted columns may be sorted on; anything else silently
    falls back to created_at so user input never reaches ORDER BY.
"""

import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import distinct, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from rentalhub.dependencies import Pagination, is_owner_or_admin
from rentalhub.exceptions import DatabaseError, NotFoundError, RentalHubError, ValidationError
from rentalhub.models.mixins import apply_changes
from rentalhub.models.product import Product
from rentalhub.models.rental import (
    RENTAL_ACTIVE,
    RENTAL_CONFIRMED,
    RENTAL_DRAFT,
    RentalItem,
    RentalOrder,
)
from rentalhub.models.review import Review
from rentalhub.models.user import User
from rentalhub.schemas.product import (
    ProductAvailability,
    ProductCreate,
    ProductDetail,
    ProductResponse,
    ProductReviewItem,
    ProductUpdate,
)
from rentalhub.services.facility_service import facility_service

logger = logging.getLogger(__name__)

SORTABLE_COLUMNS = {
    "created_at": Product.created_at,
    "price_per_day": Product.price_per_day,
    "rating": Product.rating,
    "name": Product.name,
    "total_reviews": Product.total_reviews,
}
RECENT_REVIEWS_LIMIT = 10
# Rental states that block removing a product from the catalogue.
OPEN_RENTAL_STATUSES = (RENTAL_DRAFT, RENTAL_CONFIRMED, RENTAL_ACTIVE)

_PRICE_COLUMNS = {
    "hour": "price_per_hour",
    "day": "price_per_day",
    "week": "price_per_week",
    "month": "price_per_month",
}


class ProductService:

    async def list_products(
        self,
        db: AsyncSession,
        pagination: Pagination,
        category: Optional[str] = None,
        min_price: Optional[Decimal] = None,
        max_price: Optional[Decimal] = None,
        location: Optional[str] = None,
        available: bool = True,
        search: Optional[str] = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> Tuple[List[ProductResponse], int, List[str]]:
        """Returns (page, total, categories of active products)."""
        try:
            conditions = []
            if category and category != "all":
                conditions.append(Product.category == category)
            if min_price is not None:
                conditions.append(Product.price_per_day >= min_price)
            if max_price is not None:
                conditions.append(Product.price_per_day <= max_price)
            if location:
                conditions.append(Product.location.ilike(f"%{location}%"))
            if available:
                conditions.append(Product.is_active.is_(True))
            if search:
                pattern = f"%{search}%"
                conditions.append(
                    or_(
                        Product.name.ilike(pattern),
                        Product.description.ilike(pattern),
                        Product.category.ilike(pattern),
                    )
                )

            column = SORTABLE_COLUMNS.get(sort_by, Product.created_at)
            ordering = column.asc() if sort_order == "asc" else column.desc()

            result = await db.execute(
                select(Product)
                .where(*conditions)
                .order_by(ordering)
                .offset(pagination.offset)
                .limit(pagination.limit)
            )
            products = result.scalars().all()
            total = (
                await db.execute(select(func.count(Product.id)).where(*conditions))
            ).scalar() or 0

            categories = (
                await db.execute(
                    select(distinct(Product.category))
                    .where(Product.is_active.is_(True), Product.category.is_not(None))
                    .order_by(Product.category)
                )
            ).scalars().all()

            return [ProductResponse.model_validate(p) for p in products], total, list(categories)

        except Exception as e:
            logger.error("Database error listing products: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve products. Please try again.",
                context={"error_type": type(e).__name__},
            )

    async def _availability(self, db: AsyncSession, product_id: uuid.UUID) -> ProductAvailability:
        now = datetime.now(timezone.utc)
        result = await db.execute(
            select(func.count(distinct(RentalOrder.id)), func.min(RentalOrder.end_date))
            .join(RentalItem, RentalItem.rental_order_id == RentalOrder.id)
            .where(
                RentalItem.product_id == product_id,
                RentalOrder.status.in_((RENTAL_CONFIRMED, RENTAL_ACTIVE)),
                RentalOrder.start_date <= now,
                RentalOrder.end_date >= now,
            )
        )
        active_rentals, next_free = result.one()
        active_rentals = active_rentals or 0
        return ProductAvailability(
            is_currently_available=active_rentals == 0,
            active_rentals=active_rentals,
            next_available_date=next_free if active_rentals else None,
        )

    async def get_product(
        self, db: AsyncSession, product_id: uuid.UUID, user: Optional[User] = None
    ) -> ProductDetail:
        result = await db.execute(
            select(Product)
            .options(selectinload(Product.facility))
            .where(Product.id == product_id)
        )
        product = result.scalar_one_or_none()
        if product is None:
            raise NotFoundError(resource="product", resource_id=str(product_id))
        if not product.is_active and not (
            user is not None and is_owner_or_admin(user, product.facility.owner_id)
        ):
            raise NotFoundError(resource="product", resource_id=str(product_id))

        rows = (
            await db.execute(
                select(Review, User.full_name)
                .join(User, Review.user_id == User.id)
                .where(Review.product_id == product_id)
                .order_by(Review.created_at.desc())
                .limit(RECENT_REVIEWS_LIMIT)
            )
        ).all()
        reviews = [
            ProductReviewItem(
                id=review.id,
                rating=review.rating,
                title=review.title,
                comment=review.comment,
                user_name=full_name,
                created_at=review.created_at,
            )
            for review, full_name in rows
        ]

        availability = await self._availability(db, product_id)
        # Built from the plain response so the unloaded `reviews` relationship is never touched.
        return ProductDetail(
            **ProductResponse.model_validate(product).model_dump(),
            reviews=reviews,
            availability=availability,
        )

    async def _get_product_for_owner(
        self, db: AsyncSession, product_id: uuid.UUID, user: User
    ) -> Product:
        product = await db.get(Product, product_id)
        if product is None:
            raise NotFoundError(resource="product", resource_id=str(product_id))
        await facility_service.get_facility_for_owner(db, product.facility_id, user)
        return product

    async def create_product(
        self, db: AsyncSession, user: User, payload: ProductCreate
    ) -> ProductResponse:
        await facility_service.get_facility_for_owner(db, payload.facility_id, user)
        try:
            data = payload.model_dump(
                mode="json", exclude={"facility_id", "pricing", "deposit_amount"}
            )
            product = Product(
                facility_id=payload.facility_id,
                deposit_amount=payload.deposit_amount,
                available_quantity=payload.quantity,
                rating=Decimal("0"),
                total_reviews=0,
                **data,
            )
            for tier, column in _PRICE_COLUMNS.items():
                setattr(product, column, getattr(payload.pricing, tier))

            db.add(product)
            await db.flush()
            await db.refresh(product)
            logger.info(
                "Product created: %s in facility %s (stock=%d)",
                product.id, product.facility_id, product.quantity,
            )
            return ProductResponse.model_validate(product)
        except RentalHubError:
            raise
        except Exception as e:
            logger.error("Failed to create product: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not create the product. Please try again.",
                context={"error_type": type(e).__name__},
            )

    async def update_product(
        self,
        db: AsyncSession,
        product_id: uuid.UUID,
        user: User,
        payload: ProductUpdate,
    ) -> ProductResponse:
        product = await self._get_product_for_owner(db, product_id, user)

        changes = payload.model_dump(mode="json", exclude_unset=True, exclude={"pricing", "deposit_amount"})
        if "deposit_amount" in payload.model_fields_set and payload.deposit_amount is not None:
            product.deposit_amount = payload.deposit_amount
        if payload.pricing is not None:
            for tier in payload.pricing.model_fields_set:
                setattr(product, _PRICE_COLUMNS[tier], getattr(payload.pricing, tier))
            if product.price_per_day is None:
                raise ValidationError(message="A daily price is required", field="pricing.day")

        if "quantity" in changes and changes["quantity"] is not None:
            # Units currently out stay out; the rest become available.
            out_on_rental = product.quantity - product.available_quantity
            new_quantity = changes.pop("quantity")
            product.quantity = new_quantity
            product.available_quantity = max(new_quantity - out_on_rental, 0)

        minimum = changes.get("minimum_rental_days") or product.minimum_rental_days
        maximum = changes.get("maximum_rental_days") or product.maximum_rental_days
        if maximum < minimum:
            raise ValidationError(
                message="maximum_rental_days must be >= minimum_rental_days",
                field="maximum_rental_days",
            )

        apply_changes(product, changes)

        await db.flush()
        await db.refresh(product)
        logger.info("Product updated: %s fields=%s", product.id, sorted(payload.model_fields_set))
        return ProductResponse.model_validate(product)

    async def delete_product(self, db: AsyncSession, product_id: uuid.UUID, user: User) -> None:
        product = await self._get_product_for_owner(db, product_id, user)
        open_rentals = (
            await db.execute(
                select(func.count(distinct(RentalOrder.id)))
                .join(RentalItem, RentalItem.rental_order_id == RentalOrder.id)
                .where(
                    RentalItem.product_id == product_id,
                    RentalOrder.status.in_(OPEN_RENTAL_STATUSES),
                )
            )
        ).scalar() or 0
        if open_rentals:
            raise ValidationError(
                message="Cannot delete a product with open rental orders",
                field="product_id",
                context={"open_rentals": open_rentals},
            )
        product.is_active = False
        await db.flush()
        logger.info("Product deactivated: %s", product.id)


product_service = ProductService()
