"""
RentalHub Backend — Cart Service
==================================

What:  The caller's rental cart. Items are priced from the live product
       row every time the cart is read (price_per_day × days).
Who:   routes/rentals.py (the /api/cart endpoints).

Every method is scoped to the calling user; another user's item id is
indistinguishable from a missing one (404).
"""

import logging
import uuid
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from rentalhub.exceptions import NotFoundError, ValidationError
from rentalhub.models.cart import CartItem
from rentalhub.models.product import Product
from rentalhub.models.user import User
from rentalhub.schemas.cart import (
    CartItemCreate,
    CartItemResponse,
    CartItemUpdate,
    CartResponse,
    CartSummary,
)
from rentalhub.schemas.product import ProductSummary

logger = logging.getLogger(__name__)

_CENT = Decimal("0.01")


def _today() -> date:
    return datetime.now(timezone.utc).date()


def price_cart_item(item: CartItem, product: Product) -> CartItemResponse:
    days = (item.end_date - item.start_date).days
    unit_price = (Decimal(product.price_per_day) * days).quantize(_CENT, rounding=ROUND_HALF_UP)
    item_total = unit_price * item.quantity
    item_deposit = Decimal(product.deposit_amount or 0) * item.quantity
    return CartItemResponse(
        id=item.id,
        product_id=item.product_id,
        start_date=item.start_date,
        end_date=item.end_date,
        quantity=item.quantity,
        duration_days=days,
        unit_price=float(unit_price),
        item_total=float(item_total),
        item_deposit=float(item_deposit),
        product=ProductSummary.model_validate(product),
        created_at=item.created_at,
    )


def summarize(items: List[CartItemResponse]) -> CartSummary:
    subtotal = round(sum(i.item_total for i in items), 2)
    deposit = round(sum(i.item_deposit for i in items), 2)
    return CartSummary(
        total_items=sum(i.quantity for i in items),
        subtotal=subtotal,
        deposit=deposit,
        total=round(subtotal + deposit, 2),
        unique_products=len({i.product_id for i in items}),
    )


class CartService:

    def _validate_item(self, product: Product, start: date, end: date, quantity: int) -> None:
        if start < _today():
            raise ValidationError(message="Start date cannot be in the past", field="start_date")
        if end <= start:
            raise ValidationError(message="End date must be after start date", field="end_date")

        days = (end - start).days
        if days < product.minimum_rental_days or days > product.maximum_rental_days:
            raise ValidationError(
                message=(
                    f"Rental duration must be between {product.minimum_rental_days} "
                    f"and {product.maximum_rental_days} days"
                ),
                field="end_date",
                context={"duration_days": days},
            )
        if quantity > product.quantity:
            raise ValidationError(
                message=f"Only {product.quantity} unit(s) of '{product.name}' available",
                field="quantity",
                code="INSUFFICIENT_QUANTITY",
                context={"requested": quantity, "stock": product.quantity},
            )

    async def _active_product(self, db: AsyncSession, product_id: uuid.UUID) -> Product:
        product = await db.get(Product, product_id)
        if product is None or not product.is_active:
            raise NotFoundError(
                resource="product",
                resource_id=str(product_id),
                message="Product not found or not available",
            )
        return product

    async def _own_item(self, db: AsyncSession, item_id: uuid.UUID, user: User) -> CartItem:
        result = await db.execute(
            select(CartItem)
            .options(selectinload(CartItem.product))
            .where(CartItem.id == item_id, CartItem.user_id == user.id)
        )
        item = result.scalar_one_or_none()
        if item is None:
            raise NotFoundError(resource="cart item", resource_id=str(item_id))
        return item

    async def get_cart(self, db: AsyncSession, user: User) -> CartResponse:
        result = await db.execute(
            select(CartItem)
            .options(selectinload(CartItem.product))
            .where(CartItem.user_id == user.id)
            .order_by(CartItem.created_at.desc())
        )
        items = [
            price_cart_item(item, item.product)
            for item in result.scalars().all()
            if item.product is not None
        ]
        return CartResponse(items=items, summary=summarize(items))

    async def add_item(self, db: AsyncSession, user: User, payload: CartItemCreate) -> CartItemResponse:
        product = await self._active_product(db, payload.product_id)

        existing: Optional[CartItem] = (
            await db.execute(
                select(CartItem).where(
                    CartItem.user_id == user.id,
                    CartItem.product_id == payload.product_id,
                    CartItem.start_date == payload.start_date,
                    CartItem.end_date == payload.end_date,
                )
            )
        ).scalar_one_or_none()

        quantity = payload.quantity + (existing.quantity if existing else 0)
        self._validate_item(product, payload.start_date, payload.end_date, quantity)

        if existing is not None:
            existing.quantity = quantity
            item = existing
            logger.info("Cart item %s merged: quantity=%d", item.id, quantity)
        else:
            item = CartItem(
                user_id=user.id,
                product_id=product.id,
                start_date=payload.start_date,
                end_date=payload.end_date,
                quantity=quantity,
            )
            db.add(item)
        await db.flush()
        return price_cart_item(item, product)

    async def get_item(self, db: AsyncSession, item_id: uuid.UUID, user: User) -> CartItemResponse:
        item = await self._own_item(db, item_id, user)
        return price_cart_item(item, item.product)

    async def update_item(
        self, db: AsyncSession, item_id: uuid.UUID, user: User, payload: CartItemUpdate
    ) -> CartItemResponse:
        item = await self._own_item(db, item_id, user)
        product = item.product
        if product is None or not product.is_active:
            raise NotFoundError(resource="product", resource_id=str(item.product_id))

        start = payload.start_date or item.start_date
        end = payload.end_date or item.end_date
        quantity = payload.quantity or item.quantity
        self._validate_item(product, start, end, quantity)

        item.start_date, item.end_date, item.quantity = start, end, quantity
        await db.flush()
        return price_cart_item(item, product)

    async def remove_item(self, db: AsyncSession, item_id: uuid.UUID, user: User) -> None:
        item = await self._own_item(db, item_id, user)
        await db.delete(item)
        await db.flush()

    async def clear(self, db: AsyncSession, user: User) -> int:
        result = await db.execute(delete(CartItem).where(CartItem.user_id == user.id))
        logger.info("Cart cleared for user %s (%d items)", user.id, result.rowcount or 0)
        return result.rowcount or 0


cart_service = CartService()
