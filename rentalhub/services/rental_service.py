"""
RentalHub Backend — Rental Service (Equipment Rentals)
=======================================================

What:  Rental order checkout, tiered pricing, status transitions and the
       inventory bookkeeping tied to them.
Who:   routes/rentals.py; PaymentService (confirm after payment, cancel on
       refund); BookingService (product availability checks).

Pricing (per unit, first matching rule wins; d = ceil(days)):
    d >= 30 and monthly price  → month × ceil(d / 30)
    d >= 7  and weekly price   → week  × ceil(d / 7)
    daily price                → day   × d
    hourly price               → hour  × d × 24
    otherwise                  → 400

Inventory:
    available_quantity drops when an order becomes `active` (equipment
    handed over) and comes back when an active/overdue order is returned
    or cancelled. Draft and confirmed orders only check availability.
"""

import logging
import math
import uuid
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from rentalhub.dependencies import Pagination
from rentalhub.exceptions import (
    DatabaseError,
    InvalidStatusTransitionError,
    NotFoundError,
    PermissionDeniedError,
    RentalHubError,
    ValidationError,
)
from rentalhub.models.facility import Facility
from rentalhub.models.mixins import apply_changes
from rentalhub.models.product import Product
from rentalhub.models.rental import (
    RENTAL_ACTIVE,
    RENTAL_CANCELLED,
    RENTAL_CONFIRMED,
    RENTAL_DRAFT,
    RENTAL_OVERDUE,
    RENTAL_RETURNED,
    RentalItem,
    RentalOrder,
)
from rentalhub.models.user import ROLE_ADMIN, ROLE_OWNER, User
from rentalhub.schemas.rental import RentalCreate, RentalResponse, RentalUpdate

logger = logging.getLogger(__name__)

RENTAL_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    RENTAL_DRAFT: frozenset({RENTAL_CONFIRMED, RENTAL_CANCELLED}),
    RENTAL_CONFIRMED: frozenset({RENTAL_ACTIVE, RENTAL_CANCELLED}),
    RENTAL_ACTIVE: frozenset({RENTAL_RETURNED, RENTAL_OVERDUE}),
    RENTAL_OVERDUE: frozenset({RENTAL_RETURNED, RENTAL_CANCELLED}),
    RENTAL_RETURNED: frozenset(),
    RENTAL_CANCELLED: frozenset(),
}

# Orders whose items are physically out with the renter.
INVENTORY_HELD_STATUSES = frozenset({RENTAL_ACTIVE, RENTAL_OVERDUE})
# Orders counted against stock when checking a date window.
RESERVING_STATUSES = (RENTAL_CONFIRMED, RENTAL_ACTIVE)
DELETABLE_STATUSES = frozenset({RENTAL_DRAFT, RENTAL_CANCELLED})

_CENT = Decimal("0.01")


def rental_duration_days(start: datetime, end: datetime) -> int:
    return max(math.ceil((end - start).total_seconds() / 86400), 1)


def calculate_unit_price(product: Product, duration_days: int) -> Decimal:
    """Picks the cheapest applicable tier per the rules in the module docstring."""
    if duration_days >= 30 and product.price_per_month:
        price = Decimal(product.price_per_month) * math.ceil(duration_days / 30)
    elif duration_days >= 7 and product.price_per_week:
        price = Decimal(product.price_per_week) * math.ceil(duration_days / 7)
    elif product.price_per_day:
        price = Decimal(product.price_per_day) * duration_days
    elif product.price_per_hour:
        price = Decimal(product.price_per_hour) * duration_days * 24
    else:
        raise ValidationError(
            message=f"No pricing available for product '{product.name}'",
            field="items",
            context={"product_id": str(product.id)},
        )
    return price.quantize(_CENT, rounding=ROUND_HALF_UP)


def validate_rental_transition(current: str, requested: str) -> None:
    allowed = RENTAL_TRANSITIONS.get(current, frozenset())
    if requested not in allowed:
        raise InvalidStatusTransitionError("rental", current, requested, allowed)


class RentalService:

    # ── Queries ───────────────────────────────────────────────────────────

    def _visibility_condition(self, user: User):
        if user.role == ROLE_ADMIN:
            return None
        if user.role == ROLE_OWNER:
            owned_orders = (
                select(RentalItem.rental_order_id)
                .join(Product, RentalItem.product_id == Product.id)
                .join(Facility, Product.facility_id == Facility.id)
                .where(Facility.owner_id == user.id)
            )
            return RentalOrder.id.in_(owned_orders)
        return RentalOrder.user_id == user.id

    def _with_items(self, query):
        return query.options(
            selectinload(RentalOrder.items).selectinload(RentalItem.product)
        )

    async def list_rentals(
        self,
        db: AsyncSession,
        user: User,
        pagination: Pagination,
        status: Optional[str] = None,
    ) -> Tuple[List[RentalResponse], int]:
        conditions = []
        visibility = self._visibility_condition(user)
        if visibility is not None:
            conditions.append(visibility)
        if status:
            conditions.append(RentalOrder.status == status)

        try:
            result = await db.execute(
                self._with_items(select(RentalOrder))
                .where(*conditions)
                .order_by(RentalOrder.created_at.desc())
                .offset(pagination.offset)
                .limit(pagination.limit)
            )
            orders = result.scalars().all()
            total = (
                await db.execute(select(func.count(RentalOrder.id)).where(*conditions))
            ).scalar() or 0
            return [RentalResponse.model_validate(o) for o in orders], total
        except Exception as e:
            logger.error("Database error listing rentals: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve rentals. Please try again.",
                context={"error_type": type(e).__name__},
            )

    async def _load_order(
        self, db: AsyncSession, rental_id: uuid.UUID, for_update: bool = False
    ) -> RentalOrder:
        query = self._with_items(select(RentalOrder)).where(RentalOrder.id == rental_id)
        if for_update:
            query = query.with_for_update(of=RentalOrder)
        order = (await db.execute(query)).scalar_one_or_none()
        if order is None:
            raise NotFoundError(resource="rental", resource_id=str(rental_id))
        return order

    async def _manages(self, db: AsyncSession, order: RentalOrder, user: User) -> bool:
        """Admins, and owners of a facility stocking one of the order's products."""
        if user.role == ROLE_ADMIN:
            return True
        if user.role != ROLE_OWNER:
            return False
        result = await db.execute(
            select(func.count(RentalItem.id))
            .join(Product, RentalItem.product_id == Product.id)
            .join(Facility, Product.facility_id == Facility.id)
            .where(RentalItem.rental_order_id == order.id, Facility.owner_id == user.id)
        )
        return (result.scalar() or 0) > 0

    async def get_rental(self, db: AsyncSession, rental_id: uuid.UUID, user: User) -> RentalResponse:
        order = await self._load_order(db, rental_id)
        if order.user_id != user.id and not await self._manages(db, order, user):
            raise NotFoundError(resource="rental", resource_id=str(rental_id))
        return RentalResponse.model_validate(order)

    async def reserved_quantity(
        self,
        db: AsyncSession,
        product_id: uuid.UUID,
        start: datetime,
        end: datetime,
        exclude_rental_id: Optional[uuid.UUID] = None,
    ) -> int:
        """Units of a product held by confirmed/active orders overlapping [start, end)."""
        query = (
            select(func.coalesce(func.sum(RentalItem.quantity), 0))
            .join(RentalOrder, RentalItem.rental_order_id == RentalOrder.id)
            .where(
                RentalItem.product_id == product_id,
                RentalOrder.status.in_(RESERVING_STATUSES),
                RentalOrder.start_date < end,
                RentalOrder.end_date > start,
            )
        )
        if exclude_rental_id:
            query = query.where(RentalOrder.id != exclude_rental_id)
        return int((await db.execute(query)).scalar() or 0)

    # ── Checkout ──────────────────────────────────────────────────────────

    async def create_rental(
        self, db: AsyncSession, user: User, payload: RentalCreate
    ) -> RentalResponse:
        """
        Prices every line, checks stock and stores a `draft` order.

        Raises:
            ValidationError: start in the past, no usable price (400),
                             or not enough stock (400 INSUFFICIENT_QUANTITY)
            NotFoundError:   product or its facility inactive/missing (404)
        """
        start, end = payload.start_date, payload.end_date
        if start <= datetime.now(timezone.utc):
            raise ValidationError(message="Rental start date must be in the future", field="start_date")

        try:
            days = rental_duration_days(start, end)
            total_amount = Decimal("0")
            deposit_amount = Decimal("0")
            order = RentalOrder(
                user_id=user.id,
                start_date=start,
                end_date=end,
                status=RENTAL_DRAFT,
                notes=payload.notes,
            )

            for item in payload.items:
                result = await db.execute(
                    select(Product)
                    .options(selectinload(Product.facility))
                    .where(Product.id == item.product_id)
                )
                product = result.scalar_one_or_none()
                if (
                    product is None
                    or not product.is_active
                    or product.facility is None
                    or not product.facility.is_active
                ):
                    raise NotFoundError(
                        resource="product",
                        resource_id=str(item.product_id),
                        message=f"Product {item.product_id} not found or not available",
                    )
                if product.available_quantity < item.quantity:
                    raise ValidationError(
                        message=f"Insufficient quantity available for '{product.name}'",
                        field="items",
                        code="INSUFFICIENT_QUANTITY",
                        context={
                            "product_id": str(product.id),
                            "requested": item.quantity,
                            "available": product.available_quantity,
                        },
                    )

                unit_price = calculate_unit_price(product, days)
                line_total = unit_price * item.quantity
                total_amount += line_total
                deposit_amount += Decimal(product.deposit_amount or 0) * item.quantity
                order.items.append(
                    RentalItem(
                        product_id=product.id,
                        product=product,
                        quantity=item.quantity,
                        unit_price=unit_price,
                        total_price=line_total,
                    )
                )

            order.total_amount = total_amount
            order.deposit_amount = deposit_amount
            db.add(order)
            await db.flush()

            logger.info(
                "Rental %s created: user=%s items=%d days=%d total=%s deposit=%s",
                order.id, user.id, len(order.items), days, total_amount, deposit_amount,
            )
            return RentalResponse.model_validate(order)

        except RentalHubError:
            raise
        except Exception as e:
            logger.error("Unexpected error creating rental: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not create the rental order. Please try again.",
                context={"error_type": type(e).__name__},
            )

    # ── Inventory ─────────────────────────────────────────────────────────

    async def _lock_products(self, db: AsyncSession, product_ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, Product]:
        result = await db.execute(
            select(Product).where(Product.id.in_(list(product_ids))).with_for_update()
        )
        return {p.id: p for p in result.scalars().all()}

    async def take_inventory(self, db: AsyncSession, order: RentalOrder) -> None:
        products = await self._lock_products(db, {i.product_id for i in order.items})
        for item in order.items:
            product = products.get(item.product_id)
            if product is None or product.available_quantity < item.quantity:
                raise ValidationError(
                    message="Insufficient quantity available to start this rental",
                    field="status",
                    code="INSUFFICIENT_QUANTITY",
                    context={"product_id": str(item.product_id)},
                )
            product.available_quantity -= item.quantity

    async def restore_inventory(self, db: AsyncSession, order: RentalOrder) -> None:
        products = await self._lock_products(db, {i.product_id for i in order.items})
        for item in order.items:
            product = products.get(item.product_id)
            if product is not None:
                product.available_quantity = min(
                    product.available_quantity + item.quantity, product.quantity
                )

    async def _apply_status(self, db: AsyncSession, order: RentalOrder, new_status: str) -> None:
        previous = order.status
        validate_rental_transition(previous, new_status)
        if new_status == RENTAL_ACTIVE:
            await self.take_inventory(db, order)
        elif previous in INVENTORY_HELD_STATUSES and new_status in (RENTAL_RETURNED, RENTAL_CANCELLED):
            await self.restore_inventory(db, order)
        order.status = new_status
        logger.info("Rental %s: %s → %s", order.id, previous, new_status)

    # ── Updates ───────────────────────────────────────────────────────────

    async def update_rental(
        self,
        db: AsyncSession,
        rental_id: uuid.UUID,
        user: User,
        payload: RentalUpdate,
    ) -> RentalResponse:
        order = await self._load_order(db, rental_id, for_update=True)
        is_renter = order.user_id == user.id
        manages = await self._manages(db, order, user)
        if not is_renter and not manages:
            raise NotFoundError(resource="rental", resource_id=str(rental_id))

        changes = payload.model_dump(exclude_unset=True)
        if not manages:
            # Renters may cancel or annotate their own order, nothing else.
            disallowed = set(changes) - {"status", "notes"}
            if disallowed or changes.get("status") not in (None, RENTAL_CANCELLED, order.status):
                raise PermissionDeniedError("You can only cancel or add notes to your own rental")

        previous_status = order.status
        new_status = changes.pop("status", None)
        if new_status and new_status != order.status:
            await self._apply_status(db, order, new_status)

        if "start_date" in changes or "end_date" in changes:
            new_start = changes.pop("start_date", None)
            start = new_start or order.start_date
            end = changes.pop("end_date", None) or order.end_date
            if end <= start:
                raise ValidationError(message="End date must be after start date", field="end_date")
            # Items are already out, so the start cannot move into the future.
            if previous_status == RENTAL_ACTIVE and new_start and new_start > datetime.now(timezone.utc):
                raise ValidationError(
                    message="Cannot change start date for active rental",
                    field="start_date",
                )
            order.start_date, order.end_date = start, end

        apply_changes(order, changes)

        await db.flush()
        return RentalResponse.model_validate(order)

    async def delete_rental(self, db: AsyncSession, rental_id: uuid.UUID, user: User) -> None:
        order = await self._load_order(db, rental_id, for_update=True)
        if order.user_id != user.id and user.role != ROLE_ADMIN:
            raise PermissionDeniedError("You can only delete your own rental orders")
        if order.status not in DELETABLE_STATUSES:
            raise ValidationError(
                message=f"Cannot delete a rental in '{order.status}' state",
                field="status",
                code="INVALID_RENTAL_STATE",
                context={"allowed_states": sorted(DELETABLE_STATUSES)},
            )
        await db.delete(order)
        await db.flush()
        logger.info("Rental %s deleted by %s", rental_id, user.id)

    # ── Payment hooks ─────────────────────────────────────────────────────

    async def confirm_rental(
        self, db: AsyncSession, rental_id: uuid.UUID, payment_id: uuid.UUID
    ) -> Optional[RentalOrder]:
        order = await db.get(RentalOrder, rental_id)
        if order is None:
            logger.warning("Paid rental %s no longer exists", rental_id)
            return None
        if order.status == RENTAL_DRAFT:
            order.status = RENTAL_CONFIRMED
        order.payment_id = payment_id
        return order

    async def cancel_for_refund(self, db: AsyncSession, rental_id: uuid.UUID) -> None:
        """Cancels a refunded order, returning stock if items were out."""
        order = await self._load_order(db, rental_id, for_update=True)
        if order.status in INVENTORY_HELD_STATUSES:
            await self.restore_inventory(db, order)
        if order.status != RENTAL_CANCELLED:
            logger.info("Rental %s cancelled after refund (was %s)", order.id, order.status)
            order.status = RENTAL_CANCELLED


rental_service = RentalService()
