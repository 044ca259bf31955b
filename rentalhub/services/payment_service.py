"""
RentalHub Backend — Payment Service
=====================================

What:  Razorpay checkout (create order → verify signature), payment
       history, refunds and webhook processing.
Who:   routes/payments.py (the /api/payments and /api/webhooks routers).

Checkout Flow:
    1. create_order():  pending Payment row + Razorpay order (amount in paise)
    2. client pays in the Razorpay widget
    3. verify():        HMAC check of order_id|payment_id → completed, the
                        booking/rental becomes confirmed, user is notified
    Webhooks (payment.captured) can complete step 3 on their own when the
    browser never calls back.

Failure Handling:
    - Gateway failure while creating an order removes the pending row.
    - A bad signature is persisted as `failed` *before* the 400 goes out,
      so the attempt stays auditable even though the request errors.
    - Webhook handler errors are logged on the webhook_logs row and never
      fail the HTTP response (Razorpay would otherwise retry forever).
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from rentalhub.config import settings
from rentalhub.dependencies import Pagination
from rentalhub.exceptions import (
    AuthenticationError,
    NotFoundError,
    PermissionDeniedError,
    RentalHubError,
    ValidationError,
)
from rentalhub.models.booking import (
    BOOKING_CANCELLED,
    BOOKING_CONFIRMED,
    BOOKING_DRAFT,
    Booking,
)
from rentalhub.models.payment import (
    ORDER_TYPE_BOOKING,
    ORDER_TYPE_RENTAL,
    PAYMENT_COMPLETED,
    PAYMENT_FAILED,
    PAYMENT_PENDING,
    PAYMENT_REFUNDED,
    Payment,
    WebhookLog,
)
from rentalhub.models.rental import RENTAL_DRAFT, RentalOrder
from rentalhub.models.user import ROLE_ADMIN, User
from rentalhub.schemas.payment import (
    CreateOrderRequest,
    CreateOrderResponse,
    PaymentResponse,
    PaymentStats,
    RefundRequest,
    VerifyPaymentRequest,
)
from rentalhub.services.booking_service import booking_service
from rentalhub.services.notification_service import (
    TYPE_PAYMENT_FAILED,
    TYPE_PAYMENT_SUCCESS,
    TYPE_REFUND_PROCESSED,
    notification_service,
)
from rentalhub.services.payment_gateway import (
    generate_receipt_id,
    paise_to_rupees,
    razorpay_client,
    rupees_to_paise,
    verify_payment_signature,
    verify_webhook_signature,
)
from rentalhub.services.rental_service import rental_service

logger = logging.getLogger(__name__)

PROVIDER_RAZORPAY = "razorpay"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class PaymentService:

    def __init__(self, gateway=None):
        self.gateway = gateway or razorpay_client

    # ── Checkout ──────────────────────────────────────────────────────────

    async def _payable_order(
        self, db: AsyncSession, user: User, payload: CreateOrderRequest
    ) -> Tuple[str, Decimal, Dict[str, Any]]:
        """Returns (order_type, amount in rupees, order_details) for the caller's draft order."""
        if payload.booking_id:
            booking = await db.get(Booking, payload.booking_id)
            if booking is None or booking.user_id != user.id:
                raise NotFoundError(resource="booking", resource_id=str(payload.booking_id))
            if booking.status != BOOKING_DRAFT:
                raise ValidationError(
                    message=f"Booking is '{booking.status}' and cannot be paid for",
                    field="booking_id",
                )
            return ORDER_TYPE_BOOKING, Decimal(booking.total_price), {
                "booking_id": str(booking.id),
                "court_id": str(booking.court_id),
                "start_datetime": booking.start_datetime.isoformat(),
                "end_datetime": booking.end_datetime.isoformat(),
            }

        if payload.rental_order_id:
            order = await db.get(RentalOrder, payload.rental_order_id)
            if order is None or order.user_id != user.id:
                raise NotFoundError(resource="rental", resource_id=str(payload.rental_order_id))
            if order.status != RENTAL_DRAFT:
                raise ValidationError(
                    message=f"Rental is '{order.status}' and cannot be paid for",
                    field="rental_order_id",
                )
            amount = Decimal(order.total_amount) + Decimal(order.deposit_amount or 0)
            return ORDER_TYPE_RENTAL, amount, {
                "rental_order_id": str(order.id),
                "start_date": order.start_date.isoformat(),
                "end_date": order.end_date.isoformat(),
                "rental_amount": str(order.total_amount),
                "deposit_amount": str(order.deposit_amount),
            }

        raise ValidationError(message="Either booking_id or rental_order_id is required")

    async def create_order(
        self, db: AsyncSession, user: User, payload: CreateOrderRequest
    ) -> CreateOrderResponse:
        """
        Raises:
            ValidationError:      no order given, order not draft, amount mismatch
            NotFoundError:        order missing or not the caller's
            PaymentGatewayError / CircuitBreakerOpenError: Razorpay unavailable
        """
        order_type, amount, order_details = await self._payable_order(db, user, payload)
        if payload.amount is not None and payload.amount != amount:
            raise ValidationError(
                message="Amount does not match the order total",
                field="amount",
                code="AMOUNT_MISMATCH",
                context={"expected": str(amount)},
            )

        currency = (payload.currency or settings.payment_currency).upper()
        payment = Payment(
            user_id=user.id,
            amount=amount,
            currency=currency,
            provider=PROVIDER_RAZORPAY,
            status=PAYMENT_PENDING,
            order_type=order_type,
            booking_id=payload.booking_id if order_type == ORDER_TYPE_BOOKING else None,
            rental_order_id=payload.rental_order_id if order_type == ORDER_TYPE_RENTAL else None,
            details={},
        )
        db.add(payment)
        await db.flush()

        receipt = generate_receipt_id(order_type)
        try:
            gateway_order = await self.gateway.create_order(
                amount_paise=rupees_to_paise(amount),
                currency=currency,
                receipt=receipt,
                notes={"payment_id": str(payment.id), "order_type": order_type, "user_id": str(user.id)},
            )
        except RentalHubError:
            await db.delete(payment)
            await db.flush()
            raise

        payment.provider_order_id = gateway_order["id"]
        payment.details = {"receipt": receipt}
        await db.flush()

        logger.info(
            "Payment %s: Razorpay order %s for %s %s (%s)",
            payment.id, payment.provider_order_id, amount, currency, order_type,
        )
        return CreateOrderResponse(
            payment_id=payment.id,
            razorpay_order_id=payment.provider_order_id,
            amount=rupees_to_paise(amount),
            currency=currency,
            key_id=settings.razorpay_key_id,
            order_type=order_type,
            order_details=order_details,
        )

    async def _confirm_paid_order(self, db: AsyncSession, payment: Payment) -> None:
        if payment.booking_id:
            await booking_service.confirm_booking(db, payment.booking_id, payment.id)
        elif payment.rental_order_id:
            await rental_service.confirm_rental(db, payment.rental_order_id, payment.id)

    async def _complete(
        self,
        db: AsyncSession,
        payment: Payment,
        provider_payment_id: str,
        signature: Optional[str],
        source: str,
    ) -> None:
        payment.status = PAYMENT_COMPLETED
        payment.provider_payment_id = provider_payment_id
        if signature:
            payment.provider_signature = signature
        payment.details = {**(payment.details or {}), "completed_at": _now_iso(), "completed_via": source}
        await self._confirm_paid_order(db, payment)
        await notification_service.notify(
            db,
            payment.user_id,
            TYPE_PAYMENT_SUCCESS,
            "Payment successful",
            f"Your payment of {payment.currency} {payment.amount} was received.",
            {"payment_id": str(payment.id), "order_type": payment.order_type},
        )
        await db.flush()
        logger.info("Payment %s completed via %s", payment.id, source)

    async def verify(
        self, db: AsyncSession, user: User, payload: VerifyPaymentRequest
    ) -> PaymentResponse:
        result = await db.execute(
            select(Payment).where(
                Payment.provider_order_id == payload.razorpay_order_id,
                Payment.user_id == user.id,
            )
        )
        payment = result.scalar_one_or_none()
        if payment is None:
            raise NotFoundError(resource="payment", resource_id=payload.razorpay_order_id)
        if payment.status == PAYMENT_COMPLETED:
            raise ValidationError(message="Payment has already been verified")

        if not verify_payment_signature(
            payload.razorpay_order_id, payload.razorpay_payment_id, payload.razorpay_signature
        ):
            payment.status = PAYMENT_FAILED
            payment.provider_payment_id = payload.razorpay_payment_id
            payment.provider_signature = payload.razorpay_signature
            payment.details = {**(payment.details or {}), "failure_reason": "signature_mismatch"}
            # Keep the failed attempt even though the request errors out.
            await db.commit()
            logger.warning("Payment %s failed signature verification", payment.id)
            raise ValidationError(
                message="Payment verification failed",
                code="PAYMENT_VERIFICATION_FAILED",
            )

        await self._complete(
            db, payment, payload.razorpay_payment_id, payload.razorpay_signature, source="verify"
        )
        return PaymentResponse.model_validate(payment)

    # ── History ───────────────────────────────────────────────────────────

    async def list_payments(
        self,
        db: AsyncSession,
        user: User,
        pagination: Pagination,
        status: Optional[str] = None,
        provider: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        order_type: Optional[str] = None,
        user_id: Optional[uuid.UUID] = None,
    ) -> Tuple[List[PaymentResponse], int, PaymentStats]:
        conditions = []
        if user.role != ROLE_ADMIN:
            conditions.append(Payment.user_id == user.id)
        elif user_id:
            conditions.append(Payment.user_id == user_id)
        if status:
            conditions.append(Payment.status == status)
        if provider:
            conditions.append(Payment.provider == provider)
        if start_date:
            conditions.append(Payment.created_at >= start_date)
        if end_date:
            conditions.append(Payment.created_at <= end_date)
        if order_type:
            conditions.append(Payment.order_type == order_type)

        result = await db.execute(
            select(Payment)
            .where(*conditions)
            .order_by(Payment.created_at.desc())
            .offset(pagination.offset)
            .limit(pagination.limit)
        )
        payments = result.scalars().all()

        rows = (
            await db.execute(
                select(Payment.status, func.count(Payment.id), func.coalesce(func.sum(Payment.amount), 0))
                .where(*conditions)
                .group_by(Payment.status)
            )
        ).all()
        status_counts = {row_status: count for row_status, count, _ in rows}
        stats = PaymentStats(
            total_amount=float(sum(Decimal(total) for _, _, total in rows)),
            status_counts=status_counts,
        )
        return [PaymentResponse.model_validate(p) for p in payments], sum(status_counts.values()), stats

    # ── Refunds ───────────────────────────────────────────────────────────

    async def refund(self, db: AsyncSession, user: User, payload: RefundRequest) -> PaymentResponse:
        original = await db.get(Payment, payload.payment_id)
        if original is None:
            raise NotFoundError(resource="payment", resource_id=str(payload.payment_id))
        if user.role != ROLE_ADMIN and original.user_id != user.id:
            raise PermissionDeniedError("You can only refund your own payments")
        if original.status != PAYMENT_COMPLETED:
            raise ValidationError(message="Only completed payments can be refunded", field="payment_id")

        existing = (
            await db.execute(
                select(func.count(Payment.id)).where(Payment.original_payment_id == original.id)
            )
        ).scalar() or 0
        if existing:
            raise ValidationError(message="This payment has already been refunded", field="payment_id")

        original_amount = Decimal(original.amount)
        amount = payload.amount if payload.amount is not None else original_amount
        if amount > original_amount:
            raise ValidationError(
                message="Refund amount cannot exceed the original payment",
                field="amount",
                context={"max_amount": str(original_amount)},
            )
        refund_type = "full" if amount == original_amount else "partial"

        gateway_refund: Dict[str, Any] = {}
        if original.provider_payment_id:
            gateway_refund = await self.gateway.create_refund(
                original.provider_payment_id,
                amount_paise=rupees_to_paise(amount),
                notes={"reason": payload.reason or "", "payment_id": str(original.id)},
            )

        refund = Payment(
            user_id=original.user_id,
            amount=-amount,
            currency=original.currency,
            provider=original.provider,
            provider_order_id=original.provider_order_id,
            provider_payment_id=original.provider_payment_id,
            status=PAYMENT_REFUNDED,
            order_type=original.order_type,
            booking_id=original.booking_id,
            rental_order_id=original.rental_order_id,
            original_payment_id=original.id,
            details={
                "refund_type": refund_type,
                "reason": payload.reason,
                "refunded_by": str(user.id),
                "provider_refund_id": gateway_refund.get("id"),
            },
        )
        db.add(refund)

        if original.booking_id:
            booking = await db.get(Booking, original.booking_id)
            if booking is not None and booking.status in (BOOKING_DRAFT, BOOKING_CONFIRMED):
                booking.status = BOOKING_CANCELLED
        elif original.rental_order_id:
            await rental_service.cancel_for_refund(db, original.rental_order_id)

        await db.flush()
        await notification_service.notify(
            db,
            original.user_id,
            TYPE_REFUND_PROCESSED,
            "Refund initiated",
            f"A {refund_type} refund of {original.currency} {amount} has been initiated.",
            {"payment_id": str(original.id), "refund_id": str(refund.id)},
        )
        logger.info("Refund %s (%s, %s) for payment %s", refund.id, refund_type, amount, original.id)
        return PaymentResponse.model_validate(refund)

    # ── Webhooks ──────────────────────────────────────────────────────────

    async def handle_webhook(
        self, db: AsyncSession, body: bytes, signature: Optional[str]
    ) -> Dict[str, Any]:
        """
        Verifies and dispatches one Razorpay webhook call.

        Raises:
            ValidationError:     missing signature header or unparsable body (400)
            AuthenticationError: signature mismatch (401)
        """
        if not signature:
            raise ValidationError(message="Missing webhook signature", field="x-razorpay-signature")
        try:
            event_payload = json.loads(body)
        except ValueError:
            raise ValidationError(message="Webhook body is not valid JSON")

        event = event_payload.get("event") if isinstance(event_payload, dict) else None
        log = WebhookLog(
            provider=PROVIDER_RAZORPAY,
            event=event,
            payload=event_payload if isinstance(event_payload, dict) else {"raw": event_payload},
            signature_valid=True,
        )
        db.add(log)

        if not verify_webhook_signature(body, signature):
            log.signature_valid = False
            log.error = "invalid signature"
            await db.commit()
            logger.warning("Rejected Razorpay webhook '%s': invalid signature", event)
            raise AuthenticationError(message="Invalid webhook signature")

        handler = self._webhook_handlers().get(event)
        if handler is None:
            logger.info("Unhandled Razorpay webhook event '%s'", event)
            await db.flush()
            return {"event": event, "handled": False}

        try:
            async with db.begin_nested():
                await handler(db, event_payload.get("payload", {}))
        except Exception as e:
            log.error = f"{type(e).__name__}: {e}"
            logger.error("Webhook handler for '%s' failed: %s", event, str(e), exc_info=True)
        await db.flush()
        return {"event": event, "handled": log.error is None}

    def _webhook_handlers(self):
        return {
            "payment.captured": self._on_payment_captured,
            "payment.failed": self._on_payment_failed,
            "order.paid": self._on_order_paid,
            "refund.created": self._on_refund_created,
            "refund.processed": self._on_refund_processed,
        }

    async def _payment_by_order(self, db: AsyncSession, provider_order_id: Optional[str]) -> Optional[Payment]:
        if not provider_order_id:
            return None
        result = await db.execute(
            select(Payment).where(
                Payment.provider_order_id == provider_order_id,
                Payment.original_payment_id.is_(None),
            )
        )
        return result.scalars().first()

    async def _payment_by_provider_payment(self, db: AsyncSession, provider_payment_id: Optional[str]) -> Optional[Payment]:
        if not provider_payment_id:
            return None
        result = await db.execute(
            select(Payment).where(
                Payment.provider_payment_id == provider_payment_id,
                Payment.original_payment_id.is_(None),
            )
        )
        return result.scalars().first()

    async def _on_payment_captured(self, db: AsyncSession, payload: Dict[str, Any]) -> None:
        entity = payload.get("payment", {}).get("entity", {})
        payment = await self._payment_by_order(db, entity.get("order_id"))
        if payment is None:
            logger.warning("payment.captured for unknown order %s", entity.get("order_id"))
            return
        if payment.status == PAYMENT_COMPLETED:
            return
        await self._complete(db, payment, entity.get("id"), None, source="webhook")

    async def _on_payment_failed(self, db: AsyncSession, payload: Dict[str, Any]) -> None:
        entity = payload.get("payment", {}).get("entity", {})
        payment = await self._payment_by_order(db, entity.get("order_id"))
        if payment is None:
            logger.warning("payment.failed for unknown order %s", entity.get("order_id"))
            return
        if payment.status == PAYMENT_COMPLETED:
            return
        payment.status = PAYMENT_FAILED
        payment.provider_payment_id = entity.get("id")
        payment.details = {
            **(payment.details or {}),
            "failure_reason": entity.get("error_description") or entity.get("error_code"),
        }
        await notification_service.notify(
            db,
            payment.user_id,
            TYPE_PAYMENT_FAILED,
            "Payment failed",
            "Your payment could not be completed. Please try again.",
            {"payment_id": str(payment.id)},
        )

    async def _on_order_paid(self, db: AsyncSession, payload: Dict[str, Any]) -> None:
        entity = payload.get("order", {}).get("entity", {})
        logger.info("Razorpay order %s paid (%s paise)", entity.get("id"), entity.get("amount_paid"))

    async def _on_refund_created(self, db: AsyncSession, payload: Dict[str, Any]) -> None:
        entity = payload.get("refund", {}).get("entity", {})
        payment = await self._payment_by_provider_payment(db, entity.get("payment_id"))
        if payment is None:
            logger.warning("refund.created for unknown payment %s", entity.get("payment_id"))
            return
        payment.details = {
            **(payment.details or {}),
            "refund": {
                "id": entity.get("id"),
                "amount": str(paise_to_rupees(entity.get("amount") or 0)),
                "status": entity.get("status"),
                "created_at": _now_iso(),
            },
        }
        await notification_service.notify(
            db,
            payment.user_id,
            TYPE_REFUND_PROCESSED,
            "Refund created",
            "Your refund has been created and will be processed shortly.",
            {"payment_id": str(payment.id), "refund_id": entity.get("id")},
        )

    async def _on_refund_processed(self, db: AsyncSession, payload: Dict[str, Any]) -> None:
        entity = payload.get("refund", {}).get("entity", {})
        payment = await self._payment_by_provider_payment(db, entity.get("payment_id"))
        if payment is None:
            logger.warning("refund.processed for unknown payment %s", entity.get("payment_id"))
            return
        payment.details = {**(payment.details or {}), "refund_processed_at": _now_iso()}
        await notification_service.notify(
            db,
            payment.user_id,
            TYPE_REFUND_PROCESSED,
            "Refund processed",
            "Your refund has been processed.",
            {"payment_id": str(payment.id), "refund_id": entity.get("id")},
        )


payment_service = PaymentService()
