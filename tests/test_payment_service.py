"""
RentalHub Backend — Payment Service Unit Tests
================================================

What:  Checkout, verification, refunds and webhook dispatch with a mocked
       gateway (no Razorpay calls) and a mocked session.

What we test:
    ✅ create_order: draft-only, amount must match, gateway failure cleans up
    ✅ verify: bad signature is persisted as failed before erroring
    ✅ verify: good signature completes, confirms the booking, notifies
    ✅ refund: completed-only, amount cap, negative refund row, cancellation
    ✅ webhook: signature/JSON checks, unhandled events, isolated handlers
"""

import hashlib
import hmac
import json
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest

from rentalhub.exceptions import (
    AuthenticationError,
    NotFoundError,
    PaymentGatewayError,
    ValidationError,
)
from rentalhub.models.booking import Booking
from rentalhub.models.notification import Notification
from rentalhub.models.payment import Payment, WebhookLog
from rentalhub.models.rental import RentalOrder
from rentalhub.schemas.payment import CreateOrderRequest, RefundRequest, VerifyPaymentRequest
from rentalhub.services.payment_service import PaymentService


def _sign_payment(order_id, payment_id, secret="rzp_test_secret"):
    return hmac.new(secret.encode(), f"{order_id}|{payment_id}".encode(), hashlib.sha256).hexdigest()


def _sign_body(body, secret="whsec_test"):
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def _gateway():
    gateway = MagicMock()
    gateway.create_order = AsyncMock(return_value={"id": "order_test123", "amount": 100000})
    gateway.create_refund = AsyncMock(return_value={"id": "rfnd_test123"})
    return gateway


def _booking(user_id, status="draft", price="1000.00"):
    start = datetime.now(timezone.utc) + timedelta(days=1)
    return Booking(
        id=uuid4(),
        user_id=user_id,
        court_id=uuid4(),
        start_datetime=start,
        end_datetime=start + timedelta(hours=2),
        status=status,
        total_price=Decimal(price),
    )


def _payment(user_id, status="pending", booking_id=None, rental_order_id=None, amount="1000.00", **extra):
    now = datetime.now(timezone.utc)
    return Payment(
        id=uuid4(),
        user_id=user_id,
        amount=Decimal(amount),
        currency="INR",
        provider="razorpay",
        provider_order_id=extra.get("provider_order_id", "order_test123"),
        provider_payment_id=extra.get("provider_payment_id"),
        status=status,
        order_type="booking" if booking_id else "rental",
        booking_id=booking_id,
        rental_order_id=rental_order_id,
        details={},
        created_at=now,
        updated_at=now,
    )


def _getter(mapping):
    def _get(model, key):
        return mapping.get(model)

    return _get


class TestCreateOrder:

    def setup_method(self):
        self.gateway = _gateway()
        self.service = PaymentService(gateway=self.gateway)

    @pytest.mark.asyncio
    async def test_requires_an_order(self, mock_db_session, regular_user):
        with pytest.raises(ValidationError):
            await self.service.create_order(mock_db_session, regular_user, CreateOrderRequest())

    @pytest.mark.asyncio
    async def test_other_users_booking_is_not_found(self, mock_db_session, regular_user, other_user):
        booking = _booking(other_user.id)
        mock_db_session.get.return_value = booking

        with pytest.raises(NotFoundError):
            await self.service.create_order(
                mock_db_session, regular_user, CreateOrderRequest(booking_id=booking.id)
            )

    @pytest.mark.asyncio
    async def test_confirmed_booking_cannot_be_paid_again(self, mock_db_session, regular_user):
        booking = _booking(regular_user.id, status="confirmed")
        mock_db_session.get.return_value = booking

        with pytest.raises(ValidationError):
            await self.service.create_order(
                mock_db_session, regular_user, CreateOrderRequest(booking_id=booking.id)
            )
        self.gateway.create_order.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_amount_mismatch(self, mock_db_session, regular_user):
        booking = _booking(regular_user.id)
        mock_db_session.get.return_value = booking

        with pytest.raises(ValidationError) as exc_info:
            await self.service.create_order(
                mock_db_session,
                regular_user,
                CreateOrderRequest(booking_id=booking.id, amount=Decimal("999.00")),
            )
        assert exc_info.value.code == "AMOUNT_MISMATCH"
        assert exc_info.value.context["expected"] == "1000.00"
        mock_db_session.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_booking_order_created_in_paise(self, mock_db_session, regular_user):
        booking = _booking(regular_user.id)
        mock_db_session.get.return_value = booking

        result = await self.service.create_order(
            mock_db_session,
            regular_user,
            CreateOrderRequest(booking_id=booking.id, amount=Decimal("1000.00")),
        )

        assert result.razorpay_order_id == "order_test123"
        assert result.amount == 100000
        assert result.currency == "INR"
        assert result.key_id == "rzp_test_key"
        assert result.order_details["booking_id"] == str(booking.id)
        payment = mock_db_session.added[0]
        assert payment.status == "pending"
        assert payment.provider_order_id == "order_test123"
        assert payment.details["receipt"].startswith("booking_")
        assert self.gateway.create_order.await_args.kwargs["amount_paise"] == 100000

    @pytest.mark.asyncio
    async def test_rental_amount_includes_deposit(self, mock_db_session, regular_user):
        start = datetime.now(timezone.utc) + timedelta(days=1)
        order = RentalOrder(
            id=uuid4(),
            user_id=regular_user.id,
            start_date=start,
            end_date=start + timedelta(days=3),
            status="draft",
            total_amount=Decimal("1200.00"),
            deposit_amount=Decimal("1000.00"),
        )
        mock_db_session.get.return_value = order

        result = await self.service.create_order(
            mock_db_session, regular_user, CreateOrderRequest(rental_order_id=order.id)
        )

        assert result.order_type == "rental"
        assert result.amount == 220000

    @pytest.mark.asyncio
    async def test_gateway_failure_removes_pending_payment(self, mock_db_session, regular_user):
        booking = _booking(regular_user.id)
        mock_db_session.get.return_value = booking
        self.gateway.create_order.side_effect = PaymentGatewayError(retry_after=60)

        with pytest.raises(PaymentGatewayError):
            await self.service.create_order(
                mock_db_session, regular_user, CreateOrderRequest(booking_id=booking.id)
            )
        mock_db_session.delete.assert_awaited_once_with(mock_db_session.added[0])


class TestVerify:

    def setup_method(self):
        self.service = PaymentService(gateway=_gateway())

    def _payload(self, signature):
        return VerifyPaymentRequest(
            razorpay_order_id="order_test123",
            razorpay_payment_id="pay_test456",
            razorpay_signature=signature,
        )

    @pytest.mark.asyncio
    async def test_unknown_order(self, mock_db_session, make_result, regular_user):
        mock_db_session.execute.return_value = make_result(scalar=None)

        with pytest.raises(NotFoundError):
            await self.service.verify(mock_db_session, regular_user, self._payload("sig"))

    @pytest.mark.asyncio
    async def test_bad_signature_is_recorded_then_rejected(self, mock_db_session, make_result, regular_user):
        payment = _payment(regular_user.id, booking_id=uuid4())
        mock_db_session.execute.return_value = make_result(scalar=payment)

        with pytest.raises(ValidationError) as exc_info:
            await self.service.verify(mock_db_session, regular_user, self._payload("deadbeef"))

        assert exc_info.value.code == "PAYMENT_VERIFICATION_FAILED"
        assert payment.status == "failed"
        assert payment.details["failure_reason"] == "signature_mismatch"
        mock_db_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_already_verified(self, mock_db_session, make_result, regular_user):
        payment = _payment(regular_user.id, status="completed", booking_id=uuid4())
        mock_db_session.execute.return_value = make_result(scalar=payment)

        with pytest.raises(ValidationError):
            await self.service.verify(
                mock_db_session, regular_user, self._payload(_sign_payment("order_test123", "pay_test456"))
            )

    @pytest.mark.asyncio
    async def test_valid_signature_completes_and_confirms(self, mock_db_session, make_result, regular_user):
        booking_id = uuid4()
        payment = _payment(regular_user.id, booking_id=booking_id)
        mock_db_session.execute.return_value = make_result(scalar=payment)
        signature = _sign_payment("order_test123", "pay_test456")

        with patch("rentalhub.services.payment_service.booking_service") as mock_bookings:
            mock_bookings.confirm_booking = AsyncMock()
            result = await self.service.verify(mock_db_session, regular_user, self._payload(signature))

        assert result.status == "completed"
        assert result.provider_payment_id == "pay_test456"
        assert result.metadata["completed_via"] == "verify"
        mock_bookings.confirm_booking.assert_awaited_once_with(mock_db_session, booking_id, payment.id)
        notifications = [obj for obj in mock_db_session.added if isinstance(obj, Notification)]
        assert notifications[0].type == "payment_success"
        mock_db_session.commit.assert_not_awaited()


class TestRefund:

    def setup_method(self):
        self.gateway = _gateway()
        self.service = PaymentService(gateway=self.gateway)

    @pytest.mark.asyncio
    async def test_only_completed_payments(self, mock_db_session, regular_user):
        mock_db_session.get.return_value = _payment(regular_user.id, status="pending", booking_id=uuid4())

        with pytest.raises(ValidationError):
            await self.service.refund(mock_db_session, regular_user, RefundRequest(payment_id=uuid4()))

    @pytest.mark.asyncio
    async def test_amount_cannot_exceed_original(self, mock_db_session, make_result, regular_user):
        mock_db_session.get.return_value = _payment(regular_user.id, status="completed", booking_id=uuid4())
        mock_db_session.execute.return_value = make_result(scalar=0)

        with pytest.raises(ValidationError) as exc_info:
            await self.service.refund(
                mock_db_session, regular_user, RefundRequest(payment_id=uuid4(), amount=Decimal("1500"))
            )
        assert exc_info.value.field == "amount"
        self.gateway.create_refund.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_second_refund_is_rejected(self, mock_db_session, make_result, regular_user):
        mock_db_session.get.return_value = _payment(regular_user.id, status="completed", booking_id=uuid4())
        mock_db_session.execute.return_value = make_result(scalar=1)

        with pytest.raises(ValidationError):
            await self.service.refund(mock_db_session, regular_user, RefundRequest(payment_id=uuid4()))

    @pytest.mark.asyncio
    async def test_full_refund_cancels_booking(self, mock_db_session, make_result, regular_user):
        booking = _booking(regular_user.id, status="confirmed")
        original = _payment(
            regular_user.id, status="completed", booking_id=booking.id, provider_payment_id="pay_test456"
        )
        mock_db_session.get.side_effect = _getter({Payment: original, Booking: booking})
        mock_db_session.execute.return_value = make_result(scalar=0)

        result = await self.service.refund(
            mock_db_session, regular_user, RefundRequest(payment_id=original.id, reason="  Rained out  ")
        )

        assert result.amount == -1000.0
        assert result.status == "refunded"
        assert result.original_payment_id == original.id
        assert result.metadata["refund_type"] == "full"
        assert result.metadata["reason"] == "Rained out"
        assert result.metadata["provider_refund_id"] == "rfnd_test123"
        assert original.status == "completed"
        assert booking.status == "cancelled"
        assert self.gateway.create_refund.await_args.kwargs["amount_paise"] == 100000

    @pytest.mark.asyncio
    async def test_partial_rental_refund_restores_stock(self, mock_db_session, make_result, regular_user):
        rental_id = uuid4()
        original = _payment(regular_user.id, status="completed", rental_order_id=rental_id)
        mock_db_session.get.return_value = original
        mock_db_session.execute.return_value = make_result(scalar=0)

        with patch("rentalhub.services.payment_service.rental_service") as mock_rentals:
            mock_rentals.cancel_for_refund = AsyncMock()
            result = await self.service.refund(
                mock_db_session, regular_user, RefundRequest(payment_id=original.id, amount=Decimal("400"))
            )

        assert result.metadata["refund_type"] == "partial"
        mock_rentals.cancel_for_refund.assert_awaited_once_with(mock_db_session, rental_id)
        # No provider payment id: nothing to refund at the gateway.
        self.gateway.create_refund.assert_not_awaited()


class TestWebhook:

    def setup_method(self):
        self.service = PaymentService(gateway=_gateway())

    def _body(self, event, **payload):
        return json.dumps({"event": event, "payload": payload}).encode()

    @pytest.mark.asyncio
    async def test_missing_signature(self, mock_db_session):
        with pytest.raises(ValidationError):
            await self.service.handle_webhook(mock_db_session, self._body("payment.captured"), None)

    @pytest.mark.asyncio
    async def test_body_must_be_json(self, mock_db_session):
        body = b"not json"
        with pytest.raises(ValidationError):
            await self.service.handle_webhook(mock_db_session, body, _sign_body(body))

    @pytest.mark.asyncio
    async def test_invalid_signature_is_logged_and_rejected(self, mock_db_session):
        body = self._body("payment.captured")

        with pytest.raises(AuthenticationError):
            await self.service.handle_webhook(mock_db_session, body, "0" * 64)

        log = mock_db_session.added[0]
        assert isinstance(log, WebhookLog)
        assert log.signature_valid is False
        mock_db_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unhandled_event_is_acknowledged(self, mock_db_session):
        body = self._body("subscription.charged")

        result = await self.service.handle_webhook(mock_db_session, body, _sign_body(body))

        assert result == {"event": "subscription.charged", "handled": False}

    @pytest.mark.asyncio
    async def test_payment_captured_completes_payment(self, mock_db_session, make_result, regular_user):
        payment = _payment(regular_user.id, booking_id=uuid4())
        mock_db_session.execute.return_value = make_result(scalars=[payment])
        body = self._body(
            "payment.captured",
            payment={"entity": {"id": "pay_hook789", "order_id": "order_test123"}},
        )

        with patch("rentalhub.services.payment_service.booking_service") as mock_bookings:
            mock_bookings.confirm_booking = AsyncMock()
            result = await self.service.handle_webhook(mock_db_session, body, _sign_body(body))

        assert result["handled"] is True
        assert payment.status == "completed"
        assert payment.provider_payment_id == "pay_hook789"
        assert payment.details["completed_via"] == "webhook"

    @pytest.mark.asyncio
    async def test_payment_failed_marks_payment(self, mock_db_session, make_result, regular_user):
        payment = _payment(regular_user.id, booking_id=uuid4())
        mock_db_session.execute.return_value = make_result(scalars=[payment])
        body = self._body(
            "payment.failed",
            payment={"entity": {"id": "pay_x", "order_id": "order_test123", "error_description": "Card declined"}},
        )

        await self.service.handle_webhook(mock_db_session, body, _sign_body(body))

        assert payment.status == "failed"
        assert payment.details["failure_reason"] == "Card declined"

    @pytest.mark.asyncio
    async def test_handler_error_is_recorded_not_raised(self, mock_db_session, regular_user):
        mock_db_session.execute.side_effect = RuntimeError("lost connection")
        body = self._body("payment.captured", payment={"entity": {"id": "pay_1", "order_id": "order_1"}})

        result = await self.service.handle_webhook(mock_db_session, body, _sign_body(body))

        assert result["handled"] is False
        log = mock_db_session.added[0]
        assert log.error.startswith("RuntimeError")
