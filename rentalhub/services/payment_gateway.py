"""
RentalHub Backend — Razorpay Gateway Client
=============================================

What:  Thin async client for the Razorpay REST API (orders, payments,
       refunds) plus the signature and amount helpers used around it.
How:   httpx.AsyncClient with HTTP basic auth (key_id:key_secret), wrapped
       in tenacity retries and a circuit breaker.
Who:   PaymentService; /health reports the breaker state.

Resilience Strategy:
    1. Tenacity retry with exponential backoff + jitter for transport
       errors and 5xx responses. 4xx responses are never retried.
    2. Circuit breaker: after `cb_failure_threshold` consecutive failed
       calls the client fails fast for `cb_recovery_timeout` seconds.
    3. Everything that escapes is a PaymentGatewayError (503) or a
       CircuitBreakerOpenError (503), both with a retry hint.

Signatures (hex HMAC-SHA256, compared in constant time):
    payment  → HMAC(key_secret,     f"{order_id}|{payment_id}")
    webhook  → HMAC(webhook_secret, raw request body)
"""

import hashlib
import hmac
import logging
import secrets
import string
import time
import uuid
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Optional, Union

import httpx
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from rentalhub.config import settings
from rentalhub.exceptions import CircuitBreakerOpenError, PaymentGatewayError

logger = logging.getLogger(__name__)

Amount = Union[Decimal, float, int, str]


# ══════════════════════════════════════════════════════════════════════════
# Helpers
# ══════════════════════════════════════════════════════════════════════════

def rupees_to_paise(amount: Amount) -> int:
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def paise_to_rupees(paise: int) -> Decimal:
    return (Decimal(paise) / 100).quantize(Decimal("0.01"))


def generate_receipt_id(prefix: str) -> str:
    """e.g. `booking_1718000000000_k3x9qa`; Razorpay caps receipts at 40 chars."""
    alphabet = string.ascii_lowercase + string.digits
    suffix = "".join(secrets.choice(alphabet) for _ in range(6))
    return f"{prefix}_{int(time.time() * 1000)}_{suffix}"


def _hmac_hex(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def verify_payment_signature(
    order_id: str,
    payment_id: str,
    signature: str,
    secret: Optional[str] = None,
) -> bool:
    secret = secret if secret is not None else settings.razorpay_key_secret
    if not secret or not signature:
        return False
    expected = _hmac_hex(secret, f"{order_id}|{payment_id}".encode("utf-8"))
    return hmac.compare_digest(expected, signature)


def verify_webhook_signature(body: bytes, signature: str, secret: Optional[str] = None) -> bool:
    secret = secret if secret is not None else settings.razorpay_webhook_secret
    if not secret or not signature:
        return False
    return hmac.compare_digest(_hmac_hex(secret, body), signature)


# ══════════════════════════════════════════════════════════════════════════
# Circuit Breaker
# ══════════════════════════════════════════════════════════════════════════

class CircuitBreaker:
    """
    CLOSED → (failure_threshold consecutive failures) → OPEN
    OPEN   → (recovery_timeout elapsed)               → HALF_OPEN
    HALF_OPEN → success: CLOSED / failure: OPEN

    Plain counters, no locking: one event loop per worker process.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(self, failure_threshold: int = 5, recovery_timeout: int = 60):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time: Optional[float] = None

    def can_execute(self) -> bool:
        """
        Returns True when a call may go through.

        Raises:
            CircuitBreakerOpenError while OPEN and the timeout has not elapsed.
        """
        if self.state == self.OPEN:
            elapsed = time.time() - (self.last_failure_time or 0)
            if elapsed < self.recovery_timeout:
                raise CircuitBreakerOpenError(recovery_time=int(self.recovery_timeout - elapsed))
            logger.info("Payment circuit breaker HALF_OPEN after %.1fs", elapsed)
            self.state = self.HALF_OPEN
        return True

    def record_success(self) -> None:
        if self.state == self.HALF_OPEN:
            logger.info("Payment circuit breaker CLOSED (gateway recovered)")
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time = None

    def record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = time.time()

        if self.state == self.HALF_OPEN:
            logger.warning("Payment circuit breaker back to OPEN (probe failed)")
            self.state = self.OPEN
        elif self.failure_count >= self.failure_threshold:
            logger.warning(
                "Payment circuit breaker OPENING after %d consecutive failures",
                self.failure_count,
            )
            self.state = self.OPEN


# ══════════════════════════════════════════════════════════════════════════
# Razorpay client
# ══════════════════════════════════════════════════════════════════════════

class GatewayServerError(Exception):
    """A 5xx from Razorpay; retried, then counted against the breaker."""

    def __init__(self, status_code: int, body: str):
        super().__init__(f"Razorpay returned {status_code}: {body[:200]}")
        self.status_code = status_code


class RazorpayClient:

    def __init__(
        self,
        key_id: Optional[str] = None,
        key_secret: Optional[str] = None,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.key_id = key_id if key_id is not None else settings.razorpay_key_id
        self.key_secret = key_secret if key_secret is not None else settings.razorpay_key_secret
        self.base_url = (base_url or settings.razorpay_api_base).rstrip("/")
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self.circuit_breaker = CircuitBreaker(
            failure_threshold=settings.cb_failure_threshold,
            recovery_timeout=settings.cb_recovery_timeout,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.key_id and self.key_secret)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                auth=(self.key_id, self.key_secret),
                timeout=settings.razorpay_timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def create_order(
        self,
        amount_paise: int,
        currency: str,
        receipt: str,
        notes: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        return await self._call(
            "POST",
            "/orders",
            {"amount": amount_paise, "currency": currency, "receipt": receipt, "notes": notes or {}},
        )

    async def fetch_payment(self, payment_id: str) -> Dict[str, Any]:
        return await self._call("GET", f"/payments/{payment_id}")

    async def create_refund(
        self,
        payment_id: str,
        amount_paise: Optional[int] = None,
        notes: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {"notes": notes or {}}
        if amount_paise is not None:
            body["amount"] = amount_paise
        return await self._call("POST", f"/payments/{payment_id}/refund", body)

    async def _call(self, method: str, path: str, body: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Runs one gateway call through the breaker and the retry loop.

        Raises:
            CircuitBreakerOpenError: breaker is open
            PaymentGatewayError:     not configured, 4xx, or retries exhausted
        """
        if not self.is_configured:
            raise PaymentGatewayError(message="Payment gateway is not configured")

        call_id = str(uuid.uuid4())[:8]
        self.circuit_breaker.can_execute()
        logger.info("[%s] Razorpay %s %s", call_id, method, path)

        try:
            data = await self._request_with_retry(method, path, body, call_id)
            self.circuit_breaker.record_success()
            return data

        except httpx.HTTPStatusError as e:
            # Client-side errors mean the gateway is healthy; do not trip the breaker.
            self.circuit_breaker.record_success()
            description = _error_description(e.response)
            logger.warning("[%s] Razorpay rejected %s %s: %s", call_id, method, path, description)
            raise PaymentGatewayError(
                message=f"Payment gateway rejected the request: {description}",
                context={"call_id": call_id, "status_code": e.response.status_code},
            )
        except (httpx.TransportError, GatewayServerError) as e:
            self.circuit_breaker.record_failure()
            logger.error("[%s] Razorpay retries exhausted: %s", call_id, str(e))
            raise PaymentGatewayError(
                message="Payment gateway is temporarily unavailable. Please try again later.",
                retry_after=self.circuit_breaker.recovery_timeout,
                context={"call_id": call_id, "attempts": settings.retry_max_attempts},
            )

    @retry(
        retry=retry_if_exception_type((httpx.TransportError, GatewayServerError)),
        stop=stop_after_attempt(settings.retry_max_attempts),
        wait=wait_exponential_jitter(
            initial=settings.retry_min_wait,
            max=settings.retry_max_wait,
            jitter=1,
        ),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _request_with_retry(
        self,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]],
        call_id: str,
    ) -> Dict[str, Any]:
        start_time = time.time()
        response = await self._get_client().request(method, path, json=body)
        duration_ms = (time.time() - start_time) * 1000

        if response.status_code >= 500:
            logger.warning("[%s] Razorpay %d after %.0fms", call_id, response.status_code, duration_ms)
            raise GatewayServerError(response.status_code, response.text)
        response.raise_for_status()

        logger.info("[%s] Razorpay %s %s ok in %.0fms", call_id, method, path, duration_ms)
        return response.json()


def _error_description(response: httpx.Response) -> str:
    try:
        return response.json().get("error", {}).get("description") or response.reason_phrase
    except (ValueError, AttributeError):
        return response.reason_phrase


razorpay_client = RazorpayClient()
