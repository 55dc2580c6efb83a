"""Order creation adapter.

Turns a confirmed payment into an order record on the storefront backend.
The request is always built from the checkout session's own copy of the cart,
never from the live cart, so edits made while the order is in flight cannot
change what gets recorded.

The session's client-generated order id is sent as the ``Idempotency-Key``
so a retried request cannot create a second order for the same payment.
"""

import time

import structlog

from storefront.backend import get_backend
from storefront.backend.port import BackendError, OrderRecord, OrderRequest, StorefrontBackend

logger = structlog.get_logger(__name__)

# The backend answers 409 when an order already exists for this idempotency key
ALREADY_EXISTS = 409


class OrderCreationFailed(Exception):
    """The order could not be recorded after the payment went through."""

    def __init__(self, message: str, status_code: int | None = None, attempts: int = 1) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.attempts = attempts


class OrderCreationAdapter:
    def __init__(
        self,
        backend: StorefrontBackend | None = None,
        max_attempts: int = 3,
        retry_delay: float = 1.0,
        sleep=time.sleep,
    ) -> None:
        self.backend = backend or get_backend()
        self.max_attempts = max(1, max_attempts)
        self.retry_delay = retry_delay
        self._sleep = sleep

    def build_request(self, session) -> OrderRequest:
        return OrderRequest(
            payment_id=session.gateway_payment_id,
            customer_email=session.customer_email.address if session.customer_email else None,
            lines=session.line_items(),
            shipping_address=session.address.to_payload() if session.address else {},
            order_id=session.order_id,
            total_amount=session.amount,
        )

    def submit(self, session) -> OrderRecord:
        """Create the order for a session whose payment has succeeded.

        Transport failures and 5xx answers are retried with a linear backoff;
        4xx answers are not. Raises OrderCreationFailed when no order was
        recorded.
        """
        request = self.build_request(session)
        attempt = 0
        while True:
            attempt += 1
            try:
                record = self.backend.create_order(request, idempotency_key=request.order_id)
            except BackendError as exc:
                if exc.status_code == ALREADY_EXISTS:
                    logger.info(
                        "order_already_exists",
                        order_id=request.order_id,
                        payment_id=request.payment_id,
                    )
                    return OrderRecord(
                        order_id=request.order_id,
                        status="exists",
                        item_count=sum(line["quantity"] for line in request.lines),
                    )

                if not exc.retryable or attempt >= self.max_attempts:
                    logger.error(
                        "order_creation_failed",
                        order_id=request.order_id,
                        payment_id=request.payment_id,
                        status_code=exc.status_code,
                        attempt=attempt,
                        error=exc.message,
                    )
                    raise OrderCreationFailed(exc.message, status_code=exc.status_code, attempts=attempt) from exc

                logger.warning(
                    "order_creation_retry",
                    order_id=request.order_id,
                    status_code=exc.status_code,
                    attempt=attempt,
                    error=exc.message,
                )
                self._sleep(self.retry_delay * attempt)
                continue

            logger.info(
                "order_created",
                order_id=request.order_id,
                backend_order_id=record.order_id,
                attempt=attempt,
            )
            return record
