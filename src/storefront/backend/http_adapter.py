"""HTTP storefront backend adapter (requests).

Speaks JSON to the storefront API. Successful bodies may come wrapped in a
``{"success": true, "data": ...}`` envelope, which is unwrapped. Error bodies
carry ``{"error": ...}`` or ``{"message": ...}``.
"""

from decimal import ROUND_HALF_UP, Decimal

import requests
import structlog

from storefront.backend.port import (
    BackendError,
    OrderRecord,
    OrderRequest,
    PaymentIntentRequest,
    Product,
    ProductNotFound,
    StorefrontBackend,
)

logger = structlog.get_logger(__name__)


def _error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:300] or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        error = body.get("error") or body.get("message")
        if isinstance(error, dict):
            return " | ".join(f"{k}: {v}" for k, v in error.items())
        if error:
            return str(error)
    return f"HTTP {response.status_code}"


def _price_minor_units(data: dict) -> int | None:
    for key in ("priceMinorUnits", "price_minor_units"):
        if data.get(key) is not None:
            return int(data[key])
    if data.get("price") is not None:
        # Decimal major units, e.g. "15.00"
        return int((Decimal(str(data["price"])) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return None


def _product(data: dict) -> Product:
    return Product(
        id=str(data["id"]),
        title=data.get("title") or data.get("name") or "",
        price_minor_units=_price_minor_units(data),
        description=data.get("description"),
        image=data.get("image") or data.get("image_url"),
    )


class HttpBackend(StorefrontBackend):
    def __init__(self, base_url: str, timeout: float = 30.0, session: requests.Session | None = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _request(self, method: str, path: str, json: dict | None = None, headers: dict | None = None):
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(
                method,
                url,
                json=json,
                headers={"Content-Type": "application/json", **(headers or {})},
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as exc:
            raise BackendError("Request timeout") from exc
        except requests.exceptions.RequestException as exc:
            raise BackendError(f"Network connection failed: {exc}") from exc

        if response.status_code >= 400:
            message = _error_message(response)
            logger.warning("backend_request_failed", method=method, path=path, status=response.status_code, error=message)
            if response.status_code == 404:
                raise ProductNotFound(message, status_code=404)
            raise BackendError(message, status_code=response.status_code)

        try:
            body = response.json()
        except ValueError as exc:
            raise BackendError("Malformed response body", status_code=response.status_code) from exc

        if isinstance(body, dict) and "data" in body:
            return body["data"]
        return body

    def list_products(self) -> list[Product]:
        body = self._request("GET", "/products")
        if isinstance(body, dict):
            body = body.get("products", [])
        return [_product(item) for item in body]

    def get_product(self, product_id: str) -> Product:
        return _product(self._request("GET", f"/products/{product_id}"))

    def create_payment_intent(self, request: PaymentIntentRequest) -> str | None:
        try:
            body = self._request("POST", "/payments/intent", json=request.to_payload())
        except ProductNotFound as exc:
            raise BackendError(exc.message, status_code=404) from exc
        if not isinstance(body, dict):
            raise BackendError("Malformed payment intent response")
        return body.get("clientSecret") or body.get("client_secret")

    def create_order(self, request: OrderRequest, idempotency_key: str) -> OrderRecord:
        try:
            body = self._request(
                "POST",
                "/orders",
                json=request.to_payload(),
                headers={"Idempotency-Key": idempotency_key},
            )
        except ProductNotFound as exc:
            raise BackendError(exc.message, status_code=404) from exc
        if not isinstance(body, dict):
            raise BackendError("Malformed order response", status_code=200)
        order_id = body.get("orderId") or body.get("id")
        if order_id is None:
            raise BackendError("Order response carried no order id", status_code=200)
        return OrderRecord(
            order_id=str(order_id),
            status=body.get("status", "pending"),
            item_count=int(body.get("itemCount", len(request.lines))),
        )
