"""Failure messages for Locust from Storefront API responses.

A checkout step can fail in two ways: the request is rejected outright
(4xx/5xx with a ``detail`` or ``error`` body), or it is accepted and the
returned checkout reports the trouble itself through ``field_errors``,
``last_error`` and ``failure_stage``. Both are reduced to one short line.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from requests import Response

MAX_DETAIL = 300


def _joined(errors: dict) -> str:
    parts = []
    for field, messages in errors.items():
        if isinstance(messages, list):
            messages = "; ".join(str(message) for message in messages)
        parts.append(f"{field}: {messages}")
    return " | ".join(parts)


def _rejection(body) -> str | None:
    detail = body.get("detail")
    if isinstance(detail, str):
        # CheckoutBusy, unknown product, missing handoff record
        return detail
    if isinstance(detail, list):
        # Request body did not match the schema
        return _joined(
            {".".join(str(part) for part in item.get("loc", [])[1:]) or "body": item.get("msg") for item in detail}
        )

    error = body.get("error")
    if isinstance(error, dict):
        return _joined(error)
    if error:
        return str(error)
    return None


def checkout_problem(body: dict) -> str | None:
    """What a checkout body reports as wrong, or None when the step went through."""
    if body.get("state") == "Failed":
        return f"checkout failed at {body.get('failure_stage') or 'unknown stage'}: {body.get('last_error')}"
    if body.get("field_errors"):
        return _joined(body["field_errors"])
    return None


def extract_error_detail(response: Response) -> str:
    """One line describing why ``response`` is a failure, for Locust and the request log."""
    try:
        body = response.json()
    except ValueError:
        text = getattr(response, "text", "") or ""
        return text[:MAX_DETAIL] or "(empty response body)"

    if not isinstance(body, dict):
        return str(body)[:MAX_DETAIL]
    return _rejection(body) or checkout_problem(body) or str(body)[:MAX_DETAIL]
