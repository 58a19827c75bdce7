"""
Request payload parsing for the ledger routes.

Turns JSON bodies and query strings into the frozen ledger inputs
(SaleHeader, SaleLineInput, ...). Only shape and type are checked here;
business rules (positive quantities, payment covers total, ...) belong to
the services so they hold for every caller, not just HTTP.

Every problem raises PayloadError (400), except an unknown product that
comes without a snapshot (ReferentialError, 404).
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from .errors import PayloadError, ReferentialError
from .models import Product
from .extensions import db
from .services.ledger_schemas import (
    PurchaseHeader,
    PurchaseLineInput,
    ReturnHeader,
    ReturnItemInput,
    SaleHeader,
    SaleLineInput,
)
from mypos.time_utils import parse_iso_date, parse_iso_datetime


# Maximum amount: $9,999,999.99 (999,999,999 cents)
MAX_AMOUNT_CENTS = 999_999_999


def coerce_int(value: Any, field: str, *, required: bool = True, default: int | None = None) -> int | None:
    """
    Strict integer coercion: ints and plain-digit strings only.

    Rejects booleans, floats, decimals ("12.5") and scientific notation ("1e3").
    """
    if value is None:
        if required and default is None:
            raise PayloadError(f"{field} is required", details={"field": field})
        return default

    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise PayloadError(f"{field} must be an integer", details={"field": field})
        if "e" in stripped.lower():
            raise PayloadError(
                f"{field} must be a plain integer (scientific notation not allowed)",
                details={"field": field},
            )
        if "." in stripped:
            raise PayloadError(f"{field} must be an integer (no decimals)", details={"field": field})
        try:
            return int(stripped)
        except ValueError:
            raise PayloadError(f"{field} must be an integer", details={"field": field})
    if isinstance(value, float):
        raise PayloadError(f"{field} must be an integer, not a decimal", details={"field": field})
    raise PayloadError(f"{field} must be an integer", details={"field": field})


def coerce_amount(value: Any, field: str, *, default: int | None = None) -> int:
    amount = coerce_int(value, field, default=default)
    if amount > MAX_AMOUNT_CENTS:
        raise PayloadError(
            f"{field} cannot exceed {MAX_AMOUNT_CENTS} cents",
            details={"field": field, "value": amount},
        )
    return amount


def coerce_str(value: Any, field: str, *, required: bool = False) -> str | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise PayloadError(f"{field} is required", details={"field": field})
        return None
    if not isinstance(value, str):
        raise PayloadError(f"{field} must be a string", details={"field": field})
    return value.strip()


def coerce_datetime(value: Any, field: str) -> datetime | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise PayloadError(f"{field} must be an ISO-8601 datetime", details={"field": field})
    try:
        return parse_iso_datetime(value)
    except ValueError:
        raise PayloadError(f"{field} must be an ISO-8601 datetime", details={"field": field})


def coerce_date(value: str | None, field: str) -> date | None:
    """Query-string date ("YYYY-MM-DD"); None when absent."""
    try:
        return parse_iso_date(value)
    except ValueError:
        raise PayloadError(f"{field} must be an ISO-8601 date", details={"field": field})


def require_json_object(payload: Any) -> dict:
    if not isinstance(payload, dict):
        raise PayloadError("Request body must be a JSON object")
    return payload


def _require_list(payload: dict, field: str) -> list[dict]:
    items = payload.get(field)
    if items is None:
        return []
    if not isinstance(items, list) or not all(isinstance(item, dict) for item in items):
        raise PayloadError(f"{field} must be a list of objects", details={"field": field})
    return items


def _snapshot(product_id: int, code: str | None, name: str | None) -> tuple[str, str]:
    """
    Fill a missing product code/name from the catalog at request time.

    The ledger stores whatever snapshot it is handed, so an unknown id with
    no snapshot of its own is reported as missing (404) here.
    """
    if code and name:
        return code, name
    product = db.session.get(Product, product_id)
    if product is None:
        raise ReferentialError(f"Unknown product id(s): {product_id}", details={"product_ids": [product_id]})
    return code or product.code, name or product.name


def parse_sale_request(payload: Any) -> tuple[SaleHeader, list[SaleLineInput]]:
    """
    {
        "payment_type": "CASH",
        "amount_paid_cents": 10000,
        "customer_id": 2,                  (optional)
        "discount_cents": 0,               (optional, order-level)
        "tax_cents": 0,                    (optional)
        "notes": "...",                    (optional)
        "invoice_number": "INV-...",       (optional)
        "date": "2026-01-14T15:30:00Z",    (optional)
        "items": [
            {"product_id": 1, "quantity": 2, "price_cents": 500,
             "discount_cents": 0, "product_code": "...", "product_name": "..."}
        ]
    }
    """
    payload = require_json_object(payload)

    lines = []
    for index, raw in enumerate(_require_list(payload, "items")):
        prefix = f"items[{index}]"
        product_id = coerce_int(raw.get("product_id"), f"{prefix}.product_id")
        code, name = _snapshot(
            product_id,
            coerce_str(raw.get("product_code"), f"{prefix}.product_code"),
            coerce_str(raw.get("product_name"), f"{prefix}.product_name"),
        )
        lines.append(SaleLineInput(
            product_id=product_id,
            product_code=code,
            product_name=name,
            quantity=coerce_int(raw.get("quantity"), f"{prefix}.quantity"),
            price_cents=coerce_amount(raw.get("price_cents"), f"{prefix}.price_cents"),
            discount_cents=coerce_amount(raw.get("discount_cents"), f"{prefix}.discount_cents", default=0),
        ))

    header = SaleHeader(
        payment_type=coerce_str(payload.get("payment_type"), "payment_type", required=True),
        amount_paid_cents=coerce_amount(payload.get("amount_paid_cents"), "amount_paid_cents"),
        customer_id=coerce_int(payload.get("customer_id"), "customer_id", required=False),
        order_discount_cents=coerce_amount(payload.get("discount_cents"), "discount_cents", default=0),
        tax_cents=coerce_amount(payload.get("tax_cents"), "tax_cents", default=0),
        notes=coerce_str(payload.get("notes"), "notes"),
        invoice_number=coerce_str(payload.get("invoice_number"), "invoice_number"),
        date=coerce_datetime(payload.get("date"), "date"),
    )
    return header, lines


def parse_purchase_request(payload: Any) -> tuple[PurchaseHeader, list[PurchaseLineInput]]:
    payload = require_json_object(payload)

    lines = []
    for index, raw in enumerate(_require_list(payload, "items")):
        prefix = f"items[{index}]"
        product_id = coerce_int(raw.get("product_id"), f"{prefix}.product_id")
        code, name = _snapshot(
            product_id,
            coerce_str(raw.get("product_code"), f"{prefix}.product_code"),
            coerce_str(raw.get("product_name"), f"{prefix}.product_name"),
        )
        lines.append(PurchaseLineInput(
            product_id=product_id,
            product_code=code,
            product_name=name,
            quantity=coerce_int(raw.get("quantity"), f"{prefix}.quantity"),
            cost_price_cents=coerce_amount(raw.get("cost_price_cents"), f"{prefix}.cost_price_cents"),
        ))

    header = PurchaseHeader(
        supplier_id=coerce_int(payload.get("supplier_id"), "supplier_id"),
        amount_paid_cents=coerce_amount(payload.get("amount_paid_cents"), "amount_paid_cents", default=0),
        tax_cents=coerce_amount(payload.get("tax_cents"), "tax_cents", default=0),
        notes=coerce_str(payload.get("notes"), "notes"),
        purchase_number=coerce_str(payload.get("purchase_number"), "purchase_number"),
        date=coerce_datetime(payload.get("date"), "date"),
    )
    return header, lines


def parse_return_request(payload: Any) -> tuple[ReturnHeader, list[ReturnItemInput]]:
    payload = require_json_object(payload)

    items = []
    for index, raw in enumerate(_require_list(payload, "items")):
        prefix = f"items[{index}]"
        product_id = coerce_int(raw.get("product_id"), f"{prefix}.product_id")
        _, name = _snapshot(product_id, None, coerce_str(raw.get("product_name"), f"{prefix}.product_name"))
        items.append(ReturnItemInput(
            product_id=product_id,
            product_name=name,
            quantity=coerce_int(raw.get("quantity"), f"{prefix}.quantity"),
            price_cents=coerce_amount(raw.get("price_cents"), f"{prefix}.price_cents"),
        ))

    header = ReturnHeader(
        sale_id=coerce_int(payload.get("sale_id"), "sale_id"),
        reason=coerce_str(payload.get("reason"), "reason"),
        notes=coerce_str(payload.get("notes"), "notes"),
        return_number=coerce_str(payload.get("return_number"), "return_number"),
        return_date=coerce_datetime(payload.get("return_date"), "return_date"),
    )
    return header, items
