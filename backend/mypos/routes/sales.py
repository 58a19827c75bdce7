# Overview: Flask API routes for sales; parses input and returns JSON responses.

# backend/mypos/routes/sales.py
"""
Sales API Routes

DESIGN:
- POST posts a complete sale (header + items) in one atomic call; there is
  no draft/line-by-line workflow
- Totals are always computed server-side; clients send quantities, prices
  and discounts only
- Credit-limit checks are advisory and come back as "credit_warnings"
"""

from flask import Blueprint, g, jsonify, request

from ..errors import LedgerError
from ..services import customer_service, numbering_service, sales_service
from ..services.calculations import compute_sale_totals, normalize_payment_type
from ..validation import coerce_date, parse_sale_request
from ..decorators import require_user
from .responses import internal_error_response, ledger_error_response, not_found_response
from mypos.time_utils import utcnow


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@require_user
def create_sale_route():
    """
    Post a sale.

    Headers:
        X-User-Id: posting user

    Request body: see validation.parse_sale_request

    Returns:
        201: {"sale": {..., "items": [...]}, "credit_warnings": [...]}
        400: Invalid input (empty cart, bad quantity, short payment, ...)
        404: Unknown user, customer or product
        503: Storage failure (nothing was saved)
    """
    try:
        header, lines = parse_sale_request(request.get_json(silent=True))

        customer = None
        if header.customer_id is not None:
            customer = customer_service.get_customer(header.customer_id)
        totals = compute_sale_totals(
            lines,
            order_discount_cents=header.order_discount_cents,
            tax_cents=header.tax_cents,
        )
        warnings = customer_service.credit_warnings(
            customer,
            totals.total_cents,
            normalize_payment_type(header.payment_type),
        )

        sale_id = sales_service.create_sale(g.ledger_context, header, lines)
        sale = sales_service.get_sale(sale_id)
        return jsonify({"sale": sale.to_dict(include_items=True), "credit_warnings": warnings}), 201

    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return internal_error_response("Failed to create sale")


@sales_bp.get("")
def list_sales_route():
    """
    List sales in a date range (inclusive, by calendar date).

    Query params:
        start: YYYY-MM-DD (default: today)
        end:   YYYY-MM-DD (default: start)
    """
    try:
        start = coerce_date(request.args.get("start"), "start") or utcnow().date()
        end = coerce_date(request.args.get("end"), "end")
        sales = sales_service.list_sales(start, end)
        return jsonify({"sales": [s.to_dict() for s in sales], "count": len(sales)}), 200

    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return internal_error_response("Failed to list sales")


@sales_bp.get("/<int:sale_id>")
def get_sale_route(sale_id: int):
    sale = sales_service.get_sale(sale_id)
    if not sale:
        return not_found_response(f"Sale {sale_id} not found")
    return jsonify({"sale": sale.to_dict(include_items=True)}), 200


@sales_bp.get("/by-invoice/<invoice_number>")
def get_sale_by_invoice_route(invoice_number: str):
    sale = sales_service.get_sale_by_invoice(invoice_number)
    if not sale:
        return not_found_response(f"Invoice {invoice_number} not found")
    return jsonify({"sale": sale.to_dict(include_items=True)}), 200


@sales_bp.get("/next-invoice-number")
def next_invoice_number_route():
    """Preview only: the number is reserved when the sale is posted."""
    return jsonify({"invoice_number": numbering_service.peek_invoice_number()}), 200


@sales_bp.get("/summary/today")
def today_summary_route():
    today = utcnow().date()
    sales = sales_service.list_sales(today)
    return jsonify({
        "date": today.isoformat(),
        "count": len(sales),
        "total_cents": sales_service.total_sales_for_day(today),
    }), 200


@sales_bp.get("/customers/<int:customer_id>")
def customer_sales_route(customer_id: int):
    """Sales history for one customer, newest first."""
    customer = customer_service.get_customer(customer_id)
    if not customer:
        return not_found_response(f"Customer {customer_id} not found")
    sales = sales_service.list_customer_sales(customer_id)
    return jsonify({
        "customer": customer.to_dict(),
        "sales": [s.to_dict() for s in sales],
        "count": len(sales),
    }), 200
