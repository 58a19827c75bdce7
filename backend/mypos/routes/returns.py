# Overview: Flask API routes for returns; parses input and returns JSON responses.

# backend/mypos/routes/returns.py
"""
Return Processing API Routes

DESIGN:
- A return is posted in one call against an existing sale
- Stock is restored for every returned line when the return is posted
- The original sale is never modified

The returnable endpoint tells the UI how much of each product on a sale can
still be returned.
"""

from flask import Blueprint, g, jsonify, request

from ..errors import LedgerError
from ..services import return_service
from ..validation import coerce_date, coerce_int, parse_return_request
from ..decorators import require_user
from .responses import internal_error_response, ledger_error_response, not_found_response


returns_bp = Blueprint("returns", __name__, url_prefix="/api/returns")


@returns_bp.post("")
@require_user
def create_return_route():
    """
    Post a return.

    Request body:
    {
        "sale_id": 123,
        "reason": "Damaged",   (optional)
        "notes": "...",        (optional)
        "items": [{"product_id": 1, "quantity": 1, "price_cents": 500}]
    }

    Returns:
        201: {"return": {..., "items": [...]}}
        400: Invalid input or quantity exceeds what is returnable
        404: Unknown user, sale or product
    """
    try:
        header, items = parse_return_request(request.get_json(silent=True))
        return_id = return_service.create_return(g.ledger_context, header, items)
        return_doc = return_service.get_return(return_id)
        return jsonify({"return": return_doc.to_dict(include_items=True)}), 201

    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return internal_error_response("Failed to create return")


@returns_bp.get("")
def list_returns_route():
    """
    Query params:
        sale_id: only returns against this sale
        start, end: YYYY-MM-DD date range (inclusive)
    """
    try:
        sale_id = coerce_int(request.args.get("sale_id"), "sale_id", required=False)
        if sale_id is not None:
            returns = return_service.get_sale_returns(sale_id)
        else:
            returns = return_service.list_returns(
                start_date=coerce_date(request.args.get("start"), "start"),
                end_date=coerce_date(request.args.get("end"), "end"),
            )
        return jsonify({"returns": [r.to_dict() for r in returns], "count": len(returns)}), 200

    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return internal_error_response("Failed to list returns")


@returns_bp.get("/<int:return_id>")
def get_return_route(return_id: int):
    return_doc = return_service.get_return(return_id)
    if not return_doc:
        return not_found_response(f"Return {return_id} not found")
    return jsonify({"return": return_doc.to_dict(include_items=True)}), 200


@returns_bp.get("/sales/<int:sale_id>/returnable")
def returnable_route(sale_id: int):
    try:
        remaining = return_service.returnable_quantities(sale_id)
        return jsonify({
            "sale_id": sale_id,
            "items": [
                {"product_id": product_id, "returnable_quantity": qty}
                for product_id, qty in remaining.items()
            ],
        }), 200

    except LedgerError as e:
        return ledger_error_response(e)
