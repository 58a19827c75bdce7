# Overview: Flask API routes for purchases (goods received from suppliers).

from flask import Blueprint, g, jsonify, request

from ..errors import LedgerError
from ..services import purchase_service
from ..validation import coerce_date, coerce_int, parse_purchase_request
from ..decorators import require_user
from .responses import internal_error_response, ledger_error_response, not_found_response


purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


@purchases_bp.post("")
@require_user
def create_purchase_route():
    """
    Post a purchase.

    Request body:
    {
        "supplier_id": 1,
        "amount_paid_cents": 0,   (optional)
        "tax_cents": 0,           (optional)
        "notes": "...",           (optional)
        "items": [{"product_id": 1, "quantity": 10, "cost_price_cents": 250}]
    }

    Returns:
        201: {"purchase": {..., "items": [...]}}
        400: Invalid input
        404: Unknown user, supplier or product
    """
    try:
        header, lines = parse_purchase_request(request.get_json(silent=True))
        purchase_id = purchase_service.create_purchase(g.ledger_context, header, lines)
        purchase = purchase_service.get_purchase(purchase_id)
        return jsonify({"purchase": purchase.to_dict(include_items=True)}), 201

    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return internal_error_response("Failed to create purchase")


@purchases_bp.get("")
def list_purchases_route():
    try:
        purchases = purchase_service.list_purchases(
            start_date=coerce_date(request.args.get("start"), "start"),
            end_date=coerce_date(request.args.get("end"), "end"),
            supplier_id=coerce_int(request.args.get("supplier_id"), "supplier_id", required=False),
        )
        return jsonify({"purchases": [p.to_dict() for p in purchases], "count": len(purchases)}), 200

    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return internal_error_response("Failed to list purchases")


@purchases_bp.get("/<int:purchase_id>")
def get_purchase_route(purchase_id: int):
    purchase = purchase_service.get_purchase(purchase_id)
    if not purchase:
        return not_found_response(f"Purchase {purchase_id} not found")
    return jsonify({"purchase": purchase.to_dict(include_items=True)}), 200


@purchases_bp.get("/suppliers/<int:supplier_id>/balance")
def supplier_balance_route(supplier_id: int):
    try:
        supplier = purchase_service.require_active_supplier(supplier_id)
        return jsonify({
            "supplier_id": supplier.id,
            "supplier_name": supplier.name,
            "total_purchases_cents": purchase_service.supplier_total_purchases(supplier.id),
            "outstanding_balance_cents": purchase_service.supplier_outstanding_balance(supplier.id),
        }), 200

    except LedgerError as e:
        return ledger_error_response(e)
