# backend/mypos/routes/inventory.py
"""
Inventory read routes.

Stock is only ever changed by posting a sale, purchase or return, so there
are no write endpoints here.
"""
from flask import Blueprint, jsonify

from ..services import inventory_service
from .responses import not_found_response


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("/low-stock")
def low_stock_route():
    products = inventory_service.list_low_stock_products()
    return jsonify({"products": [p.to_dict() for p in products], "count": len(products)}), 200


@inventory_bp.get("/products/<int:product_id>")
def product_stock_route(product_id: int):
    product = inventory_service.get_product(product_id)
    if not product:
        return not_found_response(f"Product {product_id} not found")
    return jsonify({"product": product.to_dict()}), 200
