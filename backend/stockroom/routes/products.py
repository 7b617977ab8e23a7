# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/stockroom/routes/products.py
"""
Product catalog routes.

SECURITY: All routes require authentication.
- Listing, creating and editing need only a valid session
- Deletion requires DELETE_PRODUCTS permission

quantity_on_hand may be given on create; afterwards it only changes through
stock movements.
"""
from flask import Blueprint, request, current_app
from ..services.products_service import (
    list_products as list_products_service,
    list_low_stock,
    get_product as get_product_service,
    create_product,
    update_product,
    delete_product,
)
from ..models import Product
from ..permissions import Capability
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    ValidationError,
    NotFoundError,
)
from ..decorators import require_auth, require_permission

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name",
        "description",
        "barcode",
        "expiry_date",
        "unit_price_cents",
        "quantity_on_hand",
        "minimum_stock",
    },
    required_on_create={"name"},
)

PRODUCT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=PRODUCT_POLICY.writable_fields - {"quantity_on_hand"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products():
    """
    List products with optional search and pagination.

    Query params:
    - q: str (optional) - case-insensitive match on name or barcode
    - page: int (optional) - page number (1-indexed). If omitted, returns all items.
    - per_page: int (optional) - items per page (default 20, max 100)
    """
    search = request.args.get("q")
    page = request.args.get("page", type=int)
    per_page = request.args.get("per_page", type=int)

    return list_products_service(search=search, page=page, per_page=per_page)


@products_bp.get("/low-stock")
@require_auth
def low_stock():
    """Products whose quantity on hand is at or below their minimum stock."""
    return list_low_stock()


@products_bp.get("/<int:product_id>")
@require_auth
def get_product(product_id: int):
    try:
        return get_product_service(product_id).to_dict()
    except NotFoundError as e:
        return {"error": str(e)}, 404


@products_bp.post("")
@require_auth
def create_product_route():
    """
    Create a new product.

    Request body: name (required), description, barcode, expiry_date
    (YYYY-MM-DD), unit_price_cents, quantity_on_hand, minimum_stock.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)  # Handles price validation including max check
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        created = create_product(patch=patch)
    except Exception:
        current_app.logger.exception("Failed to create product")
        return {"error": "Internal server error"}, 500

    return created, 201


@products_bp.put("/<int:product_id>")
@require_auth
def update_product_route(product_id: int):
    """
    Update product details.

    quantity_on_hand is rejected here; record a movement instead.
    """
    payload = request.get_json(silent=True) or {}

    if isinstance(payload, dict) and "quantity_on_hand" in payload:
        return {"error": "quantity_on_hand can only change through stock movements"}, 400

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_UPDATE_POLICY, partial=True)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        updated = update_product(product_id=product_id, patch=patch)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to update product")
        return {"error": "Internal server error"}, 500

    return updated, 200


@products_bp.delete("/<int:product_id>")
@require_auth
@require_permission(Capability.DELETE_PRODUCTS)
def delete_product_route(product_id: int):
    """
    Delete a product.

    Requires DELETE_PRODUCTS permission. Movement history is kept.
    """
    try:
        delete_product(product_id=product_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404

    return {"ok": True}, 200
