# backend/stockroom/services/products_service.py
"""
Products Service

Catalog CRUD. quantity_on_hand can be set when a product is created but is
never writable afterwards; all later changes go through the movement ledger.
"""
from __future__ import annotations
from flask import current_app
from ..extensions import db
from ..models import Product
from ..validation import NotFoundError
from .concurrency import run_with_retry

PRODUCT_MUTABLE_FIELDS = {
    "name",
    "description",
    "barcode",
    "expiry_date",
    "unit_price_cents",
    "minimum_stock",
}


def apply_product_patch(p: Product, patch: dict, *, allowed: set[str] = PRODUCT_MUTABLE_FIELDS) -> None:
    for k, v in patch.items():
        if k not in allowed:
            continue
        setattr(p, k, v)


def list_products(
    search: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Product listing with optional name/barcode search and pagination.

    Returns:
        Dict with 'items', 'count', and pagination metadata if paginated.
    """
    base_query = db.session.query(Product)

    if search:
        pattern = f"%{search.strip().lower()}%"
        base_query = base_query.filter(
            db.or_(
                db.func.lower(Product.name).like(pattern),
                db.func.lower(Product.barcode).like(pattern),
            )
        )

    base_query = base_query.order_by(Product.name.asc(), Product.id.asc())

    # If no pagination requested, return all items
    if page is None:
        products = base_query.all()
        return {
            "items": [p.to_dict() for p in products],
            "count": len(products),
        }

    per_page = max(1, min(per_page or 20, 100))  # Default 20, range 1..100
    page = max(page, 1)

    total = base_query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    products = base_query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def list_low_stock() -> dict:
    """Products at or below their minimum stock level."""
    products = (
        db.session.query(Product)
        .filter(Product.quantity_on_hand <= Product.minimum_stock)
        .order_by(Product.quantity_on_hand.asc(), Product.name.asc())
        .all()
    )
    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
    }


def get_product(product_id: int) -> Product:
    p = db.session.get(Product, product_id)
    if p is None:
        raise NotFoundError("Product not found")
    return p


def create_product(*, patch: dict) -> dict:
    """
    Create product using a validated patch dict.

    The patch may carry an opening quantity_on_hand.
    """
    p = Product(
        unit_price_cents=0,
        quantity_on_hand=0,
        minimum_stock=0,
    )
    apply_product_patch(p, patch, allowed=PRODUCT_MUTABLE_FIELDS | {"quantity_on_hand"})

    db.session.add(p)
    db.session.commit()

    current_app.logger.info("Product %s created (id=%s, qty=%s)", p.name, p.id, p.quantity_on_hand)
    return p.to_dict()


def update_product(*, product_id: int, patch: dict) -> dict:
    """
    Update product details.

    Runs under the same optimistic version check as stock movements, so an
    edit racing a movement is retried against the fresh row instead of
    writing back a stale quantity.
    """
    def _op():
        p = get_product(product_id)
        apply_product_patch(p, patch)
        db.session.commit()
        return p.to_dict()

    return run_with_retry(_op)


def delete_product(*, product_id: int) -> None:
    """
    Delete a product.

    Movements keep their product_id and product_name snapshot.
    """
    p = get_product(product_id)
    db.session.delete(p)
    db.session.commit()
