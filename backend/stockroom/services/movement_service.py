# Overview: Service-layer operations for the movement ledger; stock entries and exits.

"""
Stock Movement Ledger

Invariants:
- quantity_on_hand never goes negative. An exit larger than the stock on
  hand is rejected before anything is written.
- A movement row exists if and only if its quantity change was applied:
  the product update and the movement insert share one transaction.
- The product row is the source of truth for current stock; movements are
  history and are never replayed.

Concurrency:
- The product UPDATE is conditioned on the version_id that was read
  (SQLAlchemy version_id_col). A concurrent change to the same product makes
  the UPDATE match zero rows and raise StaleDataError; the transaction is
  rolled back and the whole operation re-runs from the read, so the stock
  check is evaluated against the post-conflict quantity.
- SELECT ... FOR UPDATE is also requested; backends that honour it serialize
  writers per product row. Different products never contend.
"""

from __future__ import annotations

from datetime import date

from flask import current_app

from ..extensions import db
from ..models import Product, Movement, MOVEMENT_KINDS
from ..validation import (
    ValidationError,
    NotFoundError,
    InsufficientStockError,
    MAX_QUANTITY,
    coerce_int,
)
from .concurrency import lock_for_update, run_with_retry
from stockroom.time_utils import utcnow, start_of_day, end_of_day

MAX_NOTE_LENGTH = 255


def _load_product(product_id: int, *, lock: bool = False) -> Product:
    query = db.session.query(Product).filter(Product.id == product_id)
    if lock:
        query = lock_for_update(query).populate_existing()
    product = query.first()
    if product is None:
        raise NotFoundError("Product not found")
    return product


def _validate_quantity(quantity) -> int:
    if quantity is None:
        raise ValidationError("quantity is required")
    qty = coerce_int("quantity", quantity)
    if qty < 1:
        raise ValidationError("quantity must be at least 1")
    if qty > MAX_QUANTITY:
        raise ValidationError(f"quantity cannot exceed {MAX_QUANTITY:,}")
    return qty


def _validate_kind(kind) -> str:
    if kind not in MOVEMENT_KINDS:
        raise ValidationError('invalid kind: use "entry" or "exit"')
    return kind


def _validate_note(note) -> str:
    if note is None:
        return ""
    note = str(note).strip()
    if len(note) > MAX_NOTE_LENGTH:
        raise ValidationError(f"note exceeds max length {MAX_NOTE_LENGTH}")
    return note


def record_movement(
    *,
    product_id: int,
    kind: str,
    quantity,
    note: str | None = None,
    actor_name: str,
) -> tuple[Movement, Product]:
    """
    Apply a stock entry or exit and append it to the ledger.

    Order: load product, validate, check stock (exit only), mutate, persist
    product, append movement, commit.

    Raises:
        NotFoundError: product does not exist
        ValidationError: quantity not an integer >= 1, or kind not entry/exit
        InsufficientStockError: exit larger than quantity_on_hand
    """
    note = _validate_note(note)

    def _op():
        product = _load_product(product_id, lock=True)
        qty = _validate_quantity(quantity)
        movement_kind = _validate_kind(kind)

        available = product.quantity_on_hand
        if movement_kind == "exit" and qty > available:
            raise InsufficientStockError(qty, available)

        if movement_kind == "entry":
            if available + qty > MAX_QUANTITY:
                raise ValidationError(f"quantity_on_hand cannot exceed {MAX_QUANTITY:,}")
            product.quantity_on_hand = available + qty
        else:
            product.quantity_on_hand = available - qty

        # Versioned UPDATE; raises StaleDataError if the row moved underneath us
        db.session.flush()

        movement = Movement(
            product_id=product.id,
            product_name=product.name,
            kind=movement_kind,
            quantity=qty,
            note=note,
            actor_name=actor_name,
            occurred_at=utcnow(),
        )
        db.session.add(movement)
        db.session.commit()
        return movement, product

    try:
        movement, product = run_with_retry(
            _op,
            attempts=current_app.config.get("MOVEMENT_RETRY_ATTEMPTS", 3),
        )
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(
        "Stock %s of %d on product %s by %s (now %d)",
        movement.kind, movement.quantity, product.id, actor_name, product.quantity_on_hand,
    )
    return movement, product


def list_movements(
    *,
    product_id: int | None = None,
    kind: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
) -> list[Movement]:
    """
    Movement history in creation order.

    date_from/date_to are inclusive calendar days.
    """
    query = db.session.query(Movement)

    if product_id is not None:
        query = query.filter(Movement.product_id == product_id)
    if kind is not None:
        query = query.filter(Movement.kind == _validate_kind(kind))
    if date_from is not None:
        query = query.filter(Movement.occurred_at >= start_of_day(date_from))
    if date_to is not None:
        query = query.filter(Movement.occurred_at <= end_of_day(date_to))

    return query.order_by(Movement.occurred_at.asc(), Movement.id.asc()).all()
