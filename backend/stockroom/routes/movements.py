# Overview: Flask API routes for the stock movement ledger; parses input and returns JSON responses.

# backend/stockroom/routes/movements.py
"""
Stock movement routes.

POST applies an entry or exit to a product and appends it to the ledger in
one transaction. GET returns the history, oldest first.
"""

from flask import Blueprint, request, g, current_app

from ..services import movement_service
from ..validation import ValidationError, NotFoundError, InsufficientStockError
from ..decorators import require_auth
from stockroom.time_utils import parse_iso_date

movements_bp = Blueprint("movements", __name__, url_prefix="/api/movements")


def _date_arg(name: str):
    raw = request.args.get(name)
    try:
        return parse_iso_date(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 date (YYYY-MM-DD)")


@movements_bp.get("")
@require_auth
def list_movements():
    """
    Movement history.

    Query params (all optional):
    - product_id: int
    - kind: "entry" | "exit"
    - from: YYYY-MM-DD (inclusive)
    - to: YYYY-MM-DD (inclusive)
    """
    try:
        movements = movement_service.list_movements(
            product_id=request.args.get("product_id", type=int),
            kind=request.args.get("kind") or None,
            date_from=_date_arg("from"),
            date_to=_date_arg("to"),
        )
    except ValidationError as e:
        return {"error": str(e)}, 400

    return {"items": [m.to_dict() for m in movements], "count": len(movements)}


@movements_bp.post("")
@require_auth
def record_movement():
    """
    Record a stock entry or exit.

    Request body:
    {
        "product_id": 1,
        "kind": "entry" | "exit",
        "quantity": 5,
        "note": "optional"
    }

    The movement is attributed to the caller's display name.
    """
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return {"error": "Invalid JSON payload"}, 400

    product_id = payload.get("product_id")
    if product_id is None:
        return {"error": "product_id is required"}, 400
    if not isinstance(product_id, int) or isinstance(product_id, bool):
        return {"error": "product_id must be an integer"}, 400

    try:
        movement, product = movement_service.record_movement(
            product_id=product_id,
            kind=payload.get("kind"),
            quantity=payload.get("quantity"),
            note=payload.get("note"),
            actor_name=g.current_user.display_name,
        )
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except InsufficientStockError as e:
        return {
            "error": str(e),
            "requested": e.requested,
            "available": e.available,
        }, 400
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to record stock movement")
        return {"error": "Internal server error"}, 500

    return {"movement": movement.to_dict(), "product": product.to_dict()}, 201
