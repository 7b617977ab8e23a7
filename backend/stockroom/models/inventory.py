from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, to_iso_date


MOVEMENT_KINDS = ("entry", "exit")


class Product(db.Model):
    """
    Product master data and its quantity on hand.

    quantity_on_hand is the source of truth for current stock; movements are
    history, never replayed to compute it. It only changes through
    movement_service.record_movement (or the initial value at creation).

    version_id drives SQLAlchemy optimistic locking: every UPDATE is
    conditioned on the version that was read, and a mismatch raises
    StaleDataError instead of silently overwriting a concurrent change.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("quantity_on_hand >= 0", name="ck_products_quantity_non_negative"),
        db.CheckConstraint("unit_price_cents >= 0", name="ck_products_price_non_negative"),
        db.CheckConstraint("minimum_stock >= 0", name="ck_products_minimum_non_negative"),
        db.Index("ix_products_name", "name"),
        db.Index("ix_products_barcode", "barcode"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    barcode = db.Column(db.String(64), nullable=True)
    expiry_date = db.Column(db.Date, nullable=True)

    # Authoritative storage in cents (frontend may only format for display)
    unit_price_cents = db.Column(db.Integer, nullable=False, default=0)

    quantity_on_hand = db.Column(db.Integer, nullable=False, default=0)
    minimum_stock = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_low_stock(self) -> bool:
        return self.quantity_on_hand <= (self.minimum_stock or 0)

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} qty={self.quantity_on_hand}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "barcode": self.barcode,
            "expiry_date": to_iso_date(self.expiry_date),
            "unit_price_cents": self.unit_price_cents,
            "quantity_on_hand": self.quantity_on_hand,
            "minimum_stock": self.minimum_stock,
            "is_low_stock": self.is_low_stock,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Movement(db.Model):
    """
    One recorded stock change.

    IMMUTABLE: Never update or delete. product_name is a snapshot taken when
    the movement was recorded, and product_id carries no foreign key, so the
    history stays readable after a product is renamed or deleted.
    """
    __tablename__ = "movements"
    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_movements_quantity_positive"),
        db.CheckConstraint("kind IN ('entry', 'exit')", name="ck_movements_kind"),
        db.Index("ix_movements_product_occurred", "product_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    product_id = db.Column(db.Integer, nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)

    kind = db.Column(db.String(8), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)

    note = db.Column(db.String(255), nullable=True)
    actor_name = db.Column(db.String(128), nullable=False)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def __repr__(self) -> str:
        return f"<Movement id={self.id} product_id={self.product_id} {self.kind} {self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "kind": self.kind,
            "quantity": self.quantity,
            "note": self.note or "",
            "actor_name": self.actor_name,
            "occurred_at": to_utc_z(self.occurred_at),
        }
