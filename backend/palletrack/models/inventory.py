from __future__ import annotations

from ..extensions import db
from palletrack.time_utils import to_utc_z


class CurrentInventory(db.Model):
    """
    Ledger head state: latest observed quantity per (location, product).

    Mutated only by ledger_service.apply_entries, which writes the paired
    InventoryLog row in the same transaction. Zero-quantity rows are kept so
    "last checked" metadata survives a re-zero.
    """
    __tablename__ = "current_inventory"
    __table_args__ = (
        db.UniqueConstraint("location_id", "product_id", name="uq_current_inventory_location_product"),
        db.CheckConstraint("quantity >= 0", name="ck_current_inventory_quantity_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    location_id = db.Column(db.Integer, db.ForeignKey("storage_locations.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("product_variants.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False, default=0)

    last_checked_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    last_checked_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    location = db.relationship("StorageLocation")
    product = db.relationship("ProductVariant")
    last_checked_by = db.relationship("User")

    def to_dict(self, *, expand: bool = True) -> dict:
        data = {
            "id": self.id,
            "location_id": self.location_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "last_checked_at": to_utc_z(self.last_checked_at),
            "last_checked_by_id": self.last_checked_by_id,
        }
        if expand:
            data["location"] = self.location.to_ref() if self.location else None
            data["product"] = self.product.to_ref() if self.product else None
            data["last_checked_by"] = self.last_checked_by.to_ref() if self.last_checked_by else None
        return data


class InventoryLog(db.Model):
    """
    Append-only history of quantity changes.

    One row per accepted change: previous_qty is NULL the first time a pair
    is observed. Rows are never updated or deleted; this table is the only
    source of truth for "what changed when".
    """
    __tablename__ = "inventory_logs"
    __table_args__ = (
        db.Index("ix_inventory_logs_changed_at", "changed_at"),
        db.Index("ix_inventory_logs_location_product_changed", "location_id", "product_id", "changed_at"),
        db.Index("ix_inventory_logs_user_changed", "changed_by_id", "changed_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    location_id = db.Column(db.Integer, db.ForeignKey("storage_locations.id"), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("product_variants.id"), nullable=False)

    previous_qty = db.Column(db.Integer, nullable=True)
    new_qty = db.Column(db.Integer, nullable=False)

    changed_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    changed_at = db.Column(db.DateTime(timezone=True), nullable=False)

    location = db.relationship("StorageLocation")
    product = db.relationship("ProductVariant")
    changed_by = db.relationship("User")

    @property
    def delta(self) -> int:
        return self.new_qty - (self.previous_qty or 0)

    def to_dict(self, *, expand: bool = True) -> dict:
        data = {
            "id": self.id,
            "location_id": self.location_id,
            "product_id": self.product_id,
            "previous_qty": self.previous_qty,
            "new_qty": self.new_qty,
            "delta": self.delta,
            "changed_by_id": self.changed_by_id,
            "changed_at": to_utc_z(self.changed_at),
        }
        if expand:
            data["location"] = self.location.to_ref() if self.location else None
            data["product"] = self.product.to_ref() if self.product else None
            data["changed_by"] = self.changed_by.to_ref() if self.changed_by else None
        return data


class InventorySnapshot(db.Model):
    """
    Immutable point-in-time bundle of quantities.

    Either an explicit list of counted entries or the CurrentInventory table
    materialized at taken_at. Never affects current inventory.
    """
    __tablename__ = "inventory_snapshots"
    __table_args__ = (
        db.Index("ix_inventory_snapshots_taken_at", "taken_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    taken_at = db.Column(db.DateTime(timezone=True), nullable=False)
    taken_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    notes = db.Column(db.Text, nullable=True)

    # "MANUAL" (explicit entries) or "CURRENT" (materialized from current inventory)
    source = db.Column(db.String(16), nullable=False, default="MANUAL")

    taken_by = db.relationship("User")
    entries = db.relationship(
        "InventoryEntry",
        back_populates="snapshot",
        cascade="all, delete-orphan",
        order_by="InventoryEntry.id",
    )

    def to_dict(self, *, include_entries: bool = False) -> dict:
        data = {
            "id": self.id,
            "taken_at": to_utc_z(self.taken_at),
            "taken_by_id": self.taken_by_id,
            "taken_by": self.taken_by.to_ref() if self.taken_by else None,
            "notes": self.notes,
            "source": self.source,
            "entry_count": len(self.entries),
            "total_quantity": sum(e.quantity for e in self.entries),
        }
        if include_entries:
            data["entries"] = [e.to_dict() for e in self.entries]
        return data


class InventoryEntry(db.Model):
    __tablename__ = "inventory_entries"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_inventory_entries_quantity_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    snapshot_id = db.Column(db.Integer, db.ForeignKey("inventory_snapshots.id"), nullable=False, index=True)
    location_id = db.Column(db.Integer, db.ForeignKey("storage_locations.id"), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("product_variants.id"), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)

    snapshot = db.relationship("InventorySnapshot", back_populates="entries")
    location = db.relationship("StorageLocation")
    product = db.relationship("ProductVariant")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "snapshot_id": self.snapshot_id,
            "location_id": self.location_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "location": self.location.to_ref() if self.location else None,
            "product": self.product.to_ref() if self.product else None,
        }
