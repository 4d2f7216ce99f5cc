from __future__ import annotations

from ..extensions import db
from palletrack.time_utils import to_utc_z


class StorageLocation(db.Model):
    """
    A storage zone on the floor plan. Locations form a forest via parent_id.

    TREE INVARIANTS (enforced in location_service, before any write):
    - parent relation is acyclic
    - capacity (pallets) is only set on leaves; a parent's capacity is the
      roll-up of its leaves
    - a location with active children cannot be deleted

    Deletion is a soft delete (is_active=False) so inventory log rows keep a
    valid reference. Inactive locations are not part of the tree.

    x / y / width / height are floor-plan grid units, used only for rendering.
    """
    __tablename__ = "storage_locations"
    __table_args__ = (
        db.Index("ix_storage_locations_parent_active", "parent_id", "is_active"),
        db.Index("ix_storage_locations_parent_name", "parent_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Unique among active siblings (checked at application layer; NULL parents
    # would defeat a database unique constraint for root locations)
    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text, nullable=True)

    parent_id = db.Column(db.Integer, db.ForeignKey("storage_locations.id"), nullable=True, index=True)

    x = db.Column(db.Integer, nullable=False, default=0)
    y = db.Column(db.Integer, nullable=False, default=0)
    width = db.Column(db.Integer, nullable=False, default=1)
    height = db.Column(db.Integer, nullable=False, default=1)
    color = db.Column(db.String(16), nullable=True)

    # Pallets; leaf-only. NULL means unbounded.
    capacity = db.Column(db.Integer, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    parent = db.relationship("StorageLocation", remote_side=[id], backref=db.backref("children", lazy=True))

    def __repr__(self) -> str:
        return f"<StorageLocation id={self.id} name={self.name!r} parent_id={self.parent_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "parent_id": self.parent_id,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "color": self.color,
            "capacity": self.capacity,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

    def to_ref(self) -> dict:
        return {"id": self.id, "name": self.name, "parent_id": self.parent_id}
