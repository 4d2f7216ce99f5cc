from __future__ import annotations

from ..extensions import db
from palletrack.time_utils import to_utc_z


# Known categories, in display order. The column stays an open string so a
# new category only needs a label on the client.
PRODUCT_CATEGORIES = ("raw", "intermediate", "finished", "packaging", "other")
DEFAULT_CATEGORY = "finished"


class ProductVariant(db.Model):
    """
    A trackable good (counted in pallets).

    Deletion is a soft delete: inventory log rows keep pointing at the
    variant, and history views still resolve its name.
    """
    __tablename__ = "product_variants"
    __table_args__ = (
        db.Index("ix_product_variants_category_name", "category", "name"),
        db.Index("ix_product_variants_active", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    code = db.Column(db.String(32), nullable=True, index=True)
    article_number = db.Column(db.String(64), nullable=True)
    category = db.Column(db.String(32), nullable=False, default=DEFAULT_CATEGORY)
    color = db.Column(db.String(16), nullable=True)

    # Per-unit weight (kg); informational
    resource_weight = db.Column(db.Float, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<ProductVariant id={self.id} name={self.name!r} code={self.code!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "article_number": self.article_number,
            "category": self.category,
            "color": self.color,
            "resource_weight": self.resource_weight,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

    def to_ref(self) -> dict:
        return {"id": self.id, "name": self.name, "code": self.code, "color": self.color, "category": self.category}
