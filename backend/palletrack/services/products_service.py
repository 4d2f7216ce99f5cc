# backend/palletrack/services/products_service.py
"""
Product variants.

Deletion is soft (is_active=False) so inventory logs and snapshots keep a
resolvable product. Codes are unique among active products.
"""
from __future__ import annotations

from flask import current_app

from ..errors import ConflictError, NotFoundError
from ..extensions import db
from ..models import ProductVariant, DEFAULT_CATEGORY
from .transactions import atomic

PRODUCT_MUTABLE_FIELDS = {"name", "code", "article_number", "category", "color", "resource_weight", "is_active"}


def apply_product_patch(p: ProductVariant, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _ensure_code_available(code: str | None, exclude_id: int | None = None) -> None:
    if not code:
        return
    q = db.session.query(ProductVariant.id).filter(
        ProductVariant.code == code,
        ProductVariant.is_active.is_(True),
    )
    if exclude_id is not None:
        q = q.filter(ProductVariant.id != exclude_id)
    if q.first() is not None:
        raise ConflictError(f"Product code '{code}' is already in use.")


def get_product(product_id: int) -> ProductVariant:
    p = db.session.get(ProductVariant, product_id)
    if p is None:
        raise NotFoundError("Product not found")
    return p


def list_products(*, include_inactive: bool = False, category: str | None = None) -> dict:
    """Products ordered by category, then name."""
    q = db.session.query(ProductVariant)
    if not include_inactive:
        q = q.filter(ProductVariant.is_active.is_(True))
    if category:
        q = q.filter(ProductVariant.category == category)

    products = q.order_by(ProductVariant.category.asc(), ProductVariant.name.asc(), ProductVariant.id.asc()).all()
    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
    }


def create_product(*, patch: dict) -> dict:
    """
    Create product using a validated patch dict.

    Raises:
        ConflictError: If the code already belongs to an active product
    """
    _ensure_code_available(patch.get("code"))

    p = ProductVariant(category=DEFAULT_CATEGORY, is_active=True)
    apply_product_patch(p, patch)
    if not p.category:
        p.category = DEFAULT_CATEGORY

    with atomic("create product"):
        db.session.add(p)

    current_app.logger.info("Product created id=%s name=%r", p.id, p.name)
    return p.to_dict()


def update_product(*, product_id: int, patch: dict) -> dict:
    p = get_product(product_id)
    reactivating = patch.get("is_active") is True and not p.is_active
    if "code" in patch or reactivating:
        _ensure_code_available(patch.get("code", p.code), exclude_id=p.id)

    with atomic("update product"):
        apply_product_patch(p, patch)
    return p.to_dict()


def delete_product(*, product_id: int) -> dict:
    """Soft-delete: preserve IDs and historical references."""
    p = get_product(product_id)
    if p.is_active:
        with atomic("delete product"):
            p.is_active = False
        current_app.logger.info("Product deactivated id=%s name=%r", p.id, p.name)
    return p.to_dict()
