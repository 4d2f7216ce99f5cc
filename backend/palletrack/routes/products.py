# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/palletrack/routes/products.py
"""
Product variant routes.

SECURITY: All routes require authentication; writes require an admin.
"""
from flask import Blueprint, request, current_app
from ..services import products_service
from ..models import ProductVariant
from ..errors import PalletTrackError, error_response
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
)
from ..decorators import require_auth, require_admin

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "code", "article_number", "category", "color", "resource_weight", "is_active"},
    required_on_create={"name"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products():
    """
    List products ordered by category and name.

    Query params:
    - category: str (optional)
    - include_inactive: "true" to include soft-deleted products
    """
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    category = request.args.get("category") or None
    return products_service.list_products(include_inactive=include_inactive, category=category)


@products_bp.post("")
@require_auth
@require_admin
def create_product_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=ProductVariant, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
        created = products_service.create_product(patch=patch)
    except PalletTrackError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create product")
        return {"error": "Internal server error"}, 500

    return created, 201


@products_bp.put("/<int:product_id>")
@require_auth
@require_admin
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=ProductVariant, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
        updated = products_service.update_product(product_id=product_id, patch=patch)
    except PalletTrackError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update product")
        return {"error": "Internal server error"}, 500

    return updated, 200


@products_bp.delete("/<int:product_id>")
@require_auth
@require_admin
def delete_product_route(product_id: int):
    """Soft-delete a product; its history stays intact."""
    try:
        products_service.delete_product(product_id=product_id)
    except PalletTrackError as e:
        return error_response(e)

    return {"ok": True}, 200
