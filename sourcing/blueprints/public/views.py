"""Buyer-facing product image view."""
from flask import abort
from sourcing.blueprints.public import public_bp
from sourcing.services.product_service import get_published_by_slug


@public_bp.route("/p/<slug>")
def product_images(slug):
    """Published product with only operator-approved images."""
    product = get_published_by_slug(slug)
    if not product:
        abort(404)

    images = product.visible_images
    return {
        "id": product.id,
        "title": product.title,
        "slug": product.slug,
        "category": product.category,
        "images": images,
        "primary_image": images[0] if images else None,
    }
