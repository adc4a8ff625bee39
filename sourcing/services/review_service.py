"""Operator review of sourced images.

unreviewed --approve--> approved
    any    --reject---> rejected (images cleared, back in the bulk scan pool)
    any    --rescrape-> rejected + failed queue items reset

None of these source anything; re-sourcing waits for the next batch run.
"""
from datetime import datetime, timezone
from sourcing.extensions import db
from sourcing.models.audit_log import AuditLog
from sourcing.models.product import Product
from sourcing.services import queue_service

REJECTED_NOTE = "Rejected. Needs new image."
RESCRAPE_NOTE = "Re-scrape requested"


def approve(product_id, operator=None):
    """Make the product's images visible to buyers.

    Operator approval overrides sourced confidence.
    """
    product = db.session.get(Product, product_id)
    if not product:
        return None
    if not product.images:
        raise ValueError("Cannot approve a product without images.")

    product.image_approved = True
    product.image_confidence = "high"
    product.image_review_notes = None
    product.updated_at = datetime.now(timezone.utc)

    db.session.add(
        AuditLog(operator=operator, action="APPROVE_IMAGE", product_id=product.id)
    )
    db.session.commit()
    return product


def reject(product_id, operator=None):
    """Clear the images so the next bulk scan sources new ones."""
    product = db.session.get(Product, product_id)
    if not product:
        return None

    old_images = list(product.images or [])
    _clear_images(product, REJECTED_NOTE)

    db.session.add(
        AuditLog(
            operator=operator,
            action="REJECT_IMAGE",
            product_id=product.id,
            payload={"images": old_images},
        )
    )
    db.session.commit()
    return product


def request_rescrape(product_id, operator=None):
    """Mark a product for re-sourcing on the next batch run."""
    product = db.session.get(Product, product_id)
    if not product:
        return None

    _clear_images(product, RESCRAPE_NOTE)
    reset = queue_service.reset_failed_for_product(product.id)

    db.session.add(
        AuditLog(
            operator=operator,
            action="REQUEST_RESCRAPE",
            product_id=product.id,
            payload={"queue_items_reset": reset},
        )
    )
    db.session.commit()
    return product


def _clear_images(product, note):
    product.images = []
    product.image_approved = False
    product.image_confidence = "low"
    product.image_review_notes = note
    product.updated_at = datetime.now(timezone.utc)
