"""Source images for every published product that has none.

Unlike the queue, the scanner dedups globally: an image whose content hash
is already in the ledger is never attached to another product.
"""
import logging
from datetime import datetime, timezone

from flask import current_app
from sqlalchemy.exc import IntegrityError

from sourcing import extensions
from sourcing.extensions import db
from sourcing.models.image_hash import ImageHash
from sourcing.models.product import Product
from sourcing.services import hashing, image_service, product_service, storage_service
from sourcing.services.providers import build_chain, build_query
from sourcing.workers import get_worker_app

logger = logging.getLogger(__name__)

LOCK_KEY = "bulk_scan"


def run_bulk_scan(client=None, chain=None):
    """Scan published products lacking images.

    Returns:
        {"imagesAssigned": int, "lowConfidenceFlagged": int}
    """
    config = current_app.config

    # Distributed lock
    lock = None
    if extensions.redis_client is not None:
        lock = extensions.redis_client.lock(LOCK_KEY, timeout=3600)
        if not lock.acquire(blocking=False):
            logger.info("Bulk scan already running, skipping")
            return {"imagesAssigned": 0, "lowConfidenceFlagged": 0}

    owns_client = client is None
    if owns_client:
        client = image_service.build_client(config)
    if chain is None:
        chain = build_chain(client, config)

    assigned = 0
    flagged = 0
    try:
        for product_id in product_service.products_lacking_images():
            try:
                confidence = _scan_product(product_id, client, chain, config)
            except Exception:
                db.session.rollback()
                logger.exception("Bulk scan failed for product %d", product_id)
                continue
            if confidence is None:
                continue
            assigned += 1
            if confidence == "low":
                flagged += 1
    finally:
        if owns_client:
            client.close()
        if lock is not None:
            try:
                lock.release()
            except Exception:
                pass  # lock may have expired

    logger.info("Bulk scan done: %d assigned, %d flagged for review", assigned, flagged)
    return {"imagesAssigned": assigned, "lowConfidenceFlagged": flagged}


def _scan_product(product_id, client, chain, config):
    """Source one product. Returns the assigned confidence, or None if skipped."""
    product = db.session.get(Product, product_id)
    if product is None or product.images:
        return None

    min_bytes = config["SCAN_MIN_BYTES"]
    candidate = chain.find(build_query(product.title, product.category), product.category)
    data, content_type = image_service.fetch_image(client, candidate.url)
    image_service.validate_candidate(data, content_type, min_bytes)
    confidence = image_service.assess_confidence(
        len(data), min_bytes, candidate.from_placeholder, config["LOW_CONFIDENCE_MARGIN"]
    )

    digest = hashing.content_hash(data)
    if ImageHash.exists(digest):
        logger.info("Product %d: image %s already in ledger, skipping", product.id, digest[:12])
        return None

    # Ledger insert is the claim on this content
    db.session.add(ImageHash(product_id=product.id, hash=digest))
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        logger.info("Product %d: image %s claimed concurrently, skipping", product_id, digest[:12])
        return None

    slug = product.slug or product_service.generate_slug(product.title) or str(product.id)
    key = storage_service.slug_key(slug, content_type, digest)
    url = storage_service.store(key, data, content_type)

    db.session.refresh(product, with_for_update=True)
    if product.images:
        db.session.rollback()
        logger.info("Product %d gained images during scan, skipping", product_id)
        return None

    product.images = [url]
    product.image_confidence = confidence
    product.image_approved = None
    product.image_review_notes = None
    product.updated_at = datetime.now(timezone.utc)
    db.session.commit()
    logger.info("Product %d assigned %s image from %s", product.id, confidence, candidate.provider)
    return confidence


def scan_images_job():
    """RQ entry point."""
    app = get_worker_app()
    with app.app_context():
        return run_bulk_scan()
