"""Drain the image queue in bounded batches.

Claims happen on the invoking thread with an atomic conditional UPDATE;
fetch/validate/upload run in a small thread pool that never touches the
database session; results are written back on the invoking thread.
"""
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from sourcing.extensions import db
from sourcing.models.product import Product
from sourcing.models.queue_item import QueueItem
from sourcing.services import hashing, image_service, queue_service, storage_service
from sourcing.services.providers import build_chain, build_query
from sourcing.workers import get_worker_app

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SourcingJob:
    item_id: int
    source_url: str
    product_id: Optional[int]
    query: Optional[str] = None
    category: Optional[str] = None


@dataclass(frozen=True)
class SourcingOutcome:
    item_id: int
    product_id: Optional[int]
    url: Optional[str] = None
    confidence: Optional[str] = None
    content_hash: Optional[str] = None
    error: Optional[str] = None


def run_queue_batch(client=None, chain=None):
    """Process up to QUEUE_BATCH_SIZE pending items.

    Returns:
        {"processed": int, "failed": int, "total": int}

    Raises:
        SQLAlchemyError if the queue itself cannot be read
    """
    app = current_app._get_current_object()
    config = app.config
    max_attempts = config["MAX_ATTEMPTS"]

    queue_service.sweep_stale(config["STALE_PROCESSING_MINUTES"], max_attempts)

    candidate_ids = queue_service.select_pending_ids(config["QUEUE_BATCH_SIZE"], max_attempts)
    claimed = [i for i in candidate_ids if queue_service.claim(i, max_attempts)]
    db.session.commit()

    if not claimed:
        logger.info("No items in queue")
        return {"processed": 0, "failed": 0, "total": 0}

    logger.info("Claimed %d of %d queue items", len(claimed), len(candidate_ids))
    jobs = [_build_job(item_id) for item_id in claimed]

    owns_client = client is None
    if owns_client:
        client = image_service.build_client(config)
    if chain is None:
        chain = build_chain(client, config)

    processed = 0
    failed = 0
    try:
        workers = max(1, min(config["SOURCING_WORKERS"], len(jobs)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [pool.submit(_source_safely, app, client, chain, job) for job in jobs]
            for future in as_completed(futures):
                if _resolve(future.result(), max_attempts):
                    processed += 1
                else:
                    failed += 1
    finally:
        if owns_client:
            client.close()

    logger.info("Queue batch done: %d processed, %d failed", processed, failed)
    return {"processed": processed, "failed": failed, "total": len(jobs)}


def _build_job(item_id):
    item = db.session.get(QueueItem, item_id)
    query = category = None
    if not item.source_url and item.product_id:
        product = db.session.get(Product, item.product_id)
        if product:
            query = build_query(product.title, product.category)
            category = product.category
    return SourcingJob(
        item_id=item.id,
        source_url=item.source_url or "",
        product_id=item.product_id,
        query=query,
        category=category,
    )


def _source_safely(app, client, chain, job):
    try:
        with app.app_context():
            return _source(app.config, client, chain, job)
    except (image_service.SourcingError, storage_service.StorageError) as e:
        logger.warning("Queue item %d failed: %s", job.item_id, e)
        return SourcingOutcome(job.item_id, job.product_id, error=str(e))
    except Exception as e:
        logger.exception("Unexpected error sourcing queue item %d", job.item_id)
        return SourcingOutcome(job.item_id, job.product_id, error=str(e) or type(e).__name__)


def _source(config, client, chain, job):
    min_bytes = config["QUEUE_MIN_BYTES"]
    url = job.source_url
    from_placeholder = False
    if not url and job.query:
        candidate = chain.find(job.query, job.category)
        url, from_placeholder = candidate.url, candidate.from_placeholder

    data, content_type = image_service.fetch_image(client, url)
    image_service.validate_candidate(data, content_type, min_bytes)
    digest = hashing.content_hash(data)

    if job.product_id:
        key = storage_service.product_key(job.product_id, content_type, digest)
    else:
        key = storage_service.queue_key(job.item_id, content_type, digest)
    public_url = storage_service.store(key, data, content_type)

    confidence = image_service.assess_confidence(
        len(data), min_bytes, from_placeholder, config["LOW_CONFIDENCE_MARGIN"]
    )
    return SourcingOutcome(
        job.item_id, job.product_id, url=public_url, confidence=confidence, content_hash=digest
    )


def _resolve(outcome, max_attempts):
    """Write one outcome back. Returns True if the item completed."""
    if outcome.error:
        _record_failure(outcome.item_id, outcome.error, max_attempts)
        return False

    try:
        item = db.session.get(QueueItem, outcome.item_id, populate_existing=True)
        item.complete(outcome.url)
        if outcome.product_id:
            queue_service.attach_image(outcome.product_id, outcome.url, outcome.confidence)
        db.session.commit()
        logger.info(
            "Queue item %d stored as %s (sha256 %s)",
            item.id, outcome.url, outcome.content_hash[:12],
        )
        return True
    except ValueError as e:
        # Swept or reset by another invocation while we worked
        db.session.rollback()
        logger.warning("Queue item %d already resolved elsewhere: %s", outcome.item_id, e)
        return False
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.exception("Could not record success for queue item %d", outcome.item_id)
        _record_failure(outcome.item_id, f"Database error: {e}", max_attempts)
        return False


def _record_failure(item_id, error, max_attempts):
    try:
        item = db.session.get(QueueItem, item_id, populate_existing=True)
        item.fail(error, max_attempts)
        db.session.commit()
    except ValueError as e:
        db.session.rollback()
        logger.warning("Queue item %d already resolved elsewhere: %s", item_id, e)
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Could not record failure for queue item %d", item_id)


def process_queue_job():
    """RQ entry point."""
    app = get_worker_app()
    with app.app_context():
        return run_queue_batch()
