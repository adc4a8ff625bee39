"""Queue item persistence: enqueue, atomic claim, resolution helpers."""
import logging
from datetime import datetime, timedelta, timezone
from urllib.parse import urlsplit

from sqlalchemy import update

from sourcing.extensions import db
from sourcing.models.audit_log import AuditLog
from sourcing.models.product import Product
from sourcing.models.queue_item import QueueItem

logger = logging.getLogger(__name__)


def validate_source_url(url):
    """Normalize a source URL. Empty means "find any image for the product"."""
    candidate = (url or "").strip()
    if not candidate:
        return ""

    parts = urlsplit(candidate)
    if parts.scheme.lower() not in ("http", "https"):
        raise ValueError("Source URL must use http:// or https://")
    if parts.username or parts.password:
        raise ValueError("Source URL must not include credentials.")
    if not parts.hostname:
        raise ValueError("Source URL must include a host.")
    return candidate


def enqueue_source_request(source_url, product_id=None, operator=None):
    """Insert a pending sourcing request."""
    source_url = validate_source_url(source_url)
    if product_id is not None and db.session.get(Product, product_id) is None:
        raise ValueError(f"Product {product_id} not found")
    if not source_url and product_id is None:
        raise ValueError("Either a source URL or a product is required.")

    item = QueueItem(source_url=source_url, product_id=product_id, status="pending")
    db.session.add(item)
    db.session.flush()

    db.session.add(
        AuditLog(
            operator=operator,
            action="ENQUEUE",
            product_id=product_id,
            queue_item_id=item.id,
            payload={"source_url": source_url},
        )
    )
    db.session.commit()
    return item


def select_pending_ids(limit, max_attempts):
    """Oldest pending items still under the retry ceiling."""
    rows = (
        db.session.query(QueueItem.id)
        .filter(QueueItem.status == "pending", QueueItem.attempts < max_attempts)
        .order_by(QueueItem.created_at.asc(), QueueItem.id.asc())
        .limit(limit)
        .all()
    )
    return [row[0] for row in rows]


def claim(item_id, max_attempts):
    """Atomically move one item pending → processing.

    The WHERE clause repeats the selection criteria, so of two concurrent
    invocations only one sees rowcount 1.
    """
    result = db.session.execute(
        update(QueueItem)
        .where(
            QueueItem.id == item_id,
            QueueItem.status == "pending",
            QueueItem.attempts < max_attempts,
        )
        .values(
            status="processing",
            attempts=QueueItem.attempts + 1,
            claimed_at=datetime.now(timezone.utc),
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def sweep_stale(max_age_minutes, max_attempts):
    """Resolve items stranded in processing by a crashed invocation."""
    cutoff = datetime.now(timezone.utc) - timedelta(minutes=max_age_minutes)
    stale = QueueItem.query.filter(
        QueueItem.status == "processing",
        db.or_(QueueItem.claimed_at.is_(None), QueueItem.claimed_at < cutoff),
    ).all()
    for item in stale:
        logger.warning("Recovering stale queue item %d (attempts=%d)", item.id, item.attempts)
        item.fail("Processing interrupted", max_attempts)
    if stale:
        db.session.commit()
    return len(stale)


def attach_image(product_id, url, confidence=None):
    """Append a sourced image to its product, respecting the 3-image cap."""
    product = db.session.get(Product, product_id, with_for_update=True)
    if product is None:
        logger.warning("Product %s vanished before image attach", product_id)
        return False

    was_empty = not product.images
    added = product.add_image(url)
    if added and was_empty and confidence:
        product.image_confidence = confidence
    product.updated_at = datetime.now(timezone.utc)
    return added


def retry_item(item_id, operator=None):
    """Operator reset of a queue item back to pending with a fresh budget.

    Returns None if the item does not exist. Raises ValueError while the
    item is being processed.
    """
    item = db.session.get(QueueItem, item_id)
    if not item:
        return None
    if item.status == "processing":
        raise ValueError(f"Queue item {item.id} is being processed.")
    if item.status == "pending":
        item.attempts = 0
        item.error = None
    else:
        item.reset()

    db.session.add(
        AuditLog(
            operator=operator,
            action="RETRY_QUEUE_ITEM",
            product_id=item.product_id,
            queue_item_id=item.id,
        )
    )
    db.session.commit()
    return item


def reset_failed_for_product(product_id):
    """Give a product's exhausted queue items a fresh retry budget."""
    items = QueueItem.query.filter_by(product_id=product_id, status="failed").all()
    for item in items:
        item.reset()
    return len(items)


def queue_stats():
    rows = (
        db.session.query(QueueItem.status, db.func.count(QueueItem.id))
        .group_by(QueueItem.status)
        .all()
    )
    stats = {status: 0 for status in sorted(QueueItem.STATUSES)}
    stats.update(dict(rows))
    stats["total"] = sum(count for _, count in rows)
    return stats


def list_items(status=None, limit=100):
    query = QueueItem.query
    if status:
        query = query.filter_by(status=status)
    return query.order_by(QueueItem.created_at.desc(), QueueItem.id.desc()).limit(limit).all()
