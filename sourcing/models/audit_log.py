from datetime import datetime, timezone
from sourcing.extensions import db


class AuditLog(db.Model):
    __tablename__ = "audit_log"

    id = db.Column(db.Integer, primary_key=True)
    operator = db.Column(db.String(100), index=True)
    action = db.Column(db.String(50), nullable=False)
    product_id = db.Column(
        db.Integer,
        db.ForeignKey("products.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    queue_item_id = db.Column(
        db.Integer,
        db.ForeignKey("image_queue.id", ondelete="SET NULL"),
        nullable=True,
    )
    payload = db.Column(db.JSON)
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )

    ACTIONS = {
        "ENQUEUE",
        "APPROVE_IMAGE",
        "REJECT_IMAGE",
        "REQUEST_RESCRAPE",
        "RETRY_QUEUE_ITEM",
    }

    def __repr__(self):
        return f"<AuditLog {self.action} by {self.operator}>"
