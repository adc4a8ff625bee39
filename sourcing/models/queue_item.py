from datetime import datetime, timezone
from sourcing.extensions import db


class QueueItem(db.Model):
    __tablename__ = "image_queue"

    id = db.Column(db.Integer, primary_key=True)
    source_url = db.Column(db.String(2048), nullable=False, default="")
    product_id = db.Column(
        db.Integer,
        db.ForeignKey("products.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    status = db.Column(db.String(20), nullable=False, default="pending", index=True)
    attempts = db.Column(db.Integer, nullable=False, default=0)
    processed_url = db.Column(db.String(1024))
    error = db.Column(db.Text)
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )
    claimed_at = db.Column(db.DateTime(timezone=True))
    processed_at = db.Column(db.DateTime(timezone=True))

    STATUSES = {"pending", "processing", "completed", "failed"}

    # failed/completed → pending only through an explicit reset
    TRANSITIONS = {
        "pending": {"processing"},
        "processing": {"completed", "pending", "failed"},
        "failed": {"pending"},
        "completed": {"pending"},
    }

    def transition(self, new_status):
        allowed = self.TRANSITIONS.get(self.status, set())
        if new_status not in allowed:
            raise ValueError(
                f"Illegal queue transition {self.status} -> {new_status} (item {self.id})"
            )
        self.status = new_status

    def complete(self, processed_url):
        self.transition("completed")
        self.processed_url = processed_url
        self.processed_at = datetime.now(timezone.utc)
        self.error = None

    def fail(self, error, max_attempts):
        """Resolve a failed attempt: back to pending, or failed at the ceiling."""
        self.error = str(error)[:1000]
        if (self.attempts or 0) >= max_attempts:
            self.transition("failed")
        else:
            self.transition("pending")

    def reset(self):
        """Explicit operator reset; the only way out of failed."""
        self.transition("pending")
        self.attempts = 0
        self.error = None
        self.claimed_at = None

    def to_dict(self):
        return {
            "id": self.id,
            "source_url": self.source_url,
            "product_id": self.product_id,
            "status": self.status,
            "attempts": self.attempts,
            "processed_url": self.processed_url,
            "error": self.error,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "processed_at": self.processed_at.isoformat() if self.processed_at else None,
        }

    def __repr__(self):
        return f"<QueueItem {self.id} [{self.status}] attempts={self.attempts}>"
