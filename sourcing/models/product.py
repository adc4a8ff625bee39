from datetime import datetime, timezone
from sourcing.extensions import db


class Product(db.Model):
    __tablename__ = "products"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    slug = db.Column(db.String(255), unique=True, index=True)
    category = db.Column(db.String(100))
    published = db.Column(db.Boolean, nullable=False, default=False, index=True)
    images = db.Column(db.JSON, default=list)  # public URLs, first = primary
    image_confidence = db.Column(db.String(10))  # high, low; NULL = unknown
    image_approved = db.Column(db.Boolean)
    image_review_notes = db.Column(db.Text)
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        index=True,
    )

    MAX_IMAGES = 3
    CONFIDENCES = {"high", "low", "unknown"}

    @property
    def has_images(self):
        return bool(self.images)

    @property
    def review_state(self):
        if self.image_approved is True:
            return "approved"
        if self.image_approved is False:
            return "rejected"
        return "unreviewed"

    @property
    def visible_images(self):
        """Images shown to buyers: only once an operator approved them."""
        if self.image_approved is True:
            return list(self.images or [])
        return []

    def add_image(self, url):
        """Append an image URL, keeping existing order and the 3-image cap.

        Returns True if the URL was added.
        """
        current = list(self.images or [])
        if url in current or len(current) >= self.MAX_IMAGES:
            return False
        current.append(url)
        # Reassign so the JSON column is flagged as modified
        self.images = current
        return True

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "slug": self.slug,
            "category": self.category,
            "published": self.published,
            "images": list(self.images or []),
            "image_confidence": self.image_confidence or "unknown",
            "image_approved": self.image_approved,
            "image_review_notes": self.image_review_notes,
            "review_state": self.review_state,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Product {self.id}: {self.title}>"
