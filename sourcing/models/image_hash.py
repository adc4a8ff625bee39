from datetime import datetime, timezone
from sourcing.extensions import db


class ImageHash(db.Model):
    """Dedup ledger: one row per stored image content hash."""

    __tablename__ = "product_image_hashes"

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(
        db.Integer,
        db.ForeignKey("products.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    hash = db.Column(db.String(64), nullable=False)
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (db.UniqueConstraint("hash", name="uq_image_hash"),)

    @staticmethod
    def exists(content_hash):
        return (
            db.session.query(ImageHash.id).filter_by(hash=content_hash).first()
            is not None
        )

    def __repr__(self):
        return f"<ImageHash {self.hash[:12]} product={self.product_id}>"
