import re
from sourcing.extensions import db
from sourcing.models.product import Product


def generate_slug(text):
    """URL slug from a product title, max 50 chars."""
    slug = re.sub(r"[^a-z0-9\s-]", "", (text or "").lower())
    slug = re.sub(r"\s+", "-", slug.strip())
    return slug[:50]


def get_product(product_id):
    return db.session.get(Product, product_id)


def get_published_by_slug(slug):
    return Product.query.filter_by(slug=slug, published=True).first()


def products_lacking_images():
    """IDs of published products with no images, oldest first."""
    rows = (
        db.session.query(Product.id, Product.images)
        .filter(Product.published.is_(True))
        .order_by(Product.id)
        .all()
    )
    return [product_id for product_id, images in rows if not images]


def get_review_list(needs_review=False, limit=50):
    """Recently updated products for the operator review screen."""
    query = Product.query
    if needs_review:
        query = query.filter(
            db.or_(Product.image_approved.is_(None), Product.image_approved.is_(False))
        )
    return query.order_by(Product.updated_at.desc()).limit(limit).all()
