#!/usr/bin/env python3
"""Seed sample products and queue items for local development."""
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sourcing import create_app
from sourcing.extensions import db
from sourcing.models.product import Product
from sourcing.services.product_service import generate_slug
from sourcing.services.queue_service import enqueue_source_request

app = create_app()

SAMPLE_PRODUCTS = [
    {
        "title": "Wireless Noise Cancelling Headphones",
        "category": "electronics",
        "image_url": "https://images.unsplash.com/photo-1505740420928-5e560c06d30e?w=800",
    },
    {
        "title": "Leather Crossbody Bag",
        "category": "accessories",
        "image_url": "",
    },
    {
        "title": "Vitamin C Brightening Serum",
        "category": "beauty",
        "image_url": "https://images.unsplash.com/photo-1620916566398-39f1143ab7be?w=800",
    },
    {
        "title": "Ceramic Table Lamp",
        "category": "home",
        "image_url": "",
    },
    {
        "title": "Linen Summer Shirt",
        "category": "fashion",
        "image_url": "https://images.unsplash.com/photo-1596755094514-f87e34085b2c?w=800",
    },
    {
        "title": "Industrial Hose Clamp Set",
        "category": "hardware",
        "image_url": "",
    },
]


def seed():
    with app.app_context():
        db.create_all()

        if Product.query.first():
            print("Products already exist. Skipping seed.")
            return

        for data in SAMPLE_PRODUCTS:
            product = Product(
                title=data["title"],
                slug=generate_slug(data["title"]),
                category=data["category"],
                published=True,
                images=[],
            )
            db.session.add(product)
            db.session.flush()

            # Products with a known source go through the queue, the rest
            # are left for the bulk scanner.
            if data["image_url"]:
                enqueue_source_request(data["image_url"], product_id=product.id, operator="seed")
            print(f"  Created: {product.id} — {product.title}")

        db.session.commit()
        print(f"\nSeeded {len(SAMPLE_PRODUCTS)} products.")


if __name__ == "__main__":
    seed()
