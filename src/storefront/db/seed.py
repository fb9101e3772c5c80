"""Seed demo catalog products

Run: python -m storefront.db.seed
"""
from decimal import Decimal
from sqlalchemy import select
from sqlalchemy.orm import Session
from storefront.db import database
from storefront.models.product import Product
import logging

logger = logging.getLogger(__name__)

DEMO_PRODUCTS = [
    {
        "name": "Gaming Laptop",
        "description": "High-performance gaming laptop with RTX 3080",
        "price": Decimal("1299.99"),
        "stock": 10,
        "category": "Electronics",
    },
    {
        "name": "Wireless Headphones",
        "description": "Noise-cancelling Bluetooth headphones",
        "price": Decimal("199.99"),
        "stock": 20,
        "category": "Electronics",
    },
    {
        "name": "Mechanical Keyboard",
        "description": "RGB mechanical gaming keyboard",
        "price": Decimal("129.99"),
        "stock": 15,
        "category": "Electronics",
    },
]


def seed_products(db: Session) -> int:
    """Insert demo products that are not present yet; returns how many were added"""
    existing = set(db.execute(select(Product.name)).scalars())
    added = 0
    for data in DEMO_PRODUCTS:
        if data["name"] in existing:
            continue
        db.add(Product(is_active=True, **data))
        added += 1
    db.commit()
    logger.info(f"Seeded {added} products")
    return added


if __name__ == "__main__":
    from storefront.config import settings
    from storefront.logging_config import setup_logging

    setup_logging(settings)
    database.init_database(settings.database_url, isolation_level=settings.isolation_level)
    database.create_tables()

    session = database.SessionLocal()
    try:
        seed_products(session)
    finally:
        session.close()
