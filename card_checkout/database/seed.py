"""Initial product catalog, inserted once into an empty products table."""
from decimal import Decimal
from typing import Any, Dict, List

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from card_checkout.database.mappers import product_to_record
from card_checkout.database.models import ProductRecord
from card_checkout.domain.entities import Product

logger = structlog.get_logger(__name__)

CATALOG: List[Dict[str, Any]] = [
    {
        "name": "iPhone 15 Pro Max",
        "description": (
            "Titanium design, A17 Pro chip, 48MP Pro camera system and the "
            "customizable Action button. Dynamic Island and a 6.7-inch Super "
            "Retina XDR display."
        ),
        "price": Decimal("5499000"),
        "stock": 15,
        "image_url": "https://images.unsplash.com/photo-1695048133142-1a20484d2569?w=800",
    },
    {
        "name": 'MacBook Pro 14" M3 Pro',
        "description": (
            "M3 Pro chip, 18GB unified memory, 512GB SSD and a 14.2-inch Liquid "
            "Retina XDR display. Up to 17 hours of battery life."
        ),
        "price": Decimal("9999000"),
        "stock": 8,
        "image_url": "https://images.unsplash.com/photo-1517336714731-489689fd1ca8?w=800",
    },
    {
        "name": "AirPods Pro 2da Gen",
        "description": (
            "Active noise cancellation, adaptive transparency, personalized "
            "spatial audio and a MagSafe charging case with speaker."
        ),
        "price": Decimal("1249000"),
        "stock": 25,
        "image_url": "https://images.unsplash.com/photo-1600294037681-c80b4cb5b434?w=800",
    },
    {
        "name": "Samsung Galaxy S24 Ultra",
        "description": (
            'Built-in S Pen, 200MP camera, 6.8" Dynamic AMOLED 2X display, '
            "Snapdragon 8 Gen 3 and Galaxy AI."
        ),
        "price": Decimal("5999000"),
        "stock": 12,
        "image_url": "https://images.unsplash.com/photo-1610945265064-0e34e5519bbf?w=800",
    },
    {
        "name": "PlayStation 5 Slim",
        "description": (
            "PlayStation 5 Slim with 1TB SSD, DualSense controller, 4K HDR output "
            "at 120fps and access to PlayStation exclusives."
        ),
        "price": Decimal("2499000"),
        "stock": 10,
        "image_url": "https://images.unsplash.com/photo-1606144042614-b2417e99c4e3?w=800",
    },
    {
        "name": "Apple Watch Series 9",
        "description": (
            "S9 chip, double tap, always-on Retina display, blood oxygen sensor "
            "and ECG. Water resistant to 50m."
        ),
        "price": Decimal("2199000"),
        "stock": 20,
        "image_url": "https://images.unsplash.com/photo-1434493789847-2f02dc6ca35d?w=800",
    },
]


async def seed_products(session: AsyncSession) -> int:
    """
    Insert the catalog if no product exists yet.

    Returns:
        int: Number of products inserted (0 when already seeded)
    """
    count = await session.scalar(select(func.count()).select_from(ProductRecord))
    if count:
        logger.info("products_already_seeded", count=count)
        return 0

    session.add_all(product_to_record(Product(**entry)) for entry in CATALOG)
    await session.commit()
    logger.info("products_seeded", count=len(CATALOG))
    return len(CATALOG)
