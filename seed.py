"""
Demo catalog and optional admin account.

Run directly (``python seed.py``) or through ``POST /seed``.
"""
import os

import structlog

from database import create_document, ensure_indexes, get_db
from schemas import Product as ProductSchema, User as UserSchema
from security import hash_password

logger = structlog.get_logger(__name__)

DEMO_TABLETS = [
    {
        "name": "Apple iPad Pro 12.9-inch",
        "description": "The most powerful iPad with the M2 chip and a Liquid Retina XDR display.",
        "price": 1099,
        "category": "Premium",
        "sub_category": "Pro",
        "images": ["https://images.unsplash.com/photo-1544244015-0df4b3ffc6b0"],
        "sizes": ["128GB", "256GB", "512GB", "1TB"],
        "specs": {"screen": "12.9-inch Liquid Retina XDR", "processor": "M2"},
        "bestseller": True,
        "stock": 15,
    },
    {
        "name": "Samsung Galaxy Tab S9 Ultra",
        "description": "Android tablet with a 14.6-inch AMOLED display and S Pen support.",
        "price": 1199,
        "category": "Premium",
        "sub_category": "Ultra",
        "images": ["https://images.unsplash.com/photo-1611224923853-80b023f02d71"],
        "sizes": ["128GB", "256GB", "512GB"],
        "specs": {"screen": "14.6-inch AMOLED", "processor": "Snapdragon 8 Gen 2"},
        "bestseller": True,
        "stock": 10,
    },
    {
        "name": "Apple iPad Air",
        "description": "Thin and light with the M1 chip.",
        "price": 599,
        "category": "Standard",
        "sub_category": "Air",
        "images": ["https://images.unsplash.com/photo-1561154464-82e9adf32764"],
        "sizes": ["64GB", "256GB"],
        "specs": {"screen": "10.9-inch Liquid Retina", "processor": "M1"},
        "bestseller": True,
        "stock": 30,
    },
    {
        "name": "Lenovo Tab P11",
        "description": "Everyday Android tablet with a 2K display and quad speakers.",
        "price": 229,
        "category": "Standard",
        "sub_category": "Media",
        "images": ["https://images.unsplash.com/photo-1585790050230-5dd28404ccb9"],
        "sizes": ["64GB", "128GB"],
        "specs": {"screen": "11-inch 2K"},
        "stock": 25,
    },
    {
        "name": "Amazon Fire HD 10",
        "description": "Affordable tablet for reading, streaming and kids.",
        "price": 139,
        "category": "Budget",
        "sub_category": "Entertainment",
        "images": ["https://images.unsplash.com/photo-1589739900243-4b52cd9b104e"],
        "sizes": ["32GB", "64GB"],
        "specs": {"screen": "10.1-inch 1080p"},
        "stock": 50,
    },
    {
        "name": "Samsung Galaxy Tab A9",
        "description": "Compact budget tablet with a long battery life.",
        "price": 159,
        "category": "Budget",
        "sub_category": "Compact",
        "images": ["https://images.unsplash.com/photo-1632634392774-a2c7ab30e1d1"],
        "sizes": ["64GB", "128GB"],
        "specs": {"screen": "8.7-inch"},
        "stock": 40,
    },
]


def seed() -> dict:
    handle = get_db()
    ensure_indexes()
    if handle["product"].count_documents({}) > 0:
        return {"seeded": False, "message": "Products already exist"}
    for p in DEMO_TABLETS:
        create_document("product", ProductSchema(**p))
    admin_email = os.getenv("ADMIN_EMAIL")
    admin_password = os.getenv("ADMIN_PASSWORD")
    admin_created = False
    if admin_email and admin_password and not handle["user"].find_one({"email": admin_email.strip().lower()}):
        admin = UserSchema(name="Admin", email=admin_email, password_hash=hash_password(admin_password), role="admin")
        create_document("user", admin)
        admin_created = True
    logger.info("database_seeded", products=len(DEMO_TABLETS), admin_created=admin_created)
    return {"seeded": True, "products": handle["product"].count_documents({}), "admin_created": admin_created}


if __name__ == "__main__":
    print(seed())
