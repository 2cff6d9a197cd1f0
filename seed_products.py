"""
Seed script: registers catalog products referenced by Stripe product metadata (slug).

Usage:
    python seed_products.py

Idempotent: upsert by slug.
"""
from app.database import SessionLocal
from app.models.product import Product

PRODUCTS = [
    {
        "slug": "robot-kit",
        "name": "Robot Arm Kit",
        "track_inventory": True,
        "stock_quantity": 50,
    },
    {
        "slug": "sensor-pack",
        "name": "Sensor Expansion Pack",
        "track_inventory": True,
        "stock_quantity": 100,
    },
    {
        "slug": "course-access",
        "name": "Online Course Access",
        "track_inventory": False,
        "stock_quantity": None,
    },
]

db = SessionLocal()
try:
    for p in PRODUCTS:
        product = db.query(Product).filter(Product.slug == p["slug"]).first()

        if not product:
            db.add(Product(
                slug=p["slug"],
                name=p["name"],
                track_inventory=p["track_inventory"],
                stock_quantity=p["stock_quantity"],
                is_active=True,
            ))
            print(f"  Created: {p['name']}")
        else:
            product.name = p["name"]
            product.track_inventory = p["track_inventory"]
            print(f"  Exists:  {p['name']}")

    db.commit()
    print("\nDone.")
finally:
    db.close()
