"""Catalog read path: product references (slugs) to Product rows."""
import logging
from typing import Dict, Iterable

from sqlalchemy.orm import Session

from app.models.product import Product

logger = logging.getLogger(__name__)


def lookup_products(db: Session, references: Iterable[str]) -> Dict[str, Product]:
    """
    Return the products matching the given slugs, keyed by slug.
    References with no match are simply absent; callers decide how to fail.
    """
    slugs = sorted(set(references))
    if not slugs:
        return {}

    products = db.query(Product).filter(Product.slug.in_(slugs)).all()
    return {p.slug: p for p in products}
