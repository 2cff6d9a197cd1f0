"""
Stock decrement for fulfilled sessions.

Gated by the stock_decremented_at claim: the claim is taken before any
decrement, so a decrement that fails afterwards is not retried here and has to
be reconciled out of band.
"""
import logging
from collections import OrderedDict
from typing import Dict, List, Optional

from sqlalchemy import case, update
from sqlalchemy.orm import Session

from app.models.product import Product
from app.services.fulfillment_state import claim_once
from app.services.line_items import ResolvedLineItem

logger = logging.getLogger(__name__)


def decrement_stock(db: Session, product_id: int, quantity: int) -> Optional[int]:
    """
    Atomically decrement a tracked product's stock, clamped at zero.
    Returns the new quantity, or None if the product is not tracked.
    """
    stmt = (
        update(Product)
        .where(
            Product.id == product_id,
            Product.track_inventory.is_(True),
            Product.stock_quantity.isnot(None),
        )
        .values(
            stock_quantity=case(
                (Product.stock_quantity >= quantity, Product.stock_quantity - quantity),
                else_=0,
            )
        )
        .returning(Product.stock_quantity)
        .execution_options(synchronize_session=False)
    )
    new_quantity = db.execute(stmt).scalar_one_or_none()
    db.commit()
    return new_quantity


def aggregate_quantities(
    items: List[ResolvedLineItem],
    products: Dict[str, Product],
) -> "OrderedDict[int, int]":
    """Total purchased units per product id, in line item order."""
    totals: "OrderedDict[int, int]" = OrderedDict()
    for item in items:
        product_id = products[item.product_reference].id
        totals[product_id] = totals.get(product_id, 0) + item.quantity
    return totals


def decrement_inventory_once(
    db: Session,
    session_id: str,
    items: List[ResolvedLineItem],
    products: Dict[str, Product],
) -> bool:
    """
    Decrement stock for the session's products if this attempt wins the claim.
    Per-product failures are logged and do not fail fulfillment.
    Returns True if this attempt held the claim.
    """
    if not claim_once(db, session_id, "stock_decremented_at"):
        return False

    by_id = {p.id: p for p in products.values()}
    for product_id, quantity in aggregate_quantities(items, products).items():
        product = by_id[product_id]
        if not product.track_inventory or product.stock_quantity is None:
            continue
        slug = product.slug
        try:
            new_quantity = decrement_stock(db, product_id, quantity)
            logger.info(
                "Decremented stock for %s by %d (now %s) for session %s",
                slug, quantity, new_quantity, session_id,
            )
        except Exception as e:
            db.rollback()
            logger.error(
                "Failed to decrement stock for %s (session %s): %s",
                slug, session_id, e,
            )

    return True
