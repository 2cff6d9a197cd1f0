"""
Turn provider line items into licensable (product_reference, quantity, line_item_id) tuples.

Raw items may be plain dicts (JSON) or Stripe SDK objects; nothing loosely
typed leaves this module.
"""
import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Set

from app.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedLineItem:
    product_reference: str
    quantity: int
    line_item_id: str


def _field(obj: Any, name: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _product_reference(raw_item: Any) -> Optional[str]:
    product = _field(_field(raw_item, "price"), "product")
    # An unexpanded product is just its id string
    if product is None or isinstance(product, str):
        return None
    slug = _field(_field(product, "metadata"), "slug")
    return str(slug) if slug else None


def resolve_line_items(
    raw_items: Iterable[Any],
    non_licensable: Optional[Set[str]] = None,
) -> List[ResolvedLineItem]:
    """
    Keep only items that map to a licensable product.
    Items without a slug, or whose slug is non-licensable (e.g. shipping), are dropped.
    """
    if non_licensable is None:
        non_licensable = settings.non_licensable_reference_set

    resolved: List[ResolvedLineItem] = []
    for position, raw_item in enumerate(raw_items, start=1):
        reference = _product_reference(raw_item)
        if not reference or reference in non_licensable:
            logger.debug("Skipping non-licensable line item %s (%s)", _field(raw_item, "id"), reference)
            continue

        try:
            quantity = int(_field(raw_item, "quantity") or 1)
        except (TypeError, ValueError):
            quantity = 1

        line_item_id = _field(raw_item, "id") or f"line_{position}"

        resolved.append(ResolvedLineItem(
            product_reference=reference,
            quantity=max(quantity, 1),
            line_item_id=str(line_item_id),
        ))

    return resolved
