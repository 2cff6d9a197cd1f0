"""
License issuance for a checkout session.

Each purchased unit gets its own key, "<session_id>:<line_item_id>:<unit_index>",
stored in licenses.purchase_item_ref under a unique constraint. Issuance only
inserts keys that are missing and ignores conflicts on that key, so any number
of duplicate or concurrent attempts converge on the same rows.

code and claim_token are random and also unique. A collision on either is
resolved by regenerating both for the batch, a bounded number of times.
"""
import logging
from dataclasses import dataclass
from typing import Dict, List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import settings
from app.database import upsert_insert
from app.models.license import License, LicenseSource, LicenseStatus
from app.models.product import Product
from app.services.errors import LicenseCodeCollisionError
from app.services.license_codes import generate_claim_token, generate_license_code
from app.services.line_items import ResolvedLineItem

logger = logging.getLogger(__name__)

# Constraint names (PostgreSQL) and column paths (SQLite) of the random unique fields
_GENERATED_FIELD_MARKERS = (
    "uq_licenses_code",
    "uq_licenses_claim_token",
    "licenses.code",
    "licenses.claim_token",
)


@dataclass
class IssueResult:
    licenses: List[License]
    created: int = 0
    legacy: bool = False


def purchase_item_ref(session_id: str, line_item_id: str, unit_index: int) -> str:
    return f"{session_id}:{line_item_id}:{unit_index}"


def _licenses_for_session(db: Session, session_id: str) -> List[License]:
    return (
        db.query(License)
        .filter(License.stripe_session_id == session_id)
        .order_by(License.id)
        .all()
    )


def _is_generated_field_collision(error: IntegrityError) -> bool:
    message = str(error.orig).lower()
    return any(marker in message for marker in _GENERATED_FIELD_MARKERS)


def _required_units(
    session_id: str,
    items: List[ResolvedLineItem],
    products: Dict[str, Product],
) -> Dict[str, int]:
    """purchase_item_ref -> product_id for every purchased unit"""
    required: Dict[str, int] = {}
    for item in items:
        product = products[item.product_reference]
        for unit_index in range(1, item.quantity + 1):
            required[purchase_item_ref(session_id, item.line_item_id, unit_index)] = product.id
    return required


def issue_licenses(
    db: Session,
    session_id: str,
    customer_email: str,
    items: List[ResolvedLineItem],
    products: Dict[str, Product],
    max_attempts: int | None = None,
) -> IssueResult:
    """
    Insert the licenses this session is still missing and return all of them.

    Raises LicenseCodeCollisionError when code/claim_token collisions persist
    for max_attempts rounds. Other database errors propagate.
    """
    if max_attempts is None:
        max_attempts = settings.license_insert_max_attempts

    existing = _licenses_for_session(db, session_id)
    if any(lic.purchase_item_ref is None for lic in existing):
        logger.info(
            "Session %s has %d license(s) without unit keys; treating as already fulfilled",
            session_id, len(existing),
        )
        return IssueResult(licenses=existing, legacy=True)

    required = _required_units(session_id, items, products)
    present = {lic.purchase_item_ref for lic in existing}
    to_create = [(ref, product_id) for ref, product_id in required.items() if ref not in present]

    if not to_create:
        logger.info("All %d license(s) already exist for session %s", len(required), session_id)
        return IssueResult(licenses=existing)

    created = 0
    for attempt in range(1, max_attempts + 1):
        rows = [
            {
                "code": generate_license_code(),
                "claim_token": generate_claim_token(),
                "product_id": product_id,
                "owner_id": None,
                "source": LicenseSource.ONLINE_PURCHASE.value,
                "stripe_session_id": session_id,
                "customer_email": customer_email,
                "status": LicenseStatus.PENDING,
                "purchase_item_ref": ref,
            }
            for ref, product_id in to_create
        ]
        stmt = upsert_insert(db, License).values(rows).on_conflict_do_nothing(
            index_elements=["purchase_item_ref"]
        )
        try:
            result = db.execute(stmt)
            db.commit()
            created = max(result.rowcount or 0, 0)
            break
        except IntegrityError as e:
            db.rollback()
            if not _is_generated_field_collision(e):
                raise
            logger.warning(
                "License code collision for session %s (attempt %d/%d), regenerating",
                session_id, attempt, max_attempts,
            )
    else:
        raise LicenseCodeCollisionError(
            f"Could not generate unique license codes for session {session_id} "
            f"after {max_attempts} attempts"
        )

    licenses = _licenses_for_session(db, session_id)
    logger.info(
        "Session %s: inserted %d license(s), %d total",
        session_id, created, len(licenses),
    )
    return IssueResult(licenses=licenses, created=created)
