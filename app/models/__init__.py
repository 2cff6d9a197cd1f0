# Database models
from .base import Base
from .product import Product
from .license import License, LicenseStatus, LicenseSource
from .fulfillment import FulfillmentRecord, FulfillmentStatus

__all__ = [
    "Base",
    "Product",
    "License",
    "LicenseStatus",
    "LicenseSource",
    "FulfillmentRecord",
    "FulfillmentStatus",
]
