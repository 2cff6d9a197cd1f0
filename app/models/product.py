from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from .base import Base


class Product(Base):
    """Catalog product. Line items reference it by slug."""
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    slug = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    track_inventory = Column(Boolean, default=False, nullable=False)
    stock_quantity = Column(Integer, nullable=True)  # NULL = not counted
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    licenses = relationship("License", back_populates="product")
