"""
product.py — ORM Model for Tracked Products (stock items)

Purpose:
- One row per tracked item: its model, stock level and reorder threshold.

Key Points:
- `category_id` duplicates the model's category for query convenience;
  keeping the two consistent is the writer's job.
- quantity >= 0 and min_quantity >= 1 are enforced by check constraints.
"""

from sqlalchemy import CheckConstraint, Column, Date, ForeignKey, Integer, Numeric, String

from app.core.database import Base
from app.models._columns import created_at_column, id_column, updated_at_column


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_products_quantity_non_negative"),
        CheckConstraint("min_quantity >= 1", name="ck_products_min_quantity_positive"),
    )

    id = id_column()
    name = Column(String, nullable=False)

    model_id = Column(String(36), ForeignKey("models.id", ondelete="RESTRICT"), nullable=False, index=True)
    category_id = Column(String(36), ForeignKey("categories.id", ondelete="RESTRICT"), nullable=False, index=True)
    organization_id = Column(
        String(36), ForeignKey("organizations.id", ondelete="RESTRICT"), nullable=False, index=True
    )

    # Stock level and reorder threshold
    quantity = Column(Integer, nullable=False, default=1)
    min_quantity = Column(Integer, nullable=False, default=1)

    # Optional unit value and expiry date
    value = Column(Numeric(12, 2), nullable=True)
    expiry_date = Column(Date, nullable=True)

    created_at = created_at_column()
    updated_at = updated_at_column()

    def __repr__(self):
        return f"<Product {self.name} qty={self.quantity}>"
