"""
catalog_model.py — ORM Model for Product Models (name + brand within a category)

Stored in the "models" table. A model must reference a category of the
same organization; the API enforces that before inserting.
"""

from sqlalchemy import Column, ForeignKey, String

from app.core.database import Base
from app.models._columns import created_at_column, id_column, updated_at_column


class CatalogModel(Base):
    __tablename__ = "models"

    id = id_column()
    name = Column(String, nullable=False)
    brand = Column(String, nullable=False)

    category_id = Column(String(36), ForeignKey("categories.id", ondelete="RESTRICT"), nullable=False, index=True)
    organization_id = Column(
        String(36), ForeignKey("organizations.id", ondelete="RESTRICT"), nullable=False, index=True
    )

    created_at = created_at_column()
    updated_at = updated_at_column()

    def __repr__(self):
        return f"<CatalogModel {self.brand} {self.name}>"
