"""
category.py — ORM Model for Product Categories
"""

from sqlalchemy import Column, ForeignKey, String, Text

from app.core.database import Base
from app.models._columns import created_at_column, id_column, updated_at_column


class Category(Base):
    __tablename__ = "categories"

    id = id_column()
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)

    # Models / products still pointing at the category block its deletion
    organization_id = Column(
        String(36), ForeignKey("organizations.id", ondelete="RESTRICT"), nullable=False, index=True
    )

    created_at = created_at_column()
    updated_at = updated_at_column()

    def __repr__(self):
        return f"<Category {self.name}>"
