"""
organization.py — ORM Model for Organizations

Purpose:
- The tenancy boundary. Every category, model and product belongs to exactly
  one organization; users reach organizations through memberships.

Deleting an organization removes its memberships but is refused while it
still owns categories, models or products.
"""

from sqlalchemy import Column, String, Text

from app.core.database import Base
from app.models._columns import created_at_column, id_column, updated_at_column


class Organization(Base):
    __tablename__ = "organizations"

    id = id_column()

    # Human-friendly organization name
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)

    created_at = created_at_column()
    updated_at = updated_at_column()

    def __repr__(self):
        return f"<Organization {self.name} ({self.id})>"
