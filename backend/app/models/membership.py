"""
membership.py — ORM Model for User ↔ Organization Memberships

At most one row per (user, organization). The row's role ("admin" |
"editor" | "viewer") is the user's effective role inside that organization.
"""

from sqlalchemy import Column, ForeignKey, String, UniqueConstraint

from app.core.database import Base
from app.models._columns import created_at_column, id_column


class UserOrganization(Base):
    __tablename__ = "user_organizations"
    __table_args__ = (
        UniqueConstraint("user_id", "organization_id", name="uq_user_organization"),
    )

    id = id_column()
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    organization_id = Column(
        String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role = Column(String, nullable=False, default="viewer")

    created_at = created_at_column()

    def __repr__(self):
        return f"<UserOrganization {self.user_id} @ {self.organization_id} ({self.role})>"
