"""
user.py — ORM Model for Application Users

Purpose:
- Represent the people who sign in.
- `user_type` is the global role (admin / editor / common). Inside an
  organization the membership role applies instead (see membership.py).

No password column: login compares a configured demo password.
"""

from sqlalchemy import Column, String

from app.core.database import Base
from app.models._columns import created_at_column, id_column, updated_at_column


class User(Base):
    __tablename__ = "users"

    id = id_column()

    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)

    # Global role: "admin" | "editor" | "common"
    user_type = Column(String, nullable=False, default="common")

    created_at = created_at_column()
    updated_at = updated_at_column()

    def __repr__(self):
        return f"<User {self.email}>"
