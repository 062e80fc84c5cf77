"""
notification.py — ORM Model for Stock Notifications

Advisory rows ("low_stock", "expiry_warning", "new_item") created outside
this service. The application only reads them and marks them as read.
"""

from sqlalchemy import Boolean, Column, ForeignKey, String, Text

from app.core.database import Base
from app.models._columns import created_at_column, id_column


class Notification(Base):
    __tablename__ = "notifications"

    id = id_column()
    type = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    product_id = Column(String(36), ForeignKey("products.id", ondelete="CASCADE"), nullable=True, index=True)
    is_read = Column(Boolean, nullable=False, default=False)

    created_at = created_at_column()

    def __repr__(self):
        return f"<Notification {self.type} read={self.is_read}>"
