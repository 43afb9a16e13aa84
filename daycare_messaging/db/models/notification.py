"""
Notification Model - in-app notifications for parents and operators
"""
from sqlalchemy import Column, Integer, String, DateTime, Boolean, Text

from daycare_messaging.core.clock import utcnow
from daycare_messaging.db.database import Base


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    # Free-form category; the delivery health alert dedup queries by it
    type = Column(String(50), nullable=False, index=True)
    link = Column(String(300), nullable=True)
    read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
