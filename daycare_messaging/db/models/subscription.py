"""
Subscription Model - recurring monthly charge at the payment gateway
"""
import enum
from sqlalchemy import Column, Integer, String, DateTime, Date, Enum as SQLEnum, Numeric

from daycare_messaging.core.clock import utcnow
from daycare_messaging.db.database import Base


class SubscriptionStatus(str, enum.Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"


class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, index=True)

    parent_id = Column(String(36), nullable=False, index=True)
    child_id = Column(String(36), nullable=True)

    # Gateway correlation key
    asaas_subscription_id = Column(String(100), unique=True, nullable=True, index=True)

    value = Column(Numeric(10, 2), nullable=False, default=0)
    billing_day = Column(Integer, nullable=True)
    status = Column(
        SQLEnum(
            SubscriptionStatus,
            native_enum=False,
            length=20,
            values_callable=lambda x: [e.value for e in x]
        ),
        nullable=False,
        default=SubscriptionStatus.ACTIVE
    )
    next_due_date = Column(Date, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
