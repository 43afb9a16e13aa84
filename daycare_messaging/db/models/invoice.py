"""
Invoice Model - one charge issued through the payment gateway
"""
import enum
from sqlalchemy import Column, Integer, String, DateTime, Date, Enum as SQLEnum, Numeric

from daycare_messaging.core.clock import utcnow
from daycare_messaging.db.database import Base


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"
    REFUNDED = "refunded"
    REFUNDING = "refunding"
    CHARGEBACK = "chargeback"


class Invoice(Base):
    """Invoice reconciled from payment gateway webhooks"""

    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True)

    parent_id = Column(String(36), nullable=False, index=True)
    child_id = Column(String(36), nullable=True)
    subscription_id = Column(Integer, nullable=True, index=True)

    # Gateway correlation key
    asaas_payment_id = Column(String(100), unique=True, nullable=True, index=True)

    description = Column(String(255), nullable=True)
    value = Column(Numeric(10, 2), nullable=False, default=0)
    due_date = Column(Date, nullable=True)

    status = Column(
        SQLEnum(
            PaymentStatus,
            native_enum=False,
            length=20,
            values_callable=lambda x: [e.value for e in x]
        ),
        nullable=False,
        default=PaymentStatus.PENDING
    )
    payment_date = Column(Date, nullable=True)
    payment_type = Column(String(30), nullable=True)  # PIX, BOLETO, CREDIT_CARD
    invoice_url = Column(String(500), nullable=True)
    bank_slip_url = Column(String(500), nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
