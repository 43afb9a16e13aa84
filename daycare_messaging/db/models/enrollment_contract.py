"""
Enrollment Contract Model - contract sent to a parent for e-signature
"""
import enum
from sqlalchemy import Column, Integer, String, DateTime, Enum as SQLEnum

from daycare_messaging.core.clock import utcnow
from daycare_messaging.db.database import Base


class ContractStatus(str, enum.Enum):
    DRAFT = "draft"
    SENT = "sent"
    SIGNED = "signed"
    REFUSED = "refused"
    EXPIRED = "expired"


class EnrollmentContract(Base):
    __tablename__ = "enrollment_contracts"

    id = Column(Integer, primary_key=True, index=True)

    parent_id = Column(String(36), nullable=False, index=True)
    child_id = Column(String(36), nullable=True)
    child_name = Column(String(200), nullable=False)

    # E-signature correlation key
    zapsign_doc_token = Column(String(100), unique=True, nullable=True, index=True)

    status = Column(
        SQLEnum(
            ContractStatus,
            native_enum=False,
            length=20,
            values_callable=lambda x: [e.value for e in x]
        ),
        nullable=False,
        default=ContractStatus.DRAFT
    )
    signed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
