"""
Message Log Models - one row per logical outbound send

Every e-mail or WhatsApp message sent through the provider gets exactly one
row. Redeliveries mutate the same row; rows are never deleted because the
table doubles as the delivery audit trail.
"""
import enum
from sqlalchemy import Column, Integer, String, DateTime, Enum as SQLEnum, JSON, Text

from daycare_messaging.core.clock import utcnow
from daycare_messaging.db.database import Base


class MessageStatus(str, enum.Enum):
    PENDING = "pending"
    SENT = "sent"
    ERROR = "error"                        # failed, eligible for retry
    FAILED_PERMANENT = "failed_permanent"  # terminal, never retried


class MessageLogMixin:
    """Columns shared by every channel's message log"""

    id = Column(Integer, primary_key=True, index=True)

    template_type = Column(String(100), nullable=True)
    provider = Column(String(30), nullable=False, default="ghl")
    direction = Column(String(20), nullable=False, default="outbound")

    status = Column(
        SQLEnum(
            MessageStatus,
            native_enum=False,
            length=32,
            values_callable=lambda x: [e.value for e in x]  # stores 'error', not 'ERROR'
        ),
        nullable=False,
        default=MessageStatus.PENDING,
        index=True
    )

    # Retry tracking
    retry_count = Column(Integer, nullable=False, default=0)
    next_retry_at = Column(DateTime, nullable=True, index=True)
    last_retry_at = Column(DateTime, nullable=True)
    error_message = Column(Text, nullable=True)

    # Provider references
    ghl_contact_id = Column(String(100), nullable=True)
    ghl_message_id = Column(String(100), nullable=True, index=True)

    # "metadata" is reserved on declarative classes
    meta = Column("metadata", JSON, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    sent_at = Column(DateTime, nullable=True)
    delivered_at = Column(DateTime, nullable=True)

    @property
    def is_terminal(self) -> bool:
        return self.status in (MessageStatus.SENT, MessageStatus.FAILED_PERMANENT)


class EmailLog(MessageLogMixin, Base):
    """Outbound e-mail sent through the messaging provider"""

    __tablename__ = "email_logs"

    to_address = Column(String(320), nullable=True)
    to_name = Column(String(200), nullable=True)
    subject = Column(String(500), nullable=True)
    body_html = Column(Text, nullable=True)


class WhatsAppMessageLog(MessageLogMixin, Base):
    """Outbound WhatsApp message; the full text lives in metadata.full_message"""

    __tablename__ = "whatsapp_message_logs"

    phone = Column(String(30), nullable=True)
    message_preview = Column(String(200), nullable=True)
