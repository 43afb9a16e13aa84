"""
Database Models
"""
from daycare_messaging.db.models.message_log import (
    EmailLog,
    MessageStatus,
    WhatsAppMessageLog,
)
from daycare_messaging.db.models.invoice import Invoice, PaymentStatus
from daycare_messaging.db.models.subscription import Subscription, SubscriptionStatus
from daycare_messaging.db.models.enrollment_contract import ContractStatus, EnrollmentContract
from daycare_messaging.db.models.notification import Notification
from daycare_messaging.db.models.user_role import AppRole, UserRole

__all__ = [
    "EmailLog",
    "WhatsAppMessageLog",
    "MessageStatus",
    "Invoice",
    "PaymentStatus",
    "Subscription",
    "SubscriptionStatus",
    "EnrollmentContract",
    "ContractStatus",
    "Notification",
    "UserRole",
    "AppRole",
]
