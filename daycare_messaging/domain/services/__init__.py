"""
Domain Services
"""
from daycare_messaging.domain.services.notification_service import NotificationService
from daycare_messaging.domain.services.message_log_service import MessageLogService
from daycare_messaging.domain.services.retry_scheduler import RetryScheduler, SweepResult
from daycare_messaging.domain.services.outbound_message_service import OutboundMessageService
from daycare_messaging.domain.services.invite_service import InviteService
from daycare_messaging.domain.services.payment_reconciliation_service import PaymentReconciliationService
from daycare_messaging.domain.services.contract_reconciliation_service import ContractReconciliationService
from daycare_messaging.domain.services.delivery_health_service import DeliveryHealthMonitor
from daycare_messaging.domain.services.zapsign_client import ZapSignClient

__all__ = [
    "NotificationService",
    "MessageLogService",
    "RetryScheduler",
    "SweepResult",
    "OutboundMessageService",
    "InviteService",
    "PaymentReconciliationService",
    "ContractReconciliationService",
    "DeliveryHealthMonitor",
    "ZapSignClient",
]
