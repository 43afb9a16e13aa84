"""
Payment Reconciliation Service - applies payment gateway events to invoices

Status writes are plain overwrites keyed by the gateway payment id, so a
redelivered webhook converges on the same row state. Notifications are
edge-triggered: they go out only when the stored status actually changes.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from daycare_messaging.core.logging import get_logger
from daycare_messaging.db.models.invoice import Invoice, PaymentStatus
from daycare_messaging.db.models.subscription import Subscription, SubscriptionStatus
from daycare_messaging.domain.services.notification_service import NotificationService
from daycare_messaging.domain.webhooks.payloads import PaymentEvent, SubscriptionEvent

logger = get_logger(__name__)

# Gateway payment status -> invoice status. Unlisted codes fall back to pending.
STATUS_MAP: dict[str, PaymentStatus] = {
    "PENDING": PaymentStatus.PENDING,
    "AWAITING_RISK_ANALYSIS": PaymentStatus.PENDING,
    "RECEIVED": PaymentStatus.PAID,
    "CONFIRMED": PaymentStatus.PAID,
    "RECEIVED_IN_CASH": PaymentStatus.PAID,
    "DUNNING_RECEIVED": PaymentStatus.PAID,
    "OVERDUE": PaymentStatus.OVERDUE,
    "DUNNING_REQUESTED": PaymentStatus.OVERDUE,
    "REFUNDED": PaymentStatus.REFUNDED,
    "REFUND_REQUESTED": PaymentStatus.REFUNDING,
    "REFUND_IN_PROGRESS": PaymentStatus.REFUNDING,
    "CHARGEBACK_REQUESTED": PaymentStatus.CHARGEBACK,
    "CHARGEBACK_DISPUTE": PaymentStatus.CHARGEBACK,
    "AWAITING_CHARGEBACK_REVERSAL": PaymentStatus.CHARGEBACK,
}

SUBSCRIPTION_STATUS_BY_EVENT: dict[str, SubscriptionStatus] = {
    "SUBSCRIPTION_DELETED": SubscriptionStatus.CANCELLED,
    "SUBSCRIPTION_INACTIVE": SubscriptionStatus.CANCELLED,
    "SUBSCRIPTION_ACTIVATED": SubscriptionStatus.ACTIVE,
}

PARENT_FINANCE_LINK = "/painel-pais?tab=financas"
ADMIN_FINANCE_LINK = "/painel/financeiro"
DEFAULT_INVOICE_DESCRIPTION = "Mensalidade escolar"

# (title, message template, notification type) per status that notifies the parent
PARENT_NOTICES: dict[PaymentStatus, tuple[str, str, str]] = {
    PaymentStatus.PAID: (
        "✅ Pagamento Confirmado!",
        "Seu pagamento de {value} foi recebido com sucesso.",
        "payment_confirmed",
    ),
    PaymentStatus.OVERDUE: (
        "⚠️ Pagamento Vencido",
        "Sua mensalidade de {value} está em atraso. Por favor, regularize.",
        "payment_overdue",
    ),
    PaymentStatus.REFUNDED: (
        "💰 Pagamento Estornado",
        "Seu pagamento de {value} foi estornado.",
        "payment_refunded",
    ),
}


def map_payment_status(gateway_status: Optional[str]) -> PaymentStatus:
    return STATUS_MAP.get((gateway_status or "").upper(), PaymentStatus.PENDING)


def format_brl(value: Optional[Decimal]) -> str:
    """Brazilian currency format: R$ 1.234,56"""
    amount = Decimal(value or 0).quantize(Decimal("0.01"))
    formatted = f"{amount:,.2f}".replace(",", "_").replace(".", ",").replace("_", ".")
    return f"R$ {formatted}"


@dataclass
class ReconciliationResult:
    """What a webhook delivery did to its target"""
    action: str  # updated | created | ignored
    target_id: Optional[int] = None
    previous_status: Optional[str] = None
    new_status: Optional[str] = None

    @property
    def changed(self) -> bool:
        return self.action != "ignored" and self.previous_status != self.new_status


class PaymentReconciliationService:
    """Applies payment and subscription events from the payment gateway"""

    def __init__(self, db: AsyncSession, notifications: NotificationService):
        self.db = db
        self.notifications = notifications

    async def _find_invoice(self, payment_id: str) -> Optional[Invoice]:
        result = await self.db.execute(
            select(Invoice).where(Invoice.asaas_payment_id == payment_id)
        )
        return result.scalar_one_or_none()

    async def _find_subscription(self, subscription_id: str) -> Optional[Subscription]:
        result = await self.db.execute(
            select(Subscription).where(Subscription.asaas_subscription_id == subscription_id)
        )
        return result.scalar_one_or_none()

    async def apply_payment_event(self, event: PaymentEvent) -> ReconciliationResult:
        payment = event.payment
        new_status = map_payment_status(payment.status)

        invoice = await self._find_invoice(event.payment_id)
        previous_status: Optional[PaymentStatus] = None

        if invoice is None:
            invoice = await self._create_from_subscription(event, new_status)
            if invoice is None:
                logger.info(
                    "invoice_not_found",
                    extra_data={
                        "payment_id": event.payment_id,
                        "subscription": payment.subscription,
                        "event": event.event,
                    },
                )
                return ReconciliationResult(action="ignored")
            action = "created"
        else:
            previous_status = invoice.status
            invoice.status = new_status
            if new_status == PaymentStatus.PAID and payment.payment_date:
                invoice.payment_date = payment.payment_date
            if payment.billing_type:
                invoice.payment_type = payment.billing_type
            if payment.bank_slip_url:
                invoice.bank_slip_url = payment.bank_slip_url
            if payment.invoice_url:
                invoice.invoice_url = payment.invoice_url
            action = "updated"

        await self.db.commit()

        logger.info(
            "invoice_reconciled",
            extra_data={
                "invoice_id": invoice.id,
                "payment_id": event.payment_id,
                "event": event.event,
                "gateway_status": payment.status,
                "previous_status": previous_status.value if previous_status else None,
                "new_status": new_status.value,
                "action": action,
            },
        )

        if previous_status != new_status:
            await self._notify_status_change(invoice, new_status)

        return ReconciliationResult(
            action=action,
            target_id=invoice.id,
            previous_status=previous_status.value if previous_status else None,
            new_status=new_status.value,
        )

    async def _create_from_subscription(
        self, event: PaymentEvent, status: PaymentStatus
    ) -> Optional[Invoice]:
        """Payments generated by a gateway subscription arrive before any local invoice exists"""
        payment = event.payment
        if not payment.subscription:
            return None
        subscription = await self._find_subscription(payment.subscription)
        if subscription is None:
            return None

        invoice = Invoice(
            parent_id=subscription.parent_id,
            child_id=subscription.child_id,
            subscription_id=subscription.id,
            asaas_payment_id=payment.id,
            description=payment.description or DEFAULT_INVOICE_DESCRIPTION,
            value=payment.value if payment.value is not None else subscription.value,
            due_date=payment.due_date,
            status=status,
            invoice_url=payment.invoice_url,
            bank_slip_url=payment.bank_slip_url,
            payment_date=payment.payment_date,
            payment_type=payment.billing_type,
        )
        self.db.add(invoice)
        await self.db.flush()
        logger.info(
            "invoice_created_from_subscription",
            extra_data={"subscription_id": subscription.id, "payment_id": payment.id},
        )
        return invoice

    async def _notify_status_change(self, invoice: Invoice, status: PaymentStatus) -> None:
        value = format_brl(invoice.value)

        notice = PARENT_NOTICES.get(status)
        if notice:
            title, template, notification_type = notice
            message = template.format(value=value)
            await self.notifications.notify_user(
                invoice.parent_id, title, message, notification_type, PARENT_FINANCE_LINK
            )
            await self.notifications.push(invoice.parent_id, title, message, PARENT_FINANCE_LINK)

        if status == PaymentStatus.PAID:
            await self.notifications.notify_admins(
                "💰 Pagamento Recebido",
                f"Pagamento de {value} recebido - {invoice.description or 'Aluno'}",
                "payment_received",
                ADMIN_FINANCE_LINK,
            )

    async def apply_subscription_event(self, event: SubscriptionEvent) -> ReconciliationResult:
        subscription = await self._find_subscription(event.subscription_id)
        if subscription is None:
            logger.info(
                "subscription_not_found",
                extra_data={"subscription_id": event.subscription_id, "event": event.event},
            )
            return ReconciliationResult(action="ignored")

        previous_status = subscription.status
        new_status = SUBSCRIPTION_STATUS_BY_EVENT.get(event.event, previous_status)
        subscription.status = new_status
        if event.subscription.next_due_date:
            subscription.next_due_date = event.subscription.next_due_date
        await self.db.commit()

        logger.info(
            "subscription_reconciled",
            extra_data={
                "subscription_id": subscription.id,
                "event": event.event,
                "previous_status": previous_status.value,
                "new_status": new_status.value,
            },
        )
        return ReconciliationResult(
            action="updated",
            target_id=subscription.id,
            previous_status=previous_status.value,
            new_status=new_status.value,
        )
