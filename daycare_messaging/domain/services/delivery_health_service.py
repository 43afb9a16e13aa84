"""
Delivery Health Monitor - error-rate alerting over recent outbound messages

Computes delivery metrics over a sliding window and raises one operator
alert when the error rate crosses the threshold. Alerts are deduplicated:
no new alert while one of the same type exists within the dedup window.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from daycare_messaging.core.clock import utcnow
from daycare_messaging.core.config import Settings
from daycare_messaging.core.logging import get_logger
from daycare_messaging.db.models.message_log import EmailLog, MessageLogMixin, MessageStatus
from daycare_messaging.domain.services.notification_service import NotificationService

logger = get_logger(__name__)

EMAIL_HEALTH_ALERT = "email_health_alert"
EMAIL_HEALTH_LINK = "/painel/emails"


class HealthCheckConfig(BaseModel):
    """Thresholds for one check; the request body may override any of them"""
    model_config = ConfigDict(populate_by_name=True)

    error_rate_threshold: float = Field(20.0, alias="errorRateThreshold", gt=0)
    min_emails_for_alert: int = Field(5, alias="minEmailsForAlert", ge=0)
    time_window_minutes: int = Field(60, alias="timeWindowMinutes", gt=0)

    @classmethod
    def from_settings(cls, settings: Settings) -> "HealthCheckConfig":
        return cls(
            error_rate_threshold=settings.HEALTH_ERROR_RATE_THRESHOLD,
            min_emails_for_alert=settings.HEALTH_MIN_EMAILS_FOR_ALERT,
            time_window_minutes=settings.HEALTH_TIME_WINDOW_MINUTES,
        )


@dataclass
class HealthMetrics:
    total: int = 0
    sent: int = 0
    errors: int = 0
    permanent_failures: int = 0
    pending_retries: int = 0
    error_rate: float = 0.0
    avg_response_time: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "totalEmails": self.total,
            "sentEmails": self.sent,
            "errorEmails": self.errors,
            "permanentFailures": self.permanent_failures,
            "pendingRetries": self.pending_retries,
            "errorRate": self.error_rate,
            "avgResponseTime": self.avg_response_time,
        }


@dataclass
class HealthCheckResult:
    metrics: HealthMetrics
    config: HealthCheckConfig
    alert_created: bool

    @property
    def health_status(self) -> str:
        return "warning" if self.metrics.error_rate >= self.config.error_rate_threshold else "healthy"


class DeliveryHealthMonitor:
    """Health checks for one message log table"""

    def __init__(
        self,
        db: AsyncSession,
        notifications: NotificationService,
        settings: Settings,
        *,
        model: type[MessageLogMixin] = EmailLog,
        alert_type: str = EMAIL_HEALTH_ALERT,
        alert_link: str = EMAIL_HEALTH_LINK,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.notifications = notifications
        self.settings = settings
        self.model = model
        self.alert_type = alert_type
        self.alert_link = alert_link
        self._clock = clock

    async def collect_metrics(self, window_minutes: int) -> HealthMetrics:
        cutoff = self._clock() - timedelta(minutes=window_minutes)
        result = await self.db.execute(
            select(self.model.status, self.model.meta).where(
                self.model.provider == "ghl",
                self.model.direction == "outbound",
                self.model.created_at >= cutoff,
            )
        )
        rows = result.all()

        metrics = HealthMetrics(total=len(rows))
        durations: list[float] = []
        for status, meta in rows:
            if status == MessageStatus.SENT:
                metrics.sent += 1
                duration = (meta or {}).get("duration")
                if isinstance(duration, (int, float)) and not isinstance(duration, bool):
                    durations.append(duration)
            elif status == MessageStatus.ERROR:
                metrics.errors += 1
            elif status == MessageStatus.FAILED_PERMANENT:
                metrics.permanent_failures += 1

        # every record in error is by definition awaiting a retry
        metrics.pending_retries = metrics.errors
        if metrics.total:
            rate = (metrics.errors + metrics.permanent_failures) / metrics.total * 100
            metrics.error_rate = round(rate, 2)
        if durations:
            metrics.avg_response_time = round(sum(durations) / len(durations))
        return metrics

    async def check_and_alert(self, metrics: HealthMetrics, config: HealthCheckConfig) -> bool:
        """Create one alert per operator when warranted; returns whether one was created"""
        if metrics.total < config.min_emails_for_alert:
            logger.info(
                "skip_alert_low_volume",
                extra_data={"total": metrics.total, "min": config.min_emails_for_alert},
            )
            return False

        if metrics.error_rate < config.error_rate_threshold:
            logger.info(
                "skip_alert_below_threshold",
                extra_data={"error_rate": metrics.error_rate, "threshold": config.error_rate_threshold},
            )
            return False

        since = self._clock() - timedelta(minutes=self.settings.HEALTH_ALERT_DEDUP_MINUTES)
        if await self.notifications.has_recent(self.alert_type, since):
            logger.info(
                "skip_alert_recent_exists",
                extra_data={"error_rate": metrics.error_rate, "alert_type": self.alert_type},
            )
            return False

        failed = metrics.errors + metrics.permanent_failures
        message = (
            f"Taxa de erro: {metrics.error_rate:.1f}% "
            f"({failed} de {metrics.total} e-mails falharam na última hora)"
        )
        created = await self.notifications.notify_admins(
            "⚠️ Alta Taxa de Erro de E-mail", message, self.alert_type, self.alert_link
        )
        if not created:
            logger.error("no_admins_found", extra_data={"alert_type": self.alert_type})
            return False

        logger.warning(
            "alert_created",
            extra_data={
                "error_rate": metrics.error_rate,
                "threshold": config.error_rate_threshold,
                "admins_notified": len(created),
                "metrics": metrics.to_dict(),
            },
        )
        return True

    async def run_check(self, config: Optional[HealthCheckConfig] = None) -> HealthCheckResult:
        config = config or HealthCheckConfig.from_settings(self.settings)
        metrics = await self.collect_metrics(config.time_window_minutes)
        logger.info("metrics_collected", extra_data={"metrics": metrics.to_dict()})
        alert_created = await self.check_and_alert(metrics, config)
        return HealthCheckResult(metrics=metrics, config=config, alert_created=alert_created)
