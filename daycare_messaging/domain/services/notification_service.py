"""
Notification Service - in-app notifications for parents and operators

Notifications are rows in ``notifications``; operator notifications are
additionally pushed through the push gateway when one is configured. A push
failure for one operator never prevents the others.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from daycare_messaging.core.config import Settings, settings as default_settings
from daycare_messaging.core.logging import get_logger
from daycare_messaging.db.models.notification import Notification
from daycare_messaging.db.models.user_role import AppRole, UserRole

logger = get_logger(__name__)


class NotificationService:
    """Service for creating notifications and fanning them out to operators"""

    def __init__(
        self,
        db: AsyncSession,
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.db = db
        self.settings = settings or default_settings
        self._http_client = http_client

    async def notify_user(
        self,
        user_id: str,
        title: str,
        message: str,
        type: str,
        link: Optional[str] = None,
        *,
        commit: bool = True,
    ) -> Notification:
        notification = Notification(
            user_id=user_id,
            title=title,
            message=message,
            type=type,
            link=link,
        )
        self.db.add(notification)
        if commit:
            await self.db.commit()
        return notification

    async def admin_user_ids(self) -> list[str]:
        result = await self.db.execute(
            select(UserRole.user_id)
            .where(UserRole.role == AppRole.ADMIN)
            .order_by(UserRole.user_id)
        )
        return list(dict.fromkeys(result.scalars().all()))

    async def notify_admins(
        self,
        title: str,
        message: str,
        type: str,
        link: Optional[str] = None,
        *,
        commit: bool = True,
    ) -> list[Notification]:
        """One notification per operator, then a best-effort push to each"""
        admin_ids = await self.admin_user_ids()
        if not admin_ids:
            logger.warning("No operators to notify", extra_data={"type": type})
            return []

        notifications = [
            await self.notify_user(admin_id, title, message, type, link, commit=False)
            for admin_id in admin_ids
        ]
        if commit:
            await self.db.commit()

        for admin_id in admin_ids:
            await self.push(admin_id, title, message, link)

        logger.info(
            "operators_notified",
            extra_data={"type": type, "count": len(notifications)},
        )
        return notifications

    async def has_recent(self, type: str, since: datetime) -> bool:
        """Whether a notification of ``type`` was created at or after ``since``"""
        result = await self.db.execute(
            select(Notification.id)
            .where(Notification.type == type, Notification.created_at >= since)
            .limit(1)
        )
        return result.first() is not None

    async def push(
        self,
        user_id: str,
        title: str,
        message: str,
        link: Optional[str] = None,
    ) -> bool:
        """Best-effort push; returns False instead of raising"""
        url = self.settings.PUSH_NOTIFICATION_URL
        if not url:
            return False

        headers = {"Content-Type": "application/json"}
        if self.settings.PUSH_NOTIFICATION_TOKEN:
            headers["Authorization"] = f"Bearer {self.settings.PUSH_NOTIFICATION_TOKEN}"
        payload = {"userId": user_id, "title": title, "body": message, "url": link}

        try:
            if self._http_client is not None:
                response = await self._http_client.post(url, json=payload, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=10.0) as client:
                    response = await client.post(url, json=payload, headers=headers)
            if not response.is_success:
                logger.warning(
                    "Push notification rejected",
                    extra_data={"user_id": user_id, "status_code": response.status_code},
                )
                return False
            return True
        except httpx.HTTPError as exc:
            logger.warning(
                "Push notification failed",
                extra_data={"user_id": user_id, "error": str(exc)},
            )
            return False
