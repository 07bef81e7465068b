"""Subscriber side-effects of a stored bounce.

Once a subscriber has collected ``bounce_count`` bounces the configured
``bounce_action`` is applied: ``blocklist`` marks the subscriber as
blocklisted, ``delete`` removes it, ``none`` only keeps the bounce rows.
"""
from __future__ import annotations

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from bounce_service.core.config import settings
from bounce_service.db import models
from bounce_service.services.bounce_store import count_bounces_for
from bounce_service.utils.logger import logger

ACTION_BLOCKLIST = "blocklist"
ACTION_DELETE = "delete"
ACTION_NONE = "none"


class BounceRecorder:
    """Applies the bounce action to the subscriber behind a bounce."""

    def __init__(self, count: int | None = None, action: str | None = None) -> None:
        self.count = count or settings.bounce_count
        self.action = action or settings.bounce_action

    def _find_subscriber(self, db: Session, bounce: models.Bounce) -> models.Subscriber | None:
        conditions = []
        if bounce.subscriber_uuid:
            conditions.append(models.Subscriber.uuid == bounce.subscriber_uuid)
        if bounce.email:
            conditions.append(models.Subscriber.email == bounce.email)
        if not conditions:
            return None
        return db.execute(select(models.Subscriber).where(or_(*conditions))).scalars().first()

    def record(self, db: Session, bounce: models.Bounce) -> str | None:
        """Apply the bounce action if the threshold is reached; return the action taken."""

        if self.action == ACTION_NONE:
            return None

        subscriber = self._find_subscriber(db, bounce)
        if subscriber is None:
            logger.info("No subscriber for bounce id=%s email=%s", bounce.id, bounce.email)
            return None

        total = count_bounces_for(db, email=subscriber.email, subscriber_uuid=subscriber.uuid)
        if total < self.count:
            logger.debug("Subscriber %s has %s/%s bounces", subscriber.id, total, self.count)
            return None

        try:
            if self.action == ACTION_DELETE:
                db.delete(subscriber)
            else:
                if subscriber.status == models.SUBSCRIBER_BLOCKLISTED:
                    return None
                subscriber.status = models.SUBSCRIBER_BLOCKLISTED
                db.add(subscriber)
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info("Applied bounce action %s to subscriber %s after %s bounces", self.action, subscriber.id, total)
        return self.action
