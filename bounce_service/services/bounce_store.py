"""Persistence for bounce records.

Sorting is restricted to ``SORT_FIELDS``: the requested field name is only
ever used as a dictionary key, so user input never becomes SQL text.
"""
from __future__ import annotations

from typing import Iterable, Sequence

from sqlalchemy import Select, delete, func, or_, select
from sqlalchemy.orm import Session

from bounce_service.db import models
from bounce_service.services.normalizers import BounceDraft

SORT_ASC = "asc"
SORT_DESC = "desc"
DEFAULT_SORT_FIELD = "created_at"

SORT_FIELDS = {
    "id": models.Bounce.id,
    "email": models.Bounce.email,
    "campaign_id": models.Bounce.campaign_id,
    "source": models.Bounce.source,
    "created_at": models.Bounce.created_at,
}


def resolve_sort(order_by: str | None, order: str | None) -> tuple[str, str]:
    """Map requested sort options onto the allow-list, falling back to defaults."""

    field = order_by if order_by in SORT_FIELDS else DEFAULT_SORT_FIELD
    direction = order if order in (SORT_ASC, SORT_DESC) else SORT_DESC
    return field, direction


def build_bounce_query(
    *,
    bounce_id: int = 0,
    campaign_id: int = 0,
    source: str = "",
    order_by: str | None = None,
    order: str | None = None,
    offset: int = 0,
    limit: int | None = None,
) -> Select:
    """Select bounces plus the total number of matching rows on every row."""

    field, direction = resolve_sort(order_by, order)
    column = SORT_FIELDS[field]

    stmt = select(models.Bounce, func.count().over().label("total"))
    if bounce_id > 0:
        stmt = stmt.where(models.Bounce.id == bounce_id)
    if campaign_id > 0:
        stmt = stmt.where(models.Bounce.campaign_id == campaign_id)
    if source:
        stmt = stmt.where(models.Bounce.source == source)

    if direction == SORT_ASC:
        stmt = stmt.order_by(column.asc(), models.Bounce.id.asc())
    else:
        stmt = stmt.order_by(column.desc(), models.Bounce.id.desc())

    stmt = stmt.offset(offset)
    if limit:
        stmt = stmt.limit(limit)
    return stmt


def query_bounces(db: Session, **filters) -> list[tuple[models.Bounce, int]]:
    """Run :func:`build_bounce_query` and return ``(bounce, total)`` pairs."""

    rows = db.execute(build_bounce_query(**filters)).all()
    return [(row[0], row[1]) for row in rows]


def insert_bounces(db: Session, drafts: Iterable[BounceDraft]) -> list[models.Bounce]:
    """Store validated drafts in one transaction and return the new rows."""

    bounces = [
        models.Bounce(
            subscriber_uuid=draft.subscriber_uuid or None,
            email=draft.email or None,
            campaign_id=draft.campaign_id,
            source=draft.source,
            meta=draft.meta or {},
            created_at=draft.created_at,
        )
        for draft in drafts
    ]
    try:
        db.add_all(bounces)
        db.commit()
    except Exception:
        db.rollback()
        raise
    for bounce in bounces:
        db.refresh(bounce)
    return bounces


def delete_bounces(db: Session, ids: Sequence[int]) -> int:
    """Delete the given bounces. An empty ``ids`` deletes every bounce."""

    stmt = delete(models.Bounce)
    if ids:
        stmt = stmt.where(models.Bounce.id.in_(list(ids)))
    try:
        result = db.execute(stmt)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return result.rowcount


def count_bounces_for(db: Session, *, email: str | None, subscriber_uuid: str | None) -> int:
    """Count stored bounces matching the subscriber's email or UUID."""

    conditions = []
    if email:
        conditions.append(models.Bounce.email == email)
    if subscriber_uuid:
        conditions.append(models.Bounce.subscriber_uuid == subscriber_uuid)
    if not conditions:
        return 0
    stmt = select(func.count()).select_from(models.Bounce).where(or_(*conditions))
    return db.execute(stmt).scalar_one()
