"""Bounce listing and deletion endpoints."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Union

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from pydantic import BaseModel, ConfigDict
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from bounce_service.api.errors import db_error_message
from bounce_service.api.pagination import get_pagination
from bounce_service.core import i18n
from bounce_service.core.config import settings
from bounce_service.db.models import MAX_INT
from bounce_service.db.session import get_db
from bounce_service.services import bounce_store
from bounce_service.utils.logger import logger

router = APIRouter(tags=["bounces"])


class BounceResponse(BaseModel):
    id: int
    subscriber_uuid: str | None = None
    email: str | None = None
    campaign_id: int | None = None
    source: str
    meta: dict[str, Any]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BounceList(BaseModel):
    results: list[BounceResponse]
    total: int = 0
    per_page: int = 0
    page: int = 0


class BounceListResponse(BaseModel):
    data: BounceList


class BounceSingleResponse(BaseModel):
    data: BounceResponse


class OkResponse(BaseModel):
    data: bool = True


def parse_ids(values: Iterable[str]) -> list[int]:
    """Parse repeated ``id`` query values into positive integers that fit an ID column."""

    ids = []
    for value in values:
        try:
            bounce_id = int(value)
        except (TypeError, ValueError):
            raise ValueError(f"invalid ID '{value}'") from None
        if not 0 < bounce_id <= MAX_INT:
            raise ValueError(f"invalid ID '{value}'")
        ids.append(bounce_id)
    return ids


def _fetch_bounces(
    db: Session,
    *,
    bounce_id: int = 0,
    campaign_id: int = 0,
    source: str = "",
    page: str | None = None,
    per_page: str | None = None,
    order_by: str | None = None,
    order: str | None = None,
) -> BounceListResponse | BounceSingleResponse:
    pg = get_pagination(page, per_page, settings.bounces_per_page, settings.bounces_max_per_page)
    single = bounce_id > 0

    try:
        rows = bounce_store.query_bounces(
            db,
            bounce_id=bounce_id,
            campaign_id=campaign_id,
            source=source,
            order_by=order_by,
            order=order,
            offset=0 if single else pg.offset,
            limit=1 if single else pg.limit,
        )
    except SQLAlchemyError as exc:
        logger.exception("error fetching bounces")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=i18n.ts(
                "globals.messages.errorFetching", name="{globals.terms.bounces}", error=db_error_message(exc)
            ),
        ) from exc

    if not rows:
        return BounceListResponse(data=BounceList(results=[], total=0, per_page=pg.per_page, page=pg.page))

    if single:
        return BounceSingleResponse(data=BounceResponse.model_validate(rows[0][0]))

    return BounceListResponse(
        data=BounceList(
            results=[BounceResponse.model_validate(bounce) for bounce, _ in rows],
            total=rows[0][1],
            per_page=pg.per_page,
            page=pg.page,
        )
    )


@router.get("/bounces", response_model=BounceListResponse)
def list_bounces(
    page: str | None = Query(default=None),
    per_page: str | None = Query(default=None),
    source: str = Query(default=""),
    order_by: str | None = Query(default=None),
    order: str | None = Query(default=None),
    db: Session = Depends(get_db),
) -> BounceListResponse | BounceSingleResponse:
    """List bounces, optionally filtered by source."""

    return _fetch_bounces(
        db, source=source, page=page, per_page=per_page, order_by=order_by, order=order
    )


@router.get("/bounces/{bounce_id}", response_model=Union[BounceSingleResponse, BounceListResponse])
def get_bounce(
    bounce_id: int = Path(..., le=MAX_INT), db: Session = Depends(get_db)
) -> BounceListResponse | BounceSingleResponse:
    """Fetch a single bounce. A missing bounce yields an empty result list."""

    return _fetch_bounces(db, bounce_id=bounce_id)


@router.get("/campaigns/{campaign_id}/bounces", response_model=BounceListResponse)
def list_campaign_bounces(
    campaign_id: int = Path(..., le=MAX_INT),
    page: str | None = Query(default=None),
    per_page: str | None = Query(default=None),
    source: str = Query(default=""),
    order_by: str | None = Query(default=None),
    order: str | None = Query(default=None),
    db: Session = Depends(get_db),
) -> BounceListResponse | BounceSingleResponse:
    """List bounces recorded for a campaign."""

    return _fetch_bounces(
        db,
        campaign_id=campaign_id,
        source=source,
        page=page,
        per_page=per_page,
        order_by=order_by,
        order=order,
    )


def _delete(db: Session, ids: list[int]) -> OkResponse:
    try:
        deleted = bounce_store.delete_bounces(db, ids)
    except SQLAlchemyError as exc:
        logger.exception("error deleting bounces")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=i18n.ts(
                "globals.messages.errorDeleting", name="{globals.terms.bounces}", error=db_error_message(exc)
            ),
        ) from exc

    logger.info("Deleted %s bounces (ids=%s)", deleted, ids or "all")
    return OkResponse(data=True)


@router.delete("/bounces/{bounce_id}", response_model=OkResponse)
def delete_bounce(bounce_id: str, db: Session = Depends(get_db)) -> OkResponse:
    """Delete a single bounce."""

    try:
        ids = parse_ids([bounce_id])
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=i18n.t("globals.messages.invalidID"))
    return _delete(db, ids)


@router.delete("/bounces", response_model=OkResponse)
def delete_bounces(
    delete_all: bool = Query(default=False, alias="all"),
    id_values: list[str] = Query(default=[], alias="id"),
    db: Session = Depends(get_db),
) -> OkResponse:
    """Delete the bounces listed in repeated ``id`` params, or every bounce with ``all=true``."""

    ids: list[int] = []
    if not delete_all:
        try:
            ids = parse_ids(id_values)
        except ValueError as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"{i18n.t('globals.messages.invalidID')}: {exc}",
            )
        if not ids:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=i18n.t("globals.messages.invalidID"))

    # An empty id list deletes every bounce.
    return _delete(db, ids)
