"""Inbound bounce webhooks: native postbacks, Amazon SES and SendGrid."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from bounce_service.api.errors import db_error_message
from bounce_service.api.routes.bounces import OkResponse
from bounce_service.core import i18n
from bounce_service.core.config import settings
from bounce_service.db import models
from bounce_service.db.session import get_db
from bounce_service.queue.worker import enqueue_bounce_job
from bounce_service.services import bounce_store
from bounce_service.services.bounce_recorder import BounceRecorder
from bounce_service.services.normalizers import SOURCE_SES, ShapeError, UnknownServiceError, normalize
from bounce_service.services.validation import BounceValidationError, ValidationKind, validate_bounce
from bounce_service.utils.logger import logger
from bounce_service.utils.sns import confirm_subscription, subscription_url

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

VALIDATION_MESSAGES = {
    ValidationKind.MISSING_IDENTITY: "globals.messages.invalidData",
    ValidationKind.INVALID_EMAIL: "globals.messages.invalidEmail",
    ValidationKind.INVALID_UUID: "globals.messages.invalidUUID",
}


def record_bounce(db: Session, bounce: models.Bounce) -> None:
    """Run the subscriber side-effect for a stored bounce, inline or on the queue."""

    if settings.bounce_record_async:
        enqueue_bounce_job(bounce_id=bounce.id)
    else:
        BounceRecorder().record(db, bounce)


def _bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


async def _ingest(service: str, request: Request, db: Session) -> OkResponse:
    body = await request.body()

    if service == SOURCE_SES:
        url = subscription_url(body)
        if url is not None:
            if settings.sns_confirm_subscriptions:
                await run_in_threadpool(confirm_subscription, url, settings.sns_timeout_seconds)
            return OkResponse(data=True)

    try:
        drafts = normalize(service, body)
    except UnknownServiceError:
        raise _bad_request(i18n.t("bounces.unknownService"))
    except ShapeError as exc:
        logger.warning("Rejected %s bounce payload: %s", exc.service, exc.detail)
        raise _bad_request(i18n.ts("bounces.invalidPayload", service=exc.service, error=exc.detail))

    try:
        drafts = [validate_bounce(draft) for draft in drafts]
    except BounceValidationError as exc:
        raise _bad_request(i18n.t(VALIDATION_MESSAGES[exc.kind]))

    if not drafts:
        logger.debug("No bounces in %s payload", service or "native")
        return OkResponse(data=True)

    try:
        bounces = bounce_store.insert_bounces(db, drafts)
    except SQLAlchemyError as exc:
        logger.exception("error inserting bounces")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=i18n.ts(
                "globals.messages.errorCreating", name="{globals.terms.bounce}", error=db_error_message(exc)
            ),
        ) from exc

    # Recording failures are logged only; stored bounces are always acknowledged.
    for bounce in bounces:
        try:
            record_bounce(db, bounce)
        except Exception:
            logger.exception("error recording bounce id=%s", bounce.id)

    return OkResponse(data=True)


@router.post("/bounce", response_model=OkResponse)
async def native_bounce_webhook(request: Request, db: Session = Depends(get_db)) -> OkResponse:
    """Accept a bounce posted in the native JSON format."""

    return await _ingest("", request, db)


@router.post("/bounce/{service}", response_model=OkResponse)
async def service_bounce_webhook(service: str, request: Request, db: Session = Depends(get_db)) -> OkResponse:
    """Accept bounce notifications from a mail provider (``ses`` or ``sendgrid``)."""

    return await _ingest(service, request, db)
