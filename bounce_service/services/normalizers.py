"""Turn provider webhook payloads into bounce drafts.

Each supported service has one pure function that accepts the raw request
body and returns the bounces it describes. ``normalize`` picks the function
by the service name taken from the webhook URL.
"""
from __future__ import annotations

import json
from datetime import datetime
from email.utils import parseaddr
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from bounce_service.db.models import MAX_INT, SOURCE_MAX_LENGTH
from bounce_service.utils.datetime import from_iso, from_unix

SOURCE_API = "api"
SOURCE_SES = "ses"
SOURCE_SENDGRID = "sendgrid"

SES_CAMPAIGN_HEADER = "x-campaign-id"
SES_SUBSCRIBER_HEADER = "x-subscriber-uuid"

SENDGRID_META_FIELDS = (
    "reason",
    "status",
    "type",
    "bounce_classification",
    "sg_message_id",
    "sg_event_id",
    "smtp-id",
)


class ShapeError(ValueError):
    """The payload could not be read as a bounce for the given service."""

    def __init__(self, service: str, detail: str) -> None:
        super().__init__(f"{service or 'native'}: {detail}")
        self.service = service or "native"
        self.detail = detail


class UnknownServiceError(LookupError):
    """No normalizer is registered for the requested service."""

    def __init__(self, service: str) -> None:
        super().__init__(service)
        self.service = service


class BounceDraft(BaseModel):
    """A bounce as received, before validation and storage."""

    model_config = ConfigDict(extra="ignore")

    subscriber_uuid: str = ""
    email: str = ""
    campaign_id: int | None = Field(default=None, le=MAX_INT)
    source: str = Field(default="", max_length=SOURCE_MAX_LENGTH)
    meta: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = None

    @field_validator("subscriber_uuid", "email", "source", mode="before")
    @classmethod
    def blank_strings(cls, value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("meta", mode="before")
    @classmethod
    def empty_meta(cls, value: Any) -> Any:
        if value is None or value == "":
            return {}
        return value

    @field_validator("campaign_id")
    @classmethod
    def zero_campaign(cls, value: int | None) -> int | None:
        if value is not None and value < 1:
            return None
        return value


def _load_json(body: bytes, service: str) -> Any:
    try:
        return json.loads(body)
    except ValueError as exc:
        raise ShapeError(service, "body is not valid JSON") from exc


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _to_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if 0 < number <= MAX_INT else None


def _address(value: Any) -> str:
    """Return the bare address from ``"Name <user@host>"`` style values."""
    _, addr = parseaddr(_text(value))
    return addr or _text(value)


def normalize_native(body: bytes) -> list[BounceDraft]:
    """Native postbacks carry a single bounce in our own field names."""

    payload = _load_json(body, "")
    if not isinstance(payload, dict):
        raise ShapeError("", "expected a JSON object")

    try:
        draft = BounceDraft.model_validate(payload)
    except ValidationError as exc:
        fields = ", ".join(".".join(str(part) for part in err["loc"]) for err in exc.errors())
        raise ShapeError("", f"invalid fields: {fields}") from exc

    if not draft.source:
        draft = draft.model_copy(update={"source": SOURCE_API})
    return [draft]


def _unwrap_sns(payload: dict[str, Any]) -> dict[str, Any] | None:
    """Return the SES notification inside an SNS envelope.

    ``None`` means the envelope is not a notification (e.g. a subscription
    confirmation) and carries no bounces.
    """
    if "Type" not in payload:
        return payload
    if payload.get("Type") != "Notification":
        return None

    message = payload.get("Message")
    if isinstance(message, str):
        try:
            message = json.loads(message)
        except ValueError as exc:
            raise ShapeError(SOURCE_SES, "SNS Message is not valid JSON") from exc
    if not isinstance(message, dict):
        raise ShapeError(SOURCE_SES, "missing SNS Message")
    return message


def _ses_headers(mail: dict[str, Any]) -> dict[str, str]:
    headers = {}
    for header in _as_list(mail.get("headers")):
        if isinstance(header, dict) and isinstance(header.get("name"), str):
            headers[header["name"].lower()] = _text(header.get("value"))
    return headers


def normalize_ses(body: bytes) -> list[BounceDraft]:
    """Amazon SES bounce notifications, delivered raw or through SNS."""

    payload = _load_json(body, SOURCE_SES)
    if not isinstance(payload, dict):
        raise ShapeError(SOURCE_SES, "expected a JSON object")

    message = _unwrap_sns(payload)
    if message is None:
        return []

    notification_type = _text(message.get("notificationType")) or _text(message.get("eventType"))
    if notification_type.lower() != "bounce":
        return []

    mail = _as_dict(message.get("mail"))
    bounce = _as_dict(message.get("bounce"))

    recipients: dict[str, dict[str, Any]] = {}
    for recipient in _as_list(bounce.get("bouncedRecipients")):
        recipient = _as_dict(recipient)
        address = _address(recipient.get("emailAddress"))
        if address:
            recipients[address] = recipient
    if not recipients:
        for destination in _as_list(mail.get("destination")):
            address = _address(destination)
            if address:
                recipients[address] = {}
    if not recipients:
        raise ShapeError(SOURCE_SES, "no bounced recipients")

    headers = _ses_headers(mail)
    campaign_id = _to_int(headers.get(SES_CAMPAIGN_HEADER))
    # The subscriber header identifies the message, which only maps to one
    # subscriber when there is a single recipient.
    subscriber_uuid = headers.get(SES_SUBSCRIBER_HEADER, "") if len(recipients) == 1 else ""
    created_at = from_iso(bounce.get("timestamp")) or from_iso(mail.get("timestamp"))

    drafts = []
    for address, recipient in recipients.items():
        meta = {
            "bounce_type": _text(bounce.get("bounceType")),
            "bounce_subtype": _text(bounce.get("bounceSubType")),
            "feedback_id": _text(bounce.get("feedbackId")),
            "message_id": _text(mail.get("messageId")),
            "action": _text(recipient.get("action")),
            "status": _text(recipient.get("status")),
            "diagnostic_code": _text(recipient.get("diagnosticCode")),
        }
        drafts.append(
            BounceDraft(
                email=address,
                subscriber_uuid=subscriber_uuid,
                campaign_id=campaign_id,
                source=SOURCE_SES,
                meta=meta,
                created_at=created_at,
            )
        )
    return drafts


def normalize_sendgrid(body: bytes) -> list[BounceDraft]:
    """SendGrid event webhook batches; only ``bounce`` events are kept."""

    payload = _load_json(body, SOURCE_SENDGRID)
    if isinstance(payload, dict):
        payload = [payload]
    if not isinstance(payload, list):
        raise ShapeError(SOURCE_SENDGRID, "expected a JSON array of events")

    drafts = []
    for event in payload:
        if not isinstance(event, dict) or event.get("event") != "bounce":
            continue
        drafts.append(
            BounceDraft(
                email=_address(event.get("email")),
                subscriber_uuid=_text(event.get("subscriber_uuid")),
                campaign_id=_to_int(event.get("campaign_id")),
                source=SOURCE_SENDGRID,
                meta={key: event[key] for key in SENDGRID_META_FIELDS if key in event},
                created_at=from_unix(event.get("timestamp")),
            )
        )
    return drafts


NORMALIZERS: dict[str, Callable[[bytes], list[BounceDraft]]] = {
    "": normalize_native,
    SOURCE_SES: normalize_ses,
    SOURCE_SENDGRID: normalize_sendgrid,
}


def normalize(service: str, body: bytes) -> list[BounceDraft]:
    """Return the bounces in ``body`` for ``service`` ("" for native postbacks)."""

    try:
        normalizer = NORMALIZERS[service]
    except KeyError:
        raise UnknownServiceError(service) from None
    return normalizer(body)
