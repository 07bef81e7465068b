"""Identity and format checks applied to every bounce before it is stored."""
from __future__ import annotations

import re
from enum import Enum

from email_validator import EmailNotValidError, validate_email

from bounce_service.services.normalizers import BounceDraft
from bounce_service.utils.datetime import utcnow

UUID_RE = re.compile(r"^[0-9a-f]{8}-([0-9a-f]{4}-){3}[0-9a-f]{12}$", re.IGNORECASE)


class ValidationKind(str, Enum):
    MISSING_IDENTITY = "MissingIdentity"
    INVALID_EMAIL = "InvalidEmail"
    INVALID_UUID = "InvalidUUID"


class BounceValidationError(ValueError):
    """Raised when a bounce fails an identity or format rule."""

    def __init__(self, kind: ValidationKind) -> None:
        super().__init__(kind.value)
        self.kind = kind


def is_email(value: str) -> bool:
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def is_uuid(value: str) -> bool:
    return bool(UUID_RE.match(value))


def validate_bounce(draft: BounceDraft) -> BounceDraft:
    """Check ``draft`` and return a normalized copy ready for insertion.

    Rules run in order and the first failure wins: a bounce needs an email or
    a subscriber UUID, the email must be a valid address and the UUID must be
    well formed. The returned copy has a lower-cased email, a non-empty
    ``meta`` mapping and a ``created_at`` timestamp.
    """

    if not draft.email and not draft.subscriber_uuid:
        raise BounceValidationError(ValidationKind.MISSING_IDENTITY)
    if draft.email and not is_email(draft.email):
        raise BounceValidationError(ValidationKind.INVALID_EMAIL)
    if draft.subscriber_uuid and not is_uuid(draft.subscriber_uuid):
        raise BounceValidationError(ValidationKind.INVALID_UUID)

    created_at = draft.created_at
    if created_at is None or created_at.year <= 1:
        created_at = utcnow()

    return draft.model_copy(
        update={
            "email": draft.email.lower(),
            "subscriber_uuid": draft.subscriber_uuid.lower(),
            "meta": draft.meta or {},
            "created_at": created_at,
        }
    )
