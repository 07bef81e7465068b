"""Tests for webhook payload normalization."""
from __future__ import annotations

import json

import pytest

from bounce_service.services.normalizers import (
    ShapeError,
    UnknownServiceError,
    normalize,
)


def _ses_message(**overrides) -> dict:
    message = {
        "notificationType": "Bounce",
        "mail": {
            "messageId": "ses-message-id",
            "timestamp": "2025-12-16T00:00:00.000Z",
            "destination": ["first@mailhost.org"],
            "headers": [
                {"name": "X-Campaign-Id", "value": "42"},
                {"name": "X-Subscriber-Uuid", "value": "2f5f5a1e-6b7c-4d8e-9f00-112233445566"},
            ],
        },
        "bounce": {
            "bounceType": "Permanent",
            "bounceSubType": "General",
            "timestamp": "2025-12-16T00:01:00.000Z",
            "bouncedRecipients": [
                {"emailAddress": "First@Mailhost.org", "status": "5.1.1", "diagnosticCode": "smtp; 550 5.1.1 user unknown"}
            ],
        },
    }
    message.update(overrides)
    return message


def _sns(message) -> bytes:
    return json.dumps(
        {
            "Type": "Notification",
            "MessageId": "sns-message-id",
            "TopicArn": "arn:aws:sns:ap-southeast-2:123456789012:ses-events",
            "Message": json.dumps(message) if isinstance(message, dict) else message,
        }
    ).encode()


def test_native_payload():
    body = json.dumps({"email": "A@B.COM", "campaign_id": 7, "meta": {"reason": "full"}}).encode()
    [draft] = normalize("", body)

    assert draft.email == "A@B.COM"
    assert draft.campaign_id == 7
    assert draft.source == "api"
    assert draft.meta == {"reason": "full"}


def test_native_keeps_caller_source():
    [draft] = normalize("", b'{"subscriber_uuid": "abc", "source": "postfix"}')
    assert draft.source == "postfix"


@pytest.mark.parametrize(
    "body",
    [
        b"not json",
        b"[1, 2]",
        b'{"email": 12}',
        b'{"email": "x@mailhost.org", "meta": [1]}',
        b'{"campaign_id": "seven"}',
        b'{"email": "x@mailhost.org", "campaign_id": 100000000000000000000}',
        json.dumps({"email": "x@mailhost.org", "source": "s" * 65}).encode(),
    ],
)
def test_native_bad_shape(body):
    with pytest.raises(ShapeError):
        normalize("", body)


def test_ses_notification_through_sns():
    [draft] = normalize("ses", _sns(_ses_message()))

    assert draft.email == "First@Mailhost.org"
    assert draft.source == "ses"
    assert draft.campaign_id == 42
    assert draft.subscriber_uuid == "2f5f5a1e-6b7c-4d8e-9f00-112233445566"
    assert draft.created_at.isoformat().startswith("2025-12-16T00:01:00")
    assert draft.meta["bounce_type"] == "Permanent"
    assert draft.meta["diagnostic_code"] == "smtp; 550 5.1.1 user unknown"
    assert draft.meta["message_id"] == "ses-message-id"


def test_ses_raw_notification_with_several_recipients():
    message = _ses_message(
        bounce={
            "bouncedRecipients": [
                {"emailAddress": "one@mailhost.org"},
                {"emailAddress": "Two <two@mailhost.org>"},
            ]
        }
    )
    drafts = normalize("ses", json.dumps(message).encode())

    assert [d.email for d in drafts] == ["one@mailhost.org", "two@mailhost.org"]
    assert all(d.subscriber_uuid == "" for d in drafts)
    assert all(d.meta["bounce_type"] == "" for d in drafts)


def test_ses_minimal_payload_defaults_missing_fields():
    message = {"notificationType": "Bounce", "mail": {"destination": ["only@mailhost.org"]}}
    [draft] = normalize("ses", _sns(message))

    assert draft.email == "only@mailhost.org"
    assert draft.campaign_id is None
    assert draft.created_at is None
    assert draft.meta["status"] == ""


def test_ses_ignores_non_bounce_notifications():
    assert normalize("ses", _sns(_ses_message(notificationType="Delivery"))) == []


def test_ses_event_type_variant():
    message = _ses_message()
    del message["notificationType"]
    message["eventType"] = "Bounce"
    assert len(normalize("ses", _sns(message))) == 1


@pytest.mark.parametrize(
    "body",
    [
        b"[]",
        b"{broken",
        _sns("not json"),
        json.dumps({"Type": "Notification"}).encode(),
        _sns({"notificationType": "Bounce", "mail": "garbage", "bounce": []}),
    ],
)
def test_ses_bad_shape(body):
    with pytest.raises(ShapeError):
        normalize("ses", body)


def test_sendgrid_keeps_only_bounces():
    events = [
        {"email": "Lost@Mailhost.org", "event": "bounce", "timestamp": 1765843200, "reason": "550 mailbox unavailable",
         "status": "5.0.0", "type": "bounce", "sg_event_id": "evt-1", "campaign_id": "9", "ip": "127.0.0.1"},
        {"email": "fine@mailhost.org", "event": "delivered", "timestamp": 1765843200},
        "junk",
    ]
    [draft] = normalize("sendgrid", json.dumps(events).encode())

    assert draft.email == "Lost@Mailhost.org"
    assert draft.source == "sendgrid"
    assert draft.campaign_id == 9
    assert draft.created_at.year == 2025
    assert draft.meta == {"reason": "550 mailbox unavailable", "status": "5.0.0", "type": "bounce", "sg_event_id": "evt-1"}


def test_sendgrid_single_event_object():
    [draft] = normalize("sendgrid", b'{"email": "x@mailhost.org", "event": "bounce", "timestamp": "bad"}')
    assert draft.created_at is None


def test_sendgrid_bad_shape():
    with pytest.raises(ShapeError):
        normalize("sendgrid", b'"just a string"')


def test_unknown_service():
    with pytest.raises(UnknownServiceError):
        normalize("mailgun", b"{}")


def test_native_source_up_to_column_width():
    [draft] = normalize("", json.dumps({"email": "x@mailhost.org", "source": "s" * 64}).encode())
    assert draft.source == "s" * 64


@pytest.mark.parametrize("campaign_id", ["99999999999", "2147483648", "0", "-4"])
def test_sendgrid_out_of_range_campaign_dropped(campaign_id):
    body = json.dumps({"email": "x@mailhost.org", "event": "bounce", "campaign_id": campaign_id}).encode()
    [draft] = normalize("sendgrid", body)
    assert draft.campaign_id is None


def test_ses_out_of_range_campaign_header_dropped():
    mail = _ses_message()["mail"]
    mail["headers"][0]["value"] = "99999999999"
    [draft] = normalize("ses", _sns(_ses_message(mail=mail)))
    assert draft.campaign_id is None
