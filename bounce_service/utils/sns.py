"""SNS helper utilities for SES topic subscriptions."""
from __future__ import annotations

import json
from urllib.parse import urlparse
from urllib.request import Request, urlopen

from bounce_service.utils.logger import logger


def is_allowed_subscribe_url(url: str) -> tuple[bool, str]:
    """Only follow SubscribeURLs that point at an SNS endpoint over https."""
    parsed = urlparse(url)
    if parsed.scheme != "https":
        return False, "SubscribeURL must use https"
    host = parsed.hostname or ""
    if host != "sns.amazonaws.com" and not (host.startswith("sns.") and host.endswith(".amazonaws.com")):
        return False, "SubscribeURL hostname is not allowed"
    return True, "ok"


def subscription_url(body: bytes) -> str | None:
    """Return the SubscribeURL when ``body`` is an SNS SubscriptionConfirmation."""
    try:
        payload = json.loads(body)
    except ValueError:
        return None
    if not isinstance(payload, dict) or payload.get("Type") != "SubscriptionConfirmation":
        return None
    url = payload.get("SubscribeURL")
    return url if isinstance(url, str) and url else None


def _fetch_url(url: str, timeout_seconds: int) -> bytes:
    request = Request(url, method="GET")
    with urlopen(request, timeout=timeout_seconds) as response:
        return response.read()


def confirm_subscription(subscribe_url: str, timeout_seconds: int) -> bool:
    allowed, reason = is_allowed_subscribe_url(subscribe_url)
    if not allowed:
        logger.warning("Refusing SNS subscription confirmation: %s", reason)
        return False
    try:
        _fetch_url(subscribe_url, timeout_seconds)
    except Exception as exc:  # pragma: no cover - network errors
        logger.warning("Failed to confirm SNS subscription: %s", exc)
        return False
    logger.info("Confirmed SNS subscription")
    return True
