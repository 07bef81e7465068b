"""User-facing message catalog.

Messages are looked up by dotted key. Parameters passed to :func:`ts` may
themselves reference catalog entries as ``{some.key}``, which lets callers
write ``ts("globals.messages.errorFetching", name="{globals.terms.bounces}")``.
"""
from __future__ import annotations

import re

MESSAGES: dict[str, str] = {
    "globals.terms.bounce": "bounce",
    "globals.terms.bounces": "bounces",
    "globals.messages.errorCreating": "Error creating {name}: {error}",
    "globals.messages.errorFetching": "Error fetching {name}: {error}",
    "globals.messages.errorDeleting": "Error deleting {name}: {error}",
    "globals.messages.invalidID": "Invalid ID",
    "globals.messages.invalidData": "Invalid data: an email or subscriber UUID is required",
    "globals.messages.invalidEmail": "Invalid email",
    "globals.messages.invalidUUID": "Invalid UUID",
    "globals.messages.invalidFields": "Invalid fields: {error}",
    "bounces.unknownService": "Unknown bounce service",
    "bounces.invalidPayload": "Invalid {service} bounce payload: {error}",
}

_REF = re.compile(r"^\{([\w.]+)\}$")


def t(key: str) -> str:
    """Return the message for ``key``, or the key itself when it is unknown."""
    return MESSAGES.get(key, key)


def ts(key: str, **params: object) -> str:
    """Return the message for ``key`` with ``{param}`` placeholders substituted."""
    resolved = {}
    for name, value in params.items():
        text = str(value)
        match = _REF.match(text)
        resolved[name] = t(match.group(1)) if match else text

    message = t(key)
    for name, value in resolved.items():
        message = message.replace("{" + name + "}", value)
    return message
