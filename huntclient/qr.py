"""Classification of scanned QR text into interaction kinds.

Two ordered recognizer passes feed the same result type:

1. structured payloads: a JSON object carrying a string ``type`` field;
2. plain strings: literal prefixes (``lgin-``, ``peer://``, ``hunt://``).

Anything else is ``generic``. A recognized kind whose required field is
missing degrades that scan to ``generic``.
"""
from __future__ import annotations

import enum
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from .errors import MalformedPayload

logger = logging.getLogger(__name__)


class InteractionKind(str, enum.Enum):
    LOGIN = "login"
    PEER = "peer"
    ITEM_DROP = "item_drop"
    ENCOUNTER = "encounter"
    HUNT_STEP = "hunt_step"
    SECURE = "secure"
    GENERIC = "generic"


LOGIN_PREFIX = "lgin-"
PEER_PREFIX = "peer://"
HUNT_PREFIX = "hunt://"


@dataclass(frozen=True)
class QRPayload:
    raw: str
    kind: InteractionKind
    session_id: Optional[str] = None
    peer_token: Optional[str] = None
    hunt_id: Optional[str] = None
    fields: Dict[str, Any] = field(default_factory=dict)


def _generic(raw: str) -> QRPayload:
    return QRPayload(raw=raw, kind=InteractionKind.GENERIC)


def _required_str(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value:
        raise MalformedPayload(f"missing or invalid {key}")
    return value


def _structured_login(raw: str, data: Dict[str, Any]) -> QRPayload:
    return QRPayload(raw=raw, kind=InteractionKind.LOGIN, session_id=_required_str(data, "session_id"), fields=data)


def _structured_peer(raw: str, data: Dict[str, Any]) -> QRPayload:
    token = data.get("token")
    if token is not None and not isinstance(token, str):
        raise MalformedPayload("invalid peer token")
    return QRPayload(raw=raw, kind=InteractionKind.PEER, peer_token=token or raw, fields=data)


def _structured_hunt(raw: str, data: Dict[str, Any]) -> QRPayload:
    hunt_id = data.get("hunt_id")
    if hunt_id is not None and not isinstance(hunt_id, (str, int)):
        raise MalformedPayload("invalid hunt_id")
    return QRPayload(
        raw=raw,
        kind=InteractionKind.HUNT_STEP,
        hunt_id=str(hunt_id) if hunt_id is not None else None,
        fields=data,
    )


def _structured_plain(kind: InteractionKind) -> Callable[[str, Dict[str, Any]], QRPayload]:
    def build(raw: str, data: Dict[str, Any]) -> QRPayload:
        return QRPayload(raw=raw, kind=kind, fields=data)

    return build


_STRUCTURED: Dict[str, Callable[[str, Dict[str, Any]], QRPayload]] = {
    "login": _structured_login,
    "peer": _structured_peer,
    "hunt_step": _structured_hunt,
    "item_drop": _structured_plain(InteractionKind.ITEM_DROP),
    "encounter": _structured_plain(InteractionKind.ENCOUNTER),
    "secure": _structured_plain(InteractionKind.SECURE),
}


def _parse_structured(raw: str) -> Optional[Dict[str, Any]]:
    stripped = raw.strip()
    if not stripped.startswith("{"):
        return None
    try:
        data = json.loads(stripped)
    except (ValueError, RecursionError) as exc:
        raise MalformedPayload("invalid JSON payload") from exc
    if not isinstance(data, dict):
        raise MalformedPayload("structured payload is not an object")
    return data


def _classify_structured(raw: str, data: Dict[str, Any]) -> QRPayload:
    qr_type = data.get("type")
    if not isinstance(qr_type, str):
        raise MalformedPayload("missing or invalid type field")
    builder = _STRUCTURED.get(qr_type)
    if builder is None:
        logger.info("Unknown QR type %r; treating as a regular scan", qr_type)
        return _generic(raw)
    return builder(raw, data)


def _classify_prefixed(raw: str) -> QRPayload:
    if raw.startswith(LOGIN_PREFIX):
        return QRPayload(
            raw=raw,
            kind=InteractionKind.LOGIN,
            session_id=_required_str({"session_id": raw[len(LOGIN_PREFIX):]}, "session_id"),
        )
    if raw.startswith(PEER_PREFIX):
        token = raw[len(PEER_PREFIX):]
        if not token:
            raise MalformedPayload("empty peer payload")
        return QRPayload(raw=raw, kind=InteractionKind.PEER, peer_token=token)
    if raw.startswith(HUNT_PREFIX):
        hunt_id = raw[len(HUNT_PREFIX):].split("/", 1)[0]
        return QRPayload(raw=raw, kind=InteractionKind.HUNT_STEP, hunt_id=hunt_id or None)
    return _generic(raw)


def classify(raw: Any) -> QRPayload:
    """Classify scanned text. Never raises; malformed input is ``generic``."""

    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    elif not isinstance(raw, str):
        raw = "" if raw is None else str(raw)

    try:
        data = _parse_structured(raw)
        if data is not None:
            return _classify_structured(raw, data)
        return _classify_prefixed(raw)
    except MalformedPayload as exc:
        logger.warning("Malformed QR payload (%s); treating as a regular scan", exc)
        return _generic(raw)


__all__ = ["InteractionKind", "QRPayload", "classify", "LOGIN_PREFIX", "PEER_PREFIX", "HUNT_PREFIX"]
