"""Bearer token helpers for backend communication."""
from __future__ import annotations

import base64
import binascii
import json
from typing import Any, Dict, Optional


def _decode_base64url(value: str) -> bytes | None:
    padded = value + "=" * (-len(value) % 4)
    try:
        return base64.urlsafe_b64decode(padded.encode("ascii"))
    except (binascii.Error, ValueError):
        return None


def token_claims(token: str) -> Optional[Dict[str, Any]]:
    """Unverified JWT claims; signature checks belong to the backend."""

    parts = token.split(".")
    if len(parts) != 3:
        return None
    material = _decode_base64url(parts[1])
    if material is None:
        return None
    try:
        claims = json.loads(material)
    except ValueError:
        return None
    return claims if isinstance(claims, dict) else None


def player_id_from_token(token: Optional[str]) -> Optional[str]:
    if not token:
        return None
    claims = token_claims(token)
    if not claims or claims.get("sub") in (None, ""):
        return None
    return str(claims["sub"])


def bearer_headers(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


__all__ = ["token_claims", "player_id_from_token", "bearer_headers"]
