"""
Session tokens for bearer authentication.

A token is base64url(JSON {"sub": owner_id, "exp": unix_ts}) + "." + an
HMAC-SHA256 hex signature of that payload. Anything that cannot be verified
raises AuthenticationError; the HTTP layer turns it into a 401.
"""

import base64
import hashlib
import hmac
import json
import time
from typing import Optional

from .errors import AuthenticationError


def _sign(payload: str, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), payload.encode("utf-8"), hashlib.sha256).hexdigest()


def issue_session_token(owner_id: str, secret: str, ttl_seconds: int = 7 * 24 * 3600, now: Optional[float] = None) -> str:
    if not owner_id:
        raise ValueError("owner_id is required")
    issued = time.time() if now is None else now
    body = json.dumps({"sub": owner_id, "exp": int(issued + ttl_seconds)}, separators=(",", ":"))
    payload = base64.urlsafe_b64encode(body.encode("utf-8")).decode("ascii").rstrip("=")
    return f"{payload}.{_sign(payload, secret)}"


def verify_session_token(token: str, secret: str, now: Optional[float] = None) -> str:
    """Return the owner id carried by a valid, unexpired token."""
    try:
        payload, signature = token.split(".", 1)
    except ValueError as e:
        raise AuthenticationError("Invalid session token") from e

    # Header values may carry any latin-1 text; compare as bytes
    if not hmac.compare_digest(signature.encode("utf-8"), _sign(payload, secret).encode("utf-8")):
        raise AuthenticationError("Invalid session token")

    try:
        padded = payload + "=" * (-len(payload) % 4)
        data = json.loads(base64.urlsafe_b64decode(padded))
    except (ValueError, TypeError) as e:
        raise AuthenticationError("Invalid session token") from e

    if not isinstance(data, dict) or not isinstance(data.get("sub"), str) or not data["sub"]:
        raise AuthenticationError("Invalid session token")

    expires = data.get("exp")
    current = time.time() if now is None else now
    if not isinstance(expires, (int, float)) or expires < current:
        raise AuthenticationError("Session expired")

    return data["sub"]


def resolve_owner(authorization: Optional[str], secret: str) -> str:
    """Owner id from an `Authorization: Bearer <token>` header value."""
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthenticationError("Missing session token")
    token = authorization.split(" ", 1)[1].strip()
    if not token:
        raise AuthenticationError("Missing session token")
    return verify_session_token(token, secret)
