"""Access token verification.

Tokens are issued by the account service as HS256 JWTs carrying the user id
in ``userId`` (legacy) or ``sub``. Only verification lives here.
"""

from __future__ import annotations

import time
from typing import Any, Dict

import jwt
from jwt import InvalidTokenError

from sportsmatch.settings import settings


def encode_access(payload: dict[str, object], *, ttl_seconds: int = 7 * 24 * 3600) -> str:
	"""Encode an access token; used by tooling and tests."""
	now = int(time.time())
	body: Dict[str, Any] = {"iat": now, "exp": now + ttl_seconds}
	body.update(payload)
	return jwt.encode(body, settings.secret_key, algorithm="HS256")


def decode_access(token: str) -> dict[str, object]:
	"""Decode and validate an access token.

	Raises jwt.InvalidTokenError subclasses on failure.
	"""
	payload = jwt.decode(
		token,
		settings.secret_key,
		algorithms=["HS256"],
		leeway=settings.jwt_leeway_seconds,
		options={"require": ["exp"]},
	)
	return payload  # type: ignore[return-value]


def subject_of(payload: dict[str, object]) -> str:
	subject = str(payload.get("userId") or payload.get("sub") or "").strip()
	if not subject:
		raise InvalidTokenError("missing_claim:userId")
	return subject
