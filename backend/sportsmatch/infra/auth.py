"""Authentication helpers for FastAPI endpoints and the Socket.IO handshake.

- Bearer JWT verification (HS256) using settings.secret_key.
- Dev headers (X-User-Id) are only respected in development.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from sportsmatch.infra import jwt as jwt_helper
from sportsmatch.settings import settings


@dataclass(slots=True)
class AuthenticatedUser:
	id: str
	email: Optional[str] = None


_bearer_scheme = HTTPBearer(auto_error=False)


class InvalidCredential(ValueError):
	"""Raised when a bearer credential cannot be resolved to a user id."""


def parse_access_token(token: str) -> AuthenticatedUser:
	"""Decode a bearer token into an AuthenticatedUser or raise InvalidCredential."""
	token = (token or "").strip()
	if not token:
		raise InvalidCredential("missing_token")
	try:
		payload = jwt_helper.decode_access(token)
		subject = jwt_helper.subject_of(payload)
	except Exception as exc:
		raise InvalidCredential("invalid_token") from exc
	email = payload.get("email")
	return AuthenticatedUser(id=subject, email=str(email) if email else None)


def bearer_from_header(value: Optional[str]) -> Optional[str]:
	if value and value.lower().startswith("bearer "):
		return value.split(" ", 1)[1].strip() or None
	return None


async def get_current_user(
	x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
	credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> AuthenticatedUser:
	"""Resolve the authenticated user.

	In development we allow a simple X-User-Id header. In all other
	environments a valid Bearer JWT is required.
	"""
	if credentials and credentials.scheme.lower() == "bearer":
		try:
			return parse_access_token(credentials.credentials)
		except InvalidCredential:
			raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_token") from None

	if settings.is_dev() and x_user_id:
		return AuthenticatedUser(id=x_user_id)

	raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_token")
