"""Operations endpoints providing health checks and metrics."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from sportsmatch.domain.chat.exceptions import TransientStoreError
from sportsmatch.domain.chat.stores import store_connection
from sportsmatch.settings import settings

router = APIRouter(prefix="", tags=["ops"])


def _resolve_token(x_admin_token: Optional[str], authorization: Optional[str]) -> Optional[str]:
	if x_admin_token:
		return x_admin_token
	if authorization and authorization.lower().startswith("bearer "):
		return authorization.split(" ", 1)[1]
	return None


async def require_metrics_access(
	x_admin_token: Optional[str] = Header(default=None, alias="X-Admin-Token"),
	authorization: Optional[str] = Header(default=None, alias="Authorization"),
) -> None:
	if settings.obs_metrics_public:
		return
	token = settings.obs_admin_token
	if not token:
		# Fail closed: without a configured token nobody can scrape.
		raise HTTPException(status.HTTP_403_FORBIDDEN, detail="admin_token_not_configured")
	if _resolve_token(x_admin_token, authorization) != token:
		raise HTTPException(status.HTTP_403_FORBIDDEN, detail="forbidden")


@router.get("/health/live")
async def health_live() -> dict[str, str]:
	return {"status": "ok", "service": settings.service_name, "commit": settings.git_commit}


@router.get("/health/ready")
async def health_ready(request: Request) -> Response:
	container = request.app.state.container
	if settings.store_backend == "postgres":
		try:
			async with store_connection() as conn:
				await conn.execute("SELECT 1")
		except TransientStoreError:
			return JSONResponse({"status": "unavailable"}, status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
	return JSONResponse({"status": "ok", "online_users": len(container.presence)})


@router.get("/metrics")
async def prometheus_metrics(_: None = Depends(require_metrics_access)) -> Response:
	payload = generate_latest()
	return Response(content=payload, media_type=CONTENT_TYPE_LATEST)
