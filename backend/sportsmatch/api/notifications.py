"""REST API surface for a user's notifications and notification preferences."""

from __future__ import annotations

from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from sportsmatch.container import Container
from sportsmatch.domain.notifications.repo import ListQuery
from sportsmatch.domain.notifications.schemas import (
	NotificationListResponse,
	NotificationOut,
	Pagination,
	PreferencesPayload,
	PreferencesResponse,
	UnreadCountResponse,
)
from sportsmatch.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(prefix="/notifications")


def get_container(request: Request) -> Container:
	return request.app.state.container


def _not_found() -> HTTPException:
	return HTTPException(status.HTTP_404_NOT_FOUND, detail="notification_not_found")


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
	page: int = Query(default=1, ge=1),
	limit: int = Query(default=10, ge=1, le=100),
	is_read: Optional[bool] = Query(default=None),
	include_dismissed: bool = Query(default=False),
	sort_by: Literal["created_at", "is_read"] = Query(default="created_at"),
	sort_order: Literal["asc", "desc"] = Query(default="desc"),
	auth_user: AuthenticatedUser = Depends(get_current_user),
	container: Container = Depends(get_container),
) -> NotificationListResponse:
	query = ListQuery(
		page=page,
		limit=limit,
		is_read=is_read,
		include_dismissed=include_dismissed,
		sort_by=sort_by,
		sort_order=sort_order,
	)
	rows = await container.notifications.list_for_user(auth_user.id, query)
	return NotificationListResponse(
		items=[NotificationOut.from_domain(row) for row in rows],
		pagination=Pagination(page=page, limit=limit, count=len(rows)),
	)


@router.get("/unread-count", response_model=UnreadCountResponse)
async def unread_count(
	auth_user: AuthenticatedUser = Depends(get_current_user),
	container: Container = Depends(get_container),
) -> UnreadCountResponse:
	return UnreadCountResponse(unread=await container.notifications.count_unread(auth_user.id))


@router.get("/preferences", response_model=PreferencesResponse)
async def get_preferences(
	auth_user: AuthenticatedUser = Depends(get_current_user),
	container: Container = Depends(get_container),
) -> PreferencesResponse:
	stored = await container.users.get_notification_preferences(auth_user.id)
	if stored is None:
		raise HTTPException(status.HTTP_404_NOT_FOUND, detail="user_not_found")
	return PreferencesResponse.with_defaults(stored)


@router.put("/preferences", response_model=PreferencesResponse)
async def update_preferences(
	payload: PreferencesPayload,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	container: Container = Depends(get_container),
) -> PreferencesResponse:
	try:
		stored = await container.users.update_notification_preferences(auth_user.id, payload.root)
	except LookupError:
		raise HTTPException(status.HTTP_404_NOT_FOUND, detail="user_not_found") from None
	return PreferencesResponse.with_defaults(stored)


@router.get("/{notification_id}", response_model=NotificationOut)
async def get_notification(
	notification_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	container: Container = Depends(get_container),
) -> NotificationOut:
	row = await container.notifications.get(auth_user.id, notification_id)
	if row is None:
		raise _not_found()
	return NotificationOut.from_domain(row)


@router.put("/{notification_id}/read", response_model=NotificationOut)
@router.patch("/{notification_id}/read", response_model=NotificationOut)
async def mark_read(
	notification_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	container: Container = Depends(get_container),
) -> NotificationOut:
	row = await container.notifications.mark_read(auth_user.id, notification_id)
	if row is None:
		raise _not_found()
	return NotificationOut.from_domain(row)


@router.put("/{notification_id}/dismiss", response_model=NotificationOut)
@router.patch("/{notification_id}/dismiss", response_model=NotificationOut)
async def dismiss(
	notification_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	container: Container = Depends(get_container),
) -> NotificationOut:
	row = await container.notifications.dismiss(auth_user.id, notification_id)
	if row is None:
		raise _not_found()
	return NotificationOut.from_domain(row)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_notification(
	notification_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	container: Container = Depends(get_container),
) -> None:
	if not await container.notifications.delete(auth_user.id, notification_id):
		raise _not_found()
