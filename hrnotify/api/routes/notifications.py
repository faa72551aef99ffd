"""Notification operator API routes."""

from fastapi import APIRouter, HTTPException, Query

from hrnotify.api.deps import DispatcherDep, NotificationStoreDep
from hrnotify.models.dispatch import QueueStats, SweepResult
from hrnotify.models.notification import Notification, NotificationStatus
from hrnotify.schemas.common import APIResponse, ListResponse

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("/queue/stats", response_model=APIResponse[QueueStats])
async def get_queue_stats(dispatcher: DispatcherDep) -> APIResponse[QueueStats]:
    """Get dispatch queue depth, capacity and state."""
    return APIResponse(data=dispatcher.get_queue_stats())


@router.post("/retry-sweep", response_model=APIResponse[SweepResult])
async def run_retry_sweep(dispatcher: DispatcherDep) -> APIResponse[SweepResult]:
    """Resubmit due notifications now instead of waiting for the next sweep."""
    return APIResponse(data=await dispatcher.sweep())


@router.get("", response_model=ListResponse[Notification])
async def list_notifications(
    store: NotificationStoreDep,
    status: NotificationStatus = Query(
        default=NotificationStatus.FAILED,
        description="Filter by delivery status",
    ),
    limit: int = Query(default=100, ge=1, le=500, description="Maximum items returned"),
) -> ListResponse[Notification]:
    """List notifications by status, newest first.

    Defaults to FAILED, the only delivery failure signal operators get.
    """
    notifications = await store.list_by_status(status, limit=limit)
    return ListResponse(data=notifications, total=len(notifications))


@router.get("/{notification_id}", response_model=APIResponse[Notification])
async def get_notification(
    notification_id: str,
    store: NotificationStoreDep,
) -> APIResponse[Notification]:
    """Get a notification and its delivery state."""
    notification = await store.get(notification_id)
    if not notification:
        raise HTTPException(status_code=404, detail=f"Notification {notification_id} not found")
    return APIResponse(data=notification)
