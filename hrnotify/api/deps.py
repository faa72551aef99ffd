"""API dependency injection."""

from typing import Annotated

from fastapi import Depends, Request

from hrnotify.notification.dispatcher import NotificationDispatcher
from hrnotify.storage.base import NotificationStore


def get_dispatcher(request: Request) -> NotificationDispatcher:
    """Get the dispatcher created by the application lifespan."""
    return request.app.state.dispatcher


DispatcherDep = Annotated[NotificationDispatcher, Depends(get_dispatcher)]


def get_notification_store(dispatcher: DispatcherDep) -> NotificationStore:
    """Get the store the dispatcher writes to."""
    return dispatcher.store


NotificationStoreDep = Annotated[NotificationStore, Depends(get_notification_store)]
