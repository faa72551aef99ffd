"""Notification submission for business workflows."""

from typing import Any, Mapping

from hrnotify.core.config import Settings, get_settings
from hrnotify.core.exceptions import DispatchError
from hrnotify.core.logging import get_logger
from hrnotify.models.notification import EventType, Notification, Recipient
from hrnotify.notification.dispatcher import NotificationDispatcher
from hrnotify.notification.templates import Audience, get_template, render_template

logger = get_logger(__name__)


class NotificationService:
    """Single entry point producers use to send a notification.

    ``submit`` renders the message, persists a PENDING record and offers it
    to the dispatcher. Once the record is persisted the caller is done: if
    the dispatcher refuses it (stopped, full), the retry scheduler picks the
    record up on a later sweep.
    """

    def __init__(
        self,
        dispatcher: NotificationDispatcher,
        settings: Settings | None = None,
    ):
        """Initialize service.

        Args:
            dispatcher: Dispatcher whose store records are created in
            settings: Application settings
        """
        self._dispatcher = dispatcher
        self._store = dispatcher.store
        self._settings = settings or get_settings()

    async def submit(
        self,
        event_type: str,
        recipient: Recipient,
        data: Mapping[str, Any] | None = None,
        *,
        audience: Audience = Audience.EMPLOYEE,
        is_paid_leave: bool = False,
        leave_request_id: int | None = None,
        max_retries: int | None = None,
    ) -> Notification:
        """Create and queue a notification.

        Args:
            event_type: Event tag used to pick the template
            recipient: Message recipient
            data: Template placeholder values
            audience: Recipient role for events with several templates
            is_paid_leave: Selects the paid or unpaid approval template
            leave_request_id: Related leave request, if any
            max_retries: Delivery attempts allowed (defaults to settings)

        Returns:
            The persisted notification

        Raises:
            PersistenceError: The record could not be created
        """
        if isinstance(event_type, EventType):
            event_type = event_type.value
        template = get_template(event_type, audience=audience, is_paid_leave=is_paid_leave)
        subject, body = render_template(template, data or {})

        notification = await self._store.create(
            Notification(
                recipient=recipient,
                event_type=event_type,
                subject=subject,
                body=body,
                template_name=template.name,
                leave_request_id=leave_request_id,
                max_retries=max_retries or self._settings.notification_max_retries,
            )
        )

        try:
            self._dispatcher.enqueue(notification)
        except DispatchError as e:
            logger.warning(
                "Notification stored but not queued, leaving it for the retry scheduler",
                notification_id=notification.id,
                reason=str(e),
            )
        else:
            logger.info(
                "Notification submitted",
                notification_id=notification.id,
                event_type=notification.event_type,
                recipient=recipient.email,
            )

        return notification
