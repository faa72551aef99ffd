"""Base class for notification senders."""

from abc import ABC, abstractmethod

from hrnotify.models.notification import Recipient


class NotificationSender(ABC):
    """Transport that delivers one rendered message.

    ``send`` returns normally on success and raises on failure; any timeout
    is the sender's own concern.
    """

    @property
    @abstractmethod
    def channel_type(self) -> str:
        """Return channel type identifier."""
        pass

    @abstractmethod
    async def send(self, recipient: Recipient, subject: str, body: str) -> None:
        """Deliver a message.

        Args:
            recipient: Message recipient
            subject: Subject line
            body: Plain text body

        Raises:
            SendError: Delivery failed
        """
        pass

    async def close(self) -> None:
        """Clean up resources. Override if needed."""
        pass
