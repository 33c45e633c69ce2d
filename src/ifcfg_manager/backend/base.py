"""Base backend abstraction for network configuration services."""
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Iterable

from ..model.schema import Connection, Route

logger = logging.getLogger(__name__)

# Called with the raw payload of an interface whose state changed
InterfaceChangeCallback = Callable[[dict[str, Any]], None]


class BackendError(Exception):
    """A backend operation failed."""
    pass


class NetworkBackend(ABC):
    """Abstract base class for the service that applies network configuration.

    All operations are coroutines and report failures by raising.
    """

    # Service status
    @abstractmethod
    async def is_active(self) -> bool:
        """Whether the backend service is running."""
        pass

    # Discovery
    @abstractmethod
    async def get_interfaces(self) -> list[dict[str, Any]]:
        """Raw payloads of all network devices."""
        pass

    @abstractmethod
    async def get_connections(self) -> list[dict[str, Any]]:
        """Raw payloads of all persisted connections."""
        pass

    @abstractmethod
    async def get_routes(self) -> list[dict[str, Any]]:
        """Raw payloads of all static routes."""
        pass

    # Configuration
    @abstractmethod
    async def add_connection(self, connection: Connection) -> None:
        """Persist a new connection and activate it."""
        pass

    @abstractmethod
    async def update_connection(self, connection: Connection) -> None:
        """Persist changes to an existing connection."""
        pass

    @abstractmethod
    async def remove_connection(self, connection: Connection) -> None:
        """Remove a persisted connection."""
        pass

    @abstractmethod
    async def reload_connection(self, name: str) -> None:
        """Re-apply the persisted configuration of an interface."""
        pass

    @abstractmethod
    async def set_up(self, name: str) -> None:
        """Bring an interface up."""
        pass

    @abstractmethod
    async def set_down(self, name: str) -> None:
        """Bring an interface down."""
        pass

    @abstractmethod
    async def update_routes(self, routes: Iterable[Route]) -> None:
        """Replace all persisted static routes."""
        pass

    # Notifications
    @abstractmethod
    def on_interface_change(self, callback: InterfaceChangeCallback) -> Callable[[], None]:
        """Register a callback for interface changes.

        The callback receives an interface payload holding only the fields
        the backend knows. After a successful ifup, ifreload or ifdown the
        payload also carries ``status: idle`` and ``error: None``.

        Returns:
            Function that removes the callback
        """
        pass

    async def close(self) -> None:
        """Release resources (watchers, connections)."""
        pass

    # Context manager support
    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False
