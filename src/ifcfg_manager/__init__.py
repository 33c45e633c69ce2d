"""Manage sysconfig network configuration for wicked."""
from .backend import BackendError, NetworkBackend, WickedBackend, create_backend
from .config import Settings
from .state import NetworkStore
from .sync import SyncCoordinator, create_coordinator
from .utils import setup_logging

__version__ = "0.1.0"

__all__ = [
    "BackendError",
    "NetworkBackend",
    "NetworkStore",
    "Settings",
    "SyncCoordinator",
    "WickedBackend",
    "create_backend",
    "create_coordinator",
    "setup_logging",
]
