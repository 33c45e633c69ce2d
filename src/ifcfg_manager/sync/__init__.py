"""Optimistic synchronization between the store and the backend."""
from .coordinator import SyncCoordinator, create_coordinator

__all__ = ["SyncCoordinator", "create_coordinator"]
