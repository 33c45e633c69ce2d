"""Backends applying network configuration to the host."""
from .base import BackendError, InterfaceChangeCallback, NetworkBackend
from .wicked import WickedBackend

__all__ = [
    "BackendError",
    "InterfaceChangeCallback",
    "NetworkBackend",
    "WickedBackend",
]

# Backend registry
BACKENDS = {
    "wicked": WickedBackend,
}


def create_backend(name: str = "wicked", settings=None) -> NetworkBackend:
    """Factory function to create backend instances."""
    if name not in BACKENDS:
        raise ValueError(f"Unknown backend: {name}")
    return BACKENDS[name](settings)
