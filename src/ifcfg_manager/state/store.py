"""In-memory store holding the authoritative network snapshot.

The snapshot is only ever replaced through ``dispatch``; readers get an
immutable ``NetworkState`` and subscribers are told about every new one.
"""
import logging
from typing import Callable, Optional

from ..model.factory import placeholder_connection
from ..model.schema import Connection, Interface, NetworkState
from .reducer import find_interface, initial_state, network_reducer
from .transitions import Transition

logger = logging.getLogger(__name__)

Listener = Callable[[NetworkState], None]


class NetworkStore:
    """
    Single-threaded store for interfaces, connections and routes.

    Usage:
        store = NetworkStore()
        unsubscribe = store.subscribe(lambda state: render(state))
        store.dispatch(SetInterfaces(payloads))
    """

    def __init__(self, state: Optional[NetworkState] = None):
        self._state = state or initial_state()
        self._listeners: list[Listener] = []
        self._dispatching = False

    def get_state(self) -> NetworkState:
        return self._state

    def dispatch(self, transition: Transition) -> NetworkState:
        """
        Apply a transition and notify subscribers.

        Must be called from the event loop thread. Dispatching from inside
        a listener is not supported.

        Returns:
            The state after the transition
        """
        if self._dispatching:
            raise RuntimeError(
                f"Cannot dispatch {type(transition).__name__} while another dispatch is running"
            )

        kind = getattr(transition, "kind", type(transition).__name__)

        self._dispatching = True
        try:
            previous = self._state
            self._state = network_reducer(previous, transition)

            if self._state is previous:
                logger.debug(f"Transition {kind} left the state unchanged")
            else:
                logger.debug(f"Applied transition {kind}")
                self._notify()
        finally:
            self._dispatching = False

        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a listener called with the new state after each change.

        Returns:
            Function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        state = self._state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception as e:
                logger.exception(f"Store listener {listener!r} failed: {e}")

    # === Selectors ===

    def find_interface(self, name: str) -> Optional[Interface]:
        return find_interface(self._state.interfaces, name)

    def find_connection(self, name: str) -> Optional[Connection]:
        return next(
            (c for c in self._state.connections.values() if c.name == name),
            None,
        )

    def connection_for(self, name: str) -> Optional[Connection]:
        """The connection for an interface, or a placeholder if it has none."""
        conn = self.find_connection(name)
        if conn is not None:
            return conn

        iface = self.find_interface(name)
        if iface is None:
            return None
        return placeholder_connection(iface)
