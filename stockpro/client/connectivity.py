from __future__ import annotations

import logging
from typing import Callable, List


logger = logging.getLogger(__name__)

CHECKING = "checking"
ONLINE = "online"
OFFLINE = "offline"
STATES = (CHECKING, ONLINE, OFFLINE)

Listener = Callable[[str, str], None]


class ConnectivityState:
    """Single owner of the online/offline flag.

    Listeners are called with ``(previous, current)`` and only when the state
    actually changes.
    """

    def __init__(self, initial: str = CHECKING) -> None:
        if initial not in STATES:
            raise ValueError(f"unknown connectivity state: {initial}")
        self._state = initial
        self._listeners: List[Listener] = []

    def current(self) -> str:
        return self._state

    @property
    def is_online(self) -> bool:
        return self._state == ONLINE

    @property
    def is_offline(self) -> bool:
        return self._state == OFFLINE

    def set(self, state: str) -> bool:
        if state not in STATES:
            raise ValueError(f"unknown connectivity state: {state}")
        previous = self._state
        if previous == state:
            return False
        self._state = state
        logger.info("connectivity_changed", extra={"previous": previous, "current": state})
        for listener in list(self._listeners):
            listener(previous, state)
        return True

    def on_change(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe
