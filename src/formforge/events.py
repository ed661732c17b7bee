"""Event listeners for forms.

Listeners for an event run sequentially in registration order. A listener
that raises is logged and skipped; it never aborts the emitting operation.
"""

import logging
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

Listener = Callable[..., Any]

# Emitted after every individual field validation: (path, valid, message | None)
VALIDATE = "validate"
# Emitted after registry membership, visibility or label changes: (field)
FIELDS_CHANGED = "fields-changed"

VALID_EVENTS = (VALIDATE, FIELDS_CHANGED)


class EventEmitter:
    """Ordered listener lists keyed by event name."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = {}

    def on(self, event: str, listener: Listener) -> Listener:
        """Register *listener* for *event*. Returns the listener."""
        if event not in VALID_EVENTS:
            raise ValueError(
                f"Unknown event '{event}'. Expected one of: {', '.join(VALID_EVENTS)}"
            )
        self._listeners.setdefault(event, []).append(listener)
        return listener

    def off(self, event: str, listener: Listener) -> None:
        """Remove *listener*; unknown listeners are ignored."""
        listeners = self._listeners.get(event, [])
        if listener in listeners:
            listeners.remove(listener)

    def emit(self, event: str, *args: Any) -> None:
        for listener in list(self._listeners.get(event, [])):
            try:
                listener(*args)
            except Exception as e:
                logger.error("Listener for '%s' failed: %s", event, e)
