"""Observable wrapper around an externally owned model.

The wrapped dict stays the caller's: writes go straight through to it.
Writes made through the wrapper mark the model dirty and queue one watcher
flush on the scheduler; at flush time each watcher compares the value at its
path with the value it last saw and fires when they differ.

Writes made directly to the underlying dict, or in-place mutation of nested
containers (``model["tags"].append(...)``), are invisible until announced
with touch().
"""

import copy
import logging
from collections.abc import Callable, Iterator, MutableMapping
from dataclasses import dataclass
from typing import Any

from formforge.paths import get_value, set_value
from formforge.scheduler import Scheduler

logger = logging.getLogger(__name__)

WatchCallback = Callable[[Any, Any], None]


@dataclass
class _Watcher:
    path: str
    callback: WatchCallback
    last: Any


class Model(MutableMapping):
    """Mapping facade over a model dict with per-path change watchers."""

    def __init__(self, data: dict[str, Any] | None = None, scheduler: Scheduler | None = None):
        self.data = data if data is not None else {}
        self.scheduler = scheduler or Scheduler()
        self._watchers: list[_Watcher] = []

    # -- Mapping protocol ----------------------------------------------------

    def __getitem__(self, key: str) -> Any:
        return self.data[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self.data[key] = value
        self._changed()

    def __delitem__(self, key: str) -> None:
        del self.data[key]
        self._changed()

    def __iter__(self) -> Iterator[str]:
        return iter(self.data)

    def __len__(self) -> int:
        return len(self.data)

    def __repr__(self) -> str:
        return f"Model({self.data!r})"

    # -- Paths ---------------------------------------------------------------

    def read(self, path: str) -> Any:
        """Read the value at a property path (None when missing)."""
        return get_value(self.data, path)

    def write(self, path: str, value: Any) -> None:
        """Write the value at a property path and schedule a watcher flush."""
        set_value(self.data, path, value)
        self._changed()

    def touch(self, path: str | None = None) -> None:
        """Announce a change made behind the wrapper's back."""
        self._changed()

    # -- Watchers ------------------------------------------------------------

    def watch(self, path: str, callback: WatchCallback) -> Callable[[], None]:
        """Call ``callback(new, old)`` after a flush that changed *path*.

        Returns:
            A function that removes the watcher
        """
        watcher = _Watcher(path=path, callback=callback, last=self._snapshot(path))
        self._watchers.append(watcher)

        def unwatch() -> None:
            if watcher in self._watchers:
                self._watchers.remove(watcher)

        return unwatch

    def rearm(self, path: str) -> None:
        """Make watchers of *path* treat the current value as already seen."""
        for watcher in self._watchers:
            if watcher.path == path:
                watcher.last = self._snapshot(path)

    def _snapshot(self, path: str) -> Any:
        return copy.deepcopy(self.read(path))

    def _changed(self) -> None:
        self.scheduler.queue(self._flush_watchers)

    def _flush_watchers(self) -> None:
        for watcher in list(self._watchers):
            current = self.read(watcher.path)
            if current == watcher.last:
                continue
            previous, watcher.last = watcher.last, copy.deepcopy(current)
            logger.debug("Model path '%s' changed", watcher.path)
            watcher.callback(current, previous)
