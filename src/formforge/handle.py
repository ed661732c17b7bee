"""Completion handle shared by field and form validation.

A validate() call settles exactly once with a ValidationOutcome. The handle
exposes that one completion event two ways:

    # callback style
    form.validate(lambda valid, invalid_fields: ...)

    # awaitable style
    try:
        await form.validate()
    except ValidationFailed as e:
        e.invalid_fields

The underlying future always holds an outcome, never an exception, so an
ignored handle never logs "exception was never retrieved".
"""

import asyncio
from collections.abc import Callable, Generator
from typing import Any

from formforge.errors import ValidationFailed
from formforge.types import InvalidFields, ValidationOutcome

DoneCallback = Callable[[bool, InvalidFields], Any]


class ValidationHandle:
    """One validation's completion, consumable by callback or by await.

    Args:
        resolve_value: What ``await handle`` returns when the outcome is valid
    """

    def __init__(self, resolve_value: Any = None):
        self._future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._resolve_value = resolve_value

    def settle(self, outcome: ValidationOutcome) -> None:
        """Complete the handle. Later calls are ignored."""
        if not self._future.done():
            self._future.set_result(outcome)

    def done(self) -> bool:
        return self._future.done()

    def outcome(self) -> ValidationOutcome:
        """The settled outcome.

        Raises:
            asyncio.InvalidStateError: If the handle has not settled yet
        """
        return self._future.result()

    def add_done_callback(self, callback: DoneCallback) -> None:
        """Call ``callback(valid, invalid_fields)`` once the handle settles."""

        def _deliver(future: asyncio.Future) -> None:
            outcome: ValidationOutcome = future.result()
            callback(outcome.valid, outcome.invalid_fields)

        self._future.add_done_callback(_deliver)

    async def wait(self) -> ValidationOutcome:
        """Wait for the outcome without raising on failure."""
        return await asyncio.shield(self._future)

    async def _resolve(self) -> Any:
        outcome = await self.wait()
        if not outcome.valid:
            raise ValidationFailed(outcome.invalid_fields)
        return self._resolve_value

    def __await__(self) -> Generator[Any, None, Any]:
        return self._resolve().__await__()
