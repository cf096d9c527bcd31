import asyncio
from typing import Optional


class Permit:
    """
    Single-slot guard. try_acquire() never waits: it returns False while
    the slot is held, so callers treat a busy permit as a no-op.
    """

    def __init__(self, name: str):
        self.name = name
        self._held = False

    @property
    def busy(self) -> bool:
        return self._held

    def try_acquire(self) -> bool:
        if self._held:
            return False
        self._held = True
        return True

    def release(self):
        self._held = False

    def __repr__(self):
        return f"Permit({self.name!r}, busy={self._held})"


class CancellationToken:
    """
    Marks one in-flight request as superseded.

    cancel() asks the bound transport future to abort; whether or not it
    does, a cancelled token's result must be discarded by its owner.
    """

    def __init__(self):
        self._cancelled = False
        self._future: Optional[asyncio.Future] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def bind(self, future: asyncio.Future):
        self._future = future
        if self._cancelled:
            future.cancel()

    def cancel(self):
        self._cancelled = True
        if self._future is not None and not self._future.done():
            self._future.cancel()
