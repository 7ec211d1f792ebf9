"""Initialize-once cell shared by process-wide services."""

import asyncio
import threading
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

T = TypeVar("T")


class OnceCell(Generic[T]):
    """Runs an async factory at most once and replays its outcome.

    The first caller runs the factory; concurrent callers wait on the lock and
    every caller afterwards receives the same value, or the same exception.

    Initialization belongs to the event loop of the first caller. A caller on
    another loop gets RuntimeError until the outcome is stored, and the stored
    outcome from then on.
    """

    def __init__(self) -> None:
        self._state_lock = threading.Lock()
        self._lock = asyncio.Lock()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._done = False
        self._value: T | None = None
        self._error: BaseException | None = None

    @property
    def initialized(self) -> bool:
        return self._done

    def _claim(self) -> None:
        loop = asyncio.get_running_loop()
        with self._state_lock:
            if self._loop is None:
                self._loop = loop
            elif self._loop is not loop and not self._done:
                raise RuntimeError("OnceCell is being initialized on a different event loop")

    async def get_or_init(self, factory: Callable[[], Awaitable[T]]) -> T:
        if not self._done:
            self._claim()
            async with self._lock:
                if not self._done:
                    try:
                        value = await factory()
                    except asyncio.CancelledError:
                        # A cancelled first caller leaves the cell open for the next one
                        raise
                    except Exception as e:
                        with self._state_lock:
                            self._error = e
                            self._done = True
                    else:
                        with self._state_lock:
                            self._value = value
                            self._done = True
        if self._error is not None:
            raise self._error
        return self._value  # type: ignore[return-value]

    def reset(self) -> None:
        """Forget the stored outcome. Intended for tests."""
        with self._state_lock:
            self._lock = asyncio.Lock()
            self._loop = None
            self._done = False
            self._value = None
            self._error = None
