"""Connection state machine that queues callers while a connect is in flight.

Every operation asks the guard for the database handle. The first request
starts the (single) connect attempt; requests arriving while it runs are
queued and released in submission order once it resolves. Afterwards the
outcome is served immediately: the handle, or the cached connection error
until the guard is closed and reopened.
"""
from __future__ import annotations

import asyncio
import inspect
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, List, Optional, TypeVar

from loguru import logger

from .errors import DatabaseConnectionError, DisabledError, NoCallbackError

T = TypeVar("T")

Continuation = Callable[[Optional[BaseException], Optional[T]], Any]


class ConnectionState(str, Enum):
    UNOPENED = "unopened"
    OPENING = "opening"
    OPENED = "opened"
    ERROR = "error"


class ConnectionGuard(Generic[T]):
    """Owns the connection state, the pending queue and the opened handle."""

    def __init__(
        self,
        opener: Callable[[], Awaitable[T]],
        closer: Optional[Callable[[T], Any]] = None,
        *,
        name: str = "database",
        disabled: bool = False,
        log_connection: bool = True,
        log_pending: bool = False,
    ):
        self._opener = opener
        self._closer = closer
        self.name = name
        self.disabled = disabled
        self.log_connection = log_connection
        self.log_pending = log_pending

        self._state = ConnectionState.UNOPENED
        self._pending: List[Continuation] = []
        self._handle: Optional[T] = None
        self._error: Optional[DatabaseConnectionError] = None
        self._attempt: Optional[asyncio.Task] = None
        self.connect_attempts = 0

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def handle(self) -> Optional[T]:
        return self._handle

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    # ------------------------------------------------------------------
    # Gateway
    # ------------------------------------------------------------------

    def acquire(self, continuation: Continuation) -> None:
        """Hand ``continuation(error, handle)`` the handle once it is available."""

        if not callable(continuation):
            raise NoCallbackError("acquire() needs a callable continuation")

        if self.disabled:
            continuation(DisabledError(f"Attempt to open {self.name} while disabled"), None)
            return

        if self._state is ConnectionState.OPENED:
            continuation(None, self._handle)
            return

        if self._state is ConnectionState.ERROR:
            continuation(self._error, None)
            return

        self._pending.append(continuation)
        if self.log_pending:
            logger.debug(
                "{name} not ready yet, queueing operation #{count}",
                name=self.name,
                count=len(self._pending),
            )

        if self._state is ConnectionState.UNOPENED:
            self._start()

    async def get(self) -> T:
        """Awaitable form of ``acquire``: return the handle or raise the error."""

        loop = asyncio.get_running_loop()
        waiter: asyncio.Future = loop.create_future()

        def _resolve(error: Optional[BaseException], handle: Optional[T]) -> None:
            if waiter.done():
                return
            if error is not None:
                # the cached error is raised repeatedly; drop frames from earlier raises
                waiter.set_exception(error.with_traceback(None))
            else:
                waiter.set_result(handle)

        self.acquire(_resolve)
        return await waiter

    def open(self) -> None:
        """Start connecting without queueing anything; no-op unless unopened."""

        if self.disabled or self._state is not ConnectionState.UNOPENED:
            return
        self._start()

    # ------------------------------------------------------------------
    # Connect attempt
    # ------------------------------------------------------------------

    def _start(self) -> None:
        loop = asyncio.get_running_loop()
        self._state = ConnectionState.OPENING
        self.connect_attempts += 1
        if self.log_connection:
            logger.info("Connecting to MongoDB database {name}", name=self.name)
        self._attempt = loop.create_task(self._connect())

    async def _connect(self) -> None:
        try:
            handle = await self._opener()
        except Exception as exc:
            if self.log_connection:
                logger.warning(
                    "Failed to connect to MongoDB database {name}: {error}",
                    name=self.name,
                    error=exc,
                )
            error = DatabaseConnectionError(f"Could not open MongoDB connection to {self.name}")
            error.__cause__ = exc
            self._error = error
            self._state = ConnectionState.ERROR
            self._drain(error, None)
            return

        self._handle = handle
        self._state = ConnectionState.OPENED
        if self.log_connection:
            logger.info("Connected to MongoDB database {name}", name=self.name)
        self._drain(None, handle)

    def _drain(self, error: Optional[BaseException], handle: Optional[T]) -> None:
        # swap first so continuations calling acquire() see the resolved state
        pending, self._pending = self._pending, []
        if self.log_pending:
            logger.debug(
                "{name} resolved, flushing {count} operations",
                name=self.name,
                count=len(pending),
            )
        for continuation in pending:
            try:
                continuation(error, handle)
            except Exception:
                logger.exception("Queued {name} operation raised while being released", name=self.name)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Release the handle and return to UNOPENED; no-op when unopened."""

        if self._state is ConnectionState.UNOPENED:
            return

        if self._state is ConnectionState.OPENING and self._attempt is not None:
            # no cancellation at this layer: let the attempt resolve and drain
            await asyncio.shield(self._attempt)
            if self._state is ConnectionState.UNOPENED:
                return

        if self.log_connection:
            logger.info("Closing MongoDB connection to {name}", name=self.name)

        handle = self._handle
        self._pending.clear()
        self._state = ConnectionState.UNOPENED
        self._handle = None
        self._error = None
        self._attempt = None

        if handle is not None and self._closer is not None:
            result = self._closer(handle)
            if inspect.isawaitable(result):
                await result

    def enable(self) -> bool:
        """Allow access again; return whether the guard was already enabled."""

        was_enabled = not self.disabled
        if not was_enabled and self.log_connection:
            logger.info("Enabling MongoDB database {name}", name=self.name)
        self.disabled = False
        return was_enabled

    def disable(self) -> bool:
        """Block future access; return whether the guard was enabled before."""

        was_enabled = not self.disabled
        if was_enabled and self.log_connection:
            logger.info(
                "Disabling MongoDB database {name} -- operations will now fail",
                name=self.name,
            )
        self.disabled = True
        return was_enabled
