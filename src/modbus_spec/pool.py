"""ConnectionPool: bounded, thread-safe lending of Transport connections."""

import logging
import queue
import threading
from typing import Any, Callable

from .errors import BorrowTimeoutError, ConnectionCreationError, PoolClosedError, PoolError
from .transport import Transport

logger = logging.getLogger(__name__)

DEFAULT_POOL_SIZE = 5
DEFAULT_BORROW_TIMEOUT = 5.0

# Put into the queue by close() to wake blocked borrowers; each one passes it on
_CLOSED = object()


def _close_quietly(transport: Transport) -> None:
    try:
        transport.close()
    except Exception as e:
        logger.warning("Error closing pooled connection: %s", e)


class LeasedConnection:
    """
    A borrowed connection. release() returns it to the pool exactly once; using
    the lease as a context manager yields the Transport and releases on exit.
    """

    def __init__(self, pool: "ConnectionPool", transport: Transport) -> None:
        self._pool = pool
        self._transport = transport
        self._released = False
        self._lock = threading.Lock()

    @property
    def transport(self) -> Transport:
        if self._released:
            raise PoolError("Lease has already been released")
        return self._transport

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        """Return the connection to the pool. Later calls are no-ops."""
        with self._lock:
            if self._released:
                return
            self._released = True
        self._pool._return(self._transport)

    def __enter__(self) -> Transport:
        return self.transport

    def __exit__(self, *args: Any) -> None:
        self.release()


class ConnectionPool:
    """
    Fixed-size pool, filled at construction from a zero-argument factory that
    returns connected Transports.

    borrow() waits up to borrow_timeout seconds. With validate_on_borrow, a
    connection that is no longer connected is closed and replaced before it is
    handed out. If the replacement cannot be created the closed connection goes
    back into the pool, so the slot survives and the next borrow tries again.
    """

    def __init__(
        self,
        factory: Callable[[], Transport],
        size: int = DEFAULT_POOL_SIZE,
        borrow_timeout: float = DEFAULT_BORROW_TIMEOUT,
        validate_on_borrow: bool = True,
    ) -> None:
        if size < 1:
            raise ValueError(f"Pool size must be >= 1, got {size}")
        if borrow_timeout < 0:
            raise ValueError(f"Borrow timeout must be >= 0, got {borrow_timeout}")
        self._factory = factory
        self._size = size
        self._borrow_timeout = borrow_timeout
        self._validate_on_borrow = validate_on_borrow
        self._queue: queue.Queue[Any] = queue.Queue(maxsize=size)
        self._lock = threading.Lock()
        self._closed = False

        created: list[Transport] = []
        try:
            for _ in range(size):
                created.append(self._create())
        except ConnectionCreationError:
            for transport in created:
                _close_quietly(transport)
            raise
        for transport in created:
            self._queue.put_nowait(transport)
        logger.info("Connection pool ready: %d connections", size)

    @property
    def size(self) -> int:
        return self._size

    @property
    def available(self) -> int:
        """Connections currently idle in the pool."""
        if self._closed:
            return 0
        return self._queue.qsize()

    @property
    def closed(self) -> bool:
        return self._closed

    def _create(self) -> Transport:
        try:
            return self._factory()
        except Exception as e:
            raise ConnectionCreationError(f"Failed to create pooled connection: {e}") from e

    def _is_alive(self, transport: Transport) -> bool:
        try:
            return transport.is_connected()
        except Exception as e:
            logger.warning("Liveness check failed, treating connection as dead: %s", e)
            return False

    def borrow(self, timeout: float | None = None) -> LeasedConnection:
        """
        Borrow a connection, waiting up to timeout seconds (default: the pool's
        borrow_timeout). Raises BorrowTimeoutError or PoolClosedError.
        """
        if self._closed:
            raise PoolClosedError()
        wait = self._borrow_timeout if timeout is None else timeout
        try:
            transport = self._queue.get(timeout=wait)
        except queue.Empty:
            raise BorrowTimeoutError(wait) from None

        if transport is _CLOSED:
            self._queue.put_nowait(_CLOSED)
            raise PoolClosedError()
        if self._closed:
            _close_quietly(transport)
            raise PoolClosedError()

        if self._validate_on_borrow and not self._is_alive(transport):
            logger.warning("Pooled connection is no longer connected; replacing it")
            _close_quietly(transport)
            try:
                transport = self._create()
            except ConnectionCreationError:
                self._return(transport)
                raise
        return LeasedConnection(self, transport)

    def _return(self, transport: Transport) -> None:
        with self._lock:
            if self._closed:
                _close_quietly(transport)
                return
            try:
                self._queue.put_nowait(transport)
                return
            except queue.Full:
                pass
        logger.warning("Connection pool is full; closing excess connection")
        _close_quietly(transport)

    def close(self) -> None:
        """
        Close all idle connections and wake blocked borrowers with PoolClosedError.
        Outstanding leases are closed on release. Idempotent.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
        drained = 0
        while True:
            try:
                transport = self._queue.get_nowait()
            except queue.Empty:
                break
            _close_quietly(transport)
            drained += 1
        self._queue.put_nowait(_CLOSED)
        logger.info("Connection pool closed: %d idle connections closed", drained)

    def __enter__(self) -> "ConnectionPool":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
