import logging
import queue
import socket
import threading
from contextlib import contextmanager
from typing import IO, Any, Callable, Dict, Iterator, Optional

from .command import NEWLINE, Request
from .errors import ResponseError, TransportError
from .router import Addr, Node


logger = logging.getLogger(__name__)


def read_reply(stream: IO[bytes]) -> Any:
    """
    Read one RESP2 reply.

    Status replies come back as ``str``, integers as ``int``, bulk strings as
    ``bytes`` and multi-bulk replies as lists. Null bulk and null multi-bulk
    replies are ``None``. Error replies raise :class:`ResponseError`.
    """
    line = stream.readline()
    if not line.endswith(NEWLINE):
        # This happens when connection is closed by server.
        raise ConnectionResetError("connection closed by server")

    kind, payload = line[:1], line[1:-2]
    if kind == b"+":
        return payload.decode("utf-8")
    if kind == b"-":
        raise ResponseError(payload.decode("utf-8", errors="replace"))
    if kind == b":":
        return int(payload)
    if kind == b"$":
        length = int(payload)
        if length < 0:
            return None
        data = stream.read(length + 2)
        if len(data) != length + 2:
            raise ConnectionResetError("connection closed by server")
        return data[:-2]
    if kind == b"*":
        count = int(payload)
        if count < 0:
            return None
        return [read_reply(stream) for _ in range(count)]
    raise TransportError(f"invalid reply: {line!r}")


class Connection:
    def __init__(self, addr: Addr, *, timeout: Optional[float] = None):
        self._addr = addr
        self._timeout = timeout
        self._connect()

    def _connect(self) -> None:
        try:
            self.socket = socket.create_connection(self._addr, timeout=self._timeout)
        except OSError as e:
            raise TransportError(f"can not connect to {self._addr}: {e}") from e
        self.stream = self.socket.makefile(mode="rwb")

    def close(self) -> None:
        try:
            self.stream.close()
        except OSError:
            # Unsent bytes of a broken stream can not be flushed; the raw
            # socket is closed regardless.
            pass
        self.socket.close()

    def execute(self, request: Request) -> Any:
        try:
            return self._execute(request)
        except (ConnectionResetError, BrokenPipeError):
            # The server dropped an idle connection; reconnect once.
            logger.debug("reconnecting to %s:%d", *self._addr)
            self.close()
            self._connect()
            try:
                return self._execute(request)
            except OSError as e:
                raise TransportError(str(e)) from e
        except OSError as e:
            raise TransportError(str(e)) from e

    def _execute(self, request: Request) -> Any:
        self.stream.write(request.dump())
        self.stream.flush()
        return read_reply(self.stream)


class Pool:
    def __init__(
        self,
        create_connection: Callable[..., Connection],
        max_size: Optional[int],
        timeout: Optional[float],
    ) -> None:
        self._create_connection = create_connection
        self._max_size = max_size
        self._timeout = timeout
        self._size = 0
        self._lock = threading.Lock()
        self._connections: "queue.Queue[Connection]" = queue.Queue()

    def _acquire(self) -> Connection:
        try:
            return self._connections.get_nowait()
        except queue.Empty:
            pass
        with self._lock:
            grow = not self._max_size or self._size < self._max_size
            if grow:
                self._size += 1
        if not grow:
            try:
                return self._connections.get(timeout=self._timeout)
            except queue.Empty:
                raise TransportError("connection pool exhausted") from None
        try:
            return self._create_connection()
        except BaseException:
            with self._lock:
                self._size -= 1
            raise

    @contextmanager
    def get(self) -> Iterator[Connection]:
        connection = self._acquire()
        try:
            yield connection
        except ResponseError:
            self._connections.put(connection)
            raise
        except BaseException:
            # The stream state is unknown, never hand it out again.
            connection.close()
            with self._lock:
                self._size -= 1
            raise
        self._connections.put(connection)

    def close(self) -> None:
        while True:
            try:
                connection = self._connections.get_nowait()
            except queue.Empty:
                return
            connection.close()
            with self._lock:
                self._size -= 1


class Transport:
    """
    Execute requests over RESP sockets, one connection pool per node.

    :param pool_size: The connection pool size of every node.
    :param pool_timeout: If there is no available connection in the pool and
      ``pool_size`` is reached, wait the specified time for one, or a
      :class:`TransportError` is raised.
    :param socket_timeout: Socket timeout in seconds. Timeouts surface as
      :class:`TransportError`.
    """

    def __init__(
        self,
        *,
        pool_size: Optional[int] = 23,
        pool_timeout: Optional[float] = 1,
        socket_timeout: Optional[float] = None,
    ) -> None:
        self._pool_size = pool_size
        self._pool_timeout = pool_timeout
        self._socket_timeout = socket_timeout
        self._pools: Dict[Node, Pool] = {}
        self._lock = threading.Lock()

    def _get_pool(self, node: Node) -> Pool:
        with self._lock:
            pool = self._pools.get(node)
            if pool is None:

                def _make(addr: Addr = node.addr) -> Connection:
                    return Connection(addr, timeout=self._socket_timeout)

                pool = Pool(_make, max_size=self._pool_size, timeout=self._pool_timeout)
                self._pools[node] = pool
            return pool

    def execute(self, node: Node, request: Request) -> Any:
        with self._get_pool(node).get() as connection:
            return connection.execute(request)

    def close(self) -> None:
        with self._lock:
            pools = list(self._pools.values())
            self._pools.clear()
        for pool in pools:
            pool.close()
