import copy
import logging
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Type, Union

from . import command as cmd
from .command import Arg, Command, Expiration, Request
from .connection import Transport
from .errors import FeatureUnsupported
from .router import Addr, Node, Router, make_nodes
from .serialize import JsonSerializer, NumericSerializer, Serializer


logger = logging.getLogger(__name__)

DEFAULT_SERVER_VERSION = "2.0"


class TransportLike(Protocol):
    def execute(self, node: Node, request: Request) -> Any:
        ...


class Shardis:
    """
    Redis client sharding keys over several servers.

    :param addr: redis server addresses to be connected.

      The address can be a two elements tuple, as ``(host, port)`` format.

      The address can be None, thus the default server ``("localhost", 6379)``
      should be used.

      The address can be a list of tuple, like ``[("192.168.1.10", 6379),
      ("192.168.1.11", 6379)]``, or a mapping of alias to tuple. In this
      situation, the keys will be hashed to one of those servers by consistent
      hash algorithm.
    :param namespace: Prefix prepended to every key name. Both the wire key and
      the server choice derive from the prefixed name.
    :param server_version: The version of the redis servers. Commands which need
      a newer server raise :class:`FeatureUnsupported` before anything is sent.
    :param serializer: Converts python values to bytes stored in redis and back.
      Defaults to JSON with numbers stored as plain digits.
    :param pool_size: The connection pool size of every server.
    :param pool_timeout: If there is no available connection in the pool, and
      the ``pool_size`` is reached, wait the specified time to get an available
      connection, or a :class:`TransportError` is raised.
    :param socket_timeout: Socket timeout in seconds. Timeouts surface as
      :class:`TransportError`.
    :param transport: Executes requests. Defaults to a socket transport built
      from ``pool_size``, ``pool_timeout`` and ``socket_timeout``.
    """

    def __init__(
        self,
        addr: Union[Addr, List[Addr], Mapping[str, Addr], None] = None,
        *,
        namespace: str = "",
        server_version: str = DEFAULT_SERVER_VERSION,
        serializer: Optional[Serializer] = None,
        pool_size: Optional[int] = 23,
        pool_timeout: Optional[float] = 1,
        socket_timeout: Optional[float] = None,
        transport: Optional[TransportLike] = None,
    ):
        self.namespace = namespace
        self.server_version = server_version
        self._version = cmd.parse_version(server_version)
        self.serializer: Serializer = serializer or NumericSerializer(JsonSerializer())
        self._transport = transport or Transport(
            pool_size=pool_size,
            pool_timeout=pool_timeout,
            socket_timeout=socket_timeout,
        )
        self._router = Router(make_nodes(addr))
        self._pinned: Optional[Node] = None

    def set_servers(
        self, addr: Union[Addr, List[Addr], Mapping[str, Addr], None]
    ) -> None:
        """Replace the server set. Every key is routed again afterwards."""
        self._router = Router(make_nodes(addr))

    def get_connection_by_key_name(self, name: str) -> Node:
        if self._pinned is not None:
            return self._pinned
        return self._router.resolve(self.namespace + name)

    def get_connection_by_alias(self, alias: str) -> Node:
        return self._router.get(alias)

    def on(self, alias: str) -> "Shardis":
        """Return a view of this client sending every command to one server."""
        node = self._router.get(alias)
        pinned = copy.copy(self)
        pinned._pinned = node
        return pinned

    def require_version(self, version: str, feature: str) -> None:
        if cmd.parse_version(version) > self._version:
            raise FeatureUnsupported(feature, version, self.server_version)

    def execute_command(self, command_class: Type[Command], *args: Any) -> Any:
        command = command_class(self)
        request = command.create(*args)
        verb = request.verb.decode("ascii")
        self.require_version(cmd.MINIMUM_VERSIONS[request.verb], verb)
        logger.debug("%s %s on %s", verb, args[0] if args else "", request.node)
        response = self._transport.execute(request.node, request)
        return command.parse_response(response)

    def get(self, name: str) -> Optional[Any]:
        return self.execute_command(cmd.Get, name)

    def set(
        self, name: str, value: Any, *, expire: Optional[int] = None
    ) -> bool:
        if expire:
            return self.execute_command(cmd.SetAndExpire, name, value, expire)
        return self.execute_command(cmd.Set, name, value)

    def set_and_expire(self, name: str, value: Any, seconds: int) -> bool:
        return self.execute_command(cmd.SetAndExpire, name, value, seconds)

    def delete(self, name: str) -> bool:
        return self.execute_command(cmd.Delete, name)

    def exists(self, name: str) -> bool:
        return self.execute_command(cmd.Exists, name)

    def get_type(self, name: str) -> str:
        return self.execute_command(cmd.GetType, name)

    def expire(
        self, name: str, seconds_or_timestamp: Expiration, is_timestamp: bool = False
    ) -> bool:
        """
        Set the time to live of a key.

        :param seconds_or_timestamp: Seconds (``int`` or ``timedelta``), or an
          absolute time (``datetime``, or a UNIX timestamp with ``is_timestamp``).
        :return: False if the key does not exist.
        """
        return self.execute_command(cmd.Expire, name, seconds_or_timestamp, is_timestamp)

    def get_lifetime(self, name: str) -> Optional[int]:
        return self.execute_command(cmd.GetLifetime, name)

    def set_to_hash(
        self,
        name: str,
        field_or_data: Union[Arg, Mapping[Arg, Any]],
        value: Any = None,
        overwrite: bool = True,
    ) -> bool:
        """
        Set value to a hash field or fields.

        :param field_or_data: Field, or a mapping of many fields and values.
        :param value: Value for single field.
        :param overwrite: For single field only. If false don't set, and return
          false, when the field already exists.
        """
        return self.execute_command(cmd.SetToHash, name, field_or_data, value, overwrite)

    def get_from_hash(
        self, name: str, field_or_fields: Union[Arg, Sequence[Arg]]
    ) -> Any:
        return self.execute_command(cmd.GetFromHash, name, field_or_fields)

    def increment_in_hash(
        self, name: str, field: Arg, amount: Union[int, float] = 1
    ) -> Union[int, float]:
        return self.execute_command(cmd.IncrementInHash, name, field, amount)

    def exists_in_hash(self, name: str, field: Arg) -> bool:
        return self.execute_command(cmd.ExistsInHash, name, field)

    def delete_from_hash(self, name: str, field: Arg) -> bool:
        return self.execute_command(cmd.DeleteFromHash, name, field)

    def get_hash_fields(self, name: str) -> List[str]:
        return self.execute_command(cmd.GetHashFields, name)

    def get_hash_values(self, name: str) -> List[Any]:
        return self.execute_command(cmd.GetHashValues, name)

    def get_hash(self, name: str) -> Dict[str, Any]:
        return self.execute_command(cmd.GetHash, name)

    def get_hash_length(self, name: str) -> int:
        return self.execute_command(cmd.GetHashLength, name)

    def close(self) -> None:
        close = getattr(self._transport, "close", None)
        if close is not None:
            close()
