import datetime
from dataclasses import dataclass
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Dict,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    Union,
)

from .errors import InvalidArgument
from .router import Node
from .serialize import format_number

if TYPE_CHECKING:
    from .client import Shardis


NEWLINE = b"\r\n"

Arg = Union[bytes, str, int, float]

Expiration = Union[int, datetime.timedelta, datetime.datetime]


# Minimum server version for every verb the catalog may emit.
MINIMUM_VERSIONS: Dict[bytes, str] = {
    b"GET": "1.0",
    b"SET": "1.0",
    b"DEL": "1.0",
    b"EXISTS": "1.0",
    b"TYPE": "1.0",
    b"EXPIRE": "1.0",
    b"TTL": "1.0",
    b"EXPIREAT": "1.2",
    b"SETEX": "2.0",
    b"HSET": "1.3.10",
    b"HSETNX": "1.3.10",
    b"HMSET": "1.3.10",
    b"HGET": "1.3.10",
    b"HMGET": "1.3.10",
    b"HINCRBY": "1.3.10",
    b"HEXISTS": "1.3.10",
    b"HDEL": "1.3.10",
    b"HKEYS": "1.3.10",
    b"HVALS": "1.3.10",
    b"HGETALL": "1.3.10",
    b"HLEN": "1.3.10",
    b"HINCRBYFLOAT": "2.6",
}

HASH_VERSION = MINIMUM_VERSIONS[b"HSET"]


def parse_version(version: str) -> Tuple[int, ...]:
    try:
        parts = [int(part) for part in version.split(".")]
    except ValueError:
        raise InvalidArgument(f"invalid server version {version!r}") from None
    # "2" and "2.0" are the same version.
    while len(parts) > 1 and parts[-1] == 0:
        parts.pop()
    return tuple(parts)


def _to_bytes(arg: Arg) -> bytes:
    if isinstance(arg, bytes):
        return arg
    if isinstance(arg, str):
        return arg.encode("utf-8")
    if isinstance(arg, (int, float)) and not isinstance(arg, bool):
        return format_number(arg)
    raise InvalidArgument(f"invalid argument type {type(arg).__name__}")


@dataclass(init=False)
class Request:
    node: Node
    args: List[bytes]

    def __init__(self, node: Node, verb: bytes, *args: Arg) -> None:
        self.node = node
        self.args = [verb] + [_to_bytes(arg) for arg in args]

    @property
    def verb(self) -> bytes:
        return self.args[0]

    def dump(self) -> bytes:
        parts = [b"*%d\r\n" % len(self.args)]
        for arg in self.args:
            parts.append(b"$%d\r\n%s\r\n" % (len(arg), arg))
        return b"".join(parts)


def _field(field: Any) -> Arg:
    if field is None:
        raise InvalidArgument("Field must be present")
    if not isinstance(field, (bytes, str, int)) or isinstance(field, bool):
        raise InvalidArgument(f"invalid field type {type(field).__name__}")
    return field


def _decode(value: Union[bytes, str]) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return value


class Command:
    """
    One request/response exchange.

    ``create`` builds the wire request from the operation arguments,
    ``parse_response`` turns the raw reply into the operation result. A fresh
    instance is used for every call.
    """

    create: Callable[..., Request]

    def __init__(self, client: "Shardis") -> None:
        self._client = client

    def _key(self, name: str) -> Tuple[Node, str]:
        key = self._client.namespace + name
        return self._client.get_connection_by_key_name(name), key

    def _dump(self, value: Any) -> bytes:
        return self._client.serializer.serialize(value)

    def _load(self, value: Optional[bytes]) -> Any:
        if value is None:
            return None
        return self._client.serializer.deserialize(value)

    def parse_response(self, response: Any) -> Any:
        return response


class Get(Command):
    def create(self, name: str) -> Request:
        node, key = self._key(name)
        return Request(node, b"GET", key)

    def parse_response(self, response: Optional[bytes]) -> Any:
        return self._load(response)


class Set(Command):
    def create(self, name: str, value: Any) -> Request:
        node, key = self._key(name)
        return Request(node, b"SET", key, self._dump(value))

    def parse_response(self, response: str) -> bool:
        return response == "OK"


class SetAndExpire(Command):
    def create(self, name: str, value: Any, seconds: int) -> Request:
        node, key = self._key(name)
        return Request(node, b"SETEX", key, int(seconds), self._dump(value))

    def parse_response(self, response: str) -> bool:
        return response == "OK"


class Delete(Command):
    def create(self, name: str) -> Request:
        node, key = self._key(name)
        return Request(node, b"DEL", key)

    def parse_response(self, response: int) -> bool:
        return response > 0


class Exists(Command):
    def create(self, name: str) -> Request:
        node, key = self._key(name)
        return Request(node, b"EXISTS", key)

    def parse_response(self, response: int) -> bool:
        return bool(response)


class GetType(Command):
    def create(self, name: str) -> Request:
        node, key = self._key(name)
        return Request(node, b"TYPE", key)

    def parse_response(self, response: Union[bytes, str]) -> str:
        return _decode(response)


class Expire(Command):
    def create(
        self, name: str, seconds_or_timestamp: Expiration, is_timestamp: bool = False
    ) -> Request:
        node, key = self._key(name)
        if isinstance(seconds_or_timestamp, datetime.datetime):
            timestamp = int(seconds_or_timestamp.timestamp())
            return Request(node, b"EXPIREAT", key, timestamp)
        if isinstance(seconds_or_timestamp, datetime.timedelta):
            seconds = int(seconds_or_timestamp.total_seconds())
            return Request(node, b"EXPIRE", key, seconds)
        if is_timestamp:
            return Request(node, b"EXPIREAT", key, int(seconds_or_timestamp))
        return Request(node, b"EXPIRE", key, int(seconds_or_timestamp))

    def parse_response(self, response: int) -> bool:
        return bool(response)


class GetLifetime(Command):
    def create(self, name: str) -> Request:
        node, key = self._key(name)
        return Request(node, b"TTL", key)

    def parse_response(self, response: int) -> Optional[int]:
        # -1: no expiration, -2: missing key (Redis 2.8+).
        if response < 0:
            return None
        return response


class SetToHash(Command):
    _verb = b"HSET"

    def create(
        self,
        name: str,
        field_or_data: Union[Arg, Mapping[Arg, Any]],
        value: Any = None,
        overwrite: bool = True,
    ) -> Request:
        node, key = self._key(name)
        if isinstance(field_or_data, Mapping):
            if not field_or_data:
                raise InvalidArgument("Data must not be empty")
            args: List[Arg] = [key]
            for field, v in field_or_data.items():
                args.extend([_field(field), self._dump(v)])
            self._verb = b"HMSET"
            return Request(node, self._verb, *args)

        field = _field(field_or_data)
        self._verb = b"HSET" if overwrite else b"HSETNX"
        return Request(node, self._verb, key, field, self._dump(value))

    def parse_response(self, response: Union[int, str]) -> bool:
        if self._verb == b"HMSET":
            return response == "OK"
        if self._verb == b"HSETNX":
            return bool(response)
        # HSET answers 0 when it updated an existing field, which is still a write.
        return True


class GetFromHash(Command):
    _fields: Optional[List[Arg]] = None

    def create(self, name: str, field_or_fields: Union[Arg, Sequence[Arg]]) -> Request:
        node, key = self._key(name)
        if isinstance(field_or_fields, (list, tuple)):
            if not field_or_fields:
                raise InvalidArgument("Fields must not be empty")
            self._fields = [_field(f) for f in field_or_fields]
            return Request(node, b"HMGET", key, *self._fields)
        return Request(node, b"HGET", key, _field(field_or_fields))

    def parse_response(self, response: Any) -> Any:
        if self._fields is None:
            return self._load(response)
        return {
            field: self._load(value) for field, value in zip(self._fields, response)
        }


class IncrementInHash(Command):
    def create(self, name: str, field: Arg, amount: Union[int, float] = 1) -> Request:
        node, key = self._key(name)
        if isinstance(amount, bool) or not isinstance(amount, (int, float)):
            raise InvalidArgument(f"invalid increment amount {amount!r}")
        verb = b"HINCRBYFLOAT" if isinstance(amount, float) else b"HINCRBY"
        return Request(node, verb, key, _field(field), amount)

    def parse_response(self, response: Union[int, bytes]) -> Union[int, float]:
        # HINCRBYFLOAT replies with a bulk string.
        if isinstance(response, bytes):
            return float(response)
        return response


class ExistsInHash(Command):
    def create(self, name: str, field: Arg) -> Request:
        node, key = self._key(name)
        return Request(node, b"HEXISTS", key, _field(field))

    def parse_response(self, response: int) -> bool:
        return bool(response)


class DeleteFromHash(Command):
    def create(self, name: str, field: Arg) -> Request:
        node, key = self._key(name)
        return Request(node, b"HDEL", key, _field(field))

    def parse_response(self, response: int) -> bool:
        return bool(response)


class GetHashFields(Command):
    def create(self, name: str) -> Request:
        node, key = self._key(name)
        return Request(node, b"HKEYS", key)

    def parse_response(self, response: Optional[List[bytes]]) -> List[str]:
        return [_decode(field) for field in response or []]


class GetHashValues(Command):
    def create(self, name: str) -> Request:
        node, key = self._key(name)
        return Request(node, b"HVALS", key)

    def parse_response(self, response: Optional[List[bytes]]) -> List[Any]:
        return [self._load(value) for value in response or []]


class GetHash(Command):
    def create(self, name: str) -> Request:
        node, key = self._key(name)
        return Request(node, b"HGETALL", key)

    def parse_response(self, response: Optional[List[bytes]]) -> Dict[str, Any]:
        response = response or []
        return {
            _decode(field): self._load(value)
            for field, value in zip(response[::2], response[1::2])
        }


class GetHashLength(Command):
    def create(self, name: str) -> Request:
        node, key = self._key(name)
        return Request(node, b"HLEN", key)

    def parse_response(self, response: int) -> int:
        return response
