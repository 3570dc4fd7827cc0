from collections import defaultdict
from typing import Any, Dict, List, Optional

import pytest

import shardis
from shardis import Node, Request, ResponseError, TransportError


class FakeServer:
    """
    In-memory transport answering like a set of redis servers.

    Each node keeps its own keyspace, every request is recorded.
    """

    def __init__(self) -> None:
        self.data: Dict[Node, Dict[bytes, Any]] = defaultdict(dict)
        self.ttl: Dict[Node, Dict[bytes, int]] = defaultdict(dict)
        self.requests: List[Request] = []
        self.fail_on: Optional[bytes] = None

    @property
    def verbs(self) -> List[bytes]:
        return [request.verb for request in self.requests]

    def execute(self, node: Node, request: Request) -> Any:
        self.requests.append(request)
        if request.verb == self.fail_on:
            raise TransportError("connection reset by peer")
        verb, *args = request.args
        return getattr(self, "_" + verb.decode().lower())(node, *args)

    def _drop(self, node: Node, key: bytes) -> bool:
        self.ttl[node].pop(key, None)
        return self.data[node].pop(key, None) is not None

    def _get(self, node, key):
        return self.data[node].get(key)

    def _set(self, node, key, value):
        self._drop(node, key)
        self.data[node][key] = value
        return "OK"

    def _setex(self, node, key, seconds, value):
        self._set(node, key, value)
        self.ttl[node][key] = int(seconds)
        return "OK"

    def _del(self, node, key):
        return int(self._drop(node, key))

    def _exists(self, node, key):
        return int(key in self.data[node])

    def _type(self, node, key):
        value = self.data[node].get(key)
        if value is None:
            return "none"
        return "hash" if isinstance(value, dict) else "string"

    def _expire(self, node, key, seconds):
        if key not in self.data[node]:
            return 0
        self.ttl[node][key] = int(seconds)
        return 1

    _expireat = _expire

    def _ttl(self, node, key):
        if key not in self.data[node]:
            return -2
        return self.ttl[node].get(key, -1)

    def _hash(self, node, key, create=False):
        if create:
            return self.data[node].setdefault(key, {})
        return self.data[node].get(key, {})

    def _hset(self, node, key, field, value):
        h = self._hash(node, key, create=True)
        created = field not in h
        h[field] = value
        return int(created)

    def _hsetnx(self, node, key, field, value):
        if field in self._hash(node, key):
            return 0
        return self._hset(node, key, field, value)

    def _hmset(self, node, key, *pairs):
        h = self._hash(node, key, create=True)
        for field, value in zip(pairs[::2], pairs[1::2]):
            h[field] = value
        return "OK"

    def _hget(self, node, key, field):
        return self._hash(node, key).get(field)

    def _hmget(self, node, key, *fields):
        h = self._hash(node, key)
        return [h.get(field) for field in fields]

    def _hincrby(self, node, key, field, amount):
        h = self._hash(node, key, create=True)
        current = h.get(field, b"0")
        if not current.lstrip(b"-").isdigit():
            raise ResponseError("ERR hash value is not an integer")
        value = int(current) + int(amount)
        h[field] = b"%d" % value
        return value

    def _hincrbyfloat(self, node, key, field, amount):
        h = self._hash(node, key, create=True)
        value = float(h.get(field, b"0")) + float(amount)
        h[field] = repr(value).encode()
        return h[field]

    def _hexists(self, node, key, field):
        return int(field in self._hash(node, key))

    def _hdel(self, node, key, field):
        h = self._hash(node, key)
        if field not in h:
            return 0
        del h[field]
        if not h:
            self._drop(node, key)
        return 1

    def _hkeys(self, node, key):
        return list(self._hash(node, key))

    def _hvals(self, node, key):
        return list(self._hash(node, key).values())

    def _hgetall(self, node, key):
        reply = []
        for field, value in self._hash(node, key).items():
            reply.extend([field, value])
        return reply

    def _hlen(self, node, key):
        return len(self._hash(node, key))


SERVERS = {
    "S1": ("10.0.0.1", 6379),
    "S2": ("10.0.0.2", 6379),
    "S3": ("10.0.0.3", 6379),
}


@pytest.fixture()
def server() -> FakeServer:
    return FakeServer()


@pytest.fixture()
def client(server: FakeServer) -> shardis.Shardis:
    return shardis.Shardis(SERVERS, namespace="test:", transport=server)


@pytest.fixture()
def servers() -> Dict[str, Any]:
    return dict(SERVERS)
