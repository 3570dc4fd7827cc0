from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Tuple, Union

import hashring

from .errors import NoAvailableConnection, UnknownConnection


Addr = Tuple[str, int]

DEFAULT_PORT = 6379


@dataclass(frozen=True)
class Node:
    alias: str
    host: str
    port: int = DEFAULT_PORT

    @property
    def addr(self) -> Addr:
        return (self.host, self.port)

    def __str__(self) -> str:
        return self.alias


def make_nodes(
    addr: Union[Addr, List[Addr], Mapping[str, Addr], None]
) -> List[Node]:
    """
    Build nodes from the ``addr`` option.

    Tuples and lists of tuples get ``"host:port"`` aliases, mappings keep their
    keys as aliases.
    """
    if addr is None:
        addr = ("localhost", DEFAULT_PORT)
    if isinstance(addr, tuple):
        addrs: Iterable[Tuple[str, Addr]] = [(_alias(addr), addr)]
    elif isinstance(addr, list):
        addrs = [(_alias(a), a) for a in addr]
    elif isinstance(addr, Mapping):
        addrs = addr.items()
    else:
        raise TypeError("invalid type for addr")
    return [Node(alias, host, port) for alias, (host, port) in addrs]


def _alias(addr: Addr) -> str:
    return "%s:%d" % addr


class Router:
    """
    Resolve keys to nodes by consistent hashing.

    The ring is built over node aliases, so the mapping depends on nothing but
    the key string and the configured aliases. Every node owns the same number
    of ring points: dropping one node moves only the keys it owned.

    :param nodes: The backend nodes. May be empty, in which case every
      ``resolve`` call fails.
    """

    def __init__(self, nodes: Iterable[Node]) -> None:
        self._nodes: Dict[str, Node] = {}
        for node in nodes:
            if node.alias in self._nodes:
                raise ValueError(f"duplicate server alias {node.alias!r}")
            self._nodes[node.alias] = node
        self._ring: Optional[hashring.HashRing] = None
        if self._nodes:
            self._ring = hashring.HashRing(list(self._nodes))

    @property
    def nodes(self) -> List[Node]:
        return list(self._nodes.values())

    def resolve(self, key: str) -> Node:
        if self._ring is None:
            raise NoAvailableConnection("no servers configured")
        return self._nodes[self._ring.get_node(key)]

    def get(self, alias: str) -> Node:
        try:
            return self._nodes[alias]
        except KeyError:
            raise UnknownConnection(f"server with alias {alias!r} not found") from None
