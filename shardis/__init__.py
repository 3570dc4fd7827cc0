from .client import Shardis
from .command import Command, Request
from .connection import Transport
from .errors import (
    DecodeError,
    FeatureUnsupported,
    InvalidArgument,
    NoAvailableConnection,
    ResponseError,
    ShardisError,
    TransportError,
    UnknownConnection,
    UnsupportedOperation,
)
from .key import Hash, Key
from .router import Node, Router
from .serialize import JsonSerializer, NumericSerializer, PickleSerializer, Serializer

__all__ = [
    "Command",
    "DecodeError",
    "FeatureUnsupported",
    "Hash",
    "InvalidArgument",
    "JsonSerializer",
    "Key",
    "NoAvailableConnection",
    "Node",
    "NumericSerializer",
    "PickleSerializer",
    "Request",
    "ResponseError",
    "Router",
    "Serializer",
    "Shardis",
    "ShardisError",
    "Transport",
    "TransportError",
    "UnknownConnection",
    "UnsupportedOperation",
]
