import json
import pickle
from typing import Any, Optional, Protocol, Union

from .errors import DecodeError, InvalidArgument


Number = Union[int, float]


class Serializer(Protocol):
    def serialize(self, value: Any) -> bytes:
        ...

    def deserialize(self, data: bytes) -> Any:
        ...


class JsonSerializer:
    def __init__(self, encoding: str = "utf-8") -> None:
        self._encoding = encoding

    def serialize(self, value: Any) -> bytes:
        try:
            return json.dumps(value, separators=(",", ":")).encode(self._encoding)
        except (TypeError, ValueError) as e:
            raise InvalidArgument(f"can not serialize {type(value).__name__}") from e

    def deserialize(self, data: bytes) -> Any:
        try:
            return json.loads(data.decode(self._encoding))
        except (UnicodeDecodeError, ValueError) as e:
            raise DecodeError(f"invalid json value: {data[:32]!r}") from e


class PickleSerializer:
    def __init__(self, protocol: int = pickle.HIGHEST_PROTOCOL) -> None:
        self._protocol = protocol

    def serialize(self, value: Any) -> bytes:
        try:
            return pickle.dumps(value, protocol=self._protocol)
        except (pickle.PicklingError, TypeError, AttributeError) as e:
            raise InvalidArgument(f"can not serialize {type(value).__name__}") from e

    def deserialize(self, data: bytes) -> Any:
        try:
            return pickle.loads(data)
        except Exception as e:
            raise DecodeError(f"invalid pickle value: {data[:32]!r}") from e


def format_number(value: Number) -> bytes:
    """Render an int or float, subclasses included, as plain ASCII digits."""
    if isinstance(value, int):
        return b"%d" % value
    return repr(float(value)).encode("ascii")


def _parse_number(data: bytes) -> Optional[Number]:
    if not data or not data.isascii() or b"_" in data or data != data.strip():
        return None
    try:
        return int(data)
    except ValueError:
        pass
    try:
        return float(data)
    except ValueError:
        return None


class NumericSerializer:
    """
    Store numbers as plain digits and delegate everything else.

    Redis increments (``HINCRBY``, ``HINCRBYFLOAT``) only work on fields holding
    a decimal string, so ``int`` and ``float`` values bypass the wrapped adapter.
    The adapters never emit bare digits, so reading is unambiguous.

    :param adapter: Serializer used for every non numeric value.
    """

    def __init__(self, adapter: Optional[Serializer] = None) -> None:
        self.adapter: Serializer = adapter or JsonSerializer()

    def serialize(self, value: Any) -> bytes:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return format_number(value)
        return self.adapter.serialize(value)

    def deserialize(self, data: bytes) -> Any:
        number = _parse_number(data)
        if number is not None:
            return number
        return self.adapter.deserialize(data)
