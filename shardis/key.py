import logging
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

from .client import Shardis
from .command import HASH_VERSION, Arg, Expiration
from .errors import InvalidArgument


logger = logging.getLogger(__name__)


class Key:
    """
    Client side handle of one remote key.

    :param client: The client the key lives on.
    :param name: Key name, without namespace.
    :param expire: Expire time in seconds (``int`` or ``timedelta``), or an
      absolute time (``datetime``, or a UNIX timestamp with
      ``is_expire_timestamp``). Mutating operations re-arm it.
    :param server_alias: Pin the key to this server instead of hashing its name.
    """

    def __init__(
        self,
        client: Shardis,
        name: str,
        expire: Optional[Expiration] = None,
        *,
        is_expire_timestamp: bool = False,
        server_alias: Optional[str] = None,
    ) -> None:
        if not name:
            raise InvalidArgument("Key name must be present")
        self._client = client
        self._name = name
        self._expire = expire
        self._is_expire_timestamp = is_expire_timestamp
        self._server_alias = server_alias
        if server_alias is not None:
            # Fail on unknown aliases now, not on first use.
            client.get_connection_by_alias(server_alias)

    @property
    def name(self) -> str:
        return self._name

    @property
    def expire_value(self) -> Optional[Expiration]:
        return self._expire

    def set_expire(
        self, seconds_or_timestamp: Optional[Expiration], is_timestamp: bool = False
    ) -> None:
        """Change the expiration re-armed by later mutations. Sends nothing."""
        self._expire = seconds_or_timestamp
        self._is_expire_timestamp = is_timestamp

    def _on(self) -> Shardis:
        if self._server_alias is None:
            return self._client
        return self._client.on(self._server_alias)

    def expire(
        self, seconds_or_timestamp: Expiration, is_timestamp: bool = False
    ) -> bool:
        return self._on().expire(self._name, seconds_or_timestamp, is_timestamp)

    def _refresh_expire(self) -> None:
        if self._expire is None:
            return
        try:
            self.expire(self._expire, self._is_expire_timestamp)
        except Exception:
            # Mutate and expire are two round trips, the mutation stays.
            logger.warning("failed to refresh expire of %r", self._name)
            raise

    def get_lifetime(self) -> Optional[int]:
        return self._on().get_lifetime(self._name)

    def get_type(self) -> str:
        return self._on().get_type(self._name)

    def is_exists(self) -> bool:
        return self._on().exists(self._name)

    def delete(self) -> bool:
        return self._on().delete(self._name)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self._name!r}>"


class Hash(Key):
    """
    Remote redis hash.

    Every successful mutation (``set``, ``increment``, ``remove``) re-arms the
    configured expiration with a second command, so the key lives ``expire``
    seconds after its last write. The two commands are not atomic: if the
    second one fails the mutation is kept and the previous expiration stays
    armed. The error is raised to the caller.

    Reads never touch the expiration. Nothing is cached locally; ``len()``,
    ``in`` and iteration all query the server.
    """

    def __init__(
        self,
        client: Shardis,
        name: str,
        expire: Optional[Expiration] = None,
        *,
        is_expire_timestamp: bool = False,
        server_alias: Optional[str] = None,
    ) -> None:
        client.require_version(HASH_VERSION, "Hash")
        super().__init__(
            client,
            name,
            expire,
            is_expire_timestamp=is_expire_timestamp,
            server_alias=server_alias,
        )

    def set(
        self,
        field_or_data: Union[Arg, Mapping[Arg, Any]],
        value: Any = None,
        overwrite: bool = True,
    ) -> bool:
        """
        Set value to a hash field or fields.

        :param field_or_data: Field, or a mapping of many fields and values.
        :param value: Value for single field.
        :param overwrite: For single field only. If false and the field already
          exists, nothing is written and false is returned.
        """
        result = self._on().set_to_hash(self._name, field_or_data, value, overwrite)
        if overwrite or result:
            self._refresh_expire()
        return result

    def get(self, field_or_fields: Union[Arg, Sequence[Arg]]) -> Any:
        """
        Get value of a field, or ``{field: value}`` for a list of fields.

        Missing fields are ``None``.
        """
        return self._on().get_from_hash(self._name, field_or_fields)

    def increment(self, field: Arg, amount: Union[int, float] = 1) -> Union[int, float]:
        """
        Add ``amount`` to a numeric field, creating it at 0 first if missing.

        Any returned result re-arms the expiration, 0 included.
        """
        result = self._on().increment_in_hash(self._name, field, amount)
        if result is not None:
            self._refresh_expire()
        return result

    def exists(self, field: Arg) -> bool:
        return self._on().exists_in_hash(self._name, field)

    def remove(self, field: Arg) -> bool:
        result = self._on().delete_from_hash(self._name, field)
        if result:
            self._refresh_expire()
        return result

    def get_fields(self) -> List[str]:
        return self._on().get_hash_fields(self._name)

    def get_values(self) -> List[Any]:
        return self._on().get_hash_values(self._name)

    def to_dict(self) -> Dict[str, Any]:
        return self._on().get_hash(self._name)

    def count(self) -> int:
        return self._on().get_hash_length(self._name)

    def items(self) -> Iterator[Tuple[str, Any]]:
        return iter(self.to_dict().items())

    def __len__(self) -> int:
        return self.count()

    def __contains__(self, field: Arg) -> bool:
        return self.exists(field)

    def __iter__(self) -> Iterator[str]:
        # A snapshot per iteration, not a live view.
        return iter(self.to_dict())
