class ShardisError(Exception):
    ...


class DecodeError(ShardisError):
    ...


class InvalidArgument(ShardisError, ValueError):
    ...


class NoAvailableConnection(ShardisError):
    ...


class UnknownConnection(ShardisError, KeyError):
    def __str__(self) -> str:
        # KeyError would repr() the message.
        return str(self.args[0]) if self.args else ""


class FeatureUnsupported(ShardisError):
    def __init__(self, feature: str, required: str, actual: str) -> None:
        self.feature = feature
        self.required = required
        self.actual = actual
        super().__init__(
            f"{feature} requires {required}+ version of server. "
            f"Current version is {actual}. "
            "To change it specify 'server_version' option."
        )


UnsupportedOperation = FeatureUnsupported


class TransportError(ShardisError):
    ...


class ResponseError(ShardisError):
    ...
