class RelayError(Exception):
    """Base class for everything the relay raises on purpose."""


class ConnectFailure(RelayError):
    pass


class ReadFailure(RelayError):
    pass


class DecodeFailure(RelayError):
    pass


class ResolveFailure(RelayError):
    pass


class ConfigError(RelayError):
    pass
