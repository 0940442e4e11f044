"""Exception types shared across the relay service."""


class RelayError(Exception):
    """Base class for relay service errors."""
    pass


class StorageError(RelayError):
    """Raised when a snapshot file cannot be read, parsed or written."""
    pass


class ConfigError(RelayError):
    """Raised when required settings are missing or invalid."""
    pass
