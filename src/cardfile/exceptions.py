"""Custom exception hierarchy for cardfile."""


class CardfileError(Exception):
    """Base exception for all cardfile errors."""


class ConfigurationError(CardfileError):
    """Raised when a source or share is configured inconsistently."""


class PermissionDeniedError(CardfileError, PermissionError):
    """Raised when the current user lacks the permission an operation needs."""


class ContactNotFoundError(CardfileError):
    """Raised when a contact key does not exist in the address book."""


class ShareNotFoundError(CardfileError):
    """Raised when no share matches the given name."""


class SourceNotFoundError(CardfileError):
    """Raised when no address book source is configured under a name."""


class CapabilityNotSupportedError(CardfileError):
    """Raised when a driver doesn't support a requested operation."""


class StorageError(CardfileError):
    """Raised on storage backend failures (DB connection, constraint, etc.)."""
