"""cardfile: shared, permissioned address books.

Contact storage drivers, a share-backed driver wrapper, and the share
service that owns address book permissions.
"""

__version__ = "0.0.1"

from cardfile.auth import StaticIdentity
from cardfile.config import SourceConfig, config_from_share, load_sources, load_sources_file
from cardfile.drivers import Driver, ShareDriver, SQLDriver
from cardfile.exceptions import (
    CapabilityNotSupportedError,
    CardfileError,
    ConfigurationError,
    ContactNotFoundError,
    PermissionDeniedError,
    ShareNotFoundError,
    SourceNotFoundError,
    StorageError,
)
from cardfile.factory import DriverFactory
from cardfile.permissions import Permission
from cardfile.protocol import AddressBookShare, ContactDriver, Identity, ShareRemover
from cardfile.sharing import Share, ShareService

__all__ = [
    "AddressBookShare",
    "CapabilityNotSupportedError",
    "CardfileError",
    "ConfigurationError",
    "ContactDriver",
    "ContactNotFoundError",
    "Driver",
    "DriverFactory",
    "Identity",
    "Permission",
    "PermissionDeniedError",
    "SQLDriver",
    "Share",
    "ShareDriver",
    "ShareNotFoundError",
    "ShareRemover",
    "ShareService",
    "SourceConfig",
    "SourceNotFoundError",
    "StaticIdentity",
    "StorageError",
    "__version__",
    "config_from_share",
    "load_sources",
    "load_sources_file",
]
