"""Address book drivers — storage backends and the share-backed wrapper."""

from cardfile.drivers.base import KEY, OCCURS, OWNER, UID, Driver
from cardfile.drivers.share import ShareDriver
from cardfile.drivers.sql import SQLDriver

__all__ = [
    "KEY",
    "OCCURS",
    "OWNER",
    "UID",
    "Driver",
    "SQLDriver",
    "ShareDriver",
]
