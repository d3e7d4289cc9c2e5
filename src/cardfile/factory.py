"""DriverFactory — builds address book drivers from source configs."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .config import SourceConfig
from .drivers.share import ShareDriver
from .drivers.sql import SQLDriver
from .exceptions import ConfigurationError, PermissionDeniedError, SourceNotFoundError
from .permissions import Permission

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .drivers.base import Driver
    from .protocol import Identity, ShareRemover

logger = logging.getLogger(__name__)


class DriverFactory:
    """Creates and caches drivers for the configured address book sources.

    ``create`` wraps share-bound sources in a ``ShareDriver`` and refuses
    drivers the current user cannot see.  ``create_trusted`` builds the
    storage driver directly, with no permission check and no wrapping,
    for callers that enforce permissions themselves.
    """

    def __init__(
        self,
        sources: Mapping[str, SourceConfig],
        *,
        identity: Identity,
        shares: ShareRemover | None = None,
        drivers: Mapping[str, type[Driver]] | None = None,
    ) -> None:
        self._sources = dict(sources)
        self._identity = identity
        self._shares = shares
        self._drivers: dict[str, type[Driver]] = {"sql": SQLDriver}
        if drivers:
            self._drivers.update(drivers)
        self._instances: dict[str, Driver] = {}

    def register(self, source_type: str, driver_class: type[Driver]) -> None:
        """Add or replace the driver class used for *source_type*."""
        self._drivers[source_type] = driver_class

    def add_source(self, config: SourceConfig) -> None:
        self._sources[config.name] = config
        self._instances.pop(config.name, None)

    def get_source(self, name: str) -> SourceConfig:
        try:
            return self._sources[name]
        except KeyError:
            raise SourceNotFoundError(f"No address book source named {name!r}") from None

    def create(self, source: str | SourceConfig) -> Driver:
        """Return the driver for *source*, checking the current user may see it."""
        config = source if isinstance(source, SourceConfig) else self.get_source(source)
        name = config.name
        if name in self._instances:
            return self._instances[name]

        if config.use_shares and config.share is None:
            raise ConfigurationError(f"Source {name!r} uses shares but is not bound to one")
        if config.share is not None:
            if self._shares is None:
                raise ConfigurationError(f"Source {name!r} is shared but no share backend is configured")
            driver: Driver = ShareDriver(
                name,
                {"config": config},
                factory=self,
                identity=self._identity,
                shares=self._shares,
            )
        else:
            driver = self.create_trusted(config, name)

        if not driver.has_permission(Permission.SHOW):
            raise PermissionDeniedError(f"Permission denied: address book {name!r}")
        self._instances[name] = driver
        return driver

    def create_trusted(self, config: SourceConfig, name: str | None = None) -> Driver:
        """Instantiate the storage driver for *config* without permission checks."""
        try:
            driver_class = self._drivers[config.type]
        except KeyError:
            raise ConfigurationError(f"Unknown driver type {config.type!r} for source {config.name!r}") from None
        logger.debug("Creating %s driver for %s", config.type, name or config.name)
        return driver_class(
            name or config.name,
            config.params,
            attribute_map=config.map or None,
            identity=self._identity,
            title=config.title,
            readonly=config.readonly,
        )
