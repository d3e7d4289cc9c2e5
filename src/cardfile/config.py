"""SourceConfig and source loading."""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .exceptions import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .protocol import AddressBookShare

logger = logging.getLogger(__name__)

DEFAULT_DRIVER_TYPE = "sql"


@dataclass
class SourceConfig:
    """Configuration for a single address book source."""

    name: str
    """Source name the application refers to the address book by."""

    type: str = DEFAULT_DRIVER_TYPE
    """Driver type registered with the ``DriverFactory``."""

    title: str = ""
    """Display name for the source."""

    params: dict[str, Any] = field(default_factory=dict)
    """Driver parameters.  A ``share`` entry binds the source to a share."""

    map: dict[str, str] = field(default_factory=dict)
    """Attribute name → driver field name.  Empty means the driver default."""

    readonly: bool = False
    """If True, EDIT and DELETE are refused by non-shared drivers."""

    use_shares: bool = False
    """If True, address books for this source live in shares."""

    def __post_init__(self) -> None:
        if not self.title:
            self.title = self.name

    @property
    def share(self) -> AddressBookShare | None:
        return self.params.get("share")


def load_sources(data: Mapping[str, Any]) -> dict[str, SourceConfig]:
    """Build source configs from a ``{name: {...}}`` mapping."""
    sources: dict[str, SourceConfig] = {}
    for name, entry in data.items():
        if not isinstance(entry, dict):
            raise ConfigurationError(f"Source {name!r} must be a table, got {type(entry).__name__}")
        known = {k: entry[k] for k in ("type", "title", "readonly", "use_shares") if k in entry}
        sources[name] = SourceConfig(
            name=name,
            params=dict(entry.get("params", {})),
            map=dict(entry.get("map", {})),
            **known,
        )
    return sources


def load_sources_file(path: str | Path) -> dict[str, SourceConfig]:
    """Read source configs from a TOML file with one table per source."""
    path = Path(path)
    try:
        with path.open("rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid source file {path}: {e}") from e
    logger.debug("Loaded %d source(s) from %s", len(data), path)
    return load_sources(data)


def config_from_share(base: SourceConfig, share: AddressBookShare) -> SourceConfig:
    """Derive the config for an address book stored in *share*.

    The result is keyed by the share name and carries the share in
    ``params["share"]``; the base config is left untouched.  Only sources
    configured with ``use_shares`` keep their address books in shares.
    """
    if not base.use_shares:
        raise ConfigurationError(f"Source {base.name!r} does not use shares")
    params = dict(base.params)
    params["share"] = share
    title = share.get("title") or base.title
    return replace(base, name=share.name, title=title, params=params)
