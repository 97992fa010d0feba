"""Upgrade catalog: versioned system variable default changes.

The catalog ships as package data and is loaded once per process.
"""

import json
import logging
import re
from functools import lru_cache
from importlib import resources
from typing import Iterator, List, Literal, Tuple

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from upgrade_gate.errors import CatalogLoadError, InvalidVersionError
from upgrade_gate.kernel.version import Version, parse_version

logger = logging.getLogger(__name__)

CATALOG_FORMAT = "upgrade-gate.catalog"
EMBEDDED_CATALOG = "upgrade_changes.json"

# Variable and config item names, e.g. tidb_mem_quota_query or raftstore.notify-capacity.
_NAME_RE = re.compile(r"^[A-Za-z0-9_.\-]+$")


class SysvarChange(BaseModel):
    """A change of a system variable default introduced by one release.

    ``forced`` changes are applied to existing clusters during the upgrade
    bootstrap; non-forced ones only affect newly deployed clusters.
    """
    name: str
    component: str = "tidb"
    scope: Literal["global", "session", "both"] = "global"
    old_default: str
    new_default: str
    forced: bool = False
    summary: str = ""
    details: str = ""

    model_config = ConfigDict(frozen=True, extra="forbid")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Names are plain identifiers, so every report format shows them verbatim."""
        if not _NAME_RE.match(v):
            raise ValueError(f"invalid system variable name {v!r}")
        return v

    @property
    def is_global(self) -> bool:
        return self.scope in ("global", "both")


class Release(BaseModel):
    """All catalogued changes shipped with one release."""
    version: str
    changes: Tuple[SysvarChange, ...] = ()

    model_config = ConfigDict(frozen=True, extra="forbid")

    @field_validator("version")
    @classmethod
    def validate_version(cls, v: str) -> str:
        """Release versions must be valid and are stored normalized."""
        try:
            return str(parse_version(v))
        except InvalidVersionError as e:
            raise ValueError(str(e))

    @property
    def parsed_version(self) -> Version:
        return parse_version(self.version)


class Catalog(BaseModel):
    """Immutable lookup table of releases, sorted by version."""
    format: Literal["upgrade-gate.catalog"] = CATALOG_FORMAT
    version: str = "1"
    releases: Tuple[Release, ...] = ()

    model_config = ConfigDict(frozen=True, extra="forbid")

    @field_validator("releases")
    @classmethod
    def sort_releases(cls, v: Tuple[Release, ...]) -> Tuple[Release, ...]:
        """Sort releases by version and reject duplicates."""
        seen = set()
        duplicates = set()
        for release in v:
            if release.version in seen:
                duplicates.add(release.version)
            seen.add(release.version)
        if duplicates:
            raise ValueError(f"Duplicate releases not allowed: {sorted(duplicates)}")
        return tuple(sorted(v, key=lambda r: r.parsed_version))

    def changes_between(self, source: Version, target: Version) -> Iterator[Tuple[Release, SysvarChange]]:
        """Yield changes of every release in ``(source, target]``, oldest first."""
        for release in self.releases:
            version = release.parsed_version
            if source < version <= target:
                for change in release.changes:
                    yield release, change

    def variable_names(self) -> List[str]:
        """Sorted names of all catalogued variables."""
        return sorted({c.name for r in self.releases for c in r.changes})


def load_catalog_from_bytes(data: bytes) -> Catalog:
    """Parse and validate catalog JSON.

    Raises:
        CatalogLoadError: on malformed JSON or schema violations.
    """
    try:
        raw = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise CatalogLoadError(f"invalid upgrade catalog JSON: {e}") from e
    try:
        return Catalog(**raw)
    except (ValidationError, TypeError) as e:
        raise CatalogLoadError(f"invalid upgrade catalog: {e}") from e


@lru_cache(maxsize=1)
def load_embedded_catalog() -> Catalog:
    """Load the catalog bundled with the package (cached for the process)."""
    try:
        data = (resources.files("upgrade_gate") / "data" / EMBEDDED_CATALOG).read_bytes()
    except OSError as e:
        raise CatalogLoadError(f"read embedded upgrade metadata: {e}") from e
    catalog = load_catalog_from_bytes(data)
    logger.debug("Loaded upgrade catalog with %d releases", len(catalog.releases))
    return catalog
