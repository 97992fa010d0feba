"""Cluster version strings: normalization and ordering.

Versions follow the ``vMAJOR.MINOR.PATCH[-PRERELEASE][+BUILD]`` form used by
TiUP. ``nightly`` is accepted and sorts after every release.
"""

import re
from dataclasses import dataclass
from typing import Optional, Tuple

from upgrade_gate.codes import UNKNOWN_VERSION
from upgrade_gate.errors import InvalidVersionError

NIGHTLY = "nightly"

_SEMVER_RE = re.compile(
    r"^v(?P<major>0|[1-9]\d*)\.(?P<minor>0|[1-9]\d*)\.(?P<patch>0|[1-9]\d*)"
    r"(?:-(?P<pre>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+(?P<build>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)


@dataclass(frozen=True)
class Version:
    """A parsed, comparable version. Build metadata is ignored for ordering."""
    major: int
    minor: int
    patch: int
    prerelease: Tuple[str, ...] = ()
    nightly: bool = False

    def _key(self) -> tuple:
        if self.nightly:
            return (1,)
        # A release sorts after all of its prereleases.
        pre_key: tuple
        if not self.prerelease:
            pre_key = (1,)
        else:
            parts = []
            for ident in self.prerelease:
                # Numeric identifiers sort before alphanumeric ones.
                if ident.isdigit():
                    parts.append((0, int(ident), ""))
                else:
                    parts.append((1, 0, ident))
            pre_key = (0, tuple(parts))
        return (0, self.major, self.minor, self.patch, pre_key)

    def __lt__(self, other: "Version") -> bool:
        return self._key() < other._key()

    def __le__(self, other: "Version") -> bool:
        return self._key() <= other._key()

    def __gt__(self, other: "Version") -> bool:
        return self._key() > other._key()

    def __ge__(self, other: "Version") -> bool:
        return self._key() >= other._key()

    def __str__(self) -> str:
        if self.nightly:
            return NIGHTLY
        text = f"v{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            text += "-" + ".".join(self.prerelease)
        return text


def is_unknown(version: Optional[str]) -> bool:
    """True for empty strings and the unknown-version placeholder."""
    if version is None:
        return True
    stripped = version.strip()
    return stripped == "" or stripped == UNKNOWN_VERSION or stripped.lower() == "unknown"


def format_version(raw: str) -> str:
    """Normalize a user-supplied version, e.g. ``7.1.0`` -> ``v7.1.0``.

    Raises:
        InvalidVersionError: if the string is not a valid version.
    """
    text = (raw or "").strip()
    if text.lower() == NIGHTLY:
        return NIGHTLY
    if text and not text.startswith("v"):
        text = "v" + text
    if not _SEMVER_RE.match(text):
        raise InvalidVersionError(f"'{raw}' is not a valid version string")
    return text


def parse_version(raw: str) -> Version:
    """Parse a version string into a comparable :class:`Version`."""
    text = format_version(raw)
    if text == NIGHTLY:
        return Version(0, 0, 0, nightly=True)
    match = _SEMVER_RE.match(text)
    pre = match.group("pre")
    return Version(
        major=int(match.group("major")),
        minor=int(match.group("minor")),
        patch=int(match.group("patch")),
        prerelease=tuple(pre.split(".")) if pre else (),
    )
