"""Pytest configuration for tests.

No sys.path hacks - tests should import from installed upgrade_gate package.
"""

import io

import pytest

from upgrade_gate.console import Console
from upgrade_gate.errors import MetadataError


class RecordingUpgrade:
    """Upgrade action double that records every invocation."""

    def __init__(self, error=None):
        self.calls = []
        self.error = error

    def __call__(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error


def metadata_for(versions):
    """Metadata lookup backed by a ``{cluster: version}`` dict."""
    def lookup(cluster_name):
        try:
            return versions[cluster_name]
        except KeyError:
            raise MetadataError(f"cluster {cluster_name!r} not found") from None
    return lookup


@pytest.fixture
def upgrade_action():
    return RecordingUpgrade()


@pytest.fixture
def metadata():
    return metadata_for({"cluster1": "v6.5.0"})


@pytest.fixture
def make_console():
    """Build a Console over in-memory streams: ``make_console("n\\n")``."""
    def _make(answer=""):
        return Console(out=io.StringIO(), inp=io.StringIO(answer))
    return _make
