"""Read cluster metadata from a TiUP cluster storage directory.

Layout: ``<home>/clusters/<cluster-name>/meta.yaml`` with a top-level
``version`` key.
"""

import logging
import os
from pathlib import Path
from typing import Optional, Union

import yaml

from upgrade_gate.errors import MetadataError

logger = logging.getLogger(__name__)

META_FILE = "meta.yaml"


def default_home() -> Path:
    """``$TIUP_HOME/storage/cluster``, falling back to ``~/.tiup``."""
    tiup_home = os.environ.get("TIUP_HOME")
    base = Path(tiup_home) if tiup_home else Path.home() / ".tiup"
    return base / "storage" / "cluster"


class ClusterMetadataStore:
    """Looks up the running version of a cluster by name."""

    def __init__(self, home: Optional[Union[str, os.PathLike]] = None):
        self.home = Path(home) if home else default_home()

    def meta_path(self, cluster_name: str) -> Path:
        return self.home / "clusters" / cluster_name / META_FILE

    def __call__(self, cluster_name: str) -> str:
        return self.cluster_version(cluster_name)

    def cluster_version(self, cluster_name: str) -> str:
        """Return the ``version`` recorded for ``cluster_name``.

        Raises:
            MetadataError: if the cluster is unknown or its metadata is invalid.
        """
        path = self.meta_path(cluster_name)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except FileNotFoundError:
            raise MetadataError(f"cluster {cluster_name!r} not found ({path} does not exist)") from None
        except (OSError, yaml.YAMLError) as e:
            raise MetadataError(f"failed to read {path}: {e}") from e

        version = data.get("version") if isinstance(data, dict) else None
        if not isinstance(version, str) or not version.strip():
            raise MetadataError(f"{path} has no cluster version")
        logger.debug("Cluster %s is running %s", cluster_name, version)
        return version.strip()
