"""Upgrade action that delegates the rolling upgrade to ``tiup cluster``."""

import logging
import subprocess
from datetime import timedelta
from typing import Dict, List, Optional

from upgrade_gate.codes import Component
from upgrade_gate.errors import UpgradeError

logger = logging.getLogger(__name__)


def format_duration(value: timedelta) -> str:
    """Render a timedelta the way TiUP duration flags expect, e.g. ``90s``."""
    total_ms = int(round(value.total_seconds() * 1000))
    if total_ms % 1000:
        return f"{total_ms}ms"
    return f"{total_ms // 1000}s"


class TiUPClusterUpgrader:
    """Runs ``<binary> cluster upgrade`` for the requested cluster.

    Options that only matter to the upgrade procedure itself (leader
    transfer, config checks) are fixed at construction.
    """

    def __init__(
        self,
        binary: str = "tiup",
        force: bool = False,
        ignore_config_check: bool = False,
        transfer_timeout: Optional[int] = None,
    ):
        self.binary = binary
        self.force = force
        self.ignore_config_check = ignore_config_check
        self.transfer_timeout = transfer_timeout

    def build_command(
        self,
        cluster_name: str,
        version: str,
        component_versions: Dict[str, str],
        skip_confirm: bool,
        offline: bool,
        ignore_version_check: bool,
        restart_timeout: timedelta,
    ) -> List[str]:
        cmd = [self.binary, "cluster", "upgrade", cluster_name, version]
        if skip_confirm:
            cmd.append("--yes")
        if offline:
            cmd.append("--offline")
        if ignore_version_check:
            cmd.append("--ignore-version-check")
        if self.force:
            cmd.append("--force")
        if self.ignore_config_check:
            cmd.append("--ignore-config-check")
        if self.transfer_timeout is not None:
            cmd.extend(["--transfer-timeout", str(self.transfer_timeout)])
        if restart_timeout:
            cmd.extend(["--restart-timeout", format_duration(restart_timeout)])
        for component in Component:
            pinned = (component_versions.get(component.value) or "").strip()
            if pinned:
                cmd.extend([component.flag, pinned])
        return cmd

    def __call__(
        self,
        cluster_name: str,
        version: str,
        component_versions: Dict[str, str],
        skip_confirm: bool,
        offline: bool,
        ignore_version_check: bool,
        restart_timeout: timedelta,
    ) -> None:
        cmd = self.build_command(
            cluster_name,
            version,
            component_versions,
            skip_confirm,
            offline,
            ignore_version_check,
            restart_timeout,
        )
        logger.info("Executing: %s", " ".join(cmd))
        try:
            completed = subprocess.run(cmd, check=False)
        except OSError as e:
            raise UpgradeError(f"failed to run {self.binary}: {e}") from e
        if completed.returncode != 0:
            raise UpgradeError(
                f"upgrade of cluster {cluster_name!r} to {version} failed "
                f"({self.binary} exited with status {completed.returncode})"
            )
