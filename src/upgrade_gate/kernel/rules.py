"""Built-in precheck rules."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from upgrade_gate.codes import PRIMARY_SQL_COMPONENT, RuleID, Severity
from upgrade_gate.errors import InvalidVersionError
from upgrade_gate.kernel.catalog import Catalog, SysvarChange
from upgrade_gate.kernel.engine import Finding, ParameterChange, Snapshot, VersionPath
from upgrade_gate.kernel.version import Version, is_unknown, parse_version

logger = logging.getLogger(__name__)


def _try_parse(raw: str) -> Optional[Version]:
    try:
        return parse_version(raw)
    except InvalidVersionError:
        return None


class TargetVersionOrderRule:
    """Flags targets that are not strictly newer than the running version,
    or that cannot be compared with it.
    """

    name = RuleID.TARGET_VERSION_ORDER.value

    def evaluate(self, snapshot: Snapshot) -> List[Finding]:
        source_raw, target_raw = snapshot.source_version, snapshot.target_version
        if not target_raw:
            return []  # reported by MissingTargetVersionRule
        meta = VersionPath(source_version=source_raw, target_version=target_raw)
        target = _try_parse(target_raw)
        if target is None:
            return [Finding(
                rule=self.name,
                severity=Severity.ERROR,
                message=f"Target version {target_raw} is not a valid version.",
                suggestions=("Specify the target version as vMAJOR.MINOR.PATCH, e.g. v7.5.0",),
                metadata=meta,
            )]
        if is_unknown(source_raw):
            logger.info("Current cluster version is unknown; the upgrade path cannot be validated")
            return [Finding(
                rule=self.name,
                severity=Severity.ERROR,
                message=(
                    f"Current cluster version is unknown; the upgrade path to {target_raw} "
                    "cannot be validated and parameter changes cannot be assessed."
                ),
                suggestions=("Check that the cluster metadata is readable before upgrading",),
                metadata=VersionPath(
                    source_version=source_raw,
                    target_version=target_raw,
                    reason="Current cluster version is unknown",
                ),
            )]
        source = _try_parse(source_raw)
        if source is None:
            return [Finding(
                rule=self.name,
                severity=Severity.ERROR,
                message=f"Current cluster version {source_raw} cannot be compared with target version {target_raw}.",
                suggestions=("Check the cluster metadata before upgrading",),
                metadata=meta,
            )]
        if not target > source:
            return [Finding(
                rule=self.name,
                severity=Severity.ERROR,
                message=(
                    f"Target version {target_raw} is not newer than the current version {source_raw}; "
                    "downgrades and same-version upgrades are not supported."
                ),
                suggestions=("Choose a target version newer than the running cluster",),
                metadata=VersionPath(
                    source_version=source_raw,
                    target_version=target_raw,
                    reason="Downgrade is not supported",
                ),
            )]
        return []


class MissingTargetVersionRule:
    """Warns when no target version was supplied."""

    name = RuleID.MISSING_TARGET_VERSION.value

    def evaluate(self, snapshot: Snapshot) -> List[Finding]:
        if snapshot.target_version:
            return []
        return [Finding(
            rule=self.name,
            severity=Severity.WARNING,
            message="Target version is empty; the upgrade path cannot be evaluated.",
            suggestions=("Pass the version to upgrade to, e.g. v7.5.0",),
            metadata=VersionPath(source_version=snapshot.source_version),
        )]


class ForcedGlobalSysvarsRule:
    """Reports global system variables whose defaults the upgrade overwrites.

    Only ``forced`` catalog changes count: they are applied to existing
    clusters by the upgrade bootstrap, unlike defaults that only affect new
    deployments. When a variable changes several times in the upgrade range
    the last change wins, and variables that end where they started are not
    reported.
    """

    name = RuleID.FORCED_GLOBAL_SYSVARS.value

    def __init__(self, catalog: Catalog):
        self.catalog = catalog

    def evaluate(self, snapshot: Snapshot) -> List[Finding]:
        if is_unknown(snapshot.source_version) or not snapshot.target_version:
            return []
        source = _try_parse(snapshot.source_version)
        target = _try_parse(snapshot.target_version)
        if source is None or target is None or not target > source:
            return []

        # name -> (default before the first change, latest forced change)
        effective: Dict[str, Tuple[str, SysvarChange, str]] = {}
        for release, change in self.catalog.changes_between(source, target):
            if not change.forced or not change.is_global:
                continue
            if change.name in effective:
                first_default, _, _ = effective[change.name]
                effective[change.name] = (first_default, change, release.version)
            else:
                effective[change.name] = (change.old_default, change, release.version)

        findings = []
        for name, (old_default, change, version) in effective.items():
            if old_default == change.new_default:
                continue
            findings.append(Finding(
                rule=self.name,
                severity=Severity.WARNING,
                message=(
                    f"System variable {name} will be forcibly changed from "
                    f"{old_default!r} to {change.new_default!r} during the upgrade (since {version})."
                ),
                suggestions=(
                    f"Review workloads that depend on {name}",
                    f"Set {name} explicitly after the upgrade if the old behaviour is required",
                ),
                metadata=ParameterChange(
                    target=name,
                    current_value=old_default,
                    default_value=change.new_default,
                    scope="Global",
                    component=PRIMARY_SQL_COMPONENT if change.component == "tidb" else change.component,
                    summary=change.summary,
                    details=change.details,
                ),
            ))
        return findings


def default_rules(catalog: Catalog) -> list:
    """The built-in rule set, in registration order."""
    return [
        TargetVersionOrderRule(),
        MissingTargetVersionRule(),
        ForcedGlobalSysvarsRule(catalog),
    ]
