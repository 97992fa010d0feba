"""Rule and severity constants for upgrade_gate.

These constants prevent stringly-typed rule identifiers and make sure
the normalizer and the rules agree on the same names.
"""

from enum import Enum


class RuleID(str, Enum):
    """Identifiers of the built-in precheck rules."""

    TARGET_VERSION_ORDER = "core.target-version-order"
    FORCED_GLOBAL_SYSVARS = "core.forced-global-sysvars"
    MISSING_TARGET_VERSION = "core.missing-target-version"


class Severity(str, Enum):
    """Severity reported by the rule engine (before normalization)."""

    BLOCKER = "blocker"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            for member in cls:
                if member.value == value.strip().lower():
                    return member
        # Unrecognized engine severities are treated as informational.
        return cls.INFO


class Component(str, Enum):
    """Cluster components that can be pinned to their own version."""

    TIDB = "tidb"
    TIKV = "tikv"
    PD = "pd"
    TSO = "tso"
    SCHEDULING = "scheduling"
    TIFLASH = "tiflash"
    TIDB_DASHBOARD = "tidb-dashboard"
    CDC = "cdc"
    TIKV_CDC = "tikv-cdc"
    ALERTMANAGER = "alertmanager"
    NODE_EXPORTER = "node_exporter"
    BLACKBOX_EXPORTER = "blackbox_exporter"
    TIPROXY = "tiproxy"

    @property
    def flag(self) -> str:
        """Command-line flag that pins this component, e.g. ``--tikv-version``."""
        return f"--{self.value.replace('_', '-')}-version"


# Display name used in reports for the SQL layer.
PRIMARY_SQL_COMPONENT = "TiDB"

# Placeholder used when the current cluster version cannot be determined.
UNKNOWN_VERSION = "(unknown)"
