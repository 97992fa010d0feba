"""Tests for the built-in precheck rules."""

from upgrade_gate.codes import RuleID, Severity
from upgrade_gate.kernel.catalog import Catalog
from upgrade_gate.kernel.engine import ParameterChange, Snapshot, VersionPath
from upgrade_gate.kernel.rules import (
    ForcedGlobalSysvarsRule,
    MissingTargetVersionRule,
    TargetVersionOrderRule,
    default_rules,
)


def _catalog():
    return Catalog(releases=[
        {"version": "v7.0.0", "changes": [
            {"name": "forced_global", "scope": "global", "old_default": "0", "new_default": "80%", "forced": True,
             "summary": "memory limit", "details": "queries may be killed"},
            {"name": "opt_out", "scope": "global", "old_default": "OFF", "new_default": "ON", "forced": False},
            {"name": "session_only", "scope": "session", "old_default": "1", "new_default": "2", "forced": True},
        ]},
        {"version": "v7.3.0", "changes": [
            {"name": "flip_flop", "old_default": "OFF", "new_default": "ON", "forced": True},
            {"name": "twice", "old_default": "1", "new_default": "2", "forced": True},
        ]},
        {"version": "v7.4.0", "changes": [
            {"name": "flip_flop", "old_default": "ON", "new_default": "OFF", "forced": True},
            {"name": "twice", "old_default": "2", "new_default": "3", "forced": True},
        ]},
    ])


def test_version_order_flags_downgrade():
    findings = TargetVersionOrderRule().evaluate(Snapshot("v7.1.0", "v6.5.0"))
    assert len(findings) == 1
    assert findings[0].severity == Severity.ERROR
    assert findings[0].rule == RuleID.TARGET_VERSION_ORDER.value
    assert isinstance(findings[0].metadata, VersionPath)


def test_version_order_flags_same_version():
    assert len(TargetVersionOrderRule().evaluate(Snapshot("v7.1.0", "v7.1.0"))) == 1


def test_version_order_flags_unparsable_target():
    findings = TargetVersionOrderRule().evaluate(Snapshot("v7.1.0", "latest"))
    assert len(findings) == 1
    assert "latest" in findings[0].message


def test_version_order_accepts_upgrade():
    assert TargetVersionOrderRule().evaluate(Snapshot("v6.5.0", "v7.1.0")) == []


def test_version_order_skips_empty_target():
    rule = TargetVersionOrderRule()
    assert rule.evaluate(Snapshot("v6.5.0", "")) == []
    assert rule.evaluate(Snapshot("(unknown)", "")) == []


def test_version_order_flags_unknown_source():
    findings = TargetVersionOrderRule().evaluate(Snapshot("(unknown)", "v5.0.0"))
    assert len(findings) == 1
    assert findings[0].severity == Severity.ERROR
    assert "unknown" in findings[0].message
    assert findings[0].metadata.reason == "Current cluster version is unknown"
    assert findings[0].metadata.source_version == "(unknown)"


def test_version_order_prefers_invalid_target_over_unknown_source():
    findings = TargetVersionOrderRule().evaluate(Snapshot("(unknown)", "latest"))
    assert len(findings) == 1
    assert "latest" in findings[0].message


def test_missing_target_version():
    findings = MissingTargetVersionRule().evaluate(Snapshot("v7.5.0", ""))
    assert len(findings) == 1
    assert findings[0].severity == Severity.WARNING
    assert "target version is empty" in findings[0].message.lower()
    assert MissingTargetVersionRule().evaluate(Snapshot("v7.5.0", "v8.1.0")) == []


def test_forced_sysvars_only_forced_global_changes():
    findings = ForcedGlobalSysvarsRule(_catalog()).evaluate(Snapshot("v6.5.0", "v7.1.0"))
    assert [f.metadata.target for f in findings] == ["forced_global"]
    finding = findings[0]
    assert finding.severity == Severity.WARNING
    assert "forced_global" in finding.message
    assert isinstance(finding.metadata, ParameterChange)
    assert finding.metadata.scope == "Global"
    assert finding.metadata.current_value == "0"
    assert finding.metadata.default_value == "80%"
    assert finding.metadata.component == "TiDB"


def test_forced_sysvars_last_change_wins():
    findings = ForcedGlobalSysvarsRule(_catalog()).evaluate(Snapshot("v7.1.0", "v7.5.0"))
    by_name = {f.metadata.target: f for f in findings}
    # flip_flop ends where it started, so it is not reported.
    assert set(by_name) == {"twice"}
    assert by_name["twice"].metadata.current_value == "1"
    assert by_name["twice"].metadata.default_value == "3"


def test_forced_sysvars_partial_range():
    findings = ForcedGlobalSysvarsRule(_catalog()).evaluate(Snapshot("v7.3.0", "v7.4.0"))
    assert {f.metadata.target for f in findings} == {"flip_flop", "twice"}


def test_forced_sysvars_skips_unknown_or_invalid_range():
    rule = ForcedGlobalSysvarsRule(_catalog())
    assert rule.evaluate(Snapshot("(unknown)", "v7.1.0")) == []
    assert rule.evaluate(Snapshot("v7.1.0", "v6.5.0")) == []
    assert rule.evaluate(Snapshot("v6.5.0", "")) == []


def test_default_rules_registration_order():
    names = [r.name for r in default_rules(_catalog())]
    assert names == [
        RuleID.TARGET_VERSION_ORDER.value,
        RuleID.MISSING_TARGET_VERSION.value,
        RuleID.FORCED_GLOBAL_SYSVARS.value,
    ]
