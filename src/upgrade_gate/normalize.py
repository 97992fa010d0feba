"""Normalize raw rule findings into the risk taxonomy.

Every finding becomes exactly one RiskItem. Missing metadata only leaves
the corresponding fields empty; it never aborts normalization.
"""

from typing import Dict, Iterable, List

from upgrade_gate.codes import PRIMARY_SQL_COMPONENT, RuleID, Severity
from upgrade_gate.contracts import RiskItem, RiskLevel, RiskReport
from upgrade_gate.kernel.engine import EngineReport, Finding, FindingMeta, ParameterChange, Snapshot

JOIN_DELIMITER = "; "

SEVERITY_LEVELS: Dict[Severity, RiskLevel] = {
    Severity.BLOCKER: RiskLevel.HIGH,
    Severity.ERROR: RiskLevel.HIGH,
    Severity.WARNING: RiskLevel.MEDIUM,
}

RULE_CATEGORIES: Dict[str, str] = {
    RuleID.TARGET_VERSION_ORDER.value: "Upgrade Path Validation",
    # An empty target is an upgrade path problem too.
    RuleID.MISSING_TARGET_VERSION.value: "Upgrade Path Validation",
    RuleID.FORCED_GLOBAL_SYSVARS.value: "Forced Upgrade Logic",
}

RULE_COMPONENTS: Dict[str, str] = {
    RuleID.FORCED_GLOBAL_SYSVARS.value: PRIMARY_SQL_COMPONENT,
}

RULE_DEFAULT_SCOPES: Dict[str, str] = {
    RuleID.FORCED_GLOBAL_SYSVARS.value: "Global",
}


def map_severity(severity) -> RiskLevel:
    """blocker/error -> HIGH, warning -> MEDIUM, anything else -> LOW."""
    # Severity() maps unrecognized values to INFO.
    return SEVERITY_LEVELS.get(Severity(severity), RiskLevel.LOW)


def map_rule_category(rule: str) -> str:
    rule = (rule or "").strip()
    return RULE_CATEGORIES.get(rule, rule)


def infer_component(rule: str) -> str:
    return RULE_COMPONENTS.get((rule or "").strip(), "")


def _clean(value) -> str:
    return str(value).strip() if value is not None else ""


def _join(values: Iterable[str]) -> str:
    return JOIN_DELIMITER.join(v.strip() for v in values if v and v.strip())


def convert_finding(finding: Finding) -> RiskItem:
    """Convert one raw finding into a RiskItem."""
    rule = _clean(finding.rule)
    fields = {
        "level": map_severity(finding.severity),
        "category": map_rule_category(rule),
        "impact": _clean(finding.message),
        "suggestion": _join(finding.suggestions or ()),
        "comments": _join(finding.details or ()),
    }

    meta = finding.metadata
    if isinstance(meta, FindingMeta):
        if isinstance(meta, ParameterChange):
            fields["parameter"] = _clean(meta.target)
            fields["current"] = _clean(meta.current_value)
            fields["new_default"] = _clean(meta.default_value)
            fields["scope"] = _clean(meta.scope)
        fields["reason"] = _clean(meta.reason) or _clean(meta.summary)
        if not fields["comments"]:
            fields["comments"] = _clean(meta.details)
        fields["component"] = _clean(meta.component)

    if not fields.get("component"):
        fields["component"] = infer_component(rule)
    if not fields.get("scope"):
        fields["scope"] = RULE_DEFAULT_SCOPES.get(rule, "")

    return RiskItem(**fields)


def convert_findings(snapshot: Snapshot, findings: Iterable[Finding]) -> RiskReport:
    """Bucket findings by severity, preserving evaluation order."""
    buckets: Dict[RiskLevel, List[RiskItem]] = {level: [] for level in RiskLevel}
    for finding in findings:
        item = convert_finding(finding)
        buckets[item.level].append(item)
    return RiskReport(
        source_version=snapshot.source_version,
        target_version=snapshot.target_version,
        high=tuple(buckets[RiskLevel.HIGH]),
        medium=tuple(buckets[RiskLevel.MEDIUM]),
        low=tuple(buckets[RiskLevel.LOW]),
    )


def convert_report(report: EngineReport) -> RiskReport:
    return convert_findings(report.snapshot, report.findings)
