"""Tests for the upgrade decision state machine."""

from datetime import timedelta

import pytest

from upgrade_gate.contracts import RiskReport
from upgrade_gate.errors import AssessmentCancelled, CatalogLoadError, ConfirmationError, ReportOutputError, UpgradeError
from upgrade_gate.orchestrator import (
    AssessmentFailurePolicy,
    Outcome,
    UpgradeMode,
    UpgradeOrchestrator,
    UpgradeRequest,
)
from upgrade_gate.render import OutputFormat

from conftest import RecordingUpgrade, metadata_for


def _failing_assess(error):
    def assess(source_version, target_version, cancel=None):
        raise error
    return assess


def _request(**overrides):
    fields = {"cluster_name": "cluster1", "target_version": "v7.1.0"}
    fields.update(overrides)
    return UpgradeRequest(**fields)


def test_plan_only_never_upgrades(upgrade_action, metadata, make_console):
    console = make_console()
    orchestrator = UpgradeOrchestrator(upgrade_action, metadata, console)
    result = orchestrator.upgrade(_request(precheck_only=True))
    assert result.mode is UpgradeMode.PLAN_ONLY
    assert result.outcome is Outcome.PLANNED
    assert upgrade_action.calls == []
    assert "[PRECHECK REPORT - SUMMARY]" in console.out.getvalue()
    assert result.report.source_version == "v6.5.0"


def test_plan_only_assessment_failure_is_fatal(upgrade_action, metadata, make_console):
    orchestrator = UpgradeOrchestrator(
        upgrade_action, metadata, make_console(), assess=_failing_assess(CatalogLoadError("broken catalog"))
    )
    with pytest.raises(CatalogLoadError):
        orchestrator.upgrade(_request(precheck_only=True))
    assert upgrade_action.calls == []


def test_execute_declined(upgrade_action, metadata, make_console):
    console = make_console("n\n")
    result = UpgradeOrchestrator(upgrade_action, metadata, console).upgrade(_request())
    assert result.outcome is Outcome.ABORTED
    assert upgrade_action.calls == []
    out = console.out.getvalue()
    assert "[PRECHECK REPORT - SUMMARY]" in out
    assert out.rstrip().endswith("[y/N]:")


def test_execute_confirmed(upgrade_action, metadata, make_console):
    request = _request(
        component_versions={"tikv": "v7.1.1", "pd": ""},
        offline=True,
        ignore_version_check=True,
        restart_timeout=timedelta(minutes=5),
    )
    result = UpgradeOrchestrator(upgrade_action, metadata, make_console("y\n")).upgrade(request)
    assert result.outcome is Outcome.UPGRADED
    assert upgrade_action.calls == [{
        "cluster_name": "cluster1",
        "version": "v7.1.0",
        "component_versions": {"tikv": "v7.1.1", "pd": ""},
        "skip_confirm": False,
        "offline": True,
        "ignore_version_check": True,
        "restart_timeout": timedelta(minutes=5),
    }]


def test_execute_skip_confirm_does_not_prompt(upgrade_action, metadata, make_console):
    console = make_console("")  # reading would raise ConfirmationError
    result = UpgradeOrchestrator(upgrade_action, metadata, console).upgrade(_request(skip_confirm=True))
    assert result.outcome is Outcome.UPGRADED
    assert len(upgrade_action.calls) == 1
    assert upgrade_action.calls[0]["skip_confirm"] is True
    assert "[y/N]" not in console.out.getvalue()


def test_skip_precheck_upgrades_once(upgrade_action, make_console):
    def metadata(cluster_name):
        raise AssertionError("metadata must not be read when the precheck is skipped")

    console = make_console()
    result = UpgradeOrchestrator(upgrade_action, metadata, console).upgrade(
        _request(skip_precheck=True, skip_confirm=True)
    )
    assert result.mode is UpgradeMode.SKIP_PRECHECK
    assert result.report is None
    assert len(upgrade_action.calls) == 1
    assert upgrade_action.calls[0]["cluster_name"] == "cluster1"
    assert upgrade_action.calls[0]["version"] == "v7.1.0"
    assert console.out.getvalue() == ""


def test_execute_assessment_failure_continues_by_default(upgrade_action, metadata, make_console, caplog):
    orchestrator = UpgradeOrchestrator(
        upgrade_action, metadata, make_console("y\n"), assess=_failing_assess(AssessmentCancelled("cancelled"))
    )
    result = orchestrator.upgrade(_request())
    assert result.outcome is Outcome.UPGRADED
    assert result.report is None
    assert result.assessment_error == "cancelled"
    assert len(upgrade_action.calls) == 1
    assert "parameter precheck failed" in caplog.text


def test_execute_assessment_failure_still_prompts(upgrade_action, metadata, make_console):
    console = make_console("n\n")
    orchestrator = UpgradeOrchestrator(
        upgrade_action, metadata, console, assess=_failing_assess(CatalogLoadError("broken"))
    )
    result = orchestrator.upgrade(_request())
    assert result.outcome is Outcome.ABORTED
    assert upgrade_action.calls == []


def test_execute_assessment_failure_abort_policy(upgrade_action, metadata, make_console):
    orchestrator = UpgradeOrchestrator(
        upgrade_action,
        metadata,
        make_console("y\n"),
        assess=_failing_assess(CatalogLoadError("broken")),
        failure_policy=AssessmentFailurePolicy.ABORT,
    )
    with pytest.raises(CatalogLoadError):
        orchestrator.upgrade(_request())
    assert upgrade_action.calls == []


def test_unknown_cluster_metadata_is_a_warning(upgrade_action, make_console, caplog):
    console = make_console()
    orchestrator = UpgradeOrchestrator(upgrade_action, metadata_for({}), console)
    result = orchestrator.upgrade(_request(precheck_only=True))
    assert result.report.source_version == "(unknown)"
    assert "Source Version: (unknown)" in console.out.getvalue()
    assert "unable to read current cluster metadata" in caplog.text


def test_upgrade_failure_propagates(metadata, make_console):
    action = RecordingUpgrade(error=UpgradeError("tiup exited with status 1"))
    orchestrator = UpgradeOrchestrator(action, metadata, make_console())
    with pytest.raises(UpgradeError):
        orchestrator.upgrade(_request(skip_confirm=True))
    assert len(action.calls) == 1


def test_confirmation_read_failure_propagates(upgrade_action, metadata, make_console):
    orchestrator = UpgradeOrchestrator(upgrade_action, metadata, make_console(""))
    with pytest.raises(ConfirmationError):
        orchestrator.upgrade(_request())
    assert upgrade_action.calls == []


def test_report_write_failure_is_fatal_in_execute_mode(upgrade_action, metadata, make_console, tmp_path):
    orchestrator = UpgradeOrchestrator(upgrade_action, metadata, make_console("y\n"))
    request = _request(output_format=OutputFormat.MARKDOWN, output_path=str(tmp_path / "missing" / "r.md"))
    with pytest.raises(ReportOutputError):
        orchestrator.upgrade(request)
    assert upgrade_action.calls == []


def test_standalone_precheck_never_upgrades(upgrade_action, metadata, make_console, tmp_path):
    path = tmp_path / "report.md"
    console = make_console("y\n")
    result = UpgradeOrchestrator(upgrade_action, metadata, console).precheck(
        "cluster1", "v7.1.0", output_format=OutputFormat.MARKDOWN, output_path=str(path)
    )
    assert result.outcome is Outcome.PLANNED
    assert upgrade_action.calls == []
    assert "tidb_server_memory_limit" in path.read_text(encoding="utf-8")


def test_standalone_precheck_surfaces_assessment_errors(upgrade_action, metadata, make_console):
    orchestrator = UpgradeOrchestrator(
        upgrade_action, metadata, make_console(), assess=_failing_assess(CatalogLoadError("broken"))
    )
    with pytest.raises(CatalogLoadError):
        orchestrator.precheck("cluster1", "v7.1.0")
    assert upgrade_action.calls == []


def test_assessor_receives_source_version(upgrade_action, metadata, make_console):
    seen = []

    def assess(source_version, target_version, cancel=None):
        seen.append((source_version, target_version))
        return RiskReport(source_version=source_version, target_version=target_version)

    UpgradeOrchestrator(upgrade_action, metadata, make_console(), assess=assess).precheck("cluster1", "v7.1.0")
    assert seen == [("v6.5.0", "v7.1.0")]


def test_skip_precheck_takes_precedence_over_plan_only(upgrade_action, metadata, make_console):
    request = _request(precheck_only=True, skip_precheck=True, skip_confirm=True)
    assert request.mode is UpgradeMode.SKIP_PRECHECK
    result = UpgradeOrchestrator(upgrade_action, metadata, make_console()).upgrade(request)
    assert result.outcome is Outcome.UPGRADED
    assert result.report is None
    assert len(upgrade_action.calls) == 1
