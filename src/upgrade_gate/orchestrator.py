"""Upgrade orchestration: precheck, report, confirm, then upgrade.

Three modes decide how far a run goes, checked in this order:

- skip precheck (``--without-precheck``): upgrade without assessing.
- plan only (``--precheck``): report risks and stop.
- execute (default): report risks, ask the operator, then upgrade.

The upgrade action is invoked at most once per run, and never in plan
only mode or from the standalone precheck form.
"""

import logging
import threading
from datetime import timedelta
from enum import Enum
from typing import Callable, Dict, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field

from upgrade_gate.api import run_precheck
from upgrade_gate.codes import UNKNOWN_VERSION
from upgrade_gate.console import Console
from upgrade_gate.contracts import RiskReport
from upgrade_gate.errors import AssessmentError, MetadataError
from upgrade_gate.render import OutputFormat, emit_report

logger = logging.getLogger(__name__)


class UpgradeAction(Protocol):
    """Performs the actual rolling upgrade. Raises on failure."""

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
        ...


# Returns the running version of a cluster; raises MetadataError when unknown.
MetadataLookup = Callable[[str], str]

# Same signature as upgrade_gate.api.run_precheck.
Assessor = Callable[..., RiskReport]


class AssessmentFailurePolicy(str, Enum):
    """What execute mode does when the precheck itself cannot run.

    WARN_AND_CONTINUE keeps a broken precheck from blocking upgrades; the
    operator is still asked for confirmation. ABORT fails the run instead.
    Plan only mode always aborts.
    """

    WARN_AND_CONTINUE = "continue"
    ABORT = "abort"


class UpgradeMode(str, Enum):
    PLAN_ONLY = "plan-only"
    SKIP_PRECHECK = "skip-precheck"
    EXECUTE = "execute"


class Outcome(str, Enum):
    PLANNED = "planned"  # report emitted, no upgrade by design
    ABORTED = "aborted"  # operator declined
    UPGRADED = "upgraded"


class UpgradeRequest(BaseModel):
    """Everything one ``upgrade`` invocation was asked to do."""
    cluster_name: str
    target_version: str
    component_versions: Dict[str, str] = Field(default_factory=dict)  # "" follows target_version
    precheck_only: bool = False
    skip_precheck: bool = False
    skip_confirm: bool = False
    offline: bool = False
    ignore_version_check: bool = False
    restart_timeout: timedelta = timedelta(0)
    output_format: OutputFormat = OutputFormat.TEXT
    output_path: Optional[str] = None

    model_config = ConfigDict(frozen=True, extra="forbid")

    @property
    def mode(self) -> UpgradeMode:
        """Skipping the precheck wins over plan only when both are set."""
        if self.skip_precheck:
            return UpgradeMode.SKIP_PRECHECK
        if self.precheck_only:
            return UpgradeMode.PLAN_ONLY
        return UpgradeMode.EXECUTE


class UpgradeResult(BaseModel):
    """How a run ended. Failures raise instead of returning."""
    mode: UpgradeMode
    outcome: Outcome
    report: Optional[RiskReport] = None
    assessment_error: Optional[str] = None


class UpgradeOrchestrator:
    """Sequences precheck, reporting, confirmation and the upgrade action."""

    def __init__(
        self,
        upgrade_action: UpgradeAction,
        metadata_lookup: MetadataLookup,
        console: Optional[Console] = None,
        assess: Optional[Assessor] = None,
        failure_policy: AssessmentFailurePolicy = AssessmentFailurePolicy.WARN_AND_CONTINUE,
    ):
        if assess is None:
            assess = run_precheck
        self.upgrade_action = upgrade_action
        self.metadata_lookup = metadata_lookup
        self.console = console or Console()
        self.assess = assess
        self.failure_policy = AssessmentFailurePolicy(failure_policy)

    def precheck(
        self,
        cluster_name: str,
        target_version: str,
        output_format: OutputFormat = OutputFormat.TEXT,
        output_path: Optional[str] = None,
        cancel: Optional[threading.Event] = None,
    ) -> UpgradeResult:
        """Standalone precheck: assess and report, never upgrade.

        Raises:
            AssessmentError: if the precheck cannot run.
            ReportOutputError: if the report cannot be written.
        """
        report = self._run_precheck(cluster_name, target_version, output_format, output_path, cancel)
        logger.info("Precheck complete. This was a dry run; no upgrade performed.")
        return UpgradeResult(mode=UpgradeMode.PLAN_ONLY, outcome=Outcome.PLANNED, report=report)

    def upgrade(self, request: UpgradeRequest, cancel: Optional[threading.Event] = None) -> UpgradeResult:
        """Run one upgrade command according to ``request.mode``.

        Raises:
            AssessmentError: in plan only mode, or under the ABORT policy,
                when the precheck cannot run.
            ReportOutputError: if the report cannot be written.
            ConfirmationError: if operator input cannot be read.
            Exception: whatever the upgrade action raises.
        """
        mode = request.mode

        if mode is UpgradeMode.SKIP_PRECHECK:
            logger.warning("Skipping parameter precheck (--without-precheck). Proceeding at your own risk.")
            self._invoke_upgrade(request)
            return UpgradeResult(mode=mode, outcome=Outcome.UPGRADED)

        report: Optional[RiskReport] = None
        assessment_error: Optional[AssessmentError] = None
        try:
            report = self._run_precheck(
                request.cluster_name,
                request.target_version,
                request.output_format,
                request.output_path,
                cancel,
            )
        except AssessmentError as e:
            logger.error("parameter precheck failed: %s", e)
            if mode is UpgradeMode.PLAN_ONLY or self.failure_policy is AssessmentFailurePolicy.ABORT:
                raise
            logger.warning("Continuing without a precheck report (policy: %s)", self.failure_policy.value)
            assessment_error = e

        error_text = str(assessment_error) if assessment_error is not None else None

        if mode is UpgradeMode.PLAN_ONLY:
            logger.info("Precheck complete. No upgrade performed (planning mode).")
            return UpgradeResult(mode=mode, outcome=Outcome.PLANNED, report=report)

        if not request.skip_confirm:
            if not self.console.ask_confirmation():
                logger.info("Aborting upgrade per user response.")
                return UpgradeResult(
                    mode=mode, outcome=Outcome.ABORTED, report=report, assessment_error=error_text
                )

        self._invoke_upgrade(request)
        return UpgradeResult(mode=mode, outcome=Outcome.UPGRADED, report=report, assessment_error=error_text)

    def _source_version(self, cluster_name: str) -> str:
        try:
            return self.metadata_lookup(cluster_name)
        except MetadataError as e:
            logger.warning("unable to read current cluster metadata: %s", e)
            return UNKNOWN_VERSION

    def _run_precheck(
        self,
        cluster_name: str,
        target_version: str,
        output_format: OutputFormat,
        output_path: Optional[str],
        cancel: Optional[threading.Event],
    ) -> RiskReport:
        logger.info("Running parameter precheck...")
        source_version = self._source_version(cluster_name)
        report = self.assess(source_version, target_version, cancel=cancel)
        emit_report(report, output_format, output_path, self.console)
        return report

    def _invoke_upgrade(self, request: UpgradeRequest) -> None:
        logger.info("Upgrading cluster %s to %s", request.cluster_name, request.target_version)
        self.upgrade_action(
            cluster_name=request.cluster_name,
            version=request.target_version,
            component_versions=dict(request.component_versions),
            skip_confirm=request.skip_confirm,
            offline=request.offline,
            ignore_version_check=request.ignore_version_check,
            restart_timeout=request.restart_timeout,
        )
