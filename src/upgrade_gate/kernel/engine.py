"""Rule engine: evaluates registered rules against a version snapshot.

Findings are always returned in rule registration order (then in each
rule's own emission order), even when rules run on a thread pool.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import List, Literal, Optional, Protocol, Sequence, Tuple, Union

from upgrade_gate.codes import Severity
from upgrade_gate.errors import AssessmentCancelled, AssessmentError

logger = logging.getLogger(__name__)

# Seconds between cancellation checks while waiting on worker threads.
_CANCEL_POLL_INTERVAL = 0.05


@dataclass(frozen=True)
class Snapshot:
    """The versions a precheck evaluates. Both are stored trimmed."""
    source_version: str
    target_version: str

    def __post_init__(self):
        object.__setattr__(self, "source_version", (self.source_version or "").strip())
        object.__setattr__(self, "target_version", (self.target_version or "").strip())


@dataclass(frozen=True)
class FindingMeta:
    """Fields shared by every metadata record."""
    component: str = ""
    reason: str = ""
    summary: str = ""
    details: str = ""


@dataclass(frozen=True)
class ParameterChange(FindingMeta):
    """Metadata for findings about one configuration parameter."""
    kind: Literal["parameter_change"] = "parameter_change"
    target: str = ""  # parameter name
    current_value: str = ""
    default_value: str = ""
    scope: str = ""


@dataclass(frozen=True)
class VersionPath(FindingMeta):
    """Metadata for findings about the upgrade path itself."""
    kind: Literal["version_path"] = "version_path"
    source_version: str = ""
    target_version: str = ""


Metadata = Union[ParameterChange, VersionPath]


@dataclass(frozen=True)
class Finding:
    """A raw rule result, before normalization into the risk taxonomy."""
    rule: str
    severity: Severity
    message: str
    suggestions: Tuple[str, ...] = ()
    details: Tuple[str, ...] = ()
    metadata: Optional[Metadata] = None


class Rule(Protocol):
    """A precheck rule. ``evaluate`` returns zero or more findings."""

    name: str

    def evaluate(self, snapshot: Snapshot) -> Sequence[Finding]:
        ...


@dataclass(frozen=True)
class EngineReport:
    snapshot: Snapshot
    findings: Tuple[Finding, ...] = field(default_factory=tuple)


class Engine:
    """Runs rules over a snapshot.

    Args:
        rules: Rules in registration order.
        max_workers: Thread pool size; 1 evaluates rules inline.
    """

    def __init__(self, *rules: Rule, max_workers: int = 1):
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        self.rules: Tuple[Rule, ...] = tuple(r for r in rules if r is not None)
        self.max_workers = max_workers

    def run(self, snapshot: Snapshot, cancel: Optional[threading.Event] = None) -> EngineReport:
        """Evaluate all rules.

        Raises:
            AssessmentCancelled: if ``cancel`` is set before evaluation finishes.
            AssessmentError: if a rule raises.
        """
        if self.max_workers == 1 or len(self.rules) <= 1:
            results = self._run_inline(snapshot, cancel)
        else:
            results = self._run_pooled(snapshot, cancel)

        findings: List[Finding] = []
        for rule_findings in results:
            findings.extend(rule_findings)
        logger.debug("Engine evaluated %d rules, %d findings", len(self.rules), len(findings))
        return EngineReport(snapshot=snapshot, findings=tuple(findings))

    def _run_inline(self, snapshot: Snapshot, cancel: Optional[threading.Event]) -> List[Sequence[Finding]]:
        results = []
        for rule in self.rules:
            _check_cancel(cancel)
            results.append(_evaluate(rule, snapshot))
        _check_cancel(cancel)
        return results

    def _run_pooled(self, snapshot: Snapshot, cancel: Optional[threading.Event]) -> List[Sequence[Finding]]:
        _check_cancel(cancel)
        executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="precheck-rule")
        try:
            futures: List[Future] = [executor.submit(_evaluate, rule, snapshot) for rule in self.rules]
            pending = set(futures)
            while pending:
                _, pending = wait(pending, timeout=_CANCEL_POLL_INTERVAL, return_when=FIRST_COMPLETED)
                if cancel is not None and cancel.is_set():
                    for future in pending:
                        future.cancel()
                    raise AssessmentCancelled("precheck cancelled")
            # Collect by registration index, never by completion order.
            return [future.result() for future in futures]
        finally:
            executor.shutdown(wait=False, cancel_futures=True)


def _check_cancel(cancel: Optional[threading.Event]) -> None:
    if cancel is not None and cancel.is_set():
        raise AssessmentCancelled("precheck cancelled")


def _evaluate(rule: Rule, snapshot: Snapshot) -> Sequence[Finding]:
    try:
        return tuple(rule.evaluate(snapshot) or ())
    except AssessmentError:
        raise
    except Exception as e:
        raise AssessmentError(f"rule {rule.name} failed: {e}") from e
