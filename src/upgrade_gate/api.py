"""Public API for upgrade_gate.

High-level functions that return complete, structured results.
"""

import logging
import threading
from typing import Optional

from upgrade_gate.contracts import RiskReport
from upgrade_gate.kernel.catalog import Catalog, load_embedded_catalog
from upgrade_gate.kernel.engine import Engine, Snapshot
from upgrade_gate.kernel.rules import default_rules
from upgrade_gate.kernel.version import is_unknown
from upgrade_gate.normalize import convert_report

logger = logging.getLogger(__name__)


def run_precheck(
    source_version: str,
    target_version: str,
    catalog: Optional[Catalog] = None,
    cancel: Optional[threading.Event] = None,
    max_workers: int = 1,
) -> RiskReport:
    """Assess the risks of upgrading from ``source_version`` to ``target_version``.

    Findings are reported, never raised. Only failures to run the
    assessment itself raise.

    Args:
        source_version: Running cluster version, or the unknown placeholder.
        target_version: Version to upgrade to; may be empty.
        catalog: Upgrade catalog; defaults to the embedded one.
        cancel: Event that aborts evaluation when set.
        max_workers: Rule evaluation threads.

    Raises:
        CatalogLoadError: if the embedded catalog cannot be loaded.
        AssessmentCancelled: if ``cancel`` is set during evaluation.
        AssessmentError: if a rule fails.
    """
    snapshot = Snapshot(source_version=source_version, target_version=target_version)
    if is_unknown(snapshot.source_version):
        logger.warning("Source version is unknown; forced parameter changes cannot be assessed")

    if catalog is None:
        catalog = load_embedded_catalog()

    engine = Engine(*default_rules(catalog), max_workers=max_workers)
    return convert_report(engine.run(snapshot, cancel=cancel))
