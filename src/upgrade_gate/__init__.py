"""upgrade_gate: parameter precheck and confirmation gate for cluster upgrades."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("upgrade-gate")
except PackageNotFoundError:
    __version__ = "dev"

# Public API exports
from upgrade_gate.api import run_precheck
from upgrade_gate.contracts import RiskItem, RiskLevel, RiskReport, Summary
from upgrade_gate.render import OutputFormat, parse_output_format, render_report

__all__ = [
    "__version__",
    "run_precheck",
    "RiskItem",
    "RiskLevel",
    "RiskReport",
    "Summary",
    "OutputFormat",
    "parse_output_format",
    "render_report",
]
