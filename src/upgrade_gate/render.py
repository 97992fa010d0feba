"""Render precheck reports as text, markdown or HTML."""

import html
import io
import logging
import os
from enum import Enum
from pathlib import Path
from typing import List, Optional, TextIO, Tuple, Union

from upgrade_gate.codes import UNKNOWN_VERSION
from upgrade_gate.console import Console
from upgrade_gate.contracts import RiskItem, RiskLevel, RiskReport
from upgrade_gate.errors import ReportOutputError, UnsupportedFormatError

logger = logging.getLogger(__name__)

PRODUCT_NAME = "TiDB"
REPORT_FILE_MODE = 0o644
SEPARATOR = "-" * 67


class OutputFormat(str, Enum):
    TEXT = "text"
    MARKDOWN = "markdown"
    HTML = "html"


_FORMAT_ALIASES = {
    "": OutputFormat.TEXT,
    "text": OutputFormat.TEXT,
    "txt": OutputFormat.TEXT,
    "md": OutputFormat.MARKDOWN,
    "markdown": OutputFormat.MARKDOWN,
    "html": OutputFormat.HTML,
    "htm": OutputFormat.HTML,
}


def parse_output_format(value: Optional[str]) -> OutputFormat:
    """Parse a case-insensitive format alias.

    Raises:
        UnsupportedFormatError: for anything outside the alias table.
    """
    key = (value or "").strip().lower()
    try:
        return _FORMAT_ALIASES[key]
    except KeyError:
        raise UnsupportedFormatError(
            f"unsupported precheck output format {value!r} (expected text, markdown or html)"
        ) from None


def _or_unknown(version: str) -> str:
    return version if version else UNKNOWN_VERSION


def item_fields(item: RiskItem) -> List[Tuple[str, str]]:
    """Non-empty ``(label, value)`` pairs in display order."""
    fields = [
        ("Component", item.component),
        ("Parameter", item.parameter),
        ("Scope", item.scope),
        ("Current", item.current),
        ("New Default", item.new_default),
        ("Impact", item.impact),
        ("Suggestion", item.suggestion),
        ("R&D Comments", item.comments),
        ("Reason", item.reason),
    ]
    return [(label, value) for label, value in fields if value]


def render_text(out: TextIO, report: RiskReport) -> None:
    """Write the human-readable report to ``out``."""
    out.write("Running parameter precheck...\n")
    out.write(f"  Source Version: {_or_unknown(report.source_version)}\n")
    out.write(f"  Target Version: {_or_unknown(report.target_version)}\n\n")

    summary = report.summary()
    out.write("[PRECHECK REPORT - SUMMARY]\n")
    out.write(f"Found {summary.total} potential risks:\n")
    out.write(f"  - [{RiskLevel.HIGH.value}]: {summary.high}\n")
    out.write(f"  - [{RiskLevel.MEDIUM.value}]: {summary.medium}\n\n")

    for _, items in report.buckets():
        if not items:
            continue
        out.write(SEPARATOR + "\n")
        for item in items:
            _write_text_item(out, item)

    if summary.total == 0:
        out.write("No parameter risks detected.\n")
    out.write(SEPARATOR + "\n")


def _write_text_item(out: TextIO, item: RiskItem) -> None:
    tag = item.level.value.upper()
    if item.category:
        out.write(f"[{tag}] ({item.category})\n")
    else:
        out.write(f"[{tag}]\n")
    for label, value in item_fields(item):
        out.write(f"  - {label}: {value}\n")
    out.write("\n")


def _md_cell(value: str) -> str:
    return value.replace("\\", "\\\\").replace("|", "\\|").replace("\n", "<br>")


def render_markdown(report: RiskReport) -> str:
    summary = report.summary()
    lines = []
    lines.append(f"# {PRODUCT_NAME} Upgrade Precheck Report")
    lines.append("")
    lines.append(f"- **Source Version**: {_md_cell(_or_unknown(report.source_version))}")
    lines.append(f"- **Target Version**: {_md_cell(_or_unknown(report.target_version))}")
    lines.append("")
    lines.append("## Summary")
    lines.append("")
    lines.append("| Severity | Count |")
    lines.append("| --- | --- |")
    lines.append(f"| High | {summary.high} |")
    lines.append(f"| Medium | {summary.medium} |")
    lines.append(f"| Low | {summary.low} |")
    lines.append(f"| **Total** | {summary.total} |")
    lines.append("")

    if summary.total == 0:
        lines.append("No parameter risks detected.")
        lines.append("")
        return "\n".join(lines)

    for level, items in report.buckets():
        if not items:
            continue
        lines.append(f"## {level.value.title()} ({len(items)})")
        lines.append("")
        for index, item in enumerate(items, start=1):
            title = item.parameter or item.category or level.value.title()
            heading = f"### {index}. `{title}`" if item.parameter else f"### {index}. {title}"
            lines.append(heading)
            lines.append("")
            if item.category:
                lines.append(f"_{item.category}_")
                lines.append("")
            lines.append("| Field | Value |")
            lines.append("| --- | --- |")
            for label, value in item_fields(item):
                lines.append(f"| {label} | {_md_cell(value)} |")
            lines.append("")
    return "\n".join(lines)


_HTML_STYLE = """\
body { font-family: -apple-system, Helvetica, Arial, sans-serif; margin: 2em; color: #222; }
table { border-collapse: collapse; margin-bottom: 1.5em; }
th, td { border: 1px solid #ccc; padding: 4px 10px; text-align: left; vertical-align: top; }
th { background: #f3f3f3; }
.high h2 { color: #b00020; }
.medium h2 { color: #b26a00; }
.low h2 { color: #336699; }"""


def render_html(report: RiskReport) -> str:
    esc = html.escape
    summary = report.summary()
    title = f"{PRODUCT_NAME} Upgrade Precheck Report"
    parts = [
        "<!DOCTYPE html>",
        '<html lang="en">',
        "<head>",
        '<meta charset="utf-8">',
        f"<title>{esc(title)}</title>",
        f"<style>\n{_HTML_STYLE}\n</style>",
        "</head>",
        "<body>",
        f"<h1>{esc(title)}</h1>",
        "<table>",
        f"<tr><th>Source Version</th><td>{esc(_or_unknown(report.source_version))}</td></tr>",
        f"<tr><th>Target Version</th><td>{esc(_or_unknown(report.target_version))}</td></tr>",
        "</table>",
        "<h2>Summary</h2>",
        "<table>",
        "<tr><th>Severity</th><th>Count</th></tr>",
        f"<tr><td>High</td><td>{summary.high}</td></tr>",
        f"<tr><td>Medium</td><td>{summary.medium}</td></tr>",
        f"<tr><td>Low</td><td>{summary.low}</td></tr>",
        f"<tr><th>Total</th><th>{summary.total}</th></tr>",
        "</table>",
    ]
    if summary.total == 0:
        parts.append("<p>No parameter risks detected.</p>")

    for level, items in report.buckets():
        if not items:
            continue
        css = level.name.lower()
        parts.append(f'<section class="{css}">')
        parts.append(f"<h2>{esc(level.value.title())} ({len(items)})</h2>")
        for item in items:
            caption = item.category or level.value.title()
            parts.append("<table>")
            parts.append(f"<caption>{esc(caption)}</caption>")
            for label, value in item_fields(item):
                parts.append(f"<tr><th>{esc(label)}</th><td>{esc(value)}</td></tr>")
            parts.append("</table>")
        parts.append("</section>")

    parts.append("</body>")
    parts.append("</html>")
    return "\n".join(parts) + "\n"


def render_report(report: RiskReport, fmt: OutputFormat) -> bytes:
    """Render ``report`` to a UTF-8 payload.

    Raises:
        UnsupportedFormatError: if ``fmt`` is not an OutputFormat.
    """
    if fmt == OutputFormat.TEXT:
        buf = io.StringIO()
        render_text(buf, report)
        text = buf.getvalue()
    elif fmt == OutputFormat.MARKDOWN:
        text = render_markdown(report)
    elif fmt == OutputFormat.HTML:
        text = render_html(report)
    else:
        raise UnsupportedFormatError(f"unsupported precheck output format {fmt!r}")
    return text.encode("utf-8")


def emit_report(
    report: RiskReport,
    fmt: OutputFormat,
    output_path: Optional[Union[str, os.PathLike]],
    console: Console,
) -> None:
    """Send the report to the console or to ``output_path``.

    Text reports without a path are printed directly; everything else is
    rendered first and then printed or written with mode 0644.

    Raises:
        ReportOutputError: if the report cannot be written.
    """
    if fmt == OutputFormat.TEXT and not output_path:
        try:
            render_text(console.out, report)
            console.out.flush()
        except OSError as e:
            raise ReportOutputError(f"failed to print precheck report: {e}") from e
        return

    payload = render_report(report, fmt)

    if not output_path:
        try:
            console.write(payload.decode("utf-8") + "\n")
        except OSError as e:
            raise ReportOutputError(f"failed to print precheck report: {e}") from e
        return

    path = Path(output_path)
    try:
        path.write_bytes(payload)
        os.chmod(path, REPORT_FILE_MODE)
    except OSError as e:
        raise ReportOutputError(f"failed to write precheck report to {path}: {e}") from e
    logger.info("Precheck report saved to %s", path)
