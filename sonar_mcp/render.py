"""Markdown rendering of client records for the tool host.

Functions:
    issues(items, title, branch, pull_request)    -> str
    coverage(summary, branch, pull_request)       -> str
    metrics(report)                               -> str
    project_status(status)                        -> str
    components(items)                             -> str
    branches(items)                               -> str
    pull_requests(items)                          -> str
"""

from collections.abc import Sequence
from datetime import datetime

from sonar_mcp.models import (
    ISSUE_TYPES,
    SEVERITIES,
    BranchInfo,
    Component,
    CoverageSummary,
    Issue,
    MetricsReport,
    PullRequestInfo,
    QualityGateStatus,
)

_SEPARATOR = "\n---\n"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _date(value: str | None, missing: str = "Never") -> str:
    """Return the calendar date of a SonarQube timestamp."""
    if not value:
        return missing
    try:
        return datetime.strptime(value, "%Y-%m-%dT%H:%M:%S%z").date().isoformat()
    except ValueError:
        return value


def _context(branch: str | None = None, pull_request: str | None = None) -> str:
    if pull_request:
        return f" (Pull Request: {pull_request})"
    if branch:
        return f" (Branch: {branch})"
    return ""


def _counts(tally: dict[str, int]) -> str:
    return ", ".join(f"{key}: {n}" for key, n in tally.items() if n)


def build_summary(items: Sequence[Issue]) -> dict:
    """Count issues by severity (highest first) and by type."""
    by_severity = {s: 0 for s in reversed(SEVERITIES)}
    by_type = {t: 0 for t in ISSUE_TYPES}

    for issue in items:
        if issue.severity in by_severity:
            by_severity[issue.severity] += 1
        if issue.type in by_type:
            by_type[issue.type] += 1

    return {
        "total": len(items),
        "by_severity": by_severity,
        "by_type": by_type,
    }


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def issues(
    items: Sequence[Issue],
    title: str = "issues",
    branch: str | None = None,
    pull_request: str | None = None,
) -> str:
    summary = build_summary(items)
    header = f"Found {summary['total']} {title}{_context(branch, pull_request)}"
    if not items:
        return header + "."

    severity_counts = _counts(summary["by_severity"])
    if severity_counts:
        header += f" ({severity_counts})"
    header += ":\n"
    type_counts = _counts(summary["by_type"])
    if type_counts:
        header += f"Types: {type_counts}\n"
    blocks = [
        f"**{i.severity}** - {i.type}\n"
        f"Rule: {i.rule}\n"
        f"Component: {i.component}\n"
        f"Line: {i.line if i.line is not None else 'N/A'}\n"
        f"Message: {i.message}\n"
        f"Status: {i.status}\n"
        f"Created: {_date(i.creation_date, 'N/A')}\n"
        for i in items
    ]
    return f"{header}\n" + _SEPARATOR.join(blocks)


def coverage(
    summary: CoverageSummary,
    branch: str | None = None,
    pull_request: str | None = None,
) -> str:
    return (
        f"Coverage Report for {summary.component}{_context(branch, pull_request)}:\n\n"
        f"Overall Coverage: {summary.coverage:.2f}%\n"
        f"Line Coverage: {summary.line_coverage:.2f}%\n"
        f"Branch Coverage: {summary.branch_coverage:.2f}%\n"
        f"Uncovered Lines: {summary.uncovered_lines}\n"
        f"Uncovered Conditions: {summary.uncovered_conditions}"
    )


def metrics(report: MetricsReport) -> str:
    lines = []
    for m in report.measures:
        period = f" (Period: {m.periods[0].value})" if m.periods else ""
        lines.append(f"**{m.metric}**: {m.value}{period}")
    body = "\n".join(lines) or "No metrics available"
    return f"Metrics for {report.component.key}:\n\n{body}"


def project_status(status: QualityGateStatus) -> str:
    conditions = "\n".join(
        f"- {c.metric_key}: {c.actual_value if c.actual_value is not None else 'N/A'} ({c.status})"
        for c in status.conditions
    ) or "No conditions"
    return f"Project Status:\n\nQuality Gate: {status.status}\nConditions:\n{conditions}"


def components(items: Sequence[Component]) -> str:
    blocks = [
        f"**{c.name}** ({c.qualifier})\n"
        f"Key: {c.key}\n"
        f"Path: {c.path or 'N/A'}\n"
        for c in items
    ]
    return f"Project Components ({len(items)} files):\n\n" + _SEPARATOR.join(blocks)


def branches(items: Sequence[BranchInfo]) -> str:
    blocks = [
        f"**{b.name}** ({b.type})\n"
        f"Status: {b.quality_gate_status or 'N/A'}\n"
        f"Main: {'Yes' if b.is_main else 'No'}\n"
        f"Last Analysis: {_date(b.analysis_date)}\n"
        for b in items
    ]
    return "Available Branches:\n\n" + (_SEPARATOR.join(blocks) or "No branches found")


def pull_requests(items: Sequence[PullRequestInfo]) -> str:
    blocks = [
        f"**PR #{p.key}** - {p.title}\n"
        f"Branch: {p.branch}\n"
        f"Base: {p.base}\n"
        f"Status: {p.quality_gate_status or 'N/A'}\n"
        f"Last Analysis: {_date(p.analysis_date)}\n"
        for p in items
    ]
    return "Available Pull Requests:\n\n" + (_SEPARATOR.join(blocks) or "No pull requests found")
