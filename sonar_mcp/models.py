"""Data models for SonarQube API responses.

Each record is a frozen dataclass built from the raw JSON with
``from_api()`` and serialized back to plain JSON types with ``to_dict()``:
    - Issue
    - Measure / Period / ComponentRef / MetricsReport
    - CoverageSummary
    - GateCondition / QualityGateStatus
    - Component
    - BranchInfo
    - PullRequestInfo

``from_api()`` raises KeyError / TypeError / ValueError on a malformed
payload; the client turns those into domain errors.
"""

from dataclasses import asdict, dataclass, field
from typing import Any

SEVERITIES = ("INFO", "MINOR", "MAJOR", "CRITICAL", "BLOCKER")
ISSUE_TYPES = ("CODE_SMELL", "BUG", "VULNERABILITY", "SECURITY_HOTSPOT")
ISSUE_STATUSES = ("OPEN", "CONFIRMED", "REOPENED", "RESOLVED", "CLOSED")


class _Record:
    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# ---------------------------------------------------------------------------
# Issues
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Issue(_Record):
    key: str
    rule: str
    severity: str
    component: str
    project: str
    status: str
    message: str
    type: str
    creation_date: str
    update_date: str
    line: int | None = None
    tags: tuple[str, ...] = ()
    effort: str | None = None

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> "Issue":
        line = raw.get("line")
        return cls(
            key=raw["key"],
            rule=raw["rule"],
            severity=raw["severity"],
            component=raw["component"],
            project=raw["project"],
            status=raw["status"],
            message=raw.get("message", ""),
            type=raw["type"],
            creation_date=raw["creationDate"],
            update_date=raw.get("updateDate", raw["creationDate"]),
            line=int(line) if line is not None else None,
            tags=tuple(raw.get("tags") or ()),
            effort=raw.get("effort"),
        )


# ---------------------------------------------------------------------------
# Measures
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Period(_Record):
    index: int
    value: str


@dataclass(frozen=True)
class Measure(_Record):
    metric: str
    value: str
    periods: tuple[Period, ...] = ()

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> "Measure":
        periods = list(raw.get("periods") or ())
        # Older servers report a single leak period under "period"
        if not periods and isinstance(raw.get("period"), dict):
            periods = [raw["period"]]
        value = raw.get("value")
        if value is None and periods:
            value = periods[0].get("value")
        return cls(
            metric=raw["metric"],
            value="" if value is None else str(value),
            periods=tuple(Period(int(p["index"]), str(p["value"])) for p in periods),
        )


@dataclass(frozen=True)
class ComponentRef(_Record):
    key: str
    name: str
    qualifier: str


@dataclass(frozen=True)
class MetricsReport(_Record):
    component: ComponentRef
    measures: tuple[Measure, ...] = field(default_factory=tuple)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "MetricsReport":
        comp = data["component"]
        return cls(
            component=ComponentRef(
                key=comp["key"],
                name=comp.get("name", comp["key"]),
                qualifier=comp.get("qualifier", ""),
            ),
            measures=tuple(Measure.from_api(m) for m in comp.get("measures") or ()),
        )

    def value_of(self, metric: str) -> str | None:
        """Return the raw value of *metric*, or None when it was not reported."""
        for measure in self.measures:
            if measure.metric == metric:
                return measure.value
        return None


@dataclass(frozen=True)
class CoverageSummary(_Record):
    component: str
    coverage: float = 0.0
    line_coverage: float = 0.0
    branch_coverage: float = 0.0
    uncovered_lines: int = 0
    uncovered_conditions: int = 0


# ---------------------------------------------------------------------------
# Quality gate
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class GateCondition(_Record):
    metric_key: str
    status: str
    actual_value: str | None = None
    error_threshold: str | None = None
    comparator: str | None = None


@dataclass(frozen=True)
class QualityGateStatus(_Record):
    status: str
    conditions: tuple[GateCondition, ...] = ()

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "QualityGateStatus":
        project_status = data["projectStatus"]
        return cls(
            status=project_status["status"],
            conditions=tuple(
                GateCondition(
                    metric_key=c["metricKey"],
                    status=c["status"],
                    actual_value=c.get("actualValue"),
                    error_threshold=c.get("errorThreshold"),
                    comparator=c.get("comparator"),
                )
                for c in project_status.get("conditions") or ()
            ),
        )


# ---------------------------------------------------------------------------
# Components, branches, pull requests
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Component(_Record):
    key: str
    name: str
    qualifier: str
    path: str | None = None

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> "Component":
        return cls(
            key=raw["key"],
            name=raw.get("name", raw["key"]),
            qualifier=raw.get("qualifier", ""),
            path=raw.get("path"),
        )


@dataclass(frozen=True)
class BranchInfo(_Record):
    name: str
    type: str
    is_main: bool = False
    quality_gate_status: str | None = None
    analysis_date: str | None = None

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> "BranchInfo":
        return cls(
            name=raw["name"],
            type=raw.get("type", "BRANCH"),
            is_main=bool(raw.get("isMain", False)),
            quality_gate_status=(raw.get("status") or {}).get("qualityGateStatus"),
            analysis_date=raw.get("analysisDate"),
        )


@dataclass(frozen=True)
class PullRequestInfo(_Record):
    key: str
    title: str
    branch: str
    base: str
    quality_gate_status: str | None = None
    analysis_date: str | None = None

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> "PullRequestInfo":
        return cls(
            key=str(raw["key"]),
            title=raw.get("title", ""),
            branch=raw["branch"],
            base=raw.get("base", ""),
            quality_gate_status=(raw.get("status") or {}).get("qualityGateStatus"),
            analysis_date=raw.get("analysisDate"),
        )
