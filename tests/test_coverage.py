"""Tests for get_metrics() and get_coverage() in sonar_mcp/client.py"""

import asyncio
from urllib.parse import parse_qsl, urlsplit

import pytest

from sonar_mcp.client import (
    COVERAGE_METRIC_KEYS,
    DEFAULT_METRIC_KEYS,
    MissingProjectKeyError,
    UpstreamError,
)
from sonar_mcp.models import ComponentRef, CoverageSummary, Measure, Period

BASE_URL = "https://sonar.example.com"
URL = f"{BASE_URL}/api/measures/component"
PROJECT = "proj1"


# --------------------------------------------------------------------------- #
# Helpers
# --------------------------------------------------------------------------- #

def _measure(metric: str, value, *, period: bool = False) -> dict:
    """Build a SonarQube measure dict.  Use *period=True* to simulate the
    legacy ``period`` format used by older SonarQube instances."""
    if period:
        return {"metric": metric, "period": {"index": 1, "value": str(value)}}
    return {"metric": metric, "value": str(value)}


def _component(measures: list[dict]) -> dict:
    return {"component": {"key": PROJECT, "name": "Project One", "qualifier": "TRK",
                          "measures": measures}}


def _params(request) -> dict:
    return dict(parse_qsl(urlsplit(request.url).query))


def run(coro):
    return asyncio.run(coro)


# --------------------------------------------------------------------------- #
# get_metrics
# --------------------------------------------------------------------------- #

class TestGetMetrics:
    def test_default_metric_keys_on_branch(self, client, requests_mock):
        adapter = requests_mock.get(URL, json=_component([]))
        run(client.get_metrics("proj1", None, "release/2.0"))
        assert _params(adapter.last_request) == {
            "component": "proj1",
            "metricKeys": ",".join(DEFAULT_METRIC_KEYS),
            "branch": "release/2.0",
        }

    def test_default_list_has_thirteen_keys(self):
        assert len(DEFAULT_METRIC_KEYS) == 13
        assert len(set(DEFAULT_METRIC_KEYS)) == 13
        assert {"reliability_rating", "security_rating", "sqale_rating"} <= set(DEFAULT_METRIC_KEYS)

    def test_custom_metric_keys(self, client, requests_mock):
        adapter = requests_mock.get(URL, json=_component([]))
        run(client.get_metrics(metric_keys=["ncloc", "complexity"]))
        assert _params(adapter.last_request)["metricKeys"] == "ncloc,complexity"

    def test_empty_metric_keys_fall_back_to_defaults(self, client, requests_mock):
        adapter = requests_mock.get(URL, json=_component([]))
        run(client.get_metrics(metric_keys=[]))
        assert _params(adapter.last_request)["metricKeys"] == ",".join(DEFAULT_METRIC_KEYS)

    def test_pull_request_wins_over_branch(self, client, requests_mock):
        adapter = requests_mock.get(URL, json=_component([]))
        run(client.get_metrics(branch="main", pull_request="12"))
        params = _params(adapter.last_request)
        assert params["pullRequest"] == "12"
        assert "branch" not in params

    def test_report_is_normalized(self, client, requests_mock):
        requests_mock.get(URL, json=_component([
            _measure("ncloc", 1200),
            {"metric": "coverage", "value": "81.2",
             "periods": [{"index": 1, "value": "2.5"}]},
        ]))
        report = run(client.get_metrics())
        assert report.component == ComponentRef(key=PROJECT, name="Project One", qualifier="TRK")
        assert report.measures == (
            Measure("ncloc", "1200"),
            Measure("coverage", "81.2", (Period(1, "2.5"),)),
        )

    def test_non_object_measure_raises_upstream_error(self, client, requests_mock):
        requests_mock.get(URL, json=_component(["x"]))
        with pytest.raises(UpstreamError, match="Unexpected response"):
            run(client.get_metrics())

    def test_legacy_period_format_parsed(self, client, requests_mock):
        requests_mock.get(URL, json=_component([_measure("new_coverage", "77.3", period=True)]))
        report = run(client.get_metrics())
        assert report.value_of("new_coverage") == "77.3"
        assert report.measures[0].periods == (Period(1, "77.3"),)

    def test_missing_component_raises_upstream_error(self, client, requests_mock):
        requests_mock.get(URL, json={"errors": [{"msg": "boom"}]})
        with pytest.raises(UpstreamError, match="/measures/component"):
            run(client.get_metrics())

    def test_missing_project_key(self, keyless_client, requests_mock):
        with pytest.raises(MissingProjectKeyError):
            run(keyless_client.get_metrics())
        assert not requests_mock.called


# --------------------------------------------------------------------------- #
# get_coverage
# --------------------------------------------------------------------------- #

class TestGetCoverage:
    def test_requests_only_coverage_metrics(self, client, requests_mock):
        adapter = requests_mock.get(URL, json=_component([]))
        run(client.get_coverage())
        assert _params(adapter.last_request)["metricKeys"] == ",".join(COVERAGE_METRIC_KEYS)
        assert len(COVERAGE_METRIC_KEYS) == 5

    def test_values_parsed(self, client, requests_mock):
        requests_mock.get(URL, json=_component([
            _measure("coverage", "85.5"),
            _measure("line_coverage", "88.0"),
            _measure("branch_coverage", "70.1"),
            _measure("uncovered_lines", "120"),
            _measure("uncovered_conditions", "33"),
        ]))
        assert run(client.get_coverage()) == CoverageSummary(
            component=PROJECT,
            coverage=85.5,
            line_coverage=88.0,
            branch_coverage=70.1,
            uncovered_lines=120,
            uncovered_conditions=33,
        )

    def test_missing_metrics_default_to_zero(self, client, requests_mock):
        requests_mock.get(URL, json=_component([]))
        summary = run(client.get_coverage())
        assert summary == CoverageSummary(component=PROJECT)
        assert summary.coverage == 0
        assert summary.uncovered_lines == 0

    def test_measures_key_absent_defaults_to_zero(self, client, requests_mock):
        requests_mock.get(URL, json={"component": {"key": PROJECT}})
        assert run(client.get_coverage()) == CoverageSummary(component=PROJECT)

    def test_non_numeric_value_defaults_to_zero(self, client, requests_mock):
        requests_mock.get(URL, json=_component([_measure("coverage", "n/a")]))
        assert run(client.get_coverage()).coverage == 0

    @pytest.mark.parametrize("value", ["NaN", "Infinity", "-inf"])
    def test_non_finite_value_defaults_to_zero(self, client, requests_mock, value):
        requests_mock.get(URL, json=_component([
            _measure("coverage", value),
            _measure("uncovered_lines", value),
            _measure("uncovered_conditions", value),
        ]))
        summary = run(client.get_coverage())
        assert summary.coverage == 0
        assert summary.uncovered_lines == 0
        assert summary.uncovered_conditions == 0

    def test_pull_request_param_sent_to_api(self, client, requests_mock):
        adapter = requests_mock.get(URL, json=_component([]))
        run(client.get_coverage(PROJECT, "main", "99"))
        params = _params(adapter.last_request)
        assert params["pullRequest"] == "99"
        assert "branch" not in params

    def test_upstream_failure_propagates(self, client, requests_mock):
        requests_mock.get(URL, status_code=502)
        with pytest.raises(UpstreamError):
            run(client.get_coverage())
