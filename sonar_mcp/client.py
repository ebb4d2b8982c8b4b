"""SonarQube API client.

Usage:
    client = SonarClient(Config(url="https://sonar.example.com", token="squ_xxx"))
    issues = await client.get_issues("my-project", types=["BUG"], branch="main")
    cov    = await client.get_coverage("my-project", pull_request="42")

Every operation issues exactly one GET request. The blocking ``requests``
call runs in a worker thread so operations can be awaited side by side.
Results are fetched fresh on each call; nothing is cached or retried.
"""

import asyncio
import logging
import math
import warnings
from collections.abc import Callable, Sequence
from typing import Any, TypeVar

import requests

from sonar_mcp.config import ENV_PROJECT_KEY, Config
from sonar_mcp.models import (
    BranchInfo,
    Component,
    CoverageSummary,
    Issue,
    MetricsReport,
    PullRequestInfo,
    QualityGateStatus,
)
from sonar_mcp.selector import as_params, select

logger = logging.getLogger(__name__)

T = TypeVar("T")

PAGE_SIZE = 500
DEFAULT_TIMEOUT = 30

#: Metrics fetched by get_metrics() when the caller names none
DEFAULT_METRIC_KEYS: tuple[str, ...] = (
    "coverage",
    "line_coverage",
    "branch_coverage",
    "uncovered_lines",
    "uncovered_conditions",
    "ncloc",
    "complexity",
    "cognitive_complexity",
    "duplicated_lines_density",
    "sqale_index",
    "reliability_rating",
    "security_rating",
    "sqale_rating",
)

COVERAGE_METRIC_KEYS: tuple[str, ...] = (
    "coverage",
    "line_coverage",
    "branch_coverage",
    "uncovered_lines",
    "uncovered_conditions",
)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class SonarClientError(Exception):
    """Base exception for all client errors."""


class MissingProjectKeyError(SonarClientError):
    """Raised when neither the call nor the configuration names a project."""


class AuthenticationError(SonarClientError):
    """Raised on HTTP 401: invalid or expired token."""


class PermissionDeniedError(SonarClientError):
    """Raised on HTTP 403: token lacks permission on the resource."""


class NotFoundError(SonarClientError):
    """Raised on HTTP 404: project, branch, PR or resource not found."""


class ServerUnreachableError(SonarClientError):
    """Raised when the server refuses the connection or cannot be reached."""


class UpstreamError(SonarClientError):
    """Raised on any other transport failure or unexpected response."""

    def __init__(self, detail: str, *, status_code: int | None = None) -> None:
        super().__init__(detail)
        self.detail = detail
        self.status_code = status_code


class _FetchError(SonarClientError):
    action = "fetch data"

    def __init__(self, cause: Exception) -> None:
        super().__init__(f"Failed to {self.action}: {cause!r}")
        self.cause = cause


class IssueFetchError(_FetchError):
    """Raised when an issue search response cannot be read."""

    action = "fetch issues"


class BranchListFetchError(_FetchError):
    """Raised when a branch list response cannot be read."""

    action = "fetch branches"


class PullRequestListFetchError(_FetchError):
    """Raised when a pull request list response cannot be read."""

    action = "fetch pull requests"


_STATUS_ERRORS: dict[int, tuple[type[SonarClientError], str]] = {
    401: (AuthenticationError,
          "Authentication failed: check that your token is valid and not expired."),
    403: (PermissionDeniedError,
          "Access denied: check the permissions of your token."),
    404: (NotFoundError,
          "Resource not found: check your project key, branch or pull request"),
}


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class SonarClient:
    """Async facade over the SonarQube REST API."""

    def __init__(self, config: Config, timeout: int = DEFAULT_TIMEOUT) -> None:
        self.config = config
        self.base_url = f"{config.url.rstrip('/')}/api"
        self._timeout = timeout
        self._session = requests.Session()
        # SonarQube auth: token as username, empty password
        self._session.auth = (config.token, "")
        self._session.headers.update({
            "Accept": "application/json",
            "Content-Type": "application/json",
        })

    def close(self) -> None:
        self._session.close()

    # ------------------------------------------------------------------
    # Issues
    # ------------------------------------------------------------------

    async def get_issues(
        self,
        project_key: str | None = None,
        types: Sequence[str] | None = None,
        severities: Sequence[str] | None = None,
        statuses: Sequence[str] | None = None,
        branch: str | None = None,
        pull_request: str | None = None,
    ) -> list[Issue]:
        """Return the first page (up to 500) of issues matching the filters.

        Empty filter lists are left out of the query. *pull_request* takes
        precedence over *branch*.

        Raises:
            MissingProjectKeyError: no project key given or configured
            IssueFetchError:        the response could not be read
            SonarClientError:       any classified transport failure
        """
        params: dict[str, Any] = {
            "componentKeys": self._project_key(project_key),
            "ps": PAGE_SIZE,
        }
        if types:
            params["types"] = ",".join(types)
        if severities:
            params["severities"] = ",".join(severities)
        if statuses:
            params["statuses"] = ",".join(statuses)
        params.update(as_params(select(branch, pull_request)))

        data = await self.get("/issues/search", params)
        issues = self._parse("/issues/search", data, _read_issues, wrap=IssueFetchError)
        _warn_if_truncated(data, len(issues))
        return issues

    async def get_issues_by_type(
        self,
        issue_type: str,
        project_key: str | None = None,
        branch: str | None = None,
        pull_request: str | None = None,
    ) -> list[Issue]:
        return await self.get_issues(
            project_key, [issue_type], None, None, branch, pull_request
        )

    async def get_code_smells(self, project_key=None, branch=None, pull_request=None) -> list[Issue]:
        return await self.get_issues_by_type("CODE_SMELL", project_key, branch, pull_request)

    async def get_bugs(self, project_key=None, branch=None, pull_request=None) -> list[Issue]:
        return await self.get_issues_by_type("BUG", project_key, branch, pull_request)

    async def get_vulnerabilities(self, project_key=None, branch=None, pull_request=None) -> list[Issue]:
        return await self.get_issues_by_type("VULNERABILITY", project_key, branch, pull_request)

    async def get_security_hotspots(self, project_key=None, branch=None, pull_request=None) -> list[Issue]:
        return await self.get_issues_by_type("SECURITY_HOTSPOT", project_key, branch, pull_request)

    # ------------------------------------------------------------------
    # Measures
    # ------------------------------------------------------------------

    async def get_metrics(
        self,
        project_key: str | None = None,
        metric_keys: Sequence[str] | None = None,
        branch: str | None = None,
        pull_request: str | None = None,
    ) -> MetricsReport:
        """Return the measures of the project component.

        Falls back to DEFAULT_METRIC_KEYS when *metric_keys* is empty.
        """
        params: dict[str, Any] = {
            "component": self._project_key(project_key),
            "metricKeys": ",".join(metric_keys or DEFAULT_METRIC_KEYS),
        }
        params.update(as_params(select(branch, pull_request)))

        data = await self.get("/measures/component", params)
        return self._parse("/measures/component", data, MetricsReport.from_api)

    async def get_coverage(
        self,
        project_key: str | None = None,
        branch: str | None = None,
        pull_request: str | None = None,
    ) -> CoverageSummary:
        """Return coverage figures; metrics the server did not report are 0."""
        report = await self.get_metrics(
            project_key, COVERAGE_METRIC_KEYS, branch, pull_request
        )
        return CoverageSummary(
            component=report.component.key,
            coverage=_number(report.value_of("coverage")),
            line_coverage=_number(report.value_of("line_coverage")),
            branch_coverage=_number(report.value_of("branch_coverage")),
            uncovered_lines=int(_number(report.value_of("uncovered_lines"))),
            uncovered_conditions=int(_number(report.value_of("uncovered_conditions"))),
        )

    # ------------------------------------------------------------------
    # Project
    # ------------------------------------------------------------------

    async def get_project_status(
        self,
        project_key: str | None = None,
        branch: str | None = None,
        pull_request: str | None = None,
    ) -> QualityGateStatus:
        params: dict[str, Any] = {"projectKey": self._project_key(project_key)}
        params.update(as_params(select(branch, pull_request)))

        data = await self.get("/qualitygates/project_status", params)
        return self._parse("/qualitygates/project_status", data, QualityGateStatus.from_api)

    async def get_components(
        self,
        project_key: str | None = None,
        branch: str | None = None,
        pull_request: str | None = None,
    ) -> list[Component]:
        """Return the files (first page) of the project component tree."""
        params: dict[str, Any] = {
            "component": self._project_key(project_key),
            "qualifiers": "FIL",
            "ps": PAGE_SIZE,
        }
        params.update(as_params(select(branch, pull_request)))

        data = await self.get("/components/tree", params)
        return self._parse(
            "/components/tree", data,
            lambda d: [Component.from_api(c) for c in d["components"]],
        )

    async def get_branches(self, project_key: str | None = None) -> list[BranchInfo]:
        params = {"project": self._project_key(project_key)}
        data = await self.get("/project_branches/list", params)
        return self._parse(
            "/project_branches/list", data,
            lambda d: [BranchInfo.from_api(b) for b in d["branches"]],
            wrap=BranchListFetchError,
        )

    async def get_pull_requests(self, project_key: str | None = None) -> list[PullRequestInfo]:
        params = {"project": self._project_key(project_key)}
        data = await self.get("/project_pull_requests/list", params)
        return self._parse(
            "/project_pull_requests/list", data,
            lambda d: [PullRequestInfo.from_api(p) for p in d["pullRequests"]],
            wrap=PullRequestListFetchError,
        )

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def get(self, endpoint: str, params: dict[str, Any] | None = None) -> Any:
        """Perform a single GET request and return the parsed JSON response.

        *endpoint* is relative to ``{url}/api``, e.g. ``/issues/search``.

        Raises:
            AuthenticationError:    HTTP 401
            PermissionDeniedError:  HTTP 403
            NotFoundError:          HTTP 404
            ServerUnreachableError: connection refused or host unreachable
            UpstreamError:          any other failure
        """
        return await asyncio.to_thread(self._request, endpoint, params or {})

    def _request(self, endpoint: str, params: dict[str, Any]) -> Any:
        url = f"{self.base_url}{endpoint}"
        logger.debug("GET %s params=%s", url, params)
        try:
            response = self._session.get(url, params=params, timeout=self._timeout)
        except requests.exceptions.ConnectionError as exc:
            raise ServerUnreachableError(
                f"Cannot connect to SonarQube server at '{self.config.url}'. "
                "Check the URL and make sure the server is running."
            ) from exc
        except requests.exceptions.Timeout as exc:
            raise UpstreamError(
                f"Request timed out after {self._timeout}s while contacting '{url}'"
            ) from exc
        except requests.exceptions.RequestException as exc:
            raise UpstreamError(f"SonarQube API error: {exc}") from exc

        if response.status_code in _STATUS_ERRORS:
            error_cls, message = _STATUS_ERRORS[response.status_code]
            raise error_cls(f"{message} ({url})")
        if not response.ok:
            raise UpstreamError(
                f"Unexpected response {response.status_code} from {url}: {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamError(f"Invalid JSON in response from {url}") from exc

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _project_key(self, explicit: str | None) -> str:
        key = explicit or self.config.project_key
        if not key:
            raise MissingProjectKeyError(
                "Project key is required. Provide it as a parameter or set the "
                f"{ENV_PROJECT_KEY} environment variable."
            )
        return key

    @staticmethod
    def _parse(
        endpoint: str,
        data: Any,
        build: Callable[[Any], T],
        wrap: type[_FetchError] | None = None,
    ) -> T:
        try:
            return build(data)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            if wrap is not None:
                raise wrap(exc) from exc
            raise UpstreamError(f"Unexpected response from {endpoint}: {exc!r}") from exc


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _read_issues(data: dict[str, Any]) -> list[Issue]:
    return [Issue.from_api(raw) for raw in data["issues"]]


def _warn_if_truncated(data: dict[str, Any], fetched: int) -> None:
    """Warn when the server holds more issues than the single page returned."""
    paging = data.get("paging")
    if not isinstance(paging, dict):
        paging = {}
    total = paging.get("total", data.get("total"))
    if isinstance(total, int) and total > fetched:
        warnings.warn(
            f"Only {fetched} of {total} issues were returned (page size {PAGE_SIZE}). "
            "Narrow the query with type, severity or status filters to see the rest.",
            UserWarning,
            stacklevel=2,
        )


def _number(value: str | None) -> float:
    """Return *value* as a float, or 0 when absent, not numeric or not finite."""
    if value is None:
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0
