"""MCP server exposing SonarClient operations as tools.

Tools:
    get_issues, get_code_smells, get_bugs, get_vulnerabilities,
    get_security_hotspots, get_coverage, get_metrics, get_project_status,
    get_components, get_branches, get_pull_requests

Every tool returns Markdown text. Client errors are reported to the host
as tool errors. Argument names are camelCase (projectKey, pullRequest,
metricKeys), the names SonarQube MCP hosts send.
"""

import logging
from collections.abc import Awaitable
from typing import TypeVar

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError

from sonar_mcp import git, render
from sonar_mcp.client import SonarClient, SonarClientError
from sonar_mcp.config import Config

logger = logging.getLogger(__name__)

T = TypeVar("T")

SERVER_NAME = "sonarqube-mcp-server"

#: (tool name, issue type, plural label)
_ISSUE_TYPE_TOOLS = (
    ("get_code_smells", "CODE_SMELL", "code smells"),
    ("get_bugs", "BUG", "bugs"),
    ("get_vulnerabilities", "VULNERABILITY", "vulnerabilities"),
    ("get_security_hotspots", "SECURITY_HOTSPOT", "security hotspots"),
)


async def call(awaitable: Awaitable[T]) -> T:
    """Await a client operation, turning client errors into tool errors."""
    try:
        return await awaitable
    except SonarClientError as exc:
        logger.debug("Tool call failed: %r", exc)
        raise ToolError(f"Error calling SonarQube API: {exc}") from exc


def _issue_type_tool(client: SonarClient, issue_type: str, label: str):
    async def tool(
        projectKey: str | None = None,
        branch: str | None = None,
        pullRequest: str | None = None,
    ) -> str:
        items = await call(
            client.get_issues_by_type(issue_type, projectKey, branch, pullRequest)
        )
        return render.issues(items, label, branch, pullRequest)

    return tool


def build_server(client: SonarClient) -> FastMCP:
    """Create a FastMCP server whose tools delegate to *client*."""
    mcp = FastMCP(SERVER_NAME)

    @mcp.tool()
    async def get_issues(
        projectKey: str | None = None,
        types: list[str] | None = None,
        severities: list[str] | None = None,
        statuses: list[str] | None = None,
        branch: str | None = None,
        pullRequest: str | None = None,
    ) -> str:
        """Get all issues (bugs, vulnerabilities, code smells) from SonarQube.

        Args:
            projectKey: Project key (uses the configured default if omitted).
            types: Issue types (CODE_SMELL, BUG, VULNERABILITY, SECURITY_HOTSPOT).
            severities: Severities (INFO, MINOR, MAJOR, CRITICAL, BLOCKER).
            statuses: Statuses (OPEN, CONFIRMED, REOPENED, RESOLVED, CLOSED).
            branch: Branch to analyze; "PR-636" or "636" selects a pull request.
            pullRequest: Pull request number, e.g. "636". Wins over branch.
        """
        items = await call(client.get_issues(
            projectKey, types, severities, statuses, branch, pullRequest
        ))
        return render.issues(items, "issues", branch, pullRequest)

    for name, issue_type, label in _ISSUE_TYPE_TOOLS:
        mcp.add_tool(
            _issue_type_tool(client, issue_type, label),
            name=name,
            description=(
                f"Get {label} from SonarQube. Arguments: projectKey, branch, "
                "pullRequest (all optional; pullRequest wins over branch)."
            ),
        )

    @mcp.tool()
    async def get_coverage(
        projectKey: str | None = None,
        branch: str | None = None,
        pullRequest: str | None = None,
    ) -> str:
        """Get code coverage figures from SonarQube.

        Args:
            projectKey: Project key (uses the configured default if omitted).
            branch: Branch to analyze; "PR-636" or "636" selects a pull request.
            pullRequest: Pull request number, e.g. "636". Wins over branch.
        """
        summary = await call(client.get_coverage(projectKey, branch, pullRequest))
        return render.coverage(summary, branch, pullRequest)

    @mcp.tool()
    async def get_metrics(
        projectKey: str | None = None,
        metricKeys: list[str] | None = None,
        branch: str | None = None,
        pullRequest: str | None = None,
    ) -> str:
        """Get project metrics (size, complexity, duplication, ratings) from SonarQube.

        Args:
            projectKey: Project key (uses the configured default if omitted).
            metricKeys: Metric keys to fetch, e.g. ["ncloc", "complexity"].
            branch: Branch to analyze; "PR-636" or "636" selects a pull request.
            pullRequest: Pull request number, e.g. "636". Wins over branch.
        """
        report = await call(client.get_metrics(projectKey, metricKeys, branch, pullRequest))
        return render.metrics(report)

    @mcp.tool()
    async def get_project_status(
        projectKey: str | None = None,
        branch: str | None = None,
        pullRequest: str | None = None,
    ) -> str:
        """Get the quality gate status of a project.

        Args:
            projectKey: Project key (uses the configured default if omitted).
            branch: Branch to analyze; "PR-636" or "636" selects a pull request.
            pullRequest: Pull request number, e.g. "636". Wins over branch.
        """
        status = await call(client.get_project_status(projectKey, branch, pullRequest))
        return render.project_status(status)

    @mcp.tool()
    async def get_components(
        projectKey: str | None = None,
        branch: str | None = None,
        pullRequest: str | None = None,
    ) -> str:
        """List the analyzed files of a project.

        Args:
            projectKey: Project key (uses the configured default if omitted).
            branch: Branch to analyze; "PR-636" or "636" selects a pull request.
            pullRequest: Pull request number, e.g. "636". Wins over branch.
        """
        items = await call(client.get_components(projectKey, branch, pullRequest))
        return render.components(items)

    @mcp.tool()
    async def get_branches(projectKey: str | None = None) -> str:
        """List the analyzed branches of a project.

        Args:
            projectKey: Project key (uses the configured default if omitted).
        """
        items = await call(client.get_branches(projectKey))
        return render.branches(items)

    @mcp.tool()
    async def get_pull_requests(projectKey: str | None = None) -> str:
        """List the analyzed pull requests of a project.

        Args:
            projectKey: Project key (uses the configured default if omitted).
        """
        items = await call(client.get_pull_requests(projectKey))
        return render.pull_requests(items)

    return mcp


def serve(config: Config) -> None:
    """Run the server over stdio until the host disconnects."""
    client = SonarClient(config)
    try:
        mcp = build_server(client)
        local_branch = git.current_branch()
        if local_branch:
            logger.info("Local git branch is '%s'; pass it as 'branch' to target it", local_branch)
        logger.info("SonarQube MCP server running on stdio (%s)", config.url)
        mcp.run()
    finally:
        client.close()
