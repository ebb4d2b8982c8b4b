"""CLI entry point: command definitions using Click.

Commands:
    init           Generate a template config file
    serve          Run the MCP server on stdio
    issues         Issues of a project, filtered by type / severity / status
    metrics        Measures of a project
    coverage       Coverage summary of a project
    status         Quality gate status of a project
    components     Analyzed files of a project
    branches       Analyzed branches of a project
    pull-requests  Analyzed pull requests of a project

Query commands print JSON to stdout (or to --output).
"""

import asyncio
import functools
import json
import logging
import sys
from typing import Any

import click
from dotenv import find_dotenv, load_dotenv

from sonar_mcp import __version__


# ---------------------------------------------------------------------------
# Helpers shared by all data commands
# ---------------------------------------------------------------------------

def _load_config(ctx: click.Context):
    """Load and validate the configuration. Exits on error."""
    from sonar_mcp.config import ConfigError, load

    try:
        return load(ctx.obj["config_path"])
    except ConfigError as exc:
        click.echo(f"Configuration error: {exc}", err=True)
        sys.exit(1)


def _run(ctx: click.Context, operation: str, *args) -> Any:
    """Call a SonarClient coroutine method and return its result."""
    from sonar_mcp.client import SonarClient

    config = _load_config(ctx)
    logging.getLogger(__name__).debug("Connecting to %s", config.url)

    client = SonarClient(config)
    try:
        return asyncio.run(getattr(client, operation)(*args))
    finally:
        client.close()


def _emit_json(data: Any, ctx: click.Context) -> None:
    """Write JSON to stdout or to the file specified by --output."""
    obj = ctx.obj
    indent = 2 if obj["pretty"] else None
    if isinstance(data, list):
        data = [item.to_dict() for item in data]
    else:
        data = data.to_dict()
    text = json.dumps(data, indent=indent, ensure_ascii=False)

    output_path: str | None = obj["output_path"]
    if output_path:
        with open(output_path, "w", encoding="utf-8") as f:
            f.write(text)
        click.echo(f"Report written to '{output_path}'", err=True)
    else:
        click.echo(text)


def _handle_client_errors(func):
    """Decorator that catches SonarClient exceptions and exits cleanly."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        from sonar_mcp.client import (
            AuthenticationError,
            MissingProjectKeyError,
            NotFoundError,
            PermissionDeniedError,
            ServerUnreachableError,
            SonarClientError,
        )

        try:
            return func(*args, **kwargs)
        except MissingProjectKeyError as exc:
            click.echo(f"Project error: {exc}", err=True)
            sys.exit(1)
        except AuthenticationError as exc:
            click.echo(f"Authentication error: {exc}", err=True)
            sys.exit(1)
        except PermissionDeniedError as exc:
            click.echo(f"Permission error: {exc}", err=True)
            sys.exit(1)
        except NotFoundError as exc:
            click.echo(f"Not found: {exc}", err=True)
            sys.exit(1)
        except ServerUnreachableError as exc:
            click.echo(f"Network error: {exc}", err=True)
            sys.exit(1)
        except SonarClientError as exc:
            click.echo(f"SonarQube error: {exc}", err=True)
            sys.exit(1)

    return wrapper


def _target_options(func):
    """Add --project, --branch, --pr and --detect-branch to a command."""
    func = click.option("--detect-branch", is_flag=True, default=False,
                        help="Use the checked-out git branch when --branch is omitted.")(func)
    func = click.option("--pr", "pull_request", default=None,
                        help="Pull request ID (wins over --branch).")(func)
    func = click.option("--branch", default=None,
                        help="Branch name; 'PR-42' or '42' selects a pull request.")(func)
    func = click.option("--project", "project_key", default=None,
                        help="Project key (defaults to SONARQUBE_PROJECT_KEY).")(func)
    return func


def _branch(branch: str | None, detect_branch: bool) -> str | None:
    if branch or not detect_branch:
        return branch
    from sonar_mcp.git import current_branch
    return current_branch()


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------

@click.group()
@click.option("--config", "config_path", default=None,
              help="Optional YAML configuration file.")
@click.option("--output", "output_path", default=None,
              help="Write JSON output to a file instead of stdout.")
@click.option("--pretty", is_flag=True, default=False,
              help="Pretty-print the JSON output.")
@click.option("--verbose", is_flag=True, default=False,
              help="Enable verbose logging.")
@click.version_option(__version__, prog_name="sonar-mcp")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, output_path: str | None,
        pretty: bool, verbose: bool) -> None:
    """SonarQube MCP bridge: serve tools over stdio or query from the shell."""
    load_dotenv(find_dotenv(usecwd=True))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        stream=sys.stderr,
        format="[%(levelname)s] %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["output_path"] = output_path
    ctx.obj["pretty"] = pretty


# ---------------------------------------------------------------------------
# init / serve
# ---------------------------------------------------------------------------

@cli.command("init")
@click.option("--output", "output_path", default="sonar-mcp.yaml", show_default=True,
              help="Path where the template config file will be written.")
def init_command(output_path: str) -> None:
    """Generate a template sonar-mcp.yaml file."""
    from sonar_mcp.config import ConfigError, generate_template
    try:
        generate_template(output_path)
        click.echo(f"Template written to '{output_path}'.")
        click.echo("Edit it with your server URL, token and default project key.")
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)


@cli.command("serve")
@click.pass_context
def serve_command(ctx: click.Context) -> None:
    """Run the MCP server on stdio."""
    from sonar_mcp.server import serve

    serve(_load_config(ctx))


# ---------------------------------------------------------------------------
# Query commands
# ---------------------------------------------------------------------------

@cli.command("issues")
@_target_options
@click.option("--type", "types", multiple=True,
              help="Issue type filter (repeatable): CODE_SMELL, BUG, VULNERABILITY, SECURITY_HOTSPOT.")
@click.option("--severity", "severities", multiple=True,
              help="Severity filter (repeatable): INFO, MINOR, MAJOR, CRITICAL, BLOCKER.")
@click.option("--status", "statuses", multiple=True,
              help="Status filter (repeatable): OPEN, CONFIRMED, REOPENED, RESOLVED, CLOSED.")
@click.pass_context
@_handle_client_errors
def issues_command(ctx: click.Context, project_key, branch, pull_request, detect_branch,
                   types, severities, statuses) -> None:
    """Issues of a project (first 500)."""
    items = _run(ctx, "get_issues", project_key, list(types), list(severities),
                 list(statuses), _branch(branch, detect_branch), pull_request)
    _emit_json(items, ctx)


@cli.command("metrics")
@_target_options
@click.option("--metric", "metric_keys", multiple=True,
              help="Metric key (repeatable). Defaults to the standard set.")
@click.pass_context
@_handle_client_errors
def metrics_command(ctx: click.Context, project_key, branch, pull_request, detect_branch,
                    metric_keys) -> None:
    """Measures of a project."""
    report = _run(ctx, "get_metrics", project_key, list(metric_keys),
                  _branch(branch, detect_branch), pull_request)
    _emit_json(report, ctx)


@cli.command("coverage")
@_target_options
@click.pass_context
@_handle_client_errors
def coverage_command(ctx: click.Context, project_key, branch, pull_request, detect_branch) -> None:
    """Coverage summary of a project."""
    summary = _run(ctx, "get_coverage", project_key,
                   _branch(branch, detect_branch), pull_request)
    _emit_json(summary, ctx)


@cli.command("status")
@_target_options
@click.pass_context
@_handle_client_errors
def status_command(ctx: click.Context, project_key, branch, pull_request, detect_branch) -> None:
    """Quality gate status of a project."""
    status = _run(ctx, "get_project_status", project_key,
                  _branch(branch, detect_branch), pull_request)
    _emit_json(status, ctx)


@cli.command("components")
@_target_options
@click.pass_context
@_handle_client_errors
def components_command(ctx: click.Context, project_key, branch, pull_request, detect_branch) -> None:
    """Analyzed files of a project (first 500)."""
    items = _run(ctx, "get_components", project_key,
                 _branch(branch, detect_branch), pull_request)
    _emit_json(items, ctx)


@cli.command("branches")
@click.option("--project", "project_key", default=None,
              help="Project key (defaults to SONARQUBE_PROJECT_KEY).")
@click.pass_context
@_handle_client_errors
def branches_command(ctx: click.Context, project_key) -> None:
    """Analyzed branches of a project."""
    _emit_json(_run(ctx, "get_branches", project_key), ctx)


@cli.command("pull-requests")
@click.option("--project", "project_key", default=None,
              help="Project key (defaults to SONARQUBE_PROJECT_KEY).")
@click.pass_context
@_handle_client_errors
def pull_requests_command(ctx: click.Context, project_key) -> None:
    """Analyzed pull requests of a project."""
    _emit_json(_run(ctx, "get_pull_requests", project_key), ctx)
