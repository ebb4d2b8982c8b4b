"""Configuration loading and validation.

Usage:
    config = load()                           # environment only
    config = load("sonar-mcp.yaml")           # YAML file, environment overrides
    generate_template("sonar-mcp.yaml")       # writes example file to disk

Environment variables:
    SONARQUBE_URL           server URL (default http://localhost:9000)
    SONARQUBE_TOKEN         user token (required)
    SONARQUBE_PROJECT_KEY   default project key (optional)

The resulting ``Config`` is built once at startup and handed to the client;
nothing else in the package reads the environment.
"""

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

import yaml

logger = logging.getLogger(__name__)

DEFAULT_URL = "http://localhost:9000"

ENV_URL = "SONARQUBE_URL"
ENV_TOKEN = "SONARQUBE_TOKEN"
ENV_PROJECT_KEY = "SONARQUBE_PROJECT_KEY"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class ConfigError(Exception):
    """Raised when the configuration is missing or invalid."""


# ---------------------------------------------------------------------------
# Config dataclass
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Config:
    url: str
    token: str
    project_key: str | None = None


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

def load(config_path: str | None = None, environ: Mapping[str, str] | None = None) -> Config:
    """Build and validate the configuration.

    Values come from the optional YAML file at *config_path*; environment
    variables (``os.environ`` unless *environ* is given) override them.

    Raises:
        ConfigError: if the file is missing or malformed, the token is
                     absent, or the URL is not an absolute http(s) URL.
    """
    env = os.environ if environ is None else environ
    raw = _read_file(config_path) if config_path else {}

    server = raw.get("server") or {}
    url = env.get(ENV_URL) or server.get("url") or DEFAULT_URL
    token = env.get(ENV_TOKEN) or server.get("token") or ""
    project_key = env.get(ENV_PROJECT_KEY) or raw.get("project_key") or None

    config = Config(
        url=str(url).strip().rstrip("/"),
        token=str(token).strip(),
        project_key=str(project_key).strip() if project_key else None,
    )
    _validate(config)

    if not config.project_key:
        logger.warning(
            "%s not set - project key will need to be provided in tool calls",
            ENV_PROJECT_KEY,
        )
    return config


def _read_file(config_path: str) -> dict:
    path = Path(config_path)

    if not path.exists():
        raise ConfigError(
            f"Config file not found: '{config_path}'\n"
            "Run `sonar-mcp init` to generate a template."
        )

    try:
        with path.open(encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse '{config_path}': {exc}") from exc

    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(f"'{config_path}' must be a YAML mapping at the top level.")
    return raw


def _validate(config: Config) -> None:
    """Raise ConfigError if required fields are missing or malformed."""
    errors: list[str] = []

    if not config.token:
        errors.append(
            f"  - token is missing (set the {ENV_TOKEN} environment variable)"
        )

    parsed = urlparse(config.url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        errors.append(f"  - invalid SonarQube URL: '{config.url}'")

    if errors:
        raise ConfigError("Invalid configuration:\n" + "\n".join(errors))


# ---------------------------------------------------------------------------
# Template generator (used by `init` command)
# ---------------------------------------------------------------------------

TEMPLATE = """\
server:
  url: "http://localhost:9000"
  token: "squ_xxxxxxxxxxxx"       # Generate at: <your-sonar-url>/account/security

# Used when a tool call does not name a project
project_key: "com.example.my-project"
"""


def generate_template(output_path: str = "sonar-mcp.yaml") -> None:
    """Write a template sonar-mcp.yaml to *output_path*.

    Raises:
        ConfigError: if the file already exists (to avoid overwriting secrets).
    """
    path = Path(output_path)
    if path.exists():
        raise ConfigError(
            f"'{output_path}' already exists. Remove it first or choose a different path."
        )
    path.write_text(TEMPLATE, encoding="utf-8")
