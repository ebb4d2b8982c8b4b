"""Branch / pull-request selection.

Usage:
    selector = resolve("PR-42")               # PullRequestRef(key="42")
    selector = select("main", None)           # BranchRef(name="main")
    params   = as_params(selector)            # {"branch": "main"}

SonarQube addresses a branch with ``branch=<name>`` and a pull request with
``pullRequest=<id>``; the two must never be sent together.

Note: a branch whose name is made only of digits cannot be told apart from a
pull request number and is always resolved as a pull request.
"""

import logging
import re
from dataclasses import dataclass

logger = logging.getLogger(__name__)

_PR_PREFIXED_RE = re.compile(r"^PR-(\d+)$")
_DIGITS_RE = re.compile(r"^\d+$")


@dataclass(frozen=True)
class BranchRef:
    name: str


@dataclass(frozen=True)
class PullRequestRef:
    key: str


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def resolve(raw: str | None) -> BranchRef | PullRequestRef | None:
    """Classify a user-supplied identifier as a branch or a pull request.

    ``"PR-42"`` and ``"42"`` both denote pull request 42, any other
    non-empty string is a branch name, and ``None`` / ``""`` select nothing.
    """
    if not raw:
        return None

    match = _PR_PREFIXED_RE.match(raw)
    if match:
        logger.debug("Resolved '%s' as pull request %s", raw, match.group(1))
        return PullRequestRef(match.group(1))

    if _DIGITS_RE.match(raw):
        logger.debug("Resolved '%s' as pull request %s", raw, raw)
        return PullRequestRef(raw)

    logger.debug("Resolved '%s' as branch", raw)
    return BranchRef(raw)


def select(
    branch: str | None = None,
    pull_request: str | None = None,
) -> BranchRef | PullRequestRef | None:
    """Pick the analysis context for a request.

    An explicit *pull_request* always wins; *branch* is only consulted when
    no pull request was given.
    """
    if pull_request:
        return PullRequestRef(pull_request)
    return resolve(branch)


def as_params(selector: BranchRef | PullRequestRef | None) -> dict[str, str]:
    """Return the query parameter that carries *selector*."""
    if isinstance(selector, PullRequestRef):
        return {"pullRequest": selector.key}
    if isinstance(selector, BranchRef):
        return {"branch": selector.name}
    return {}
