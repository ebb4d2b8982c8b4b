"""Best-effort detection of the current git branch.

Only used to suggest a default branch to humans (CLI ``--detect-branch``,
server startup log). The client never calls into this module.
"""

import logging
import os
import subprocess
from collections.abc import Iterable

logger = logging.getLogger(__name__)


def _candidate_dirs() -> list[str]:
    dirs = [os.getcwd(), os.environ.get("PWD"), os.environ.get("INIT_CWD")]
    seen: list[str] = []
    for d in dirs:
        if d and d not in seen:
            seen.append(d)
    return seen


def current_branch(search_dirs: Iterable[str] | None = None) -> str | None:
    """Return the checked-out branch of the first git work tree found.

    Directories in detached HEAD state, outside a repository, or where git
    is not installed are skipped.
    """
    for directory in search_dirs or _candidate_dirs():
        try:
            result = subprocess.run(
                ["git", "rev-parse", "--abbrev-ref", "HEAD"],
                cwd=directory,
                capture_output=True,
                text=True,
                check=True,
            )
        except (OSError, subprocess.CalledProcessError):
            continue

        branch = result.stdout.strip()
        if not branch or branch == "HEAD":
            continue
        logger.debug("Found git branch '%s' in %s", branch, directory)
        return branch

    logger.debug("Could not detect a git branch")
    return None
