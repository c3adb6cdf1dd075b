"""
Git lookups used by the storage location rules.

A path outside any repository and a machine without git both count as
"no repository". Anything else git fails at raises RepositoryLookupError.
"""
import os
import logging
import subprocess

from vault_policy.config.config_policy import GIT_EXECUTABLE, GIT_TIMEOUT
from vault_policy.config.logging_config import timestamped
from vault_policy.errors import RepositoryLookupError

logger = logging.getLogger(__name__)

NOT_A_REPOSITORY = "not a git repository"


def _run_git(args: list[str], cwd: str) -> subprocess.CompletedProcess | None:
    """
    Run a git command in `cwd`.

    Returns:
        The completed process, or None if git or the directory is missing.

    Raises:
        RepositoryLookupError: If git did not finish in time.
    """
    try:
        return subprocess.run(
            [GIT_EXECUTABLE, *args],
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=GIT_TIMEOUT,
        )
    except FileNotFoundError:
        logger.debug(timestamped(f"git or directory not found, skipping lookup in '{cwd}'"))
        return None
    except subprocess.TimeoutExpired as e:
        raise RepositoryLookupError(f"git {args[0]} timed out after {GIT_TIMEOUT}s in '{cwd}'") from e


def get_root(dir_path: str) -> str | None:
    """
    Find the root of the git repository containing a directory.

    Args:
        dir_path: Absolute path to a directory.

    Returns:
        Real path of the repository root, or None outside a repository.

    Raises:
        RepositoryLookupError: If git failed for another reason.
    """
    result = _run_git(["rev-parse", "--show-toplevel"], dir_path)
    if result is None:
        return None
    if result.returncode == 0:
        return os.path.realpath(result.stdout.strip())
    if NOT_A_REPOSITORY in result.stderr.lower():
        return None
    raise RepositoryLookupError(
        f"git rev-parse failed in '{dir_path}' ({result.returncode}): {result.stderr.strip()}"
    )


def is_ignored(path: str) -> bool:
    """
    Check if git ignores a file.

    Args:
        path: Absolute path to a file.

    Returns:
        True if ignored. False if tracked, untracked or outside a repository.

    Raises:
        RepositoryLookupError: If git failed for another reason.
    """
    result = _run_git(["check-ignore", "--quiet", path], os.path.dirname(path))
    if result is None:
        return False
    # 0: ignored, 1: not ignored
    if result.returncode in (0, 1):
        return result.returncode == 0
    if NOT_A_REPOSITORY in result.stderr.lower():
        return False
    raise RepositoryLookupError(
        f"git check-ignore failed for '{path}' ({result.returncode}): {result.stderr.strip()}"
    )
