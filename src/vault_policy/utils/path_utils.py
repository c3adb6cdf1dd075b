import os

from vault_policy.config.config_policy import PACKAGE_MANIFESTS
from vault_policy.utils import git_utils


def resolve_symlink(path: str) -> str:
    """Follow symlinks, recursively, to the real file. Other paths are made absolute."""
    return os.path.realpath(path)


def get_package_root(dir_path: str) -> str | None:
    """
    Find the closest directory, walking up from `dir_path`, holding a
    package manifest (pyproject.toml, setup.py, setup.cfg, package.json).

    Returns:
        The package root, or None if there is none.
    """
    current = os.path.realpath(dir_path)
    while True:
        if any(os.path.isfile(os.path.join(current, name)) for name in PACKAGE_MANIFESTS):
            return current

        parent = os.path.dirname(current)
        if parent == current:
            return None
        current = parent


def file_with_code(file_path: str, cwd: str | None = None) -> bool:
    """
    Check if a file is stored with the code that is running.

    Inside a git repository the file is with code when the repository is
    the one of the working directory and the file is not ignored. Outside
    any repository, fall back to comparing package roots.

    Args:
        file_path: Absolute path to a file.
        cwd: Directory of the running code, defaults to os.getcwd().

    Returns:
        True if the file is stored with the code.

    Raises:
        RepositoryLookupError: If a git lookup failed.
    """
    cwd = os.getcwd() if cwd is None else cwd
    file_dir = os.path.dirname(file_path)

    file_git_root = git_utils.get_root(file_dir)
    if file_git_root is not None:
        if git_utils.is_ignored(file_path):
            # In the codebase, but never pushed
            return False
        return file_git_root == git_utils.get_root(cwd)

    file_package_root = get_package_root(file_dir)
    if file_package_root is not None:
        return file_package_root == get_package_root(cwd)

    return False
