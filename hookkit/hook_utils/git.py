"""
Git metadata collector.

Best-effort shell queries against the working copy. Every query degrades
to an empty string, and collect_git_metadata() returns None outside a
repository, so callers never have to handle git failures.
"""
import subprocess
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any

from hookkit.config import Timeouts

# Queries run in parallel once the directory is known to be a repository
GIT_QUERIES = {
    "toplevel": ["git", "rev-parse", "--show-toplevel"],
    "branch": ["git", "rev-parse", "--abbrev-ref", "HEAD"],
    "commit": ["git", "rev-parse", "HEAD"],
    "status": ["git", "status", "--porcelain"],
    "user": ["git", "config", "user.name"],
    "email": ["git", "config", "user.email"],
    "repo": ["git", "config", "--get", "remote.origin.url"],
}


def run_cmd(cmd: list, cwd: str = None, timeout: int = Timeouts.GIT_COMMAND) -> str:
    """Run command and return output, or empty string on failure."""
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout, cwd=cwd)
        return result.stdout.strip() if result.returncode == 0 else ""
    except Exception:
        return ""


def is_git_repo(cwd: str = None) -> bool:
    """Check if directory is inside a git repository."""
    return bool(run_cmd(["git", "rev-parse", "--git-dir"], cwd))


def collect_git_metadata(cwd: str = None) -> dict[str, Any] | None:
    """Collect fresh repository metadata for ``cwd``.

    Returns:
        Dict with ``toplevel``, ``branch``, ``commit``, ``dirty``, ``user``,
        ``email`` and ``repo`` (keys whose query produced nothing are left
        out, except ``dirty``), or None when ``cwd`` is not a repository.
    """
    if not is_git_repo(cwd):
        return None

    results: dict[str, str] = {}
    with ThreadPoolExecutor(max_workers=len(GIT_QUERIES)) as executor:
        futures = {executor.submit(run_cmd, cmd, cwd): name for name, cmd in GIT_QUERIES.items()}
        for future in as_completed(futures):
            name = futures[future]
            try:
                results[name] = future.result()
            except Exception:
                results[name] = ""

    metadata: dict[str, Any] = {
        name: value
        for name in ("toplevel", "branch", "commit", "user", "email", "repo")
        if (value := results.get(name))
    }
    metadata["dirty"] = bool(results.get("status"))
    return metadata
