from __future__ import annotations

import logging
from pathlib import Path
import subprocess
from typing import Iterable

from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

logger = logging.getLogger(__name__)


class GitError(RuntimeError):
    pass


def _git(args: list[str], cwd: Path | None = None) -> subprocess.CompletedProcess[bytes]:
    cmd = ["git", *args]
    logger.debug("running %s", " ".join(cmd))
    try:
        proc = subprocess.run(cmd, cwd=cwd, capture_output=True, check=False)
    except FileNotFoundError as exc:
        raise GitError("git executable not found on PATH.") from exc
    if proc.returncode != 0:
        msg = proc.stderr.decode("utf-8", errors="replace").strip()
        raise GitError(f"git {args[0]} failed: {msg}")
    return proc


def repo_root(cwd: Path | None = None) -> Path:
    proc = _git(["rev-parse", "--show-toplevel"], cwd)
    return Path(proc.stdout.decode("utf-8").strip())


def hooks_dir(cwd: Path | None = None) -> Path:
    proc = _git(["rev-parse", "--git-path", "hooks"], cwd)
    path = Path(proc.stdout.decode("utf-8").strip())
    if not path.is_absolute():
        path = (cwd or Path.cwd()) / path
    return path


def staged_files(cwd: Path | None = None) -> list[str]:
    # Deleted paths are excluded: there is nothing to scan or format.
    proc = _git(["diff", "--cached", "--name-only", "--diff-filter=ACMR", "-z"], cwd)
    names = proc.stdout.decode("utf-8", errors="surrogateescape").split("\0")
    return [name for name in names if name]


def read_staged(path: str, cwd: Path | None = None) -> bytes | None:
    try:
        return _git(["show", f":{path}"], cwd).stdout
    except GitError:
        logger.debug("no staged blob for %s", path)
        return None


def _is_lock_contention(exc: BaseException) -> bool:
    return isinstance(exc, GitError) and "index.lock" in str(exc)


@retry(
    retry=retry_if_exception(_is_lock_contention),
    wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
    stop=stop_after_attempt(3),
    reraise=True,
)
def add(paths: Iterable[str], cwd: Path | None = None) -> None:
    names = list(paths)
    if not names:
        return
    _git(["add", "--", *names], cwd)
