from __future__ import annotations

from dataclasses import dataclass
import hashlib
import logging
from pathlib import Path
import shutil
import subprocess
from typing import Any, Callable, Iterable

from agentpack import git
from agentpack.models import FormatResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class FormatterSpec:
    name: str
    command: tuple[str, ...]
    extensions: tuple[str, ...]
    per_file: bool = False

    @property
    def binary(self) -> str:
        return self.command[0]

    def handles(self, path: str) -> bool:
        return Path(path).suffix.lower() in self.extensions


FORMATTERS: tuple[FormatterSpec, ...] = (
    FormatterSpec("gofmt", ("gofmt", "-w"), (".go",)),
    FormatterSpec(
        "prettier",
        ("prettier", "--write"),
        (".js", ".jsx", ".ts", ".tsx", ".json", ".css", ".scss", ".md", ".yaml", ".yml", ".html"),
    ),
    FormatterSpec("ruff", ("ruff", "format"), (".py", ".pyi")),
    FormatterSpec("rustfmt", ("rustfmt",), (".rs",)),
    FormatterSpec("terraform", ("terraform", "fmt"), (".tf", ".tfvars")),
    # sql-formatter only accepts a single input file per call.
    FormatterSpec("sql-formatter", ("sql-formatter", "--fix"), (".sql",), per_file=True),
)


def partition(
    paths: Iterable[str],
    root: Path,
    formatters: Iterable[FormatterSpec] = FORMATTERS,
) -> list[tuple[FormatterSpec, list[str]]]:
    specs = list(formatters)
    groups: dict[str, list[str]] = {spec.name: [] for spec in specs}
    for path in paths:
        if not (root / path).is_file():
            continue
        for spec in specs:
            if spec.handles(path):
                groups[spec.name].append(path)
                break
    return [(spec, groups[spec.name]) for spec in specs if groups[spec.name]]


def _digest(path: Path) -> str | None:
    try:
        return hashlib.sha256(path.read_bytes()).hexdigest()
    except OSError:
        return None


def _run(
    spec: FormatterSpec,
    files: list[str],
    root: Path,
    runner: Callable[..., Any],
) -> str | None:
    batches = [[f] for f in files] if spec.per_file else [files]
    errors: list[str] = []
    for batch in batches:
        cmd = [*spec.command, *batch]
        logger.debug("running %s", " ".join(cmd))
        try:
            proc = runner(cmd, cwd=root, capture_output=True, text=True, check=False)
        except OSError as exc:
            errors.append(str(exc))
            continue
        if proc.returncode != 0:
            msg = (proc.stderr or proc.stdout or "").strip()
            errors.append(msg or f"exit code {proc.returncode}")
    return "; ".join(errors) or None


def run_formatters(
    paths: Iterable[str],
    repo: Path | None = None,
    *,
    formatters: Iterable[FormatterSpec] = FORMATTERS,
    which: Callable[[str], str | None] = shutil.which,
    runner: Callable[..., Any] = subprocess.run,
    stage: Callable[..., None] = git.add,
) -> list[FormatResult]:
    root = repo or git.repo_root()
    results: list[FormatResult] = []
    restage: list[str] = []
    for spec, files in partition(paths, root, formatters):
        result = FormatResult(tool=spec.name, files=files)
        results.append(result)
        if which(spec.binary) is None:
            logger.info("%s not installed, skipping %d files", spec.binary, len(files))
            result.skipped = True
            continue
        before = {f: _digest(root / f) for f in files}
        result.error = _run(spec, files, root, runner)
        if result.error:
            logger.warning("%s reported errors: %s", spec.name, result.error)
        result.changed = [f for f in files if _digest(root / f) != before[f]]
        restage.extend(result.changed)
    if restage:
        stage(restage, root)
    return results


def format_staged(repo: Path | None = None) -> list[FormatResult]:
    return run_formatters(git.staged_files(repo), repo)
