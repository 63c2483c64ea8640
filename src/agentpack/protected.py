from __future__ import annotations

import logging
from pathlib import Path
import re
from typing import Callable, Iterable

from rich.console import Console

from agentpack import git
from agentpack.models import ScanReport, Violation

logger = logging.getLogger(__name__)

PROTECTED_FILE_PATTERNS: tuple[str, ...] = (
    r"(^|/)\.env(\.[^/]+)?$",
    r"\.pem$",
    r"\.key$",
    r"\.p12$",
    r"\.pfx$",
    r"\.(keystore|jks)$",
    r"(^|/)id_(rsa|dsa|ecdsa|ed25519)$",
    r"(^|/)secrets?/",
    r"(^|/)credentials\.json$",
    r"\.tfstate(\.backup)?$",
    r"(^|/)\.(npmrc|netrc|pgpass)$",
    r"(^|/)service-account[^/]*\.json$",
)

# Checked-in env templates carry placeholder values only.
ALLOWED_FILE_PATTERNS: tuple[str, ...] = (r"(^|/)\.env\.(example|sample|template)$",)

SECRET_PATTERNS: tuple[tuple[str, str], ...] = (
    (
        "credential assignment",
        r"""(?i)[a-z0-9_]*(password|passwd|secret|api_?key|token|access_?key)[a-z0-9_]*["']?\s*[:=]\s*["'][^"'\s]{4,}["']""",
    ),
    ("AWS access key id", r"\bAKIA[0-9A-Z]{16}\b"),
    (
        "private key block",
        r"-----BEGIN (?:RSA |DSA |EC |OPENSSH |PGP |ENCRYPTED )?PRIVATE KEY(?: BLOCK)?-----",
    ),
    ("GitHub token", r"\bgh[pousr]_[A-Za-z0-9]{36,}\b"),
    ("Slack token", r"\bxox[abposr]-[A-Za-z0-9-]{10,}"),
)

# Templates are expected to hold `KEY="placeholder"` lines; real tokens are still reported.
TEMPLATE_SECRET_PATTERNS = tuple(p for p in SECRET_PATTERNS if p[0] != "credential assignment")

Reader = Callable[[str], "bytes | str | None"]


def _compile(patterns: Iterable[str]) -> list[re.Pattern[str]]:
    compiled = []
    for pattern in patterns:
        try:
            compiled.append(re.compile(pattern, re.IGNORECASE))
        except re.error as exc:
            raise ValueError(f"Invalid protected file pattern {pattern!r}: {exc}") from exc
    return compiled


def _normalize(path: str) -> str:
    normalized = path.replace("\\", "/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized


def is_env_template(path: str) -> bool:
    normalized = _normalize(path)
    return any(allowed.search(normalized) for allowed in _compile(ALLOWED_FILE_PATTERNS))


def match_protected_path(path: str, patterns: Iterable[str] = PROTECTED_FILE_PATTERNS) -> str | None:
    if is_env_template(path):
        return None
    normalized = _normalize(path)
    for compiled in _compile(patterns):
        if compiled.search(normalized):
            return compiled.pattern
    return None


def scan_content(
    path: str,
    text: str,
    patterns: Iterable[tuple[str, str]] = SECRET_PATTERNS,
) -> list[Violation]:
    compiled = [(label, re.compile(regex)) for label, regex in patterns]
    hits: list[Violation] = []
    for lineno, line in enumerate(text.splitlines(), start=1):
        for label, regex in compiled:
            if regex.search(line):
                hits.append(Violation(path=path, kind="content", pattern=label, line=lineno))
                break
    return hits


def _decode(data: bytes | str | None) -> str | None:
    if data is None:
        return None
    if isinstance(data, str):
        return data
    if b"\0" in data:
        return None
    return data.decode("utf-8", errors="replace")


def scan_paths(
    paths: Iterable[str],
    read: Reader,
    extra_patterns: Iterable[str] = (),
) -> ScanReport:
    file_patterns = (*PROTECTED_FILE_PATTERNS, *extra_patterns)
    files = list(paths)
    report = ScanReport(files=files)
    for path in files:
        matched = match_protected_path(path, file_patterns)
        if matched:
            report.violations.append(Violation(path=path, kind="filename", pattern=matched))
        text = _decode(read(path))
        if text is None:
            logger.debug("skipping content scan for %s (binary or unreadable)", path)
            continue
        secret_patterns = TEMPLATE_SECRET_PATTERNS if is_env_template(path) else SECRET_PATTERNS
        report.violations.extend(scan_content(path, text, secret_patterns))
    return report


def scan_staged(repo: Path | None = None, extra_patterns: Iterable[str] = ()) -> ScanReport:
    files = git.staged_files(repo)
    logger.info("scanning %d staged files", len(files))
    return scan_paths(files, lambda p: git.read_staged(p, repo), extra_patterns)


def tty_confirm(prompt: str) -> bool:
    """Ask on the controlling terminal; git hooks run without a usable stdin."""
    try:
        with open("/dev/tty", "r+", encoding="utf-8") as tty:
            tty.write(f"{prompt} [y/N] ")
            tty.flush()
            answer = tty.readline()
    except OSError:
        return False
    return answer.strip().lower() in {"y", "yes"}


def enforce(
    report: ScanReport,
    *,
    interactive: bool,
    confirm: Callable[[str], bool] = tty_confirm,
    console: Console | None = None,
) -> int:
    if not report.blocked:
        return 0
    console = console or Console(stderr=True)
    if report.filename_hits:
        console.print("[bold red]Protected files staged for commit:[/bold red]")
        for violation in report.filename_hits:
            console.print(f"  - {violation.describe()}")
    if report.content_hits:
        console.print("[bold yellow]Possible secrets in staged content:[/bold yellow]")
        for violation in report.content_hits:
            console.print(f"  - {violation.describe()}")
    if interactive and confirm("Commit anyway?"):
        console.print("[yellow]Continuing at user request.[/yellow]")
        return 0
    console.print("[red]Commit blocked.[/red] Unstage the files or remove the secrets.")
    return 1
