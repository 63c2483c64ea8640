from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import NoReturn

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from agentpack import git
from agentpack.agent_pack import install_git_hook, scaffold_agent_pack
from agentpack.config import load_env
from agentpack.docs import DOC_KINDS, load_documents, validate_pack
from agentpack.fetch import fetch_document
from agentpack.formatter import format_staged
from agentpack.models import FormatResult
from agentpack.protected import enforce, scan_staged

app = typer.Typer(help="Pre-commit guards and agent/command/rule/skill documents for AI coding assistants")
console = Console()
err_console = Console(stderr=True)


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level")) -> None:
    try:
        env = load_env()
    except ValueError as exc:
        _fail(str(exc), 2)
    logging.basicConfig(
        level="DEBUG" if verbose else env.log_level,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _fail(message: str, code: int) -> NoReturn:
    # Messages carry git/formatter/HTTP output, which may contain rich markup brackets.
    err_console.print(f"[red]{escape(message)}[/red]")
    raise typer.Exit(code)


def _check_protected(interactive: bool | None, as_json: bool) -> int:
    env = load_env()
    report = scan_staged(extra_patterns=env.extra_protected)
    if as_json:
        console.print_json(json.dumps(report.as_dict()))
    if interactive is None:
        interactive = not env.noninteractive
    return enforce(report, interactive=interactive, console=err_console)


def _git_failed(exc: git.GitError) -> NoReturn:
    _fail(str(exc), 2)


def _print_format_results(results: list[FormatResult]) -> None:
    for result in results:
        if result.skipped:
            console.print(f"[dim]{result.tool} not installed, skipped {len(result.files)} files[/dim]")
            continue
        if result.error:
            err_console.print(f"[yellow]{result.tool} reported errors:[/yellow] {escape(result.error)}")
        if result.changed:
            console.print(f"[green]{result.tool}[/green] reformatted and re-staged {len(result.changed)} files")


@app.command("check-protected")
def check_protected_cmd(
    interactive: bool | None = typer.Option(
        None,
        "--interactive/--no-interactive",
        help="Prompt before allowing a commit with violations (default: from AGENTPACK_NONINTERACTIVE/CI)",
    ),
    as_json: bool = typer.Option(False, "--json", help="Also print the scan report as JSON"),
) -> None:
    try:
        code = _check_protected(interactive, as_json)
    except git.GitError as exc:
        _git_failed(exc)
    raise typer.Exit(code)


@app.command("format")
def format_cmd() -> None:
    try:
        results = format_staged()
    except git.GitError as exc:
        _git_failed(exc)
    _print_format_results(results)


@app.command("pre-commit")
def pre_commit_cmd(
    interactive: bool | None = typer.Option(None, "--interactive/--no-interactive"),
) -> None:
    try:
        code = _check_protected(interactive, as_json=False)
        if code != 0:
            raise typer.Exit(code)
        if load_env().skip_format:
            return
        results = format_staged()
    except git.GitError as exc:
        _git_failed(exc)
    _print_format_results(results)


@app.command("install-hook")
def install_hook_cmd(
    overwrite: bool = typer.Option(False, help="Replace an existing pre-commit hook"),
) -> None:
    try:
        path = install_git_hook(git.hooks_dir(), overwrite=overwrite)
    except git.GitError as exc:
        _git_failed(exc)
    except FileExistsError as exc:
        _fail(str(exc), 1)
    console.print(f"[bold green]Installed[/bold green] {path}")


@app.command("scaffold")
def scaffold_cmd(
    root: Path = typer.Option(Path("."), help="Project root where .claude/ is generated"),
    overwrite: bool = typer.Option(True, help="Overwrite existing pack files if they already exist"),
) -> None:
    written = scaffold_agent_pack(root.resolve(), overwrite=overwrite)
    console.print(f"[bold green]Agent pack ready[/bold green] ({len(written)} files updated)")
    for path in written:
        console.print(f"- {escape(str(path))}")


@app.command("list-docs")
def list_docs_cmd(
    root: Path = typer.Option(Path("."), help="Project root containing .claude/"),
) -> None:
    try:
        documents = load_documents(root.resolve())
    except ValueError as exc:
        _fail(str(exc), 1)
    if not documents:
        console.print("No documents found.")
        return
    table = Table("Kind", "Name", "Description")
    for doc in documents:
        table.add_row(doc.kind, escape(doc.name), escape(str(doc.frontmatter.get("description", ""))))
    console.print(table)


@app.command("validate-docs")
def validate_docs_cmd(
    root: Path = typer.Option(Path("."), help="Project root containing .claude/"),
) -> None:
    result = validate_pack(root.resolve())
    if result["valid"]:
        console.print(f"[bold green]Valid[/bold green] ({len(result['documents'])} documents)")
        return
    for error in result["errors"]:
        err_console.print(f"[red]{escape(error)}[/red]")
    raise typer.Exit(1)


@app.command("fetch")
def fetch_cmd(
    url: str = typer.Argument(..., help="URL of a markdown document (GitHub blob URLs are accepted)"),
    kind: str = typer.Option("skill", help=f"Document kind: {' | '.join(DOC_KINDS)}"),
    name: str | None = typer.Option(None, help="Name override (defaults to frontmatter or URL)"),
    root: Path = typer.Option(Path("."), help="Project root containing .claude/"),
    overwrite: bool = typer.Option(False, help="Replace an existing document"),
) -> None:
    env = load_env()
    try:
        path = fetch_document(url, kind, root, name=name, overwrite=overwrite, timeout=env.http_timeout)
    except (RuntimeError, ValueError, FileExistsError) as exc:
        _fail(str(exc), 1)
    console.print(f"[bold green]Fetched[/bold green] {path}")


if __name__ == "__main__":
    app()
