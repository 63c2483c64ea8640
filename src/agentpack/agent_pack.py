from __future__ import annotations

from dataclasses import dataclass, field
import json
from pathlib import Path

from agentpack.docs import doc_path, render_frontmatter


@dataclass(frozen=True, slots=True)
class AgentSpec:
    name: str
    description: str
    tools: tuple[str, ...]
    model: str
    prompt: str


@dataclass(frozen=True, slots=True)
class DocSpec:
    kind: str
    name: str
    description: str
    body: str
    extra: dict[str, str] = field(default_factory=dict)


AGENT_SPECS: tuple[AgentSpec, ...] = (
    AgentSpec(
        name="plan",
        description="Breaks a change request into ordered, verifiable steps before any file is edited.",
        tools=("Read", "Glob", "Grep"),
        model="opus",
        prompt="""# Plan

Read the relevant code first. Produce a numbered plan where every step names
the files it touches and how it will be verified. Do not edit files.

Hand off to `edit` with the plan.
""",
    ),
    AgentSpec(
        name="edit",
        description="Applies a reviewed plan with minimal, focused diffs.",
        tools=("Read", "Edit", "Write", "Glob", "Grep", "Bash"),
        model="sonnet",
        prompt="""# Edit

Apply one plan step at a time. Match the surrounding style.
Never touch files matched by the protected-files hook.

Hand off to `test` when all steps are applied.
""",
    ),
    AgentSpec(
        name="test",
        description="Writes and runs tests for the change and reports failures verbatim.",
        tools=("Read", "Edit", "Write", "Bash", "Glob", "Grep"),
        model="sonnet",
        prompt="""# Test

Add tests next to the existing ones, in their style. Run the suite and
report the exact failing output. Hand off to `review` on green.
""",
    ),
    AgentSpec(
        name="review",
        description="Reviews the staged diff for correctness, security and style before commit.",
        tools=("Read", "Glob", "Grep", "Bash"),
        model="opus",
        prompt="""# Review

Inspect `git diff --cached`. Flag secrets, protected files, missing tests and
behaviour changes not covered by the plan. Approve or return to `edit`.
""",
    ),
    AgentSpec(
        name="commit",
        description="Writes the commit message and commits once pre-commit hooks pass.",
        tools=("Bash", "Read"),
        model="haiku",
        prompt="""# Commit

Summarise what the change does in the imperative mood. Run `git commit`;
if the pre-commit hook blocks, report why instead of bypassing it.
""",
    ),
)


DOC_SPECS: tuple[DocSpec, ...] = (
    DocSpec(
        kind="command",
        name="plan",
        description="Plan a change before editing",
        body="Use the `plan` agent on: $ARGUMENTS\n",
        extra={"argument-hint": "<change request>"},
    ),
    DocSpec(
        kind="command",
        name="commit",
        description="Review staged changes and commit",
        body="Run the `review` agent on the staged diff, then the `commit` agent.\n",
    ),
    DocSpec(
        kind="rule",
        name="secrets",
        description="Secrets never enter the repository",
        body="""# Secrets

- Keep credentials in `.env` (ignored) and commit `.env.example` with placeholders.
- The pre-commit hook blocks key files and secret-looking assignments.
""",
    ),
    DocSpec(
        kind="rule",
        name="formatting",
        description="Formatting is delegated to the standard tool of each language",
        body="""# Formatting

gofmt, prettier, ruff format, rustfmt, terraform fmt and sql-formatter run on
staged files at commit time. Do not hand-format around them.
""",
    ),
    DocSpec(
        kind="skill",
        name="git-hooks",
        description="How the pre-commit hooks of this pack work and how to resolve a blocked commit.",
        body="""# Git Hooks Skill

## Blocked by protected files
Unstage the file (`git restore --staged <path>`) and add it to `.gitignore`.

## Blocked by secret content
Move the value to the environment and reference it by name.

## Formatter changed files
The hook re-stages formatted files automatically; review `git diff --cached`.
""",
    ),
)


GIT_PRE_COMMIT_SH = """#!/bin/sh
# installed by agentpack
if command -v agentpack >/dev/null 2>&1; then
  exec agentpack pre-commit
fi
exec python3 -m agentpack.cli pre-commit
"""

HOOK_MARKER = "# installed by agentpack"


def _agent_doc(spec: AgentSpec) -> str:
    meta = {
        "name": spec.name,
        "description": spec.description,
        "tools": list(spec.tools),
        "model": spec.model,
    }
    return render_frontmatter(meta, spec.prompt)


def _spec_doc(spec: DocSpec) -> str:
    meta: dict[str, str] = {}
    if spec.kind == "skill":
        meta["name"] = spec.name
    meta["description"] = spec.description
    meta.update(spec.extra)
    return render_frontmatter(meta, spec.body)


def _claude_settings() -> dict[str, object]:
    return {
        "permissions": {
            "deny": [
                "Read(./.env)",
                "Read(./.env.*)",
                "Read(./**/*.pem)",
                "Read(./**/*.key)",
                "Read(./secrets/**)",
                "Bash(git commit --no-verify*)",
            ],
            "ask": ["Bash(git push*)"],
        },
    }


def scaffold_agent_pack(root: Path, overwrite: bool = True) -> list[Path]:
    written: list[Path] = []
    root = root.resolve()

    for spec in AGENT_SPECS:
        _write_file(doc_path(root, "agent", spec.name), _agent_doc(spec), overwrite, written)
    for doc in DOC_SPECS:
        _write_file(doc_path(root, doc.kind, doc.name), _spec_doc(doc), overwrite, written)

    _write_json(root / ".claude" / "settings.json", _claude_settings(), overwrite, written)
    _write_json(
        root / ".claude" / "manifest.json",
        {
            "version": 1,
            "agents": [
                {
                    "name": spec.name,
                    "description": spec.description,
                    "tools": list(spec.tools),
                    "model": spec.model,
                }
                for spec in AGENT_SPECS
            ],
            "documents": [{"kind": d.kind, "name": d.name} for d in DOC_SPECS],
        },
        overwrite,
        written,
    )
    return written


def install_git_hook(hooks_dir: Path, overwrite: bool = False) -> Path:
    target = hooks_dir / "pre-commit"
    if target.exists() and not overwrite:
        current = target.read_text(encoding="utf-8", errors="replace")
        if HOOK_MARKER not in current:
            raise FileExistsError(
                f"{target} already exists and was not installed by agentpack; use --overwrite to replace it."
            )
    hooks_dir.mkdir(parents=True, exist_ok=True)
    target.write_text(GIT_PRE_COMMIT_SH, encoding="utf-8")
    target.chmod(0o755)
    return target


def _write_file(path: Path, content: str, overwrite: bool, written: list[Path]) -> None:
    if path.exists() and not overwrite:
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content.strip() + "\n", encoding="utf-8")
    written.append(path)


def _write_json(path: Path, payload: object, overwrite: bool, written: list[Path]) -> None:
    if path.exists() and not overwrite:
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
    written.append(path)
