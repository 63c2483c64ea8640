from __future__ import annotations

from collections import defaultdict
from pathlib import Path
import re
from typing import Any

from agentpack.models import Document

DOC_KINDS = ("agent", "command", "rule", "skill")

KNOWN_TOOLS = frozenset(
    {
        "Read",
        "Write",
        "Edit",
        "MultiEdit",
        "Glob",
        "Grep",
        "LS",
        "Bash",
        "WebFetch",
        "WebSearch",
        "Task",
        "TodoWrite",
        "NotebookEdit",
    }
)

NAME_PATTERN = re.compile(r"^[a-z0-9][a-z0-9-]*$")
_KEY_LINE = re.compile(r"^([A-Za-z][\w-]*)\s*:\s*(.*?)\s*$")


def _parse_value(raw: str) -> Any:
    if raw.startswith("[") and raw.endswith("]"):
        return [_parse_value(item.strip()) for item in raw[1:-1].split(",") if item.strip()]
    if len(raw) >= 2 and raw[0] == raw[-1] and raw[0] in "\"'":
        return raw[1:-1]
    lowered = raw.lower()
    if lowered in {"true", "false"}:
        return lowered == "true"
    return raw


def _block_scalar(style: str, lines: list[str]) -> str:
    indent = min((len(line) - len(line.lstrip()) for line in lines if line.strip()), default=0)
    lines = [line[indent:] for line in lines]
    while lines and not lines[-1].strip():
        lines.pop()
    if style.startswith(">"):
        paragraphs: list[str] = []
        current: list[str] = []
        for line in lines:
            if line.strip():
                current.append(line.strip())
            else:
                paragraphs.append(" ".join(current))
                current = []
        paragraphs.append(" ".join(current))
        text = "\n".join(paragraphs)
    else:
        text = "\n".join(lines)
    return text if style.endswith("-") else text + "\n"


def _parse_block(lines: list[str]) -> dict[str, Any]:
    """Parse `key: value` lines plus the two nested forms documents use.

    Supported: inline values, `- item` lists under an empty key and
    `|`/`>` block scalars. Anything else indented raises ValueError so that no
    line is silently dropped.
    """
    meta: dict[str, Any] = {}
    key: str | None = None
    scalar: tuple[str, list[str]] | None = None
    for lineno, line in enumerate(lines, start=2):
        indented = line[:1] in {" ", "\t"}
        if scalar is not None and (indented or not line.strip()):
            scalar[1].append(line)
            continue
        if scalar is not None:
            meta[key] = _block_scalar(scalar[0], scalar[1])
            key, scalar = None, None
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if key is not None and stripped.startswith("- "):
            items = meta[key] if isinstance(meta[key], list) else []
            items.append(_parse_value(stripped[2:].strip()))
            meta[key] = items
            continue
        if indented:
            raise ValueError(f"Unsupported frontmatter on line {lineno}: {stripped!r}")
        m = _KEY_LINE.match(line)
        if not m:
            raise ValueError(f"Unsupported frontmatter on line {lineno}: {stripped!r}")
        key, raw = m.group(1), m.group(2)
        if raw in {"|", "|-", "|+", ">", ">-", ">+"}:
            scalar = (raw, [])
        elif raw:
            meta[key] = _parse_value(raw)
            key = None
        else:
            meta[key] = ""
    if scalar is not None:
        meta[key] = _block_scalar(scalar[0], scalar[1])
    return meta


def parse_frontmatter(text: str) -> tuple[dict[str, Any], str]:
    lines = text.splitlines()
    if not lines or lines[0].strip() != "---":
        return {}, text
    for idx, line in enumerate(lines[1:], start=1):
        if line.strip() == "---":
            meta = _parse_block(lines[1:idx])
            body = "\n".join(lines[idx + 1 :]).strip()
            return meta, body + "\n" if body else ""
    # Unterminated block: treat the file as plain markdown.
    return {}, text


def _render_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    return str(value).strip()


def _render_item(key: str, value: Any) -> list[str]:
    if isinstance(value, str) and "\n" in value.rstrip("\n"):
        style = "|" if value.endswith("\n") else "|-"
        return [f"{key}: {style}", *(f"  {line}" if line else "" for line in value.rstrip("\n").split("\n"))]
    return [f"{key}: {_render_value(value)}"]


def render_frontmatter(meta: dict[str, Any], body: str) -> str:
    front = ["---", *(line for key, value in meta.items() for line in _render_item(key, value)), "---", ""]
    return "\n".join(front) + "\n" + body.strip() + "\n"


def as_list(value: Any) -> list[str]:
    if value is None or value == "":
        return []
    if isinstance(value, list):
        return [str(v).strip() for v in value if str(v).strip()]
    return [part.strip() for part in str(value).split(",") if part.strip()]


def doc_path(root: Path, kind: str, name: str) -> Path:
    base = root / ".claude"
    if kind == "skill":
        return base / "skills" / name / "SKILL.md"
    if kind not in DOC_KINDS:
        raise ValueError(f"Unknown document kind: {kind}")
    return base / f"{kind}s" / f"{name}.md"


def _sources(root: Path) -> list[tuple[str, Path]]:
    base = root / ".claude"
    found: list[tuple[str, Path]] = []
    for kind in ("agent", "command", "rule"):
        found.extend((kind, p) for p in sorted((base / f"{kind}s").glob("*.md")))
    found.extend(("skill", p) for p in sorted((base / "skills").glob("*/SKILL.md")))
    return found


def load_document(path: Path, kind: str) -> Document:
    try:
        meta, body = parse_frontmatter(path.read_text(encoding="utf-8"))
    except ValueError as exc:
        raise ValueError(f"{kind} {path}: {exc}") from exc
    default = path.parent.name if kind == "skill" else path.stem
    return Document(kind=kind, name=str(meta.get("name") or default), path=path, frontmatter=meta, body=body)


def load_documents(root: Path) -> list[Document]:
    return [load_document(path, kind) for kind, path in _sources(root)]


def validate_document(doc: Document) -> list[str]:
    errors: list[str] = []
    meta = doc.frontmatter
    label = f"{doc.kind} {doc.path}"
    if not doc.body.strip():
        errors.append(f"{label}: empty body")

    if doc.kind in {"agent", "skill"}:
        for key in ("name", "description"):
            if not meta.get(key):
                errors.append(f"{label}: missing required field '{key}'")
        name = meta.get("name")
        if name:
            if not NAME_PATTERN.match(str(name)):
                errors.append(f"{label}: invalid name '{name}' (lowercase letters, digits, dashes)")
            expected = doc.path.parent.name if doc.kind == "skill" else doc.path.stem
            if str(name) != expected:
                errors.append(f"{label}: name '{name}' does not match '{expected}'")

    if doc.kind == "agent":
        unknown = sorted(set(as_list(meta.get("tools"))) - KNOWN_TOOLS)
        if unknown:
            errors.append(f"{label}: unknown tools: {', '.join(unknown)}")

    if doc.kind == "command" and not meta.get("description"):
        errors.append(f"{label}: missing required field 'description'")
    return errors


def validate_pack(root: Path) -> dict[str, Any]:
    documents: list[Document] = []
    errors: list[str] = []
    for kind, path in _sources(root):
        try:
            documents.append(load_document(path, kind))
        except ValueError as exc:
            errors.append(str(exc))
    seen: dict[tuple[str, str], list[Path]] = defaultdict(list)
    for doc in documents:
        errors.extend(validate_document(doc))
        seen[(doc.kind, doc.name)].append(doc.path)
    for (kind, name), paths in sorted(seen.items()):
        if len(paths) > 1:
            errors.append(f"duplicate {kind} name '{name}': {', '.join(str(p) for p in paths)}")
    return {"valid": not errors, "errors": errors, "documents": [d.as_dict() for d in documents]}
