from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


@dataclass(frozen=True, slots=True)
class Violation:
    path: str
    kind: str
    pattern: str
    line: int | None = None

    def describe(self) -> str:
        if self.kind == "filename":
            return f"{self.path}: protected file name (matches {self.pattern})"
        return f"{self.path}:{self.line}: possible secret (matches {self.pattern})"


@dataclass(slots=True)
class ScanReport:
    files: list[str]
    violations: list[Violation] = field(default_factory=list)

    @property
    def blocked(self) -> bool:
        return bool(self.violations)

    @property
    def filename_hits(self) -> list[Violation]:
        return [v for v in self.violations if v.kind == "filename"]

    @property
    def content_hits(self) -> list[Violation]:
        return [v for v in self.violations if v.kind == "content"]

    def as_dict(self) -> dict[str, Any]:
        return {
            "files": self.files,
            "blocked": self.blocked,
            "violations": [
                {"path": v.path, "kind": v.kind, "pattern": v.pattern, "line": v.line}
                for v in self.violations
            ],
        }


@dataclass(slots=True)
class FormatResult:
    tool: str
    files: list[str]
    changed: list[str] = field(default_factory=list)
    skipped: bool = False
    error: str | None = None


@dataclass(slots=True)
class Document:
    kind: str
    name: str
    path: Path
    frontmatter: dict[str, Any]
    body: str

    def as_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "name": self.name,
            "path": str(self.path),
            "description": self.frontmatter.get("description", ""),
        }
