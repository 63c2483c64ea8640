from pathlib import Path

import pytest

from agentpack.docs import (
    doc_path,
    load_documents,
    parse_frontmatter,
    render_frontmatter,
    validate_document,
    validate_pack,
)
from agentpack.models import Document


def _write(root: Path, rel: str, text: str) -> Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def test_parse_frontmatter_values():
    text = "---\nname: plan\ntools: [Read, Grep]\nquoted: \"a: b\"\nenabled: true\n---\n\n# Body\n"
    meta, body = parse_frontmatter(text)
    assert meta == {"name": "plan", "tools": ["Read", "Grep"], "quoted": "a: b", "enabled": True}
    assert body == "# Body\n"


def test_parse_frontmatter_missing_or_unterminated():
    assert parse_frontmatter("# Just markdown\n") == ({}, "# Just markdown\n")
    assert parse_frontmatter("---\nname: x\nno end\n") == ({}, "---\nname: x\nno end\n")


def test_render_frontmatter_joins_lists():
    text = render_frontmatter({"name": "edit", "tools": ["Read", "Edit"]}, "Body")
    assert text == "---\nname: edit\ntools: Read, Edit\n---\n\nBody\n"


def test_load_documents_finds_all_kinds(tmp_path: Path):
    _write(tmp_path, ".claude/agents/plan.md", "---\nname: plan\ndescription: d\n---\nx\n")
    _write(tmp_path, ".claude/commands/ship.md", "---\ndescription: d\n---\nx\n")
    _write(tmp_path, ".claude/rules/style.md", "# Style\n")
    _write(tmp_path, ".claude/skills/sql/SKILL.md", "---\nname: sql\ndescription: d\n---\nx\n")

    docs = load_documents(tmp_path)

    assert [(d.kind, d.name) for d in docs] == [
        ("agent", "plan"),
        ("command", "ship"),
        ("rule", "style"),
        ("skill", "sql"),
    ]


def test_agent_validation_errors(tmp_path: Path):
    doc = Document(
        kind="agent",
        name="Planner",
        path=tmp_path / "plan.md",
        frontmatter={"name": "Planner", "tools": "Read, Teleport"},
        body="",
    )
    errors = validate_document(doc)
    assert any("empty body" in e for e in errors)
    assert any("missing required field 'description'" in e for e in errors)
    assert any("invalid name 'Planner'" in e for e in errors)
    assert any("does not match 'plan'" in e for e in errors)
    assert any("unknown tools: Teleport" in e for e in errors)


def test_skill_name_must_match_directory(tmp_path: Path):
    path = _write(tmp_path, ".claude/skills/sql/SKILL.md", "---\nname: postgres\ndescription: d\n---\nx\n")
    meta, body = parse_frontmatter(path.read_text(encoding="utf-8"))
    doc = Document(kind="skill", name="postgres", path=path, frontmatter=meta, body=body)
    assert validate_document(doc) == [f"skill {path}: name 'postgres' does not match 'sql'"]


def test_command_requires_description(tmp_path: Path):
    _write(tmp_path, ".claude/commands/ship.md", "Ship it\n")
    result = validate_pack(tmp_path)
    assert not result["valid"]
    assert "missing required field 'description'" in result["errors"][0]


def test_duplicate_names_are_reported(tmp_path: Path):
    _write(tmp_path, ".claude/commands/a.md", "---\nname: go\ndescription: d\n---\nx\n")
    _write(tmp_path, ".claude/commands/b.md", "---\nname: go\ndescription: d\n---\nx\n")
    result = validate_pack(tmp_path)
    assert any(e.startswith("duplicate command name 'go'") for e in result["errors"])


def test_doc_path_layout(tmp_path: Path):
    assert doc_path(tmp_path, "skill", "sql") == tmp_path / ".claude" / "skills" / "sql" / "SKILL.md"
    assert doc_path(tmp_path, "rule", "style") == tmp_path / ".claude" / "rules" / "style.md"


def test_parse_frontmatter_block_lists():
    text = "---\nname: review\ntools:\n  - Read\n  - Grep\nhooks:\n- pre-commit\n---\nBody\n"
    meta, _ = parse_frontmatter(text)
    assert meta["tools"] == ["Read", "Grep"]
    assert meta["hooks"] == ["pre-commit"]


def test_parse_frontmatter_block_scalars():
    text = (
        "---\n"
        "literal: |\n"
        "  first\n"
        "    indented\n"
        "\n"
        "  last\n"
        "folded: >-\n"
        "  one\n"
        "  two\n"
        "\n"
        "  three\n"
        "empty:\n"
        "---\n"
        "Body\n"
    )
    meta, _ = parse_frontmatter(text)
    assert meta["literal"] == "first\n  indented\n\nlast\n"
    assert meta["folded"] == "one two\nthree"
    assert meta["empty"] == ""


def test_parse_frontmatter_rejects_nested_mappings():
    with pytest.raises(ValueError, match="line 3"):
        parse_frontmatter("---\nname: x\n  owner: infra\n---\nBody\n")
    with pytest.raises(ValueError, match="line 2"):
        parse_frontmatter("---\njust words\n---\nBody\n")


def test_render_frontmatter_multiline_values_parse_back():
    meta = {"name": "plan", "description": "Plans work.\nNever edits.\n"}
    assert parse_frontmatter(render_frontmatter(meta, "Body"))[0] == meta


def test_validate_pack_reports_unparseable_frontmatter(tmp_path: Path):
    _write(tmp_path, ".claude/agents/odd.md", "---\nname: odd\ndescription: d\nextra:\n  key: v\n---\nx\n")
    _write(tmp_path, ".claude/rules/fine.md", "---\ndescription: d\n---\nx\n")

    result = validate_pack(tmp_path)

    assert result["valid"] is False
    assert len(result["errors"]) == 1
    assert "Unsupported frontmatter" in result["errors"][0]
    assert [d["name"] for d in result["documents"]] == ["fine"]
