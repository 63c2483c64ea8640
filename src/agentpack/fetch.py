from __future__ import annotations

import logging
from pathlib import Path
import re
from urllib.parse import urlparse

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from agentpack.docs import DOC_KINDS, doc_path, parse_frontmatter, validate_document
from agentpack.models import Document

logger = logging.getLogger(__name__)

_NAME_LINE = re.compile(r"^name\s*:")


def _raw_github_url(url: str) -> str:
    parsed = urlparse(url)
    if parsed.netloc != "github.com" or "/blob/" not in parsed.path:
        return url
    owner_repo, _, rest = parsed.path.lstrip("/").partition("/blob/")
    return f"https://raw.githubusercontent.com/{owner_repo}/{rest}"


@retry(
    retry=retry_if_exception_type(httpx.TransportError),
    wait=wait_exponential(multiplier=1, min=1, max=8),
    stop=stop_after_attempt(3),
    reraise=True,
)
def _get_text(client: httpx.Client, url: str) -> str:
    resp = client.get(url, follow_redirects=True)
    resp.raise_for_status()
    return resp.text


def _default_name(url: str, kind: str) -> str:
    parts = [p for p in urlparse(url).path.split("/") if p]
    if kind == "skill" and len(parts) >= 2 and parts[-1] == "SKILL.md":
        return parts[-2]
    return Path(parts[-1]).stem if parts else kind


def _with_name(text: str, name: str) -> str:
    """Set `name:` in the frontmatter, leaving every other line as fetched."""
    lines = text.splitlines()
    if not lines or lines[0].strip() != "---":
        return f"---\nname: {name}\n---\n\n{text}"
    for idx, line in enumerate(lines[1:], start=1):
        if line.strip() == "---":
            break
        if _NAME_LINE.match(line):
            lines[idx] = f"name: {name}"
            return "\n".join(lines) + "\n"
    lines.insert(1, f"name: {name}")
    return "\n".join(lines) + "\n"


def fetch_document(
    url: str,
    kind: str,
    root: Path,
    *,
    name: str | None = None,
    overwrite: bool = False,
    client: httpx.Client | None = None,
    timeout: float = 30.0,
) -> Path:
    if kind not in DOC_KINDS:
        raise ValueError(f"Unknown document kind: {kind}")
    source = _raw_github_url(url)
    own_client = client is None
    client = client or httpx.Client(timeout=timeout)
    try:
        try:
            text = _get_text(client, source)
        except httpx.HTTPStatusError as exc:
            raise RuntimeError(f"Fetching {source} failed: HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise RuntimeError(f"Fetching {source} failed: {exc}") from exc
    finally:
        if own_client:
            client.close()

    try:
        meta, body = parse_frontmatter(text)
        name = name or str(meta.get("name") or _default_name(source, kind))
        if kind in {"agent", "skill"} and meta.get("name") != name:
            text = _with_name(text, name)
            meta, body = parse_frontmatter(text)
    except ValueError as exc:
        raise ValueError(f"Fetched document is invalid:\n{exc}") from exc
    target = doc_path(root.resolve(), kind, name)
    doc = Document(kind=kind, name=name, path=target, frontmatter=meta, body=body)
    errors = validate_document(doc)
    if errors:
        raise ValueError("Fetched document is invalid:\n" + "\n".join(errors))
    if target.exists() and not overwrite:
        raise FileExistsError(f"{target} already exists; use --overwrite to replace it.")

    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(text if text.endswith("\n") else text + "\n", encoding="utf-8")
    logger.info("wrote %s %s to %s", kind, name, target)
    return target
