"""YAML frontmatter handling for Markdown documents."""

from typing import Any

import yaml

DELIMITER = "---"


def split_frontmatter(text: str) -> tuple[dict[str, Any] | None, str]:
    """Split a document into (frontmatter, body).

    Returns ``(None, text)`` when the document has no well-formed leading
    frontmatter block.
    """
    lines = text.splitlines(keepends=True)
    if not lines or lines[0].strip() != DELIMITER:
        return None, text

    for index in range(1, len(lines)):
        if lines[index].strip() == DELIMITER:
            raw = "".join(lines[1:index])
            try:
                data = yaml.safe_load(raw) if raw.strip() else {}
            except yaml.YAMLError:
                return None, text
            if not isinstance(data, dict):
                return None, text
            body = "".join(lines[index + 1:])
            return data, body.lstrip("\n")

    return None, text


def render_frontmatter(data: dict[str, Any]) -> str:
    """Render a frontmatter block (including delimiters and trailing blank line)."""
    dumped = yaml.safe_dump(
        data,
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True,
    )
    return f"{DELIMITER}\n{dumped}{DELIMITER}\n\n"


def ensure_frontmatter(text: str, defaults: dict[str, Any]) -> str:
    """Return text with a frontmatter block holding at least ``defaults``.

    Existing keys are preserved; missing ones are filled from ``defaults``.
    """
    data, body = split_frontmatter(text)
    merged = dict(defaults)
    if data:
        merged.update(data)
        if all(key in data for key in defaults):
            return text
    return render_frontmatter(merged) + body


def strip_frontmatter(text: str) -> str:
    """Return the body of a document without its frontmatter block."""
    return split_frontmatter(text)[1]
