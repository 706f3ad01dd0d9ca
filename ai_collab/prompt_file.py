"""Read a prompt from a markdown file with optional YAML front-matter."""

from pathlib import Path
from typing import Any

import frontmatter

# Front-matter keys the CLI understands directly; anything else is a strategy option.
_RESERVED_KEYS = ("strategy", "models", "synthesize", "synthesis_method")


def parse_file(file_path: Path) -> tuple[str, dict[str, Any]]:
    """Parse a markdown file with optional YAML front-matter.

    Returns:
        (content, metadata) where content is the stripped body text and
        metadata is the front-matter dict ({} when there is none).
    """
    post = frontmatter.load(str(file_path))
    return post.content.strip(), dict(post.metadata)


def split_options(metadata: dict[str, Any]) -> tuple[dict[str, Any], dict[str, Any]]:
    """Separate CLI-level keys from strategy options.

    >>> split_options({"strategy": "consensus", "max_rounds": 2})
    ({'strategy': 'consensus'}, {'max_rounds': 2})
    """
    reserved = {k: v for k, v in metadata.items() if k in _RESERVED_KEYS}
    options = {k: v for k, v in metadata.items() if k not in _RESERVED_KEYS}
    return reserved, options


def parse_models(value: Any) -> list[str]:
    """Accept either a YAML list or a comma-separated string."""
    if value is None:
        return []
    if isinstance(value, str):
        return [m.strip() for m in value.split(",") if m.strip()]
    return [str(m).strip() for m in value if str(m).strip()]
