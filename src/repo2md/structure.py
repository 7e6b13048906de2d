"""JSON projection of the walked tree."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Sequence

    from repo2md.config import TreeEntry


def to_structure(entries: Sequence[TreeEntry]) -> list[dict[str, Any]]:
    """Project tree entries to plain dicts, preserving order and nesting.

    Keys are `type`, `name`, `path`, then `size` for files or `children` for
    directories, and `note` when the walker recorded one.

    Args:
        entries (Sequence[TreeEntry]): top-level entries from the walker

    Returns:
        list[dict[str, Any]]: JSON-serializable structure
    """
    return [entry.model_dump(mode="json", by_alias=True, exclude_none=True) for entry in entries]


def render_structure(entries: Sequence[TreeEntry]) -> str:
    """Render the structural summary as pretty-printed JSON."""
    return json.dumps(to_structure(entries), indent=2, ensure_ascii=False)
