from __future__ import annotations

import json

import pytest

from repo2md.config import EntryKind, TreeEntry
from repo2md.structure import render_structure, to_structure


def _tree() -> list[TreeEntry]:
    inner = TreeEntry(kind=EntryKind.FILE, name="main.py", path="src/main.py", size=12)
    return [
        TreeEntry(kind=EntryKind.FILE, name="README.md", path="README.md", size=5),
        TreeEntry(kind=EntryKind.DIRECTORY, name="src", path="src", children=[inner]),
        TreeEntry(kind=EntryKind.FILE, name="dangling", path="dangling", note="broken symlink"),
    ]


@pytest.mark.unit
def test_to_structure_mirrors_order_and_nesting() -> None:
    structure = to_structure(_tree())

    assert structure == [
        {"type": "file", "name": "README.md", "path": "README.md", "size": 5},
        {
            "type": "directory",
            "name": "src",
            "path": "src",
            "children": [{"type": "file", "name": "main.py", "path": "src/main.py", "size": 12}],
        },
        {"type": "file", "name": "dangling", "path": "dangling", "note": "broken symlink"},
    ]


@pytest.mark.unit
def test_render_structure_is_valid_pretty_json() -> None:
    text = render_structure(_tree())

    assert json.loads(text) == to_structure(_tree())
    assert text.startswith('[\n  {\n    "type": "file"')
    assert render_structure(_tree()) == text


@pytest.mark.unit
def test_tree_entry_rejects_file_with_children() -> None:
    with pytest.raises(ValueError, match="cannot have children"):
        TreeEntry(kind=EntryKind.FILE, name="a", path="a", children=[])


@pytest.mark.unit
def test_tree_entry_rejects_duplicate_children() -> None:
    child = TreeEntry(kind=EntryKind.FILE, name="a", path="d/a", size=1)

    with pytest.raises(ValueError, match="duplicate children"):
        TreeEntry(kind=EntryKind.DIRECTORY, name="d", path="d", children=[child, child])
