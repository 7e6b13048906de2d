from __future__ import annotations

import fnmatch
import os
import stat
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from repo2md.config import VCS_DIRS, EntryKind, ExclusionPolicy, TreeEntry
from repo2md.exceptions import SourceUnreadableError
from repo2md.logging import logger

if TYPE_CHECKING:
    from collections.abc import Sequence


@dataclass
class WalkResult:
    """Output of a tree walk.

    Attributes:
        entries: top-level entries of the repository tree, nested.
        files: every file entry, flattened in traversal order.
    """

    entries: list[TreeEntry] = field(default_factory=list)
    files: list[TreeEntry] = field(default_factory=list)


def match_any_glob(rel: str, globs: Sequence[str]) -> bool:
    """Check if a relative path matches any of the provided glob patterns.

    Args:
        rel (str): the relative path to check
        globs (Sequence[str]): the glob patterns to match against

    Returns:
        bool: True if `rel` matches any pattern in `globs`, False otherwise
    """
    return any(fnmatch.fnmatch(rel, g) for g in globs)


def normalize_globs(globs: Sequence[str]) -> list[str]:
    """Normalize a sequence of path glob patterns.

    Normalize a sequence of glob patterns by stripping whitespace and
    replacing backslashes with forward slashes.

    Args:
        globs (Sequence[str]): the glob patterns to normalize

    Returns:
        list[str]: the normalized glob patterns
    """
    out: list[str] = []
    for g in globs:
        g2 = (g or "").strip()
        if not g2:
            continue
        out.append(g2.replace("\\", "/"))
    return out


def is_excluded(name: str, rel: str, *, is_dir: bool, policy: ExclusionPolicy) -> bool:
    """Apply the exclusion policy to one entry, before recursing or classifying.

    Args:
        name (str): the entry name
        rel (str): the POSIX path relative to the repository root
        is_dir (bool): whether the entry is a directory
        policy (ExclusionPolicy): the active exclusion rules

    Returns:
        bool: True if the entry must not appear in the output
    """
    if name in VCS_DIRS:
        return True
    if name.startswith(".") and policy.exclude_dotfiles and name not in policy.dotfile_allowlist:
        return True
    if is_dir:
        if name in policy.ignore_dirs:
            return True
    else:
        if name in policy.ignore_files:
            return True
        suffix = os.path.splitext(name)[1].lower()
        if suffix and suffix in policy.ignore_extensions:
            return True
    excludes = normalize_globs(policy.exclude_globs)
    if excludes and (match_any_glob(rel, excludes) or match_any_glob(rel + "/", excludes)):
        return True
    includes = normalize_globs(policy.include_globs)
    return not is_dir and bool(includes) and not match_any_glob(rel, includes)


def _sort_key(entry: os.DirEntry[str]) -> tuple[str, str]:
    return (entry.name.lower(), entry.name)


def _join(prefix: str, name: str) -> str:
    return f"{prefix}/{name}" if prefix else name


def _file_entry(entry: os.DirEntry[str], rel: str, root: Path) -> TreeEntry:
    try:
        st = entry.stat(follow_symlinks=True)
    except OSError as e:
        note = "broken symlink" if entry.is_symlink() else f"unreadable: {e.strerror or e}"
        logger.warning("entry_skipped", path=rel, reason=note)
        return TreeEntry(kind=EntryKind.FILE, name=entry.name, path=rel, note=note)
    if entry.is_symlink() and not Path(entry.path).resolve().is_relative_to(root):
        note = "symlink outside repository"
        logger.warning("entry_skipped", path=rel, reason=note)
        return TreeEntry(kind=EntryKind.FILE, name=entry.name, path=rel, note=note)
    if not stat.S_ISREG(st.st_mode):
        note = "not a regular file"
        logger.warning("entry_skipped", path=rel, reason=note)
        return TreeEntry(kind=EntryKind.FILE, name=entry.name, path=rel, note=note)
    return TreeEntry(kind=EntryKind.FILE, name=entry.name, path=rel, size=st.st_size)


def _walk_dir(
    directory: Path | str,
    prefix: str,
    policy: ExclusionPolicy,
    files: list[TreeEntry],
    root: Path,
) -> list[TreeEntry]:
    with os.scandir(directory) as it:
        children = sorted(it, key=_sort_key)

    out: list[TreeEntry] = []
    for entry in children:
        rel = _join(prefix, entry.name)
        try:
            is_dir = entry.is_dir(follow_symlinks=True)
        except OSError:
            is_dir = False

        if is_excluded(entry.name, rel, is_dir=is_dir, policy=policy):
            continue

        if not is_dir:
            node = _file_entry(entry, rel, root)
            files.append(node)
            out.append(node)
            continue

        if entry.is_symlink():
            note = "symlinked directory not followed"
            logger.info("entry_skipped", path=rel, reason=note)
            out.append(TreeEntry(kind=EntryKind.DIRECTORY, name=entry.name, path=rel, children=[], note=note))
            continue

        try:
            sub = _walk_dir(entry.path, rel, policy, files, root)
        except OSError as e:
            note = f"unreadable: {e.strerror or e}"
            logger.warning("entry_skipped", path=rel, reason=note)
            out.append(TreeEntry(kind=EntryKind.DIRECTORY, name=entry.name, path=rel, children=[], note=note))
            continue
        if sub:
            out.append(TreeEntry(kind=EntryKind.DIRECTORY, name=entry.name, path=rel, children=sub))
    return out


def walk_tree(root: Path, policy: ExclusionPolicy | None = None) -> WalkResult:
    """Walk the repository rooted at `root` depth-first.

    Children are sorted by name (case-insensitively, exact name as tie-breaker)
    with directories and files interleaved, so the result only depends on the
    tree contents. VCS metadata directories are always pruned; the rest of the
    filtering comes from `policy`. Directories left empty by filtering are
    dropped. Unreadable entries are kept with a `note` instead of aborting, and
    so are file symlinks that resolve outside `root`.

    Args:
        root (Path): the working tree root
        policy (ExclusionPolicy | None): exclusion rules, defaults when None

    Raises:
        SourceUnreadableError: if `root` itself cannot be listed.

    Returns:
        WalkResult: the nested entries and the flat, ordered file list
    """
    policy = policy or ExclusionPolicy()
    files: list[TreeEntry] = []
    try:
        entries = _walk_dir(root, "", policy, files, Path(root).resolve())
    except OSError as e:
        raise SourceUnreadableError(path=Path(root), reason=e.strerror or str(e)) from e
    logger.info("walk_finished", root=str(root), files=len(files))
    return WalkResult(entries=entries, files=files)
