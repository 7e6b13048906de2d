from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING

from repo2md.config import BinaryVerdict, ClassifierPolicy, SkippedVerdict, TextVerdict, TooLargeVerdict
from repo2md.logging import logger

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from repo2md.config import FileVerdict, TreeEntry

# Control bytes that legitimately occur in text files.
_TEXT_CONTROLS = frozenset(b"\t\n\r\f\b\x1b")
_NON_PRINTABLE = frozenset(b for b in range(32) if b not in _TEXT_CONTROLS) | {0x7F}


def non_printable_ratio(chunk: bytes) -> float:
    """Share of ASCII control bytes in `chunk` (bytes >= 0x80 count as printable).

    Args:
        chunk (bytes): the prefix to inspect

    Returns:
        float: a value in [0, 1], 0.0 for an empty chunk
    """
    if not chunk:
        return 0.0
    bad = sum(1 for b in chunk if b in _NON_PRINTABLE)
    return bad / len(chunk)


def sniff_binary(chunk: bytes, binary_ratio: float) -> str | None:
    """Run the cheap binary heuristic on a file prefix.

    Args:
        chunk (bytes): the first bytes of the file
        binary_ratio (float): threshold on the non-printable share

    Returns:
        str | None: the reason the prefix looks binary, or None if it looks like text
    """
    if b"\x00" in chunk:
        return "nul-byte"
    if non_printable_ratio(chunk) > binary_ratio:
        return "non-printable"
    return None


def classify(path: Path, size: int, policy: ClassifierPolicy | None = None) -> FileVerdict:
    """Decide how a file is rendered.

    1. above `max_bytes` -> TooLarge, without reading the file;
    2. a NUL byte or too many control bytes in the first `sniff_bytes` -> Binary;
    3. strict UTF-8 decoding of the whole file -> Text, or Binary("invalid-utf8").

    The extension is never consulted. Content is decoded from the raw bytes, so
    a Text verdict is byte-identical to the file.

    Args:
        path (Path): the file on disk
        size (int): its size in bytes as seen by the walker
        policy (ClassifierPolicy | None): thresholds, defaults when None

    Returns:
        FileVerdict: exactly one verdict; I/O failures become SkippedVerdict
    """
    policy = policy or ClassifierPolicy()
    if size > policy.max_bytes:
        return TooLargeVerdict(size=size, limit=policy.max_bytes)
    try:
        with path.open("rb") as f:
            head = f.read(policy.sniff_bytes)
            reason = sniff_binary(head, policy.binary_ratio)
            if reason:
                return BinaryVerdict(reason=reason)
            data = head + f.read()
    except OSError as e:
        return SkippedVerdict(reason=f"unreadable: {e.strerror or e}")

    if len(data) > policy.max_bytes:
        # grew between the walk and the read
        return TooLargeVerdict(size=len(data), limit=policy.max_bytes)
    try:
        content = data.decode("utf-8")
    except UnicodeDecodeError:
        return BinaryVerdict(reason="invalid-utf8")
    return TextVerdict(content=content)


def classify_entry(root: Path, entry: TreeEntry, policy: ClassifierPolicy) -> FileVerdict:
    """Classify a walked file entry, turning walker notes into SkippedVerdict."""
    if entry.note is not None or entry.size is None:
        return SkippedVerdict(reason=entry.note or "size unknown")
    verdict = classify(root / entry.path, entry.size, policy)
    if isinstance(verdict, SkippedVerdict):
        logger.warning("file_skipped", path=entry.path, reason=verdict.reason)
    return verdict


def classify_files(
    root: Path,
    files: Sequence[TreeEntry],
    policy: ClassifierPolicy | None = None,
    *,
    workers: int = 1,
) -> list[FileVerdict]:
    """Classify `files` concurrently, returning verdicts in the order of `files`.

    Args:
        root (Path): the working tree root the entry paths are relative to
        files (Sequence[TreeEntry]): file entries in traversal order
        policy (ClassifierPolicy | None): thresholds, defaults when None
        workers (int): thread count; 1 classifies sequentially

    Returns:
        list[FileVerdict]: one verdict per entry, same order
    """
    policy = policy or ClassifierPolicy()
    if workers <= 1 or len(files) <= 1:
        return [classify_entry(root, entry, policy) for entry in files]
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="repo2md-classify") as pool:
        return list(pool.map(lambda entry: classify_entry(root, entry, policy), files))
