"""Resolve a command-line source into a local working tree, cloning remotes with git."""

from __future__ import annotations

import os
import re
import shutil
import subprocess  # noqa: S404
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING

from repo2md.config import LocalSource, RemoteSource, WorkingTree
from repo2md.exceptions import CloneFailedError, SourceNotADirectoryError, SourceNotFoundError
from repo2md.logging import logger

if TYPE_CHECKING:
    from collections.abc import Iterator

    from repo2md.config import RepositorySource
    from repo2md.settings import Settings

_SCHEME_URL = re.compile(r"^(?P<scheme>[A-Za-z][A-Za-z0-9+.-]*)://")
_SCP_LIKE = re.compile(r"^(?P<user>[\w.+-]+)@(?P<host>[\w.-]+):(?P<path>[^/].*)$")
_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9_-]")

SSH_COMMAND = "core.sshCommand=ssh -o StrictHostKeyChecking=accept-new"
DEFAULT_REPO_NAME = "repository"


def resolve_source(raw: str) -> RepositorySource:
    """Decide whether `raw` names a remote repository or a local path.

    Recognized remote forms:
    - `scheme://[user@]host[:port]/path` for any scheme (`https`, `ssh`, `git`, `file`...)
    - SSH shorthand `user@host:org/repo.git`

    Anything else is treated as a local path. This is pattern matching on the
    prefix, not strict URI validation.

    Args:
        raw (str): the command-line argument

    Returns:
        RepositorySource: a LocalSource or a RemoteSource
    """
    text = raw.strip()
    m = _SCHEME_URL.match(text)
    if m:
        scheme = m.group("scheme").lower()
        protocol = "ssh" if scheme in {"ssh", "git+ssh", "ssh+git"} else scheme
        return RemoteSource(url=text, protocol=protocol)
    if _SCP_LIKE.match(text):
        return RemoteSource(url=text, protocol="ssh")
    return LocalSource(path=Path(text).expanduser())


def _sanitize_name(segment: str) -> str:
    segment = segment.removesuffix(".git")
    name = _UNSAFE_NAME_CHARS.sub("-", segment)
    return name or DEFAULT_REPO_NAME


def repository_name(source: RepositorySource) -> str:
    """Derive the output file stem for a source.

    Examples:
        `https://github.com/org/tool.git` -> `tool`
        `git@github.com:org/tool.git` -> `tool`
        `.` -> name of the current directory

    Args:
        source (RepositorySource): the resolved source

    Returns:
        str: a name containing only ASCII letters, digits, `-` and `_`
    """
    if isinstance(source, LocalSource):
        return _sanitize_name(source.path.resolve().name)

    url = source.url.rstrip("/")
    m = _SCP_LIKE.match(url)
    if m and not _SCHEME_URL.match(url):
        url = m.group("path")
    else:
        url = _SCHEME_URL.sub("", url, count=1)
        # drop the authority part (user@host:port) so bare hosts do not become names
        url = url.split("/", 1)[1] if "/" in url else ""
    segment = url.rstrip("/").rsplit("/", 1)[-1]
    return _sanitize_name(segment)


def clone_command(source: RemoteSource, dest: Path, *, depth: int = 0) -> list[str]:
    """Build the `git clone` argument vector for `source`.

    Args:
        source (RemoteSource): the repository to clone
        dest (Path): the directory git should create
        depth (int): shallow clone depth, 0 for the full history

    Returns:
        list[str]: the command to pass to `subprocess.run`
    """
    cmd = ["git"]
    if source.is_ssh:
        cmd.extend(["-c", SSH_COMMAND])
    cmd.append("clone")
    if depth > 0:
        cmd.extend(["--depth", str(depth)])
    cmd.extend(["--", source.url, str(dest)])
    return cmd


def clone_repository(source: RemoteSource, dest: Path, *, timeout: float, depth: int = 0) -> Path:
    """Clone `source` into `dest` with the external git client.

    Args:
        source (RemoteSource): the repository to clone
        dest (Path): target directory (must not exist or be empty)
        timeout (float): seconds before the clone is killed
        depth (int): shallow clone depth, 0 for the full history

    Raises:
        CloneFailedError: if git is missing, exits non-zero, or times out. Git never
            prompts for credentials, so private repositories without them fail fast.

    Returns:
        Path: `dest`
    """
    cmd = clone_command(source, dest, depth=depth)
    logger.info("clone_started", url=source.url, dest=str(dest))
    try:
        out = subprocess.run(  # noqa: S603
            cmd,
            text=True,
            capture_output=True,
            timeout=timeout,
            check=False,
            env={**os.environ, "GIT_TERMINAL_PROMPT": "0"},
        )
    except subprocess.TimeoutExpired as e:
        raise CloneFailedError(url=source.url, reason="timeout") from e
    except FileNotFoundError as e:
        raise CloneFailedError(url=source.url, reason="git executable not found") from e

    if out.stderr:
        logger.debug("git_output", stderr=out.stderr.strip())
    if out.returncode != 0:
        detail = (out.stderr or "").strip().splitlines()
        reason = detail[-1] if detail else f"git exited with status {out.returncode}"
        raise CloneFailedError(url=source.url, reason=reason)

    logger.info("clone_finished", url=source.url, dest=str(dest))
    return dest


def _local_tree(source: LocalSource) -> WorkingTree:
    path = source.path
    if not path.exists():
        raise SourceNotFoundError(path=path)
    if not path.is_dir():
        raise SourceNotADirectoryError(path=path)
    return WorkingTree(root=path.resolve(), name=repository_name(source), ephemeral=False)


@contextmanager
def acquire(source: RepositorySource, settings: Settings) -> Iterator[WorkingTree]:
    """Materialize a working tree for `source` for the duration of the block.

    Local sources are validated and used in place. Remote sources are cloned
    into a temporary directory that is removed when the block exits (success or
    failure), or into `settings.clone_dir/<name>` which is kept, unless the
    clone itself fails.

    Args:
        source (RepositorySource): the resolved source
        settings (Settings): run configuration (clone timeout, depth, directory)

    Raises:
        SourceNotFoundError: if a local path does not exist.
        SourceNotADirectoryError: if a local path is not a directory.
        CloneFailedError: if cloning fails or the kept clone directory already exists.

    Yields:
        WorkingTree: the tree to walk
    """
    if isinstance(source, LocalSource):
        yield _local_tree(source)
        return

    name = repository_name(source)
    if settings.clone_dir is not None:
        dest = Path(settings.clone_dir) / name
        if dest.exists():
            raise CloneFailedError(url=source.url, reason=f"destination already exists: {dest}")
        dest.parent.mkdir(parents=True, exist_ok=True)
        try:
            clone_repository(source, dest, timeout=settings.clone_timeout, depth=settings.clone_depth)
        except CloneFailedError:
            shutil.rmtree(dest, ignore_errors=True)
            raise
        yield WorkingTree(root=dest.resolve(), name=name, ephemeral=False)
        return

    with tempfile.TemporaryDirectory(prefix="repo2md-") as tmp:
        dest = Path(tmp) / name
        clone_repository(source, dest, timeout=settings.clone_timeout, depth=settings.clone_depth)
        yield WorkingTree(root=dest.resolve(), name=name, ephemeral=True)
