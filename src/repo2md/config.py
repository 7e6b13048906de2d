from __future__ import annotations

from enum import StrEnum
from pathlib import Path
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

EXT2LANG: dict[str, str] = {
    ".bash": "bash",
    ".c": "c",
    ".cc": "cpp",
    ".cfg": "ini",
    ".conf": "ini",
    ".cpp": "cpp",
    ".cs": "csharp",
    ".css": "css",
    ".cxx": "cpp",
    ".dart": "dart",
    ".erl": "erlang",
    ".ex": "elixir",
    ".exs": "elixir",
    ".fs": "fsharp",
    ".fsx": "fsharp",
    ".go": "go",
    ".h": "c",
    ".hpp": "cpp",
    ".hs": "haskell",
    ".htm": "html",
    ".html": "html",
    ".ini": "ini",
    ".java": "java",
    ".js": "javascript",
    ".json": "json",
    ".jsx": "javascript",
    ".kt": "kotlin",
    ".lua": "lua",
    ".markdown": "markdown",
    ".md": "markdown",
    ".mjs": "javascript",
    ".perl": "perl",
    ".php": "php",
    ".pl": "perl",
    ".py": "python",
    ".r": "r",
    ".rb": "ruby",
    ".rs": "rust",
    ".scala": "scala",
    ".scss": "scss",
    ".sh": "bash",
    ".sql": "sql",
    ".swift": "swift",
    ".toml": "toml",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".xml": "xml",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".zsh": "bash",
}

FILENAME2LANG: dict[str, str] = {
    "dockerfile": "dockerfile",
    "makefile": "makefile",
    "gnumakefile": "makefile",
    "cmakelists.txt": "cmake",
    "gemfile": "ruby",
    "rakefile": "ruby",
    "jenkinsfile": "groovy",
}

VCS_DIRS = frozenset({".git", ".hg", ".svn", ".bzr"})

DEFAULT_IGNORE_DIRS = [
    "node_modules",
    "target",
    "dist",
    "build",
    "__pycache__",
    ".venv",
    "venv",
    ".tox",
    ".mypy_cache",
    ".pytest_cache",
    ".ruff_cache",
    ".ipynb_checkpoints",
    ".gradle",
    ".next",
]

DEFAULT_IGNORE_FILES = [".DS_Store", "Thumbs.db", "yarn.lock"]

DEFAULT_IGNORE_EXTENSIONS = [".pyc", ".pyo", ".class", ".o", ".obj", ".so", ".dll", ".dylib", ".exe"]

DEFAULT_DOTFILE_ALLOWLIST = [
    ".github",
    ".gitlab-ci.yml",
    ".circleci",
    ".travis.yml",
    ".gitignore",
    ".gitattributes",
    ".editorconfig",
    ".dockerignore",
    ".pre-commit-config.yaml",
    ".env.example",
]


def language_for(path: str | Path) -> str:
    """Get the suggested code fence language for a file.

    Well-known extension-less names (``Dockerfile``, ``Makefile``...) are looked up
    first, then the lower-cased suffix.

    Args:
        path (str | Path): the file path (only its name is used)

    Returns:
        str: the language name for code fences, or "" if unknown.
    """
    p = Path(path)
    by_name = FILENAME2LANG.get(p.name.lower())
    if by_name:
        return by_name
    return EXT2LANG.get(p.suffix.lower(), "")


# ------------------------------ Sources & trees -----------------------------


class LocalSource(BaseModel):
    """A repository already checked out on disk."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["local"] = "local"
    path: Path


class RemoteSource(BaseModel):
    """A repository reachable through `git clone`."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["remote"] = "remote"
    url: str
    protocol: str = Field(..., description="https, http, ssh, git, file or the generic URL scheme")

    @property
    def is_ssh(self) -> bool:
        return self.protocol == "ssh"


RepositorySource = Annotated[LocalSource | RemoteSource, Field(discriminator="kind")]


class WorkingTree(BaseModel):
    """The filesystem root a run walks; removed at the end of the run when ephemeral."""

    model_config = ConfigDict(frozen=True)

    root: Path
    name: str
    ephemeral: bool = False


class EntryKind(StrEnum):
    DIRECTORY = "directory"
    FILE = "file"


class TreeEntry(BaseModel):
    """One node of the walked repository tree.

    Attributes:
        kind: Directory or file (serialized as ``type``).
        name: Entry name.
        path: POSIX path relative to the working tree root.
        size: File size in bytes (files only, None when it could not be read).
        children: Ordered children (directories only).
        note: Why the entry could not be read or followed, if applicable.
    """

    model_config = ConfigDict(frozen=True)

    kind: EntryKind = Field(..., serialization_alias="type")
    name: str
    path: str
    size: int | None = Field(default=None, ge=0)
    children: list[TreeEntry] | None = None
    note: str | None = None

    @model_validator(mode="after")
    def _check_shape(self) -> TreeEntry:
        if self.kind is EntryKind.FILE:
            if self.children is not None:
                msg = f"file entry {self.path!r} cannot have children"
                raise ValueError(msg)
        else:
            if self.size is not None:
                msg = f"directory entry {self.path!r} cannot have a size"
                raise ValueError(msg)
            names = [c.name for c in self.children or []]
            if len(names) != len(set(names)):
                msg = f"directory entry {self.path!r} has duplicate children"
                raise ValueError(msg)
        return self

    @property
    def is_dir(self) -> bool:
        return self.kind is EntryKind.DIRECTORY


TreeEntry.model_rebuild()


# ------------------------------ Verdicts ------------------------------------


class TextVerdict(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["text"] = "text"
    encoding: Literal["utf-8"] = "utf-8"
    content: str


class BinaryVerdict(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["binary"] = "binary"
    reason: str


class TooLargeVerdict(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["too_large"] = "too_large"
    size: int = Field(..., ge=0)
    limit: int = Field(..., ge=0)


class SkippedVerdict(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["skipped"] = "skipped"
    reason: str


FileVerdict = Annotated[
    TextVerdict | BinaryVerdict | TooLargeVerdict | SkippedVerdict,
    Field(discriminator="kind"),
]


class ContentSection(BaseModel):
    """One per-file section of the document, in traversal order."""

    model_config = ConfigDict(frozen=True)

    path: str
    language: str = ""
    verdict: FileVerdict


class DocumentModel(BaseModel):
    """Structural summary plus ordered content sections, consumed once by the assembler."""

    model_config = ConfigDict(frozen=True)

    repo_name: str
    structure: list[TreeEntry]
    sections: list[ContentSection]

    def count(self, kind: str) -> int:
        return sum(1 for s in self.sections if s.verdict.kind == kind)


# ------------------------------ Policies ------------------------------------


class ExclusionPolicy(BaseModel):
    """What the tree walker leaves out. VCS directories are excluded regardless."""

    model_config = ConfigDict(frozen=True)

    ignore_dirs: frozenset[str] = frozenset(DEFAULT_IGNORE_DIRS)
    ignore_files: frozenset[str] = frozenset(DEFAULT_IGNORE_FILES)
    ignore_extensions: frozenset[str] = frozenset(DEFAULT_IGNORE_EXTENSIONS)
    exclude_globs: tuple[str, ...] = ()
    include_globs: tuple[str, ...] = ()
    exclude_dotfiles: bool = True
    dotfile_allowlist: frozenset[str] = frozenset(DEFAULT_DOTFILE_ALLOWLIST)


class ClassifierPolicy(BaseModel):
    """Thresholds for the text/binary decision."""

    model_config = ConfigDict(frozen=True)

    max_bytes: int = Field(default=1_000_000, ge=0)
    sniff_bytes: int = Field(default=8192, gt=0)
    binary_ratio: float = Field(default=0.30, ge=0.0, le=1.0)
