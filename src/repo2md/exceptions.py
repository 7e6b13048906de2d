from dataclasses import dataclass
from pathlib import Path


@dataclass
class Repo2MdError(Exception):
    """Base exception for fatal errors in the repo2md module."""

    @property
    def message(self) -> str:
        return "repo2md failed."

    def __str__(self) -> str:
        return self.message


@dataclass
class SourceNotFoundError(Repo2MdError):
    """Raised when a local repository path does not exist."""

    path: Path

    @property
    def message(self) -> str:
        return f"Repository path not found: {self.path}"


@dataclass
class SourceNotADirectoryError(Repo2MdError):
    """Raised when a local repository path exists but is not a directory."""

    path: Path

    @property
    def message(self) -> str:
        return f"Repository path is not a directory: {self.path}"


@dataclass
class CloneFailedError(Repo2MdError):
    """Raised when `git clone` exits with a non-zero status or times out."""

    url: str
    reason: str

    @property
    def message(self) -> str:
        return f"Cloning {self.url} failed: {self.reason}"


@dataclass
class WriteFailedError(Repo2MdError):
    """Raised when the assembled document cannot be written."""

    path: Path
    reason: str

    @property
    def message(self) -> str:
        return f"Writing {self.path} failed: {self.reason}"


@dataclass
class ConfigurationError(Repo2MdError):
    """Raised when settings cannot be loaded or do not validate."""

    reason: str
    path: Path | None = None

    @property
    def message(self) -> str:
        if self.path is None:
            return f"Invalid configuration: {self.reason}"
        return f"Invalid configuration file {self.path}: {self.reason}"


@dataclass
class SourceUnreadableError(Repo2MdError):
    """Raised when the repository root cannot be listed."""

    path: Path
    reason: str

    @property
    def message(self) -> str:
        return f"Repository path cannot be read: {self.path} ({self.reason})"
