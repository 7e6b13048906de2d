from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from repo2md.config import (
    DEFAULT_DOTFILE_ALLOWLIST,
    DEFAULT_IGNORE_DIRS,
    DEFAULT_IGNORE_EXTENSIONS,
    DEFAULT_IGNORE_FILES,
    ClassifierPolicy,
    ExclusionPolicy,
)
from repo2md.exceptions import ConfigurationError

ENV_FILE = find_dotenv(usecwd=True)
ENV_PREFIX = "REPO2MD_"


class Settings(BaseModel):
    """Configuration settings for the repo2md module."""

    model_config = ConfigDict(arbitrary_types_allowed=True, extra="forbid")

    source: str = Field(default=".", description="Local path or Git URL.")
    output_dir: Path = Field(default=Path("output"), description="Directory receiving <repo-name>.md.")
    log_file: str = Field(default="", description="Log file path.")
    verbose: bool = Field(default=False, description="Log debug events.")

    max_bytes: int = Field(default=1_000_000, ge=0, description="Files above are not inlined.")
    sniff_bytes: int = Field(default=8192, gt=0, description="Prefix inspected by the binary heuristic.")
    binary_ratio: float = Field(
        default=0.30,
        ge=0.0,
        le=1.0,
        description="Share of control bytes above which a prefix is binary.",
    )
    workers: int = Field(default=8, ge=1, description="Classification threads.")

    clone_timeout: float = Field(default=300.0, gt=0, description="Seconds allowed for git clone.")
    clone_depth: int = Field(default=0, ge=0, description="Shallow clone depth (0 = full history).")
    clone_dir: Path | None = Field(default=None, description="Keep the clone under this directory.")

    ignore_dirs: list[str] = Field(default_factory=lambda: list(DEFAULT_IGNORE_DIRS))
    ignore_files: list[str] = Field(default_factory=lambda: list(DEFAULT_IGNORE_FILES))
    ignore_extensions: list[str] = Field(default_factory=lambda: list(DEFAULT_IGNORE_EXTENSIONS))
    exclude_glob: list[str] = Field(default_factory=list, description="Exclude glob.")
    include_glob: list[str] = Field(default_factory=list, description="Include glob.")
    exclude_dotfiles: bool = Field(default=True, description="Drop dotfiles outside the allow-list.")
    dotfile_allowlist: list[str] = Field(default_factory=lambda: list(DEFAULT_DOTFILE_ALLOWLIST))

    @field_validator(
        "ignore_dirs",
        "ignore_files",
        "ignore_extensions",
        "exclude_glob",
        "include_glob",
        "dotfile_allowlist",
        mode="before",
    )
    @classmethod
    def _split_comma_list(cls, value: Any) -> Any:  # noqa: ANN401
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @field_validator("ignore_extensions")
    @classmethod
    def _dotted_extensions(cls, value: list[str]) -> list[str]:
        return [ext.lower() if ext.startswith(".") else f".{ext.lower()}" for ext in value]

    def exclusion_policy(self) -> ExclusionPolicy:
        return ExclusionPolicy(
            ignore_dirs=frozenset(self.ignore_dirs),
            ignore_files=frozenset(self.ignore_files),
            ignore_extensions=frozenset(self.ignore_extensions),
            exclude_globs=tuple(self.exclude_glob),
            include_globs=tuple(self.include_glob),
            exclude_dotfiles=self.exclude_dotfiles,
            dotfile_allowlist=frozenset(self.dotfile_allowlist),
        )

    def classifier_policy(self) -> ClassifierPolicy:
        return ClassifierPolicy(
            max_bytes=self.max_bytes,
            sniff_bytes=self.sniff_bytes,
            binary_ratio=self.binary_ratio,
        )


def load_config_file(path: Path) -> dict[str, Any]:
    """Read settings overrides from a YAML mapping.

    Args:
        path (Path): the YAML file to read

    Raises:
        ConfigurationError: if the file is unreadable, is not valid YAML, or is not a mapping.

    Returns:
        dict[str, Any]: the raw key/value overrides
    """
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except OSError as e:
        raise ConfigurationError(path=path, reason=e.strerror or str(e)) from e
    except yaml.YAMLError as e:
        raise ConfigurationError(path=path, reason=f"invalid YAML: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(path=path, reason="top-level value must be a mapping")
    return {str(k).replace("-", "_"): v for k, v in data.items()}


def env_overrides(environ: dict[str, str] | None = None) -> dict[str, str]:
    """Collect `REPO2MD_<FIELD>` variables matching a Settings field.

    Args:
        environ (dict[str, str] | None): environment to read, `os.environ` by default.

    Returns:
        dict[str, str]: raw overrides keyed by field name
    """
    env = os.environ if environ is None else environ
    out: dict[str, str] = {}
    for field_name in Settings.model_fields:
        value = env.get(ENV_PREFIX + field_name.upper())
        if value is not None:
            out[field_name] = value
    return out


def _validation_reason(error: ValidationError) -> str:
    parts = []
    for err in error.errors():
        loc = ".".join(str(p) for p in err["loc"])
        parts.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return "; ".join(parts)


def load_settings(
    overrides: dict[str, Any] | None = None,
    *,
    config_file: Path | None = None,
    environ: dict[str, str] | None = None,
) -> Settings:
    """Merge defaults, a YAML config file, the environment and explicit overrides.

    Later layers win: defaults < config file < `REPO2MD_*` variables < overrides.
    A `.env` file found from the current directory is loaded into the process
    environment first (existing variables are kept).

    Args:
        overrides (dict[str, Any] | None): explicitly requested values (CLI options)
        config_file (Path | None): YAML file; falls back to `REPO2MD_CONFIG`
        environ (dict[str, str] | None): environment mapping, `os.environ` by default

    Raises:
        ConfigurationError: if the config file is invalid or the merged values do not validate.

    Returns:
        Settings: the validated settings
    """
    if environ is None:
        if ENV_FILE:
            load_dotenv(ENV_FILE, override=False)
        environ = dict(os.environ)

    if config_file is None and environ.get(ENV_PREFIX + "CONFIG"):
        config_file = Path(environ[ENV_PREFIX + "CONFIG"])

    merged: dict[str, Any] = {}
    if config_file is not None:
        merged.update(load_config_file(config_file))
    merged.update(env_overrides(environ))
    merged.update(overrides or {})

    try:
        return Settings(**merged)
    except ValidationError as e:
        raise ConfigurationError(path=config_file, reason=_validation_reason(e)) from e
