"""
repo2md: turn a Git repository into one Markdown document for an LLM.

Overview
--------
Given a local path or a Git URL (HTTPS, SSH shorthand `git@host:org/repo.git`
or any `scheme://` form), repo2md writes `./output/<repo-name>.md` containing:

- a JSON outline of the repository tree (names, paths, sizes),
- one section per file with its content in a language-tagged fenced block,
- a one-line placeholder instead of content for binary, oversized or
  unreadable files.

Remote repositories are cloned with the `git` executable into a temporary
directory removed at the end of the run. VCS metadata, build/dependency
directories and most dotfiles are left out; see `--help` for the knobs.

Usage
-----
    repo2md .
    repo2md https://github.com/org/tool.git --max-bytes 200000
    repo2md git@github.com:org/tool.git --clone-depth 1 --log-file run.log
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from repo2md import __version__
from repo2md.exceptions import Repo2MdError
from repo2md.logging import logger, setup_logging
from repo2md.pipeline import run
from repo2md.settings import Settings, load_settings

if TYPE_CHECKING:
    from collections.abc import Sequence


def build_parser() -> argparse.ArgumentParser:
    # Defaults are suppressed so only explicit options override the config file and environment.
    p = argparse.ArgumentParser(
        prog="repo2md",
        description="Export a Git repository (local path or URL) as a single Markdown document.",
        argument_default=argparse.SUPPRESS,
    )
    p.add_argument("source", help="Local path or Git URL (https://, ssh://, git@host:org/repo.git).")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("--config", type=Path, help="YAML file with settings.")
    p.add_argument("--output-dir", type=Path, help="Output directory (default: ./output).")
    p.add_argument("--max-bytes", type=int, help="Files above are replaced by a placeholder.")
    p.add_argument("--sniff-bytes", type=int, help="Prefix size for the binary heuristic.")
    p.add_argument("--binary-ratio", type=float, help="Control-byte share above which a file is binary.")
    p.add_argument("--workers", type=int, help="Classification threads.")
    p.add_argument("--clone-timeout", type=float, help="Seconds allowed for git clone.")
    p.add_argument("--clone-depth", type=int, help="Shallow clone depth (0 = full history).")
    p.add_argument("--clone-dir", type=Path, help="Keep the clone under this directory.")
    p.add_argument(
        "--ignore-dir",
        action="append",
        help="Extra directory name to skip (repeatable).",
    )
    p.add_argument(
        "--exclude-glob",
        action="append",
        help="Exclude glob on relative paths (repeatable).",
    )
    p.add_argument(
        "--include-glob",
        action="append",
        help="Only keep files matching one of these globs (repeatable).",
    )
    p.add_argument(
        "--include-dotfiles",
        action="store_true",
        help="Keep dotfiles outside the allow-list (VCS metadata stays excluded).",
    )
    p.add_argument("--log-file", type=str, help="Log file path.")
    p.add_argument("--verbose", action="store_true", help="Log debug events.")
    return p


def parse_args(argv: Sequence[str] | None = None) -> Settings:
    """Parse command-line arguments into validated settings.

    Args:
        argv (Sequence[str] | None): arguments without the program name, `sys.argv[1:]` by default

    Raises:
        ConfigurationError: if the config file or the merged values are invalid.

    Returns:
        Settings: defaults < config file < environment < command line
    """
    args = vars(build_parser().parse_args(argv))
    config_file = args.pop("config", None)
    if args.pop("include_dotfiles", False):
        args["exclude_dotfiles"] = False
    extra_dirs = args.pop("ignore_dir", None)
    settings = load_settings(args, config_file=config_file)
    if extra_dirs:
        settings = settings.model_copy(update={"ignore_dirs": [*settings.ignore_dirs, *extra_dirs]})
    return settings


def main(argv: Sequence[str] | None = None) -> int:
    try:
        settings = parse_args(argv)
        if settings.log_file or settings.verbose:
            setup_logging(settings.log_file or None, verbose=settings.verbose, force=True)
        out_path = run(settings)
    except Repo2MdError as e:
        logger.debug("run_failed", error=e.message, error_type=type(e).__name__)
        print(f"error: {e.message}", file=sys.stderr)
        return 1

    print(out_path)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
