from __future__ import annotations

import io
import os
import re
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

from repo2md.config import BinaryVerdict, SkippedVerdict, TextVerdict, TooLargeVerdict
from repo2md.exceptions import WriteFailedError
from repo2md.logging import logger
from repo2md.structure import render_structure

if TYPE_CHECKING:
    from repo2md.config import ContentSection, DocumentModel

_BACKTICK_RUN = re.compile(r"`{3,}")

DEFAULT_OUTPUT_DIR = Path("output")


def fence_for(content: str) -> str:
    """Pick a backtick fence longer than any backtick run inside `content`.

    Args:
        content (str): the text that goes inside the fenced block

    Returns:
        str: at least three backticks
    """
    longest = max((len(m.group(0)) for m in _BACKTICK_RUN.finditer(content)), default=0)
    return "`" * max(3, longest + 1)


def render_placeholder(section: ContentSection) -> str:
    """Render the one-line note used instead of file content.

    Args:
        section (ContentSection): a section whose verdict is not Text

    Returns:
        str: a Markdown blockquote line
    """
    match section.verdict:
        case BinaryVerdict(reason=reason):
            return f"> binary file omitted ({reason})"
        case TooLargeVerdict(size=size, limit=limit):
            return f"> file too large: {size} bytes (limit {limit} bytes)"
        case SkippedVerdict(reason=reason):
            return f"> skipped: {reason}"
        case _:
            return "> content unavailable"


def render_section(section: ContentSection) -> str:
    """Render one per-file section (heading plus fenced block or placeholder).

    Args:
        section (ContentSection): the path, language and verdict of one file

    Returns:
        str: the Markdown for the section, ending with a blank line
    """
    out = io.StringIO()
    out.write(f"### {section.path}\n\n")
    match section.verdict:
        case TextVerdict(content=content):
            fence = fence_for(content)
            body = content if content.endswith("\n") or not content else content + "\n"
            out.write(f"{fence}{section.language}\n{body}{fence}\n\n")
        case _:
            out.write(render_placeholder(section) + "\n\n")
    return out.getvalue()


def build_markdown(model: DocumentModel) -> str:
    """Build the Markdown document for a repository.

    The document holds a title, per-verdict counts, the structural summary as a
    JSON block, then one section per file in traversal order. Nothing depends
    on the clock or the location of the working tree, so an unchanged tree
    always yields the same text.

    Args:
        model (DocumentModel): structure plus ordered content sections

    Returns:
        str: the Markdown document
    """
    out = io.StringIO()
    out.write(f"# Repository: {model.repo_name}\n\n")
    out.write(
        f"files={len(model.sections)} text={model.count('text')} binary={model.count('binary')} "
        f"too_large={model.count('too_large')} skipped={model.count('skipped')}\n\n",
    )

    out.write("## Structure\n\n")
    out.write("```json\n")
    out.write(render_structure(model.structure))
    out.write("\n```\n\n")

    out.write("## Files\n\n")
    for section in model.sections:
        try:
            out.write(render_section(section))
        except Exception as e:
            logger.warning("section_render_failed", path=section.path, error=str(e))
            out.write(f"### {section.path}\n\n> skipped: rendering failed\n\n")

    return out.getvalue().rstrip() + "\n"


def output_path(repo_name: str, output_dir: Path = DEFAULT_OUTPUT_DIR) -> Path:
    return Path(output_dir) / f"{repo_name}.md"


def _current_umask() -> int:
    mask = os.umask(0)
    os.umask(mask)
    return mask


def write_document(text: str, repo_name: str, output_dir: Path = DEFAULT_OUTPUT_DIR) -> Path:
    """Write `text` to `<output_dir>/<repo_name>.md`.

    The text goes to a temporary file in the same directory which then replaces
    the target, so a failed write never leaves a partial document behind. The
    file gets the usual `0o666 & ~umask` mode rather than the private mode of
    temporary files.

    Args:
        text (str): the assembled document
        repo_name (str): output file stem
        output_dir (Path): directory to create if needed

    Raises:
        WriteFailedError: on any I/O error.

    Returns:
        Path: the written file
    """
    target = output_path(repo_name, output_dir)
    tmp_name: str | None = None
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            newline="",
            dir=target.parent,
            prefix=f".{repo_name}.",
            suffix=".tmp",
            delete=False,
        ) as f:
            tmp_name = f.name
            f.write(text)
        os.chmod(tmp_name, 0o666 & ~_current_umask())
        os.replace(tmp_name, target)
    except OSError as e:
        if tmp_name is not None:
            Path(tmp_name).unlink(missing_ok=True)
        raise WriteFailedError(path=target, reason=e.strerror or str(e)) from e
    logger.info("document_written", path=str(target), bytes=len(text.encode("utf-8")))
    return target
