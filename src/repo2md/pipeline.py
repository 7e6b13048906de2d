from __future__ import annotations

from typing import TYPE_CHECKING

from repo2md.acquisition import acquire, resolve_source
from repo2md.classifier import classify_files
from repo2md.config import ContentSection, DocumentModel, language_for
from repo2md.logging import logger
from repo2md.output_construction import build_markdown, write_document
from repo2md.walker import walk_tree

if TYPE_CHECKING:
    from pathlib import Path

    from repo2md.config import WorkingTree
    from repo2md.settings import Settings


def build_document_model(tree: WorkingTree, settings: Settings) -> DocumentModel:
    """Walk and classify a working tree into the model the assembler consumes.

    Args:
        tree (WorkingTree): the acquired tree
        settings (Settings): exclusion and classification policy, worker count

    Returns:
        DocumentModel: structure and one section per walked file, in traversal order
    """
    walked = walk_tree(tree.root, settings.exclusion_policy())
    verdicts = classify_files(
        tree.root,
        walked.files,
        settings.classifier_policy(),
        workers=settings.workers,
    )
    sections = [
        ContentSection(path=entry.path, language=language_for(entry.name), verdict=verdict)
        for entry, verdict in zip(walked.files, verdicts, strict=True)
    ]
    return DocumentModel(repo_name=tree.name, structure=walked.entries, sections=sections)


def render_repository(settings: Settings) -> tuple[str, str]:
    """Acquire the configured source and assemble its document.

    The working tree only lives for the duration of this call.

    Args:
        settings (Settings): run configuration, `settings.source` included

    Returns:
        tuple[str, str]: the repository name and the Markdown text
    """
    source = resolve_source(settings.source)
    logger.info("source_resolved", source=source.model_dump(mode="json"))
    with acquire(source, settings) as tree:
        model = build_document_model(tree, settings)
    return model.repo_name, build_markdown(model)


def run(settings: Settings) -> Path:
    """Run the whole pipeline and write `<output_dir>/<repo-name>.md`.

    Args:
        settings (Settings): run configuration

    Raises:
        Repo2MdError: NotFound/NotADirectory/CloneFailed from acquisition, WriteFailed from the sink.

    Returns:
        Path: the written document
    """
    name, text = render_repository(settings)
    return write_document(text, name, settings.output_dir)
