"""Export a Git repository as a single Markdown document for LLM context."""

__version__ = "0.1.0"
