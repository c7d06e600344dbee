"""Git operations for the pipeline checkout and version steps."""

from .repository import GitError, Repository, clone

__all__ = ["GitError", "Repository", "clone"]
