"""Changed file retrieval."""

from .changed_files import (
    GitHubComparisonSource, GitDiffSource, filter_changed_files, load_push_event
)

__all__ = ["GitHubComparisonSource", "GitDiffSource", "filter_changed_files", "load_push_event"]
