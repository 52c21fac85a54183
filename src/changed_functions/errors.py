"""Errors raised while deciding which functions to deploy."""


class ConfigurationError(ValueError):
    """Raised when configuration is present but unusable (e.g. a malformed regex)."""


class ChangedFilesError(RuntimeError):
    """Raised when the list of changed files cannot be retrieved.

    No deployment decision can be made without it, so this always aborts the run.
    """
