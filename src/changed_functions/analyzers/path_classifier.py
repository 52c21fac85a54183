"""Path Classifier - Decides which file paths are deployable functions or deployment triggers."""

import os
import re
from typing import Iterable, Optional, Pattern

from ..errors import ConfigurationError


# functions/*.ts except the aggregating index, or any *.function.ts
DEFAULT_UNIT_PATTERN = r'(functions/(?!index\.ts$).*\.ts|(.*)\.function\.ts)$'
DEFAULT_FULL_DEPLOYMENT_PATTERN = r'((tsconfig|package).json|yarn.lock|src/(functions/)?index.ts)$'

_FUNCTION_SUFFIX = '.function'


def compile_pattern(pattern: str, name: str) -> Pattern[str]:
    """Compile a configured regex, failing loudly when it is malformed."""
    try:
        return re.compile(pattern)
    except re.error as e:
        raise ConfigurationError(f"Invalid {name} regex {pattern!r}: {e}") from e


def unit_name(file_path: str) -> str:
    """Canonical function name of a file: its basename without the extension.

    A trailing ``.function`` marker is dropped as well, so ``functions/sendEmail.ts``
    and ``src/sendEmail.function.ts`` are both ``sendEmail``. Other dots are
    kept: ``functions/users.onCreate.ts`` is the grouped ``users.onCreate``.
    """
    stem = os.path.splitext(os.path.basename(file_path))[0]
    if stem.endswith(_FUNCTION_SUFFIX) and len(stem) > len(_FUNCTION_SUFFIX):
        stem = stem[:-len(_FUNCTION_SUFFIX)]
    return stem


class PathClassifier:
    """Classifies file paths against the unit and full-deployment patterns.

    Both patterns are searched anywhere in the full path (not just the
    basename) and are case-sensitive. When a root directory is given,
    absolute paths inside it are matched in their root-relative form, the
    form changed files are reported in.
    """

    def __init__(self, unit_pattern: str = DEFAULT_UNIT_PATTERN,
                 full_deployment_pattern: str = DEFAULT_FULL_DEPLOYMENT_PATTERN,
                 root_directory: Optional[str] = None):
        self.unit_regex = compile_pattern(unit_pattern, 'unit')
        self.full_deployment_regex = compile_pattern(full_deployment_pattern, 'full deployment')
        self.root_directory = os.path.abspath(root_directory) if root_directory else None

    def is_unit(self, file_path: str) -> bool:
        """Check whether the path is a deployable function file."""
        return self.unit_regex.search(self._relative(file_path)) is not None

    def triggers_full_deployment(self, file_path: str) -> bool:
        """Check whether a change to the path forces deploying everything."""
        return self.full_deployment_regex.search(self._relative(file_path)) is not None

    def trigger_for(self, file_paths: Iterable[str]) -> Optional[str]:
        """Return the first path that triggers a full deployment, if any."""
        for file_path in file_paths:
            if self.triggers_full_deployment(file_path):
                return file_path
        return None

    def unit_name(self, file_path: str) -> str:
        return unit_name(file_path)

    def _relative(self, file_path: str) -> str:
        if self.root_directory is None or not os.path.isabs(file_path):
            return file_path

        relative = os.path.relpath(file_path, self.root_directory)
        if relative == os.pardir or relative.startswith(os.pardir + os.sep):
            return file_path  # outside the root
        return relative.replace(os.sep, '/')
