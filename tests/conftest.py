from __future__ import annotations

from typing import Dict, List, Optional

import pytest


class StaticReferenceSource:
    """Reference map source returning a fixed map and recording its calls."""

    def __init__(self, references: Optional[Dict[str, List[str]]]) -> None:
        self.references = references
        self.calls: list[tuple[list[str], str]] = []

    def reference_map(self, file_paths, root_directory):
        self.calls.append((list(file_paths), root_directory))
        return self.references


@pytest.fixture
def static_source():
    return StaticReferenceSource
