"""Impact Resolver - Expands changed files into the set of affected deployable functions."""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List

from .path_classifier import PathClassifier
from .reference_graph_builder import ReferenceGraph


logger = logging.getLogger(__name__)


@dataclass
class ImpactScope:
    """Result of walking the reference graph from a set of changed files."""
    changed_files: List[str]
    unit_paths: List[str] = field(default_factory=list)
    functions: List[str] = field(default_factory=list)
    depth: int = 0  # number of frontiers expanded


class ImpactResolver:
    """Walks reverse-dependency edges from changed files to deployable functions.

    The walk is breadth-first. Only non-function dependents are expanded
    further: once a branch reaches a function file, that branch stops. A
    visited set shared by all frontiers keeps cyclic graphs finite.
    """

    def __init__(self, classifier: PathClassifier):
        self.classifier = classifier

    def resolve(self, changed_paths: Iterable[str], graph: ReferenceGraph) -> List[str]:
        """Names of the functions affected by the changed paths, deduplicated in first-seen order."""
        return self.analyze(changed_paths, graph).functions

    def resolve_paths(self, changed_paths: Iterable[str], graph: ReferenceGraph) -> List[str]:
        """Files of the functions affected by the changed paths."""
        return self.analyze(changed_paths, graph).unit_paths

    def analyze(self, changed_paths: Iterable[str], graph: ReferenceGraph) -> ImpactScope:
        changed = _unique(changed_paths)
        scope = ImpactScope(changed_files=changed)

        frontier = changed
        visited = set(frontier)
        affected: List[str] = []

        while frontier:
            scope.depth += 1

            dependents = _unique(
                dependent
                for file_path in frontier
                for dependent in graph.dependents(file_path)
            )

            unit_dependents = [p for p in dependents if self.classifier.is_unit(p)]
            non_unit_dependents = [p for p in dependents if not self.classifier.is_unit(p)]

            affected.extend(unit_dependents)
            # a changed function file with no dependents still counts
            affected.extend(p for p in frontier if self.classifier.is_unit(p))

            frontier = [p for p in non_unit_dependents if p not in visited]
            visited.update(frontier)

            logger.debug("Frontier %d: %d dependents, %d functions, %d to expand",
                         scope.depth, len(dependents), len(unit_dependents), len(frontier))

        scope.unit_paths = _unique(affected)
        scope.functions = _unique(self.classifier.unit_name(p) for p in scope.unit_paths)
        return scope


def _unique(items: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(items))
