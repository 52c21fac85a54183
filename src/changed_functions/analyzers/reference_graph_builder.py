"""Reference Graph Builder - Builds the file reference graph used for impact analysis."""

import logging
import os
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, Iterator, List, Optional, Protocol, Sequence, Tuple

import networkx as nx
from wcmatch import glob as wcglob

from ..errors import ConfigurationError


logger = logging.getLogger(__name__)

DEFAULT_VENDOR_DIRECTORIES = ('node_modules',)

# globby semantics: braces, globstar, files only, dotfiles skipped
GLOB_FLAGS = wcglob.BRACE | wcglob.GLOBSTAR | wcglob.NODIR


class ReferenceMapSource(Protocol):
    """Anything able to tell which files reference which."""

    def reference_map(self, file_paths: List[str],
                      root_directory: str) -> Optional[Dict[str, List[str]]]:
        """Map each origin path to the paths referencing it, or None if no map could be built."""
        ...


class ReferenceGraph:
    """Immutable reverse-dependency graph over absolute file paths.

    An edge ``B -> A`` means that B references (imports) A, so the files
    affected by a change to A are the predecessors of A.
    """

    def __init__(self, references: Optional[Dict[str, Iterable[str]]] = None):
        graph = nx.DiGraph()
        origins = []

        for origin, referencing in (references or {}).items():
            origins.append(origin)
            graph.add_node(origin)
            for path in referencing:
                graph.add_edge(path, origin)

        self._origins: Tuple[str, ...] = tuple(origins)
        self._graph = nx.freeze(graph)

    @property
    def origins(self) -> Tuple[str, ...]:
        return self._origins

    @property
    def graph(self) -> nx.DiGraph:
        """The underlying (frozen) networkx graph."""
        return self._graph

    def dependents(self, file_path: str) -> Tuple[str, ...]:
        """Files that directly reference the given file, in insertion order."""
        if file_path not in self._graph:
            return ()
        return tuple(self._graph.predecessors(file_path))

    def edges(self) -> Iterator[Tuple[str, str]]:
        """Yield ``(referencing, origin)`` pairs."""
        return iter(self._graph.edges())

    def as_dict(self) -> Dict[str, FrozenSet[str]]:
        return {origin: frozenset(self.dependents(origin)) for origin in self._origins}

    def __contains__(self, file_path: object) -> bool:
        return file_path in self._origins

    def __len__(self) -> int:
        return len(self._origins)

    def __repr__(self) -> str:
        return f"ReferenceGraph(origins={len(self._origins)}, edges={self._graph.number_of_edges()})"


class ReferenceGraphBuilder:
    """Builds a vendor-filtered ReferenceGraph for the files matching a glob."""

    def __init__(self, reference_source: Optional[ReferenceMapSource] = None,
                 vendor_directories: Sequence[str] = DEFAULT_VENDOR_DIRECTORIES):
        self.vendor_directories = tuple(vendor_directories)
        self._reference_source = reference_source

    @property
    def reference_source(self) -> ReferenceMapSource:
        """Lazy initialization of the tree-sitter reference source."""
        if self._reference_source is None:
            from ..parsers.tree_sitter_parser import TypeScriptReferenceSource
            self._reference_source = TypeScriptReferenceSource(self.vendor_directories)
        return self._reference_source

    def build(self, unit_glob: str, root_directory: str) -> ReferenceGraph:
        """Build the reference graph for candidate unit files under root_directory."""
        root_directory = os.path.abspath(root_directory)
        file_paths = self.find_candidate_files(unit_glob, root_directory)
        return self.build_from_files(file_paths, root_directory)

    def build_from_files(self, file_paths: List[str], root_directory: str) -> ReferenceGraph:
        """Build the reference graph from already enumerated candidate files."""
        root_directory = os.path.abspath(root_directory)
        reference_map = self.reference_source.reference_map(file_paths, root_directory)
        if reference_map is None:
            logger.debug("No reference file map was generated.")
            return ReferenceGraph()

        graph = ReferenceGraph(self.filter_vendored(reference_map))
        logger.debug("Built %r", graph)
        return graph

    def find_candidate_files(self, unit_glob: str, root_directory: str) -> List[str]:
        """Absolute paths of files under root_directory matching the glob, sorted.

        Braces (``*.{ts,js}``) and ``**`` are expanded. An absolute glob must
        point inside root_directory.
        """
        root_directory = os.path.abspath(root_directory)
        pattern = self._relative_pattern(unit_glob, root_directory)

        matches = wcglob.glob(pattern, flags=GLOB_FLAGS, root_dir=root_directory)
        file_paths = sorted(
            os.path.abspath(os.path.join(root_directory, match)) for match in matches
        )
        logger.debug("%d files match glob %r under %s", len(file_paths), unit_glob, root_directory)
        return file_paths

    def _relative_pattern(self, unit_glob: str, root_directory: str) -> str:
        if not os.path.isabs(unit_glob):
            return unit_glob[2:] if unit_glob.startswith('./') else unit_glob

        relative = os.path.relpath(unit_glob, root_directory)
        if relative == os.pardir or relative.startswith(os.pardir + os.sep):
            raise ConfigurationError(
                f"Function glob {unit_glob!r} is outside the workspace {root_directory}"
            )
        return relative.replace(os.sep, '/')

    def filter_vendored(self, reference_map: Dict[str, List[str]]) -> Dict[str, List[str]]:
        """Drop every pair whose origin or any reference lies in a vendor directory."""
        filtered = {}
        for origin, references in reference_map.items():
            if self.is_vendored(origin):
                continue
            if any(self.is_vendored(path) for path in references):
                continue
            filtered[origin] = list(references)

        dropped = len(reference_map) - len(filtered)
        if dropped:
            logger.debug("Dropped %d vendored reference entries", dropped)

        return filtered

    def is_vendored(self, file_path: str) -> bool:
        """Check if any path segment is a vendor directory."""
        return any(part in self.vendor_directories for part in Path(file_path).parts)
