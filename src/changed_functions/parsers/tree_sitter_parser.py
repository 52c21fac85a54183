"""Tree-sitter based extraction of file references from TypeScript/JavaScript sources."""

import logging
import os
from collections import deque
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from tree_sitter import Node, Tree  # Only need Node/Tree for type hints
from tree_sitter_languages import get_parser  # For language and parser support


logger = logging.getLogger(__name__)

NODE_MODULES = 'node_modules'

# Order matters: TypeScript sources win over compiled JavaScript
RESOLVE_EXTENSIONS = ('.ts', '.tsx', '.d.ts', '.js', '.jsx', '.mjs', '.cjs')

LANGUAGE_MAP = {
    '.ts': 'typescript',
    '.mts': 'typescript',
    '.cts': 'typescript',
    '.tsx': 'tsx',
    '.js': 'javascript',
    '.jsx': 'javascript',
    '.mjs': 'javascript',
    '.cjs': 'javascript',
}


@dataclass
class ModuleReference:
    """A module specifier found in a source file."""
    specifier: str
    start_line: int
    kind: str  # 'import', 'export', 'require', 'dynamic_import'


class TreeSitterParser:
    """Parser using Tree-sitter to find module references."""

    def __init__(self):
        """Initialize parsers for the supported languages."""
        self.parsers = {}

        for lang in sorted(set(LANGUAGE_MAP.values())):
            try:
                self.parsers[lang] = get_parser(lang)
            except (ValueError, TypeError, RuntimeError) as e:
                logger.warning("Failed to initialize %s support: %s", lang, e)

    def detect_language(self, file_path: str) -> Optional[str]:
        """Detect the language of a file based on its extension."""
        return LANGUAGE_MAP.get(os.path.splitext(file_path)[1].lower())

    def parse_file(self, content: str, language: str) -> Tree:
        """Parse file content using the appropriate language grammar."""
        if language not in self.parsers:
            raise ValueError(f"Language {language} not supported")

        return self.parsers[language].parse(bytes(content, 'utf8'))

    def get_module_references(self, tree: Tree) -> List[ModuleReference]:
        """Extract import/export/require specifiers from the AST."""
        references = []

        def add(string_node: Optional[Node], kind: str):
            specifier = _string_value(string_node)
            if specifier:
                references.append(ModuleReference(
                    specifier=specifier,
                    start_line=string_node.start_point[0] + 1,
                    kind=kind
                ))

        # explicit stack: generated sources nest deeper than the recursion limit
        stack = [tree.root_node]
        while stack:
            node = stack.pop()

            if node.type == 'import_statement':
                source = node.child_by_field_name('source')
                if source is None:
                    # import x = require('y')
                    source = _find_require_clause_source(node)
                add(source, 'import')

            elif node.type == 'export_statement':
                # export { x } from 'y' / export * from 'y'
                add(node.child_by_field_name('source'), 'export')

            elif node.type == 'call_expression':
                function_node = node.child_by_field_name('function')
                arguments_node = node.child_by_field_name('arguments')
                if function_node is not None and arguments_node is not None:
                    first_argument = arguments_node.named_children[0] if arguments_node.named_children else None
                    if function_node.type == 'import':
                        add(first_argument, 'dynamic_import')
                    elif function_node.type == 'identifier' and function_node.text == b'require':
                        add(first_argument, 'require')

            # reversed so children are visited in source order
            stack.extend(reversed(node.children))

        return references


class TypeScriptReferenceSource:
    """Builds a reference map (origin -> files referencing it) by crawling imports.

    Starting from the candidate files, every resolvable import is followed,
    the way a compiler program pulls in the files its roots depend on.
    Vendored files are recorded as origins but never crawled.
    """

    def __init__(self, vendor_directories: Sequence[str] = (NODE_MODULES,),
                 parser: Optional[TreeSitterParser] = None):
        self.vendor_directories = tuple(vendor_directories)
        self._parser = parser
        self.file_contents = {}  # Cache for file contents

    @property
    def parser(self) -> TreeSitterParser:
        """Lazy initialization of Tree-sitter parser."""
        if self._parser is None:
            self._parser = TreeSitterParser()
        return self._parser

    def reference_map(self, file_paths: List[str],
                      root_directory: str) -> Optional[Dict[str, List[str]]]:
        if not file_paths:
            return None

        root_directory = os.path.abspath(root_directory)
        references: Dict[str, List[str]] = {}
        queue = deque(os.path.abspath(file_path) for file_path in file_paths)
        seen = set(queue)

        while queue:
            current = queue.popleft()

            for target in self.get_file_references(current, root_directory):
                referencing = references.setdefault(target, [])
                if current not in referencing:
                    referencing.append(current)

                if target not in seen and not self._is_vendored(target):
                    seen.add(target)
                    queue.append(target)

        logger.debug("Crawled %d files, %d are referenced", len(seen), len(references))
        return references

    def get_file_references(self, file_path: str, root_directory: str) -> List[str]:
        """Resolved paths of every module the file references."""
        language = self.parser.detect_language(file_path)
        if language is None or language not in self.parser.parsers:
            return []

        content = self._get_file_content(file_path)
        if content is None:
            return []

        try:
            tree = self.parser.parse_file(content, language)
            module_references = self.parser.get_module_references(tree)
        except (ValueError, RuntimeError) as e:
            logger.debug("Could not parse %s: %s", file_path, e)
            return []

        resolved = []
        for reference in module_references:
            target = self.resolve_specifier(reference.specifier, file_path, root_directory)
            if target is not None and target != file_path and target not in resolved:
                resolved.append(target)

        return resolved

    def resolve_specifier(self, specifier: str, from_file: str, root_directory: str) -> Optional[str]:
        """Resolve a module specifier to a file path."""
        if specifier.startswith('.') or os.path.isabs(specifier):
            base = os.path.normpath(os.path.join(os.path.dirname(from_file), specifier))
            return self._resolve_module_path(base)

        # bare specifier: an installed package
        package_path = os.path.join(root_directory, NODE_MODULES, specifier)
        resolved = self._resolve_module_path(package_path)
        if resolved is None and os.path.isdir(package_path):
            return package_path
        return resolved

    def _resolve_module_path(self, base: str) -> Optional[str]:
        if os.path.isfile(base):
            return base

        for ext in RESOLVE_EXTENSIONS:
            candidate = base + ext
            if os.path.isfile(candidate):
                return candidate

        # ESM-style './util.js' pointing at './util.ts'
        stem, ext = os.path.splitext(base)
        if ext in ('.js', '.jsx', '.mjs', '.cjs'):
            for ts_ext in ('.ts', '.tsx', '.mts', '.cts'):
                candidate = stem + ts_ext
                if os.path.isfile(candidate):
                    return candidate

        if os.path.isdir(base):
            for ext in RESOLVE_EXTENSIONS:
                candidate = os.path.join(base, 'index' + ext)
                if os.path.isfile(candidate):
                    return candidate

        return None

    def _get_file_content(self, file_path: str) -> Optional[str]:
        """Get file content with caching."""
        if file_path not in self.file_contents:
            try:
                with open(file_path, 'r', encoding='utf-8') as f:
                    self.file_contents[file_path] = f.read()
            except (OSError, UnicodeDecodeError) as e:
                logger.debug("Could not read %s: %s", file_path, e)
                self.file_contents[file_path] = None

        return self.file_contents[file_path]

    def _is_vendored(self, file_path: str) -> bool:
        return any(part in self.vendor_directories for part in file_path.split(os.sep))


def _string_value(node: Optional[Node]) -> Optional[str]:
    """Unquote a string literal node."""
    if node is None or node.type != 'string':
        return None
    text = node.text.decode('utf8')
    return text[1:-1] if len(text) >= 2 else None


def _find_require_clause_source(node: Node) -> Optional[Node]:
    for child in node.named_children:
        if child.type == 'import_require_clause':
            source = child.child_by_field_name('source')
            if source is not None:
                return source
            for grandchild in child.named_children:
                if grandchild.type == 'string':
                    return grandchild
    return None
