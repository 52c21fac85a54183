"""Language-specific reference extraction."""

from .tree_sitter_parser import TreeSitterParser, TypeScriptReferenceSource

__all__ = ["TreeSitterParser", "TypeScriptReferenceSource"]
