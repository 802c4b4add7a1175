"""Storage collaborators that load documents from disk."""

from dotted_tree.loaders.file import SUPPORTED_EXTENSIONS, FileLoader, read_tree

__all__ = ["FileLoader", "SUPPORTED_EXTENSIONS", "read_tree"]
