"""Folder hierarchy handling — LIST response → tree → flat list of selectable paths."""

import logging
from collections.abc import Iterable

from mailprompt.imap.types import FolderNode

logger = logging.getLogger(__name__)

# Root grouping folders that hold no mail of their own, even where a server
# forgets to mark them \Noselect.
SKIPPED_FOLDERS: frozenset[str] = frozenset({"[gmail]", "[google mail]"})

_NOSELECT = "\\Noselect"


def _decode(value: bytes | str | None) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


def build_folder_tree(
    listing: Iterable[tuple[Iterable[bytes | str], bytes | str | None, str]],
) -> list[FolderNode]:
    """Build a folder tree from an IMAP LIST response.

    Each entry is ``(flags, delimiter, name)`` as returned by
    ``IMAPClient.list_folders()``.  Intermediate levels the server did not
    list are created as non-selectable containers so their descendants keep
    their place in the hierarchy.
    """
    roots: list[FolderNode] = []
    for raw_flags, raw_delimiter, name in listing:
        delimiter = _decode(raw_delimiter)
        attributes = frozenset(_decode(f) for f in raw_flags)
        parts = name.split(delimiter) if delimiter else [name]

        level = roots
        for depth, part in enumerate(parts):
            node = next((n for n in level if n.name == part), None)
            is_leaf = depth == len(parts) - 1
            if node is None:
                node = FolderNode(
                    name=part,
                    delimiter=delimiter or "/",
                    attributes=attributes if is_leaf else frozenset({_NOSELECT}),
                )
                level.append(node)
            elif is_leaf:
                # Placeholder created earlier for a child listed before its parent.
                node.attributes = attributes
                node.delimiter = delimiter or node.delimiter
            level = node.children
    return roots


def flatten_folders(nodes: Iterable[FolderNode], parent_path: str = "") -> list[str]:
    """Return selectable folder paths, depth-first, parents before children.

    Non-selectable nodes are omitted but their children are still visited.
    Child paths join the parent path and the child name with the child's
    own delimiter.
    """
    paths: list[str] = []
    for node in nodes:
        path = f"{parent_path}{node.delimiter}{node.name}" if parent_path else node.name
        if node.selectable:
            paths.append(path)
        paths.extend(flatten_folders(node.children, path))
    return paths


def is_skipped_folder(path: str) -> bool:
    """True for known container folders that never hold messages."""
    return path.strip().lower() in SKIPPED_FOLDERS
