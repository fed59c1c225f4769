"""
Namespace tree data structures for the dispatcher.

Defines the NamespaceEntry TypedDict that represents one node of the
dispatcher's namespace tree. Each entry keeps the actions registered exactly at
that node, bucketed by priority in registration order, separately from the
child entries for deeper path segments.

A dotted path such as 'foo.bar' addresses the entry reached by following the
'foo' child of the root and then its 'bar' child.
"""

from typing import Iterator
from typing import Optional
from typing import TypedDict

from orca import action


class NamespaceEntry(TypedDict):
    """Entry for a node in the namespace tree."""

    actions: dict[action.PRIORITY, list[action.Action]]
    """Actions registered at this node, keyed by priority."""

    children: dict[str, "NamespaceEntry"]
    """Nested namespaces keyed by path segment."""


def new_entry() -> NamespaceEntry:
    return {"actions": {}, "children": {}}


def split_path(path: str) -> list[str]:
    """Split a dotted namespace path into its segments."""
    return path.split(".")


def find_entry(root: NamespaceEntry, path: str) -> Optional[NamespaceEntry]:
    """
    Walk the tree from root following each segment of path.

    Args:
        root (NamespaceEntry): The entry to start walking from.
        path (str): Dotted namespace path.
    Returns:
        Optional[NamespaceEntry]: The deepest matching entry, or None if any
            segment is missing.
    """
    entry = root
    for segment in split_path(path):
        entry = entry["children"].get(segment)
        if entry is None:
            return None

    return entry


def ensure_entry(root: NamespaceEntry, segments: list[str]) -> NamespaceEntry:
    """Walk the tree creating any missing entries along segments."""
    entry = root
    for segment in segments:
        entry = entry["children"].setdefault(segment, new_entry())

    return entry


def iter_entries(entry: NamespaceEntry) -> Iterator[NamespaceEntry]:
    """Yield entry and every entry nested below it, depth first."""
    yield entry
    for child in entry["children"].values():
        yield from iter_entries(child)


def iter_paths(
    entry: NamespaceEntry, prefix: str = ""
) -> Iterator[tuple[str, NamespaceEntry]]:
    """Yield (dotted path, entry) for every entry nested below entry."""
    for segment, child in entry["children"].items():
        path = f"{prefix}.{segment}" if prefix else segment
        yield path, child
        yield from iter_paths(child, path)


def iter_actions(entry: NamespaceEntry) -> Iterator[action.Action]:
    """Yield the actions registered exactly at entry, bucket by bucket."""
    for bucket in entry["actions"].values():
        yield from bucket


def sorted_actions(entry: NamespaceEntry) -> list[action.Action]:
    """Actions at entry in dispatch order."""
    return sorted(iter_actions(entry), key=lambda a: a.sort_key)
