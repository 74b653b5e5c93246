"""Worklist traversal of the folder tree.

Cascades walk the tree with an explicit stack over ``parent_id``
adjacency queries, so depth is bounded by memory, not recursion limits.
Children are visited in ID order to keep cascades deterministic.
"""

import logging

from server.apps.drive.models import Folder

logger = logging.getLogger(__name__)


def child_folder_ids(folder_id: int, trashed_only: bool = False) -> list[int]:
    """Get direct child folder IDs, trashed ones included.

    Args:
        folder_id: Parent folder ID.
        trashed_only: Skip live children.

    Returns:
        Child IDs in ascending order.
    """
    queryset = Folder.all_objects.filter(parent_id=folder_id)
    if trashed_only:
        queryset = queryset.filter(is_deleted=True)
    return list(queryset.order_by('id').values_list('id', flat=True))


def walk_pre_order(root_id: int, trashed_only: bool = False) -> list[int]:
    """List a subtree's folder IDs with every parent before its children.

    Args:
        root_id: ID of the subtree root (included first).
        trashed_only: Do not descend into live folders.

    Returns:
        Folder IDs in pre-order.
    """
    order: list[int] = []
    seen: set[int] = set()
    stack = [root_id]

    while stack:
        folder_id = stack.pop()
        if folder_id in seen:
            # Only reachable through a corrupted parent chain
            logger.warning('Cycle detected at folder %d, skipping', folder_id)
            continue
        seen.add(folder_id)
        order.append(folder_id)
        # Reversed so the smallest ID is popped first
        stack.extend(reversed(child_folder_ids(folder_id, trashed_only)))

    return order


def walk_post_order(root_id: int, trashed_only: bool = False) -> list[int]:
    """List a subtree's folder IDs with every child before its parent.

    Args:
        root_id: ID of the subtree root (included last).
        trashed_only: Do not descend into live folders.

    Returns:
        Folder IDs in post-order.
    """
    return list(reversed(walk_pre_order(root_id, trashed_only)))


def is_descendant(folder_id: int, ancestor_id: int) -> bool:
    """Check whether a folder lies inside another folder's subtree.

    Walks the ancestor chain upward from ``folder_id``.

    Args:
        folder_id: Folder to test.
        ancestor_id: Candidate ancestor.

    Returns:
        True if ``ancestor_id`` is ``folder_id`` or one of its ancestors.
    """
    seen: set[int] = set()
    current: int | None = folder_id
    while current is not None and current not in seen:
        if current == ancestor_id:
            return True
        seen.add(current)
        current = (
            Folder.all_objects.filter(id=current)
            .values_list('parent_id', flat=True)
            .first()
        )
    return False
