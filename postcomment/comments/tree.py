"""Nested reply tree from a post's flat comment list.

``build_comment_tree`` is the canonical builder:

1. Arena: one node per comment id (first occurrence wins).
2. Children lists keyed by parent id, in input order. A comment whose parent
   is None or not in the arena (deleted/unknown) is a root.
3. Materialize breadth-first from the roots, placing each node at most once.

Nodes on a parent cycle (A -> B -> A, or A -> A) are never reachable from a
root, so corrupted segments are dropped instead of looping. Nothing here
raises on malformed ancestry and nothing recurses.
"""

from collections import defaultdict, deque
from collections.abc import Sequence

from .models import Comment
from .schemas import CommentTreeNode


def _arena(comments: Sequence[Comment]) -> dict[int, Comment]:
    arena: dict[int, Comment] = {}
    for comment in comments:
        arena.setdefault(comment.comment_id, comment)
    return arena


def _group_by_parent(
    arena: dict[int, Comment],
) -> tuple[list[int], dict[int, list[int]]]:
    roots: list[int] = []
    children: dict[int, list[int]] = defaultdict(list)
    for comment_id, comment in arena.items():
        parent_id = comment.parent_id
        if parent_id is None or parent_id not in arena:
            roots.append(comment_id)
        else:
            children[parent_id].append(comment_id)
    return roots, children


def build_comment_tree(comments: Sequence[Comment]) -> list[CommentTreeNode]:
    """Build the reply forest for comments ordered by creation ascending."""
    arena = _arena(comments)
    roots, children = _group_by_parent(arena)
    nodes = {cid: CommentTreeNode.from_comment(c) for cid, c in arena.items()}

    placed = set(roots)
    queue = deque(roots)
    while queue:
        parent_id = queue.popleft()
        parent = nodes[parent_id]
        for child_id in children.get(parent_id, ()):
            if child_id in placed:
                continue
            placed.add(child_id)
            parent.replies.append(nodes[child_id])
            queue.append(child_id)

    return [nodes[root_id] for root_id in roots]

