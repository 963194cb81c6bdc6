from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Tuple

from .constants import EMPTY_ROOT, MERKLE_SCHEME_PLAIN, MERKLE_SCHEME_TAGGED
from .hashutil import merkle_parent, tagged_merkle_leaf, tagged_merkle_parent


@dataclass(frozen=True)
class MerkleNode:
    hash: str
    left: Optional["MerkleNode"] = None
    right: Optional["MerkleNode"] = None

    @property
    def is_leaf(self) -> bool:
        return self.left is None and self.right is None


def _scheme_functions(scheme: str) -> Tuple[Callable[[str], str], Callable[[str, str], str]]:
    if scheme == MERKLE_SCHEME_PLAIN:
        return (lambda identifier: identifier), merkle_parent
    if scheme == MERKLE_SCHEME_TAGGED:
        return tagged_merkle_leaf, tagged_merkle_parent
    raise ValueError(f"unknown merkle scheme: {scheme!r}")


def build_tree(identifiers: Iterable[str], scheme: str = MERKLE_SCHEME_PLAIN) -> MerkleNode:
    """
    Builds the Merkle tree over an ordered sequence of identifiers.

    Each identifier becomes a leaf. Levels are reduced pairwise left to
    right; when a level has an odd number of nodes the last one is paired
    with itself (duplicate rule, not promote). An empty sequence yields a
    single node carrying ``EMPTY_ROOT``.

    Under the ``plain`` scheme a leaf's hash is the identifier itself and a
    parent is ``sha256(left.hash + right.hash)``. The ``tagged`` scheme
    prefixes leaves and internal nodes with distinct domain tags; its roots
    are not comparable with ``plain`` roots.
    """
    leaf_fn, parent_fn = _scheme_functions(scheme)
    level: List[MerkleNode] = [MerkleNode(leaf_fn(i)) for i in identifiers]
    if not level:
        return MerkleNode(EMPTY_ROOT)
    while len(level) > 1:
        nxt: List[MerkleNode] = []
        it = iter(level)
        for left in it:
            right = next(it, left)  # duplicate
            nxt.append(MerkleNode(parent_fn(left.hash, right.hash), left, right))
        level = nxt
    return level[0]


def merkle_root(identifiers: Iterable[str], scheme: str = MERKLE_SCHEME_PLAIN) -> str:
    """Return the RootCommitment (hex string) over ``identifiers``."""
    return build_tree(identifiers, scheme).hash


def tree_depth(node: MerkleNode) -> int:
    depth = 0
    while node.left is not None:
        node = node.left
        depth += 1
    return depth
