from __future__ import annotations

import hashlib

from .constants import MERKLE_LEAF_TAG, MERKLE_NODE_TAG


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def address(data: bytes) -> str:
    """Content address of ``data``: lowercase hex SHA-256.

    ``address(b"")`` is the digest of the empty string, not an error.
    """
    return sha256_hex(bytes(data))


def merkle_parent(left: str, right: str) -> str:
    # Plain concatenation of the two hex strings, no length prefix or tag.
    return sha256_hex((left + right).encode("utf-8"))


def tagged_merkle_leaf(identifier: str) -> str:
    """Domain-separated leaf hash over an identifier."""
    return sha256_hex(MERKLE_LEAF_TAG + identifier.encode("utf-8"))


def tagged_merkle_parent(left: str, right: str) -> str:
    return sha256_hex(MERKLE_NODE_TAG + (left + right).encode("utf-8"))
