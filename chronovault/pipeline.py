from __future__ import annotations

import concurrent.futures as _fut
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, List, Optional, Sequence, TypeVar

from . import chunker
from .config import VaultConfig
from .encryption import EnvelopeCipher, generate_key
from .errors import (
    BackendUnavailable,
    ChunkMissing,
    IdentityMismatch,
    IntegrityViolation,
    NotFound,
)
from .hashutil import address
from .manifest import Manifest
from .merkle import build_tree, tree_depth
from .store import ChunkStore


logger = logging.getLogger(__name__)

_T = TypeVar("_T")
_R = TypeVar("_R")


class IdentityStatus(str, Enum):
    # Values double as the X-Integrity-Verified header values.
    MATCH = "true"
    MISMATCH = "false"
    UNAVAILABLE = "unavailable"


class DecodeStage(str, Enum):
    MANIFEST_LOADED = "manifest_loaded"
    CHUNKS_FETCHED = "chunks_fetched"
    ROOT_VERIFIED = "root_verified"
    DECRYPTED = "decrypted"
    IDENTITY_CHECKED = "identity_checked"


@dataclass(frozen=True)
class EncodeResult:
    plaintext_digest: str
    root: str
    key: bytes
    manifest: Manifest

    @property
    def chunk_count(self) -> int:
        return len(self.manifest)

    def __repr__(self) -> str:
        # Keep the key out of reprs and logs.
        return (
            f"EncodeResult(plaintext_digest={self.plaintext_digest!r}, root={self.root!r}, "
            f"key=<{len(self.key)} bytes>, chunks={self.chunk_count})"
        )


@dataclass(frozen=True)
class DecodeResult:
    plaintext: bytes
    filename: str
    identity: IdentityStatus
    stage: DecodeStage

    @property
    def verified(self) -> bool:
        return self.identity is IdentityStatus.MATCH


class StorePipeline:
    """
    Encode/decode orchestration over a pluggable ChunkStore.

    Encode: hash plaintext, encrypt under a fresh key, split the blob, store
    each chunk, commit to the ordered identifiers. Decode reverses this and
    uses the Merkle root and plaintext digest as verifiers. The key is
    returned to the caller and never persisted here.
    """

    def __init__(
        self,
        store: ChunkStore,
        config: Optional[VaultConfig] = None,
        cipher: Optional[EnvelopeCipher] = None,
    ):
        self.store = store
        self.config = config or VaultConfig()
        self.cipher = cipher or EnvelopeCipher()

    def _aad(self, filename: Optional[str]) -> bytes:
        if self.config.bind_filename and filename:
            return filename.encode("utf-8")
        return b""

    def _ordered_map(self, fn: Callable[[_T], _R], items: Sequence[_T]) -> List[_R]:
        """Apply ``fn`` to ``items``; results always come back in input order."""
        if self.config.workers <= 1 or len(items) <= 1:
            return [fn(item) for item in items]
        with _fut.ThreadPoolExecutor(max_workers=self.config.workers) as ex:
            return list(ex.map(fn, items))

    def commit(self, identifiers: Iterable[str]) -> str:
        tree = build_tree(identifiers, self.config.merkle_scheme)
        logger.debug("merkle tree depth %d, root %s", tree_depth(tree), tree.hash[:10])
        return tree.hash

    # -------- Encode --------

    def encode(
        self,
        plaintext: bytes,
        filename: Optional[str] = None,
        chunk_size: Optional[int] = None,
    ) -> EncodeResult:
        chunk_size = chunk_size if chunk_size is not None else self.config.chunk_size
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")

        digest = address(plaintext)
        key = generate_key()
        blob = self.cipher.seal(plaintext, key, aad=self._aad(filename))
        chunks = chunker.split(blob, chunk_size)
        logger.info("encoding %s: %d bytes -> %d chunk(s)", filename or "<unnamed>", len(plaintext), len(chunks))

        prefix = f"{filename}_" if filename else ""
        identifiers = self._ordered_map(
            lambda pair: self.store.put(pair[1], name=f"{prefix}chunk_{pair[0]}"),
            list(enumerate(chunks)),
        )
        manifest = Manifest(tuple(identifiers), filename)
        root = self.commit(manifest.identifiers)
        logger.info("encoded %s: merkle root %s", filename or "<unnamed>", root[:10])
        return EncodeResult(plaintext_digest=digest, root=root, key=key, manifest=manifest)

    # -------- Decode --------

    def _fetch(self, identifier: str) -> bytes:
        try:
            return self.store.get(identifier)
        except (NotFound, BackendUnavailable) as exc:
            logger.warning("chunk %s unavailable: %s", identifier, exc)
            raise ChunkMissing(identifier, exc) from exc

    def decode(
        self,
        manifest: Manifest,
        expected_root: str,
        key: bytes,
        expected_digest: Optional[str] = None,
        *,
        require_identity: bool = False,
    ) -> DecodeResult:
        """
        Fetch, verify and decrypt the file described by ``manifest``.

        Failure at any step is terminal: ChunkMissing when a chunk cannot be
        fetched, IntegrityViolation when the recomputed Merkle root differs
        (decryption is not attempted), AuthenticationFailure when the GCM tag
        does not verify.

        A manifest with no identifiers never decodes, even to empty
        plaintext: a sealed blob always carries at least nonce and tag, so
        the empty reassembly raises AuthenticationFailure.

        A plaintext digest mismatch is reported through ``identity`` and the
        plaintext is still returned, unless ``require_identity`` is set, in
        which case IdentityMismatch is raised.
        """
        stage = DecodeStage.MANIFEST_LOADED
        logger.info("decoding %s: fetching %d chunk(s)", manifest.filename_or_default, len(manifest))

        ids = list(manifest.identifiers)
        chunks = self._ordered_map(self._fetch, ids)
        stage = DecodeStage.CHUNKS_FETCHED

        observed = [self.store.observed_identifier(i, c) for i, c in zip(ids, chunks)]
        actual_root = self.commit(observed)
        if actual_root != expected_root.strip():
            logger.warning("merkle root mismatch for %s", manifest.filename_or_default)
            raise IntegrityViolation("root mismatch")
        stage = DecodeStage.ROOT_VERIFIED

        blob = chunker.join(chunks)
        plaintext = self.cipher.open(blob, key, aad=self._aad(manifest.filename))
        stage = DecodeStage.DECRYPTED

        identity = IdentityStatus.UNAVAILABLE
        if expected_digest:
            actual = address(plaintext)
            expected = expected_digest.strip()
            identity = IdentityStatus.MATCH if actual == expected else IdentityStatus.MISMATCH
            stage = DecodeStage.IDENTITY_CHECKED
            if identity is IdentityStatus.MISMATCH:
                logger.warning("plaintext digest mismatch for %s", manifest.filename_or_default)
                if require_identity:
                    raise IdentityMismatch(expected, actual)
        logger.info("decoded %s: %d bytes, verified=%s", manifest.filename_or_default, len(plaintext), identity.value)
        return DecodeResult(
            plaintext=plaintext,
            filename=manifest.filename_or_default,
            identity=identity,
            stage=stage,
        )
