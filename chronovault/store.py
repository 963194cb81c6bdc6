from __future__ import annotations

import logging
import os
import re
import shutil
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Union

from .constants import DEFAULT_STORE_DIR
from .errors import BackendUnavailable, NotFound
from .hashutil import address


logger = logging.getLogger(__name__)

_HEX_ID = re.compile(r"^[0-9a-f]{64}$")


class ChunkStore(ABC):
    """put/get contract shared by every storage backend.

    ``content_addressed`` tells whether the identifier of a chunk can be
    recomputed from its bytes (strict content addressing) or is an opaque
    handle assigned by the backend (stable retrieval by identifier only).
    """

    content_addressed: bool = False

    @abstractmethod
    def put(self, data: bytes, name: Optional[str] = None) -> str:
        """Store ``data`` and return its identifier. Must be idempotent."""

    @abstractmethod
    def get(self, identifier: str) -> bytes:
        """Return the bytes stored under ``identifier``.

        Raises NotFound when absent and BackendUnavailable on transient
        storage failures.
        """

    def contains(self, identifier: str) -> bool:
        try:
            self.get(identifier)
        except NotFound:
            return False
        return True

    def observed_identifier(self, identifier: str, data: bytes) -> str:
        """Identifier actually carried by fetched ``data``.

        Opaque backends can only vouch for the identifier that was requested.
        """
        return identifier


class LocalChunkStore(ChunkStore):
    """Filesystem store: one file per chunk, named by its SHA-256 hex."""

    content_addressed = True

    def __init__(self, store_dir: Union[str, Path] = DEFAULT_STORE_DIR):
        self.store_dir = Path(store_dir)

    def __repr__(self) -> str:
        return f"LocalChunkStore({str(self.store_dir)!r})"

    def _path_for(self, identifier: str) -> Path:
        if not isinstance(identifier, str) or not _HEX_ID.match(identifier):
            raise NotFound(identifier, f"not a local chunk identifier: {identifier!r}")
        return self.store_dir / identifier

    def ensure(self) -> None:
        try:
            self.store_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise BackendUnavailable(f"cannot create store directory {self.store_dir}: {exc}") from exc

    def reset(self) -> None:
        """Remove every stored chunk and recreate an empty store directory."""
        if self.store_dir.exists():
            shutil.rmtree(self.store_dir)
        self.ensure()

    def put(self, data: bytes, name: Optional[str] = None) -> str:
        identifier = address(data)
        path = self._path_for(identifier)
        if path.is_file():
            # Same bytes, same name: nothing to do.
            return identifier
        self.ensure()
        fd, tmp = tempfile.mkstemp(prefix=".chunk-", dir=str(self.store_dir))
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
            os.replace(tmp, str(path))
        except OSError as exc:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise BackendUnavailable(f"failed to write chunk {identifier}: {exc}") from exc
        logger.debug("stored chunk %s (%d bytes)", identifier, len(data))
        return identifier

    def get(self, identifier: str) -> bytes:
        path = self._path_for(identifier)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            raise NotFound(identifier)
        except OSError as exc:
            raise BackendUnavailable(f"failed to read chunk {identifier}: {exc}") from exc

    def contains(self, identifier: str) -> bool:
        try:
            return self._path_for(identifier).is_file()
        except NotFound:
            return False

    def observed_identifier(self, identifier: str, data: bytes) -> str:
        return address(data)
