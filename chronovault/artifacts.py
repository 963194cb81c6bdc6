from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple, Union

from .constants import (
    HASH_FILE_FMT,
    KEY_ENCODING_HEX,
    KEY_FILE_FMT,
    MANIFEST_FILE_FMT,
    RESTORED_FILE_FMT,
    ROOT_FILE_FMT,
)
from .encryption import decode_key, encode_key
from .manifest import Manifest
from .pipeline import EncodeResult


@dataclass(frozen=True)
class ArtifactPaths:
    digest: Path
    key: Path
    root: Path
    manifest: Path

    @classmethod
    def for_name(cls, outdir: Union[str, Path], name: str) -> "ArtifactPaths":
        base = Path(outdir)
        return cls(
            digest=base / HASH_FILE_FMT.format(name=name),
            key=base / KEY_FILE_FMT.format(name=name),
            root=base / ROOT_FILE_FMT.format(name=name),
            manifest=base / MANIFEST_FILE_FMT.format(name=name),
        )


def restored_path(outdir: Union[str, Path], name: str) -> Path:
    return Path(outdir) / RESTORED_FILE_FMT.format(name=name)


def _write_private(path: Path, data: bytes) -> None:
    path.write_bytes(data)
    try:
        path.chmod(0o600)
    except OSError:
        pass


def save_artifacts(
    outdir: Union[str, Path],
    name: str,
    result: EncodeResult,
    *,
    key_encoding: str = KEY_ENCODING_HEX,
) -> ArtifactPaths:
    """Write digest, key, root and manifest files for ``name`` into ``outdir``."""
    paths = ArtifactPaths.for_name(outdir, name)
    paths.digest.parent.mkdir(parents=True, exist_ok=True)
    paths.digest.write_text(result.plaintext_digest, encoding="ascii")
    _write_private(paths.key, encode_key(result.key, key_encoding))
    paths.root.write_text(result.root, encoding="ascii")
    result.manifest.save(paths.manifest)
    return paths


def load_artifacts(
    outdir: Union[str, Path],
    name: str,
    *,
    key_encoding: str = KEY_ENCODING_HEX,
) -> Tuple[Manifest, str, bytes, Optional[str]]:
    """Load (manifest, root, key, digest) for ``name``.

    The digest file is optional; a missing one yields ``None`` so decode
    reports the identity check as unavailable.
    """
    paths = ArtifactPaths.for_name(outdir, name)
    manifest = Manifest.load(paths.manifest)
    root = paths.root.read_text(encoding="ascii").strip()
    key = decode_key(paths.key.read_bytes(), key_encoding)
    digest: Optional[str] = None
    if paths.digest.exists():
        digest = paths.digest.read_text(encoding="ascii").strip() or None
    return manifest, root, key, digest
