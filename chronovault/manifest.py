from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple, Union

from .constants import DEFAULT_RESTORED_NAME, MANIFEST_COMMENT, MANIFEST_FILENAME_PREFIX
from .errors import ManifestError


@dataclass(frozen=True)
class Manifest:
    """Ordered chunk identifiers plus the source filename.

    Identifier order is the reassembly order and the Merkle leaf order.
    """

    identifiers: Tuple[str, ...] = ()
    filename: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "identifiers", tuple(self.identifiers))
        if self.filename is not None and ("\n" in self.filename or "\r" in self.filename):
            raise ManifestError("Manifest filename must not contain line breaks")
        for ident in self.identifiers:
            if not ident or ident != ident.strip() or ident.startswith(MANIFEST_COMMENT):
                raise ManifestError(f"Invalid chunk identifier in manifest: {ident!r}")

    def __len__(self) -> int:
        return len(self.identifiers)

    @property
    def filename_or_default(self) -> str:
        return self.filename or DEFAULT_RESTORED_NAME

    def to_text(self) -> str:
        lines = []
        if self.filename is not None:
            lines.append(MANIFEST_FILENAME_PREFIX + self.filename)
        lines.extend(self.identifiers)
        return "".join(line + "\n" for line in lines)

    @classmethod
    def parse(cls, text: Union[str, bytes]) -> "Manifest":
        """Parse manifest text.

        Lines end at ``\\n`` (an optional ``\\r`` before it is dropped); no
        other character splits a line, so filenames may carry any Unicode
        separator. Blank lines are skipped. A ``# Filename: <name>`` line
        before the first identifier sets the filename verbatim, whitespace
        included; after that, and for any other ``#`` line, it is a comment.
        Every remaining line is a chunk identifier in reconstruction order.
        """
        if isinstance(text, bytes):
            try:
                text = text.decode("utf-8")
            except UnicodeDecodeError:
                raise ManifestError("Manifest is not valid UTF-8")
        filename: Optional[str] = None
        identifiers = []
        for raw in text.split("\n"):
            raw = raw[:-1] if raw.endswith("\r") else raw
            line = raw.strip()
            if not line:
                continue
            if raw.startswith(MANIFEST_FILENAME_PREFIX) and not identifiers:
                filename = raw[len(MANIFEST_FILENAME_PREFIX):]
                continue
            if line.startswith(MANIFEST_COMMENT):
                continue
            identifiers.append(line)
        return cls(tuple(identifiers), filename)

    def save(self, path: Union[str, Path]) -> None:
        Path(path).write_text(self.to_text(), encoding="utf-8")

    @classmethod
    def load(cls, path: Union[str, Path]) -> "Manifest":
        return cls.parse(Path(path).read_bytes())
