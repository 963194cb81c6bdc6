from __future__ import annotations

from typing import Optional


class ChronoVaultError(Exception):
    """Base class for ChronoVault-specific errors."""


# Storage backends
class NotFound(ChronoVaultError):
    def __init__(self, identifier: str, message: Optional[str] = None):
        super().__init__(message or f"chunk not found: {identifier}")
        self.identifier = identifier


class BackendUnavailable(ChronoVaultError):
    pass


class ChunkMissing(ChronoVaultError):
    """A chunk named by the manifest could not be fetched.

    ``cause`` is the backend error (``NotFound`` or ``BackendUnavailable``).
    """

    def __init__(self, identifier: str, cause: Optional[Exception] = None):
        super().__init__(f"chunk missing: {identifier}")
        self.identifier = identifier
        self.cause = cause

    @property
    def transient(self) -> bool:
        return isinstance(self.cause, BackendUnavailable)


# Verification
class IntegrityViolation(ChronoVaultError):
    pass


class AuthenticationFailure(ChronoVaultError):
    pass


class IdentityMismatch(ChronoVaultError):
    def __init__(self, expected: str, actual: str):
        super().__init__(f"plaintext digest mismatch: expected {expected}, got {actual}")
        self.expected = expected
        self.actual = actual


# Inputs
class KeyFormatError(ChronoVaultError):
    pass


class ManifestError(ChronoVaultError):
    pass
