from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Mapping, Optional

from .constants import (
    BACKEND_LOCAL,
    BACKEND_PINATA,
    BACKENDS,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_HTTP_RETRIES,
    DEFAULT_HTTP_TIMEOUT,
    DEFAULT_STORE_DIR,
    MERKLE_SCHEME_PLAIN,
    MERKLE_SCHEMES,
    PINATA_API_URL,
    PINATA_GATEWAY_URL,
    PINATA_JWT_FILE,
)
from .store import ChunkStore, LocalChunkStore


ENV_PREFIX = "CHRONOVAULT_"


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class VaultConfig:
    """Explicit configuration handed to the pipeline, store factory and app."""

    chunk_size: int = DEFAULT_CHUNK_SIZE
    store_dir: str = DEFAULT_STORE_DIR
    backend: str = BACKEND_LOCAL
    workers: int = 1
    merkle_scheme: str = MERKLE_SCHEME_PLAIN
    bind_filename: bool = False
    pinata_jwt: Optional[str] = None
    pinata_jwt_file: Optional[str] = PINATA_JWT_FILE
    pinata_api_url: str = PINATA_API_URL
    pinata_gateway_url: str = PINATA_GATEWAY_URL
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    http_retries: int = DEFAULT_HTTP_RETRIES

    def __post_init__(self):
        if self.chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        if self.workers < 1:
            raise ValueError("workers must be >= 1")
        if self.backend not in BACKENDS:
            raise ValueError(f"unknown backend: {self.backend!r}")
        if self.merkle_scheme not in MERKLE_SCHEMES:
            raise ValueError(f"unknown merkle scheme: {self.merkle_scheme!r}")
        if self.http_timeout <= 0:
            raise ValueError("http_timeout must be > 0")
        if self.http_retries < 0:
            raise ValueError("http_retries must be >= 0")

    def with_overrides(self, **overrides) -> "VaultConfig":
        """Return a copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "VaultConfig":
        env = os.environ if environ is None else environ
        kw = {}
        for field_name, conv in (
            ("chunk_size", int),
            ("store_dir", str),
            ("backend", str),
            ("workers", int),
            ("merkle_scheme", str),
            ("bind_filename", _env_bool),
            ("pinata_jwt", str),
            ("pinata_jwt_file", str),
            ("pinata_api_url", str),
            ("pinata_gateway_url", str),
            ("http_timeout", float),
            ("http_retries", int),
        ):
            raw = env.get(ENV_PREFIX + field_name.upper())
            if raw is None or raw == "":
                continue
            try:
                kw[field_name] = conv(raw)
            except ValueError:
                raise ValueError(f"invalid value for {ENV_PREFIX + field_name.upper()}: {raw!r}")
        return cls(**kw)


def build_store(config: VaultConfig) -> ChunkStore:
    if config.backend == BACKEND_PINATA:
        from .pinata import PinataChunkStore, resolve_jwt

        return PinataChunkStore(
            resolve_jwt(config.pinata_jwt, config.pinata_jwt_file),
            api_url=config.pinata_api_url,
            gateway_url=config.pinata_gateway_url,
            timeout=config.http_timeout,
            retries=config.http_retries,
        )
    return LocalChunkStore(config.store_dir)
