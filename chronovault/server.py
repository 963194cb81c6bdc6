"""
HTTP layer: upload a file into the vault, retrieve it back.

Usage:
    chronovault serve --port 8080

    # Or with uvicorn directly
    uvicorn chronovault.server:create_app --factory
"""

from __future__ import annotations

import logging
from typing import Any, Optional
from urllib.parse import quote

from fastapi import FastAPI, File, Form, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from .config import VaultConfig, build_store
from .constants import INTEGRITY_HEADER, KEY_ENCODING_HEX, MAX_UPLOAD_BYTES
from .encryption import decode_key, encode_key
from .errors import (
    AuthenticationFailure,
    BackendUnavailable,
    ChronoVaultError,
    ChunkMissing,
    IntegrityViolation,
    KeyFormatError,
    ManifestError,
    NotFound,
)
from .manifest import Manifest
from .pipeline import StorePipeline
from .store import ChunkStore


logger = logging.getLogger(__name__)


class UploadResponse(BaseModel):
    original_hash: str
    root_hash: str
    encryption_key: str
    file_name: str
    manifest_content: str


class ErrorDetail(BaseModel):
    code: str
    message: str


class ErrorResponse(BaseModel):
    ok: bool = False
    error: ErrorDetail


class APIError(Exception):
    def __init__(self, code: str, message: str, status_code: int = 400):
        self.code = code
        self.message = message
        self.status_code = status_code
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(error=ErrorDetail(code=self.code, message=self.message))


# Each taxonomy member gets a distinct status so integrity failures are
# distinguishable from infrastructure failures.
_ERROR_MAP = (
    (ChunkMissing, "CHUNK_MISSING", 503, "Data missing from storage backend"),
    (NotFound, "CHUNK_MISSING", 503, "Data missing from storage backend"),
    (BackendUnavailable, "BACKEND_UNAVAILABLE", 503, "Storage backend unavailable"),
    (IntegrityViolation, "INTEGRITY_VIOLATION", 403, "Integrity Check Failed: Root Hash Mismatch"),
    (AuthenticationFailure, "AUTHENTICATION_FAILED", 403, "Decryption Failed (Wrong Key?)"),
    (KeyFormatError, "INVALID_KEY", 400, "Invalid Key"),
    (ManifestError, "INVALID_MANIFEST", 400, "Invalid Manifest"),
)


def to_api_error(exc: ChronoVaultError) -> APIError:
    for exc_type, code, status, message in _ERROR_MAP:
        if isinstance(exc, exc_type):
            return APIError(code, f"{message}: {exc}", status)
    return APIError("INTERNAL_ERROR", str(exc), 500)


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_response().model_dump())


async def vault_error_handler(request: Request, exc: ChronoVaultError) -> JSONResponse:
    return await api_error_handler(request, to_api_error(exc))


def content_disposition(filename: str) -> str:
    fallback = filename.encode("ascii", "replace").decode("ascii").replace('"', "_").replace("?", "_")
    if fallback == filename:
        return f'attachment; filename="{filename}"'
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename)}"


def _read_limited(upload: UploadFile, what: str) -> bytes:
    data = upload.file.read(MAX_UPLOAD_BYTES + 1)
    if len(data) > MAX_UPLOAD_BYTES:
        raise APIError("PAYLOAD_TOO_LARGE", f"{what} exceeds {MAX_UPLOAD_BYTES} bytes", 413)
    return data


def create_app(config: Optional[VaultConfig] = None, store: Optional[ChunkStore] = None) -> FastAPI:
    config = config or VaultConfig.from_env()
    pipeline = StorePipeline(store if store is not None else build_store(config), config)

    app = FastAPI(title="ChronoVault", version="0.1.0")
    app.state.pipeline = pipeline
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-Requested-With"],
        expose_headers=[INTEGRITY_HEADER, "Content-Disposition"],
    )
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(ChronoVaultError, vault_error_handler)

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {"ok": True, "backend": config.backend}

    @app.post("/upload", response_model=UploadResponse)
    def upload(file: UploadFile = File(...)) -> UploadResponse:
        if not file.filename:
            raise APIError("MISSING_FILE", "Error retrieving file", 400)
        data = _read_limited(file, "file")
        logger.info("upload: processing %s (%d bytes)", file.filename, len(data))
        result = pipeline.encode(data, filename=file.filename)
        return UploadResponse(
            original_hash=result.plaintext_digest,
            root_hash=result.root,
            encryption_key=encode_key(result.key, KEY_ENCODING_HEX).decode("ascii"),
            file_name=file.filename,
            manifest_content=result.manifest.to_text(),
        )

    @app.post("/retrieve")
    def retrieve(
        roothash_file: UploadFile = File(...),
        key_file: UploadFile = File(...),
        manifest_file: UploadFile = File(...),
        original_hash: str = Form(default=""),
        key_encoding: str = Form(default=KEY_ENCODING_HEX),
    ) -> Response:
        root = _read_limited(roothash_file, "root hash").decode("utf-8", errors="replace").strip()
        key = decode_key(_read_limited(key_file, "key"), key_encoding)
        manifest = Manifest.parse(_read_limited(manifest_file, "manifest"))
        logger.info("retrieve: reconstructing root %s", root[:10])

        result = pipeline.decode(manifest, root, key, original_hash.strip() or None)
        headers = {
            INTEGRITY_HEADER: result.identity.value,
            "Content-Disposition": content_disposition(result.filename),
        }
        return Response(content=result.plaintext, media_type="application/octet-stream", headers=headers)

    return app
