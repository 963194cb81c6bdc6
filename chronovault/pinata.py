"""
IPFS chunk store backed by the Pinata pinning service.

Chunks are uploaded with ``pinFileToIPFS`` and fetched back through the
Pinata gateway. The identifier is the CID reported by the service; it is
derived from content by IPFS's own addressing scheme, which this module does
not reproduce, so the store is opaque rather than strictly content-addressed.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional, Union

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .constants import (
    DEFAULT_HTTP_RETRIES,
    DEFAULT_HTTP_TIMEOUT,
    PINATA_API_URL,
    PINATA_GATEWAY_URL,
    PINATA_JWT_FILE,
    PINATA_PIN_FILE_PATH,
)
from .errors import BackendUnavailable, NotFound
from .store import ChunkStore


logger = logging.getLogger(__name__)

JWT_ENV_VAR = "CHRONOVAULT_PINATA_JWT"


def read_jwt_file(path: Union[str, Path]) -> Optional[str]:
    """Read a JWT from ``path`` with every whitespace character removed."""
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except OSError:
        return None
    jwt = "".join(raw.split())
    return jwt or None


def resolve_jwt(jwt: Optional[str] = None, jwt_file: Optional[Union[str, Path]] = PINATA_JWT_FILE) -> Optional[str]:
    if jwt:
        return jwt.strip()
    env = os.environ.get(JWT_ENV_VAR)
    if env:
        return env.strip()
    if jwt_file:
        return read_jwt_file(jwt_file)
    return None


def make_http_session(retries: int = DEFAULT_HTTP_RETRIES) -> requests.Session:
    s = requests.Session()
    retry = Retry(
        total=retries,
        connect=retries,
        read=retries,
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=frozenset({"GET", "POST"}),
        backoff_factor=0.3,
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry)
    s.mount("http://", adapter)
    s.mount("https://", adapter)
    return s


class PinataChunkStore(ChunkStore):
    content_addressed = False

    def __init__(
        self,
        jwt: Optional[str] = None,
        *,
        api_url: str = PINATA_API_URL,
        gateway_url: str = PINATA_GATEWAY_URL,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        retries: int = DEFAULT_HTTP_RETRIES,
        session: Optional[requests.Session] = None,
    ):
        self.jwt = jwt
        self.api_url = api_url.rstrip("/")
        self.gateway_url = gateway_url.rstrip("/")
        self.timeout = timeout
        self._session = session if session is not None else make_http_session(retries)

    def __repr__(self) -> str:
        return f"PinataChunkStore(api_url={self.api_url!r}, gateway_url={self.gateway_url!r})"

    def put(self, data: bytes, name: Optional[str] = None) -> str:
        if not self.jwt:
            raise BackendUnavailable("missing Pinata JWT")
        url = self.api_url + PINATA_PIN_FILE_PATH
        files = {"file": (name or "chunk", data, "application/octet-stream")}
        try:
            resp = self._session.post(
                url,
                files=files,
                headers={"Authorization": f"Bearer {self.jwt}"},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.warning("upload to %s failed: %s", url, exc)
            raise BackendUnavailable(f"upload failed: {exc}") from exc
        if not 200 <= resp.status_code < 300:
            logger.warning("upload rejected with status %d", resp.status_code)
            raise BackendUnavailable(f"upload failed: status {resp.status_code}: {resp.text[:200]}")
        try:
            payload = resp.json()
        except ValueError:
            payload = None
        cid = payload.get("IpfsHash") if isinstance(payload, dict) else None
        if not isinstance(cid, str) or not cid:
            raise BackendUnavailable(f"upload failed: no IpfsHash in response: {resp.text[:200]}")
        logger.debug("pinned chunk %s as %s (%d bytes)", name or "chunk", cid, len(data))
        return cid

    def get(self, identifier: str) -> bytes:
        url = f"{self.gateway_url}/ipfs/{identifier}"
        logger.debug("fetching CID %s", identifier)
        try:
            resp = self._session.get(url, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.warning("fetch of %s failed: %s", identifier, exc)
            raise BackendUnavailable(f"failed to download CID {identifier}: {exc}") from exc
        if resp.status_code == 404:
            raise NotFound(identifier)
        if resp.status_code != 200:
            raise BackendUnavailable(f"failed to download CID {identifier}: status {resp.status_code}")
        return resp.content
