from __future__ import annotations

import os
import tempfile
import unittest
from pathlib import Path

import requests
from fastapi.testclient import TestClient

from chronovault.config import VaultConfig
from chronovault.encryption import generate_key
from chronovault.manifest import Manifest
from chronovault.pinata import PinataChunkStore
from chronovault.server import content_disposition, create_app
from chronovault.store import LocalChunkStore


HELLO_SHA256 = "b94d27b9934d3e08a52e52d7da7dabfac484efe37a5380ee9088f7ace2efcde9"


class _DownSession:
    def post(self, url, files=None, headers=None, timeout=None):
        raise requests.ConnectionError("connection refused")

    def get(self, url, timeout=None):
        raise requests.ConnectionError("connection refused")


class ServerTests(unittest.TestCase):
    def setUp(self):
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.store_dir = Path(tmp.name) / "store"
        config = VaultConfig(store_dir=str(self.store_dir), chunk_size=4)
        self.client = TestClient(create_app(config, store=LocalChunkStore(self.store_dir)))

    def _upload(self, name: str, data: bytes) -> dict:
        resp = self.client.post("/upload", files={"file": (name, data, "application/octet-stream")})
        self.assertEqual(resp.status_code, 200, resp.text)
        return resp.json()

    def _retrieve(self, up: dict, *, key: str | None = None, manifest: str | None = None, root: str | None = None, original_hash=None):
        files = {
            "roothash_file": ("roothash.txt", (root if root is not None else up["root_hash"]).encode("ascii")),
            "key_file": ("secret.key", (key if key is not None else up["encryption_key"]).encode("ascii")),
            "manifest_file": ("manifest.txt", (manifest if manifest is not None else up["manifest_content"]).encode("utf-8")),
        }
        data = {}
        if original_hash is not None:
            data["original_hash"] = original_hash
        return self.client.post("/retrieve", files=files, data=data)

    def test_health(self):
        resp = self.client.get("/health")
        self.assertEqual(resp.json(), {"ok": True, "backend": "local"})

    def test_upload_response_fields(self):
        up = self._upload("hello.txt", b"hello world")
        self.assertEqual(set(up), {"original_hash", "root_hash", "encryption_key", "file_name", "manifest_content"})
        self.assertEqual(up["original_hash"], HELLO_SHA256)
        self.assertEqual(up["file_name"], "hello.txt")
        self.assertEqual(len(bytes.fromhex(up["encryption_key"])), 32)
        manifest = Manifest.parse(up["manifest_content"])
        self.assertEqual(manifest.filename, "hello.txt")
        self.assertEqual(len(manifest), 10)

    def test_retrieve_verified(self):
        up = self._upload("hello.txt", b"hello world")
        resp = self._retrieve(up, original_hash=up["original_hash"])
        self.assertEqual(resp.status_code, 200, resp.text)
        self.assertEqual(resp.content, b"hello world")
        self.assertEqual(resp.headers["X-Integrity-Verified"], "true")
        self.assertEqual(resp.headers["Content-Disposition"], 'attachment; filename="hello.txt"')
        self.assertEqual(resp.headers["Content-Type"], "application/octet-stream")

    def test_retrieve_unavailable_and_mismatch(self):
        up = self._upload("a.bin", b"\x00\x01\x02" * 10)
        resp = self._retrieve(up)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.headers["X-Integrity-Verified"], "unavailable")
        resp = self._retrieve(up, original_hash="ab" * 32)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.headers["X-Integrity-Verified"], "false")
        self.assertEqual(resp.content, b"\x00\x01\x02" * 10)

    def test_root_mismatch_is_403(self):
        up = self._upload("a.txt", b"some content")
        resp = self._retrieve(up, root="0" * 64)
        self.assertEqual(resp.status_code, 403)
        self.assertEqual(resp.json()["error"]["code"], "INTEGRITY_VIOLATION")

    def test_wrong_key_is_403_and_bad_key_is_400(self):
        up = self._upload("a.txt", b"some content")
        resp = self._retrieve(up, key=generate_key().hex())
        self.assertEqual(resp.status_code, 403)
        self.assertEqual(resp.json()["error"]["code"], "AUTHENTICATION_FAILED")
        resp = self._retrieve(up, key="not-a-key")
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["error"]["code"], "INVALID_KEY")

    def test_missing_chunk_is_503(self):
        up = self._upload("a.txt", b"some content")
        first = Manifest.parse(up["manifest_content"]).identifiers[0]
        os.remove(self.store_dir / first)
        resp = self._retrieve(up)
        self.assertEqual(resp.status_code, 503)
        self.assertEqual(resp.json()["error"]["code"], "CHUNK_MISSING")

    def test_unicode_separator_filename_round_trip(self):
        up = self._upload("notes\x85old.txt", b"line one\nline two\n")
        self.assertEqual(up["file_name"], "notes\x85old.txt")
        self.assertEqual(Manifest.parse(up["manifest_content"]).filename, "notes\x85old.txt")
        resp = self._retrieve(up, original_hash=up["original_hash"])
        self.assertEqual(resp.status_code, 200, resp.text)
        self.assertEqual(resp.content, b"line one\nline two\n")
        self.assertEqual(resp.headers["X-Integrity-Verified"], "true")
        self.assertIn("filename*=UTF-8''notes%C2%85old.txt", resp.headers["Content-Disposition"])

    def test_upload_backend_outage_is_503(self):
        store = PinataChunkStore("jwt", session=_DownSession())
        client = TestClient(create_app(VaultConfig(backend="pinata", chunk_size=4), store=store))
        resp = client.post("/upload", files={"file": ("a.txt", b"some content", "application/octet-stream")})
        self.assertEqual(resp.status_code, 503)
        self.assertEqual(resp.json()["error"]["code"], "BACKEND_UNAVAILABLE")

    def test_cors_exposes_integrity_header(self):
        resp = self.client.options(
            "/retrieve",
            headers={"Origin": "http://localhost:5173", "Access-Control-Request-Method": "POST"},
        )
        self.assertEqual(resp.status_code, 200)
        up = self._upload("a.txt", b"x")
        resp = self.client.post(
            "/retrieve",
            files={
                "roothash_file": ("r", up["root_hash"].encode()),
                "key_file": ("k", up["encryption_key"].encode()),
                "manifest_file": ("m", up["manifest_content"].encode()),
            },
            headers={"Origin": "http://localhost:5173"},
        )
        self.assertIn("X-Integrity-Verified", resp.headers["Access-Control-Expose-Headers"])

    def test_content_disposition_non_ascii(self):
        self.assertEqual(content_disposition("a.txt"), 'attachment; filename="a.txt"')
        value = content_disposition("résumé.pdf")
        self.assertIn("filename*=UTF-8''r%C3%A9sum%C3%A9.pdf", value)
        value.encode("latin-1")


if __name__ == "__main__":
    unittest.main()
