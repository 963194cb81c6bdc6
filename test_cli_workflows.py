from __future__ import annotations

import os
import subprocess
import sys
import tempfile
import unittest
from pathlib import Path

from chronovault.manifest import Manifest


REPO_ROOT = Path(__file__).resolve().parent


def _env():
    env = os.environ.copy()
    existing = env.get("PYTHONPATH", "")
    env["PYTHONPATH"] = str(REPO_ROOT) if not existing else f"{REPO_ROOT}{os.pathsep}{existing}"
    for var in list(env):
        if var.startswith("CHRONOVAULT_"):
            del env[var]
    return env


class CLIIntegrationTests(unittest.TestCase):
    def run_module(self, module, args, *, expect: int | None = 0, cwd: Path | None = None):
        cmd = [sys.executable, "-m", module] + list(args)
        proc = subprocess.run(
            cmd,
            cwd=cwd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            env=_env(),
        )
        if expect is not None and proc.returncode != expect:
            raise AssertionError(
                f"CLI exited {proc.returncode}, expected {expect}\nCommand: {' '.join(cmd)}\nSTDOUT:\n{proc.stdout}\nSTDERR:\n{proc.stderr}"
            )
        return proc

    def run_cli(self, args, *, expect: int | None = 0, cwd: Path | None = None):
        return self.run_module("chronovault.cli", args, expect=expect, cwd=cwd)

    def make_workspace(self):
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        return Path(tmp.name)

    def test_demo_creates_sample_and_restores_it(self):
        root = self.make_workspace()
        proc = self.run_cli(["demo"], cwd=root)
        self.assertIn("VERIFIED: Merkle Root matches", proc.stdout)
        self.assertIn("VERIFIED: Original Hash matches", proc.stdout)
        original = (root / "original.txt").read_bytes()
        self.assertEqual((root / "restored_original.txt").read_bytes(), original)
        for name in ("hash_original.txt.txt", "secret_original.txt.key", "roothash_original.txt.txt", "manifest_original.txt"):
            self.assertTrue((root / name).is_file(), name)
        manifest = Manifest.load(root / "manifest_original.txt")
        self.assertEqual(len(os.listdir(root / "shredded_store")), len(manifest))

    def test_encode_decode_roundtrip(self):
        root = self.make_workspace()
        payload = os.urandom(5000)
        (root / "blob.bin").write_bytes(payload)
        store = str(root / "store")
        out = root / "out"
        self.run_cli(["--store-dir", store, "encode", str(root / "blob.bin"), "--outdir", str(out), "--chunk-size", "512"], cwd=root)
        manifest = Manifest.load(out / "manifest_blob.bin")
        self.assertEqual(manifest.filename, "blob.bin")
        self.assertEqual(len(manifest), 10)  # (5000 + 28) / 512 rounded up

        target = root / "restored.bin"
        proc = self.run_cli(
            ["--store-dir", store, "--workers", "3", "decode", "blob.bin", "--outdir", str(out), "--output", str(target)],
            cwd=root,
        )
        self.assertIn("Original Hash matches", proc.stdout)
        self.assertEqual(target.read_bytes(), payload)

    def test_raw_key_encoding(self):
        root = self.make_workspace()
        (root / "k.txt").write_text("raw key file\n")
        self.run_cli(["encode", "k.txt", "--key-encoding", "raw", "--quiet"], cwd=root)
        self.assertEqual(len((root / "secret_k.txt.key").read_bytes()), 32)
        # Declared encoding must match; no guessing.
        proc = self.run_cli(["decode", "k.txt", "--quiet"], cwd=root, expect=2)
        self.assertIn("Error:", proc.stderr)
        self.run_cli(["decode", "k.txt", "--key-encoding", "raw", "--quiet"], cwd=root)
        self.assertEqual((root / "restored_k.txt").read_text(), "raw key file\n")

    def test_corrupted_chunk_is_rejected(self):
        root = self.make_workspace()
        (root / "doc.txt").write_bytes(b"integrity matters " * 200)
        self.run_cli(["encode", "doc.txt", "--quiet"], cwd=root)
        cmd = [
            sys.executable,
            str(REPO_ROOT / "scripts" / "corrupt.py"),
            "--store-dir",
            "shredded_store",
            "chunk",
            "manifest_doc.txt",
            "1",
            "--within",
            "5",
        ]
        proc = subprocess.run(cmd, cwd=root, stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True, env=_env())
        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertIn("Flipped 1 byte in chunk 1", proc.stdout)

        proc = self.run_cli(["decode", "doc.txt"], cwd=root, expect=2)
        self.assertIn("root mismatch", proc.stderr)
        self.assertFalse((root / "restored_doc.txt").exists())

    def test_swapped_manifest_lines_are_rejected(self):
        root = self.make_workspace()
        (root / "doc.txt").write_bytes(os.urandom(3000))
        self.run_cli(["encode", "doc.txt", "--quiet"], cwd=root)
        cmd = [sys.executable, str(REPO_ROOT / "scripts" / "corrupt.py"), "swap", "manifest_doc.txt", "0", "2"]
        proc = subprocess.run(cmd, cwd=root, stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True, env=_env())
        self.assertEqual(proc.returncode, 0, proc.stderr)
        proc = self.run_cli(["decode", "doc.txt"], cwd=root, expect=2)
        self.assertIn("root mismatch", proc.stderr)

    def test_hash_mismatch_warns_then_strict_fails(self):
        root = self.make_workspace()
        (root / "n.txt").write_text("numbers 12345")
        self.run_cli(["encode", "n.txt", "--quiet"], cwd=root)
        (root / "hash_n.txt.txt").write_text("0" * 64)
        proc = self.run_cli(["decode", "n.txt"], cwd=root, expect=1)
        self.assertIn("does not match", proc.stderr)
        self.assertEqual((root / "restored_n.txt").read_text(), "numbers 12345")
        (root / "restored_n.txt").unlink()
        self.run_cli(["decode", "n.txt", "--strict"], cwd=root, expect=1)
        self.assertFalse((root / "restored_n.txt").exists())

    def test_missing_input_file(self):
        root = self.make_workspace()
        proc = self.run_cli(["encode", "nope.txt"], cwd=root, expect=2)
        self.assertIn("Error:", proc.stderr)


if __name__ == "__main__":
    unittest.main()
