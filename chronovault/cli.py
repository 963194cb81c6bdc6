from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from chronovault.artifacts import load_artifacts, restored_path, save_artifacts
from chronovault.config import VaultConfig, build_store
from chronovault.constants import BACKEND_LOCAL, BACKENDS, KEY_ENCODING_HEX, KEY_ENCODINGS, MERKLE_SCHEMES
from chronovault.errors import ChronoVaultError, IdentityMismatch
from chronovault.pipeline import IdentityStatus, StorePipeline
from chronovault.store import LocalChunkStore


DEMO_INPUT = "original.txt"
DEMO_CONTENT = (
    b"This is some super secret decentralized data that we want to shred and store securely. "
    b"Repeater Repeater Repeater."
)


def _pipeline(config: VaultConfig) -> StorePipeline:
    return StorePipeline(build_store(config), config)


def cmd_encode(
    config: VaultConfig,
    input_path: str,
    *,
    outdir: str = ".",
    chunk_size: Optional[int] = None,
    key_encoding: str = KEY_ENCODING_HEX,
    quiet: bool = False,
) -> bool:
    """Encrypt, shred and store ``input_path``; write its artifacts to ``outdir``.

    Returns True on success. Errors propagate to ``main``.
    """
    name = os.path.basename(input_path)
    data = Path(input_path).read_bytes()
    if not quiet:
        print(f"[Enc] Reading input file: {input_path} ({len(data)} bytes)")
    result = _pipeline(config).encode(data, filename=name, chunk_size=chunk_size)
    paths = save_artifacts(outdir, name, result, key_encoding=key_encoding)
    if not quiet:
        print(f"[Enc] Original Hash saved to {paths.digest}")
        print(f"[Enc] Secret Key saved to {paths.key}")
        print(f"[Enc] Shredded file into {result.chunk_count} chunks")
        print(f"[Enc] Merkle Root Hash saved: {result.root[:10]}...")
        print(f"[Enc] Manifest saved to {paths.manifest}")
    return True


def cmd_decode(
    config: VaultConfig,
    name: str,
    *,
    outdir: str = ".",
    output: Optional[str] = None,
    key_encoding: str = KEY_ENCODING_HEX,
    strict: bool = False,
    quiet: bool = False,
) -> bool:
    """Fetch, verify and decrypt ``name`` from its artifacts in ``outdir``.

    Returns False when the plaintext digest did not match (the restored file
    is still written unless ``strict`` is set).
    """
    manifest, root, key, digest = load_artifacts(outdir, name, key_encoding=key_encoding)
    if not quiet:
        print(f"[Dec] Manifest loaded. Need to fetch {len(manifest)} chunks.")
    result = _pipeline(config).decode(manifest, root, key, digest, require_identity=strict)
    if not quiet:
        print("[Dec] VERIFIED: Merkle Root matches.")
        if result.identity is IdentityStatus.MATCH:
            print("[Dec] VERIFIED: Original Hash matches.")
        elif result.identity is IdentityStatus.MISMATCH:
            print("[Dec] WARNING: Original Hash does not match.", file=sys.stderr)
        else:
            print("[Dec] Original Hash unavailable; identity not checked.")
    target = Path(output) if output else restored_path(outdir, name)
    target.write_bytes(result.plaintext)
    if not quiet:
        print(f"[Dec] Success! File saved to '{target}'")
    return result.identity is not IdentityStatus.MISMATCH


def cmd_demo(config: VaultConfig, *, input_path: str = DEMO_INPUT, outdir: str = ".") -> bool:
    """Encode then decode a sample file against a freshly emptied store."""
    if config.backend == BACKEND_LOCAL:
        LocalChunkStore(config.store_dir).reset()
    if not os.path.exists(input_path):
        print(f"Creating dummy {input_path}...")
        Path(input_path).write_bytes(DEMO_CONTENT)

    print("=== STARTING DECENTRALIZED STORAGE PIPELINE ===")
    print("--- PHASE 1: ENCRYPT & SHRED ---")
    cmd_encode(config, input_path, outdir=outdir)
    print("\n------------------------------------------------")
    print("   (Network Simulation: Transferring files...)")
    print("--- PHASE 2: RESTORE & VERIFY ---")
    return cmd_decode(config, os.path.basename(input_path), outdir=outdir, strict=True)


def cmd_serve(config: VaultConfig, *, host: str = "127.0.0.1", port: int = 8080) -> bool:
    import uvicorn

    from chronovault.server import create_app

    print(f"Server running on http://{host}:{port} (backend: {config.backend})")
    uvicorn.run(create_app(config), host=host, port=port)
    return True


def _config_from_args(args: argparse.Namespace) -> VaultConfig:
    return VaultConfig.from_env().with_overrides(
        backend=args.backend,
        store_dir=args.store_dir,
        workers=args.workers,
        merkle_scheme=args.merkle_scheme,
        bind_filename=True if args.bind_filename else None,
        pinata_jwt_file=args.jwt_file,
        chunk_size=getattr(args, "chunk_size", None),
    )


def main(argv: List[str] | None = None):
    ap = argparse.ArgumentParser(
        prog="chronovault",
        description="Encrypt, shred and Merkle-commit a file into a chunk store; restore and verify it",
        epilog="Without a subcommand, runs the encode/decode demo on original.txt.",
    )
    ap.add_argument("--backend", choices=list(BACKENDS), help="Chunk store backend (default: local)")
    ap.add_argument("--store-dir", help="Local chunk store directory (default: shredded_store)")
    ap.add_argument("--workers", type=int, help="Parallel chunk put/get workers (default 1)")
    ap.add_argument("--merkle-scheme", choices=list(MERKLE_SCHEMES), help="Merkle hashing scheme (default: plain)")
    ap.add_argument("--bind-filename", action="store_true", help="Authenticate the filename as AEAD associated data")
    ap.add_argument("--jwt-file", help="File holding the Pinata JWT (default: pinata.txt)")
    ap.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = ap.add_subparsers(dest="cmd")

    ap_demo = sub.add_parser("demo", help="Encode then decode a sample file")
    ap_demo.add_argument("--input", default=DEMO_INPUT, help="Sample file (created if missing)")
    ap_demo.add_argument("--outdir", default=".", help="Directory for artifacts and restored file")

    ap_encode = sub.add_parser("encode", help="Encrypt, shred and store a file")
    ap_encode.add_argument("input", help="File to store")
    ap_encode.add_argument("--outdir", default=".", help="Directory for key/root/hash/manifest files")
    ap_encode.add_argument("--chunk-size", type=int, help="Maximum chunk size in bytes (default 1024)")
    ap_encode.add_argument("--key-encoding", choices=list(KEY_ENCODINGS), default=KEY_ENCODING_HEX)
    ap_encode.add_argument("--quiet", help="limit outputs to errors only", action="store_true")

    ap_decode = sub.add_parser("decode", help="Fetch, verify and decrypt a stored file")
    ap_decode.add_argument("name", help="Original file name the artifacts were written for")
    ap_decode.add_argument("--outdir", default=".", help="Directory holding the artifacts")
    ap_decode.add_argument("--output", help="Restored file path (default: <outdir>/restored_<name>)")
    ap_decode.add_argument("--key-encoding", choices=list(KEY_ENCODINGS), default=KEY_ENCODING_HEX)
    ap_decode.add_argument("--strict", action="store_true", help="Fail instead of warning on plaintext hash mismatch")
    ap_decode.add_argument("--quiet", help="limit outputs to errors only", action="store_true")

    ap_serve = sub.add_parser("serve", help="Run the HTTP upload/retrieve server")
    ap_serve.add_argument("--host", default="127.0.0.1")
    ap_serve.add_argument("--port", type=int, default=8080)

    args = ap.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    try:
        config = _config_from_args(args)
        if args.cmd == "encode":
            ok = cmd_encode(
                config,
                args.input,
                outdir=args.outdir,
                chunk_size=args.chunk_size,
                key_encoding=args.key_encoding,
                quiet=args.quiet,
            )
        elif args.cmd == "decode":
            ok = cmd_decode(
                config,
                args.name,
                outdir=args.outdir,
                output=args.output,
                key_encoding=args.key_encoding,
                strict=args.strict,
                quiet=args.quiet,
            )
        elif args.cmd == "serve":
            ok = cmd_serve(config, host=args.host, port=args.port)
        elif args.cmd in (None, "demo"):
            ok = cmd_demo(
                config,
                input_path=getattr(args, "input", DEMO_INPUT),
                outdir=getattr(args, "outdir", "."),
            )
        else:
            raise RuntimeError("Unknown command")
    except IdentityMismatch as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    except (ChronoVaultError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
