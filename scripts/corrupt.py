from __future__ import annotations

import argparse
import os
import random
import sys
from typing import Optional

from chronovault.errors import ChronoVaultError
from chronovault.manifest import Manifest
from chronovault.store import LocalChunkStore


def _flip_byte(path: str, offset: int, xor_val: int = 0xFF) -> None:
    if offset < 0:
        raise ValueError("Offset must be non-negative")
    with open(path, "r+b") as f:
        f.seek(offset)
        b = f.read(1)
        if not b:
            raise ValueError("Offset beyond end of file")
        f.seek(offset)
        f.write(bytes([b[0] ^ (xor_val & 0xFF)]))
        f.flush()
        os.fsync(f.fileno())


def _chunk_path(store: LocalChunkStore, manifest: Manifest, index: int) -> str:
    if index < 0 or index >= len(manifest):
        raise ValueError(f"Chunk index out of range (0..{len(manifest)-1})")
    identifier = manifest.identifiers[index]
    if not store.contains(identifier):
        raise ValueError(f"Chunk {identifier} is not in {store.store_dir}")
    return str(store.store_dir / identifier)


def cmd_chunk_index(args: argparse.Namespace) -> None:
    store = LocalChunkStore(args.store_dir)
    manifest = Manifest.load(args.manifest)
    path = _chunk_path(store, manifest, args.index)
    size = os.path.getsize(path)
    if args.within < 0 or args.within >= size:
        raise ValueError(f"--within must be within chunk length (0..{size-1})")
    _flip_byte(path, args.within, xor_val=args.xor)
    print(f"Flipped 1 byte in chunk {args.index} at offset {args.within}")


def cmd_swap(args: argparse.Namespace) -> None:
    manifest = Manifest.load(args.manifest)
    ids = list(manifest.identifiers)
    n = len(ids)
    if not (0 <= args.a < n and 0 <= args.b < n):
        raise ValueError(f"Chunk indices out of range (0..{n-1})")
    ids[args.a], ids[args.b] = ids[args.b], ids[args.a]
    Manifest(tuple(ids), manifest.filename).save(args.manifest)
    print(f"Swapped manifest lines {args.a} and {args.b}")


def cmd_random(args: argparse.Namespace) -> None:
    rng = random.Random(args.seed)
    store = LocalChunkStore(args.store_dir)
    manifest = Manifest.load(args.manifest)
    if not len(manifest):
        raise ValueError("Manifest lists no chunks")
    flips = 0
    for _ in range(args.count):
        path = _chunk_path(store, manifest, rng.randrange(0, len(manifest)))
        size = os.path.getsize(path)
        if size == 0:
            continue
        _flip_byte(path, rng.randrange(0, size), xor_val=args.xor)
        flips += 1
    print(f"Flipped {flips} byte(s) at random chunk offsets")


def main(argv: Optional[list[str]] = None) -> None:
    ap = argparse.ArgumentParser(prog="chronovault.corrupt", description="Corrupt a local chunk store for testing")
    ap.add_argument("--store-dir", default="shredded_store", help="Local chunk store directory")
    ap.add_argument("--xor", type=lambda s: int(s, 0), default=0xFF, help="XOR mask (default 0xFF)")
    sub = ap.add_subparsers(dest="cmd", required=True)

    ap_idx = sub.add_parser("chunk", help="Flip a byte in the N-th chunk of a manifest")
    ap_idx.add_argument("manifest", help="Manifest file")
    ap_idx.add_argument("index", type=int, help="Chunk index in manifest order")
    ap_idx.add_argument("--within", type=int, default=0, help="Byte offset within chunk (default 0)")
    ap_idx.set_defaults(func=cmd_chunk_index)

    ap_swap = sub.add_parser("swap", help="Swap two identifiers in a manifest")
    ap_swap.add_argument("manifest", help="Manifest file")
    ap_swap.add_argument("a", type=int)
    ap_swap.add_argument("b", type=int)
    ap_swap.set_defaults(func=cmd_swap)

    ap_rand = sub.add_parser("random", help="Flip random bytes in random chunks")
    ap_rand.add_argument("manifest", help="Manifest file")
    ap_rand.add_argument("--count", type=int, default=1)
    ap_rand.add_argument("--seed", type=int)
    ap_rand.set_defaults(func=cmd_random)

    args = ap.parse_args(argv)
    try:
        args.func(args)
    except (ValueError, OSError, ChronoVaultError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
