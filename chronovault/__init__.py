"""
ChronoVault: tamper-evident, encrypted, content-addressed storage of a file.

Pipeline:

- The plaintext is hashed (SHA-256) to give an identity digest.
- It is sealed under a fresh 256-bit key with AES-256-GCM (nonce || ct || tag).
- The sealed blob is shredded into fixed-size chunks, each stored in a chunk
  store (local directory keyed by SHA-256, or IPFS via a pinning service).
- The ordered chunk identifiers form the manifest and are committed to by a
  Merkle root.

Restoring fetches the chunks in manifest order, recomputes the Merkle root and
refuses to decrypt on mismatch, then decrypts and compares the plaintext
digest. The key never leaves the caller's hands; losing it loses the file.
"""

__version__ = "0.1"

__all__ = [
    "constants",
    "errors",
    "hashutil",
    "merkle",
    "encryption",
    "chunker",
    "manifest",
    "store",
    "pinata",
    "config",
    "pipeline",
    "artifacts",
]

# Programmatic API: chronovault.pipeline.StorePipeline with a store from
# chronovault.config.build_store(VaultConfig(...)).
