from __future__ import annotations

import binascii
import os

from Cryptodome.Cipher import AES

from .constants import (
    KEY_SIZE,
    NONCE_SIZE,
    TAG_SIZE,
    KEY_ENCODING_HEX,
    KEY_ENCODING_RAW,
    KEY_ENCODINGS,
)
from .errors import AuthenticationFailure, KeyFormatError


def generate_key() -> bytes:
    """Fresh 256-bit key. Never derived, never reused across encodes."""
    return os.urandom(KEY_SIZE)


def _check_key(key: bytes) -> None:
    if not isinstance(key, (bytes, bytearray)) or len(key) != KEY_SIZE:
        raise KeyFormatError(f"Key must be {KEY_SIZE} bytes for AES-256-GCM")


def encode_key(key: bytes, encoding: str = KEY_ENCODING_HEX) -> bytes:
    _check_key(key)
    if encoding == KEY_ENCODING_HEX:
        return key.hex().encode("ascii")
    if encoding == KEY_ENCODING_RAW:
        return bytes(key)
    raise KeyFormatError(f"Unsupported key encoding: {encoding!r} (expected one of {', '.join(KEY_ENCODINGS)})")


def decode_key(data: bytes, encoding: str = KEY_ENCODING_HEX) -> bytes:
    """Decode a key in its declared encoding; no format guessing.

    Hex input may carry surrounding whitespace (key files written by editors
    often end with a newline). Raw input must be exactly 32 bytes.
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    if encoding == KEY_ENCODING_HEX:
        text = data.strip()
        try:
            key = binascii.unhexlify(text)
        except (binascii.Error, ValueError):
            raise KeyFormatError("Key is not valid hex")
    elif encoding == KEY_ENCODING_RAW:
        key = bytes(data)
    else:
        raise KeyFormatError(f"Unsupported key encoding: {encoding!r} (expected one of {', '.join(KEY_ENCODINGS)})")
    _check_key(key)
    return key


class EnvelopeCipher:
    """AES-256-GCM envelope producing ``nonce || ciphertext || tag``.

    12-byte nonce prefix, 16-byte tag suffix: the conventional GCM seal
    layout, so blobs stored by other GCM implementations open here too.
    """

    nonce_size = NONCE_SIZE
    tag_size = TAG_SIZE

    def seal(self, plaintext: bytes, key: bytes, *, aad: bytes = b"") -> bytes:
        _check_key(key)
        nonce = os.urandom(NONCE_SIZE)
        cipher = AES.new(bytes(key), AES.MODE_GCM, nonce=nonce, mac_len=TAG_SIZE)
        if aad:
            cipher.update(aad)
        ciphertext, tag = cipher.encrypt_and_digest(bytes(plaintext))
        return nonce + ciphertext + tag

    def open(self, blob: bytes, key: bytes, *, aad: bytes = b"") -> bytes:
        _check_key(key)
        if len(blob) < NONCE_SIZE:
            raise AuthenticationFailure("Encrypted payload shorter than nonce")
        if len(blob) < NONCE_SIZE + TAG_SIZE:
            raise AuthenticationFailure("Encrypted payload too short")
        nonce = blob[:NONCE_SIZE]
        tag = blob[-TAG_SIZE:]
        ciphertext = blob[NONCE_SIZE:-TAG_SIZE]
        cipher = AES.new(bytes(key), AES.MODE_GCM, nonce=bytes(nonce), mac_len=TAG_SIZE)
        if aad:
            cipher.update(aad)
        try:
            return cipher.decrypt_and_verify(bytes(ciphertext), bytes(tag))
        except ValueError:
            raise AuthenticationFailure("Decryption failed (wrong key or corrupted data)")

    def overhead(self) -> int:
        return NONCE_SIZE + TAG_SIZE
