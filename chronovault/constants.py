from __future__ import annotations


# Envelope (AES-256-GCM): blob = nonce || ciphertext || tag
KEY_SIZE = 32
NONCE_SIZE = 12
TAG_SIZE = 16

KEY_ENCODING_HEX = "hex"
KEY_ENCODING_RAW = "raw"
KEY_ENCODINGS = (KEY_ENCODING_HEX, KEY_ENCODING_RAW)

# Merkle commitment
MERKLE_SCHEME_PLAIN = "plain"
MERKLE_SCHEME_TAGGED = "tagged"
MERKLE_SCHEMES = (MERKLE_SCHEME_PLAIN, MERKLE_SCHEME_TAGGED)
EMPTY_ROOT = ""  # commitment over zero identifiers
MERKLE_LEAF_TAG = b"CV_LEAF\x00"
MERKLE_NODE_TAG = b"CV_NODE\x00"

# Manifest text format
MANIFEST_FILENAME_PREFIX = "# Filename: "
MANIFEST_COMMENT = "#"
DEFAULT_RESTORED_NAME = "restored_file"

# Artifact file naming (per source file name)
HASH_FILE_FMT = "hash_{name}.txt"
KEY_FILE_FMT = "secret_{name}.key"
ROOT_FILE_FMT = "roothash_{name}.txt"
MANIFEST_FILE_FMT = "manifest_{name}"
RESTORED_FILE_FMT = "restored_{name}"

# Backends
BACKEND_LOCAL = "local"
BACKEND_PINATA = "pinata"
BACKENDS = (BACKEND_LOCAL, BACKEND_PINATA)

DEFAULT_CHUNK_SIZE = 1024  # 1 KiB
DEFAULT_STORE_DIR = "shredded_store"

PINATA_API_URL = "https://api.pinata.cloud"
PINATA_PIN_FILE_PATH = "/pinning/pinFileToIPFS"
PINATA_GATEWAY_URL = "https://gateway.pinata.cloud"
PINATA_JWT_FILE = "pinata.txt"
DEFAULT_HTTP_TIMEOUT = 30.0
DEFAULT_HTTP_RETRIES = 2

# HTTP layer
MAX_UPLOAD_BYTES = 10 << 20  # 10 MiB
INTEGRITY_HEADER = "X-Integrity-Verified"
