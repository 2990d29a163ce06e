import os
from pathlib import Path

from s3lite.core.config.helpers import parse_bytes

DEFAULT_HOST = os.getenv("S3LITE_DEFAULT_HOST", "s3.amazonaws.com")
DEFAULT_SCHEME = os.getenv("S3LITE_DEFAULT_SCHEME", "https")
DEFAULT_TIMEOUT_SECONDS = float(os.getenv("S3LITE_DEFAULT_TIMEOUT", "60"))

BYTES_PER_MIB = 1024 * 1024

# Parts smaller than this are rejected by the store unless they are the last one.
MIN_PART_SIZE = 5 * BYTES_PER_MIB
DEFAULT_CHUNK_SIZE = parse_bytes(os.getenv("S3LITE_DEFAULT_CHUNK_SIZE", "7mb"))
# Single-request PUTs above this size go through the multipart API instead.
MULTIPART_THRESHOLD = parse_bytes(os.getenv("S3LITE_MULTIPART_THRESHOLD", "3gb"))

DEFAULT_CONTENT_TYPE = "application/octet-stream"
SELF_TEST_KEY = "writetest"
SELF_TEST_CONTENT_TYPE = "text/x-empty"

CONFIG_FILE_ENV_VAR = "S3LITE_CONFIG_FILE"
DEFAULT_CONFIG_FILE = Path.home() / ".s3lite" / "config.yaml"
