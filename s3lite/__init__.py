"""Client library for S3-style object stores with multipart upload support."""

from .core.client import S3Client
from .core.config.s3_config import S3Config, load_config
from .core.exceptions import (
    ConfigError,
    IncompleteReadError,
    MultipartFinalizedError,
    S3ClientError,
    S3Error,
    S3ResponseError,
    S3SelfTestError,
)
from .core.models import CompletedPart, ObjectHead, StoredObject
from .core.multipart.chunked_uploader import put_multipart
from .core.multipart.multipart_upload import MultipartUpload, UploadState

__version__ = "0.3.0"

__all__ = [
    "S3Client",
    "S3Config",
    "load_config",
    "MultipartUpload",
    "UploadState",
    "put_multipart",
    "CompletedPart",
    "ObjectHead",
    "StoredObject",
    "S3ClientError",
    "S3Error",
    "S3ResponseError",
    "MultipartFinalizedError",
    "IncompleteReadError",
    "S3SelfTestError",
    "ConfigError",
]
