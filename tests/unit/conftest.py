import gc

import pytest
import requests_mock

from s3lite.core.client import S3Client
from s3lite.core.config import s3_config
from s3lite.core.config.s3_config import S3Config
from tests.unit.helpers import FakeStore

TEST_BUCKET = "test-bucket"
TEST_ACCESS_ID = "test-access-id"
TEST_SECRET = "test-secret-key"
STORE_URL = f"https://{TEST_BUCKET}.s3.amazonaws.com"

_CONFIG_ENV_VARS = [
    "S3_BUCKET",
    "S3_ACCESS_ID",
    "S3_SECRET_KEY",
    "S3_HOST",
    "S3_SCHEME",
    "S3_TIMEOUT",
    "S3_CHUNK_SIZE",
    "S3_MULTIPART_THRESHOLD",
    "S3LITE_CONFIG_FILE",
]


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    """Keep the developer's environment and config file out of tests."""
    for name in _CONFIG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(s3_config, "DEFAULT_CONFIG_FILE", tmp_path / "missing.yaml")


@pytest.fixture
def config():
    return S3Config(
        bucket=TEST_BUCKET,
        access_id=TEST_ACCESS_ID,
        secret=TEST_SECRET,
        timeout=5,
        chunk_size=4,
        multipart_threshold=16,
    )


@pytest.fixture
def client(config):
    return S3Client(config)


@pytest.fixture
def http_mock():
    """Fixture to intercept every HTTP request made through requests."""
    with requests_mock.Mocker() as m:
        yield m


@pytest.fixture
def store(http_mock):
    """Fixture serving an in-memory store at the test bucket URL.

    Uploads dropped by a test are collected before the store goes away, so
    their safety-net aborts reach this store and never a later one.
    """
    fake = FakeStore(
        bucket=TEST_BUCKET, access_id=TEST_ACCESS_ID, secret=TEST_SECRET
    )
    fake.install(http_mock)
    yield fake
    gc.collect()
