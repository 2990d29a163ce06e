import base64
import hashlib
import io

import pytest
import requests
from pydantic import SecretStr

from s3lite.core.auth.signer import sign
from s3lite.core.client import S3Client
from s3lite.core.exceptions import (
    ConfigError,
    IncompleteReadError,
    S3Error,
    S3SelfTestError,
)
from s3lite.core.multipart.multipart_upload import MultipartUpload
from tests.unit.conftest import STORE_URL, TEST_ACCESS_ID, TEST_BUCKET, TEST_SECRET


class TestRequests:
    def test_resource_quotes_key_and_appends_query(self, client):
        url = client.resource("/dir/a file+1.txt", {"uploadId": "x y", "uploads": ""})

        assert url == f"{STORE_URL}/dir/a%20file%2B1.txt?uploadId=x+y&uploads"

    def test_request_is_signed(self, client, http_mock):
        http_mock.get(f"{STORE_URL}/obj", content=b"data")

        client.request("GET", "obj", headers={"Content-Type": "text/plain"})

        request = http_mock.last_request
        assert request.headers["Host"] == f"{TEST_BUCKET}.s3.amazonaws.com"
        assert request.headers["Authorization"] == sign(
            method="GET",
            bucket=TEST_BUCKET,
            path="obj",
            access_id=TEST_ACCESS_ID,
            secret=TEST_SECRET,
            content_type="text/plain",
            date=request.headers["Date"],
        )
        assert request.timeout == 5

    def test_explicit_date_is_kept(self, client, http_mock):
        http_mock.get(f"{STORE_URL}/obj")
        date = "Tue, 27 Mar 2007 19:36:42 GMT"

        client.request("GET", "obj", headers={"Date": date})

        assert http_mock.last_request.headers["Date"] == date

    def test_transport_error_propagates(self, client, http_mock):
        http_mock.get(f"{STORE_URL}/obj", exc=requests.exceptions.ConnectionError)

        with pytest.raises(requests.exceptions.ConnectionError):
            client.get("obj")


class TestSignatures:
    @pytest.fixture
    def wrong_secret_client(self, config):
        return S3Client(config.model_copy(update={"secret": SecretStr("WRONG")}))

    def test_signed_multipart_flow_is_accepted(self, client, store):
        upload = client.start_multipart("dir/a file+1.txt")
        upload.add_part(b"abcd", md5sum=hashlib.md5(b"abcd").digest())
        upload.complete("text/plain")

        assert store.objects["dir/a file+1.txt"] == (b"abcd", "text/plain")

    def test_store_rejects_wrong_secret_on_initiate(
        self, wrong_secret_client, store
    ):
        with pytest.raises(S3Error) as exc_info:
            wrong_secret_client.start_multipart("obj")

        assert exc_info.value.status_code == 403
        assert exc_info.value.error_code == "SignatureDoesNotMatch"
        assert store.uploads == {}

    def test_store_rejects_wrong_secret_on_part_and_complete(
        self, client, wrong_secret_client, store
    ):
        upload = client.start_multipart("obj")
        forged = MultipartUpload(wrong_secret_client, upload.upload_id, upload.key)
        forged._finalizer.detach()

        with pytest.raises(S3Error) as part_error:
            forged.add_part(b"abcd", md5sum=hashlib.md5(b"abcd").digest())
        upload.add_part(b"abcd")
        with pytest.raises(S3Error) as complete_error:
            forged.complete("text/plain")

        assert part_error.value.error_code == "SignatureDoesNotMatch"
        assert complete_error.value.error_code == "SignatureDoesNotMatch"
        assert "obj" not in store.objects
        upload.abort()

    def test_checksum_is_covered_by_signature(self, client, store):
        def checksum(data):
            return base64.b64encode(hashlib.md5(data).digest()).decode()

        headers = client.sign_request(
            "PUT",
            "obj",
            {"Content-Type": "text/plain", "Content-MD5": checksum(b"abc")},
        )
        headers["Content-MD5"] = checksum(b"xyz")

        response = requests.put(client.resource("obj"), data=b"xyz", headers=headers)

        assert response.status_code == 403
        assert "obj" not in store.objects

    def test_query_is_covered_by_signature(self, client, store):
        upload = client.start_multipart("obj")
        headers = client.sign_request(
            "PUT", "obj", {}, {"partNumber": "1", "uploadId": upload.upload_id}
        )

        response = requests.put(
            client.resource("obj", {"partNumber": "2", "uploadId": upload.upload_id}),
            data=b"abcd",
            headers=headers,
        )

        assert response.status_code == 403
        assert store.uploads[upload.upload_id].parts == {}
        upload.abort()


class TestPut:
    def test_put_bytes_then_get(self, client, store, http_mock):
        client.put(b"hello", 5, "greeting.txt", content_type="text/plain")

        request = http_mock.last_request
        assert request.method == "PUT"
        assert request.headers["Content-Length"] == "5"
        assert request.headers["Content-Type"] == "text/plain"
        assert "Content-MD5" not in request.headers

        stored = client.get("greeting.txt")
        assert stored.body == b"hello"
        assert stored.content_type == "text/plain"

    def test_put_defaults_content_type(self, client, store):
        client.put(b"abc", 3, "obj")

        assert store.objects["obj"] == (b"abc", "application/octet-stream")

    def test_put_sends_checksum(self, client, store, http_mock):
        digest = hashlib.md5(b"abc").digest()

        client.put(b"abc", 3, "obj", md5sum=digest)

        assert http_mock.last_request.headers["Content-MD5"] == (
            base64.b64encode(digest).decode()
        )

    def test_put_bytes_truncated_to_size(self, client, store):
        client.put(b"abcdef", 4, "obj")

        assert store.objects["obj"][0] == b"abcd"

    def test_put_short_bytes_raises_before_sending(self, client, http_mock):
        with pytest.raises(IncompleteReadError):
            client.put(b"abc", 5, "obj")

        assert http_mock.call_count == 0

    def test_put_stream(self, client, store):
        client.put(io.BytesIO(b"streamed body"), 8, "obj")

        assert store.objects["obj"][0] == b"streamed"

    def test_put_empty_stream(self, client, store, http_mock):
        client.put(io.BytesIO(b""), 0, "empty")

        assert store.objects["empty"][0] == b""
        assert http_mock.last_request.headers["Content-Length"] == "0"

    def test_put_at_threshold_is_single_request(self, client, store, http_mock):
        client.put(b"x" * 16, 16, "obj")

        assert http_mock.call_count == 1
        assert store.objects["obj"][0] == b"x" * 16

    def test_put_above_threshold_uses_multipart(self, client, store, http_mock):
        data = bytes(range(17))

        client.put(data, 17, "big", content_type="video/mp4")

        methods = [r.method for r in http_mock.request_history]
        assert methods == ["POST"] + ["PUT"] * 5 + ["POST"]
        assert store.objects["big"] == (data, "video/mp4")

    def test_put_stream_above_threshold_uses_multipart(self, client, store):
        client.put(io.BytesIO(b"y" * 20), 20, "big")

        assert store.manifests["upload-1"][-1][0] == 5
        assert store.objects["big"][0] == b"y" * 20

    def test_put_above_threshold_shows_progress(self, client, store, capsys):
        client.put(b"y" * 20, 20, "big", progress=True)

        assert "Uploading big" in capsys.readouterr().err
        assert store.objects["big"][0] == b"y" * 20

    def test_put_error_carries_status_and_body(self, client, store):
        store.fail_next("put", 500)

        with pytest.raises(S3Error) as exc_info:
            client.put(b"abc", 3, "obj")

        assert exc_info.value.status_code == 500
        assert exc_info.value.should_retry is True
        assert exc_info.value.error_code == "InternalError"


class TestReads:
    def test_get_missing_object(self, client, store):
        with pytest.raises(S3Error) as exc_info:
            client.get("nope")

        assert exc_info.value.status_code == 404
        assert exc_info.value.should_retry is False
        assert exc_info.value.error_code == "NoSuchKey"
        assert b"NoSuchKey" in exc_info.value.body

    def test_head(self, client, store, http_mock):
        store.objects["obj"] = (b"0123456789", "image/png")

        info = client.head("obj")

        assert http_mock.last_request.method == "HEAD"
        assert info.size_bytes == 10
        assert info.content_type == "image/png"
        assert info.etag == f'"{hashlib.md5(b"0123456789").hexdigest()}"'

    def test_head_missing_object(self, client, store):
        with pytest.raises(S3Error) as exc_info:
            client.head("nope")

        assert exc_info.value.status_code == 404

    def test_delete(self, client, store, http_mock):
        store.objects["obj"] = (b"x", "text/plain")

        client.delete("obj")

        assert http_mock.last_request.method == "DELETE"
        assert "obj" not in store.objects

    def test_delete_error(self, client, http_mock):
        http_mock.delete(f"{STORE_URL}/obj", status_code=403, content=b"denied")

        with pytest.raises(S3Error) as exc_info:
            client.delete("obj")

        assert exc_info.value.status_code == 403
        assert exc_info.value.body == b"denied"


class TestSelfTest:
    @pytest.fixture
    def config(self, config):
        """Keep the self-test payload below the multipart threshold."""
        return config.model_copy(update={"multipart_threshold": 1024})

    def test_round_trip_succeeds(self, client, store, http_mock):
        client.test()

        methods = [r.method for r in http_mock.request_history]
        assert methods == ["PUT", "GET"]
        body, content_type = store.objects["writetest"]
        assert body.startswith(b"roundtrip-test-")
        assert content_type == "text/x-empty"

    def test_payload_has_fixed_length(self, client, store, http_mock):
        lengths = set()
        for _ in range(5):
            client.test()
            lengths.add(len(store.objects["writetest"][0]))

        assert lengths == {len("roundtrip-test-") + 16}

    def test_mismatched_body(self, client, http_mock):
        http_mock.put(f"{STORE_URL}/writetest")
        http_mock.get(
            f"{STORE_URL}/writetest",
            content=b"something else",
            headers={"Content-Type": "text/x-empty"},
        )

        with pytest.raises(S3SelfTestError, match="differs"):
            client.test()

    def test_mismatched_content_type(self, client, store):
        original_get = client.get

        def get_with_wrong_type(path):
            stored = original_get(path)
            return type(stored)(body=stored.body, headers={"Content-Type": "x/y"})

        client.get = get_with_wrong_type

        with pytest.raises(S3SelfTestError, match="Content-Type"):
            client.test()

    def test_rejected_write(self, client, store, http_mock):
        store.fail_next("put", 403)

        with pytest.raises(S3Error) as exc_info:
            client.test()

        assert exc_info.value.status_code == 403
        assert [r.method for r in http_mock.request_history] == ["PUT"]


class TestFromEnv:
    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("S3_BUCKET", "env-bucket")
        monkeypatch.setenv("S3_ACCESS_ID", "env-id")
        monkeypatch.setenv("S3_SECRET_KEY", "env-secret")

        client = S3Client.from_env(host="store.example.com")

        assert client.bucket == "env-bucket"
        assert client.host == "env-bucket.store.example.com"
        assert client.config.secret.get_secret_value() == "env-secret"

    def test_from_env_missing_settings(self):
        with pytest.raises(ConfigError, match="S3_BUCKET"):
            S3Client.from_env()
