"""
Storage backend tests.

LocalStorage refuses keys that escape its root; S3Storage is exercised
against a mocked boto3 client.
"""
import io
import os
import pytest
from botocore.exceptions import ClientError

from utils.storage import LocalStorage, S3Storage, get_storage


class TestLocalStorageSecurity:

    @pytest.mark.parametrize("key", [
        "../secrets.txt",
        "foo/../../etc/passwd",
        "exports/../../../sensitive.txt",
    ])
    def test_path_traversal_with_dotdot_raises_error(self, tmp_path, key):
        storage = LocalStorage(str(tmp_path))
        with pytest.raises(ValueError, match="escapes"):
            storage._get_abs_path(key)

    def test_absolute_path_outside_root_raises_error(self, tmp_path):
        storage = LocalStorage(str(tmp_path))
        with pytest.raises(ValueError, match="escapes"):
            storage._get_abs_path("/etc/passwd")

    def test_normal_paths_stay_under_root(self, tmp_path):
        storage = LocalStorage(str(tmp_path))
        for key in ("assets/photo.jpg", "exports/export-front-x.png", "simple.txt"):
            assert storage._get_abs_path(key).startswith(str(tmp_path))

    def test_get_file_with_traversal_raises(self, tmp_path):
        storage = LocalStorage(str(tmp_path))
        with pytest.raises(ValueError, match="escapes"):
            storage.get_file("../../../etc/passwd")

    def test_exists_with_traversal_is_false(self, tmp_path):
        assert LocalStorage(str(tmp_path)).exists("../outside.txt") is False


class TestLocalStorage:

    def test_put_get_exists_delete(self, tmp_path):
        storage = LocalStorage(str(tmp_path))
        storage.put_file(io.BytesIO(b"test content"), "exports/file.png")

        assert storage.get_file("exports/file.png").read() == b"test content"
        assert storage.exists("exports/file.png") is True
        assert storage.exists("nonexistent.txt") is False

        storage.delete("exports/file.png")
        assert storage.exists("exports/file.png") is False
        # Deleting twice is a no-op
        storage.delete("exports/file.png")

    def test_put_accepts_bytes(self, tmp_path):
        storage = LocalStorage(str(tmp_path))
        assert storage.put_file(b"abc", "a/b/c.bin") == "a/b/c.bin"
        assert os.path.isfile(os.path.join(str(tmp_path), "a", "b", "c.bin"))

    def test_put_rejects_unknown_payload(self, tmp_path):
        with pytest.raises(TypeError):
            LocalStorage(str(tmp_path)).put_file(12345, "x.bin")

    def test_describe_is_absolute_path(self, tmp_path):
        storage = LocalStorage(str(tmp_path))
        assert storage.describe("exports/a.png") == os.path.join(str(tmp_path), "exports", "a.png")


class TestS3Storage:

    @pytest.fixture
    def s3(self, mocker):
        client = mocker.Mock()
        mocker.patch("utils.storage.boto3.client", return_value=client)
        return client

    def test_put_file_uses_prefix_and_content_type(self, s3):
        storage = S3Storage("bucket", "us-east-1", "ak", "sk", prefix="print/")
        storage.put_file(b"png", "/exports/a.png", content_type="image/png")
        s3.put_object.assert_called_once_with(
            Bucket="bucket", Key="print/exports/a.png", Body=b"png", ContentType="image/png",
        )

    def test_get_file(self, s3, mocker):
        body = mocker.Mock()
        body.read.return_value = b"data"
        s3.get_object.return_value = {"Body": body}
        assert S3Storage("bucket", "us-east-1", None, None).get_file("k").read() == b"data"

    def test_exists_maps_client_error_to_false(self, s3):
        s3.head_object.side_effect = ClientError({"Error": {"Code": "404"}}, "HeadObject")
        assert S3Storage("bucket", "us-east-1", None, None).exists("missing") is False

    def test_describe(self, s3):
        assert S3Storage("bucket", "us-east-1", None, None).describe("exports/a.png") == "s3://bucket/exports/a.png"


def test_get_storage_defaults_to_local(mocker, tmp_path):
    mocker.patch("config.STORAGE_BACKEND", "local")
    mocker.patch("config.INSTANCE_DIR", str(tmp_path))
    storage = get_storage()
    assert isinstance(storage, LocalStorage)
    assert storage.base_dir == os.path.abspath(str(tmp_path))
