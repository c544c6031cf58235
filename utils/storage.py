import os
import logging
from io import BytesIO

import boto3
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)


class StorageBackend:
    """Key/value blob store for input assets and exported rasters."""

    def put_file(self, data, key, content_type=None):
        raise NotImplementedError

    def get_file(self, key):
        """Returns file content as BytesIO."""
        raise NotImplementedError

    def exists(self, key):
        raise NotImplementedError

    def delete(self, key):
        raise NotImplementedError

    def describe(self, key):
        """Human-readable location of `key`, used in audit logs and X-Export-Path."""
        raise NotImplementedError


def _read_bytes(data):
    if isinstance(data, (bytes, bytearray)):
        return bytes(data)
    if hasattr(data, "read"):
        if hasattr(data, "seek"):
            data.seek(0)
        body = data.read()
        if hasattr(data, "seek"):
            data.seek(0)
        return body
    raise TypeError(f"Unsupported payload type for storage: {type(data).__name__}")


class LocalStorage(StorageBackend):
    def __init__(self, base_dir):
        self.base_dir = os.path.abspath(base_dir)
        os.makedirs(self.base_dir, exist_ok=True)

    def _get_abs_path(self, key):
        # Keys are relative ("assets/abc.png"); refuse anything that escapes base_dir
        abs_path = os.path.abspath(os.path.join(self.base_dir, key))
        if os.path.commonpath([abs_path, self.base_dir]) != self.base_dir:
            raise ValueError(f"Storage key escapes storage root: {key}")
        return abs_path

    def put_file(self, data, key, content_type=None):
        abs_path = self._get_abs_path(key)
        os.makedirs(os.path.dirname(abs_path), exist_ok=True)
        with open(abs_path, "wb") as f:
            f.write(_read_bytes(data))
        return key

    def get_file(self, key):
        with open(self._get_abs_path(key), "rb") as f:
            return BytesIO(f.read())

    def exists(self, key):
        try:
            return os.path.exists(self._get_abs_path(key))
        except ValueError:
            return False

    def delete(self, key):
        abs_path = self._get_abs_path(key)
        if os.path.exists(abs_path):
            os.remove(abs_path)

    def describe(self, key):
        return self._get_abs_path(key)


class S3Storage(StorageBackend):
    def __init__(self, bucket_name, region, access_key, secret_key, prefix=""):
        self.s3 = boto3.client(
            "s3",
            region_name=region,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
        )
        self.bucket = bucket_name
        self.prefix = prefix

    def _get_s3_key(self, key):
        if self.prefix:
            return f"{self.prefix.rstrip('/')}/{key.lstrip('/')}"
        return key

    def put_file(self, data, key, content_type=None):
        self.s3.put_object(
            Bucket=self.bucket,
            Key=self._get_s3_key(key),
            Body=_read_bytes(data),
            ContentType=content_type or "application/octet-stream",
        )
        return key

    def get_file(self, key):
        obj = self.s3.get_object(Bucket=self.bucket, Key=self._get_s3_key(key))
        return BytesIO(obj["Body"].read())

    def exists(self, key):
        try:
            self.s3.head_object(Bucket=self.bucket, Key=self._get_s3_key(key))
            return True
        except ClientError:
            return False

    def delete(self, key):
        self.s3.delete_object(Bucket=self.bucket, Key=self._get_s3_key(key))

    def describe(self, key):
        return f"s3://{self.bucket}/{self._get_s3_key(key)}"


def get_storage():
    """Factory to return the configured storage backend."""
    from config import STORAGE_BACKEND, S3_BUCKET, AWS_REGION, INSTANCE_DIR, S3_PREFIX

    if STORAGE_BACKEND == "s3":
        access_key = os.environ.get("AWS_ACCESS_KEY_ID")
        secret_key = os.environ.get("AWS_SECRET_ACCESS_KEY")
        if not access_key or not secret_key:
            # IAM roles inject credentials without env vars
            logger.warning("[Storage] S3 backend selected but AWS credentials missing from environment.")
        return S3Storage(S3_BUCKET, AWS_REGION, access_key, secret_key, prefix=S3_PREFIX)

    return LocalStorage(INSTANCE_DIR)
