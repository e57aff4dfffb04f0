"""Shared fixtures: an in-memory stand-in for the boto3 S3 client."""

import hashlib
import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import parse_qsl, quote

import pytest
from botocore.exceptions import ClientError

from shuk.config import StorageConfig


def client_error(code: str, operation: str, status: int = 400, message: str = "") -> ClientError:
    """Build the ClientError botocore raises for a failed call."""
    return ClientError(
        {
            "Error": {"Code": code, "Message": message or code},
            "ResponseMetadata": {"HTTPStatusCode": status},
        },
        operation,
    )


class FakePaginator:
    """Mimics the list_objects_v2 paginator over a FakeS3Client."""

    def __init__(self, client: "FakeS3Client"):
        self.client = client

    def paginate(self, Bucket: str, Prefix: str = ""):
        self.client._record("ListObjectsV2", Bucket=Bucket, Prefix=Prefix)
        keys = sorted(k for k in self.client.objects if k.startswith(Prefix))
        size = self.client.page_size
        if not keys:
            yield {"KeyCount": 0}
            return
        for start in range(0, len(keys), size):
            contents = []
            for key in keys[start:start + size]:
                obj = self.client.objects[key]
                contents.append({
                    "Key": key,
                    "Size": len(obj["body"]),
                    "LastModified": obj["last_modified"],
                    "ETag": obj["etag"],
                })
            yield {"Contents": contents, "KeyCount": len(contents)}


class FakeS3Client:
    """Just enough of the S3 client API for shuk, backed by dicts.

    ``calls`` records every operation in order. ``fail_on`` makes an
    operation raise, optionally only for one key.
    """

    def __init__(self, bucket: str = "test-bucket"):
        self.bucket = bucket
        self.objects: Dict[str, Dict[str, Any]] = {}
        self.uploads: Dict[str, Dict[str, Any]] = {}
        self.calls: List[tuple] = []
        self.page_size = 1000
        self._failures: Dict[str, Callable[[Dict[str, Any]], Optional[Exception]]] = {}
        self._lock = threading.Lock()
        self._upload_counter = 0
        self._clock = datetime(2024, 4, 20, 12, 0, 0, tzinfo=timezone.utc)

    # --- test helpers -------------------------------------------------

    def fail_on(self, operation: str, code: str = "AccessDenied", key: Optional[str] = None,
                status: int = 403, part_number: Optional[int] = None) -> None:
        def check(kwargs: Dict[str, Any]) -> Optional[Exception]:
            if key is not None and kwargs.get("Key") != key:
                return None
            if part_number is not None and kwargs.get("PartNumber") != part_number:
                return None
            return client_error(code, operation, status)
        self._failures[operation] = check

    def add_object(self, key: str, body: bytes, tags: Optional[Dict[str, str]] = None,
                   last_modified: Optional[datetime] = None) -> None:
        self.objects[key] = {
            "body": body,
            "tags": dict(tags or {}),
            "etag": f'"{hashlib.md5(body).hexdigest()}"',
            "last_modified": last_modified or self._tick(),
        }

    def operations(self) -> List[str]:
        return [name for name, _ in self.calls]

    def calls_for(self, operation: str) -> List[Dict[str, Any]]:
        return [kwargs for name, kwargs in self.calls if name == operation]

    # --- internals ----------------------------------------------------

    def _tick(self) -> datetime:
        with self._lock:
            self._clock += timedelta(minutes=1)
            return self._clock

    def _record(self, operation: str, **kwargs: Any) -> None:
        with self._lock:
            self.calls.append((operation, kwargs))
        check = self._failures.get(operation)
        if check is not None:
            error = check(kwargs)
            if error is not None:
                raise error

    def _store(self, key: str, body: bytes, tagging: str) -> None:
        self.add_object(key, body, dict(parse_qsl(tagging or "", keep_blank_values=True)))

    # --- S3 API -------------------------------------------------------

    def head_object(self, Bucket: str, Key: str) -> Dict[str, Any]:
        self._record("HeadObject", Bucket=Bucket, Key=Key)
        if Key not in self.objects:
            raise client_error("404", "HeadObject", 404, "Not Found")
        obj = self.objects[Key]
        return {
            "ContentLength": len(obj["body"]),
            "ETag": obj["etag"],
            "LastModified": obj["last_modified"],
        }

    def get_object_tagging(self, Bucket: str, Key: str) -> Dict[str, Any]:
        self._record("GetObjectTagging", Bucket=Bucket, Key=Key)
        if Key not in self.objects:
            raise client_error("NoSuchKey", "GetObjectTagging", 404)
        tags = self.objects[Key]["tags"]
        return {"TagSet": [{"Key": k, "Value": v} for k, v in tags.items()]}

    def put_object(self, Bucket: str, Key: str, Body: bytes = b"", Tagging: str = "",
                   ContentType: Optional[str] = None) -> Dict[str, Any]:
        self._record("PutObject", Bucket=Bucket, Key=Key, Tagging=Tagging, ContentType=ContentType)
        self._store(Key, Body, Tagging)
        return {"ETag": self.objects[Key]["etag"]}

    def upload_file(self, Filename: str, Bucket: str, Key: str, ExtraArgs: Optional[Dict[str, Any]] = None,
                    Callback: Optional[Callable[[int], None]] = None, Config: Any = None) -> None:
        extra = ExtraArgs or {}
        self._record("UploadFile", Bucket=Bucket, Key=Key, Filename=Filename,
                     Tagging=extra.get("Tagging", ""), Config=Config)
        chunks = []
        with open(Filename, "rb") as f:
            while chunk := f.read(8192):
                chunks.append(chunk)
                if Callback is not None:
                    Callback(len(chunk))
        self._store(Key, b"".join(chunks), extra.get("Tagging", ""))

    def create_multipart_upload(self, Bucket: str, Key: str, Tagging: str = "") -> Dict[str, Any]:
        self._record("CreateMultipartUpload", Bucket=Bucket, Key=Key, Tagging=Tagging)
        with self._lock:
            self._upload_counter += 1
            upload_id = f"upload-{self._upload_counter}"
        self.uploads[upload_id] = {"key": Key, "tagging": Tagging, "parts": {}}
        return {"UploadId": upload_id, "Bucket": Bucket, "Key": Key}

    def upload_part(self, Bucket: str, Key: str, UploadId: str, PartNumber: int, Body: bytes) -> Dict[str, Any]:
        self._record("UploadPart", Bucket=Bucket, Key=Key, UploadId=UploadId,
                     PartNumber=PartNumber, Size=len(Body))
        etag = f'"{hashlib.md5(Body).hexdigest()}"'
        self.uploads[UploadId]["parts"][PartNumber] = (etag, bytes(Body))
        return {"ETag": etag}

    def complete_multipart_upload(self, Bucket: str, Key: str, UploadId: str,
                                  MultipartUpload: Dict[str, Any]) -> Dict[str, Any]:
        parts = MultipartUpload["Parts"]
        self._record("CompleteMultipartUpload", Bucket=Bucket, Key=Key, UploadId=UploadId,
                     PartNumbers=[p["PartNumber"] for p in parts])
        upload = self.uploads.pop(UploadId)
        numbers = [p["PartNumber"] for p in parts]
        if numbers != sorted(numbers):
            raise client_error("InvalidPartOrder", "CompleteMultipartUpload")
        body = b""
        for part in parts:
            etag, data = upload["parts"][part["PartNumber"]]
            if etag != part["ETag"]:
                raise client_error("InvalidPart", "CompleteMultipartUpload")
            body += data
        self._store(Key, body, upload["tagging"])
        return {"Key": Key}

    def abort_multipart_upload(self, Bucket: str, Key: str, UploadId: str) -> Dict[str, Any]:
        self._record("AbortMultipartUpload", Bucket=Bucket, Key=Key, UploadId=UploadId)
        self.uploads.pop(UploadId, None)
        return {}

    def generate_presigned_url(self, ClientMethod: str, Params: Dict[str, Any], ExpiresIn: int) -> str:
        self._record("Presign", ClientMethod=ClientMethod, ExpiresIn=ExpiresIn, **Params)
        return (
            f"https://{Params['Bucket']}.s3.amazonaws.com/{quote(Params['Key'])}"
            f"?X-Amz-Expires={ExpiresIn}&X-Amz-Signature=fake"
        )

    def delete_object(self, Bucket: str, Key: str) -> Dict[str, Any]:
        self._record("DeleteObject", Bucket=Bucket, Key=Key)
        self.objects.pop(Key, None)
        return {}

    def get_paginator(self, operation_name: str) -> FakePaginator:
        assert operation_name == "list_objects_v2"
        return FakePaginator(self)


@pytest.fixture
def s3():
    """Empty fake bucket."""
    return FakeS3Client()


@pytest.fixture
def storage_config():
    """Storage settings pointing at the fake bucket with a prefix."""
    return StorageConfig(bucket_name="test-bucket", bucket_prefix="shared", presigned_time=3600)
