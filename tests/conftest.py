"""Test configuration and fixtures for unified storage.

This module provides in-memory stand-ins for the vendor clients:
- FakeS3Client: boto3 S3 client subset, raising real ClientErrors
- FakeDriveService: Drive v3 resource subset, evaluating the adapter's queries
"""
import io
import itertools
import json
import re
import sys
import threading
from pathlib import Path
from types import SimpleNamespace

import httplib2
import pytest
from botocore.exceptions import ClientError
from googleapiclient.errors import HttpError

# Ensure the package is importable without installation
sys.path.insert(0, str(Path(__file__).parent.parent))

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"


# =============================================================================
# S3
# =============================================================================

def s3_error(code: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class FakePaginator:
    """list_objects_v2 paginator over FakeS3Client's buckets."""

    def __init__(self, client, page_size: int):
        self.client = client
        self.page_size = page_size

    def paginate(self, Bucket, Prefix="", Delimiter=None):
        if Bucket not in self.client.buckets:
            raise s3_error("NoSuchBucket", "ListObjectsV2")

        contents, prefixes = [], []
        for key in sorted(self.client.buckets[Bucket]):
            if not key.startswith(Prefix):
                continue
            rest = key[len(Prefix):]
            if Delimiter and Delimiter in rest:
                common = Prefix + rest.split(Delimiter)[0] + Delimiter
                if common not in prefixes:
                    prefixes.append(common)
            else:
                contents.append({"Key": key})

        if not contents and not prefixes:
            yield {"KeyCount": 0}
            return

        for start in range(0, max(len(contents), 1), self.page_size):
            page = {"Contents": contents[start:start + self.page_size]}
            if start == 0 and prefixes:
                page["CommonPrefixes"] = [{"Prefix": p} for p in prefixes]
            yield page


class FakeS3Client:
    """In-memory S3: buckets map keys to bytes."""

    def __init__(self, endpoint_url: str = "https://s3.test.local", page_size: int = 2):
        self.meta = SimpleNamespace(endpoint_url=endpoint_url)
        self.buckets = {}
        self.bucket_configs = {}
        self.calls = []
        self.fail_with = {}
        self.page_size = page_size
        self._lock = threading.Lock()

    def _record(self, operation, **kwargs):
        with self._lock:
            self.calls.append((operation, kwargs))
        if operation in self.fail_with:
            raise self.fail_with[operation]

    def _bucket(self, name, operation):
        if name not in self.buckets:
            raise s3_error("NoSuchBucket", operation)
        return self.buckets[name]

    def head_bucket(self, Bucket):
        self._record("head_bucket", Bucket=Bucket)
        if Bucket not in self.buckets:
            raise s3_error("404", "HeadBucket")
        return {}

    def create_bucket(self, Bucket, CreateBucketConfiguration=None):
        self._record("create_bucket", Bucket=Bucket)
        with self._lock:
            if Bucket in self.buckets:
                raise s3_error("BucketAlreadyOwnedByYou", "CreateBucket")
            self.buckets[Bucket] = {}
            self.bucket_configs[Bucket] = CreateBucketConfiguration
        return {}

    def delete_bucket(self, Bucket):
        self._record("delete_bucket", Bucket=Bucket)
        if self._bucket(Bucket, "DeleteBucket"):
            raise s3_error("BucketNotEmpty", "DeleteBucket")
        del self.buckets[Bucket]

    def head_object(self, Bucket, Key):
        self._record("head_object", Bucket=Bucket, Key=Key)
        if Bucket not in self.buckets or Key not in self.buckets[Bucket]:
            raise s3_error("404", "HeadObject")
        return {"ContentLength": len(self.buckets[Bucket][Key])}

    def put_object(self, Bucket, Key, Body, ContentType=None):
        self._record("put_object", Bucket=Bucket, Key=Key)
        data = Body if isinstance(Body, (bytes, bytearray)) else Body.read()
        self._bucket(Bucket, "PutObject")[Key] = bytes(data)
        return {"ETag": '"etag"'}

    def get_object(self, Bucket, Key):
        self._record("get_object", Bucket=Bucket, Key=Key)
        objects = self._bucket(Bucket, "GetObject")
        if Key not in objects:
            raise s3_error("NoSuchKey", "GetObject")
        return {"Body": io.BytesIO(objects[Key])}

    def delete_object(self, Bucket, Key):
        self._record("delete_object", Bucket=Bucket, Key=Key)
        self._bucket(Bucket, "DeleteObject").pop(Key, None)
        return {}

    def delete_objects(self, Bucket, Delete):
        self._record("delete_objects", Bucket=Bucket, Count=len(Delete["Objects"]))
        objects = self._bucket(Bucket, "DeleteObjects")
        for entry in Delete["Objects"]:
            objects.pop(entry["Key"], None)
        return {"Deleted": Delete["Objects"]}

    def get_paginator(self, name):
        assert name == "list_objects_v2"
        return FakePaginator(self, self.page_size)

    def count(self, operation):
        return sum(1 for op, _ in self.calls if op == operation)


# =============================================================================
# Google Drive
# =============================================================================

def drive_error(status: int, reason: str = "") -> HttpError:
    body = {"error": {"code": status, "message": f"HTTP {status}"}}
    if reason:
        body["error"]["errors"] = [{"reason": reason, "message": reason}]
    return HttpError(httplib2.Response({"status": status}), json.dumps(body).encode("utf-8"))


def _unescape(value: str) -> str:
    return re.sub(r"\\(.)", r"\1", value)


_LITERAL = r"'((?:[^'\\]|\\.)*)'"
PARENT_CLAUSE = re.compile(_LITERAL + r" in parents")
NAME_CLAUSE = re.compile(r"\bname = " + _LITERAL)
MIME_EQ_CLAUSE = re.compile(r"mimeType = " + _LITERAL)
MIME_NE_CLAUSE = re.compile(r"mimeType != " + _LITERAL)


class FakeRequest:
    def __init__(self, service, fn):
        self.service = service
        self._fn = fn

    def execute(self):
        with self.service._lock:
            self.service.requests += 1
        if self.service.fail_with is not None:
            raise self.service.fail_with
        return self._fn()


class FakeFiles:
    def __init__(self, service):
        self.service = service

    def list(self, q, fields=None, pageSize=100, pageToken=None, spaces=None):
        def run():
            return self.service.query(q, pageSize, pageToken)
        return FakeRequest(self.service, run)

    def create(self, body, media_body=None, fields=None):
        def run():
            content = b""
            if media_body is not None:
                content = media_body.getbytes(0, media_body.size())
            return self.service.insert(
                body["name"],
                body.get("parents", ["root"])[0],
                body.get("mimeType", "application/octet-stream"),
                content,
            )
        return FakeRequest(self.service, run)

    def delete(self, fileId):
        return FakeRequest(self.service, lambda: self.service.remove(fileId))

    def get_media(self, fileId):
        def run():
            node = self.service.nodes.get(fileId)
            if node is None:
                raise drive_error(404)
            return node["content"]
        return FakeRequest(self.service, run)


class FakePermissions:
    def __init__(self, service):
        self.service = service

    def create(self, fileId, body):
        def run():
            with self.service._lock:
                self.service.shared.append((fileId, body))
            return {"id": "perm"}
        return FakeRequest(self.service, run)


class FakeDriveService:
    """In-memory Drive v3 resource (files + permissions)."""

    def __init__(self):
        self.nodes = {}
        self.shared = []
        self.deleted = []
        self.requests = 0
        self.fail_with = None
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def files(self):
        return FakeFiles(self)

    def permissions(self):
        return FakePermissions(self)

    def insert(self, name, parent, mime_type="application/octet-stream", content=b""):
        with self._lock:
            node_id = f"id-{next(self._ids)}"
            self.nodes[node_id] = {
                "id": node_id,
                "name": name,
                "mimeType": mime_type,
                "parents": [parent],
                "content": content,
            }
        return {"id": node_id, "name": name, "mimeType": mime_type}

    def add_folder(self, name, parent="root"):
        return self.insert(name, parent, FOLDER_MIME_TYPE)["id"]

    def add_file(self, name, parent="root", content=b""):
        return self.insert(name, parent, content=content)["id"]

    def remove(self, node_id):
        with self._lock:
            if node_id not in self.nodes:
                raise drive_error(404)
            stack = [node_id]
            while stack:
                current = stack.pop()
                self.nodes.pop(current, None)
                self.deleted.append(current)
                stack.extend(
                    n["id"] for n in list(self.nodes.values()) if current in n["parents"]
                )
        return ""

    def children(self, parent, name=None):
        return [
            n for n in self.nodes.values()
            if parent in n["parents"] and (name is None or n["name"] == name)
        ]

    def query(self, q, page_size, page_token):
        parent = _unescape(PARENT_CLAUSE.search(q).group(1))
        name = NAME_CLAUSE.search(q)
        mime_eq = MIME_EQ_CLAUSE.search(q)
        mime_ne = MIME_NE_CLAUSE.search(q)

        with self._lock:
            matches = [n for n in self.nodes.values() if parent in n["parents"]]
        if name:
            matches = [n for n in matches if n["name"] == _unescape(name.group(1))]
        if mime_eq:
            matches = [n for n in matches if n["mimeType"] == mime_eq.group(1)]
        if mime_ne:
            matches = [n for n in matches if n["mimeType"] != mime_ne.group(1)]

        start = int(page_token or 0)
        page = matches[start:start + page_size]
        response = {
            "files": [
                {k: n[k] for k in ("id", "name", "mimeType", "parents")} for n in page
            ]
        }
        if start + page_size < len(matches):
            response["nextPageToken"] = str(start + page_size)
        return response


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def fake_s3():
    return FakeS3Client()


@pytest.fixture
def fake_drive():
    return FakeDriveService()


@pytest.fixture
def make_drive_error():
    return drive_error


@pytest.fixture
def make_s3_error():
    return s3_error
