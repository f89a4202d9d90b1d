import csv

import pytest
import requests


class FakeResponse:
    def __init__(self, status_code=200, body=b"", fail_after=None):
        self.status_code = status_code
        self.headers = {"content-length": str(len(body))}
        self._body = body
        self._fail_after = fail_after

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return None

    def iter_content(self, chunk_size):
        for i in range(0, len(self._body), chunk_size):
            if self._fail_after is not None and i >= self._fail_after:
                raise requests.exceptions.ChunkedEncodingError("connection reset")
            yield self._body[i:i + chunk_size]


class FakeSession:
    """Serves canned responses by URL and records every GET."""

    def __init__(self, responses=None):
        self.responses = responses or {}
        self.calls = []

    def get(self, url, **kwargs):
        self.calls.append(url)
        resp = self.responses.get(url)
        if isinstance(resp, Exception):
            raise resp
        if resp is None:
            return FakeResponse(404)
        return resp

    def close(self):
        pass


@pytest.fixture
def session():
    return FakeSession()


def s3_http(bucket, key, region="eu-west-1"):
    return f"https://{bucket}.s3.{region}.amazonaws.com/{key}"


def write_export(path, rows, slots=2):
    header = ["Content Id", "Title"]
    for i in range(1, slots + 1):
        header += [f"Element {i} Id", f"Element {i} Name", f"Element {i} Type", f"Element {i} Data"]
    with open(path, "w", newline="", encoding="utf-8") as f:
        w = csv.writer(f)
        w.writerow(header)
        for row in rows:
            w.writerow(row)
    return path
