# s3_uri.py
# Turns object-storage URIs from the content export into public HTTP URLs

import re
from collections import namedtuple
from urllib.parse import urlparse, unquote, quote

DEFAULT_REGION = "eu-west-1"

S3Location = namedtuple("S3Location", ["bucket", "key"])

# bucket.s3.amazonaws.com, bucket.s3.eu-west-1.amazonaws.com, bucket.s3-eu-west-1.amazonaws.com
VIRTUAL_HOST_PATTERN = re.compile(r"^(?P<bucket>.+)\.s3(?:[.-](?P<region>[a-z0-9-]+))?\.amazonaws\.com$")
# s3.amazonaws.com/bucket, s3.eu-west-1.amazonaws.com/bucket, s3-eu-west-1.amazonaws.com/bucket
PATH_STYLE_PATTERN = re.compile(r"^s3(?:[.-](?P<region>[a-z0-9-]+))?\.amazonaws\.com$")


class MalformedStorageURI(ValueError):
    """Raised when a storage URI cannot be split into bucket and key."""

    def __init__(self, uri, reason="not an S3 URI"):
        super().__init__(f"Malformed storage URI {uri!r}: {reason}")
        self.uri = uri


def parse_s3_uri(uri):
    """
    Split an S3 URI into (bucket, key).

    Accepts s3://bucket/key as well as virtual-hosted and path-style
    amazonaws.com http(s) URLs. Keys from http(s) URLs are percent-decoded;
    s3:// keys are taken verbatim.
    """
    if not isinstance(uri, str) or not uri.strip():
        raise MalformedStorageURI(uri, "empty")
    uri = uri.strip()

    if uri.lower().startswith("s3://"):
        bucket, _, key = uri[5:].partition("/")
        return _checked(uri, bucket, key)

    parsed = urlparse(uri)
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise MalformedStorageURI(uri)

    host = parsed.hostname.lower()
    path = unquote(parsed.path)

    m = VIRTUAL_HOST_PATTERN.match(host)
    if m:
        return _checked(uri, m.group("bucket"), path.lstrip("/"))

    if PATH_STYLE_PATTERN.match(host):
        bucket, _, key = path.lstrip("/").partition("/")
        return _checked(uri, bucket, key)

    raise MalformedStorageURI(uri, f"unrecognised host {host}")


def _checked(uri, bucket, key):
    if not bucket:
        raise MalformedStorageURI(uri, "missing bucket")
    if not key:
        raise MalformedStorageURI(uri, "missing key")
    return S3Location(bucket, key)


def resolve_http_url(uri, region=DEFAULT_REGION):
    """Return the anonymous HTTPS URL of the object in the given region."""
    if not region:
        raise ValueError("region must not be empty")
    location = parse_s3_uri(uri)
    return f"https://{location.bucket}.s3.{region}.amazonaws.com/{quote(location.key, safe='/')}"
