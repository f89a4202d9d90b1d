import os

import pytest
import requests

from conftest import FakeResponse, FakeSession
from transfer import TransferFailed, download_file

URL = "https://conf.s3.eu-west-1.amazonaws.com/talk.mp4"


def test_existing_file_is_not_fetched(tmp_path):
    dest = tmp_path / "talk.mp4"
    dest.write_bytes(b"old")
    session = FakeSession({URL: FakeResponse(200, b"new")})

    assert download_file(session, URL, str(dest), "Talk - MP4") is False
    assert session.calls == []
    assert dest.read_bytes() == b"old"


def test_fresh_download_writes_body(tmp_path):
    body = os.urandom(200 * 1024)
    dest = tmp_path / "talk.mp4"
    session = FakeSession({URL: FakeResponse(200, body)})

    assert download_file(session, URL, str(dest), "Talk - MP4") is True
    assert session.calls == [URL]
    assert dest.read_bytes() == body
    assert not (tmp_path / "talk.mp4.part").exists()


def test_empty_body_still_creates_file(tmp_path):
    dest = tmp_path / "empty.txt"
    session = FakeSession({URL: FakeResponse(204, b"")})
    assert download_file(session, URL, str(dest), "Empty") is True
    assert dest.read_bytes() == b""


@pytest.mark.parametrize("status", [301, 403, 404, 500])
def test_non_success_status(tmp_path, status):
    dest = tmp_path / "talk.mp4"
    session = FakeSession({URL: FakeResponse(status, b"<Error/>")})

    with pytest.raises(TransferFailed) as exc:
        download_file(session, URL, str(dest), "Talk - MP4")
    assert exc.value.status_code == status
    assert not dest.exists()


def test_network_error_carries_cause(tmp_path):
    cause = requests.exceptions.ConnectionError("name resolution failed")
    session = FakeSession({URL: cause})

    with pytest.raises(TransferFailed) as exc:
        download_file(session, URL, str(tmp_path / "talk.mp4"), "Talk - MP4")
    assert exc.value.cause is cause
    assert exc.value.status_code is None


def test_interrupted_stream_leaves_no_destination(tmp_path):
    dest = tmp_path / "talk.mp4"
    body = b"x" * (200 * 1024)
    session = FakeSession({URL: FakeResponse(200, body, fail_after=64 * 1024)})

    with pytest.raises(TransferFailed):
        download_file(session, URL, str(dest), "Talk - MP4")
    assert not dest.exists()

    # a later run is not fooled by the partial file and replaces it
    session.responses[URL] = FakeResponse(200, body)
    assert download_file(session, URL, str(dest), "Talk - MP4") is True
    assert dest.read_bytes() == body
