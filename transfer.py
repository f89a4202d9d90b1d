# transfer.py
# Single-file HTTP download with skip-if-present and atomic publish

import os

import requests
from tqdm import tqdm

from utils import log_debug, log_info

CHUNK_SIZE = 1024 * 64
DEFAULT_TIMEOUT = 60
PROGRESS_INTERVAL = 5.0


class TransferFailed(Exception):
    """A fresh download did not complete: bad HTTP status or a network fault."""

    def __init__(self, url, status_code=None, cause=None):
        if status_code is not None:
            msg = f"Request for {url} failed with HTTP {status_code}"
        else:
            msg = f"Request for {url} failed: {cause}"
        super().__init__(msg)
        self.url = url
        self.status_code = status_code
        self.cause = cause


def download_file(session, url, out_path, label, timeout=DEFAULT_TIMEOUT, progress_interval=PROGRESS_INTERVAL):
    """
    Download url to out_path unless a file is already there.

    Returns True after a fresh download and False when the existing file was
    kept. Bytes go to out_path + ".part" and are moved into place only once
    the body has been read completely, so out_path never holds a truncated
    file. Raises TransferFailed on a non-2xx status or a network error.
    """
    if os.path.isfile(out_path):
        log_info(f"    Skipping existing {label}")
        return False

    log_info(f"    Downloading {label}")
    log_debug(f"url: '{url}', out_path: '{out_path}'")

    tmp = out_path + ".part"
    try:
        with session.get(url, stream=True, timeout=timeout, allow_redirects=True) as r:
            if not 200 <= r.status_code < 300:
                raise TransferFailed(url, status_code=r.status_code)
            _write_stream(r, tmp, label, progress_interval)
    except requests.RequestException as e:
        raise TransferFailed(url, cause=e) from e

    os.replace(tmp, out_path)
    log_info(f"    Finished {label}")
    return True


def _write_stream(resp, tmp_path, label, progress_interval):
    try:
        total = int(resp.headers.get("content-length", "0") or 0)
    except ValueError:
        total = 0
    with open(tmp_path, "wb") as f, tqdm(
        total=total if total > 0 else None,
        unit="B",
        unit_scale=True,
        desc=label[:50],
        leave=False,
        mininterval=progress_interval,
    ) as pbar:
        for data in resp.iter_content(chunk_size=CHUNK_SIZE):
            if not data:
                continue
            f.write(data)
            pbar.update(len(data))
