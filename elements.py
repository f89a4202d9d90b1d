# elements.py
# Element type dispatch: decides what each element slot of a content item produces

import os
import json
from enum import Enum
from collections import namedtuple

from s3_uri import resolve_http_url
from utils import safe_filename

Element = namedtuple("Element", ["element_id", "name", "type_tag", "data"])
DownloadTarget = namedtuple("DownloadTarget", ["path", "url", "label"])
ElementPlan = namedtuple("ElementPlan", ["action", "text_path", "text", "targets"])


class MalformedPayload(ValueError):
    """Raised when an element's Data cell cannot be interpreted."""


class Action(Enum):
    TEXT = "text"      # write data.text to <element>.md
    IGNORE = "ignore"  # references and widgets, nothing to fetch
    FILE = "file"      # one download from data.s3Url
    MEDIA = "media"    # data.s3Url plus optional en_US subtitles


AUDIO_FILE = "AUDIO_FILE"

ELEMENT_ACTIONS = {
    "ABSTRACT": Action.TEXT,
    "TEXT": Action.TEXT,

    "POSTER_FILE": Action.FILE,
    "IMAGE_FILE": Action.FILE,
    "PAPER_FILE": Action.FILE,

    "VIDEO_FILE": Action.MEDIA,
    AUDIO_FILE: Action.MEDIA,
    "VIDEO_BROADCAST": Action.MEDIA,
    "VIDEO_PREPUBLISH": Action.MEDIA,
    "VIDEO_TITLES": Action.MEDIA,
    "VIDEO_SPONSORS_FILLER": Action.MEDIA,
    "VIDEO_FILLER": Action.MEDIA,
    "VIDEO_COUNTDOWN": Action.MEDIA,

    "VIDEO_URL": Action.IGNORE,
    "VIDEO_LINK": Action.IGNORE,
    "POSTER_URL": Action.IGNORE,
    "IMAGE_URL": Action.IGNORE,
    "PAPER_URL": Action.IGNORE,
    "PAPER_LINK": Action.IGNORE,
    "LINK": Action.IGNORE,
    "LINK_BUTTON": Action.IGNORE,
    "AUDIO_URL": Action.IGNORE,
    "AUDIO_LINK": Action.IGNORE,
    "ZOOM": Action.IGNORE,
    "CONTENT_GROUP_LIST": Action.IGNORE,
    "WHOLE_SCHEDULE": Action.IGNORE,
    "LIVE_PROGRAM_ROOMS": Action.IGNORE,
    "ACTIVE_SOCIAL_ROOMS": Action.IGNORE,
    "DIVIDER": Action.IGNORE,
    "SPONSOR_BOOTHS": Action.IGNORE,
    "EXPLORE_PROGRAM_BUTTON": Action.IGNORE,
    "EXPLORE_SCHEDULE_BUTTON": Action.IGNORE,
}


def classify(type_tag, skip_videos=False):
    """
    Map an element type tag to its Action. Unknown tags are ignored so that
    new export types never abort a run. With skip_videos, media elements
    are ignored, except audio files which are always fetched.
    """
    tag = (type_tag or "").strip()
    action = ELEMENT_ACTIONS.get(tag, Action.IGNORE)
    if action is Action.MEDIA and skip_videos and tag != AUDIO_FILE:
        return Action.IGNORE
    return action


def parse_element_data(raw):
    """Return the `data` object of a serialized Data cell, or None if the cell is empty."""
    if raw is None or not raw.strip():
        return None
    try:
        doc = json.loads(raw)
    except ValueError as e:
        raise MalformedPayload(f"Element data is not valid JSON: {e}") from e
    if not isinstance(doc, dict) or not isinstance(doc.get("data"), dict):
        raise MalformedPayload("Element data has no 'data' object")
    return doc["data"]


def url_extension(url):
    """
    Last "."-separated segment of url, verbatim. A key without an extension
    under a dotted bucket yields a segment with path separators; those are
    sanitized so the extension never leaves the element's directory.
    """
    ext = url.split(".")[-1]
    if "/" in ext or "\\" in ext:
        ext = safe_filename(ext)
    return ext


def _target(base_path, url, name, region):
    ext = url_extension(url)
    return DownloadTarget(
        path=f"{base_path}.{ext}",
        url=resolve_http_url(url, region),
        label=f"{name} - {ext.upper()}",
    )


def _require(data, key, element):
    value = data.get(key)
    if not isinstance(value, str) or (key != "text" and not value):
        raise MalformedPayload(
            f"Element {element.element_id} ({element.type_tag}) has no '{key}' in its data"
        )
    return value


def _subtitle_url(data):
    subtitles = data.get("subtitles")
    if not isinstance(subtitles, dict):
        return None
    en_us = subtitles.get("en_US")
    if not isinstance(en_us, dict):
        return None
    return en_us.get("s3Url") or None


def plan_element(element, item_dir, config):
    """
    Work out what an element produces inside item_dir.

    Returns an ElementPlan: for TEXT the .md path and its text, for FILE and
    MEDIA the download targets in transfer order, and nothing for IGNORE.
    Empty Data cells always plan as IGNORE.
    """
    action = classify(element.type_tag, config.skip_videos)
    if action is Action.IGNORE:
        return ElementPlan(Action.IGNORE, None, None, [])

    data = parse_element_data(element.data)
    if data is None:
        return ElementPlan(Action.IGNORE, None, None, [])

    base_path = os.path.join(
        item_dir, f"{safe_filename(element.element_id)} - {safe_filename(element.name)}"
    )

    if action is Action.TEXT:
        return ElementPlan(action, base_path + ".md", _require(data, "text", element), [])

    targets = [_target(base_path, _require(data, "s3Url", element), element.name, config.region)]
    if action is Action.MEDIA:
        caption_url = _subtitle_url(data)
        if caption_url:
            targets.append(_target(base_path, caption_url, element.name, config.region))
    return ElementPlan(action, None, None, targets)
