#!/usr/bin/env python3

import os
import sys
import csv
import argparse
from collections import namedtuple

import requests

from elements import Action, Element, MalformedPayload, plan_element
from s3_uri import DEFAULT_REGION, MalformedStorageURI
from transfer import DEFAULT_TIMEOUT, PROGRESS_INTERVAL, TransferFailed, download_file
from utils import set_log_level, log_debug, log_info, log_error, load_config, safe_filename

__version__ = "1.0.0"

ID_COLUMN = "Content Id"
TITLE_COLUMN = "Title"

RunConfig = namedtuple(
    "RunConfig",
    ["output_dir", "skip_videos", "region", "timeout", "progress_interval", "dry_run"],
    defaults=(False, DEFAULT_REGION, DEFAULT_TIMEOUT, PROGRESS_INTERVAL, False),
)

ColumnLayout = namedtuple("ColumnLayout", ["id_idx", "title_idx", "element_columns"])
ContentItem = namedtuple("ContentItem", ["item_id", "title", "elements"])


class MalformedExport(ValueError):
    """The CSV cannot be read as a content export."""


class RunStats:
    def __init__(self):
        self.items = 0
        self.written = 0
        self.downloaded = 0
        self.skipped = 0
        self.ignored = 0

    def __repr__(self):
        return (f"RunStats(items={self.items}, written={self.written}, downloaded={self.downloaded}, "
                f"skipped={self.skipped}, ignored={self.ignored})")


######################################################################
# CSV Parsing
######################################################################

def _element_indices(header, suffix):
    return [i for i, h in enumerate(header) if h.startswith("Element") and h.endswith(suffix)]


def read_column_layout(header):
    """
    Locate the item columns and, per element slot, the (Id, Name, Type, Data)
    column indices, in header order.
    """
    header = [(h or "").strip() for h in header]
    for required in (ID_COLUMN, TITLE_COLUMN):
        if required not in header:
            raise MalformedExport(f"CSV header has no '{required}' column")

    groups = [_element_indices(header, s) for s in ("Id", "Name", "Type", "Data")]
    if len({len(g) for g in groups}) != 1:
        raise MalformedExport(
            "Element columns are incomplete: "
            + ", ".join(f"{s}={len(g)}" for s, g in zip(("Id", "Name", "Type", "Data"), groups))
        )
    return ColumnLayout(header.index(ID_COLUMN), header.index(TITLE_COLUMN), list(zip(*groups)))


def raise_field_size_limit():
    # ABSTRACT/TEXT cells can exceed the csv module's default 128 KB field limit
    limit = sys.maxsize
    while True:
        try:
            csv.field_size_limit(limit)
            return
        except OverflowError:
            limit //= 10


def read_content_items(csv_path):
    """Yield one ContentItem per non-blank data row, in file order."""
    raise_field_size_limit()
    with open(csv_path, "r", newline="", encoding="utf-8-sig") as f:
        try:
            yield from _read_rows(csv.reader(f), csv_path)
        except csv.Error as e:
            raise MalformedExport(f"{csv_path}: {e}") from e


def _read_rows(reader, csv_path):
    header = next(reader, None)
    if header is None:
        raise MalformedExport(f"{csv_path} is empty")
    layout = read_column_layout(header)
    width = len(header)

    for row in reader:
        if not any(cell.strip() for cell in row):
            continue
        if len(row) < width:
            row = row + [""] * (width - len(row))
        elements = [
            Element(row[id_idx], row[name_idx], row[type_idx], row[data_idx])
            for id_idx, name_idx, type_idx, data_idx in layout.element_columns
        ]
        yield ContentItem(row[layout.id_idx], row[layout.title_idx], elements)


######################################################################
# Walking content items
######################################################################

def write_text(path, text, label):
    log_info(f"    Writing {label}")
    if os.path.exists(path):
        os.remove(path)
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(text)


def process_element(element, item_dir, session, config, stats):
    plan = plan_element(element, item_dir, config)

    if plan.action is Action.IGNORE:
        log_debug(f"    Ignoring {element.element_id} ({element.type_tag or 'no type'})")
        stats.ignored += 1
        return

    if plan.action is Action.TEXT:
        if config.dry_run:
            log_info(f"    [DRY RUN] would write {plan.text_path}")
            stats.written += 1
            return
        write_text(plan.text_path, plan.text, element.name)
        stats.written += 1
        return

    for target in plan.targets:
        if config.dry_run:
            log_info(f"    [DRY RUN] would download {target.url} -> {target.path}")
            stats.downloaded += 1
            continue
        fetched = download_file(
            session, target.url, target.path, target.label,
            timeout=config.timeout, progress_interval=config.progress_interval,
        )
        if fetched:
            stats.downloaded += 1
        else:
            stats.skipped += 1


def process_content_item(item, session, config, stats):
    dir_name = f"{safe_filename(item.item_id)} - {safe_filename(item.title)}"
    item_dir = os.path.join(config.output_dir, dir_name)
    log_info(f"Processing {dir_name}")

    if not config.dry_run:
        os.makedirs(item_dir, exist_ok=True)

    for element in item.elements:
        process_element(element, item_dir, session, config, stats)
    stats.items += 1


def run(csv_path, config, session=None):
    """
    Process every content item of the export, one element at a time.
    The first error propagates and stops the run.
    """
    if not config.dry_run:
        os.makedirs(config.output_dir, exist_ok=True)

    stats = RunStats()
    own_session = session is None
    if own_session:
        session = requests.Session()
    try:
        for item in read_content_items(csv_path):
            process_content_item(item, session, config, stats)
    finally:
        if own_session:
            session.close()
    return stats


######################################################################
# CLI
######################################################################

def parse_args(argv=None, defaults=None):
    defaults = defaults or {}
    parser = argparse.ArgumentParser(
        prog="content-downloader",
        description="Download each file referenced by a content CSV export into a directory tree.",
    )
    parser.add_argument("-i", "--input", required=True, help="Content CSV file as exported from the event platform")
    parser.add_argument("-o", "--output", required=True, help="Output directory for the downloaded files")
    parser.add_argument("-s", "--skip-videos", action="store_true", help="Skip video files (audio files are still downloaded)")
    parser.add_argument("--region", default=defaults.get("region", DEFAULT_REGION), help="Storage region hosting the export's buckets")
    parser.add_argument("--timeout", type=float, default=defaults.get("timeout", DEFAULT_TIMEOUT), help="Connect/read timeout per request (seconds)")
    parser.add_argument("--dry-run", action="store_true", help="Parse and plan only; do not write or download")
    parser.add_argument("--log-level", default=defaults.get("log_level", "info"), choices=["debug", "info", "none"], help="Set log level: debug, info, or none (default: info)")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def main(argv=None):
    try:
        defaults = load_config()
    except ValueError as e:
        log_error(f"Could not read config: {e}")
        return 1

    args = parse_args(argv, defaults)
    set_log_level(args.log_level)

    if not os.path.isfile(args.input):
        log_error(f"CSV file not found: {args.input}")
        return 1

    config = RunConfig(
        output_dir=args.output,
        skip_videos=args.skip_videos,
        region=args.region,
        timeout=args.timeout,
        dry_run=args.dry_run,
    )

    try:
        stats = run(args.input, config)
    except (MalformedExport, MalformedPayload, MalformedStorageURI, TransferFailed, OSError) as e:
        log_error(str(e))
        return 1

    if config.dry_run:
        log_info(f"Dry run: {stats.items} items, {stats.written} to write, {stats.downloaded} to download, "
                 f"{stats.ignored} ignored")
        return 0

    log_info(f"Done: {stats.items} items, {stats.written} written, {stats.downloaded} downloaded, "
             f"{stats.skipped} already present, {stats.ignored} ignored")
    return 0


if __name__ == "__main__":
    sys.exit(main())
