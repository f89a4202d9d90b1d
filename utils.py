# utils.py
# Shared utility functions for content-export-downloader

import os
import re
import sys
import json
import threading


CONFIG_FILE = ".content_downloader_config.json"


def load_config(path=CONFIG_FILE):
    """
    Read optional run defaults (region, timeout, log_level) from a JSON file.
    Returns an empty dict if the file is absent. The file is never written.
    """
    if not os.path.exists(path):
        return {}
    with open(path, "r", encoding="utf-8") as f:
        cfg = json.load(f)
    if not isinstance(cfg, dict):
        raise ValueError(f"Config file {path} must contain a JSON object")
    return cfg


######################################################################
# Filenames / Sanitization
######################################################################

INVALID_FS_CHARS = re.compile(r"[\\/:\"*?<>|.\x00-\x1F]+")


def safe_filename(name, maxlen=180):
    name = INVALID_FS_CHARS.sub("-", name or "")
    name = name.replace("  ", " ").strip()
    if len(name) > maxlen:
        name = name[:maxlen].rstrip()
    return name or "untitled"


# --- Logging (thread-safe, multi-level) ---
LOG_LEVELS = {"debug": 2, "info": 1, "none": 0}
LOG_LEVEL = 1  # default to info
log_lock = threading.Lock()

def set_log_level(level):
    global LOG_LEVEL
    LOG_LEVEL = LOG_LEVELS.get(str(level).lower(), 1)

def log_debug(msg):
    if LOG_LEVEL >= 2:
        with log_lock:
            print(f"[DEBUG] {msg}")

def log_info(msg):
    if LOG_LEVEL >= 1:
        with log_lock:
            print(f"[INFO] {msg}")

def log_error(msg):
    with log_lock:
        print(f"[ERROR] {msg}", file=sys.stderr)
