import os
from pathlib import Path

import yaml


USERDATA = Path(os.environ.get("BLOG_DATA_DIR", "/var/lib/dropblog/"))
DB_FILE = Path(os.environ.get("BLOG_DB_FILE", USERDATA / "blog.db"))
CONFIG_FILE = os.environ.get("BLOG_CONFIG", "")

LOG_LEVEL = os.environ.get("BLOG_LOG_LEVEL", "INFO")
SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-change-me")
ADMIN_TOKEN = os.environ.get("BLOG_ADMIN_TOKEN", "")

# buckets
USERDATA_BUCKET = "UserData"
ARTICLES_BUCKET = "UserArticles"
BUCKETS = (USERDATA_BUCKET, ARTICLES_BUCKET)

# content
IMAGE_PREFIX_OLD = b"../images"
IMAGE_PREFIX_NEW = b"/images"
HEADER_OPEN = b"<!--"
HEADER_CLOSE = b"-->"
MARKDOWN_EXTENSIONS = ["fenced_code", "tables"]
MARKDOWN_SUFFIXES = {".md", ".markdown"}

# file-sync timestamps, e.g. "Thu, 04 Mar 2021 10:20:30 +0000"
MODIFIED_FORMAT = "%a, %d %b %Y %H:%M:%S %z"
CREATED_FORMAT = "%Y-%m-%d"


def loadConfig(path=None) -> dict:
    """
    Settings as a dict: module defaults, overridden by the top-level keys of
    the YAML file at `path` (or BLOG_CONFIG) when one is given.
    """
    settings = {
        "db_file": DB_FILE,
        "log_level": LOG_LEVEL,
        "secret_key": SECRET_KEY,
        "admin_token": ADMIN_TOKEN,
    }
    src = path or CONFIG_FILE
    if not src:
        return settings
    with Path(src).open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"config file {src} must contain a mapping")
    for k, v in data.items():
        if k not in settings:
            continue
        settings[k] = Path(v) if k == "db_file" else v
    return settings
